"""Durable job cache keyed by job id.

Two backends share the :class:`KeyValueStore` protocol:

* :class:`MemoryStore` keeps deep copies of documents in a dict (tests and
  one-shot runs).
* :class:`JsonFileStore` keeps one JSON document per key under
  ``<root>/jobs``. Binary values inside a document are moved to
  content-addressed ``<root>/blobs/<sha256>.bin`` files that are written once
  and reused, so saving progress after every segment only rewrites the small
  JSON document.

:class:`JobCache` sits on top of a backend and speaks :class:`Job` models.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import os
import tempfile
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from chunkscribe.errors import InvalidJobIdError, PersistenceError
from chunkscribe.jobs.models import Job, JobStatus, JobSummary, now_ms

logger = logging.getLogger(__name__)

Document = dict[str, Any]

# Marker key replacing a bytes value in an on-disk document; the reference
# also records the payload size so listings never have to open the blob
_BLOB_KEY = "$blob"


class KeyValueStore(Protocol):
    """Minimal document store used by :class:`JobCache`."""

    def get(self, key: str) -> Document | None:
        """Return the document stored under ``key`` or ``None``."""
        ...

    def set(self, key: str, document: Document) -> None:
        """Store ``document`` under ``key``, replacing any previous value."""
        ...

    def delete(self, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""
        ...

    def values(self, *, load_blobs: bool = True) -> Iterator[Document]:
        """Iterate over every stored document.

        With ``load_blobs=False`` a backend may leave binary payloads as
        lightweight references carrying their ``size``.
        """
        ...


class MemoryStore:
    """In-process store; documents are deep-copied on the way in and out."""

    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}

    def get(self, key: str) -> Document | None:
        document = self._documents.get(key)
        return copy.deepcopy(document) if document is not None else None

    def set(self, key: str, document: Document) -> None:
        self._documents[key] = copy.deepcopy(document)

    def delete(self, key: str) -> None:
        self._documents.pop(key, None)

    def values(self, *, load_blobs: bool = True) -> Iterator[Document]:
        for document in list(self._documents.values()):
            yield copy.deepcopy(document)

    def __len__(self) -> int:
        return len(self._documents)


class JsonFileStore:
    """Directory-backed store with atomic document writes.

    Args:
        root: Cache directory; created on first use.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self._jobs_dir = self.root / "jobs"
        self._blobs_dir = self.root / "blobs"

    def _ensure_dirs(self) -> None:
        self._jobs_dir.mkdir(parents=True, exist_ok=True)
        self._blobs_dir.mkdir(parents=True, exist_ok=True)

    def _document_path(self, key: str) -> Path:
        # Hashed so arbitrary ids map to safe, bounded file names
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._jobs_dir / f"{digest}.json"

    def _blob_path(self, digest: str) -> Path:
        return self._blobs_dir / f"{digest}.bin"

    def _write_blob(self, data: bytes) -> str:
        digest = hashlib.sha256(data).hexdigest()
        path = self._blob_path(digest)
        if not path.exists():
            _atomic_write(path, data)
        return digest

    def _encode(self, value: Any) -> Any:
        if isinstance(value, bytes | bytearray):
            return {_BLOB_KEY: self._write_blob(bytes(value)), "size": len(value)}
        if isinstance(value, dict):
            return {k: self._encode(v) for k, v in value.items()}
        if isinstance(value, list | tuple):
            return [self._encode(v) for v in value]
        return value

    def _decode(self, value: Any) -> Any:
        if isinstance(value, dict):
            if _is_blob_ref(value):
                return self._blob_path(value[_BLOB_KEY]).read_bytes()
            return {k: self._decode(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._decode(v) for v in value]
        return value

    def _read_raw(self, path: Path) -> Document | None:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None

    def get(self, key: str) -> Document | None:
        raw = self._read_raw(self._document_path(key))
        return self._decode(raw) if raw is not None else None

    def set(self, key: str, document: Document) -> None:
        self._ensure_dirs()
        encoded = self._encode(document)
        payload = json.dumps(encoded, ensure_ascii=False).encode("utf-8")
        _atomic_write(self._document_path(key), payload)

    def delete(self, key: str) -> None:
        path = self._document_path(key)
        raw = self._read_raw(path)
        if raw is None:
            return
        path.unlink(missing_ok=True)
        self._collect_blobs(_blob_refs(raw))

    def values(self, *, load_blobs: bool = True) -> Iterator[Document]:
        if not self._jobs_dir.is_dir():
            return
        for path in sorted(self._jobs_dir.glob("*.json")):
            try:
                raw = self._read_raw(path)
                if raw is not None:
                    yield self._decode(raw) if load_blobs else raw
            except (OSError, ValueError) as exc:
                logger.warning(f"Skipping unreadable cache document {path.name}: {exc}")

    def _collect_blobs(self, candidates: set[str]) -> None:
        """Delete blobs from ``candidates`` no remaining document references."""
        if not candidates:
            return
        still_used: set[str] = set()
        for path in self._jobs_dir.glob("*.json"):
            try:
                raw = self._read_raw(path)
            except (OSError, ValueError):
                continue
            if raw is not None:
                still_used |= _blob_refs(raw)
        for digest in candidates - still_used:
            self._blob_path(digest).unlink(missing_ok=True)


def _is_blob_ref(value: dict[str, Any]) -> bool:
    return _BLOB_KEY in value and set(value) <= {_BLOB_KEY, "size"}


def _blob_refs(value: Any) -> set[str]:
    if isinstance(value, dict):
        if _is_blob_ref(value):
            return {value[_BLOB_KEY]}
        refs: set[str] = set()
        for v in value.values():
            refs |= _blob_refs(v)
        return refs
    if isinstance(value, list):
        refs = set()
        for v in value:
            refs |= _blob_refs(v)
        return refs
    return set()


def _atomic_write(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` through a temp file and ``os.replace``."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _validate_id(job_id: str) -> str:
    if not isinstance(job_id, str) or not job_id.strip():
        raise InvalidJobIdError(f"Invalid job id: {job_id!r}")
    return job_id


class JobCache:
    """Typed job persistence over a :class:`KeyValueStore`.

    Args:
        store: Backend holding the documents.
        clock: Returns the current time in epoch milliseconds.

    Examples:
        >>> cache = JobCache(MemoryStore())
        >>> cache.get("missing") is None
        True
    """

    def __init__(self, store: KeyValueStore, clock: Callable[[], int] = now_ms) -> None:
        self._store = store
        self._clock = clock

    def get(self, job_id: str) -> Job | None:
        """Load a job, or ``None`` when absent or unreadable."""
        key = _validate_id(job_id)
        try:
            document = self._store.get(key)
        except (OSError, ValueError) as exc:
            logger.warning(f"Could not read job {key}: {exc}")
            return None
        if document is None:
            return None
        try:
            return Job.model_validate(document)
        except ValidationError as exc:
            logger.warning(f"Ignoring corrupt cache entry for job {key}: {exc}")
            return None

    def set(self, job_id: str, job: Job) -> None:
        """Persist ``job`` under ``job_id`` and refresh its timestamp.

        Raises:
            InvalidJobIdError: If ``job_id`` is blank.
            PersistenceError: If the write fails twice.
        """
        key = _validate_id(job_id)
        job.timestamp = self._clock()
        document = job.model_dump()
        try:
            self._store.set(key, document)
        except OSError as exc:
            logger.warning(f"Saving job {key} failed ({exc}), retrying once")
            try:
                self._store.set(key, document)
            except OSError as retry_exc:
                raise PersistenceError(f"Could not save job {key}: {retry_exc}") from retry_exc

    def delete(self, job_id: str) -> None:
        """Remove a job and its segment data."""
        key = _validate_id(job_id)
        self._store.delete(key)
        logger.debug(f"Deleted job {key}")

    def list_all(self) -> list[Job]:
        """Return every readable job, newest first."""
        jobs: list[Job] = []
        for document in self._store.values():
            try:
                jobs.append(Job.model_validate(document))
            except ValidationError as exc:
                logger.warning(f"Skipping corrupt cache entry {document.get('id')!r}: {exc}")
        jobs.sort(key=lambda job: job.timestamp, reverse=True)
        return jobs

    def list_by_status(self, status: JobStatus | str) -> list[Job]:
        """Return jobs whose status equals ``status``."""
        wanted = JobStatus(status)
        return [job for job in self.list_all() if job.status == wanted]

    def list_summaries(self, status: JobStatus | str | None = None) -> list[JobSummary]:
        """Return lightweight job listings, newest first, without loading audio."""
        wanted = None if status is None else JobStatus(status)
        summaries: list[JobSummary] = []
        for document in self._store.values(load_blobs=False):
            try:
                summary = JobSummary.model_validate(document)
            except ValidationError as exc:
                logger.warning(f"Skipping corrupt cache entry {document.get('id')!r}: {exc}")
                continue
            if wanted is None or summary.status == wanted:
                summaries.append(summary)
        summaries.sort(key=lambda summary: summary.timestamp, reverse=True)
        return summaries

    def sweep_expired(self, max_age_hours: float, now: int | None = None) -> list[str]:
        """Delete ``processing`` jobs not written to for ``max_age_hours``.

        Args:
            max_age_hours: Age threshold in hours.
            now: Reference time in epoch milliseconds (defaults to the clock).

        Returns:
            The ids of the deleted jobs.
        """
        reference = self._clock() if now is None else now
        cutoff = reference - int(max_age_hours * 3600 * 1000)
        removed: list[str] = []
        for job in self.list_summaries(JobStatus.PROCESSING):
            if job.timestamp < cutoff:
                self._store.delete(job.id)
                removed.append(job.id)
        if removed:
            logger.info(f"Removed {len(removed)} expired job(s)")
        return removed
