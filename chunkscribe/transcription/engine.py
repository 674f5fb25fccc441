"""Speech-to-text engine adapters.

The pipeline only depends on the :class:`TranscriptionEngine` protocol: one
call uploads a segment and returns a handle, a second call turns that handle
into bracket-timestamped text. :class:`GeminiEngine` implements it on top of
``google-generativeai``.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from chunkscribe.errors import InputError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedFile:
    """Engine-side reference to an uploaded segment.

    Attributes:
        id: Engine identifier of the upload (for example ``files/abc123``).
        uri: URI passed to the transcription request.
        mime_type: MIME type the engine recorded for the upload.

    """

    id: str
    uri: str
    mime_type: str


class TranscriptionEngine(Protocol):
    """Remote speech-to-text service."""

    def upload(self, data: bytes, mime_type: str) -> UploadedFile:
        """Upload one segment and return its handle."""
        ...

    def transcribe(self, handle: UploadedFile, model: str, prompt: str) -> str:
        """Transcribe a previously uploaded segment."""
        ...


class GeminiEngine:
    """Google Gemini implementation of :class:`TranscriptionEngine`.

    Args:
        api_key: Gemini API key.

    Raises:
        InputError: If ``api_key`` is empty.
    """

    def __init__(self, api_key: str) -> None:
        if not api_key or not api_key.strip():
            raise InputError("A Gemini API key is required")
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        self._genai = genai
        self._models: dict[str, Any] = {}

    def _model(self, name: str) -> Any:
        model = self._models.get(name)
        if model is None:
            model = self._genai.GenerativeModel(name)
            self._models[name] = model
        return model

    def upload(self, data: bytes, mime_type: str) -> UploadedFile:
        uploaded = self._genai.upload_file(path=io.BytesIO(data), mime_type=mime_type)
        logger.debug(f"Uploaded {len(data)} bytes as {uploaded.name}")
        return UploadedFile(
            id=uploaded.name,
            uri=uploaded.uri,
            mime_type=uploaded.mime_type or mime_type,
        )

    def transcribe(self, handle: UploadedFile, model: str, prompt: str) -> str:
        file_part = {"file_data": {"file_uri": handle.uri, "mime_type": handle.mime_type}}
        response = self._model(model).generate_content([file_part, prompt])
        return response.text or ""
