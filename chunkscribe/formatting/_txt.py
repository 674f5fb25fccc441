"""Formatter for the merged raw transcript (.txt)."""


def to_txt(raw_text: str) -> str:
    """Return the merged bracket-timestamped transcript as plain text.

    Args:
        raw_text: Merged engine output.

    Returns:
        The trimmed text with a trailing newline, or an empty string.

    """
    text = raw_text.strip()
    return f"{text}\n" if text else ""
