"""Conversion between H:MM:SS strings and whole seconds."""


def parse(text: str) -> int:
    """
    Parse "H:MM:SS", "MM:SS" or "SS" into seconds.

    Malformed input returns 0; callers validate ranges themselves.
    """
    if not text:
        return 0
    try:
        parts = [int(p) for p in str(text).strip().split(":")]
    except ValueError:
        return 0
    if any(p < 0 for p in parts):
        return 0
    if len(parts) == 3:
        return parts[0] * 3600 + parts[1] * 60 + parts[2]
    if len(parts) == 2:
        return parts[0] * 60 + parts[1]
    if len(parts) == 1:
        return parts[0]
    return 0


def format(seconds: int) -> str:  # noqa: A001
    """Inverse of parse(): always zero-padded HH:MM:SS."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
