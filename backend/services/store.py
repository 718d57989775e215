"""In-memory clip session store. Keyed by validated source URL."""

from models.session import ClipSession

sessions: dict[str, ClipSession] = {}
