"""Host allow-list for user supplied video URLs (keeps yt-dlp off arbitrary hosts)."""

from urllib.parse import urlsplit

ALLOWED_HOSTS = frozenset(
    {
        "youtube.com",
        "www.youtube.com",
        "m.youtube.com",
        "music.youtube.com",
        "youtu.be",
    }
)
ALLOWED_SCHEMES = frozenset({"http", "https"})


def is_allowed(url_text: str) -> bool:
    """True when url_text parses and its hostname is exactly one of ALLOWED_HOSTS."""
    if not isinstance(url_text, str) or not url_text.strip():
        return False
    try:
        parts = urlsplit(url_text.strip())
        hostname = parts.hostname
        # Accessing .port validates the netloc (raises on garbage like "host:abc").
        _ = parts.port
    except ValueError:
        return False
    if parts.scheme.lower() not in ALLOWED_SCHEMES or not hostname:
        return False
    return hostname.lower() in ALLOWED_HOSTS
