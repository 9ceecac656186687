import re
from urllib.parse import urlparse

from linkdrop.models.link import PlatformTag

_HOST_CHARS = re.compile(r"[\w.~%!$&'()*+,;=-]+")
_IPV6_HOST = re.compile(r"[0-9a-f:.]+")


def _host_and_path(url: str) -> tuple[str, str] | None:
    try:
        parsed = urlparse(url.strip())
        host = (parsed.hostname or "").lower()
    except (ValueError, AttributeError):
        return None
    if not parsed.scheme or not host:
        return None
    return host, parsed.path.lower()


def detect_platform(url: str) -> PlatformTag:
    """
    Classify a URL by host. First match wins; anything unparseable or
    unrecognised is a generic Link.
    """
    parts = _host_and_path(url)
    if parts is None:
        return PlatformTag.LINK
    host, path = parts

    if "youtube.com" in host or "youtu.be" in host:
        return PlatformTag.YOUTUBE
    if "twitter.com" in host or "x.com" in host:
        return PlatformTag.TWEET
    if "substack.com" in host:
        return PlatformTag.SUBSTACK
    if "medium.com" in host:
        return PlatformTag.ARTICLE
    if "amazon.com" in host and ("/dp/" in path or "/book" in path):
        return PlatformTag.BOOK
    if "goodreads.com" in host:
        return PlatformTag.BOOK
    return PlatformTag.LINK


def extract_domain_tag(url: str) -> str:
    """'https://www.nytimes.com/x' -> 'nytimes'. Empty string if unparseable."""
    parts = _host_and_path(url)
    if parts is None:
        return ""
    host = parts[0].removeprefix("www.")
    return host.split(".")[0]


def is_valid_absolute_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
        host = parsed.hostname
        # Raises ValueError for a non-numeric or out-of-range port.
        parsed.port
    except (ValueError, AttributeError):
        return False
    if not parsed.scheme or not parsed.netloc or not host:
        return False
    return bool(_HOST_CHARS.fullmatch(host) or _IPV6_HOST.fullmatch(host))
