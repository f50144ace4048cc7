from urllib.parse import urlparse


ALLOWED_URL_PREFIXES = ("http://", "https://")

URL_REQUIRED_MESSAGE = "URL is required."
URL_SCHEME_MESSAGE = 'URL must start with "http://" or "https://".'


class BookmarkValidationError(ValueError):
    """Raised before any store call when the user's input is unusable."""


def validate_bookmark_url(url: str) -> str:
    candidate = (url or "").strip()
    if not candidate:
        raise BookmarkValidationError(URL_REQUIRED_MESSAGE)
    if not candidate.startswith(ALLOWED_URL_PREFIXES):
        raise BookmarkValidationError(URL_SCHEME_MESSAGE)
    return candidate


def url_hostname(url: str) -> str:
    try:
        return urlparse(url).hostname or ""
    except ValueError:
        return ""


def resolve_title(url: str, title: str | None) -> str:
    clean = (title or "").strip()
    if clean:
        return clean
    return url_hostname(url) or url


def bookmark_domain(url: str) -> str:
    hostname = url_hostname(url)
    if not hostname:
        return url
    return hostname.removeprefix("www.")
