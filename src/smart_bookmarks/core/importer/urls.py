"""URL helpers shared by the importers."""

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

TRACKING_PARAMS = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "utm_id",
        "fbclid",
        "gclid",
        "dclid",
        "msclkid",
        "ref",
        "from",
        "share",
        "source",
        "via",
        "_ga",
        "mc_cid",
        "mc_eid",
    }
)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def extract_domain(url: str) -> str:
    """Return the host of ``url`` without a leading ``www.``, or "" if there is none."""
    try:
        host = urlsplit(url).hostname or ""
    except ValueError:
        return ""
    return host.lower().removeprefix("www.")


def is_web_url(url: str) -> bool:
    """True for an http(s) url with a host."""
    try:
        scheme = urlsplit(url).scheme
    except ValueError:
        return False
    return scheme in ("http", "https") and bool(extract_domain(url))


def normalize_url(url: str) -> str:
    """Canonical form of ``url`` used to spot duplicate bookmarks.

    Tracking parameters, the fragment, default ports, trailing slashes and a
    leading ``www.`` are dropped, the scheme becomes https and the remaining
    query parameters are sorted. Urls that cannot be parsed come back as-is.
    """
    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except ValueError:
        return url
    if parts.scheme not in _DEFAULT_PORTS or not parts.hostname:
        return url

    host = parts.hostname.lower().removeprefix("www.")
    if port is not None and port != _DEFAULT_PORTS[parts.scheme]:
        host = f"{host}:{port}"
    path = parts.path.rstrip("/") or "/"
    params = parse_qsl(parts.query, keep_blank_values=True)
    query = sorted((k, v) for k, v in params if k not in TRACKING_PARAMS)
    return urlunsplit(("https", host, path, urlencode(query), ""))
