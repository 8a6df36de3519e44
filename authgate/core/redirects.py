"""
Redirect allowlist guard.

Token-bearing redirects only ever target the downstream URL that was checked
here at startup. Request data never chooses the redirect host.
"""

from typing import Iterable
from urllib.parse import urlencode, urlsplit, urlunsplit

ALLOWED_REDIRECT_HOSTS = ("archie.averroes.cloud",)


def ensure_allowed_redirect(url: str, allowed_hosts: Iterable[str] = ALLOWED_REDIRECT_HOSTS) -> str:
    """
    Validate a redirect target against the hostname allowlist.

    Args:
        url: Absolute http(s) URL
        allowed_hosts: Permitted hostnames (compared case-insensitively)

    Returns:
        The URL unchanged

    Raises:
        ValueError: Malformed URL, unsupported scheme, or host not allowlisted
    """
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        # Accessing .port validates the port component
        parts.port
    except ValueError:
        raise ValueError("Downstream URL is not a valid URL")

    if parts.scheme not in ("http", "https") or not hostname:
        raise ValueError("Downstream URL is not a valid URL")

    allowed = {h.strip().lower() for h in allowed_hosts if h and h.strip()}
    if hostname.lower() not in allowed:
        raise ValueError(f"Downstream URL hostname '{hostname}' is not in the redirect allowlist")

    return url


def build_downstream_redirect(base_url: str, token: str, email: str) -> str:
    """Append ``token`` and ``user`` to the pre-validated downstream URL."""
    parts = urlsplit(base_url)
    query = urlencode({"token": token, "user": email or ""})
    if parts.query:
        query = f"{parts.query}&{query}"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))
