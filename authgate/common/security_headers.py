"""Response security headers"""

from typing import Dict, Iterable, Mapping

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


def build_csp(directives: Mapping[str, Iterable[str]]) -> str:
    """
    Serialise ``{"default-src": ["'self'"], ...}`` into a header value.

    A directive with no sources (``upgrade-insecure-requests``) is emitted
    bare.
    """
    parts = []
    for name, sources in directives.items():
        sources = [s for s in sources if s]
        parts.append(f"{name} {' '.join(sources)}" if sources else name)
    return "; ".join(parts)


def build_permissions_policy(features: Mapping[str, Iterable[str]]) -> str:
    """``{"camera": []}`` -> ``camera=()``"""
    return ", ".join(f"{name}=({' '.join(allow)})" for name, allow in features.items())


def default_security_headers(
    csp_directives: Mapping[str, Iterable[str]],
    permissions_policy: Mapping[str, Iterable[str]],
    hsts_max_age_seconds: int = 31536000,
) -> Dict[str, str]:
    headers = {
        "Content-Security-Policy": build_csp(csp_directives),
        "Cross-Origin-Opener-Policy": "same-origin",
        "Cross-Origin-Resource-Policy": "same-origin",
        "Origin-Agent-Cluster": "?1",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "X-Content-Type-Options": "nosniff",
        "X-DNS-Prefetch-Control": "off",
        "X-Frame-Options": "SAMEORIGIN",
        "X-Permitted-Cross-Domain-Policies": "none",
        "X-XSS-Protection": "0",
    }
    if hsts_max_age_seconds > 0:
        headers["Strict-Transport-Security"] = f"max-age={hsts_max_age_seconds}; includeSubDomains; preload"
    if permissions_policy:
        headers["Permissions-Policy"] = build_permissions_policy(permissions_policy)
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach the fixed header set to every response, errors included."""

    def __init__(self, app, headers: Mapping[str, str]):
        super().__init__(app)
        self.headers = dict(headers)

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response
