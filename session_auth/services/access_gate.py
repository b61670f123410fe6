# session_auth/services/access_gate.py
from enum import Enum
from typing import Optional

LOGIN_PATH = "/login"
DASHBOARD_PATH = "/dashboard"

AUTH_PREFIXES = ("/login", "/signup", "/reset-password")
PROTECTED_PREFIXES = ("/dashboard",)
# JSON API and the interactive docs get no page security headers
HEADER_EXEMPT_PREFIXES = ("/api", "/docs", "/redoc", "/openapi.json")


class PathClass(str, Enum):
    AUTH = "auth"
    PROTECTED = "protected"
    NEUTRAL = "neutral"


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def classify_path(path: str) -> PathClass:
    """ Sort a request path into auth page, protected page, or neutral """
    path = path or "/"
    if any(_under(path, p) for p in AUTH_PREFIXES):
        return PathClass.AUTH
    if any(_under(path, p) for p in PROTECTED_PREFIXES):
        return PathClass.PROTECTED
    return PathClass.NEUTRAL


def gate_redirect(path_class: PathClass, has_session: bool) -> Optional[str]:
    """ Where to send the request, or None to let it through """
    if path_class is PathClass.PROTECTED and not has_session:
        return LOGIN_PATH
    if path_class is PathClass.AUTH and has_session:
        return DASHBOARD_PATH
    return None


CSP = " ".join([
    "default-src 'self';",
    "script-src 'self' 'unsafe-inline' https://www.google.com/recaptcha/ https://www.gstatic.com/recaptcha/;",
    "style-src 'self' 'unsafe-inline';",
    "img-src 'self' data: https:;",
    "font-src 'self';",
    "connect-src 'self' https://www.google.com/recaptcha/;",
    "frame-src https://www.google.com/recaptcha/;",
    "frame-ancestors 'none';",
    "base-uri 'self';",
    "form-action 'self';",
    "object-src 'none';",
])


def wants_security_headers(path: str) -> bool:
    return not any(_under(path, p) for p in HEADER_EXEMPT_PREFIXES)


def security_headers() -> dict:
    return {
        "Content-Security-Policy": CSP,
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "origin-when-cross-origin",
        "X-XSS-Protection": "1; mode=block",
        "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    }
