"""
Route Access

Decides, per request, whether to let it through or redirect it based on the
path and whether the browser presents a session cookie.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "session_token"
SECURE_COOKIE_PREFIX = "__Secure-"


@dataclass(frozen=True)
class AccessConfig:
    """Route classification and cookie settings, fixed at startup."""

    cookie_prefix: str
    protected_routes: tuple = ("/dashboard",)
    excluded_prefixes: tuple = ("api", "static", "_image")
    excluded_suffixes: tuple = (".png",)
    secure_cookies: bool = True

    @property
    def session_cookie_name(self):
        name = f"{self.cookie_prefix}.{SESSION_COOKIE_NAME}"
        if self.secure_cookies:
            return SECURE_COOKIE_PREFIX + name
        return name


@dataclass(frozen=True)
class Decision:
    """Either pass the request through (redirect_to is None) or redirect it."""

    redirect_to: str = None

    @property
    def is_continue(self):
        return self.redirect_to is None

    @classmethod
    def redirect(cls, target):
        return cls(redirect_to=target)


CONTINUE = Decision()


def is_protected_route(path, protected_routes):
    """True if path is a protected route or nested below one."""
    return any(path == route or path.startswith(f"{route}/") for route in protected_routes)


class AccessRouter:
    """
    Ordered (predicate, decision) rules; the first matching rule wins.

    Predicates receive (path, has_session_indicator). Anything no rule
    matches continues.
    """

    def __init__(self, config):
        self.config = config
        self.rules = [
            (lambda path, signed_in: path == "/" and signed_in,
             Decision.redirect("/dashboard")),
            (lambda path, signed_in: not signed_in and is_protected_route(path, config.protected_routes),
             Decision.redirect("/")),
        ]

    def decide(self, path, has_session_indicator):
        """
        Decide what to do with a request.

        Args:
            path (str): URL path, without query string or fragment
            has_session_indicator (bool): Whether a session cookie is present

        Returns:
            Decision: CONTINUE or a redirect to a local path
        """
        if not isinstance(path, str) or not path.startswith("/"):
            logger.warning(f"Malformed request path {path!r}; letting it through")
            return CONTINUE

        for predicate, decision in self.rules:
            if predicate(path, has_session_indicator):
                return decision
        return CONTINUE


def is_excluded(path, config):
    """
    True for paths the access check never sees: API routes, static assets,
    image endpoints and .png files.
    """
    relative = path[1:] if path.startswith("/") else path
    if any(relative.startswith(prefix) for prefix in config.excluded_prefixes):
        return True
    return any(path.endswith(suffix) for suffix in config.excluded_suffixes)


def get_session_token(cookies, config):
    """Return the session cookie value, preferring the __Secure- variant."""
    name = f"{config.cookie_prefix}.{SESSION_COOKIE_NAME}"
    for candidate in (SECURE_COOKIE_PREFIX + name, name):
        value = cookies.get(candidate)
        if value and value.strip():
            return value.strip()
    return None


def has_session_indicator(cookies, config):
    """
    True if the request carries a session cookie for this app.

    Only presence is checked; the token itself is not validated here.
    """
    try:
        return get_session_token(cookies, config) is not None
    except Exception as e:
        logger.warning(f"Could not inspect session cookie: {e}")
        return False
