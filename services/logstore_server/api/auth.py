"""
HTTP Basic authentication for the LogStore API.

Invariants:
    - Excluded paths and CORS preflights skip authentication
    - Failures always answer 401 with a WWW-Authenticate challenge
    - Credentials are compared in constant time
"""

from __future__ import annotations

import base64
import binascii
import hmac
import logging
from collections.abc import Callable
from typing import Optional, Tuple

from aiohttp import web

from ..config import AuthConfig

logger = logging.getLogger(__name__)

BASIC_SCHEME = "Basic"


def parse_basic_auth(header: Optional[str]) -> Optional[Tuple[str, str]]:
    """Parse an Authorization header value.

    Returns:
        (username, password), or None if the header is not well-formed
        Basic credentials with a non-empty username
    """
    if not header:
        return None

    parts = header.split()
    if len(parts) != 2 or parts[0].lower() != BASIC_SCHEME.lower():
        return None

    try:
        decoded = base64.b64decode(parts[1], validate=True).decode("iso-8859-1")
    except (binascii.Error, ValueError):
        return None

    username, separator, password = decoded.partition(":")
    if not separator or not username:
        return None
    return username, password


def basic_auth_middleware(config: AuthConfig) -> Callable:
    """Create middleware enforcing HTTP Basic authentication.

    Args:
        config: Authentication configuration

    Returns:
        aiohttp middleware
    """
    excluded = {path.lower() for path in config.exclude_paths}
    challenge = {"WWW-Authenticate": f'Basic realm="{config.realm}"'}

    @web.middleware
    async def middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        if (
            not config.enabled
            or request.method == "OPTIONS"
            or request.path.lower() in excluded
        ):
            return await handler(request)

        credentials = parse_basic_auth(request.headers.get("Authorization"))
        if credentials is not None and _credentials_match(config, *credentials):
            request["user"] = credentials[0]
            return await handler(request)

        logger.info(
            "Rejected unauthenticated request",
            extra={"path": request.path, "remote": request.remote},
        )
        raise web.HTTPUnauthorized(headers=challenge)

    return middleware


def _credentials_match(config: AuthConfig, username: str, password: str) -> bool:
    user_ok = hmac.compare_digest(username.encode("utf-8"), (config.username or "").encode("utf-8"))
    password_ok = hmac.compare_digest(
        password.encode("utf-8"), (config.password or "").encode("utf-8")
    )
    return user_ok and password_ok
