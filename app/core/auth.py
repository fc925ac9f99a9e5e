"""Admin key authentication for operator-only endpoints.

Resetting a rate limit budget undoes throttling, so only trusted server-side
callers (e.g. the sign-in backend after a successful login) may do it. Keys
come from APP_ADMIN_API_KEYS; with no keys configured the endpoints refuse
every request.
"""

from __future__ import annotations

import hmac
import logging
from typing import Annotated

from fastapi import Header

from app.core.config import settings
from app.core.errors import AuthenticationAppError
from app.core.logging import hash_for_log

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Examples:
        >>> parse_api_keys("key1, key2 ,")
        {'key1', 'key2'}
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()
    return {key.strip() for key in keys_string.split(",") if key.strip()}


def validate_admin_key(provided_key: str | None) -> None:
    """Check provided_key against the configured admin keys.

    Raises:
        AuthenticationAppError: If no keys are configured or the key is wrong.
    """
    valid_keys = parse_api_keys(settings.app.admin_api_keys)

    if not valid_keys:
        logger.warning("auth.admin_keys_not_configured")
        raise AuthenticationAppError(
            code="admin_keys_not_configured",
            message="This operation is disabled",
            details={"hint": "Set APP_ADMIN_API_KEYS to enable it"},
        )

    if not provided_key or not any(
        hmac.compare_digest(provided_key.encode(), key.encode()) for key in valid_keys
    ):
        logger.warning(
            "auth.invalid_admin_key",
            extra={"key_present": bool(provided_key), "key_hash": hash_for_log(provided_key or "")},
        )
        raise AuthenticationAppError(
            code="invalid_admin_key",
            message="Invalid or missing admin key",
        )


async def verify_admin_key(
    x_admin_key: Annotated[str | None, Header(alias="X-Admin-Key")] = None,
) -> None:
    """FastAPI dependency guarding operator-only routes.

    Usage:
        @router.delete("/...", dependencies=[Depends(verify_admin_key)])
    """
    validate_admin_key(x_admin_key)
