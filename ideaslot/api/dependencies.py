"""Request-scoped dependencies: the service container and maintenance auth."""

import hmac
from typing import Optional

from fastapi import Header, Request

from ideaslot.container import ServiceContainer
from ideaslot.exceptions import AuthenticationError


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def require_maintenance_auth(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> None:
    """Require ``Authorization: Bearer <CRON_AUTH_TOKEN>`` outside development.

    Raises:
        AuthenticationError: When the header is missing or wrong, or no
            token is configured.
    """
    settings = get_container(request).settings
    if settings.is_development:
        return
    token = settings.cron_auth_token
    if not token or not authorization:
        raise AuthenticationError("Unauthorized")
    if not hmac.compare_digest(authorization, f"Bearer {token}"):
        raise AuthenticationError("Unauthorized")
