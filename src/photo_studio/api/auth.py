"""Optional bearer-token guard for the API routes."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Depends, Header, HTTPException, Request, status

if TYPE_CHECKING:
    from photo_studio.containers import AppContainer


def _get_api_token(request: Request) -> str | None:
    container: AppContainer = request.app.state.container
    return container.settings.api_token


async def require_api_token(
    authorization: str | None = Header(default=None),
    api_token: str | None = Depends(_get_api_token),
) -> None:
    """Ensure requests carry the configured bearer token, when one is set."""
    if not api_token:
        return
    if authorization != f"Bearer {api_token}":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
