"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from dataclasses import asdict
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from modal_sessions.api.discord_models import SweepResult

if TYPE_CHECKING:
    from modal_sessions.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.get("/sessions/{session_id}", dependencies=[Depends(require_admin)])
async def session_detail(session_id: str, request: Request) -> dict[str, object]:
    """Return a stored modal session for diagnostics."""
    container: AppContainer = request.app.state.container
    session = container.session_service.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"session": asdict(session)}


@router.post("/sessions/sweep", dependencies=[Depends(require_admin)])
async def sweep_sessions(request: Request, retention_minutes: int = 0) -> SweepResult:
    """Delete stale open or expired sessions; called by a periodic job."""
    container: AppContainer = request.app.state.container
    cutoff = datetime.now(tz=UTC) - timedelta(minutes=max(0, retention_minutes))
    deleted = container.session_service.sweep_expired(cutoff)
    return SweepResult(deleted=deleted, cutoff=cutoff.isoformat())
