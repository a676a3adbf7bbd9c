"""FastAPI dependencies: the bot router, leaderboard and webhook secret live on app.state."""
from typing import Optional

from fastapi import HTTPException, Request, status

from confessbot.services.leaderboard_service import LeaderboardService
from confessbot.telegram.router import EventRouter


def get_event_router(request: Request) -> EventRouter:
    router = getattr(request.app.state, "event_router", None)
    if router is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Bot not configured")
    return router


def get_leaderboard(request: Request) -> LeaderboardService:
    return request.app.state.leaderboard


def get_webhook_secret(request: Request) -> Optional[str]:
    return getattr(request.app.state, "webhook_secret", None) or None
