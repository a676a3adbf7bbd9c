"""Service status."""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from confessbot.api.deps import get_leaderboard
from confessbot.schemas.status import StatusResponse, StatusStats
from confessbot.services.leaderboard_service import LeaderboardService

router = APIRouter()


@router.get("/", response_model=StatusResponse)
def get_status(leaderboard: LeaderboardService = Depends(get_leaderboard)):
    return StatusResponse(
        status="online",
        timestamp=datetime.now(timezone.utc),
        stats=StatusStats(**leaderboard.totals()),
    )


@router.get("/health")
def health():
    return {"status": "ok"}
