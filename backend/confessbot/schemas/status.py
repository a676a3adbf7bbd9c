from datetime import datetime

from pydantic import BaseModel


class StatusStats(BaseModel):
    users: int
    confessions: int
    comments: int


class StatusResponse(BaseModel):
    status: str
    timestamp: datetime
    stats: StatusStats


class WebhookAck(BaseModel):
    ok: bool = True
