from enum import StrEnum

from pydantic import BaseModel


class WebhookSource(StrEnum):
    github = "github"
    hubspot = "hubspot"
    krisp = "krisp"


class WebhookAckResponse(BaseModel):
    status: str = "ok"
    message: str | None = None
