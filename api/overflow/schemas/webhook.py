"""Identity provider webhook event envelope."""

from typing import Any

from pydantic import BaseModel


class WebhookEvent(BaseModel):
    type: str  # user.created | user.updated | user.deleted | ...
    data: dict[str, Any]
