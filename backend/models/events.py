"""
Event schema definitions for monitoring live updates.
Change notifications are invalidation signals only; they carry no record data.
"""

from datetime import datetime, timezone
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field


LiveDomain = Literal["health", "errors", "feedback"]


class ChangeNotification(BaseModel):
    """
    Standard change notification published on a monitoring channel.
    Tells subscribers that something changed in a domain, nothing more.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    domain: LiveDomain
    operation: Literal["insert", "update", "delete"] = "update"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: str = "monitoring-backend"


def channel_for(domain: str, prefix: str = "monitoring") -> str:
    """Redis channel name for a domain's change notifications."""
    return f"{prefix}:{domain}"


def create_change_notification(
    domain: LiveDomain,
    operation: Literal["insert", "update", "delete"] = "update",
    source: str = "monitoring-backend"
) -> ChangeNotification:
    """Create a typed change notification."""
    return ChangeNotification(domain=domain, operation=operation, source=source)
