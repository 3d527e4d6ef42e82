from pydantic import BaseModel
from pydantic import Field as SchemaField
from typing import Literal, Optional
from datetime import datetime

NotificationType = Literal["info", "warning", "maintenance", "feature", "system"]
NotificationPriority = Literal["low", "medium", "high", "urgent"]


class BroadcastInput(BaseModel):
    title: str = SchemaField(min_length=1, max_length=200)
    message: str = SchemaField(min_length=1, max_length=2000)
    type: NotificationType = "info"
    priority: NotificationPriority = "medium"
    expires_at: Optional[datetime] = None


class NotificationUpdate(BaseModel):
    is_active: Optional[bool] = None
    expires_at: Optional[datetime] = None


class NotificationRead(BaseModel):
    id: str
    title: str
    message: str
    type: str
    priority: str
    recipient: Optional[int] = None
    sent_by: Optional[int] = None
    is_read: bool = False
    read_at: Optional[datetime] = None
    is_active: bool = True
    expires_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_document(cls, doc: dict) -> "NotificationRead":
        return cls(
            id=str(doc["_id"]),
            title=doc["title"],
            message=doc["message"],
            type=doc.get("type", "info"),
            priority=doc.get("priority", "medium"),
            recipient=doc.get("recipient"),
            sent_by=doc.get("sentBy"),
            is_read=doc.get("isRead", False),
            read_at=doc.get("readAt"),
            is_active=doc.get("isActive", True),
            expires_at=doc.get("expiresAt"),
            created_at=doc["createdAt"],
        )
