from enum import Enum
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import Field as SchemaField
from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field, Relationship
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime

from .user import LearningMode, PartyInfo, User

Timeframe = Literal["1 week", "2 weeks", "1 month", "2 months", "3 months", "Flexible"]
Priority = Literal["low", "medium", "high", "urgent"]
Weekday = Literal["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
PreferredTime = Literal["Morning", "Afternoon", "Evening", "Flexible"]

PRIORITY_ORDER = {"low": 0, "medium": 1, "high": 2, "urgent": 3}


class SwapStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    completed = "completed"
    cancelled = "cancelled"


class Duration(BaseModel):
    estimated_hours: int = SchemaField(ge=1, le=100)
    timeframe: Timeframe = "Flexible"


class Schedule(BaseModel):
    proposed_start_date: Optional[datetime] = None
    preferred_days: List[Weekday] = []
    preferred_time: Optional[PreferredTime] = None


class MeetingDetails(BaseModel):
    location: Optional[str] = SchemaField(default=None, max_length=200)
    meeting_link: Optional[str] = SchemaField(default=None, max_length=500)
    additional_notes: Optional[str] = SchemaField(default=None, max_length=500)

    @field_validator("meeting_link")
    @classmethod
    def check_link(cls, value):
        if value and not value.startswith(("http://", "https://")):
            raise ValueError("Meeting link must be a valid URL")
        return value


def _clean_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return None
    cleaned = [tag.strip() for tag in tags if tag.strip()]
    if any(len(tag) > 30 for tag in cleaned):
        raise ValueError("Tag cannot exceed 30 characters")
    return cleaned


class SwapRequestCreate(BaseModel):
    recipient_id: int
    skill_offered: str = SchemaField(min_length=1, max_length=100)
    skill_wanted: str = SchemaField(min_length=1, max_length=100)
    message: str = SchemaField(default="", max_length=1000)
    learning_mode: LearningMode
    duration: Duration
    schedule: Schedule = Schedule()
    meeting_details: MeetingDetails = MeetingDetails()
    priority: Priority = "medium"
    tags: List[str] = []

    @field_validator("skill_offered", "skill_wanted", "message", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value):
        return _clean_tags(value)


class SwapRequestUpdate(BaseModel):
    """Partial update of the mutable terms of a swap request.

    Extra keys are kept so the lifecycle layer can reject attempts to touch
    parties, skills, status or transition timestamps explicitly.
    """
    model_config = ConfigDict(extra="allow")

    message: Optional[str] = SchemaField(default=None, max_length=1000)
    duration: Optional[Duration] = None
    schedule: Optional[Schedule] = None
    meeting_details: Optional[MeetingDetails] = None
    priority: Optional[Priority] = None
    tags: Optional[List[str]] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value):
        return _clean_tags(value)


class AcceptInput(BaseModel):
    meeting_details: Optional[MeetingDetails] = None


class ReasonInput(BaseModel):
    reason: Optional[str] = SchemaField(default=None, max_length=500)


class SwapRequest(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    requester_id: int = Field(foreign_key="user.id", index=True)
    recipient_id: int = Field(foreign_key="user.id", index=True)
    skill_offered: str = Field(max_length=100, index=True)
    skill_wanted: str = Field(max_length=100, index=True)
    message: str = Field(default="")
    status: SwapStatus = Field(default=SwapStatus.pending, index=True)
    learning_mode: str
    duration_estimated_hours: int
    duration_timeframe: str = Field(default="Flexible")
    schedule: Dict[str, Any] = Field(sa_column=Column(JSON), default_factory=dict)
    meeting_details: Dict[str, Any] = Field(sa_column=Column(JSON), default_factory=dict)
    priority: str = Field(default="medium")
    response_by: datetime = Field(index=True)
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    tags: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    is_archived: bool = Field(default=False)
    admin_notes: Optional[str] = None
    is_flagged: bool = Field(default=False)
    flag_reason: Optional[str] = None
    flagged_at: Optional[datetime] = None
    flagged_by: Optional[int] = None
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    requester: Optional[User] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "SwapRequest.requester_id", "lazy": "selectin"}
    )
    recipient: Optional[User] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "SwapRequest.recipient_id", "lazy": "selectin"}
    )

    def is_expired_at(self, now: datetime) -> bool:
        return self.status == SwapStatus.pending and now > self.response_by

    @property
    def is_expired(self) -> bool:
        return self.is_expired_at(datetime.utcnow())

    def is_party(self, user_id: int) -> bool:
        return user_id in (self.requester_id, self.recipient_id)


class SwapRequestRead(BaseModel):
    id: int
    requester_id: int
    recipient_id: int
    requester: Optional[PartyInfo] = None
    recipient: Optional[PartyInfo] = None
    skill_offered: str
    skill_wanted: str
    message: str
    status: SwapStatus
    learning_mode: str
    duration: Duration
    schedule: Dict[str, Any] = {}
    meeting_details: Dict[str, Any] = {}
    priority: str
    response_by: datetime
    is_expired: bool
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    tags: List[str] = []
    is_flagged: bool = False
    flag_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_swap(cls, swap: SwapRequest, now: Optional[datetime] = None) -> "SwapRequestRead":
        now = now or datetime.utcnow()
        return cls(
            id=swap.id,
            requester_id=swap.requester_id,
            recipient_id=swap.recipient_id,
            requester=swap.requester.party_info if swap.requester else None,
            recipient=swap.recipient.party_info if swap.recipient else None,
            skill_offered=swap.skill_offered,
            skill_wanted=swap.skill_wanted,
            message=swap.message,
            status=swap.status,
            learning_mode=swap.learning_mode,
            duration=Duration(
                estimated_hours=swap.duration_estimated_hours,
                timeframe=swap.duration_timeframe,
            ),
            schedule=swap.schedule or {},
            meeting_details=swap.meeting_details or {},
            priority=swap.priority,
            response_by=swap.response_by,
            is_expired=swap.is_expired_at(now),
            accepted_at=swap.accepted_at,
            rejected_at=swap.rejected_at,
            completed_at=swap.completed_at,
            cancelled_at=swap.cancelled_at,
            cancellation_reason=swap.cancellation_reason,
            tags=swap.tags or [],
            is_flagged=swap.is_flagged,
            flag_reason=swap.flag_reason,
            admin_notes=swap.admin_notes,
            created_at=swap.created_at,
            updated_at=swap.updated_at,
        )

