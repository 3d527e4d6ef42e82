from pydantic import BaseModel, EmailStr, field_validator
from pydantic import Field as SchemaField
from typing import List, Literal, Optional

from .swap_request import Priority, SwapStatus
from .user import Availability, Experience, Role, _clean_skills


class AdminUserUpdate(BaseModel):
    name: Optional[str] = SchemaField(default=None, min_length=2, max_length=50)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    is_email_verified: Optional[bool] = None
    is_public: Optional[bool] = None
    bio: Optional[str] = SchemaField(default=None, max_length=500)
    location: Optional[str] = SchemaField(default=None, max_length=100)
    availability: Optional[Availability] = None
    experience: Optional[Experience] = None


class BanInput(BaseModel):
    ban: bool = True
    reason: Optional[str] = SchemaField(default=None, max_length=500)


class SkillModerationInput(BaseModel):
    skills_offered: Optional[List[str]] = None
    skills_wanted: Optional[List[str]] = None
    note: Optional[str] = SchemaField(default=None, max_length=500)

    @field_validator("skills_offered", "skills_wanted")
    @classmethod
    def clean_skills(cls, value):
        return _clean_skills(value)


class AdminSwapUpdate(BaseModel):
    status: Optional[SwapStatus] = None
    priority: Optional[Priority] = None
    admin_notes: Optional[str] = SchemaField(default=None, max_length=1000)


class FlagInput(BaseModel):
    flagged: bool = True
    reason: Optional[str] = SchemaField(default=None, max_length=500)


class ReviewVisibilityInput(BaseModel):
    is_hidden: bool


class BulkActionInput(BaseModel):
    action: Literal["ban", "unban", "flag", "unflag", "hide", "unhide"]
    target_type: Literal["users", "swaps", "reviews"]
    target_ids: List[int] = SchemaField(min_length=1, max_length=100)
    reason: Optional[str] = SchemaField(default=None, max_length=500)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, value):
        return value.strip() if value is not None else value
