from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from pydantic import Field as SchemaField
from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime

Availability = Literal["Weekdays", "Evenings", "Weekends", "Flexible"]
Experience = Literal["Beginner", "Intermediate", "Advanced", "Expert"]
LearningMode = Literal["Online", "In-Person", "Both"]
Role = Literal["user", "admin"]

DEFAULT_AVATAR = "https://images.unsplash.com/photo-1472099645785-5658abf4ff4e?w=150&h=150&fit=crop&crop=face"


def _clean_skills(skills: Optional[List[str]]) -> Optional[List[str]]:
    if skills is None:
        return None
    cleaned = []
    for skill in skills:
        skill = skill.strip()
        if not skill:
            continue
        if len(skill) > 50:
            raise ValueError("Skill name cannot exceed 50 characters")
        cleaned.append(skill)
    return cleaned


class PartyInfo(BaseModel):
    id: int
    name: str
    avatar: Optional[str] = None
    rating: float = 0.0
    location: Optional[str] = None


class SocialLinks(BaseModel):
    linkedin: str = ""
    github: str = ""
    portfolio: str = ""


class UserCreate(BaseModel):
    name: str = SchemaField(min_length=2, max_length=50)
    email: EmailStr
    password: str = SchemaField(min_length=6)
    skills_offered: List[str] = []
    skills_wanted: List[str] = []
    location: str = SchemaField(default="", max_length=100)
    availability: Availability = "Flexible"
    bio: str = SchemaField(default="", max_length=500)
    preferred_learning_mode: LearningMode = "Both"
    languages: List[str] = []

    @field_validator("skills_offered", "skills_wanted")
    @classmethod
    def clean_skills(cls, value):
        return _clean_skills(value)


class UserLoginInput(BaseModel):
    email: EmailStr
    password: str = SchemaField(min_length=1)


class UserUpdate(BaseModel):
    name: Optional[str] = SchemaField(default=None, min_length=2, max_length=50)
    bio: Optional[str] = SchemaField(default=None, max_length=500)
    location: Optional[str] = SchemaField(default=None, max_length=100)
    avatar: Optional[str] = None
    skills_offered: Optional[List[str]] = None
    skills_wanted: Optional[List[str]] = None
    availability: Optional[Availability] = None
    experience: Optional[Experience] = None
    preferred_learning_mode: Optional[LearningMode] = None
    languages: Optional[List[str]] = None
    is_public: Optional[bool] = None
    social_links: Optional[SocialLinks] = None

    @field_validator("skills_offered", "skills_wanted")
    @classmethod
    def clean_skills(cls, value):
        return _clean_skills(value)


class UserRead(BaseModel):
    id: int
    name: str
    email: str
    avatar: Optional[str] = None
    bio: str = ""
    location: str = ""
    skills_offered: List[str] = []
    skills_wanted: List[str] = []
    availability: str
    experience: str
    preferred_learning_mode: str
    languages: List[str] = []
    rating: float
    reviews_count: int
    is_public: bool
    is_active: bool
    is_email_verified: bool
    role: str
    social_links: Dict[str, str] = {}
    total_swaps: int
    successful_swaps: int
    success_rate: int
    last_login_at: Optional[datetime] = None
    ban_reason: Optional[str] = None
    banned_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(unique=True, index=True)
    hashed_password: str
    avatar: Optional[str] = Field(default=DEFAULT_AVATAR)
    bio: str = Field(default="")
    location: str = Field(default="", index=True)
    skills_offered: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    skills_wanted: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    availability: str = Field(default="Flexible")
    experience: str = Field(default="Beginner")
    preferred_learning_mode: str = Field(default="Both")
    languages: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    rating: float = Field(default=0.0, index=True)
    reviews_count: int = Field(default=0)
    is_public: bool = Field(default=True)
    is_active: bool = Field(default=True)
    is_email_verified: bool = Field(default=False)
    role: str = Field(default="user")
    social_links: Dict[str, str] = Field(sa_column=Column(JSON), default_factory=dict)
    total_swaps: int = Field(default=0)
    successful_swaps: int = Field(default=0)
    last_login_at: Optional[datetime] = Field(default_factory=datetime.utcnow)
    ban_reason: Optional[str] = None
    banned_at: Optional[datetime] = None
    banned_by: Optional[int] = None
    moderation_history: List[Dict[str, Any]] = Field(sa_column=Column(JSON), default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def success_rate(self) -> int:
        if not self.total_swaps:
            return 0
        return round(self.successful_swaps / self.total_swaps * 100)

    @property
    def party_info(self) -> PartyInfo:
        return PartyInfo(
            id=self.id,
            name=self.name,
            avatar=self.avatar,
            rating=self.rating,
            location=self.location,
        )
