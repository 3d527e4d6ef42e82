from pydantic import BaseModel, field_validator
from pydantic import Field as SchemaField
from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship
from typing import List, Optional
from datetime import datetime, timedelta

from .user import PartyInfo, User

DETAIL_RATINGS = ("communication", "knowledge", "patience", "helpfulness")


class RatingBundle(BaseModel):
    overall: int = SchemaField(ge=1, le=5)
    communication: Optional[int] = SchemaField(default=None, ge=1, le=5)
    knowledge: Optional[int] = SchemaField(default=None, ge=1, le=5)
    patience: Optional[int] = SchemaField(default=None, ge=1, le=5)
    helpfulness: Optional[int] = SchemaField(default=None, ge=1, le=5)


class ReviewCreate(BaseModel):
    rating: RatingBundle
    comment: str = SchemaField(min_length=1, max_length=1000)
    would_recommend: bool
    pros: List[str] = []
    improvements: List[str] = []
    is_public: bool = True
    tags: List[str] = []

    @field_validator("comment", mode="before")
    @classmethod
    def strip_comment(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("pros", "improvements")
    @classmethod
    def check_points(cls, value):
        if any(len(point) > 200 for point in value):
            raise ValueError("Each entry cannot exceed 200 characters")
        return value


class ReviewResponseInput(BaseModel):
    comment: str = SchemaField(min_length=1, max_length=500)
    is_public: bool = True


class Review(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("reviewer_id", "swap_request_id", name="uq_review_reviewer_swap"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    reviewer_id: int = Field(foreign_key="user.id", index=True)
    reviewee_id: int = Field(foreign_key="user.id", index=True)
    swap_request_id: int = Field(foreign_key="swaprequest.id", index=True)
    skill_taught: str = Field(max_length=100, index=True)
    skill_learned: str = Field(max_length=100, index=True)
    rating_overall: int = Field(index=True)
    rating_communication: Optional[int] = None
    rating_knowledge: Optional[int] = None
    rating_patience: Optional[int] = None
    rating_helpfulness: Optional[int] = None
    comment: str
    pros: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    improvements: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    tags: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    would_recommend: bool
    is_public: bool = Field(default=True)
    # based on a completed swap, so verified on creation
    is_verified: bool = Field(default=True)
    is_hidden: bool = Field(default=False)
    helpful_votes: int = Field(default=0)
    report_count: int = Field(default=0)
    response_comment: Optional[str] = None
    response_is_public: bool = Field(default=True)
    responded_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    reviewer: Optional[User] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "Review.reviewer_id", "lazy": "selectin"}
    )
    reviewee: Optional[User] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "Review.reviewee_id", "lazy": "selectin"}
    )

    @property
    def average_detailed_rating(self) -> float:
        ratings = [
            getattr(self, f"rating_{name}") for name in DETAIL_RATINGS
            if getattr(self, f"rating_{name}")
        ]
        if not ratings:
            return 0
        return sum(ratings) / len(ratings)

    @property
    def is_recent(self) -> bool:
        return self.created_at > datetime.utcnow() - timedelta(days=30)

    def can_respond(self, user_id: int) -> bool:
        return self.reviewee_id == user_id and not self.response_comment


class ReviewRead(BaseModel):
    id: int
    reviewer_id: int
    reviewee_id: int
    swap_request_id: int
    reviewer: Optional[PartyInfo] = None
    reviewee: Optional[PartyInfo] = None
    skill_taught: str
    skill_learned: str
    rating: RatingBundle
    average_detailed_rating: float
    comment: str
    pros: List[str] = []
    improvements: List[str] = []
    tags: List[str] = []
    would_recommend: bool
    is_public: bool
    is_verified: bool
    is_hidden: bool
    helpful_votes: int
    response_comment: Optional[str] = None
    responded_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_review(cls, review: Review) -> "ReviewRead":
        return cls(
            id=review.id,
            reviewer_id=review.reviewer_id,
            reviewee_id=review.reviewee_id,
            swap_request_id=review.swap_request_id,
            reviewer=review.reviewer.party_info if review.reviewer else None,
            reviewee=review.reviewee.party_info if review.reviewee else None,
            skill_taught=review.skill_taught,
            skill_learned=review.skill_learned,
            rating=RatingBundle(
                overall=review.rating_overall,
                communication=review.rating_communication,
                knowledge=review.rating_knowledge,
                patience=review.rating_patience,
                helpfulness=review.rating_helpfulness,
            ),
            average_detailed_rating=review.average_detailed_rating,
            comment=review.comment,
            pros=review.pros or [],
            improvements=review.improvements or [],
            tags=review.tags or [],
            would_recommend=review.would_recommend,
            is_public=review.is_public,
            is_verified=review.is_verified,
            is_hidden=review.is_hidden,
            helpful_votes=review.helpful_votes,
            response_comment=review.response_comment if review.response_is_public else None,
            responded_at=review.responded_at,
            created_at=review.created_at,
        )
