import logging
from datetime import datetime
from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..core.errors import Forbidden, NotFound
from ..db import get_session
from ..models.review import ReviewRead, ReviewResponseInput
from ..models.swap_request import SwapRequestRead, SwapStatus
from ..models.user import User, UserRead, UserUpdate
from ..services import reviews, swap_lifecycle
from ..utils.auth import get_current_user
from ..utils.utils import paginate, success

logger = logging.getLogger(__name__)

router = APIRouter()

PRIVATE_FIELDS = {"email", "social_links", "ban_reason", "banned_at"}


def public_view(user: User) -> dict:
    return UserRead.model_validate(user).model_dump(exclude=PRIVATE_FIELDS)


def _lowered(skills):
    return {skill.lower() for skill in skills or []}


def _matches_search(user: User, term: str) -> bool:
    term = term.lower()
    haystack = [user.name, user.bio or "", *(user.skills_offered or []), *(user.skills_wanted or [])]
    return any(term in text.lower() for text in haystack)


@router.get("")
async def browse_users(
    search: Optional[str] = None,
    skill_offered: Optional[str] = None,
    skill_wanted: Optional[str] = None,
    location: Optional[str] = None,
    availability: Optional[Literal["Weekdays", "Evenings", "Weekends", "Flexible"]] = None,
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    sort_by: Literal["rating", "name", "created_at", "last_login_at"] = "rating",
    sort_order: Literal["asc", "desc"] = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    query = select(User).where(
        User.is_active == True,  # noqa: E712
        User.is_public == True,  # noqa: E712
        User.id != current_user.id,
    )
    if location:
        query = query.where(User.location.icontains(location, autoescape=True))
    if availability:
        query = query.where(User.availability == availability)
    if min_rating is not None:
        query = query.where(User.rating >= min_rating)

    result = await session.execute(query)
    users = result.scalars().all()

    # skills live in JSON lists, so they are matched here rather than in SQL
    if search:
        users = [user for user in users if _matches_search(user, search)]
    if skill_offered:
        users = [user for user in users if skill_offered.lower() in _lowered(user.skills_offered)]
    if skill_wanted:
        users = [user for user in users if skill_wanted.lower() in _lowered(user.skills_wanted)]

    def sort_key(user):
        if sort_by == "name":
            return user.name.lower()
        if sort_by == "rating":
            return user.rating
        return getattr(user, sort_by) or datetime.min

    users = sorted(users, key=sort_key, reverse=sort_order == "desc")
    start = (page - 1) * limit
    return success(
        users=[public_view(user) for user in users[start:start + limit]],
        pagination=paginate(page, limit, len(users)),
    )


@router.get("/me/matches")
async def my_matches(
    limit: int = Query(20, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    wanted = _lowered(current_user.skills_wanted)
    offered = _lowered(current_user.skills_offered)

    result = await session.execute(
        select(User).where(
            User.is_active == True,  # noqa: E712
            User.is_public == True,  # noqa: E712
            User.id != current_user.id,
        )
    )
    matches = []
    for user in result.scalars().all():
        can_teach_me = sorted(s for s in user.skills_offered or [] if s.lower() in wanted)
        wants_from_me = sorted(s for s in user.skills_wanted or [] if s.lower() in offered)
        if can_teach_me or wants_from_me:
            matches.append({
                "user": public_view(user),
                "can_teach_me": can_teach_me,
                "wants_from_me": wants_from_me,
                "mutual": bool(can_teach_me and wants_from_me),
            })

    matches.sort(key=lambda m: (m["mutual"], len(m["can_teach_me"]) + len(m["wants_from_me"]), m["user"]["rating"]), reverse=True)
    return success(matches=matches[:limit])


@router.delete("/me")
async def deactivate_account(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    current_user.is_active = False
    current_user.updated_at = datetime.utcnow()
    await session.commit()
    logger.info("user %s deactivated their account", current_user.id)
    return success("Account deactivated")


@router.get("/{user_id}")
async def get_user_profile(
    user_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    user = await session.get(User, user_id)
    if not user or not user.is_active:
        raise NotFound("User not found")

    is_self_or_admin = user.id == current_user.id or current_user.is_admin
    if not user.is_public and not is_self_or_admin:
        raise Forbidden("This profile is private")

    recent_reviews, _ = await reviews.list_user_reviews(session, user.id, "received", limit=5)
    profile = UserRead.model_validate(user).model_dump() if is_self_or_admin else public_view(user)
    return success(
        user=profile,
        reviews=[ReviewRead.from_review(review) for review in recent_reviews],
        stats=await swap_lifecycle.user_stats(session, user.id),
    )


@router.put("/{user_id}")
async def update_user_profile(
    user_id: int,
    changes: UserUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    if user_id != current_user.id and not current_user.is_admin:
        raise Forbidden("You can only update your own profile")
    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User not found")

    for field, value in changes.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        if isinstance(value, str):
            value = value.strip()
        setattr(user, field, value)
    user.updated_at = datetime.utcnow()
    await session.commit()
    return success("Profile updated successfully", user=UserRead.model_validate(user))


@router.get("/{user_id}/swaps")
async def get_user_swaps(
    user_id: int,
    type: Literal["sent", "received", "all"] = "all",
    status: Optional[SwapStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    if user_id != current_user.id and not current_user.is_admin:
        raise Forbidden("You can only view your own swap requests")
    swaps, total = await swap_lifecycle.list_swaps(
        session, user_id, direction=type, status=status, page=page, limit=limit
    )
    return success(
        swaps=[SwapRequestRead.from_swap(swap) for swap in swaps],
        pagination=paginate(page, limit, total),
    )


@router.get("/{user_id}/reviews")
async def get_user_reviews(
    user_id: int,
    type: Literal["received", "given", "all"] = "received",
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    user = await session.get(User, user_id)
    if not user or not user.is_active:
        raise NotFound("User not found")
    found, total = await reviews.list_user_reviews(session, user_id, type, page, limit)
    return success(
        reviews=[ReviewRead.from_review(review) for review in found],
        pagination=paginate(page, limit, total),
    )


@router.put("/reviews/{review_id}/respond")
async def respond_to_review(
    review_id: int,
    payload: ReviewResponseInput,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    review = await reviews.respond_to_review(session, review_id, current_user, payload)
    return success("Response added", review=ReviewRead.from_review(review))
