"""
Admin actions that touch more than one row: bans, skill moderation, flags,
bulk moderation and deletes that cascade through swap requests and reviews.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import delete, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..core.errors import InvalidArgument, NotFound
from ..models.admin import BulkActionInput, SkillModerationInput
from ..models.review import Review
from ..models.swap_request import SwapRequest
from ..models.user import User
from .reviews import recompute_user_rating

logger = logging.getLogger(__name__)

BULK_ACTIONS = {
    ("users", "ban"), ("users", "unban"),
    ("swaps", "flag"), ("swaps", "unflag"),
    ("reviews", "hide"), ("reviews", "unhide"),
}


def _history_entry(moderator: User, action: str, note: Optional[str]) -> dict:
    return {
        "date": datetime.utcnow().isoformat(),
        "moderator": moderator.id,
        "action": action,
        "note": note or "",
    }


async def get_user(session: AsyncSession, user_id: int) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


async def _refresh_ratings(session: AsyncSession, user_ids: Iterable[int]) -> None:
    for user_id in set(user_ids):
        await recompute_user_rating(session, user_id)


async def set_ban(
    session: AsyncSession, user_id: int, admin: User, ban: bool, reason: Optional[str] = None
) -> User:
    if user_id == admin.id:
        raise InvalidArgument("You cannot ban yourself")
    user = await get_user(session, user_id)

    now = datetime.utcnow()
    if ban:
        user.is_active = False
        user.ban_reason = reason or "Violation of community guidelines"
        user.banned_at = now
        user.banned_by = admin.id
    else:
        user.is_active = True
        user.ban_reason = None
        user.banned_at = None
        user.banned_by = None
    user.moderation_history = [
        *(user.moderation_history or []),
        _history_entry(admin, "ban" if ban else "unban", reason),
    ]
    user.updated_at = now
    await session.commit()
    logger.info("user %s %s by admin %s", user_id, "banned" if ban else "unbanned", admin.id)
    return user


async def moderate_skills(
    session: AsyncSession, user_id: int, admin: User, payload: SkillModerationInput
) -> User:
    user = await get_user(session, user_id)
    if payload.skills_offered is not None:
        user.skills_offered = payload.skills_offered
    if payload.skills_wanted is not None:
        user.skills_wanted = payload.skills_wanted
    user.moderation_history = [
        *(user.moderation_history or []),
        _history_entry(admin, "skills_moderated", payload.note),
    ]
    user.updated_at = datetime.utcnow()
    await session.commit()
    logger.info("skills of user %s moderated by admin %s", user_id, admin.id)
    return user


async def delete_swap_cascade(session: AsyncSession, swap_id: int) -> None:
    swap = await session.get(SwapRequest, swap_id)
    if not swap:
        raise NotFound("Swap request not found")

    result = await session.execute(
        select(Review.reviewee_id).where(Review.swap_request_id == swap_id)
    )
    reviewees = [reviewee_id for (reviewee_id,) in result.all()]
    await session.execute(delete(Review).where(Review.swap_request_id == swap_id))
    await session.execute(delete(SwapRequest).where(SwapRequest.id == swap_id))
    await _refresh_ratings(session, reviewees)
    await session.commit()
    logger.info("swap %s deleted with %s reviews", swap_id, len(reviewees))


async def delete_user_cascade(session: AsyncSession, user_id: int, admin: User) -> None:
    if user_id == admin.id:
        raise InvalidArgument("You cannot delete your own account")
    await get_user(session, user_id)

    result = await session.execute(
        select(SwapRequest.id).where(
            or_(SwapRequest.requester_id == user_id, SwapRequest.recipient_id == user_id)
        )
    )
    swap_ids = [swap_id for (swap_id,) in result.all()]

    review_scope = or_(
        Review.reviewer_id == user_id,
        Review.reviewee_id == user_id,
        Review.swap_request_id.in_(swap_ids),
    )
    result = await session.execute(select(Review.reviewee_id).where(review_scope))
    reviewees = {reviewee_id for (reviewee_id,) in result.all()} - {user_id}

    await session.execute(delete(Review).where(review_scope))
    await session.execute(delete(SwapRequest).where(SwapRequest.id.in_(swap_ids)))
    await session.execute(delete(User).where(User.id == user_id))
    await _refresh_ratings(session, reviewees)
    await session.commit()
    logger.info(
        "user %s deleted by admin %s with %s swap requests", user_id, admin.id, len(swap_ids)
    )


async def set_flag(
    session: AsyncSession, swap_ids: List[int], admin: User, flagged: bool, reason: Optional[str] = None
) -> int:
    """Flag or unflag swap requests; does not touch their status. Returns the rows changed."""
    now = datetime.utcnow()
    result = await session.execute(
        update(SwapRequest)
        .where(SwapRequest.id.in_(swap_ids))
        .values(
            is_flagged=flagged,
            flag_reason=reason if flagged else None,
            flagged_at=now if flagged else None,
            flagged_by=admin.id if flagged else None,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    logger.info(
        "swaps %s %s by admin %s", swap_ids, "flagged" if flagged else "unflagged", admin.id
    )
    return result.rowcount


async def _bulk_ban(
    session: AsyncSession, user_ids: List[int], admin: User, ban: bool, reason: Optional[str]
) -> int:
    if ban and admin.id in user_ids:
        raise InvalidArgument("You cannot ban yourself")
    result = await session.execute(select(User).where(User.id.in_(user_ids)))
    now = datetime.utcnow()
    changed = 0
    for user in result.scalars().all():
        if user.is_active != ban:
            continue
        user.is_active = not ban
        user.ban_reason = (reason or "Violation of community guidelines") if ban else None
        user.banned_at = now if ban else None
        user.banned_by = admin.id if ban else None
        user.moderation_history = [
            *(user.moderation_history or []),
            _history_entry(admin, "ban" if ban else "unban", reason),
        ]
        user.updated_at = now
        changed += 1
    await session.commit()
    return changed


async def _bulk_hide(session: AsyncSession, review_ids: List[int], hidden: bool) -> int:
    result = await session.execute(
        select(Review.reviewee_id).where(Review.id.in_(review_ids), Review.is_hidden != hidden)
    )
    reviewees = [reviewee_id for (reviewee_id,) in result.all()]
    result = await session.execute(
        update(Review)
        .where(Review.id.in_(review_ids), Review.is_hidden != hidden)
        .values(is_hidden=hidden, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    await _refresh_ratings(session, reviewees)
    await session.commit()
    return result.rowcount


async def bulk_action(session: AsyncSession, admin: User, payload: BulkActionInput) -> int:
    """Apply one moderation action to many targets and return how many changed."""
    action, target_ids = payload.action, payload.target_ids
    if (payload.target_type, action) not in BULK_ACTIONS:
        raise InvalidArgument("Invalid action for target type")

    if payload.target_type == "users":
        changed = await _bulk_ban(session, target_ids, admin, action == "ban", payload.reason)
    elif payload.target_type == "swaps":
        changed = await set_flag(session, target_ids, admin, action == "flag", payload.reason)
    else:
        changed = await _bulk_hide(session, target_ids, action == "hide")

    logger.info(
        "bulk %s on %s %s by admin %s: %s changed",
        action, len(target_ids), payload.target_type, admin.id, changed,
    )
    return changed
