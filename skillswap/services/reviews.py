"""
Reviews left by the parties of a completed swap.

Each party may review the other once per swap.  The reviewee's public
rating and review count are recomputed in the same transaction as the
write that changes them.
"""

import logging
from datetime import datetime
from typing import List, Tuple

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..core.errors import Conflict, Forbidden, InvalidArgument, NotFound
from ..models.review import Review, ReviewCreate, ReviewResponseInput
from ..models.swap_request import SwapStatus
from ..models.user import User
from .swap_lifecycle import get_swap

logger = logging.getLogger(__name__)


async def get_review(session: AsyncSession, review_id: int) -> Review:
    result = await session.execute(
        select(Review)
        .where(Review.id == review_id)
        .execution_options(populate_existing=True)
    )
    review = result.scalar_one_or_none()
    if not review:
        raise NotFound("Review not found")
    return review


async def recompute_user_rating(session: AsyncSession, user_id: int) -> None:
    """Refresh a user's rating from their visible reviews; does not commit."""
    result = await session.execute(
        select(func.avg(Review.rating_overall), func.count(Review.id)).where(
            Review.reviewee_id == user_id,
            Review.is_public == True,  # noqa: E712
            Review.is_hidden == False,  # noqa: E712
        )
    )
    average, count = result.one()
    await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(rating=round(float(average or 0), 1), reviews_count=count)
        .execution_options(synchronize_session=False)
    )


async def submit_review(
    session: AsyncSession, swap_id: int, actor: User, payload: ReviewCreate
) -> Review:
    swap = await get_swap(session, swap_id)
    if swap.status != SwapStatus.completed:
        raise InvalidArgument("Can only review completed swaps")
    if not swap.is_party(actor.id):
        raise Forbidden("You can only review swaps you took part in")

    existing = await session.execute(
        select(Review.id).where(Review.reviewer_id == actor.id, Review.swap_request_id == swap.id)
    )
    if existing.first():
        raise Conflict("You have already reviewed this swap")

    # the requester teaches what they offered and learns what they wanted
    if actor.id == swap.requester_id:
        reviewee_id = swap.recipient_id
        skill_taught, skill_learned = swap.skill_offered, swap.skill_wanted
    else:
        reviewee_id = swap.requester_id
        skill_taught, skill_learned = swap.skill_wanted, swap.skill_offered

    review = Review(
        reviewer_id=actor.id,
        reviewee_id=reviewee_id,
        swap_request_id=swap.id,
        skill_taught=skill_taught,
        skill_learned=skill_learned,
        rating_overall=payload.rating.overall,
        rating_communication=payload.rating.communication,
        rating_knowledge=payload.rating.knowledge,
        rating_patience=payload.rating.patience,
        rating_helpfulness=payload.rating.helpfulness,
        comment=payload.comment,
        pros=payload.pros,
        improvements=payload.improvements,
        tags=payload.tags,
        would_recommend=payload.would_recommend,
        is_public=payload.is_public,
    )
    session.add(review)
    try:
        await session.flush()
        review_id = review.id
        await recompute_user_rating(session, reviewee_id)
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise Conflict("You have already reviewed this swap")

    logger.info("review %s submitted for swap %s by user %s", review_id, swap_id, actor.id)
    return await get_review(session, review_id)


async def respond_to_review(
    session: AsyncSession, review_id: int, actor: User, payload: ReviewResponseInput
) -> Review:
    review = await get_review(session, review_id)
    if not review.can_respond(actor.id):
        raise Forbidden("Only the reviewee can respond, and only once")

    review.response_comment = payload.comment.strip()
    review.response_is_public = payload.is_public
    review.responded_at = datetime.utcnow()
    review.updated_at = review.responded_at
    await session.commit()
    return await get_review(session, review_id)


async def set_review_hidden(session: AsyncSession, review_id: int, hidden: bool) -> Review:
    review = await get_review(session, review_id)
    review.is_hidden = hidden
    review.updated_at = datetime.utcnow()
    await session.flush()
    await recompute_user_rating(session, review.reviewee_id)
    await session.commit()
    return await get_review(session, review_id)


async def list_user_reviews(
    session: AsyncSession,
    user_id: int,
    kind: str = "received",
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Review], int]:
    if kind == "given":
        party = Review.reviewer_id == user_id
    elif kind == "all":
        party = or_(Review.reviewer_id == user_id, Review.reviewee_id == user_id)
    else:
        party = Review.reviewee_id == user_id
    conditions = [party, Review.is_public == True, Review.is_hidden == False]  # noqa: E712

    total = await session.scalar(select(func.count()).select_from(Review).where(*conditions))
    result = await session.execute(
        select(Review)
        .where(*conditions)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total or 0
