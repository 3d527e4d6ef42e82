import logging
from typing import Literal, Optional
from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..db import get_session
from ..db.mongodb import get_notifications_collection
from ..models.review import ReviewCreate, ReviewRead
from ..models.swap_request import (
    AcceptInput,
    ReasonInput,
    SwapRequestCreate,
    SwapRequestRead,
    SwapRequestUpdate,
    SwapStatus,
)
from ..models.user import User
from ..services import reviews, swap_lifecycle
from ..services.notifications import notify_user
from ..socket_events import emit_swap_updated
from ..utils.auth import get_current_user
from ..utils.utils import paginate, success

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()


async def announce(swap, notifications, user_id: int, title: str, message: str):
    """Tell the other party about a change; delivery is best effort."""
    await emit_swap_updated(swap)
    notify_user(notifications, user_id, title, message)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_swap_request(
    payload: SwapRequestCreate,
    session: AsyncSession = Depends(get_session),
    notifications=Depends(get_notifications_collection),
    current_user: User = Depends(get_current_user),
):
    swap = await swap_lifecycle.create_swap(
        session, current_user, payload, response_days=settings.SWAP_RESPONSE_DAYS
    )
    await announce(
        swap, notifications, swap.recipient_id,
        "New swap request",
        f"{current_user.name} wants to learn {swap.skill_wanted} in exchange for {swap.skill_offered}",
    )
    return success("Swap request sent successfully", swap=SwapRequestRead.from_swap(swap))


@router.get("")
async def list_swap_requests(
    type: Literal["sent", "received", "all"] = "all",
    status: Optional[SwapStatus] = None,
    skill_offered: Optional[str] = None,
    skill_wanted: Optional[str] = None,
    learning_mode: Optional[Literal["Online", "In-Person", "Both"]] = None,
    sort_by: Literal["created_at", "response_by", "priority"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    swaps, total = await swap_lifecycle.list_swaps(
        session,
        current_user.id,
        direction=type,
        status=status,
        skill_offered=skill_offered,
        skill_wanted=skill_wanted,
        learning_mode=learning_mode,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return success(
        swaps=[SwapRequestRead.from_swap(swap) for swap in swaps],
        pagination=paginate(page, limit, total),
    )


@router.get("/stats")
async def my_swap_stats(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return success(stats=await swap_lifecycle.user_stats(session, current_user.id))


@router.get("/{swap_id}")
async def get_swap_request(
    swap_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    swap = await swap_lifecycle.view_swap(session, swap_id, current_user)
    return success(swap=SwapRequestRead.from_swap(swap))


@router.put("/{swap_id}/accept")
async def accept_swap_request(
    swap_id: int,
    payload: AcceptInput = Body(AcceptInput()),
    session: AsyncSession = Depends(get_session),
    notifications=Depends(get_notifications_collection),
    current_user: User = Depends(get_current_user),
):
    swap = await swap_lifecycle.accept_swap(session, swap_id, current_user, payload.meeting_details)
    await announce(
        swap, notifications, swap.requester_id,
        "Swap request accepted",
        f"{current_user.name} accepted your request to learn {swap.skill_wanted}",
    )
    return success("Swap request accepted", swap=SwapRequestRead.from_swap(swap))


@router.put("/{swap_id}/reject")
async def reject_swap_request(
    swap_id: int,
    payload: ReasonInput = Body(ReasonInput()),
    session: AsyncSession = Depends(get_session),
    notifications=Depends(get_notifications_collection),
    current_user: User = Depends(get_current_user),
):
    swap = await swap_lifecycle.reject_swap(session, swap_id, current_user, payload.reason)
    await announce(
        swap, notifications, swap.requester_id,
        "Swap request rejected",
        f"{current_user.name} declined your request to learn {swap.skill_wanted}",
    )
    return success("Swap request rejected", swap=SwapRequestRead.from_swap(swap))


@router.put("/{swap_id}/cancel")
async def cancel_swap_request(
    swap_id: int,
    payload: ReasonInput = Body(ReasonInput()),
    session: AsyncSession = Depends(get_session),
    notifications=Depends(get_notifications_collection),
    current_user: User = Depends(get_current_user),
):
    swap = await swap_lifecycle.cancel_swap(session, swap_id, current_user, payload.reason)
    await announce(
        swap, notifications, swap.recipient_id,
        "Swap request cancelled",
        f"{current_user.name} cancelled the swap of {swap.skill_offered} for {swap.skill_wanted}",
    )
    return success("Swap request cancelled", swap=SwapRequestRead.from_swap(swap))


@router.put("/{swap_id}/complete")
async def complete_swap_request(
    swap_id: int,
    session: AsyncSession = Depends(get_session),
    notifications=Depends(get_notifications_collection),
    current_user: User = Depends(get_current_user),
):
    swap = await swap_lifecycle.complete_swap(session, swap_id, current_user)
    other_id = swap.recipient_id if current_user.id == swap.requester_id else swap.requester_id
    await announce(
        swap, notifications, other_id,
        "Swap completed",
        f"{current_user.name} marked your swap as completed. You can now leave a review.",
    )
    return success("Swap marked as completed! You can now leave reviews.", swap=SwapRequestRead.from_swap(swap))


@router.put("/{swap_id}")
async def update_swap_request(
    swap_id: int,
    payload: SwapRequestUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    swap = await swap_lifecycle.update_swap(session, swap_id, current_user, payload)
    await emit_swap_updated(swap)
    return success("Swap request updated", swap=SwapRequestRead.from_swap(swap))


@router.delete("/{swap_id}")
async def delete_swap_request(
    swap_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    await swap_lifecycle.delete_swap(session, swap_id, current_user)
    return success("Swap request deleted")


@router.post("/{swap_id}/review", status_code=status.HTTP_201_CREATED)
async def submit_review(
    swap_id: int,
    payload: ReviewCreate,
    session: AsyncSession = Depends(get_session),
    notifications=Depends(get_notifications_collection),
    current_user: User = Depends(get_current_user),
):
    review = await reviews.submit_review(session, swap_id, current_user, payload)
    notify_user(
        notifications, review.reviewee_id,
        "New review",
        f"{current_user.name} rated your {review.skill_taught} session {review.rating_overall}/5",
    )
    return success("Review submitted successfully", review=ReviewRead.from_review(review))
