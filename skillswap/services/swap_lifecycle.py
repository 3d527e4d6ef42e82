"""
Swap request lifecycle.

A swap request moves through a small closed set of states.  The
``TRANSITIONS`` table is the only place the allowed edges are listed;
every status change, whether made by a party or by an administrator,
goes through :func:`apply_transition`, which writes with a conditional
``UPDATE ... WHERE status = <expected>``.  When another writer got there
first the update touches no row and the caller gets ``Forbidden`` with
nothing changed.

Permission predicates are plain functions of the request, the acting
user id and the current time so they can be evaluated (and tested)
without a session.  Expiry is never stored: a pending request whose
``response_by`` has passed simply cannot be accepted any more.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import case, delete, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..core.errors import Conflict, Forbidden, InvalidArgument, NotFound
from ..models.swap_request import (
    PRIORITY_ORDER,
    MeetingDetails,
    SwapRequest,
    SwapRequestCreate,
    SwapRequestUpdate,
    SwapStatus,
)
from ..models.user import User

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[SwapStatus, frozenset] = {
    SwapStatus.pending: frozenset({SwapStatus.accepted, SwapStatus.rejected, SwapStatus.cancelled}),
    SwapStatus.accepted: frozenset({SwapStatus.completed, SwapStatus.cancelled}),
    SwapStatus.rejected: frozenset(),
    SwapStatus.completed: frozenset(),
    SwapStatus.cancelled: frozenset(),
}

TERMINAL_STATES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

TIMESTAMP_FIELDS = {
    SwapStatus.accepted: "accepted_at",
    SwapStatus.rejected: "rejected_at",
    SwapStatus.completed: "completed_at",
    SwapStatus.cancelled: "cancelled_at",
}

IMMUTABLE_FIELDS = frozenset({
    "requester", "requester_id", "recipient", "recipient_id",
    "skill_offered", "skill_wanted", "status",
    *TIMESTAMP_FIELDS.values(),
})

SORT_COLUMNS = {
    "created_at": SwapRequest.created_at,
    "response_by": SwapRequest.response_by,
    "priority": case(PRIORITY_ORDER, value=SwapRequest.priority, else_=0),
}


def check_transition(current: SwapStatus, target: SwapStatus) -> None:
    if target not in TRANSITIONS[SwapStatus(current)]:
        raise Forbidden(f"Cannot move a {SwapStatus(current).value} swap request to {SwapStatus(target).value}")


def is_expired(swap: SwapRequest, now: Optional[datetime] = None) -> bool:
    return swap.is_expired_at(now or datetime.utcnow())


def can_accept(swap: SwapRequest, actor_id: int, now: Optional[datetime] = None) -> bool:
    return (
        actor_id == swap.recipient_id
        and swap.status == SwapStatus.pending
        and not is_expired(swap, now)
    )


def can_reject(swap: SwapRequest, actor_id: int, now: Optional[datetime] = None) -> bool:
    return actor_id == swap.recipient_id and swap.status == SwapStatus.pending


def can_cancel(swap: SwapRequest, actor_id: int, now: Optional[datetime] = None) -> bool:
    return actor_id == swap.requester_id and swap.status in (SwapStatus.pending, SwapStatus.accepted)


def can_complete(swap: SwapRequest, actor_id: int, now: Optional[datetime] = None) -> bool:
    return swap.is_party(actor_id) and swap.status == SwapStatus.accepted


def can_modify(swap: SwapRequest, actor_id: int, now: Optional[datetime] = None) -> bool:
    return swap.is_party(actor_id) and swap.status in (SwapStatus.pending, SwapStatus.accepted)


def can_delete(swap: SwapRequest, actor_id: int, now: Optional[datetime] = None) -> bool:
    return actor_id == swap.requester_id and swap.status == SwapStatus.pending


def can_view(swap: SwapRequest, actor: User) -> bool:
    return swap.is_party(actor.id) or actor.is_admin


async def get_swap(session: AsyncSession, swap_id: int) -> SwapRequest:
    """Load a swap request with its parties, bypassing any stale copy in the session."""
    result = await session.execute(
        select(SwapRequest)
        .where(SwapRequest.id == swap_id)
        .execution_options(populate_existing=True)
    )
    swap = result.scalar_one_or_none()
    if not swap:
        raise NotFound("Swap request not found")
    return swap


async def _guarded_update(
    session: AsyncSession,
    swap_id: int,
    expected: SwapStatus,
    values: dict,
    guards: Iterable = (),
) -> bool:
    result = await session.execute(
        update(SwapRequest)
        .where(SwapRequest.id == swap_id, SwapRequest.status == expected, *guards)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def apply_transition(
    session: AsyncSession,
    swap: SwapRequest,
    target: SwapStatus,
    values: Optional[dict] = None,
    guards: Iterable = (),
    actor_id: Optional[int] = None,
) -> SwapRequest:
    """Move ``swap`` to ``target`` if it is still in the status it was read with.

    The matching timestamp is set and the other three cleared, ``values``
    are written alongside, and a completion bumps both parties' swap
    counters in the same transaction.
    """
    swap_id = swap.id
    expected = SwapStatus(swap.status)
    check_transition(expected, target)

    now = datetime.utcnow()
    changes = {field: None for field in TIMESTAMP_FIELDS.values()}
    changes.update({"status": target, TIMESTAMP_FIELDS[target]: now, "updated_at": now})
    changes.update(values or {})

    if not await _guarded_update(session, swap_id, expected, changes, guards):
        await session.rollback()
        logger.warning(
            "swap %s: %s -> %s lost to a concurrent update", swap_id, expected.value, target.value
        )
        raise Forbidden("Swap request was changed by another action, reload and try again")

    if target == SwapStatus.completed:
        await session.execute(
            update(User)
            .where(User.id.in_([swap.requester_id, swap.recipient_id]))
            .values(
                total_swaps=User.total_swaps + 1,
                successful_swaps=User.successful_swaps + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
    await session.commit()

    logger.info("swap %s %s by user %s", swap_id, target.value, actor_id)
    return await get_swap(session, swap_id)


async def create_swap(
    session: AsyncSession,
    requester: User,
    payload: SwapRequestCreate,
    response_days: int = 7,
) -> SwapRequest:
    if payload.recipient_id == requester.id:
        raise InvalidArgument("You cannot send a swap request to yourself")

    recipient = await session.get(User, payload.recipient_id)
    if not recipient or not recipient.is_active:
        raise NotFound("Recipient not found")

    duplicate = await session.execute(
        select(SwapRequest.id).where(
            SwapRequest.requester_id == requester.id,
            SwapRequest.recipient_id == recipient.id,
            SwapRequest.skill_offered == payload.skill_offered,
            SwapRequest.skill_wanted == payload.skill_wanted,
            SwapRequest.status == SwapStatus.pending,
        )
    )
    if duplicate.first():
        raise Conflict("You already have a pending request for this skill exchange")

    wanted = payload.skill_wanted.lower()
    if not any(wanted in skill.lower() for skill in recipient.skills_offered or []):
        raise InvalidArgument("Recipient does not offer the requested skill")

    swap = SwapRequest(
        requester_id=requester.id,
        recipient_id=recipient.id,
        skill_offered=payload.skill_offered,
        skill_wanted=payload.skill_wanted,
        message=payload.message,
        learning_mode=payload.learning_mode,
        duration_estimated_hours=payload.duration.estimated_hours,
        duration_timeframe=payload.duration.timeframe,
        schedule=payload.schedule.model_dump(mode="json"),
        meeting_details=payload.meeting_details.model_dump(mode="json", exclude_none=True),
        priority=payload.priority,
        tags=payload.tags,
        response_by=datetime.utcnow() + timedelta(days=response_days),
    )
    session.add(swap)
    await session.commit()

    logger.info("swap %s created by user %s for user %s", swap.id, requester.id, recipient.id)
    return await get_swap(session, swap.id)


async def accept_swap(
    session: AsyncSession,
    swap_id: int,
    actor: User,
    meeting_details: Optional[MeetingDetails] = None,
) -> SwapRequest:
    swap = await get_swap(session, swap_id)
    now = datetime.utcnow()
    if not can_accept(swap, actor.id, now):
        raise Forbidden("You cannot accept this swap request")

    values = {}
    if meeting_details:
        values["meeting_details"] = {
            **(swap.meeting_details or {}),
            **meeting_details.model_dump(mode="json", exclude_none=True),
        }
    return await apply_transition(
        session, swap, SwapStatus.accepted, values,
        guards=[SwapRequest.response_by >= now], actor_id=actor.id,
    )


async def reject_swap(
    session: AsyncSession, swap_id: int, actor: User, reason: Optional[str] = None
) -> SwapRequest:
    swap = await get_swap(session, swap_id)
    if not can_reject(swap, actor.id):
        raise Forbidden("You cannot reject this swap request")
    values = {"cancellation_reason": reason} if reason else {}
    return await apply_transition(session, swap, SwapStatus.rejected, values, actor_id=actor.id)


async def cancel_swap(
    session: AsyncSession, swap_id: int, actor: User, reason: Optional[str] = None
) -> SwapRequest:
    swap = await get_swap(session, swap_id)
    if not can_cancel(swap, actor.id):
        raise Forbidden("You cannot cancel this swap request")
    values = {"cancellation_reason": reason} if reason else {}
    return await apply_transition(session, swap, SwapStatus.cancelled, values, actor_id=actor.id)


async def complete_swap(session: AsyncSession, swap_id: int, actor: User) -> SwapRequest:
    swap = await get_swap(session, swap_id)
    if not can_complete(swap, actor.id):
        raise Forbidden("You cannot complete this swap request")
    return await apply_transition(session, swap, SwapStatus.completed, actor_id=actor.id)


async def admin_transition(
    session: AsyncSession,
    swap_id: int,
    admin: User,
    target: Optional[SwapStatus] = None,
    values: Optional[dict] = None,
) -> SwapRequest:
    """Apply an administrator's status change and field edits as one guarded write.

    The status moves along the same graph as for the parties; an edge off it
    raises ``Forbidden`` before anything is written.
    """
    swap = await get_swap(session, swap_id)
    if target is not None and SwapStatus(target) != swap.status:
        return await apply_transition(session, swap, SwapStatus(target), values, actor_id=admin.id)
    if not values:
        return swap
    swap = await _write_terms(session, swap, values)
    logger.info("swap %s updated by admin %s: %s", swap_id, admin.id, sorted(values))
    return swap


async def _write_terms(session: AsyncSession, swap: SwapRequest, values: dict) -> SwapRequest:
    swap_id = swap.id
    values = {**values, "updated_at": datetime.utcnow()}
    if not await _guarded_update(session, swap_id, swap.status, values):
        await session.rollback()
        raise Forbidden("Swap request was changed by another action, reload and try again")
    await session.commit()
    return await get_swap(session, swap_id)


async def update_swap(
    session: AsyncSession, swap_id: int, actor: User, changes: SwapRequestUpdate
) -> SwapRequest:
    swap = await get_swap(session, swap_id)
    if not can_modify(swap, actor.id):
        raise Forbidden("You cannot modify this swap request")

    extra = sorted(changes.model_extra or {})
    locked = [key for key in extra if key in IMMUTABLE_FIELDS or key.endswith("_at")]
    if locked:
        raise InvalidArgument(f"These fields cannot be changed: {', '.join(locked)}")
    if extra:
        raise InvalidArgument(f"Unknown fields: {', '.join(extra)}")

    fields = changes.model_fields_set & set(SwapRequestUpdate.model_fields)
    values = {}
    if "message" in fields and changes.message is not None:
        values["message"] = changes.message.strip()
    if "duration" in fields and changes.duration:
        values["duration_estimated_hours"] = changes.duration.estimated_hours
        values["duration_timeframe"] = changes.duration.timeframe
    if "schedule" in fields and changes.schedule:
        values["schedule"] = {
            **(swap.schedule or {}),
            **changes.schedule.model_dump(mode="json", exclude_unset=True),
        }
    if "meeting_details" in fields and changes.meeting_details:
        values["meeting_details"] = {
            **(swap.meeting_details or {}),
            **changes.meeting_details.model_dump(mode="json", exclude_unset=True),
        }
    if "priority" in fields and changes.priority:
        values["priority"] = changes.priority
    if "tags" in fields and changes.tags is not None:
        values["tags"] = changes.tags
    if not values:
        return swap
    return await _write_terms(session, swap, values)


async def delete_swap(session: AsyncSession, swap_id: int, actor: User) -> None:
    swap = await get_swap(session, swap_id)
    if not can_delete(swap, actor.id):
        raise Forbidden("Only the requester can delete a pending swap request")

    result = await session.execute(
        delete(SwapRequest)
        .where(SwapRequest.id == swap_id, SwapRequest.status == SwapStatus.pending)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        raise Forbidden("Only the requester can delete a pending swap request")
    await session.commit()
    logger.info("swap %s deleted by user %s", swap_id, actor.id)


async def view_swap(session: AsyncSession, swap_id: int, actor: User) -> SwapRequest:
    swap = await get_swap(session, swap_id)
    if not can_view(swap, actor):
        raise Forbidden("You do not have access to this swap request")
    return swap


async def list_swaps(
    session: AsyncSession,
    user_id: int,
    direction: str = "all",
    status: Optional[SwapStatus] = None,
    skill_offered: Optional[str] = None,
    skill_wanted: Optional[str] = None,
    learning_mode: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[SwapRequest], int]:
    if direction == "sent":
        conditions = [SwapRequest.requester_id == user_id]
    elif direction == "received":
        conditions = [SwapRequest.recipient_id == user_id]
    else:
        conditions = [or_(SwapRequest.requester_id == user_id, SwapRequest.recipient_id == user_id)]

    if status:
        conditions.append(SwapRequest.status == status)
    if skill_offered:
        conditions.append(SwapRequest.skill_offered.icontains(skill_offered, autoescape=True))
    if skill_wanted:
        conditions.append(SwapRequest.skill_wanted.icontains(skill_wanted, autoescape=True))
    if learning_mode:
        conditions.append(SwapRequest.learning_mode == learning_mode)

    total = await session.scalar(select(func.count()).select_from(SwapRequest).where(*conditions))

    column = SORT_COLUMNS.get(sort_by, SwapRequest.created_at)
    order = column.asc() if sort_order == "asc" else column.desc()
    result = await session.execute(
        select(SwapRequest)
        .where(*conditions)
        .order_by(order, SwapRequest.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total or 0


async def user_stats(session: AsyncSession, user_id: int) -> Dict[str, int]:
    result = await session.execute(
        select(SwapRequest.status, func.count())
        .where(or_(SwapRequest.requester_id == user_id, SwapRequest.recipient_id == user_id))
        .group_by(SwapRequest.status)
    )
    counts = {SwapStatus(status): count for status, count in result.all()}
    stats = {"total_requests": sum(counts.values())}
    for status in SwapStatus:
        stats[f"{status.value}_requests"] = counts.get(status, 0)
    return stats
