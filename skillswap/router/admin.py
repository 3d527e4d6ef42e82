import logging
from datetime import datetime, timedelta
from typing import List, Literal, Optional
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..core.errors import Conflict
from ..db import get_session
from ..db.mongodb import get_notifications_collection
from ..models.admin import (
    AdminSwapUpdate,
    AdminUserUpdate,
    BanInput,
    BulkActionInput,
    FlagInput,
    ReviewVisibilityInput,
    SkillModerationInput,
)
from ..models.notification import BroadcastInput, NotificationRead, NotificationUpdate
from ..models.review import Review, ReviewRead
from ..models.swap_request import Priority, SwapRequest, SwapRequestRead, SwapStatus
from ..models.user import User, UserRead
from ..services import admin_stats, moderation, notifications as notification_service, swap_lifecycle
from ..services.reviews import set_review_hidden
from ..socket_events import emit_notification, emit_swap_updated
from ..utils.auth import get_current_admin
from ..utils.export import EXPORT_COLUMNS, REPORT_COLUMNS, export_to_csv, export_to_json, report_to_json
from ..utils.utils import paginate, success

logger = logging.getLogger(__name__)

router = APIRouter()

USER_SORT = {
    "name": User.name,
    "email": User.email,
    "created_at": User.created_at,
    "last_login_at": User.last_login_at,
    "rating": User.rating,
}
EXPORT_MODELS = {"users": User, "swaps": SwapRequest, "reviews": Review}


def _date_range(model, date_from: Optional[datetime], date_to: Optional[datetime]):
    conditions = []
    if date_from:
        conditions.append(model.created_at >= date_from)
    if date_to:
        conditions.append(model.created_at <= date_to)
    return conditions


async def _page(session: AsyncSession, model, conditions, order, page: int, limit: int):
    total = await session.scalar(select(func.count()).select_from(model).where(*conditions))
    result = await session.execute(
        select(model).where(*conditions).order_by(*order).offset((page - 1) * limit).limit(limit)
    )
    return result.scalars().all(), total or 0


@router.get("/dashboard")
async def dashboard(
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    return success(**await admin_stats.dashboard(session))


@router.get("/analytics")
async def analytics(
    period: Literal["7d", "30d", "90d", "365d"] = "30d",
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    return success(**await admin_stats.analytics(session, period))


@router.get("/analytics/advanced")
async def advanced_analytics(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    group_by: Literal["day", "week", "month"] = "day",
    metrics: List[Literal["users", "swaps", "reviews", "skills", "geography"]] = Query(
        list(admin_stats.DEFAULT_METRICS)
    ),
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    end_date = end_date or datetime.utcnow()
    start_date = start_date or end_date - timedelta(days=30)
    return success(**await admin_stats.advanced_analytics(session, start_date, end_date, group_by, metrics))


@router.get("/statistics/overview")
async def statistics_overview(
    session: AsyncSession = Depends(get_session),
    collection=Depends(get_notifications_collection),
    admin: User = Depends(get_current_admin),
):
    stats = notification_service.notification_stats(collection)
    return success(**await admin_stats.statistics_overview(session, stats))


@router.get("/system/health")
async def system_health(
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    return success(**await admin_stats.system_health(session))


# Users
@router.get("/users")
async def list_users(
    search: Optional[str] = None,
    role: Optional[Literal["user", "admin"]] = None,
    is_active: Optional[bool] = None,
    is_email_verified: Optional[bool] = None,
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    sort_by: Literal["name", "email", "created_at", "last_login_at", "rating"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    conditions = _date_range(User, date_from, date_to)
    if search:
        conditions.append(
            User.name.icontains(search, autoescape=True) | User.email.icontains(search, autoescape=True)
        )
    if role:
        conditions.append(User.role == role)
    if is_active is not None:
        conditions.append(User.is_active == is_active)
    if is_email_verified is not None:
        conditions.append(User.is_email_verified == is_email_verified)
    if min_rating is not None:
        conditions.append(User.rating >= min_rating)

    column = USER_SORT[sort_by]
    order = [column.asc() if sort_order == "asc" else column.desc(), User.id]
    users, total = await _page(session, User, conditions, order, page, limit)
    return success(
        users=[UserRead.model_validate(user) for user in users],
        pagination=paginate(page, limit, total),
    )


@router.put("/users/{user_id}")
async def update_user(
    user_id: int,
    changes: AdminUserUpdate,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    user = await moderation.get_user(session, user_id)
    values = changes.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in values:
        values["email"] = values["email"].lower()
        taken = await session.execute(
            select(User.id).where(User.email == values["email"], User.id != user_id)
        )
        if taken.first():
            raise Conflict("Email is already in use")

    for field, value in values.items():
        setattr(user, field, value)
    user.updated_at = datetime.utcnow()
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise Conflict("Email is already in use")
    logger.info("user %s updated by admin %s: %s", user_id, admin.id, sorted(values))
    return success("User updated successfully", user=UserRead.model_validate(user))


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    await moderation.delete_user_cascade(session, user_id, admin)
    return success("User and related data deleted")


@router.put("/users/{user_id}/ban")
async def ban_user(
    user_id: int,
    payload: BanInput,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    user = await moderation.set_ban(session, user_id, admin, payload.ban, payload.reason)
    message = "User banned successfully" if payload.ban else "User unbanned successfully"
    return success(message, user=UserRead.model_validate(user))


@router.put("/users/{user_id}/skills/moderate")
async def moderate_user_skills(
    user_id: int,
    payload: SkillModerationInput,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    user = await moderation.moderate_skills(session, user_id, admin, payload)
    return success(
        "Skills moderated successfully",
        user=UserRead.model_validate(user),
        moderation_history=user.moderation_history,
    )


# Swap requests
@router.get("/swaps/monitor")
async def monitor_swaps(
    status: Optional[SwapStatus] = None,
    priority: Optional[Priority] = None,
    flagged: Optional[bool] = None,
    overdue: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    now = datetime.utcnow()
    conditions = []
    if status:
        conditions.append(SwapRequest.status == status)
    if priority:
        conditions.append(SwapRequest.priority == priority)
    if flagged is not None:
        conditions.append(SwapRequest.is_flagged == flagged)
    if overdue:
        conditions.append(admin_stats.overdue_condition(now))

    swaps, total = await _page(
        session, SwapRequest, conditions, [SwapRequest.created_at.desc(), SwapRequest.id.desc()], page, limit
    )
    return success(
        swaps=[SwapRequestRead.from_swap(swap, now) for swap in swaps],
        pagination=paginate(page, limit, total),
        statistics=await admin_stats.monitor_statistics(session, now),
    )


@router.get("/swaps")
async def list_swaps(
    status: Optional[SwapStatus] = None,
    priority: Optional[Priority] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    conditions = _date_range(SwapRequest, date_from, date_to)
    if status:
        conditions.append(SwapRequest.status == status)
    if priority:
        conditions.append(SwapRequest.priority == priority)
    swaps, total = await _page(
        session, SwapRequest, conditions, [SwapRequest.created_at.desc(), SwapRequest.id.desc()], page, limit
    )
    return success(
        swaps=[SwapRequestRead.from_swap(swap) for swap in swaps],
        pagination=paginate(page, limit, total),
    )


@router.put("/swaps/{swap_id}")
async def update_swap(
    swap_id: int,
    changes: AdminSwapUpdate,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    values = changes.model_dump(include={"priority", "admin_notes"}, exclude_none=True)
    swap = await swap_lifecycle.admin_transition(session, swap_id, admin, changes.status, values)
    if changes.status is not None or values:
        await emit_swap_updated(swap)
    return success("Swap request updated", swap=SwapRequestRead.from_swap(swap))


@router.put("/swaps/{swap_id}/flag")
async def flag_swap(
    swap_id: int,
    payload: FlagInput,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    await swap_lifecycle.get_swap(session, swap_id)
    await moderation.set_flag(session, [swap_id], admin, payload.flagged, payload.reason)
    swap = await swap_lifecycle.get_swap(session, swap_id)
    message = "Swap request flagged" if payload.flagged else "Swap request unflagged"
    return success(message, swap=SwapRequestRead.from_swap(swap))


@router.delete("/swaps/{swap_id}")
async def delete_swap(
    swap_id: int,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    await moderation.delete_swap_cascade(session, swap_id)
    return success("Swap request deleted")


# Reviews
@router.get("/reviews")
async def list_reviews(
    is_public: Optional[bool] = None,
    is_hidden: Optional[bool] = None,
    min_rating: Optional[int] = Query(None, ge=1, le=5),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    conditions = []
    if is_public is not None:
        conditions.append(Review.is_public == is_public)
    if is_hidden is not None:
        conditions.append(Review.is_hidden == is_hidden)
    if min_rating is not None:
        conditions.append(Review.rating_overall >= min_rating)
    found, total = await _page(
        session, Review, conditions, [Review.created_at.desc(), Review.id.desc()], page, limit
    )
    return success(
        reviews=[ReviewRead.from_review(review) for review in found],
        pagination=paginate(page, limit, total),
    )


@router.put("/reviews/{review_id}/visibility")
async def set_review_visibility(
    review_id: int,
    payload: ReviewVisibilityInput,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    review = await set_review_hidden(session, review_id, payload.is_hidden)
    message = "Review hidden" if payload.is_hidden else "Review visible"
    return success(message, review=ReviewRead.from_review(review))


# Export
@router.get("/export/{export_type}")
async def export_data(
    export_type: Literal["users", "swaps", "reviews"],
    format: Literal["json", "csv"] = "json",
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    model = EXPORT_MODELS[export_type]
    result = await session.execute(
        select(model).where(*_date_range(model, date_from, date_to)).order_by(model.id)
    )
    records = result.scalars().all()
    columns = EXPORT_COLUMNS[export_type]

    if format == "csv":
        content, media_type = export_to_csv(records, columns), "text/csv"
    else:
        content, media_type = export_to_json(records, columns), "application/json"
    logger.info("admin %s exported %s %s as %s", admin.id, len(records), export_type, format)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={export_type}_export.{format}"},
    )


# Moderation
@router.get("/moderation/dashboard")
async def moderation_dashboard(
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    return success(**await admin_stats.moderation_dashboard(session))


@router.post("/moderation/bulk-action")
async def bulk_moderation(
    payload: BulkActionInput,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    changed = await moderation.bulk_action(session, admin, payload)
    return success(
        f"Bulk {payload.action} completed successfully",
        modified_count=changed,
        action=payload.action,
        target_type=payload.target_type,
        target_ids=len(payload.target_ids),
    )


# Reports
@router.get("/reports/{report_type}")
async def generate_report(
    report_type: Literal["user-activity", "feedback-logs", "swap-stats", "moderation-log"],
    format: Literal["json", "csv"] = "json",
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    include_inactive: bool = False,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    summary, records = await admin_stats.build_report(
        session, report_type, date_from, date_to, include_inactive
    )
    columns = REPORT_COLUMNS[report_type]
    if format == "csv":
        content, media_type = export_to_csv(records, columns), "text/csv"
    else:
        content = report_to_json(report_type, summary, records, columns, date_from, date_to)
        media_type = "application/json"
    logger.info("admin %s generated %s report as %s", admin.id, report_type, format)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={report_type}_report.{format}"},
    )


# Notifications
@router.post("/messages/broadcast")
async def broadcast_message(
    payload: BroadcastInput,
    collection=Depends(get_notifications_collection),
    admin: User = Depends(get_current_admin),
):
    doc = notification_service.broadcast(collection, payload, admin.id)
    notification = NotificationRead.from_document(doc)
    await emit_notification(notification)
    return success("Broadcast notification sent successfully", notification=notification)


@router.get("/notifications")
async def list_notifications(
    type: Optional[Literal["info", "warning", "maintenance", "feature", "system"]] = None,
    priority: Optional[Priority] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
    collection=Depends(get_notifications_collection),
    admin: User = Depends(get_current_admin),
):
    found, total = notification_service.list_all(
        collection, page, limit, type=type, priority=priority, is_active=is_active
    )
    return success(notifications=found, pagination=paginate(page, limit, total))


@router.put("/notifications/{notification_id}")
async def update_notification(
    notification_id: str,
    changes: NotificationUpdate,
    collection=Depends(get_notifications_collection),
    admin: User = Depends(get_current_admin),
):
    notification = notification_service.update_notification(collection, notification_id, changes)
    return success("Notification updated", notification=notification)


@router.delete("/notifications/{notification_id}")
async def delete_notification(
    notification_id: str,
    collection=Depends(get_notifications_collection),
    admin: User = Depends(get_current_admin),
):
    notification_service.delete_notification(collection, notification_id)
    return success("Notification deleted")
