"""
Aggregated metrics for the admin dashboard.

Counts are computed in SQL.  Anything grouped by calendar day or month,
or by entries inside a JSON list column, is grouped in Python so the
same code runs on every database backend the engine may point at.
"""

import platform
import time
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..core.errors import InvalidArgument
from ..models.review import Review, ReviewRead
from ..models.swap_request import SwapRequest, SwapRequestRead, SwapStatus
from ..models.user import User, UserRead

STARTED_AT = time.monotonic()

PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90, "365d": 365}
GROUP_FORMATS = {"day": "%Y-%m-%d", "week": "%Y-%U", "month": "%Y-%m"}
DEFAULT_METRICS = ("users", "swaps", "reviews")
LOW_RATING = 2
REPORT_MODELS = {
    "user-activity": User,
    "feedback-logs": Review,
    "swap-stats": SwapRequest,
    "moderation-log": User,
}
OVERDUE_AFTER = timedelta(days=7)
ACTIVE_STATES = (SwapStatus.pending, SwapStatus.accepted)


async def _count(session: AsyncSession, model, *conditions) -> int:
    return await session.scalar(select(func.count()).select_from(model).where(*conditions)) or 0


async def _skill_popularity(session: AsyncSession, top: int) -> List[Dict[str, Any]]:
    result = await session.execute(select(User.skills_offered))
    counter = Counter(skill for (skills,) in result.all() for skill in skills or [])
    return [{"skill": skill, "count": count} for skill, count in counter.most_common(top)]


async def _status_counts(session: AsyncSession, *conditions) -> Dict[str, int]:
    result = await session.execute(
        select(SwapRequest.status, func.count()).where(*conditions).group_by(SwapRequest.status)
    )
    counts = {status.value: 0 for status in SwapStatus}
    for status, count in result.all():
        counts[SwapStatus(status).value] = count
    return counts


async def _priority_counts(session: AsyncSession) -> Dict[str, int]:
    result = await session.execute(
        select(SwapRequest.priority, func.count()).group_by(SwapRequest.priority)
    )
    return {priority: count for priority, count in result.all()}


async def dashboard(session: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    recent = now - timedelta(days=30)

    total_users = await _count(session, User)
    total_swaps = await _count(session, SwapRequest)
    completed_swaps = await _count(session, SwapRequest, SwapRequest.status == SwapStatus.completed)
    average_rating = await session.scalar(select(func.avg(User.rating)).where(User.rating > 0))

    growth_since = now - timedelta(days=6 * 30)
    result = await session.execute(select(User.created_at).where(User.created_at >= growth_since))
    months = Counter(created.strftime("%Y-%m") for (created,) in result.all())

    return {
        "overview": {
            "total_users": total_users,
            "active_users": await _count(session, User, User.is_active == True),  # noqa: E712
            "total_swaps": total_swaps,
            "pending_swaps": await _count(session, SwapRequest, SwapRequest.status == SwapStatus.pending),
            "completed_swaps": completed_swaps,
            "total_reviews": await _count(session, Review),
            "recent_users": await _count(session, User, User.created_at >= recent),
            "recent_swaps": await _count(session, SwapRequest, SwapRequest.created_at >= recent),
            "average_rating": round(float(average_rating or 0), 2),
            "success_rate": round(completed_swaps / total_swaps * 100) if total_swaps else 0,
        },
        "trends": {
            "user_growth": [{"month": month, "count": months[month]} for month in sorted(months)],
            "swap_trends": await _status_counts(session),
            "popular_skills": await _skill_popularity(session, 10),
        },
    }


async def analytics(session: AsyncSession, period: str = "30d", now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    since = now - timedelta(days=PERIOD_DAYS[period])

    result = await session.execute(select(User.created_at).where(User.created_at >= since))
    registrations = Counter(created.date().isoformat() for (created,) in result.all())

    result = await session.execute(
        select(SwapRequest.created_at, SwapRequest.status).where(SwapRequest.created_at >= since)
    )
    swaps_by_day = defaultdict(Counter)
    for created, status in result.all():
        swaps_by_day[created.date().isoformat()][SwapStatus(status).value] += 1

    result = await session.execute(
        select(Review.created_at, Review.rating_overall).where(Review.created_at >= since)
    )
    review_days = defaultdict(list)
    for created, rating in result.all():
        review_days[created.date().isoformat()].append(rating)

    result = await session.execute(
        select(User.location, func.count())
        .where(User.location != "")
        .group_by(User.location)
        .order_by(func.count().desc())
        .limit(15)
    )
    locations = [{"location": location, "count": count} for location, count in result.all()]

    result = await session.execute(select(User.last_login_at))
    activity = Counter({"active_7d": 0, "active_30d": 0, "inactive": 0})
    for (last_login,) in result.all():
        if last_login and last_login >= now - timedelta(days=7):
            activity["active_7d"] += 1
        elif last_login and last_login >= now - timedelta(days=30):
            activity["active_30d"] += 1
        else:
            activity["inactive"] += 1

    return {
        "period": period,
        "user_growth": [{"date": day, "count": registrations[day]} for day in sorted(registrations)],
        "swap_trends": [
            {"date": day, "statuses": dict(swaps_by_day[day])} for day in sorted(swaps_by_day)
        ],
        "skill_popularity": await _skill_popularity(session, 20),
        "review_trends": [
            {
                "date": day,
                "count": len(ratings),
                "average_rating": round(sum(ratings) / len(ratings), 2),
            }
            for day, ratings in sorted(review_days.items())
        ],
        "location_data": locations,
        "user_activity": dict(activity),
    }


def overdue_condition(now: datetime):
    return (SwapRequest.created_at < now - OVERDUE_AFTER) & SwapRequest.status.in_(ACTIVE_STATES)


async def monitor_statistics(session: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    return {
        "status_counts": await _status_counts(session),
        "priority_counts": await _priority_counts(session),
        "total_active": await _count(session, SwapRequest, SwapRequest.status.in_(ACTIVE_STATES)),
        "total_flagged": await _count(session, SwapRequest, SwapRequest.is_flagged == True),  # noqa: E712
        "total_overdue": await _count(session, SwapRequest, overdue_condition(now)),
    }


async def _recent_activity(session: AsyncSession, now: datetime) -> Dict[str, int]:
    since = now - timedelta(hours=24)
    return {
        "new_users_24h": await _count(session, User, User.created_at >= since),
        "new_swaps_24h": await _count(session, SwapRequest, SwapRequest.created_at >= since),
        "new_reviews_24h": await _count(session, Review, Review.created_at >= since),
    }


async def statistics_overview(
    session: AsyncSession, notification_stats: Dict[str, int], now: Optional[datetime] = None
) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    status_counts = await _status_counts(session)
    average_rating = await session.scalar(select(func.avg(Review.rating_overall)))
    return {
        "users": {
            "total": await _count(session, User),
            "active": await _count(session, User, User.is_active == True),  # noqa: E712
            "verified": await _count(session, User, User.is_email_verified == True),  # noqa: E712
            "banned": await _count(session, User, User.ban_reason.is_not(None)),
        },
        "swaps": {
            "total": sum(status_counts.values()),
            "pending": status_counts["pending"],
            "accepted": status_counts["accepted"],
            "completed": status_counts["completed"],
            "flagged": await _count(session, SwapRequest, SwapRequest.is_flagged == True),  # noqa: E712
        },
        "reviews": {
            "total": await _count(session, Review),
            "average_rating": round(float(average_rating or 0), 2),
            "hidden": await _count(session, Review, Review.is_hidden == True),  # noqa: E712
        },
        "notifications": notification_stats,
        "recent_activity": await _recent_activity(session, now),
        "last_updated": now.isoformat(),
    }


async def system_health(session: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    total_users = await _count(session, User)
    active_users = await _count(session, User, User.is_active == True)  # noqa: E712
    total_swaps = await _count(session, SwapRequest)
    completed = await _count(session, SwapRequest, SwapRequest.status == SwapStatus.completed)
    return {
        "overview": {
            "total_users": total_users,
            "active_users": active_users,
            "total_swaps": total_swaps,
            "active_swaps": await _count(session, SwapRequest, SwapRequest.status.in_(ACTIVE_STATES)),
            "total_reviews": await _count(session, Review),
            "flagged_content": await _count(session, SwapRequest, SwapRequest.is_flagged == True),  # noqa: E712
            "user_activity_rate": round(active_users / total_users * 100) if total_users else 0,
            "swap_success_rate": round(completed / total_swaps * 100) if total_swaps else 0,
        },
        "recent_activity": await _recent_activity(session, now),
        "system_health": {
            "status": "healthy",
            "uptime_hours": int((time.monotonic() - STARTED_AT) // 3600),
            "python_version": platform.python_version(),
        },
    }


async def advanced_analytics(
    session: AsyncSession,
    start: datetime,
    end: datetime,
    group_by: str = "day",
    metrics: Iterable[str] = DEFAULT_METRICS,
) -> Dict[str, Any]:
    """Registrations, swaps and reviews between ``start`` and ``end`` bucketed by day, week or month."""
    if start > end:
        raise InvalidArgument("start_date must not be after end_date")
    bucket = GROUP_FORMATS[group_by]
    metrics = list(dict.fromkeys(metrics))
    data: Dict[str, Any] = {}

    if "users" in metrics:
        result = await session.execute(
            select(User.created_at, User.is_active).where(User.created_at.between(start, end))
        )
        users = defaultdict(Counter)
        for created, is_active in result.all():
            users[created.strftime(bucket)]["new_users"] += 1
            users[created.strftime(bucket)]["active_users"] += int(bool(is_active))
        data["user_metrics"] = [
            {"period": key, "new_users": users[key]["new_users"], "active_users": users[key]["active_users"]}
            for key in sorted(users)
        ]

    if "swaps" in metrics:
        result = await session.execute(
            select(SwapRequest.created_at, SwapRequest.status).where(SwapRequest.created_at.between(start, end))
        )
        swaps = defaultdict(Counter)
        for created, status in result.all():
            swaps[created.strftime(bucket)][SwapStatus(status).value] += 1
        data["swap_metrics"] = [
            {"period": key, "total": sum(swaps[key].values()), "statuses": dict(swaps[key])}
            for key in sorted(swaps)
        ]

    if "reviews" in metrics:
        result = await session.execute(
            select(Review.created_at, Review.rating_overall).where(Review.created_at.between(start, end))
        )
        ratings = defaultdict(list)
        for created, rating in result.all():
            ratings[created.strftime(bucket)].append(rating)
        data["review_metrics"] = [
            {
                "period": key,
                "total_reviews": len(values),
                "average_rating": round(sum(values) / len(values), 2),
                "positive_reviews": sum(1 for value in values if value >= 4),
            }
            for key, values in sorted(ratings.items())
        ]

    if "skills" in metrics:
        data["skill_popularity"] = await _skill_popularity(session, 20)

    if "geography" in metrics:
        result = await session.execute(
            select(User.location, func.count())
            .where(User.location != "")
            .group_by(User.location)
            .order_by(func.count().desc())
            .limit(15)
        )
        data["geographic_data"] = [
            {"location": location, "user_count": count} for location, count in result.all()
        ]

    return {
        "date_range": {"start_date": start.isoformat(), "end_date": end.isoformat()},
        "group_by": group_by,
        "metrics": metrics,
        "analytics": data,
    }


async def moderation_dashboard(session: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    week_ago = now - timedelta(days=7)
    banned = (User.is_active == False) & User.ban_reason.is_not(None)  # noqa: E712

    result = await session.execute(
        select(SwapRequest)
        .where(SwapRequest.is_flagged == True)  # noqa: E712
        .order_by(SwapRequest.flagged_at.desc(), SwapRequest.id.desc())
        .limit(10)
    )
    flagged_swaps = [SwapRequestRead.from_swap(swap, now) for swap in result.scalars().all()]

    result = await session.execute(
        select(User).where(banned).order_by(User.banned_at.desc(), User.id.desc()).limit(10)
    )
    banned_users = [UserRead.model_validate(user) for user in result.scalars().all()]

    result = await session.execute(
        select(Review)
        .where(Review.rating_overall <= LOW_RATING, Review.is_hidden == False)  # noqa: E712
        .order_by(Review.created_at.desc(), Review.id.desc())
        .limit(10)
    )
    low_reviews = [ReviewRead.from_review(review) for review in result.scalars().all()]

    # moderation history is a JSON list, so recent entries are found in Python
    result = await session.execute(select(User).order_by(User.id))
    actions = []
    for user in result.scalars().all():
        for entry in user.moderation_history or []:
            if datetime.fromisoformat(entry["date"]) >= week_ago:
                actions.append({"user_id": user.id, "user_name": user.name, **entry})
    actions.sort(key=lambda entry: entry["date"], reverse=True)

    return {
        "flagged_content": {"swaps": flagged_swaps, "count": len(flagged_swaps)},
        "reported_users": {"users": banned_users, "count": len(banned_users)},
        "pending_reviews": {"reviews": low_reviews, "count": len(low_reviews)},
        "recent_actions": {"actions": actions[:20], "count": len(actions)},
        "statistics": {
            "total_flagged": await _count(session, SwapRequest, SwapRequest.is_flagged == True),  # noqa: E712
            "total_banned": await _count(session, User, banned),
            "total_hidden_reviews": await _count(session, Review, Review.is_hidden == True),  # noqa: E712
            "pending_flags": await _count(
                session, SwapRequest,
                SwapRequest.is_flagged == True, SwapRequest.admin_notes.is_(None),  # noqa: E712
            ),
        },
    }


async def build_report(
    session: AsyncSession,
    report_type: str,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    include_inactive: bool = False,
) -> Tuple[Dict[str, Any], list]:
    """Return a report's summary and the records behind it.

    The records are the rows an export renders; the summary is merged
    into the JSON body next to them.
    """
    model = REPORT_MODELS[report_type]
    conditions = []
    if date_from:
        conditions.append(model.created_at >= date_from)
    if date_to:
        conditions.append(model.created_at <= date_to)

    if report_type == "user-activity" and not include_inactive:
        conditions.append(User.is_active == True)  # noqa: E712
    if report_type == "moderation-log":
        conditions.append((User.is_active == False) & User.ban_reason.is_not(None))  # noqa: E712

    result = await session.execute(select(model).where(*conditions).order_by(model.id))
    records = list(result.scalars().all())

    if report_type == "user-activity":
        summary = {
            "total_users": len(records),
            "active_users": sum(1 for user in records if user.is_active),
            "admin_users": sum(1 for user in records if user.is_admin),
        }
    elif report_type == "feedback-logs":
        summary = {
            "total_reviews": len(records),
            "average_rating": round(
                sum(review.rating_overall for review in records) / len(records), 2
            ) if records else 0,
        }
    elif report_type == "swap-stats":
        breakdown = Counter(SwapStatus(swap.status).value for swap in records)
        summary = {
            "total_swaps": len(records),
            "status_breakdown": dict(breakdown),
            "success_rate": round(breakdown["completed"] / len(records) * 100) if records else 0,
        }
    else:
        summary = {"total_moderation_actions": len(records)}
    return summary, records
