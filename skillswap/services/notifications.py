"""
Notifications kept in the MongoDB ``notifications`` collection.

A document with ``recipient`` set to a user id is a direct notification;
``recipient: None`` marks a broadcast shown to every user.  Direct
notifications carry their own ``isRead`` flag, broadcasts record the ids
of users who read them in ``readBy``.
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from ..core.errors import NotFound
from ..models.notification import BroadcastInput, NotificationRead, NotificationUpdate

logger = logging.getLogger(__name__)


def _object_id(notification_id: str) -> ObjectId:
    try:
        return ObjectId(notification_id)
    except (InvalidId, TypeError):
        raise NotFound("Notification not found")


def _for_user(doc: dict, user_id: int) -> NotificationRead:
    notification = NotificationRead.from_document(doc)
    if doc.get("recipient") is None:
        notification.is_read = user_id in doc.get("readBy", [])
    return notification


def _user_filter(user_id: int, now: datetime, unread_only: bool = False) -> dict:
    direct = {"recipient": user_id}
    broadcast = {"recipient": None, "isActive": True}
    if unread_only:
        direct["isRead"] = False
        broadcast["readBy"] = {"$nin": [user_id]}
    return {
        "$and": [
            {"$or": [direct, broadcast]},
            {"$or": [{"expiresAt": None}, {"expiresAt": {"$gt": now}}]},
        ]
    }


def create_notification(
    collection,
    title: str,
    message: str,
    recipient: Optional[int] = None,
    sent_by: Optional[int] = None,
    type: str = "info",
    priority: str = "medium",
    expires_at: Optional[datetime] = None,
) -> dict:
    doc = {
        "title": title,
        "message": message,
        "type": type,
        "priority": priority,
        "recipient": recipient,
        "sentBy": sent_by,
        "isRead": False,
        "readAt": None,
        "readBy": [],
        "isActive": True,
        "expiresAt": expires_at,
        "createdAt": datetime.utcnow(),
    }
    result = collection.insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def notify_user(collection, user_id: int, title: str, message: str, type: str = "system") -> Optional[dict]:
    """Best-effort direct notification; a store failure is logged, never raised."""
    try:
        return create_notification(collection, title, message, recipient=user_id, type=type)
    except PyMongoError:
        logger.exception("Could not store notification for user %s", user_id)
        return None


def broadcast(collection, payload: BroadcastInput, sent_by: int) -> dict:
    doc = create_notification(
        collection,
        payload.title.strip(),
        payload.message.strip(),
        sent_by=sent_by,
        type=payload.type,
        priority=payload.priority,
        expires_at=payload.expires_at,
    )
    logger.info("broadcast %s sent by user %s", doc["_id"], sent_by)
    return doc


def list_user_notifications(
    collection,
    user_id: int,
    unread_only: bool = False,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[NotificationRead], int, int]:
    now = datetime.utcnow()
    query = _user_filter(user_id, now, unread_only)
    total = collection.count_documents(query)
    unread = collection.count_documents(_user_filter(user_id, now, unread_only=True))
    cursor = (
        collection.find(query)
        .sort("createdAt", DESCENDING)
        .skip((page - 1) * limit)
        .limit(limit)
    )
    return [_for_user(doc, user_id) for doc in cursor], total, unread


def mark_read(collection, notification_id: str, user_id: int) -> NotificationRead:
    oid = _object_id(notification_id)
    doc = collection.find_one({"_id": oid})
    if not doc or doc.get("recipient") not in (None, user_id):
        raise NotFound("Notification not found")

    if doc.get("recipient") is None:
        collection.update_one({"_id": oid}, {"$addToSet": {"readBy": user_id}})
    else:
        collection.update_one({"_id": oid}, {"$set": {"isRead": True, "readAt": datetime.utcnow()}})
    return _for_user(collection.find_one({"_id": oid}), user_id)


def mark_all_read(collection, user_id: int) -> None:
    now = datetime.utcnow()
    collection.update_many(
        {"recipient": user_id, "isRead": False},
        {"$set": {"isRead": True, "readAt": now}},
    )
    collection.update_many(
        {"recipient": None, "readBy": {"$nin": [user_id]}},
        {"$addToSet": {"readBy": user_id}},
    )


def list_all(
    collection,
    page: int = 1,
    limit: int = 20,
    type: Optional[str] = None,
    priority: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> Tuple[List[NotificationRead], int]:
    query = {}
    if type:
        query["type"] = type
    if priority:
        query["priority"] = priority
    if is_active is not None:
        query["isActive"] = is_active
    total = collection.count_documents(query)
    cursor = (
        collection.find(query)
        .sort("createdAt", DESCENDING)
        .skip((page - 1) * limit)
        .limit(limit)
    )
    return [NotificationRead.from_document(doc) for doc in cursor], total


def update_notification(collection, notification_id: str, changes: NotificationUpdate) -> NotificationRead:
    oid = _object_id(notification_id)
    values = {}
    if changes.is_active is not None:
        values["isActive"] = changes.is_active
    if "expires_at" in changes.model_fields_set:
        values["expiresAt"] = changes.expires_at
    if values:
        result = collection.update_one({"_id": oid}, {"$set": values})
        if result.matched_count == 0:
            raise NotFound("Notification not found")
    doc = collection.find_one({"_id": oid})
    if not doc:
        raise NotFound("Notification not found")
    return NotificationRead.from_document(doc)


def delete_notification(collection, notification_id: str) -> None:
    result = collection.delete_one({"_id": _object_id(notification_id)})
    if result.deleted_count == 0:
        raise NotFound("Notification not found")


def notification_stats(collection) -> dict:
    return {
        "total": collection.count_documents({}),
        "active": collection.count_documents({"isActive": True}),
        "broadcast": collection.count_documents({"recipient": None}),
    }
