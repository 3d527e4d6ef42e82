import logging

import socketio

logger = logging.getLogger(__name__)

sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins="*")


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


# Define the event handlers
@sio.event
async def connect(sid, environ):
    logger.debug("Client connected: %s", sid)
    await sio.emit("message", {"data": "Connected!"}, to=sid)


@sio.event
async def disconnect(sid):
    logger.debug("Client disconnected: %s", sid)


@sio.on("join_room")
async def handle_join_room(sid, data):
    room = user_room(data["user_id"])
    await sio.enter_room(sid, room)
    logger.debug("%s joined %s", sid, room)


@sio.on("leave_room")
async def handle_leave_room(sid, data):
    await sio.leave_room(sid, user_room(data["user_id"]))


async def emit_swap_updated(swap):
    payload = {"id": swap.id, "status": swap.status.value}
    for user_id in (swap.requester_id, swap.recipient_id):
        await sio.emit("swap_updated", payload, room=user_room(user_id))


async def emit_notification(notification, user_id=None):
    payload = notification.model_dump(mode="json")
    if user_id is None:
        await sio.emit("notification", payload)
    else:
        await sio.emit("notification", payload, room=user_room(user_id))
