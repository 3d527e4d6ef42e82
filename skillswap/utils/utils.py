import math


def paginate(page: int, limit: int, total: int) -> dict:
    pages = math.ceil(total / limit) if limit else 0
    return {
        "current": page,
        "pages": pages,
        "total": total,
        "limit": limit,
        "has_next": page < pages,
        "has_prev": page > 1,
    }


def success(message: str = None, **data) -> dict:
    body = {"success": True}
    if message:
        body["message"] = message
    if data:
        body["data"] = data
    return body
