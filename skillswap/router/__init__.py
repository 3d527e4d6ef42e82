from fastapi import APIRouter
from . import root
from . import auth
from . import user
from . import swap
from . import admin
from . import notification
router = APIRouter()

def init_router_root(app):
    app.include_router(root.router, tags=["Main"])

# Include Routers
router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(user.router, prefix="/users", tags=["Users"])
router.include_router(swap.router, prefix="/swaps", tags=["Swaps"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])
router.include_router(notification.router, prefix="/notifications", tags=["Notifications"])


def get_router():
    return router
