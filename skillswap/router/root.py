from datetime import datetime

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def index():
    return {"success": True, "message": "SkillSwap API"}


@router.get("/health")
async def health():
    return {"success": True, "status": "ok", "timestamp": datetime.utcnow().isoformat()}
