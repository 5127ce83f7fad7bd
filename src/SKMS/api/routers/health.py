# src/SKMS/api/routers/health.py
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from SKMS.app_logger import get_logger
from SKMS.core.config import settings
from SKMS.db.session import get_db

router = APIRouter(tags=["health"])
log = get_logger("routers.health")


@router.get("/healthz")
async def healthz(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        log.warning("healthz: database ping failed: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"status": "error", "database": "unavailable", "version": settings.APP_VERSION},
        )
    return {"status": "ok", "database": "ok", "version": settings.APP_VERSION}
