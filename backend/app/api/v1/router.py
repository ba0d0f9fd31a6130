"""API v1 router aggregator."""

from fastapi import APIRouter

from app.api.v1 import activity, admin, auth, records, settings

router = APIRouter(prefix="/api/v1")
router.include_router(auth.router)
router.include_router(records.router)
router.include_router(activity.router)
router.include_router(admin.router)
router.include_router(settings.router)
