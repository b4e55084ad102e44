from fastapi import APIRouter
from .auth import router as auth_router
from .health import router as health_router
from .verification import router as verification_router
from .booking import router as booking_router
from .admin import router as admin_router
from .sms import router as sms_router
from .reminders import router as reminders_router

router = APIRouter()

router.include_router(health_router, prefix="/health", tags=["health"])
router.include_router(auth_router, prefix="/auth", tags=["authentication"])
router.include_router(verification_router, prefix="/verification", tags=["verification"])
router.include_router(booking_router, prefix="/booking", tags=["booking"])
router.include_router(admin_router, prefix="/admin", tags=["admin"])
router.include_router(sms_router, prefix="/sms", tags=["sms"])
router.include_router(reminders_router, prefix="/reminders", tags=["reminders"])
