from fastapi import APIRouter

from app.api.v1.endpoints.health import router as health_router
from app.api.v1.endpoints.sessions import router as sessions_router
from app.api.v1.endpoints.accounts import router as accounts_router
from app.api.v1.endpoints.me import router as me_router
from app.api.v1.endpoints.admin import router as admin_router
from app.api.v1.endpoints.internal import router as internal_router
from app.api.v1.endpoints.properties import router as properties_router
from app.api.v1.endpoints.bookings import router as bookings_router
from app.api.v1.endpoints.dashboards import router as dashboards_router
from app.api.v1.endpoints.enquiries import router as enquiries_router


router = APIRouter(prefix="/v1")
router.include_router(health_router, tags=["health"])
router.include_router(sessions_router, tags=["sessions"])
router.include_router(accounts_router, tags=["accounts"])
router.include_router(me_router, tags=["me"])
router.include_router(admin_router, tags=["admin"])
router.include_router(internal_router, tags=["internal"])
router.include_router(properties_router, tags=["properties"])
router.include_router(bookings_router, tags=["bookings"])
router.include_router(dashboards_router, tags=["dashboards"])
router.include_router(enquiries_router, tags=["enquiries"])
