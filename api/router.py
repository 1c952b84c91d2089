from fastapi import APIRouter

from api.v1.activities import router as activities_router
from api.v1.activities import venue_router
from api.v1.attendance import router as attendance_router
from api.v1.auth import router as auth_router
from api.v1.enrollments import router as enrollments_router
from api.v1.evaluations import badge_router
from api.v1.evaluations import router as evaluations_router
from api.v1.students import router as students_router
from api.v1.users import router as users_router

router = APIRouter()

# Include v1 routers
router.include_router(auth_router, prefix="/v1")
router.include_router(users_router, prefix="/v1")
router.include_router(students_router, prefix="/v1")
router.include_router(activities_router, prefix="/v1")
router.include_router(venue_router, prefix="/v1")
router.include_router(enrollments_router, prefix="/v1")
router.include_router(attendance_router, prefix="/v1")
router.include_router(evaluations_router, prefix="/v1")
router.include_router(badge_router, prefix="/v1")
