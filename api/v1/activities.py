from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_admin, get_current_staff
from api.v1.enrollments import enrollment_to_response
from app.models.activity import Activity, ActivitySchedule, ActivityStatus, Venue
from app.models.user import Role, User
from app.models.waitlist import WaitlistEntry
from app.schemas.activity import (
    ActivityCreate,
    ActivityListResponse,
    ActivityResponse,
    ActivityUpdate,
    ScheduleCreate,
    ScheduleResponse,
    SeatStatusResponse,
    SyncCountResponse,
    VenueCreate,
    VenueResponse,
)
from app.schemas.enrollment import EnrollmentListResponse
from app.services.capacity_service import CapacityService
from app.services.enrollment_service import EnrollmentService
from core.db import get_db
from core.exceptions.base import BadRequestException, NotFoundException
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/activities", tags=["Activities"])
venue_router = APIRouter(prefix="/venues", tags=["Venues"])


async def _ensure_coach(db_session: AsyncSession, coach_id: Optional[str]) -> None:
    if not coach_id:
        return
    coach = await User.get_by_id(db_session, coach_id)
    if not coach or coach.role != Role.COACH:
        raise BadRequestException(message="coach_id must reference a coach account")


async def _ensure_venue(db_session: AsyncSession, venue_id: Optional[str]) -> None:
    if venue_id and not await Venue.get_by_id(db_session, venue_id):
        raise BadRequestException(message=f"Venue not found: {venue_id}")


@router.get("/", response_model=ActivityListResponse)
async def list_activities(
    category: Optional[str] = None,
    status: Optional[ActivityStatus] = None,
    has_capacity: Optional[bool] = None,
    search: Optional[str] = Query(None, description="Search in activity name and description"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db_session: AsyncSession = Depends(get_db),
) -> ActivityListResponse:
    """
    List activities with optional filters.

    Public endpoint - no authentication required.
    """
    logger.info(f"List activities request - skip: {skip}, limit: {limit}, search: {search}")
    activities, total = await Activity.get_filtered(
        db_session,
        category=category,
        status=status,
        has_capacity=has_capacity,
        search=search,
        skip=skip,
        limit=limit,
    )
    return ActivityListResponse(
        items=[ActivityResponse.model_validate(a) for a in activities],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/{activity_id}", response_model=ActivityResponse)
async def get_activity(
    activity_id: str,
    db_session: AsyncSession = Depends(get_db),
) -> ActivityResponse:
    """Get activity details by ID. Public endpoint."""
    activity = await Activity.get_by_id(db_session, activity_id)
    if not activity:
        logger.warning(f"Activity not found: {activity_id}")
        raise NotFoundException(message="Activity not found")
    return ActivityResponse.model_validate(activity)


@router.post("/", response_model=ActivityResponse, status_code=201)
async def create_activity(
    data: ActivityCreate,
    current_user: User = Depends(get_current_admin),
    db_session: AsyncSession = Depends(get_db),
) -> ActivityResponse:
    """
    Create a new activity with its weekly schedules.

    Requires admin role.
    """
    logger.info(f"Create activity request by user: {current_user.id}, name: {data.name}")
    await _ensure_coach(db_session, data.coach_id)
    for slot in data.schedules:
        await _ensure_venue(db_session, slot.venue_id)

    activity_data = data.model_dump(exclude={"schedules"})
    activity = await Activity.create_activity(
        db_session,
        **activity_data,
        schedules=[
            ActivitySchedule(**slot.model_dump(exclude_none=True)) for slot in data.schedules
        ],
    )
    logger.info(
        f"Activity created successfully: {activity.id} "
        f"(capacity {activity.capacity}, {len(activity.schedules)} schedule(s))"
    )
    return ActivityResponse.model_validate(activity)


@router.patch("/{activity_id}", response_model=ActivityResponse)
async def update_activity(
    activity_id: str,
    data: ActivityUpdate,
    current_user: User = Depends(get_current_admin),
    db_session: AsyncSession = Depends(get_db),
) -> ActivityResponse:
    """
    Update an activity.

    Requires admin role. Capacity cannot drop below the seats already taken.
    """
    activity = await Activity.get_by_id(db_session, activity_id)
    if not activity:
        raise NotFoundException(message="Activity not found")

    update_data = data.model_dump(exclude_unset=True)

    if "coach_id" in update_data:
        await _ensure_coach(db_session, update_data["coach_id"])

    new_capacity = update_data.get("capacity", activity.capacity)
    if new_capacity is None or new_capacity < activity.current_enrollment:
        raise BadRequestException(
            message=f"capacity cannot be lower than current enrollment ({activity.current_enrollment})"
        )

    new_min_grade = update_data.get("min_grade", activity.min_grade)
    new_max_grade = update_data.get("max_grade", activity.max_grade)
    if new_min_grade is not None and new_max_grade is not None and new_max_grade < new_min_grade:
        raise BadRequestException(message="max_grade must be greater than or equal to min_grade")

    new_min_age = update_data.get("min_age", activity.min_age)
    new_max_age = update_data.get("max_age", activity.max_age)
    if new_min_age is not None and new_max_age is not None and new_max_age < new_min_age:
        raise BadRequestException(message="max_age must be greater than or equal to min_age")

    for field, value in update_data.items():
        setattr(activity, field, value)

    await db_session.commit()
    await db_session.refresh(activity)
    logger.info(f"Activity updated successfully: {activity_id} by {current_user.id}")
    return ActivityResponse.model_validate(activity)


# ============== Schedules ==============


@router.get("/{activity_id}/schedules", response_model=List[ScheduleResponse])
async def list_schedules(
    activity_id: str,
    db_session: AsyncSession = Depends(get_db),
) -> List[ScheduleResponse]:
    """Active weekly schedules of an activity."""
    if not await Activity.get_by_id(db_session, activity_id):
        raise NotFoundException(message="Activity not found")
    schedules = await ActivitySchedule.get_active_for_activity(db_session, activity_id)
    return [ScheduleResponse.model_validate(s) for s in schedules]


@router.post("/{activity_id}/schedules", response_model=ScheduleResponse, status_code=201)
async def add_schedule(
    activity_id: str,
    data: ScheduleCreate,
    current_user: User = Depends(get_current_admin),
    db_session: AsyncSession = Depends(get_db),
) -> ScheduleResponse:
    """Add a weekly time slot (admin only). Existing enrollments are not re-checked."""
    activity = await Activity.get_by_id(db_session, activity_id)
    if not activity:
        raise NotFoundException(message="Activity not found")
    await _ensure_venue(db_session, data.venue_id)

    schedule = ActivitySchedule(activity_id=activity_id, **data.model_dump(exclude_none=True))
    activity.schedules.append(schedule)
    await db_session.commit()
    await db_session.refresh(schedule)

    logger.info(
        f"Schedule {schedule.id} added to activity {activity_id}: "
        f"{schedule.day_of_week.value} {schedule.start_time}-{schedule.end_time}"
    )
    return ScheduleResponse.model_validate(schedule)


# ============== Seats & Enrollments ==============


@router.get("/{activity_id}/seats", response_model=SeatStatusResponse)
async def get_seat_status(
    activity_id: str,
    db_session: AsyncSession = Depends(get_db),
) -> SeatStatusResponse:
    """Seats taken versus capacity, counted from open enrollments."""
    seats = await CapacityService(db_session).seat_status(activity_id)
    queue = await WaitlistEntry.get_queue(db_session, activity_id)
    return SeatStatusResponse(
        activity_id=seats.activity_id,
        active_count=seats.active_count,
        capacity=seats.capacity,
        has_room=seats.has_room,
        waiting_count=len(queue),
    )


@router.get("/{activity_id}/enrollments", response_model=EnrollmentListResponse)
async def get_activity_enrollments(
    activity_id: str,
    current_user: User = Depends(get_current_staff),
    db_session: AsyncSession = Depends(get_db),
) -> EnrollmentListResponse:
    """Active and approved enrollments of an activity (coach/admin)."""
    enrollments = await EnrollmentService(db_session).get_activity_enrollments(activity_id)
    return EnrollmentListResponse(
        items=[await enrollment_to_response(e, db_session) for e in enrollments],
        total=len(enrollments),
    )


@router.post("/{activity_id}/sync-count", response_model=SyncCountResponse)
async def sync_enrollment_count(
    activity_id: str,
    current_user: User = Depends(get_current_admin),
    db_session: AsyncSession = Depends(get_db),
) -> SyncCountResponse:
    """
    Recalculate current_enrollment from open enrollments.

    Requires admin role.
    """
    logger.info(f"Sync enrollment count for activity: {activity_id}")
    previous, current = await CapacityService(db_session).sync_enrollment_count(activity_id)
    return SyncCountResponse(
        activity_id=activity_id,
        previous_count=previous,
        current_enrollment=current,
    )


# ============== Venues ==============


@venue_router.get("/", response_model=List[VenueResponse])
async def list_venues(
    db_session: AsyncSession = Depends(get_db),
) -> List[VenueResponse]:
    venues = await Venue.get_all(db_session)
    return [VenueResponse.model_validate(v) for v in venues]


@venue_router.post("/", response_model=VenueResponse, status_code=201)
async def create_venue(
    data: VenueCreate,
    current_user: User = Depends(get_current_admin),
    db_session: AsyncSession = Depends(get_db),
) -> VenueResponse:
    """Create a venue (admin only)."""
    venue = Venue(**data.model_dump())
    db_session.add(venue)
    await db_session.commit()
    await db_session.refresh(venue)
    logger.info(f"Venue created: {venue.id} ({venue.name})")
    return VenueResponse.model_validate(venue)
