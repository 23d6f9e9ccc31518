from fastapi import APIRouter, Depends, Query, status
from fastapi.encoders import jsonable_encoder

from cabin_booking.bookings import BookingManager
from cabin_booking.cabins import CabinService
from cabin_booking.cache import get_calendar_cache, invalidate_calendar_cache, set_calendar_cache
from cabin_booking.calendar_view import CalendarView
from cabin_booking.deps import (
    CurrentUser,
    get_booking_manager,
    get_cabin,
    get_cabin_service,
    get_calendar_view,
    get_current_user,
    require_owner,
)
from cabin_booking.schemas import (
    AvailabilityQuery,
    AvailabilityResponse,
    BookedDates,
    CabinCreate,
    CabinResponse,
    CabinUpdate,
)

router = APIRouter(prefix="/cabins", tags=["cabins"])


@router.post("", response_model=CabinResponse, status_code=status.HTTP_201_CREATED)
async def create_cabin(
    payload: CabinCreate,
    current_user: CurrentUser = Depends(require_owner),
    cabins: CabinService = Depends(get_cabin_service),
):
    cabin = await cabins.create(payload.model_dump(exclude_none=True), current_user)
    return CabinResponse.model_validate(cabin)


@router.get("/{slug}", response_model=CabinResponse)
async def get_cabin_by_slug(cabin: dict = Depends(get_cabin)):
    return CabinResponse.model_validate(cabin)


@router.put("/{slug}", response_model=CabinResponse)
async def update_cabin(
    slug: str,
    payload: CabinUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    cabins: CabinService = Depends(get_cabin_service),
):
    cabin = await cabins.update(slug, payload.model_dump(exclude_unset=True), current_user)
    await invalidate_calendar_cache(cabin["id"])
    return CabinResponse.model_validate(cabin)


@router.delete("/{slug}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_cabin(
    slug: str,
    current_user: CurrentUser = Depends(get_current_user),
    cabins: CabinService = Depends(get_cabin_service),
):
    cabin = await cabins.delete(slug, current_user)
    await invalidate_calendar_cache(cabin["id"])


# ---------------------------------------------------------------------------
# Public availability views
# ---------------------------------------------------------------------------


@router.get("/{slug}/availability", response_model=AvailabilityResponse)
async def check_availability(
    query: AvailabilityQuery = Depends(),
    cabin: dict = Depends(get_cabin),
    manager: BookingManager = Depends(get_booking_manager),
):
    return AvailabilityResponse(available=await manager.check_availability(cabin, query))


@router.get("/{slug}/booked-dates", response_model=BookedDates)
async def get_booked_dates(
    cabin: dict = Depends(get_cabin),
    manager: BookingManager = Depends(get_booking_manager),
):
    """Active bookings and blocks of the cabin, without guest contact details."""
    return await manager.get_booked_dates(cabin)


@router.get("/{slug}/calendar")
async def get_calendar(
    year: int = Query(ge=1970, le=2100),
    month: int = Query(ge=1, le=12),
    cabin: dict = Depends(get_cabin),
    view: CalendarView = Depends(get_calendar_view),
):
    cached = await get_calendar_cache(cabin["id"], year, month)
    if cached is not None:
        return cached

    data = jsonable_encoder(await view.get_calendar_data(cabin, year, month))
    await set_calendar_cache(cabin["id"], year, month, data)
    return data
