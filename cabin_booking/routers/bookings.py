from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from cabin_booking.bookings import BookingManager
from cabin_booking.cache import invalidate_calendar_cache
from cabin_booking.deps import (
    CurrentUser,
    get_booking_manager,
    get_cabin,
    get_current_user,
    get_optional_user,
    require_owner,
    require_owner_or_admin,
)
from cabin_booking.schemas import (
    BookingCreate,
    BookingFilters,
    BookingPage,
    BookingResponse,
    MultiBookingCreate,
    OwnerCancelResponse,
)

router = APIRouter(prefix="/bookings", tags=["bookings"])
cabin_router = APIRouter(prefix="/cabins/{slug}/bookings", tags=["bookings"])


# ---------------------------------------------------------------------------
# /cabins/{slug}/bookings
# ---------------------------------------------------------------------------


@cabin_router.post(
    "",
    response_model=BookingResponse | list[BookingResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_booking(
    payload: BookingCreate,
    cabin: dict = Depends(get_cabin),
    current_user: CurrentUser | None = Depends(get_optional_user),
    manager: BookingManager = Depends(get_booking_manager),
):
    """
    Anyone may request a booking; the caller's id is recorded when known.
    A body with ``segments`` creates one booking per segment.
    """
    result = await manager.create_booking(cabin, payload, current_user)
    await invalidate_calendar_cache(cabin["id"])
    if isinstance(result, list):
        return [BookingResponse.model_validate(b) for b in result]
    return BookingResponse.model_validate(result)


@cabin_router.post(
    "/multi",
    response_model=list[BookingResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_multi_booking(
    payload: MultiBookingCreate,
    cabin: dict = Depends(get_cabin),
    current_user: CurrentUser | None = Depends(get_optional_user),
    manager: BookingManager = Depends(get_booking_manager),
):
    created = await manager.create_multi_booking(cabin, payload, current_user)
    await invalidate_calendar_cache(cabin["id"])
    return [BookingResponse.model_validate(b) for b in created]


@cabin_router.get("", response_model=BookingPage)
async def list_cabin_bookings(
    filters: BookingFilters = Depends(),
    cabin: dict = Depends(get_cabin),
    current_user: CurrentUser = Depends(get_current_user),
    manager: BookingManager = Depends(get_booking_manager),
):
    return await manager.get_cabin_bookings(cabin, current_user, filters)


# ---------------------------------------------------------------------------
# /bookings
# ---------------------------------------------------------------------------


@router.get("/mine", response_model=BookingPage)
async def list_my_bookings(
    filters: BookingFilters = Depends(),
    current_user: CurrentUser = Depends(get_current_user),
    manager: BookingManager = Depends(get_booking_manager),
):
    return await manager.get_user_bookings(current_user, filters)


@router.get("/owner", response_model=BookingPage)
async def list_owner_bookings(
    filters: BookingFilters = Depends(),
    current_user: CurrentUser = Depends(require_owner),
    manager: BookingManager = Depends(get_booking_manager),
):
    return await manager.get_owner_bookings(current_user, filters)


@router.get("/pending", response_model=BookingPage)
async def list_pending_bookings(
    filters: BookingFilters = Depends(),
    current_user: CurrentUser = Depends(require_owner_or_admin),
    manager: BookingManager = Depends(get_booking_manager),
):
    return await manager.get_pending_bookings(current_user, filters)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    manager: BookingManager = Depends(get_booking_manager),
):
    return BookingResponse.model_validate(await manager.get_booking(booking_id, current_user))


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    manager: BookingManager = Depends(get_booking_manager),
):
    booking = await manager.cancel_booking(booking_id, current_user)
    await invalidate_calendar_cache(booking["cabin_id"])
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/owner-cancel", response_model=OwnerCancelResponse)
async def owner_cancel_booking(
    booking_id: UUID,
    current_user: CurrentUser = Depends(require_owner),
    manager: BookingManager = Depends(get_booking_manager),
):
    booking, previous = await manager.owner_cancel_booking(booking_id, current_user)
    await invalidate_calendar_cache(booking["cabin_id"])
    return OwnerCancelResponse(
        booking=BookingResponse.model_validate(booking), previous_status=previous
    )


@router.post("/{booking_id}/approve", response_model=BookingResponse)
async def approve_booking(
    booking_id: UUID,
    send_email: bool = Query(default=True),
    current_user: CurrentUser = Depends(require_owner_or_admin),
    manager: BookingManager = Depends(get_booking_manager),
):
    booking = await manager.approve_booking(booking_id, current_user, send_email=send_email)
    await invalidate_calendar_cache(booking["cabin_id"])
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking(
    booking_id: UUID,
    send_email: bool = Query(default=True),
    current_user: CurrentUser = Depends(require_owner_or_admin),
    manager: BookingManager = Depends(get_booking_manager),
):
    booking = await manager.reject_booking(booking_id, current_user, send_email=send_email)
    await invalidate_calendar_cache(booking["cabin_id"])
    return BookingResponse.model_validate(booking)
