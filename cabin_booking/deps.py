from dataclasses import dataclass
from urllib.parse import unquote
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from cabin_booking.availability import AvailabilityChecker, CabinLocks
from cabin_booking.blocks import BlockManager
from cabin_booking.bookings import BookingManager
from cabin_booking.cabins import CabinService, utcnow
from cabin_booking.calendar_view import CalendarView
from cabin_booking.events import EventBus
from cabin_booking.legends import LegendService
from cabin_booking.notes import NotesService
from cabin_booking.roles import Role
from cabin_booking.store import Store, TortoiseStore

# ---------------------------------------------------------------------------
# Identity, injected by the gateway after token validation
# ---------------------------------------------------------------------------


@dataclass
class CurrentUser:
    id: UUID
    username: str
    role: Role = Role.USER
    company_slug: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_owner(self) -> bool:
        return self.role == Role.OWNER


def _parse_identity(
    x_user_id: str, x_username: str, x_user_role: str, x_user_company: str | None
) -> CurrentUser:
    try:
        user_id = UUID(x_user_id)
        role = Role(x_user_role or Role.USER)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user identity from gateway",
        ) from None
    return CurrentUser(
        id=user_id,
        username=unquote(x_username),
        role=role,
        company_slug=x_user_company or None,
    )


def get_current_user(
    x_user_id: str | None = Header(default=None),
    x_username: str = Header(default=""),
    x_user_role: str = Header(default=Role.USER.value),
    x_user_company: str | None = Header(default=None),
) -> CurrentUser:
    """
    Reads the headers injected by the gateway after token validation.
    The token has already been verified; these headers are trusted as-is.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return _parse_identity(x_user_id, x_username, x_user_role, x_user_company)


def get_optional_user(
    x_user_id: str | None = Header(default=None),
    x_username: str = Header(default=""),
    x_user_role: str = Header(default=Role.USER.value),
    x_user_company: str | None = Header(default=None),
) -> CurrentUser | None:
    """Like ``get_current_user`` but anonymous callers get ``None``."""
    if not x_user_id:
        return None
    return _parse_identity(x_user_id, x_username, x_user_role, x_user_company)


def require_roles(*allowed: Role):
    """
    Factory that returns a dependency enforcing one of the given roles.

    Usage:
        @router.post("/cabins")
        async def route(user = Depends(require_roles(Role.OWNER))):
            ...
    """

    async def _dep(
        current_user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden",
            )
        return current_user

    return _dep


# ---------------------------------------------------------------------------
# Pre-built role dependencies
# ---------------------------------------------------------------------------

require_owner = require_roles(Role.OWNER)
require_admin = require_roles(Role.ADMIN)
require_owner_or_admin = require_roles(Role.OWNER, Role.ADMIN)


# ---------------------------------------------------------------------------
# Process-wide collaborators
# ---------------------------------------------------------------------------

_store = TortoiseStore()
_cabin_locks = CabinLocks()
_event_bus = EventBus()


def get_store() -> Store:
    return _store


def get_cabin_locks() -> CabinLocks:
    return _cabin_locks


def get_event_bus() -> EventBus:
    return _event_bus


def get_clock():
    return utcnow


# ---------------------------------------------------------------------------
# Services, built per request over the shared collaborators
# ---------------------------------------------------------------------------


def get_cabin_service(
    store: Store = Depends(get_store), clock=Depends(get_clock)
) -> CabinService:
    return CabinService(store, clock)


def get_booking_manager(
    store: Store = Depends(get_store),
    locks: CabinLocks = Depends(get_cabin_locks),
    events: EventBus = Depends(get_event_bus),
    clock=Depends(get_clock),
) -> BookingManager:
    return BookingManager(store, AvailabilityChecker(store), locks, events, clock)


def get_block_manager(
    store: Store = Depends(get_store),
    locks: CabinLocks = Depends(get_cabin_locks),
    clock=Depends(get_clock),
) -> BlockManager:
    return BlockManager(store, AvailabilityChecker(store), locks, clock)


def get_legend_service(
    store: Store = Depends(get_store), clock=Depends(get_clock)
) -> LegendService:
    return LegendService(store, clock)


def get_notes_service(
    store: Store = Depends(get_store),
    blocks: BlockManager = Depends(get_block_manager),
    legends: LegendService = Depends(get_legend_service),
    clock=Depends(get_clock),
) -> NotesService:
    return NotesService(store, blocks, legends, clock)


def get_calendar_view(
    store: Store = Depends(get_store),
    notes: NotesService = Depends(get_notes_service),
    legends: LegendService = Depends(get_legend_service),
) -> CalendarView:
    return CalendarView(store, AvailabilityChecker(store), notes, legends)


async def get_cabin(slug: str, cabins: CabinService = Depends(get_cabin_service)) -> dict:
    """Resolves the ``{slug}`` path parameter to a cabin document."""
    return await cabins.get_by_slug(slug)
