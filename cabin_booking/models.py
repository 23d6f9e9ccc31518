from enum import StrEnum

from tortoise import fields
from tortoise.models import Model


class BookingStatus(StrEnum):
    PENDING = "pending"  # just created, awaiting owner/admin decision
    APPROVED = "approved"  # owner or admin accepted
    REJECTED = "rejected"  # owner or admin refused, terminal
    CANCELLED = "cancelled"  # cancelled by guest or owner, terminal


# Statuses that no longer hold their time window
INACTIVE_STATUSES = (BookingStatus.CANCELLED, BookingStatus.REJECTED)


class TimestampedModel(Model):
    created_at = fields.DatetimeField(null=True)
    updated_at = fields.DatetimeField(null=True)

    class Meta:  # type: ignore
        abstract = True


class Cabin(TimestampedModel):
    id = fields.UUIDField(primary_key=True)
    owner_id = fields.UUIDField()

    slug = fields.CharField(max_length=120, unique=True)
    name = fields.CharField(max_length=120)
    address = fields.CharField(max_length=200, null=True)
    postal_code = fields.CharField(max_length=20, null=True)
    city = fields.CharField(max_length=100, null=True)
    phone = fields.CharField(max_length=30, null=True)
    email = fields.CharField(max_length=254, null=True)
    contact_person_name = fields.CharField(max_length=100, null=True)
    company_slug = fields.CharField(max_length=120, null=True)
    color = fields.CharField(max_length=7, default="#3b82f6")

    halfday_availability = fields.BooleanField(default=False)
    # Optional clock boundaries, "HH:MM"
    full_day_start_time = fields.CharField(max_length=5, null=True)
    full_day_end_time = fields.CharField(max_length=5, null=True)
    am_start_time = fields.CharField(max_length=5, null=True)
    am_end_time = fields.CharField(max_length=5, null=True)
    pm_start_time = fields.CharField(max_length=5, null=True)
    pm_end_time = fields.CharField(max_length=5, null=True)

    class Meta:  # type: ignore
        table = "cabins"


class Booking(TimestampedModel):
    id = fields.UUIDField(primary_key=True)

    cabin_id = fields.UUIDField(db_index=True)
    user_id = fields.UUIDField(null=True)  # null for anonymous guests

    start_date = fields.DateField()
    end_date = fields.DateField()
    start_datetime = fields.DatetimeField()
    end_datetime = fields.DatetimeField()

    guest_name = fields.CharField(max_length=100)
    guest_address = fields.CharField(max_length=200)
    guest_postal_code = fields.CharField(max_length=20)
    guest_city = fields.CharField(max_length=100)
    guest_phone = fields.CharField(max_length=30)
    guest_email = fields.CharField(max_length=254)
    guest_affiliation = fields.CharField(max_length=200, null=True)

    status = fields.CharEnumField(BookingStatus, default=BookingStatus.PENDING)
    cancelled_by = fields.CharField(max_length=10, null=True)
    cancelled_at = fields.DatetimeField(null=True)

    class Meta:  # type: ignore
        table = "bookings"


class Unavailability(TimestampedModel):
    id = fields.UUIDField(primary_key=True)
    cabin_id = fields.UUIDField(db_index=True)

    start_date = fields.DatetimeField()
    end_date = fields.DatetimeField()
    reason = fields.CharField(max_length=200, null=True)

    class Meta:  # type: ignore
        table = "unavailabilities"


class Legend(TimestampedModel):
    id = fields.UUIDField(primary_key=True)

    name = fields.CharField(max_length=60)
    color = fields.CharField(max_length=7)
    description = fields.TextField(default="")
    is_bookable = fields.BooleanField(default=True)
    is_active = fields.BooleanField(default=True)
    is_default = fields.BooleanField(default=False)
    company_slug = fields.CharField(max_length=120, null=True)
    created_by = fields.UUIDField(null=True)

    class Meta:  # type: ignore
        table = "legends"


class CabinDayNote(Model):
    # Deterministic "{cabin_id}_{YYYY-MM-DD}" so one note exists per cabin-day
    id = fields.CharField(max_length=60, primary_key=True)
    cabin_id = fields.UUIDField(db_index=True)
    date = fields.CharField(max_length=10)

    note = fields.TextField(null=True)
    legend_id = fields.UUIDField(null=True)
    updated_by = fields.UUIDField(null=True)
    updated_at = fields.DatetimeField(null=True)

    class Meta:  # type: ignore
        table = "cabin_day_notes"


COLLECTIONS = {
    "cabins": Cabin,
    "bookings": Booking,
    "unavailabilities": Unavailability,
    "legends": Legend,
    "day_notes": CabinDayNote,
}
