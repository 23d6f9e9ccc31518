from enum import StrEnum


class Role(StrEnum):
    USER = "user"  # books cabins, cancels own bookings
    OWNER = "owner"  # manages own cabins, blocks, notes and their bookings
    ADMIN = "admin"  # approves/rejects any booking

