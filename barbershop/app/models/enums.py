"""
User roles enumeration.

Roles are issued by the external auth service inside the bearer token.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Shop owner, full back-office access including the ledger
        BARBER: Works the agenda, sees their own appointments
        STAFF: Front desk, manages the agenda and payments
        CLIENT: Books appointments for themselves
    """
    ADMIN = "admin"
    BARBER = "barber"
    STAFF = "staff"
    CLIENT = "client"


STAFF_ROLES = [UserRole.ADMIN, UserRole.BARBER, UserRole.STAFF]


def enum_values(enum_cls):
    """Persist enum values (not member names) so raw SQL can match them."""
    return [member.value for member in enum_cls]
