from enum import IntEnum


class AppID(IntEnum):
    PUBLIC = 1
    MEMBER = 2


class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class AccountStatus(IntEnum):
    ACTIVE = 1
    SUSPENDED = 2


class AccountRole(IntEnum):
    PASSENGER = 1
    CONDUCTOR = 2
    BUS_OWNER = 3
    ADMIN = 4


class PlatformType(IntEnum):
    OTHER = 1
    WEB = 2
    NATIVE = 3
    SERVER = 4


class ServiceClass(IntEnum):
    NORMAL = 1
    LUXURY = 2
    SEMI_LUXURY = 3
    EXPRESS_LUXURY = 4


class BookingStatus(IntEnum):
    ACTIVE = 1
    COMPLETED = 2
    CANCELLED = 3
