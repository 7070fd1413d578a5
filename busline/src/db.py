from secrets import token_hex
from sqlalchemy import (
    TEXT,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    create_engine,
    event,
    func,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from busline.src.constants import (
    PSQL_DB_DRIVER,
    PSQL_DB_HOST,
    PSQL_DB_PASSWORD,
    PSQL_DB_NAME,
    PSQL_DB_PORT,
    PSQL_DB_USERNAME,
    SQLITE_BUSY_TIMEOUT,
)
from busline.src.enums import (
    AccountRole,
    AccountStatus,
    BookingStatus,
    PlatformType,
    ServiceClass,
)


# Global DBMS variables
dbURL = f"{PSQL_DB_DRIVER}://{PSQL_DB_USERNAME}:{PSQL_DB_PASSWORD}@{PSQL_DB_HOST}:{PSQL_DB_PORT}/{PSQL_DB_NAME}"
ORMbase = declarative_base()


def createEngine(url: str = dbURL) -> Engine:
    """
    Build the SQLAlchemy engine for the given database URL.

    PostgreSQL is the production store. SQLite is accepted for local runs and
    tests; since it has no row level locks, every SQLite transaction takes the
    database write lock at BEGIN so booking transactions stay serialized.

    Args:
        url (str): SQLAlchemy database URL. Defaults to the PostgreSQL URL
            assembled from the environment.

    Returns:
        Engine: A configured engine. No connection is opened here.
    """
    if not url.startswith("sqlite"):
        return create_engine(url=url, echo=False, pool_pre_ping=True)

    engine = create_engine(
        url=url,
        echo=False,
        connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT},
    )

    @event.listens_for(engine, "connect")
    def disablePysqliteBegin(dbapiConnection, connectionRecord):
        dbapiConnection.isolation_level = None

    @event.listens_for(engine, "begin")
    def beginImmediate(connection):
        connection.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def createSessionMaker(engine: Engine) -> sessionmaker:
    """Session factory bound to `engine`. Sessions keep their state after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)


# ----------------------------------- Account DB Models ---------------------------------------#
class Account(ORMbase):
    """
    Represents a user of the platform: passengers, conductors, bus owners
    and administrators.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the account.

        username (String(32)):
            Login name. Must be unique and not null.

        password (TEXT):
            Argon2 hash of the account password.

        full_name (TEXT):
            Display name of the account holder.

        role (Integer):
            Role of the account (PASSENGER, CONDUCTOR, BUS_OWNER, ADMIN).
            Drives every permission check in the booking flow.
            Defaults to `AccountRole.PASSENGER`.

        status (Integer):
            Account status (ACTIVE, SUSPENDED).
            Defaults to `AccountStatus.ACTIVE`.

        phone_number (TEXT):
            Contact phone number. Nullable.

        email_id (TEXT):
            Contact email address. Nullable.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the account was created.
    """

    __tablename__ = "account"

    id = Column(Integer, primary_key=True)
    username = Column(String(32), nullable=False, unique=True)
    password = Column(TEXT, nullable=False)
    full_name = Column(TEXT)
    role = Column(Integer, nullable=False, default=AccountRole.PASSENGER)
    status = Column(Integer, nullable=False, default=AccountStatus.ACTIVE)
    # Contact details
    phone_number = Column(TEXT)
    email_id = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class AccountToken(ORMbase):
    """
    Represents an access token issued to an account after a successful login.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the token.

        account_id (Integer):
            Foreign key referencing the account the token belongs to.
            Deletion of the account cascades to its tokens.

        access_token (String(64)):
            Random bearer token. Unique and not null.

        expires_in (Integer):
            Validity of the token in seconds.

        expires_at (DateTime):
            Absolute expiry time of the token.

        platform_type (Integer):
            Client platform (OTHER, WEB, NATIVE, SERVER).

        client_details (TEXT):
            Free form description of the client. Nullable.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the token was issued.
    """

    __tablename__ = "account_token"

    id = Column(Integer, primary_key=True)
    account_id = Column(
        Integer,
        ForeignKey("account.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    access_token = Column(
        String(64), unique=True, nullable=False, default=lambda: token_hex(32)
    )
    expires_in = Column(Integer, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    # Device related details
    platform_type = Column(Integer, default=PlatformType.OTHER)
    client_details = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


# ----------------------------------- Directory DB Models -------------------------------------#
class Route(ORMbase):
    """
    Represents a bus route between two points.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the route.

        start_point (String(128)):
            Name of the origin. Indexed for search.

        end_point (String(128)):
            Name of the destination. Indexed for search.
            The pair (start_point, end_point) is unique.

        name (String(256)):
            Display name of the route.
            ex:- Colombo -> Kandy

        price (Numeric(10, 2)):
            Ticket price for a single seat on this route.

        distance (Numeric(10, 2)):
            Route length in kilometres. Nullable.

        updated_on (DateTime):
            Timestamp automatically updated when the route record is modified.

        created_on (DateTime):
            Timestamp indicating when the route was created.
    """

    __tablename__ = "route"
    __table_args__ = (UniqueConstraint("start_point", "end_point"),)

    id = Column(Integer, primary_key=True)
    start_point = Column(String(128), nullable=False, index=True)
    end_point = Column(String(128), nullable=False, index=True)
    name = Column(String(256), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    distance = Column(Numeric(10, 2))
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Bus(ORMbase):
    """
    Represents a bus operating on a route.

    A bus belongs to exactly one route at a time. Its seat count is the
    capacity that bookings are counted against.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the bus.

        registration_number (String(16)):
            Vehicle registration number. Unique and not null.

        route_id (Integer):
            Foreign key referencing the route the bus currently serves.
            Indexed for search.

        owner_id (Integer):
            Foreign key referencing the bus owner account. Nullable.

        seat_count (Integer):
            Number of bookable seats. Must be positive.

        service (Integer):
            Service class of the bus (NORMAL, LUXURY, SEMI_LUXURY, EXPRESS_LUXURY).
            Defaults to `ServiceClass.NORMAL`.

        is_active (Boolean):
            Inactive buses are excluded from search and cannot be booked.

        permit_link (TEXT):
            Link to the route permit document. Nullable.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the bus record was created.
    """

    __tablename__ = "bus"
    __table_args__ = (CheckConstraint("seat_count > 0"),)

    id = Column(Integer, primary_key=True)
    registration_number = Column(String(16), nullable=False, unique=True)
    route_id = Column(
        Integer, ForeignKey("route.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    owner_id = Column(Integer, ForeignKey("account.id", ondelete="SET NULL"))
    seat_count = Column(Integer, nullable=False)
    service = Column(Integer, nullable=False, default=ServiceClass.NORMAL)
    is_active = Column(Boolean, nullable=False, default=True)
    permit_link = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class ConductorBus(ORMbase):
    """
    Represents the assignment of a conductor to a bus.

    At most one active assignment may exist for a (conductor, bus) pair.
    Active assignments allow the conductor to view and complete bookings
    on the bus.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the assignment.

        conductor_id (Integer):
            Foreign key referencing the conductor account.

        bus_id (Integer):
            Foreign key referencing the assigned bus.

        assigned_by (Integer):
            Foreign key referencing the account that made the assignment.

        is_active (Boolean):
            Deactivated assignments are kept for history.

        assigned_on (DateTime):
            Timestamp indicating when the assignment was made.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.
    """

    __tablename__ = "conductor_bus"

    id = Column(Integer, primary_key=True)
    conductor_id = Column(
        Integer,
        ForeignKey("account.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    bus_id = Column(
        Integer, ForeignKey("bus.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assigned_by = Column(Integer, ForeignKey("account.id", ondelete="SET NULL"))
    is_active = Column(Boolean, nullable=False, default=True)
    # Metadata
    assigned_on = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())


# ----------------------------------- Booking DB Models ---------------------------------------#
class Booking(ORMbase):
    """
    Represents a single reserved seat on a bus for a travel date.

    A multi seat request creates one booking per seat inside one transaction.
    Bookings are never deleted; cancellation is a status change.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the booking.

        user_id (Integer):
            Foreign key referencing the passenger account.

        bus_id (Integer):
            Foreign key referencing the booked bus.

        seat_number (Integer):
            Booked seat, between 1 and the bus seat count.
            Unique per (bus_id, travel_date) among ACTIVE bookings.

        travel_date (Date):
            Date of travel.

        price (Numeric(10, 2)):
            Price paid for the seat, supplied by the client.

        status (Integer):
            Booking status (ACTIVE, COMPLETED, CANCELLED).
            Defaults to `BookingStatus.ACTIVE`.

        qr_code (TEXT):
            URL of the QR code artifact. Null until the artifact is attached.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp indicating when the booking was committed.
    """

    __tablename__ = "booking"
    __table_args__ = (
        CheckConstraint("seat_number > 0"),
        Index("ix_booking_bus_date_status", "bus_id", "travel_date", "status"),
        Index(
            "ux_booking_active_seat",
            "bus_id",
            "travel_date",
            "seat_number",
            unique=True,
            postgresql_where=text(f"status = {int(BookingStatus.ACTIVE)}"),
            sqlite_where=text(f"status = {int(BookingStatus.ACTIVE)}"),
        ),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(
        Integer, ForeignKey("account.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    bus_id = Column(Integer, ForeignKey("bus.id", ondelete="RESTRICT"), nullable=False)
    seat_number = Column(Integer, nullable=False)
    travel_date = Column(Date, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    status = Column(Integer, nullable=False, default=BookingStatus.ACTIVE)
    qr_code = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())
