"""
Booking transaction protocol.

A booking request reserves one or more seats on a bus for a travel date.
All seats are reserved inside a single transaction owned by `createBooking`:
either every requested seat becomes an ACTIVE booking or none does.

Concurrent requests for the same bus are serialized by the bus row lock
(`SELECT ... FOR UPDATE` on PostgreSQL, `BEGIN IMMEDIATE` on SQLite), and the
partial unique index on ACTIVE (bus_id, travel_date, seat_number) rows rejects
any duplicate that still reaches the table.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, List
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.session import Session

from busline.src import exceptions, validators
from busline.src.constants import BOOKING_LOCK_TIMEOUT
from busline.src.db import Account, Booking, Bus, Route
from busline.src.enums import BookingStatus


def createBooking(
    session: Session,
    userId: int,
    busId: int,
    travelDate: date,
    seatNumbers: Iterable[int],
    price: Decimal,
) -> List[int]:
    """
    Reserve the requested seats on a bus for a travel date.

    Input is validated before the database is touched. The transaction then:
        1. On PostgreSQL, bounds lock waits with a transaction local lock_timeout.
        2. Locks the bus row and checks the bus is active and large enough.
        3. For each seat in ascending order, looks for an ACTIVE booking on the
           same (bus, date, seat); a hit aborts the whole request. Otherwise
           inserts the booking and flushes it.
        4. Commits.

    Args:
        session (Session): A session used only by this call.
        userId (int): Account id of the passenger.
        busId (int): Bus to book.
        travelDate (date): Date of travel.
        seatNumbers (Iterable[int]): Requested seats. Duplicates collapse.
        price (Decimal): Price per seat, supplied by the client.

    Returns:
        List[int]: Ids of the created bookings, in seat order.

    Raises:
        exceptions.MissingParameter: If no seat is requested.
        exceptions.InvalidValue: On a malformed seat, date, price, or a seat
            beyond the bus capacity.
        exceptions.UnknownValue: If the bus does not exist.
        exceptions.InactiveResource: If the bus is not active.
        exceptions.SeatConflict: If a requested seat is already booked.
        exceptions.LockAcquireTimeout: If the bus lock could not be taken in time.
        exceptions.StorageError: On any other database failure.
    """
    seats = validators.seatNumbers(seatNumbers)
    price = validators.price(price)
    if not isinstance(travelDate, date):
        raise exceptions.InvalidValue(Booking.travel_date)

    try:
        if session.get_bind().dialect.name == "postgresql":
            session.execute(text(f"SET LOCAL lock_timeout = {int(BOOKING_LOCK_TIMEOUT)}"))

        bus = session.query(Bus).filter(Bus.id == busId).with_for_update().first()
        if bus is None:
            raise exceptions.UnknownValue(Booking.bus_id)
        if not bus.is_active:
            raise exceptions.InactiveResource(Bus)
        if seats[-1] > bus.seat_count:
            raise exceptions.InvalidValue(Booking.seat_number)

        bookingIds = []
        for seat in seats:
            booked = (
                session.query(Booking.id)
                .filter(Booking.bus_id == busId)
                .filter(Booking.travel_date == travelDate)
                .filter(Booking.seat_number == seat)
                .filter(Booking.status == BookingStatus.ACTIVE)
                .with_for_update()
                .first()
            )
            if booked is not None:
                raise exceptions.SeatConflict(seat)

            booking = Booking(
                user_id=userId,
                bus_id=busId,
                seat_number=seat,
                travel_date=travelDate,
                price=price,
                status=BookingStatus.ACTIVE,
            )
            session.add(booking)
            try:
                session.flush()
            except IntegrityError as e:
                if exceptions.isUniqueViolation(e):
                    raise exceptions.SeatConflict(seat)
                raise
            bookingIds.append(booking.id)

        session.commit()
        return bookingIds
    except Exception as e:
        session.rollback()
        exceptions.handle(e)


def getBookedSeats(session: Session, busId: int, travelDate: date) -> List[int]:
    """Seat numbers held by ACTIVE bookings on a bus for a date, ascending."""
    rows = (
        session.query(Booking.seat_number)
        .filter(Booking.bus_id == busId)
        .filter(Booking.travel_date == travelDate)
        .filter(Booking.status == BookingStatus.ACTIVE)
        .order_by(Booking.seat_number.asc())
    )
    return [row.seat_number for row in rows]


def getBookingDetail(session: Session, bookingId: int) -> dict:
    """
    Fetch a booking together with its passenger, bus and route details.

    Raises:
        exceptions.InvalidIdentifier: If the booking does not exist.
    """
    row = (
        session.query(Booking, Account, Bus, Route)
        .join(Account, Account.id == Booking.user_id)
        .join(Bus, Bus.id == Booking.bus_id)
        .join(Route, Route.id == Bus.route_id)
        .filter(Booking.id == bookingId)
        .first()
    )
    if row is None:
        raise exceptions.InvalidIdentifier()

    booking, passenger, bus, route = row
    return {
        "id": booking.id,
        "user_id": booking.user_id,
        "bus_id": booking.bus_id,
        "seat_number": booking.seat_number,
        "travel_date": booking.travel_date,
        "price": booking.price,
        "status": booking.status,
        "qr_code": booking.qr_code,
        "updated_on": booking.updated_on,
        "created_on": booking.created_on,
        # Passenger
        "passenger_name": passenger.full_name,
        "passenger_phone": passenger.phone_number,
        "passenger_email": passenger.email_id,
        # Bus
        "registration_number": bus.registration_number,
        "service": bus.service,
        "seat_count": bus.seat_count,
        # Route
        "route_name": route.name,
        "start_point": route.start_point,
        "end_point": route.end_point,
    }
