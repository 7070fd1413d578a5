"""
Tests for the booking transaction.

SQLite serializes writers with BEGIN IMMEDIATE, so the session fixture is
released (commit or rollback) before the factory writes again.
"""

import sqlite3
from datetime import timedelta
from decimal import Decimal
from threading import Barrier, Thread
from types import SimpleNamespace

import pytest
from psycopg2.errorcodes import LOCK_NOT_AVAILABLE
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError

from busline.src import db, exceptions, reservation
from busline.src.db import Booking, createEngine, createSessionMaker
from busline.src.enums import BookingStatus

from conftest import TRAVEL_DATE


@pytest.fixture
def passenger(factory):
    return factory.account("passenger")


@pytest.fixture
def bus(factory):
    return factory.bus(factory.route(), seat_count=40)


def activeSeats(session_maker, bus):
    with session_maker() as session:
        return reservation.getBookedSeats(session, bus.id, TRAVEL_DATE)


class TestCreateBooking:
    def test_creates_one_booking_per_seat_in_seat_order(
        self, session, session_maker, passenger, bus
    ):
        bookingIds = reservation.createBooking(
            session, passenger.id, bus.id, TRAVEL_DATE, [7, 3, 5, 3], Decimal("450")
        )

        assert len(bookingIds) == 3
        seats = [session.get(Booking, bookingId).seat_number for bookingId in bookingIds]
        assert seats == [3, 5, 7]
        session.commit()
        assert activeSeats(session_maker, bus) == [3, 5, 7]

    def test_created_bookings_are_active_without_artifact(self, session, passenger, bus):
        [bookingId] = reservation.createBooking(
            session, passenger.id, bus.id, TRAVEL_DATE, [1], Decimal("450")
        )

        booking = session.get(Booking, bookingId)
        assert booking.status == BookingStatus.ACTIVE
        assert booking.qr_code is None
        assert booking.user_id == passenger.id
        assert booking.price == Decimal("450")

    def test_conflict_books_nothing(self, session, session_maker, factory, passenger, bus):
        # Given: seat 6 already held by an ACTIVE booking
        factory.booking(passenger, bus, 6)

        # When: seats 5, 6 and 7 are requested together
        with pytest.raises(exceptions.SeatConflict) as error:
            reservation.createBooking(
                session, passenger.id, bus.id, TRAVEL_DATE, [5, 6, 7], Decimal("450")
            )

        # Then: the conflicting seat is reported and nothing else was booked
        assert error.value.seat_number == 6
        assert error.value.status_code == 409
        assert error.value.detail == "Seat 6 is already booked"
        assert activeSeats(session_maker, bus) == [6]

    def test_cancelled_and_completed_seats_can_be_booked_again(
        self, session, session_maker, factory, passenger, bus
    ):
        factory.booking(passenger, bus, 1, status=BookingStatus.CANCELLED)
        factory.booking(passenger, bus, 2, status=BookingStatus.COMPLETED)

        reservation.createBooking(
            session, passenger.id, bus.id, TRAVEL_DATE, [1, 2], Decimal("450")
        )

        assert activeSeats(session_maker, bus) == [1, 2]

    def test_same_seat_on_another_date_is_free(self, session, factory, passenger, bus):
        factory.booking(passenger, bus, 4, travel_date=TRAVEL_DATE + timedelta(days=1))

        bookingIds = reservation.createBooking(
            session, passenger.id, bus.id, TRAVEL_DATE, [4], Decimal("450")
        )

        assert len(bookingIds) == 1

    def test_unknown_bus(self, session, passenger):
        with pytest.raises(exceptions.UnknownValue):
            reservation.createBooking(
                session, passenger.id, 999, TRAVEL_DATE, [1], Decimal("450")
            )

    def test_inactive_bus(self, session, factory, passenger):
        bus = factory.bus(factory.route(), is_active=False)

        with pytest.raises(exceptions.InactiveResource):
            reservation.createBooking(
                session, passenger.id, bus.id, TRAVEL_DATE, [1], Decimal("450")
            )

    def test_seat_beyond_capacity(self, session, session_maker, passenger, bus):
        with pytest.raises(exceptions.InvalidValue):
            reservation.createBooking(
                session, passenger.id, bus.id, TRAVEL_DATE, [40, 41], Decimal("450")
            )
        assert activeSeats(session_maker, bus) == []

    @pytest.mark.parametrize(
        "seats, error",
        [
            ([], exceptions.MissingParameter),
            ([0, 1], exceptions.InvalidValue),
            ([-3], exceptions.InvalidValue),
            (list(range(1, 12)), exceptions.InvalidValue),
            ([2.5], exceptions.InvalidValue),
            (["a", "b"], exceptions.InvalidValue),
            ([True], exceptions.InvalidValue),
        ],
    )
    def test_invalid_seat_requests(self, session, passenger, bus, seats, error):
        with pytest.raises(error):
            reservation.createBooking(
                session, passenger.id, bus.id, TRAVEL_DATE, seats, Decimal("450")
            )

    def test_negative_price(self, session, passenger, bus):
        with pytest.raises(exceptions.InvalidValue):
            reservation.createBooking(
                session, passenger.id, bus.id, TRAVEL_DATE, [1], Decimal("-1")
            )

    def test_malformed_travel_date(self, session, passenger, bus):
        with pytest.raises(exceptions.InvalidValue):
            reservation.createBooking(
                session, passenger.id, bus.id, "2030-01-15", [1], Decimal("450")
            )

    def test_concurrent_requests_for_the_same_seat(self, session_maker, passenger, bus):
        # Given: several passengers racing for seat 12
        attempts = 6
        barrier = Barrier(attempts)
        results = []

        def book():
            session = session_maker()
            try:
                barrier.wait()
                results.append(
                    reservation.createBooking(
                        session, passenger.id, bus.id, TRAVEL_DATE, [12], Decimal("450")
                    )
                )
            except exceptions.SeatConflict as e:
                results.append(e)
            finally:
                session.close()

        # When
        threads = [Thread(target=book) for _ in range(attempts)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        # Then: exactly one request wins, every other one reports the seat
        successes = [result for result in results if isinstance(result, list)]
        conflicts = [result for result in results if isinstance(result, Exception)]
        assert len(successes) == 1
        assert len(conflicts) == attempts - 1
        assert all(conflict.seat_number == 12 for conflict in conflicts)
        assert activeSeats(session_maker, bus) == [12]

    def test_active_seat_index_rejects_duplicates(self, session, passenger, bus):
        session.add_all(
            [
                Booking(
                    user_id=passenger.id,
                    bus_id=bus.id,
                    seat_number=9,
                    travel_date=TRAVEL_DATE,
                    price=Decimal("450"),
                    status=BookingStatus.ACTIVE,
                )
                for _ in range(2)
            ]
        )

        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()


class PostgresLockError(Exception):
    diag = SimpleNamespace(sqlstate=LOCK_NOT_AVAILABLE)


def failOnSeat(monkeypatch, session, seat, error):
    """Make the flush of the booking for `seat` raise `error`."""
    flush = session.flush

    def failingFlush(*args, **kwargs):
        if any(
            isinstance(record, Booking) and record.seat_number == seat
            for record in session.new
        ):
            raise error
        return flush(*args, **kwargs)

    monkeypatch.setattr(session, "flush", failingFlush)


class TestBookingFailures:
    @pytest.mark.parametrize(
        "orig, error",
        [
            (sqlite3.OperationalError("database is locked"), exceptions.LockAcquireTimeout),
            (PostgresLockError("canceling statement due to lock timeout"), exceptions.LockAcquireTimeout),
            (sqlite3.OperationalError("disk I/O error"), exceptions.StorageError),
        ],
    )
    def test_failure_on_second_seat_books_nothing(
        self, session, session_maker, monkeypatch, passenger, bus, orig, error
    ):
        # Given: the second seat of the request fails to flush
        failOnSeat(monkeypatch, session, 6, OperationalError("INSERT", {}, orig))

        # When
        with pytest.raises(error):
            reservation.createBooking(
                session, passenger.id, bus.id, TRAVEL_DATE, [5, 6], Decimal("450")
            )

        # Then: the first seat was rolled back as well
        assert activeSeats(session_maker, bus) == []

    def test_busy_database_reports_lock_timeout(
        self, engine, session_maker, monkeypatch, passenger, bus
    ):
        # Given: another transaction holds the SQLite write lock
        monkeypatch.setattr(db, "SQLITE_BUSY_TIMEOUT", 0.2)
        impatientEngine = createEngine(engine.url.render_as_string(hide_password=False))
        holder = session_maker()
        holder.execute(text("SELECT 1"))
        session = createSessionMaker(impatientEngine)()

        try:
            # When / Then
            with pytest.raises(exceptions.LockAcquireTimeout) as error:
                reservation.createBooking(
                    session, passenger.id, bus.id, TRAVEL_DATE, [1], Decimal("450")
                )
            assert error.value.status_code == 409
        finally:
            session.close()
            holder.close()
            impatientEngine.dispose()

        assert activeSeats(session_maker, bus) == []


class TestBookingQueries:
    def test_booked_seats_only_lists_active_bookings(
        self, session, factory, passenger, bus
    ):
        factory.booking(passenger, bus, 8)
        factory.booking(passenger, bus, 2)
        factory.booking(passenger, bus, 5, status=BookingStatus.CANCELLED)
        factory.booking(passenger, bus, 6, status=BookingStatus.COMPLETED)

        assert reservation.getBookedSeats(session, bus.id, TRAVEL_DATE) == [2, 8]
        assert reservation.getBookedSeats(session, 999, TRAVEL_DATE) == []

    def test_booking_detail(self, session, factory, passenger, bus):
        booking = factory.booking(passenger, bus, 3)

        detail = reservation.getBookingDetail(session, booking.id)

        assert detail["id"] == booking.id
        assert detail["seat_number"] == 3
        assert detail["status"] == BookingStatus.ACTIVE
        assert detail["passenger_name"] == "Passenger"
        assert detail["passenger_email"] == "passenger@busline.com"
        assert detail["registration_number"] == bus.registration_number
        assert detail["seat_count"] == 40
        assert detail["start_point"] == "Colombo"
        assert detail["end_point"] == "Kandy"

    def test_booking_detail_unknown_booking(self, session):
        with pytest.raises(exceptions.InvalidIdentifier):
            reservation.getBookingDetail(session, 999)
