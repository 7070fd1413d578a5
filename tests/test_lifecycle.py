from decimal import Decimal

import pytest

from busline.src import exceptions, lifecycle, reservation
from busline.src.db import Booking
from busline.src.enums import AccountRole, BookingStatus

from conftest import TRAVEL_DATE


@pytest.fixture
def passenger(factory):
    return factory.account("passenger")


@pytest.fixture
def bus(factory):
    return factory.bus(factory.route())


def statusOf(session_maker, bookingId):
    with session_maker() as session:
        return session.get(Booking, bookingId).status


class TestCompleteBooking:
    @pytest.mark.parametrize("role", [AccountRole.CONDUCTOR, AccountRole.ADMIN])
    def test_active_booking_is_completed(
        self, session, session_maker, factory, passenger, bus, role
    ):
        booking = factory.booking(passenger, bus, 1)

        result = lifecycle.completeBooking(session, booking.id, role)

        assert result.status == BookingStatus.COMPLETED
        assert statusOf(session_maker, booking.id) == BookingStatus.COMPLETED

    @pytest.mark.parametrize(
        "status", [BookingStatus.COMPLETED, BookingStatus.CANCELLED]
    )
    def test_terminal_booking_cannot_be_completed(
        self, session, session_maker, factory, passenger, bus, status
    ):
        booking = factory.booking(passenger, bus, 1, status=status)

        with pytest.raises(exceptions.InvalidStateTransition):
            lifecycle.completeBooking(session, booking.id, AccountRole.CONDUCTOR)

        assert statusOf(session_maker, booking.id) == status

    def test_unknown_booking(self, session):
        with pytest.raises(exceptions.InvalidIdentifier):
            lifecycle.completeBooking(session, 999, AccountRole.ADMIN)

    @pytest.mark.parametrize("role", [AccountRole.PASSENGER, AccountRole.BUS_OWNER])
    def test_other_roles_are_forbidden(
        self, session, session_maker, factory, passenger, bus, role
    ):
        booking = factory.booking(passenger, bus, 1)

        with pytest.raises(exceptions.NoPermission):
            lifecycle.completeBooking(session, booking.id, role)

        assert statusOf(session_maker, booking.id) == BookingStatus.ACTIVE


class TestCancelBooking:
    def test_active_booking_is_cancelled(
        self, session, session_maker, factory, passenger, bus
    ):
        booking = factory.booking(passenger, bus, 1)

        result = lifecycle.cancelBooking(session, booking.id)

        assert result.status == BookingStatus.CANCELLED
        assert statusOf(session_maker, booking.id) == BookingStatus.CANCELLED

    def test_cancelling_twice_changes_nothing(self, session, factory, passenger, bus):
        booking = factory.booking(passenger, bus, 1, status=BookingStatus.CANCELLED)

        result = lifecycle.cancelBooking(session, booking.id)

        assert result.status == BookingStatus.CANCELLED

    def test_completed_booking_cannot_be_cancelled(
        self, session, session_maker, factory, passenger, bus
    ):
        booking = factory.booking(passenger, bus, 1, status=BookingStatus.COMPLETED)

        with pytest.raises(exceptions.InvalidStateTransition):
            lifecycle.cancelBooking(session, booking.id)

        session.rollback()
        assert statusOf(session_maker, booking.id) == BookingStatus.COMPLETED

    def test_unknown_booking(self, session):
        with pytest.raises(exceptions.InvalidIdentifier):
            lifecycle.cancelBooking(session, 999)

    def test_cancelled_seat_is_bookable_again(
        self, session, session_maker, factory, passenger, bus
    ):
        booking = factory.booking(passenger, bus, 5)

        lifecycle.cancelBooking(session, booking.id)
        bookingIds = reservation.createBooking(
            session, passenger.id, bus.id, TRAVEL_DATE, [5], Decimal("450")
        )

        assert len(bookingIds) == 1
        with session_maker() as other:
            assert reservation.getBookedSeats(other, bus.id, TRAVEL_DATE) == [5]
