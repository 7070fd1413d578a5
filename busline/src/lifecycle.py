from sqlalchemy import update
from sqlalchemy.orm.session import Session

from busline.src import exceptions, validators
from busline.src.db import Booking
from busline.src.enums import AccountRole, BookingStatus

# COMPLETED and CANCELLED are terminal
BOOKING_TRANSITIONS = {
    BookingStatus.ACTIVE: [BookingStatus.COMPLETED, BookingStatus.CANCELLED],
    BookingStatus.COMPLETED: [],
    BookingStatus.CANCELLED: [],
}


def transitionBooking(
    session: Session, bookingId: int, target: BookingStatus, idempotent: bool = False
) -> Booking:
    """
    Move an ACTIVE booking to `target` with a conditional update.

    The update only matches while the booking is ACTIVE, so two concurrent
    transitions of the same booking cannot both succeed. When nothing
    matches, the booking is read back to report why. With `idempotent`, a
    booking already in `target` is returned unchanged.

    Raises:
        exceptions.InvalidIdentifier: If the booking does not exist.
        exceptions.InvalidStateTransition: If the booking is no longer ACTIVE.
    """
    try:
        result = session.execute(
            update(Booking)
            .where(Booking.id == bookingId)
            .where(Booking.status == BookingStatus.ACTIVE)
            .values(status=target)
            .execution_options(synchronize_session=False)
        )
        booking = session.query(Booking).filter(Booking.id == bookingId).first()
        if booking is None:
            raise exceptions.InvalidIdentifier()
        session.refresh(booking)
        if result.rowcount == 0 and not (idempotent and booking.status == target):
            validators.stateTransition(
                BOOKING_TRANSITIONS, booking.status, target, Booking.status
            )
        session.commit()
        return booking
    except Exception as e:
        session.rollback()
        exceptions.handle(e)


def completeBooking(session: Session, bookingId: int, role: AccountRole) -> Booking:
    """
    Mark a booking as COMPLETED once the journey is over.

    Only conductors and administrators may complete bookings.

    Raises:
        exceptions.NoPermission: If `role` is neither CONDUCTOR nor ADMIN.
        exceptions.InvalidIdentifier: If the booking does not exist.
        exceptions.InvalidStateTransition: If the booking is not ACTIVE.
    """
    if role not in [AccountRole.CONDUCTOR, AccountRole.ADMIN]:
        raise exceptions.NoPermission()
    return transitionBooking(session, bookingId, BookingStatus.COMPLETED)


def cancelBooking(session: Session, bookingId: int) -> Booking:
    """
    Cancel a booking, releasing its seat for new bookings.

    Cancelling an already cancelled booking changes nothing.

    Raises:
        exceptions.InvalidIdentifier: If the booking does not exist.
        exceptions.InvalidStateTransition: If the booking is COMPLETED.
    """
    return transitionBooking(
        session, bookingId, BookingStatus.CANCELLED, idempotent=True
    )
