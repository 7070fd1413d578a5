"""
Validation and permission checks for Busline API.

This module centralizes guard logic such as:
- Token validation
- Role-based permission checks
- State transition enforcement
- Seat request validation

All functions raise appropriate exceptions from `busline.src.exceptions`
when validation fails, ensuring consistent error handling.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, List
from sqlalchemy import Column
from sqlalchemy.orm.session import Session

from busline.src.db import Account, AccountToken, Booking
from busline.src.constants import MAX_SEATS_PER_BOOKING
from busline.src.enums import AccountRole, AccountStatus
from busline.src import exceptions
from busline.src.functions import isValidTransition


# ---------------------------------------------------------------------------
# Token validation
# ---------------------------------------------------------------------------
def accountToken(access_token: str, session: Session) -> AccountToken:
    """
    Validate an account access token.

    Args:
        access_token (str): The bearer token string provided by the client.
        session (Session): Active SQLAlchemy session for DB lookup.

    Returns:
        AccountToken: The valid token object from the database.

    Raises:
        exceptions.InvalidToken: If the token is not found, has expired, or
            belongs to an account that is no longer active.
    """
    current_time = datetime.now(timezone.utc)

    token = (
        session.query(AccountToken)
        .join(Account, Account.id == AccountToken.account_id)
        .filter(
            AccountToken.access_token == access_token,
            AccountToken.expires_at > current_time,
            Account.status == AccountStatus.ACTIVE,
        )
        .first()
    )

    if token is None:
        raise exceptions.InvalidToken()

    return token


# ---------------------------------------------------------------------------
# Permission checks
# ---------------------------------------------------------------------------
def accountRole(account: Account, roles: Iterable[AccountRole]) -> bool:
    """
    Validate that an account holds one of the given roles.

    Raises:
        exceptions.NoPermission: If the account role is not in `roles`.
    """
    if account is not None and account.role in roles:
        return True
    raise exceptions.NoPermission()


# ---------------------------------------------------------------------------
# Other validations
# ---------------------------------------------------------------------------
def stateTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any, state: Column
) -> bool:
    """
    Validate whether a state transition is allowed.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.
        state (Column): SQLAlchemy column representing the state
            (used to format error messages).

    Returns:
        bool: True if the transition is valid.

    Raises:
        exceptions.InvalidStateTransition: If the transition is not permitted.
    """
    if not isValidTransition(transitions, old_state, new_state):
        raise exceptions.InvalidStateTransition(state)
    return True


def seatNumbers(seats: Iterable[int]) -> List[int]:
    """
    Normalize a seat request into the ascending list of distinct seat numbers.

    Raises:
        exceptions.MissingParameter: If no seat is requested.
        exceptions.InvalidValue: If a seat is not a positive integer or the
            request exceeds MAX_SEATS_PER_BOOKING seats.
    """
    seats = list(seats or [])
    if not seats:
        raise exceptions.MissingParameter(Booking.seat_number)
    for seat in seats:
        # bool is an int subclass
        if isinstance(seat, bool) or not isinstance(seat, int):
            raise exceptions.InvalidValue(Booking.seat_number)
    seats = sorted(set(seats))
    if seats[0] < 1 or len(seats) > MAX_SEATS_PER_BOOKING:
        raise exceptions.InvalidValue(Booking.seat_number)
    return seats


def price(value: Decimal | float) -> Decimal:
    """Validate a client supplied seat price and return it as a Decimal."""
    try:
        value = Decimal(str(value))
    except (ArithmeticError, ValueError):
        raise exceptions.InvalidValue(Booking.price)
    if not value.is_finite() or value < 0:
        raise exceptions.InvalidValue(Booking.price)
    return value
