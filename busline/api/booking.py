from datetime import date, datetime
from decimal import Decimal
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busline.api.bearer import bearer_account
from busline.src.constants import MAX_SEATS_PER_BOOKING
from busline.src.db import Account, Booking, Bus
from busline.src import artifact, exceptions, lifecycle, reservation
from busline.src import validators, getters
from busline.src.enums import AccountRole, BookingStatus, OrderIn
from busline.src.loggers import logEvent
from busline.src.functions import enumStr, fuseExceptionResponses, promoteToParent
from busline.src.urls import (
    URL_BOOKING,
    URL_BOOKING_ARTIFACT,
    URL_BOOKING_DETAIL,
    URL_BOOKING_SEAT,
)

route_member = APIRouter()
route_public = APIRouter()


## Output Schema
class BookingSchema(BaseModel):
    id: int
    user_id: int
    bus_id: int
    seat_number: int
    travel_date: date
    price: Decimal
    status: int
    qr_code: Optional[str]
    updated_on: Optional[datetime]
    created_on: datetime


class BookingDetailSchema(BookingSchema):
    passenger_name: Optional[str]
    passenger_phone: Optional[str]
    passenger_email: Optional[str]
    registration_number: str
    service: int
    seat_count: int
    route_name: str
    start_point: str
    end_point: str


class CreatedBookingSchema(BaseModel):
    booking_ids: List[int]


## Input Forms
class CreateForm(BaseModel):
    bus_id: int = Field(Body())
    seat_numbers: List[int] = Field(
        Body(min_length=1, max_length=MAX_SEATS_PER_BOOKING)
    )
    travel_date: date = Field(Body())
    price: Decimal = Field(Body(ge=0, max_digits=10, decimal_places=2))


class UpdateForm(BaseModel):
    id: int = Field(Form())
    status: BookingStatus = Field(Form(description=enumStr(BookingStatus)))


class ArtifactForm(BaseModel):
    id: int = Field(Form())


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    travel_date = 2
    seat_number = 3
    updated_on = 4
    created_on = 5


class QueryParams(BaseModel):
    bus_id: int | None = Field(Query(default=None))
    seat_number: int | None = Field(Query(default=None))
    # travel_date based
    travel_date: date | None = Field(Query(default=None))
    travel_date_ge: date | None = Field(Query(default=None))
    travel_date_le: date | None = Field(Query(default=None))
    # status based
    status: BookingStatus | None = Field(
        Query(default=None, description=enumStr(BookingStatus))
    )
    status_list: List[BookingStatus] | None = Field(
        Query(default=None, description=enumStr(BookingStatus))
    )
    # id based
    id: int | None = Field(Query(default=None))
    id_ge: int | None = Field(Query(default=None))
    id_le: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # created_on based
    created_on_ge: datetime | None = Field(Query(default=None))
    created_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


class QueryParamsForAD(QueryParams):
    user_id: int | None = Field(Query(default=None))


class DetailQueryParams(BaseModel):
    id: int = Field(Query())


class SeatQueryParams(BaseModel):
    bus_id: int = Field(Query())
    travel_date: date = Field(Query())


## Function
def searchBooking(session: Session, qParam: QueryParamsForAD) -> List[Booking]:
    query = session.query(Booking)

    # Filters
    if qParam.user_id is not None:
        query = query.filter(Booking.user_id == qParam.user_id)
    if qParam.bus_id is not None:
        query = query.filter(Booking.bus_id == qParam.bus_id)
    if qParam.seat_number is not None:
        query = query.filter(Booking.seat_number == qParam.seat_number)
    # travel_date based
    if qParam.travel_date is not None:
        query = query.filter(Booking.travel_date == qParam.travel_date)
    if qParam.travel_date_ge is not None:
        query = query.filter(Booking.travel_date >= qParam.travel_date_ge)
    if qParam.travel_date_le is not None:
        query = query.filter(Booking.travel_date <= qParam.travel_date_le)
    # status based
    if qParam.status is not None:
        query = query.filter(Booking.status == qParam.status)
    if qParam.status_list is not None:
        query = query.filter(Booking.status.in_(qParam.status_list))
    # id based
    if qParam.id is not None:
        query = query.filter(Booking.id == qParam.id)
    if qParam.id_ge is not None:
        query = query.filter(Booking.id >= qParam.id_ge)
    if qParam.id_le is not None:
        query = query.filter(Booking.id <= qParam.id_le)
    if qParam.id_list is not None:
        query = query.filter(Booking.id.in_(qParam.id_list))
    # created_on based
    if qParam.created_on_ge is not None:
        query = query.filter(Booking.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(Booking.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(Booking, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


def canViewBooking(session: Session, account: Account, booking: Booking) -> bool:
    if account.role == AccountRole.ADMIN or booking.user_id == account.id:
        return True
    if account.role == AccountRole.BUS_OWNER:
        bus = session.query(Bus).filter(Bus.id == booking.bus_id).first()
        return bus is not None and bus.owner_id == account.id
    if account.role == AccountRole.CONDUCTOR:
        return getters.activeAssignment(session, account.id, booking.bus_id) is not None
    return False


## API endpoints [Member]
@route_member.post(
    URL_BOOKING,
    tags=["Booking"],
    response_model=CreatedBookingSchema,
    status_code=status.HTTP_201_CREATED,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.MissingParameter(Booking.seat_number),
            exceptions.InvalidValue(Booking.seat_number),
            exceptions.UnknownValue(Booking.bus_id),
            exceptions.InactiveResource(Bus),
            exceptions.SeatConflict(1),
            exceptions.LockAcquireTimeout(),
            exceptions.StorageError(),
        ]
    ),
    description="""
    Book one or more seats on a bus for a travel date.
    Every requested seat is booked in one transaction: if any seat is already held by an ACTIVE booking, nothing is booked and the conflicting seat is reported.
    Duplicate seat numbers in the request are collapsed; at most MAX_SEATS_PER_BOOKING seats can be booked at once.
    Seat numbers must lie between 1 and the seat count of the bus, and the bus must be active.
    The price is recorded per seat as supplied by the client.
    The created booking ids are returned in seat order.
    A QR code is attached to every booking after the response is sent; a failure there does not undo the booking.
    Log the booking creation activity with the associated token.
    """,
)
async def create_booking(
    background_tasks: BackgroundTasks,
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_account),
    request_info=Depends(getters.requestInfo),
    session_maker=Depends(getters.sessionMaker),
    minio_client=Depends(getters.minioClient),
):
    session = session_maker()
    try:
        token = validators.accountToken(bearer.credentials, session)
        # Release the read transaction opened by the token lookup
        session.commit()

        bookingIds = reservation.createBooking(
            session,
            token.account_id,
            fParam.bus_id,
            fParam.travel_date,
            fParam.seat_numbers,
            fParam.price,
        )
        background_tasks.add_task(
            artifact.attachArtifacts,
            session_maker,
            minio_client,
            bookingIds,
            token.account_id,
        )

        bookingData = jsonable_encoder(fParam)
        bookingData["booking_ids"] = bookingIds
        logEvent(token, request_info, bookingData)
        return {"booking_ids": bookingIds}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_member.patch(
    URL_BOOKING,
    tags=["Booking"],
    response_model=BookingSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
            exceptions.InvalidStateTransition(Booking.status),
        ]
    ),
    description="""
    Change the status of a booking.
    CANCELLED can be set by the passenger who owns the booking or by an ADMIN; cancelling a cancelled booking changes nothing.
    COMPLETED can be set by an ADMIN, or by a CONDUCTOR with an active assignment on the bus of the booking.
    A cancelled booking releases its seat immediately.

    Allowed status transitions:
        ACTIVE → COMPLETED
        ACTIVE → CANCELLED
    """,
)
async def update_booking(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_account),
    request_info=Depends(getters.requestInfo),
    session_maker=Depends(getters.sessionMaker),
):
    session = session_maker()
    try:
        token = validators.accountToken(bearer.credentials, session)
        account = getters.account(token, session)

        booking = session.query(Booking).filter(Booking.id == fParam.id).first()
        if booking is None:
            raise exceptions.InvalidIdentifier()
        previousStatus = booking.status

        if fParam.status == BookingStatus.CANCELLED:
            if account.role != AccountRole.ADMIN and booking.user_id != account.id:
                raise exceptions.NoPermission()
            booking = lifecycle.cancelBooking(session, booking.id)
        elif fParam.status == BookingStatus.COMPLETED:
            if account.role == AccountRole.CONDUCTOR:
                assignment = getters.activeAssignment(session, account.id, booking.bus_id)
                if assignment is None:
                    raise exceptions.NoPermission()
            booking = lifecycle.completeBooking(session, booking.id, account.role)
        else:
            raise exceptions.InvalidStateTransition(Booking.status)

        bookingData = jsonable_encoder(booking)
        if booking.status != previousStatus:
            logEvent(token, request_info, bookingData)
        return bookingData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_member.get(
    URL_BOOKING,
    tags=["Booking"],
    response_model=List[BookingSchema],
    responses=fuseExceptionResponses([exceptions.InvalidToken()]),
    description="""
    Fetch the list of bookings.
    An ADMIN sees every booking and may filter by user_id.
    Every other account only sees their own bookings.
    Supports filtering, sorting, and pagination.
    """,
)
async def fetch_booking(
    qParam: QueryParamsForAD = Depends(),
    bearer=Depends(bearer_account),
    session_maker=Depends(getters.sessionMaker),
):
    session = session_maker()
    try:
        token = validators.accountToken(bearer.credentials, session)
        account = getters.account(token, session)

        if account.role != AccountRole.ADMIN:
            qParam = promoteToParent(qParam, QueryParamsForAD, user_id=account.id)
        return searchBooking(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_member.get(
    URL_BOOKING_DETAIL,
    tags=["Booking"],
    response_model=BookingDetailSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
        ]
    ),
    description="""
    Fetch a booking together with passenger, bus and route details.
    Visible to the passenger who owns the booking, ADMIN accounts, the owner of the bus,
    and conductors with an active assignment on the bus.
    """,
)
async def fetch_booking_detail(
    qParam: DetailQueryParams = Depends(),
    bearer=Depends(bearer_account),
    session_maker=Depends(getters.sessionMaker),
):
    session = session_maker()
    try:
        token = validators.accountToken(bearer.credentials, session)
        account = getters.account(token, session)

        booking = session.query(Booking).filter(Booking.id == qParam.id).first()
        if booking is None:
            raise exceptions.InvalidIdentifier()
        if not canViewBooking(session, account, booking):
            raise exceptions.NoPermission()

        return reservation.getBookingDetail(session, booking.id)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_member.post(
    URL_BOOKING_ARTIFACT,
    tags=["Booking"],
    response_model=BookingSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
            exceptions.ArtifactError(1),
        ]
    ),
    description="""
    Render and upload the QR code of a booking again, and link it to the booking.
    Only ADMIN accounts can trigger this.
    The QR code object of a booking always has the same name, so the previous upload is replaced.
    Runs synchronously; an upload failure is reported as ArtifactError.
    Log the artifact activity with the associated token.
    """,
)
async def attach_artifact(
    fParam: ArtifactForm = Depends(),
    bearer=Depends(bearer_account),
    request_info=Depends(getters.requestInfo),
    session_maker=Depends(getters.sessionMaker),
    minio_client=Depends(getters.minioClient),
):
    session = session_maker()
    try:
        token = validators.accountToken(bearer.credentials, session)
        account = getters.account(token, session)
        validators.accountRole(account, [AccountRole.ADMIN])

        booking = session.query(Booking).filter(Booking.id == fParam.id).first()
        if booking is None:
            raise exceptions.InvalidIdentifier()

        artifact.attachArtifact(session, minio_client, booking.id, booking.user_id)
        session.refresh(booking)

        bookingData = jsonable_encoder(booking)
        logEvent(token, request_info, bookingData)
        return bookingData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Public]
@route_public.get(
    URL_BOOKING_SEAT,
    tags=["Booking"],
    response_model=List[int],
    description="""
    List the seat numbers held by ACTIVE bookings on a bus for a travel date, ascending.
    Seats of cancelled or completed bookings are free again and not listed.
    No authentication required.
    """,
)
async def fetch_booked_seats(
    qParam: SeatQueryParams = Depends(),
    session_maker=Depends(getters.sessionMaker),
):
    session = session_maker()
    try:
        return reservation.getBookedSeats(session, qParam.bus_id, qParam.travel_date)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
