from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busline.api.bearer import bearer_account
from busline.api.route import RouteSchema
from busline.src.constants import MAX_BUS_SEAT_COUNT, REGEX_REGISTRATION_NUMBER
from busline.src.db import Account, Bus, Route
from busline.src import directory, exceptions, validators, getters
from busline.src.enums import AccountRole, OrderIn, ServiceClass
from busline.src.loggers import logEvent
from busline.src.functions import (
    enumStr,
    fuseExceptionResponses,
    promoteToParent,
    updateIfChanged,
)
from busline.src.urls import URL_BUS

route_member = APIRouter()
route_public = APIRouter()


## Output Schema
class BusSchema(BaseModel):
    id: int
    registration_number: str
    route_id: int
    owner_id: Optional[int]
    seat_count: int
    service: int
    is_active: bool
    permit_link: Optional[str]
    updated_on: Optional[datetime]
    created_on: datetime


class RouteBusSchema(BaseModel):
    bus: BusSchema
    route: RouteSchema


## Input Forms
class CreateFormForBO(BaseModel):
    registration_number: str = Field(
        Form(max_length=16, pattern=REGEX_REGISTRATION_NUMBER)
    )
    route_id: int = Field(Form())
    seat_count: int = Field(Form(gt=0, le=MAX_BUS_SEAT_COUNT))
    service: ServiceClass = Field(
        Form(description=enumStr(ServiceClass), default=ServiceClass.NORMAL)
    )
    permit_link: str | None = Field(Form(max_length=2048, default=None))


class CreateForm(CreateFormForBO):
    owner_id: int | None = Field(Form(default=None))


class UpdateForm(BaseModel):
    id: int = Field(Form())
    route_id: int | None = Field(Form(default=None))
    seat_count: int | None = Field(Form(gt=0, le=MAX_BUS_SEAT_COUNT, default=None))
    service: ServiceClass | None = Field(
        Form(description=enumStr(ServiceClass), default=None)
    )
    is_active: bool | None = Field(Form(default=None))
    permit_link: str | None = Field(Form(max_length=2048, default=None))


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    seat_count = 2
    updated_on = 3
    created_on = 4


class QueryParamsForBO(BaseModel):
    registration_number: str | None = Field(Query(default=None))
    route_id: int | None = Field(Query(default=None))
    service: ServiceClass | None = Field(
        Query(default=None, description=enumStr(ServiceClass))
    )
    is_active: bool | None = Field(Query(default=None))
    # id based
    id: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # seat_count based
    seat_count_ge: int | None = Field(Query(default=None))
    seat_count_le: int | None = Field(Query(default=None))
    # created_on based
    created_on_ge: datetime | None = Field(Query(default=None))
    created_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


class QueryParams(QueryParamsForBO):
    owner_id: int | None = Field(Query(default=None))


class RouteQueryParams(BaseModel):
    start_point: str = Field(Query(min_length=1, max_length=128))
    end_point: str = Field(Query(min_length=1, max_length=128))


## Function
def updateBus(bus: Bus, fParam: UpdateForm):
    updateIfChanged(
        bus,
        fParam,
        [
            Bus.route_id.key,
            Bus.seat_count.key,
            Bus.service.key,
            Bus.is_active.key,
            Bus.permit_link.key,
        ],
    )


def searchBus(session: Session, qParam: QueryParams) -> List[Bus]:
    query = session.query(Bus)

    # Filters
    if qParam.owner_id is not None:
        query = query.filter(Bus.owner_id == qParam.owner_id)
    if qParam.registration_number is not None:
        query = query.filter(
            Bus.registration_number.ilike(f"%{qParam.registration_number}%")
        )
    if qParam.route_id is not None:
        query = query.filter(Bus.route_id == qParam.route_id)
    if qParam.service is not None:
        query = query.filter(Bus.service == qParam.service)
    if qParam.is_active is not None:
        query = query.filter(Bus.is_active.is_(qParam.is_active))
    # id based
    if qParam.id is not None:
        query = query.filter(Bus.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(Bus.id.in_(qParam.id_list))
    # seat_count based
    if qParam.seat_count_ge is not None:
        query = query.filter(Bus.seat_count >= qParam.seat_count_ge)
    if qParam.seat_count_le is not None:
        query = query.filter(Bus.seat_count <= qParam.seat_count_le)
    # created_on based
    if qParam.created_on_ge is not None:
        query = query.filter(Bus.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(Bus.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(Bus, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints [Member]
@route_member.post(
    URL_BUS,
    tags=["Bus"],
    response_model=BusSchema,
    status_code=status.HTTP_201_CREATED,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.UnknownValue(Bus.route_id),
            exceptions.InvalidValue(Bus.owner_id),
            exceptions.UniqueViolation("For registration_number value ..."),
        ]
    ),
    description="""
    Register a new bus on a route.
    Requires an ADMIN or BUS_OWNER account.
    A BUS_OWNER always registers the bus under their own account; the owner_id form field is ignored.
    An ADMIN may set owner_id to any BUS_OWNER account, or leave the bus without an owner.
    The registration number must be unique.
    Log the bus creation activity with the associated token.
    """,
)
async def create_bus(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_account),
    request_info=Depends(getters.requestInfo),
    session_maker=Depends(getters.sessionMaker),
):
    session = session_maker()
    try:
        token = validators.accountToken(bearer.credentials, session)
        account = getters.account(token, session)
        validators.accountRole(account, [AccountRole.ADMIN, AccountRole.BUS_OWNER])

        route = session.query(Route).filter(Route.id == fParam.route_id).first()
        if route is None:
            raise exceptions.UnknownValue(Bus.route_id)

        if account.role == AccountRole.BUS_OWNER:
            ownerID = account.id
        else:
            ownerID = fParam.owner_id
            if ownerID is not None:
                owner = session.query(Account).filter(Account.id == ownerID).first()
                if owner is None or owner.role != AccountRole.BUS_OWNER:
                    raise exceptions.InvalidValue(Bus.owner_id)

        bus = Bus(
            registration_number=fParam.registration_number,
            route_id=fParam.route_id,
            owner_id=ownerID,
            seat_count=fParam.seat_count,
            service=fParam.service,
            permit_link=fParam.permit_link,
        )
        session.add(bus)
        session.commit()
        session.refresh(bus)

        busData = jsonable_encoder(bus)
        logEvent(token, request_info, busData)
        return busData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_member.patch(
    URL_BUS,
    tags=["Bus"],
    response_model=BusSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
            exceptions.UnknownValue(Bus.route_id),
        ]
    ),
    description="""
    Update an existing bus by ID.
    Requires an ADMIN account, or the BUS_OWNER that owns the bus.
    Only the route, seat count, service class, active flag and permit link can be changed.
    Deactivated buses are hidden from search and cannot be booked; existing bookings are kept.
    Log the bus update activity with the associated token.
    """,
)
async def update_bus(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_account),
    request_info=Depends(getters.requestInfo),
    session_maker=Depends(getters.sessionMaker),
):
    session = session_maker()
    try:
        token = validators.accountToken(bearer.credentials, session)
        account = getters.account(token, session)
        validators.accountRole(account, [AccountRole.ADMIN, AccountRole.BUS_OWNER])

        bus = session.query(Bus).filter(Bus.id == fParam.id).first()
        if bus is None:
            raise exceptions.InvalidIdentifier()
        if account.role == AccountRole.BUS_OWNER and bus.owner_id != account.id:
            raise exceptions.NoPermission()
        if fParam.route_id is not None:
            route = session.query(Route).filter(Route.id == fParam.route_id).first()
            if route is None:
                raise exceptions.UnknownValue(Bus.route_id)

        updateBus(bus, fParam)
        haveUpdates = session.is_modified(bus)
        if haveUpdates:
            session.commit()
            session.refresh(bus)

        busData = jsonable_encoder(bus)
        if haveUpdates:
            logEvent(token, request_info, busData)
        return busData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_member.get(
    URL_BUS,
    tags=["Bus"],
    response_model=List[BusSchema],
    responses=fuseExceptionResponses(
        [exceptions.InvalidToken(), exceptions.NoPermission()]
    ),
    description="""
    Fetch the list of buses.
    An ADMIN sees every bus and may filter by owner_id.
    A BUS_OWNER only sees their own buses.
    Supports filtering, sorting, and pagination.
    """,
)
async def fetch_buses(
    qParam: QueryParams = Depends(),
    bearer=Depends(bearer_account),
    session_maker=Depends(getters.sessionMaker),
):
    session = session_maker()
    try:
        token = validators.accountToken(bearer.credentials, session)
        account = getters.account(token, session)
        validators.accountRole(account, [AccountRole.ADMIN, AccountRole.BUS_OWNER])

        if account.role == AccountRole.BUS_OWNER:
            qParam = promoteToParent(qParam, QueryParams, owner_id=account.id)
        return searchBus(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Public]
@route_public.get(
    URL_BUS,
    tags=["Bus"],
    response_model=List[RouteBusSchema],
    description="""
    List the active buses on the route between the given start and end point.
    Both points must match exactly.
    Returns an empty list when no route or no active bus exists.
    No authentication required.
    """,
)
async def fetch_route_buses(
    qParam: RouteQueryParams = Depends(),
    session_maker=Depends(getters.sessionMaker),
):
    session = session_maker()
    try:
        buses = directory.findBusesByRoute(session, qParam.start_point, qParam.end_point)
        return [{"bus": bus, "route": route} for bus, route in buses]
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
