from datetime import datetime
from decimal import Decimal
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busline.api.bearer import bearer_account
from busline.src.db import Route
from busline.src import directory, exceptions, validators, getters
from busline.src.enums import AccountRole, OrderIn
from busline.src.loggers import logEvent
from busline.src.functions import enumStr, fuseExceptionResponses, updateIfChanged
from busline.src.urls import URL_ROUTE, URL_ROUTE_END_POINT, URL_ROUTE_START_POINT

route_member = APIRouter()
route_public = APIRouter()


## Output Schema
class RouteSchema(BaseModel):
    id: int
    start_point: str
    end_point: str
    name: str
    price: Decimal
    distance: Optional[Decimal]
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    start_point: str = Field(Form(min_length=1, max_length=128))
    end_point: str = Field(Form(min_length=1, max_length=128))
    name: str | None = Field(Form(max_length=256, default=None))
    price: Decimal = Field(Form(ge=0, max_digits=10, decimal_places=2))
    distance: Decimal | None = Field(
        Form(ge=0, max_digits=10, decimal_places=2, default=None)
    )


class UpdateForm(BaseModel):
    id: int = Field(Form())
    name: str | None = Field(Form(max_length=256, default=None))
    price: Decimal | None = Field(
        Form(ge=0, max_digits=10, decimal_places=2, default=None)
    )
    distance: Decimal | None = Field(
        Form(ge=0, max_digits=10, decimal_places=2, default=None)
    )


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    price = 2
    distance = 3
    updated_on = 4
    created_on = 5


class QueryParams(BaseModel):
    start_point: str | None = Field(Query(default=None))
    end_point: str | None = Field(Query(default=None))
    name: str | None = Field(Query(default=None))
    # id based
    id: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # price based
    price_ge: Decimal | None = Field(Query(default=None))
    price_le: Decimal | None = Field(Query(default=None))
    # created_on based
    created_on_ge: datetime | None = Field(Query(default=None))
    created_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def updateRoute(route: Route, fParam: UpdateForm):
    updateIfChanged(
        route, fParam, [Route.name.key, Route.price.key, Route.distance.key]
    )


def searchRoute(session: Session, qParam: QueryParams) -> List[Route]:
    query = session.query(Route)

    # Filters
    if qParam.start_point is not None:
        query = query.filter(Route.start_point == qParam.start_point)
    if qParam.end_point is not None:
        query = query.filter(Route.end_point == qParam.end_point)
    if qParam.name is not None:
        query = query.filter(Route.name.ilike(f"%{qParam.name}%"))
    # id based
    if qParam.id is not None:
        query = query.filter(Route.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(Route.id.in_(qParam.id_list))
    # price based
    if qParam.price_ge is not None:
        query = query.filter(Route.price >= qParam.price_ge)
    if qParam.price_le is not None:
        query = query.filter(Route.price <= qParam.price_le)
    # created_on based
    if qParam.created_on_ge is not None:
        query = query.filter(Route.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(Route.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(Route, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints [Member]
@route_member.post(
    URL_ROUTE,
    tags=["Route"],
    response_model=RouteSchema,
    status_code=status.HTTP_201_CREATED,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.UniqueViolation("For start_point, end_point value ..."),
        ]
    ),
    description="""
    Create a new route between two points.
    Only ADMIN accounts can create routes.
    A route between the same start and end point can exist only once.
    If the name is omitted it is derived as "<start_point> -> <end_point>".
    Log the route creation activity with the associated token.
    """,
)
async def create_route(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_account),
    request_info=Depends(getters.requestInfo),
    session_maker=Depends(getters.sessionMaker),
):
    session = session_maker()
    try:
        token = validators.accountToken(bearer.credentials, session)
        account = getters.account(token, session)
        validators.accountRole(account, [AccountRole.ADMIN])

        route = Route(
            start_point=fParam.start_point,
            end_point=fParam.end_point,
            name=fParam.name or f"{fParam.start_point} -> {fParam.end_point}",
            price=fParam.price,
            distance=fParam.distance,
        )
        session.add(route)
        session.commit()
        session.refresh(route)

        routeData = jsonable_encoder(route)
        logEvent(token, request_info, routeData)
        return routeData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_member.patch(
    URL_ROUTE,
    tags=["Route"],
    response_model=RouteSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
        ]
    ),
    description="""
    Update the name, price or distance of an existing route.
    Only ADMIN accounts can update routes.
    The start and end points of a route are fixed once created.
    Log the route update activity with the associated token.
    """,
)
async def update_route(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_account),
    request_info=Depends(getters.requestInfo),
    session_maker=Depends(getters.sessionMaker),
):
    session = session_maker()
    try:
        token = validators.accountToken(bearer.credentials, session)
        account = getters.account(token, session)
        validators.accountRole(account, [AccountRole.ADMIN])

        route = session.query(Route).filter(Route.id == fParam.id).first()
        if route is None:
            raise exceptions.InvalidIdentifier()

        updateRoute(route, fParam)
        haveUpdates = session.is_modified(route)
        if haveUpdates:
            session.commit()
            session.refresh(route)

        routeData = jsonable_encoder(route)
        if haveUpdates:
            logEvent(token, request_info, routeData)
        return routeData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_member.get(
    URL_ROUTE,
    tags=["Route"],
    response_model=List[RouteSchema],
    responses=fuseExceptionResponses([exceptions.InvalidToken()]),
    description="""
    Fetch the list of routes.
    Available to every member with a valid token.
    Supports filtering, sorting, and pagination.
    """,
)
async def fetch_route(
    qParam: QueryParams = Depends(),
    bearer=Depends(bearer_account),
    session_maker=Depends(getters.sessionMaker),
):
    session = session_maker()
    try:
        validators.accountToken(bearer.credentials, session)

        return searchRoute(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Public]
@route_public.get(
    URL_ROUTE_START_POINT,
    tags=["Route"],
    response_model=List[str],
    description="""
    List every distinct route start point, sorted alphabetically.
    No authentication required.
    """,
)
async def fetch_start_points(session_maker=Depends(getters.sessionMaker)):
    session = session_maker()
    try:
        return directory.listStartPoints(session)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_public.get(
    URL_ROUTE_END_POINT,
    tags=["Route"],
    response_model=List[str],
    description="""
    List every distinct route end point, sorted alphabetically.
    No authentication required.
    """,
)
async def fetch_end_points(session_maker=Depends(getters.sessionMaker)):
    session = session_maker()
    try:
        return directory.listEndPoints(session)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
