from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from busline.api.bearer import bearer_account
from busline.src.db import Account, Bus, ConductorBus
from busline.src import exceptions, validators, getters
from busline.src.enums import AccountRole, AccountStatus, OrderIn
from busline.src.loggers import logEvent
from busline.src.functions import enumStr, fuseExceptionResponses, promoteToParent
from busline.src.urls import URL_CONDUCTOR_BUS

route_member = APIRouter()


## Output Schema
class ConductorBusSchema(BaseModel):
    id: int
    conductor_id: int
    bus_id: int
    assigned_by: Optional[int]
    is_active: bool
    assigned_on: datetime
    updated_on: Optional[datetime]


## Input Forms
class CreateForm(BaseModel):
    conductor_id: int = Field(Form())
    bus_id: int = Field(Form())


class DeleteForm(BaseModel):
    id: int = Field(Form())


## Query Params
class OrderBy(IntEnum):
    id = 1
    assigned_on = 2
    updated_on = 3


class QueryParams(BaseModel):
    # Filters
    conductor_id: int | None = Field(Query(default=None))
    bus_id: int | None = Field(Query(default=None))
    is_active: bool | None = Field(Query(default=None))
    # id based
    id: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # assigned_on based
    assigned_on_ge: datetime | None = Field(Query(default=None))
    assigned_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


class QueryParamsForAD(QueryParams):
    owner_id: int | None = Field(Query(default=None))


## Function
def searchConductorBus(session: Session, qParam: QueryParamsForAD) -> List[ConductorBus]:
    query = session.query(ConductorBus)

    # Filters
    if qParam.owner_id is not None:
        query = query.join(Bus, Bus.id == ConductorBus.bus_id).filter(
            Bus.owner_id == qParam.owner_id
        )
    if qParam.conductor_id is not None:
        query = query.filter(ConductorBus.conductor_id == qParam.conductor_id)
    if qParam.bus_id is not None:
        query = query.filter(ConductorBus.bus_id == qParam.bus_id)
    if qParam.is_active is not None:
        query = query.filter(ConductorBus.is_active.is_(qParam.is_active))
    # id based
    if qParam.id is not None:
        query = query.filter(ConductorBus.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(ConductorBus.id.in_(qParam.id_list))
    # assigned_on based
    if qParam.assigned_on_ge is not None:
        query = query.filter(ConductorBus.assigned_on >= qParam.assigned_on_ge)
    if qParam.assigned_on_le is not None:
        query = query.filter(ConductorBus.assigned_on <= qParam.assigned_on_le)

    # Ordering
    orderingAttribute = getattr(ConductorBus, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


def canManageBus(account: Account, bus: Bus) -> bool:
    if account.role == AccountRole.ADMIN:
        return True
    return account.role == AccountRole.BUS_OWNER and bus.owner_id == account.id


## API endpoints [Member]
@route_member.post(
    URL_CONDUCTOR_BUS,
    tags=["Conductor Assignment"],
    response_model=ConductorBusSchema,
    status_code=status.HTTP_201_CREATED,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.UnknownValue(ConductorBus.conductor_id),
            exceptions.InvalidValue(ConductorBus.conductor_id),
            exceptions.InactiveResource(Account),
            exceptions.DuplicateAssignment(
                ConductorBus.conductor_id, ConductorBus.bus_id
            ),
        ]
    ),
    description="""
    Assign a conductor to a bus.
    Requires an ADMIN account, or the BUS_OWNER that owns the bus.
    The conductor must be an active account with the CONDUCTOR role.
    A conductor can hold only one active assignment for the same bus.
    An active assignment lets the conductor view and complete the bookings of the bus.
    Log the assignment activity with the associated token.
    """,
)
async def create_assignment(
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

        bus = session.query(Bus).filter(Bus.id == fParam.bus_id).first()
        if bus is None:
            raise exceptions.UnknownValue(ConductorBus.bus_id)
        if not canManageBus(account, bus):
            raise exceptions.NoPermission()

        conductor = (
            session.query(Account).filter(Account.id == fParam.conductor_id).first()
        )
        if conductor is None:
            raise exceptions.UnknownValue(ConductorBus.conductor_id)
        if conductor.role != AccountRole.CONDUCTOR:
            raise exceptions.InvalidValue(ConductorBus.conductor_id)
        if conductor.status != AccountStatus.ACTIVE:
            raise exceptions.InactiveResource(Account)

        assignment = getters.activeAssignment(session, conductor.id, bus.id)
        if assignment is not None:
            raise exceptions.DuplicateAssignment(
                ConductorBus.conductor_id, ConductorBus.bus_id
            )

        assignment = ConductorBus(
            conductor_id=conductor.id,
            bus_id=bus.id,
            assigned_by=account.id,
        )
        session.add(assignment)
        session.commit()
        session.refresh(assignment)

        assignmentData = jsonable_encoder(assignment)
        logEvent(token, request_info, assignmentData)
        return assignmentData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_member.delete(
    URL_CONDUCTOR_BUS,
    tags=["Conductor Assignment"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=fuseExceptionResponses(
        [exceptions.InvalidToken(), exceptions.NoPermission()]
    ),
    description="""
    Deactivate a conductor assignment by ID.
    Requires an ADMIN account, or the BUS_OWNER that owns the bus.
    The assignment is kept for history with is_active set to false.
    If the assignment does not exist or is already inactive, the operation is silently ignored.
    Log the deactivation activity with the associated token.
    """,
)
async def delete_assignment(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_account),
    request_info=Depends(getters.requestInfo),
    session_maker=Depends(getters.sessionMaker),
):
    session = session_maker()
    try:
        token = validators.accountToken(bearer.credentials, session)
        account = getters.account(token, session)
        validators.accountRole(account, [AccountRole.ADMIN, AccountRole.BUS_OWNER])

        assignment = (
            session.query(ConductorBus).filter(ConductorBus.id == fParam.id).first()
        )
        if assignment is None or not assignment.is_active:
            return Response(status_code=status.HTTP_204_NO_CONTENT)
        bus = session.query(Bus).filter(Bus.id == assignment.bus_id).first()
        if not canManageBus(account, bus):
            raise exceptions.NoPermission()

        assignment.is_active = False
        session.commit()
        session.refresh(assignment)
        logEvent(token, request_info, jsonable_encoder(assignment))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_member.get(
    URL_CONDUCTOR_BUS,
    tags=["Conductor Assignment"],
    response_model=List[ConductorBusSchema],
    responses=fuseExceptionResponses(
        [exceptions.InvalidToken(), exceptions.NoPermission()]
    ),
    description="""
    Fetch the list of conductor assignments.
    An ADMIN sees every assignment and may filter by the owner of the bus.
    A BUS_OWNER only sees the assignments on their own buses.
    A CONDUCTOR only sees their own assignments.
    Supports filtering, sorting, and pagination.
    """,
)
async def fetch_assignment(
    qParam: QueryParamsForAD = Depends(),
    bearer=Depends(bearer_account),
    session_maker=Depends(getters.sessionMaker),
):
    session = session_maker()
    try:
        token = validators.accountToken(bearer.credentials, session)
        account = getters.account(token, session)
        validators.accountRole(
            account,
            [AccountRole.ADMIN, AccountRole.BUS_OWNER, AccountRole.CONDUCTOR],
        )

        if account.role == AccountRole.BUS_OWNER:
            qParam = promoteToParent(qParam, QueryParamsForAD, owner_id=account.id)
        elif account.role == AccountRole.CONDUCTOR:
            qParam = promoteToParent(qParam, QueryParamsForAD, conductor_id=account.id)
        return searchConductorBus(session, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
