from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from busline.src import availability, exceptions, getters
from busline.src.availability import BusAvailability
from busline.src.constants import MAX_BUS_SEAT_COUNT
from busline.src.enums import ServiceClass
from busline.src.functions import enumStr, fuseExceptionResponses
from busline.src.urls import URL_BUS_SEARCH

route_public = APIRouter()


## Output Schema
class SearchCriteria(BaseModel):
    start_point: str
    end_point: str
    travel_date: date
    seats: int
    service: Optional[int]


class SearchResultSchema(BaseModel):
    message: Optional[str] = None
    available_buses: List[BusAvailability]
    search_criteria: SearchCriteria


## Query Parameters
class QueryParams(BaseModel):
    start_point: str = Field(Query(min_length=1, max_length=128))
    end_point: str = Field(Query(min_length=1, max_length=128))
    travel_date: date = Field(Query())
    seats: int = Field(Query(default=1, gt=0, le=MAX_BUS_SEAT_COUNT))
    service: ServiceClass | None = Field(
        Query(default=None, description=enumStr(ServiceClass))
    )


## API endpoints [Public]
@route_public.get(
    URL_BUS_SEARCH,
    tags=["Search"],
    response_model=SearchResultSchema,
    response_model_exclude_none=True,
    responses=fuseExceptionResponses([exceptions.UnknownRoute()]),
    description="""
    Search the buses that can seat the requested number of passengers on a travel date.
    The route is matched exactly on start_point and end_point; an unknown route is reported as 404.
    Available seats are the bus seat count minus the ACTIVE bookings on that date.
    When service is given only buses of that service class are considered.
    Results are ordered by route price and then by bus id.
    When the route exists but no bus has enough free seats, a message is returned with an empty list.
    No authentication required.
    """,
)
async def search_buses(
    qParam: QueryParams = Depends(),
    session_maker=Depends(getters.sessionMaker),
):
    session = session_maker()
    try:
        buses = availability.searchBuses(
            session,
            qParam.start_point,
            qParam.end_point,
            qParam.travel_date,
            qParam.seats,
            qParam.service,
        )

        result = {"available_buses": buses, "search_criteria": qParam.model_dump()}
        if not buses:
            result["message"] = "No buses available for the selected criteria"
        return result
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
