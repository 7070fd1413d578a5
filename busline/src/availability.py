from datetime import date
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.orm.session import Session

from busline.src import exceptions
from busline.src.db import Booking, Bus, Route
from busline.src.enums import BookingStatus, ServiceClass


class BusAvailability(BaseModel):
    bus_id: int
    registration_number: str
    service: int
    seat_count: int
    available_seats: int
    route_id: int
    route_name: str
    start_point: str
    end_point: str
    price: Decimal
    distance: Optional[Decimal]


def searchBuses(
    session: Session,
    start: str,
    end: str,
    travelDate: date,
    seats: int,
    service: Optional[ServiceClass] = None,
) -> List[BusAvailability]:
    """
    Find the buses on a route that still have room for `seats` passengers.

    Remaining capacity is the bus seat count minus the ACTIVE bookings for
    the travel date. Cancelled and completed bookings free their seat.
    The booked counts come from one grouped subquery outer joined to the
    buses, so buses without any booking report their full capacity.

    Args:
        session (Session): Active SQLAlchemy session. No lock is taken.
        start (str): Exact start point of the route.
        end (str): Exact end point of the route.
        travelDate (date): Date of travel.
        seats (int): Number of seats wanted. Must be positive.
        service (ServiceClass | None): Restrict to a service class.
            No filtering when omitted.

    Returns:
        List[BusAvailability]: Qualifying buses, cheapest route first and then
            by bus id. Empty when the route exists but nothing has capacity.

    Raises:
        exceptions.InvalidValue: If `seats` is not positive.
        exceptions.UnknownRoute: If no route joins the two points.
    """
    if seats < 1:
        raise exceptions.InvalidValue(Booking.seat_number)

    route = (
        session.query(Route)
        .filter(Route.start_point == start)
        .filter(Route.end_point == end)
        .first()
    )
    if route is None:
        raise exceptions.UnknownRoute()

    booked = (
        session.query(Booking.bus_id, func.count(Booking.id).label("booked_seats"))
        .filter(Booking.travel_date == travelDate)
        .filter(Booking.status == BookingStatus.ACTIVE)
        .group_by(Booking.bus_id)
        .subquery()
    )
    available = Bus.seat_count - func.coalesce(booked.c.booked_seats, 0)

    query = (
        session.query(Bus, Route, available.label("available_seats"))
        .join(Route, Route.id == Bus.route_id)
        .outerjoin(booked, booked.c.bus_id == Bus.id)
        .filter(Route.id == route.id)
        .filter(Bus.is_active.is_(True))
        .filter(available >= seats)
    )
    if service is not None:
        query = query.filter(Bus.service == service)
    query = query.order_by(Route.price.asc(), Bus.id.asc())

    return [
        BusAvailability(
            bus_id=bus.id,
            registration_number=bus.registration_number,
            service=bus.service,
            seat_count=bus.seat_count,
            available_seats=availableSeats,
            route_id=route.id,
            route_name=route.name,
            start_point=route.start_point,
            end_point=route.end_point,
            price=route.price,
            distance=route.distance,
        )
        for bus, route, availableSeats in query.all()
    ]
