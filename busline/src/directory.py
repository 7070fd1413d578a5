from typing import List, Tuple
from sqlalchemy.orm.session import Session

from busline.src.db import Bus, Route


def listStartPoints(session: Session) -> List[str]:
    """Distinct route origins, sorted alphabetically."""
    rows = session.query(Route.start_point).distinct().order_by(Route.start_point)
    return [row.start_point for row in rows]


def listEndPoints(session: Session) -> List[str]:
    """Distinct route destinations, sorted alphabetically."""
    rows = session.query(Route.end_point).distinct().order_by(Route.end_point)
    return [row.end_point for row in rows]


def findBusesByRoute(session: Session, start: str, end: str) -> List[Tuple[Bus, Route]]:
    """
    Fetch the active buses serving the route between two points.

    Args:
        session (Session): Active SQLAlchemy session.
        start (str): Exact start point of the route.
        end (str): Exact end point of the route.

    Returns:
        List[Tuple[Bus, Route]]: Matching (bus, route) pairs ordered by bus id.
            Empty when the route is unknown or has no active bus.
    """
    return (
        session.query(Bus, Route)
        .join(Route, Route.id == Bus.route_id)
        .filter(Route.start_point == start)
        .filter(Route.end_point == end)
        .filter(Bus.is_active.is_(True))
        .order_by(Bus.id)
        .all()
    )
