from fastapi import Request
from minio import Minio
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from busline.src import schemas
from busline.src.db import Account, AccountToken, ConductorBus


def requestInfo(request: Request) -> schemas.RequestInfo:
    """
    Extract metadata about the incoming request.

    Args:
        request (Request): FastAPI request object.

    Returns:
        schemas.RequestInfo: Pydantic model containing:
            - method (str): HTTP method (GET, POST, etc.).
            - path (str): Path portion of the request URL.
            - app_id (int): Application ID from app state.
    """
    return schemas.RequestInfo(
        method=request.method,
        path=request.url.path,
        app_id=request.scope["app"].state.id,
    )


def sessionMaker(request: Request) -> sessionmaker:
    """Session factory injected into the serving application by `createApp`."""
    return request.scope["app"].state.session_maker


def minioClient(request: Request) -> Minio:
    """MinIO client injected into the serving application by `createApp`."""
    return request.scope["app"].state.minio_client


def account(token: AccountToken, session: Session) -> Account:
    """Fetch the account (the authenticated principal) behind a token."""
    return session.query(Account).filter(Account.id == token.account_id).first()


def activeAssignment(
    session: Session, conductor_id: int, bus_id: int
) -> ConductorBus | None:
    """Fetch the active assignment of a conductor to a bus, if any."""
    return (
        session.query(ConductorBus)
        .filter(ConductorBus.conductor_id == conductor_id)
        .filter(ConductorBus.bus_id == bus_id)
        .filter(ConductorBus.is_active.is_(True))
        .first()
    )
