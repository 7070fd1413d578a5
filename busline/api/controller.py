from typing import Tuple
from fastapi import FastAPI
from minio import Minio
from sqlalchemy.orm import sessionmaker

from busline.api import account_token, booking, bus, conductor_bus, route, search
from busline.src.enums import AppID


def createApps(sessionMaker: sessionmaker, minioClient: Minio) -> Tuple[FastAPI, FastAPI]:
    """
    Create the public and member FastAPI apps.

    Each app is tagged with its AppID and carries the session factory and
    MinIO client used by its endpoints.
    """
    # ------------------------------------------------------
    # Create separate FastAPI apps for each user domain
    # ------------------------------------------------------
    app_public = FastAPI(title="Public APP")
    app_member = FastAPI(title="Member APP")

    for app, appID in [(app_public, AppID.PUBLIC), (app_member, AppID.MEMBER)]:
        app.state.id = appID
        app.state.session_maker = sessionMaker
        app.state.minio_client = minioClient

    # ------------------------------------------------------
    # Member routers
    # ------------------------------------------------------
    app_member.include_router(account_token.route_member)
    app_member.include_router(route.route_member)
    app_member.include_router(bus.route_member)
    app_member.include_router(conductor_bus.route_member)
    app_member.include_router(booking.route_member)

    # ------------------------------------------------------
    # Public routers
    # ------------------------------------------------------
    app_public.include_router(route.route_public)
    app_public.include_router(search.route_public)
    app_public.include_router(bus.route_public)
    app_public.include_router(booking.route_public)

    return app_public, app_member
