from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from minio import Minio
from sqlalchemy.orm import sessionmaker

from busline.src import schemas, minio
from busline.src.constants import API_TITLE, API_VERSION
from busline.src.db import createEngine, createSessionMaker
from busline.api.controller import createApps


def createApp(
    session_maker: sessionmaker | None = None, minio_client: Minio | None = None
) -> FastAPI:
    """
    Build the root application with the public and member apps mounted.

    Without arguments the PostgreSQL database and MinIO server configured in
    the environment are used.
    """
    if session_maker is None:
        session_maker = createSessionMaker(createEngine())
    if minio_client is None:
        minio_client = minio.createClient()

    app = FastAPI(title=API_TITLE, version=API_VERSION)

    origins = ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app_public, app_member = createApps(session_maker, minio_client)
    app.mount("/public", app_public, "Public API")
    app.mount("/member", app_member, "Member API")

    # Health check endpoint
    @app.get("/health", tags=["Health Check"], response_model=schemas.HealthStatus)
    async def health_check():
        return {"status": "OK", "version": API_VERSION}

    return app


app = createApp()
