import time
import logging
from datetime import datetime, timedelta, timezone
from minio import Minio
from redis import Redis
from sqlalchemy.orm import Session, sessionmaker

from busline.src import exceptions, minio, redis
from busline.src.artifact import attachArtifact
from busline.src.constants import (
    ARTIFACT_RETRY_BATCH,
    ARTIFACT_RETRY_DELAY,
    ARTIFACT_RETRY_INTERVAL,
)
from busline.src.db import Booking, createEngine, createSessionMaker
from busline.src.enums import BookingStatus
from busline.src.redis import acquireLock, releaseLock

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("ArtifactRetrier")

RETRIER_LOCK = "artifact_retrier"


def retryPendingArtifacts(
    session: Session, client: Minio, delay: int = ARTIFACT_RETRY_DELAY
) -> int:
    """
    Attach QR codes to ACTIVE bookings that are still missing one.

    Only bookings older than `delay` seconds are picked, oldest first and at
    most ARTIFACT_RETRY_BATCH per pass, so attaches still running after a
    fresh booking are left alone.

    Returns:
        int: Number of bookings that got their artifact in this pass.
    """
    cutoff = datetime.now(timezone.utc) - timedelta(seconds=delay)
    pending = (
        session.query(Booking.id, Booking.user_id)
        .filter(Booking.status == BookingStatus.ACTIVE)
        .filter(Booking.qr_code.is_(None))
        .filter(Booking.created_on <= cutoff)
        .order_by(Booking.created_on.asc(), Booking.id.asc())
        .limit(ARTIFACT_RETRY_BATCH)
        .all()
    )
    session.commit()

    attached = 0
    for bookingId, userId in pending:
        try:
            attachArtifact(session, client, bookingId, userId)
            attached += 1
        except (exceptions.ArtifactError, exceptions.StorageError):
            logger.exception(f"Retry failed for booking {bookingId}")
    return attached


def runRetrier(sessionMaker: sessionmaker, client: Minio, redisClient: Redis):
    while True:
        lock = None
        try:
            lock = acquireLock(redisClient, RETRIER_LOCK)
            with sessionMaker() as session:
                attached = retryPendingArtifacts(session, client)
            logger.info(f" Attached {attached} pending artifacts")
        except Exception:
            logger.exception("Artifact retrier loop failed")
        finally:
            releaseLock(lock)
            time.sleep(ARTIFACT_RETRY_INTERVAL)


def main():
    try:
        sessionMaker = createSessionMaker(createEngine())
        runRetrier(sessionMaker, minio.createClient(), redis.createClient())
    except Exception:
        logger.exception("retrier.py failed")


if __name__ == "__main__":
    main()
