"""
QR code artifacts of bookings.

Each committed booking gets a QR code image stored in MinIO and linked back
through `Booking.qr_code`. Attaching runs after the booking transaction has
committed and may be repeated safely: the payload and the object name depend
only on the booking, so a repeated attach overwrites the same object and
writes the same URL.
"""

import json, logging
from io import BytesIO
from typing import Iterable
import qrcode
from qrcode import constants
from PIL import Image
from minio import Minio
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from busline.src import exceptions, minio
from busline.src.constants import BOOKING_QR_CODES, QR_CODE_SIZE
from busline.src.db import Booking

logger = logging.getLogger("Artifact")


def buildPayload(bookingId: int, userId: int) -> str:
    return json.dumps({"booking_id": bookingId, "user_id": userId}, sort_keys=True)


def renderQRCode(payload: str) -> bytes:
    """Render `payload` as a square PNG QR code of QR_CODE_SIZE pixels."""
    qr = qrcode.QRCode(
        version=1,
        error_correction=constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(payload)
    qr.make(fit=True)

    image = qr.make_image(fill_color="black", back_color="white").get_image()
    image = image.resize((QR_CODE_SIZE, QR_CODE_SIZE), Image.LANCZOS)

    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def objectName(bookingId: int) -> str:
    return f"booking-{bookingId}.png"


def attachArtifact(session: Session, client: Minio, bookingId: int, userId: int) -> str:
    """
    Render, upload and link the QR code of a booking.

    Args:
        session (Session): Session used to write the URL onto the booking.
        client (Minio): MinIO client used for the upload.
        bookingId (int): Booking to attach the artifact to.
        userId (int): Passenger of the booking, embedded in the payload.

    Returns:
        str: Public URL of the uploaded QR code.

    Raises:
        exceptions.ArtifactError: If rendering or uploading fails.
        exceptions.StorageError: If the URL could not be stored.
    """
    objectID = objectName(bookingId)
    try:
        image = renderQRCode(buildPayload(bookingId, userId))
        minio.uploadFile(
            client, BOOKING_QR_CODES, objectID, len(image), BytesIO(image), "image/png"
        )
    except Exception as e:
        raise exceptions.ArtifactError(bookingId) from e

    url = minio.objectURL(BOOKING_QR_CODES, objectID)
    try:
        session.execute(
            update(Booking)
            .where(Booking.id == bookingId)
            .values(qr_code=url)
            .execution_options(synchronize_session=False)
        )
        session.commit()
    except Exception as e:
        session.rollback()
        exceptions.handle(e)
    return url


def attachArtifacts(
    sessionMaker: sessionmaker, client: Minio, bookingIds: Iterable[int], userId: int
) -> None:
    """
    Attach artifacts to freshly committed bookings, one session per booking.

    Failures are logged and left for the artifact retrier; the bookings
    themselves stay valid without a QR code.
    """
    for bookingId in bookingIds:
        session = sessionMaker()
        try:
            url = attachArtifact(session, client, bookingId, userId)
            logger.info(f"Artifact attached to booking {bookingId}: {url}")
        except (exceptions.ArtifactError, exceptions.StorageError, SQLAlchemyError):
            logger.exception(f"Artifact attach failed for booking {bookingId}")
        finally:
            session.close()
