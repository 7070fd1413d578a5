import json

import pytest

from busline.src import artifact, exceptions
from busline.src.constants import BOOKING_QR_CODES, MINIO_PUBLIC_URL
from busline.src.db import Booking


@pytest.fixture
def booking(factory):
    passenger = factory.account("passenger")
    bus = factory.bus(factory.route())
    return factory.booking(passenger, bus, 1)


def qrCodeOf(session_maker, bookingId):
    with session_maker() as session:
        return session.get(Booking, bookingId).qr_code


class TestArtifactParts:
    def test_payload_is_deterministic(self):
        payload = artifact.buildPayload(42, 7)

        assert payload == artifact.buildPayload(42, 7)
        assert json.loads(payload) == {"booking_id": 42, "user_id": 7}

    def test_object_name(self):
        assert artifact.objectName(42) == "booking-42.png"

    def test_qr_code_is_a_png_image(self):
        image = artifact.renderQRCode(artifact.buildPayload(1, 1))

        assert image.startswith(b"\x89PNG\r\n\x1a\n")


class TestAttachArtifact:
    def test_attach_uploads_and_links_the_qr_code(
        self, session, session_maker, minio_client, booking
    ):
        url = artifact.attachArtifact(session, minio_client, booking.id, booking.user_id)

        objectName = f"booking-{booking.id}.png"
        assert url == f"{MINIO_PUBLIC_URL}/{BOOKING_QR_CODES}/{objectName}"
        assert (BOOKING_QR_CODES, objectName) in minio_client.objects
        assert qrCodeOf(session_maker, booking.id) == url

    def test_attaching_twice_keeps_one_object_and_one_url(
        self, session, session_maker, minio_client, booking
    ):
        first = artifact.attachArtifact(session, minio_client, booking.id, booking.user_id)
        second = artifact.attachArtifact(
            session, minio_client, booking.id, booking.user_id
        )

        assert first == second
        assert minio_client.uploads == 2
        assert list(minio_client.objects) == [(BOOKING_QR_CODES, f"booking-{booking.id}.png")]
        assert qrCodeOf(session_maker, booking.id) == first

    def test_upload_failure_raises_artifact_error(
        self, session, session_maker, minio_client, booking
    ):
        minio_client.fail = True

        with pytest.raises(exceptions.ArtifactError) as error:
            artifact.attachArtifact(session, minio_client, booking.id, booking.user_id)

        assert error.value.booking_id == booking.id
        assert error.value.status_code == 503
        assert qrCodeOf(session_maker, booking.id) is None


class TestAttachArtifacts:
    def test_attaches_every_booking(self, session_maker, factory, minio_client):
        passenger = factory.account("passenger")
        bus = factory.bus(factory.route())
        bookings = [factory.booking(passenger, bus, seat) for seat in (1, 2)]

        artifact.attachArtifacts(
            session_maker, minio_client, [b.id for b in bookings], passenger.id
        )

        assert all(qrCodeOf(session_maker, b.id) is not None for b in bookings)

    def test_failures_are_logged_not_raised(
        self, session_maker, minio_client, booking, caplog
    ):
        minio_client.fail = True

        artifact.attachArtifacts(session_maker, minio_client, [booking.id], booking.user_id)

        assert qrCodeOf(session_maker, booking.id) is None
        assert f"Artifact attach failed for booking {booking.id}" in caplog.text
