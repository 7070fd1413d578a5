from datetime import datetime, timedelta, timezone

import pytest

from busline.src import cleaner, retrier
from busline.src.db import AccountToken, Booking
from busline.src.enums import BookingStatus
from busline.src.retrier import retryPendingArtifacts

LONG_AGO = datetime.now(timezone.utc) - timedelta(hours=1)


def qrCodeOf(session_maker, bookingId):
    with session_maker() as session:
        return session.get(Booking, bookingId).qr_code


class TestRetryPendingArtifacts:
    def test_attaches_active_bookings_without_artifact(
        self, session, session_maker, factory, minio_client
    ):
        # Given: a booking whose attach failed an hour ago
        passenger = factory.account("passenger")
        bus = factory.bus(factory.route())
        pending = factory.booking(passenger, bus, 1, created_on=LONG_AGO)

        # When
        attached = retryPendingArtifacts(session, minio_client)

        # Then
        assert attached == 1
        assert qrCodeOf(session_maker, pending.id).endswith(f"booking-{pending.id}.png")

    def test_skips_attached_cancelled_and_fresh_bookings(
        self, session, session_maker, factory, minio_client
    ):
        passenger = factory.account("passenger")
        bus = factory.bus(factory.route())
        attachedBooking = factory.booking(
            passenger, bus, 1, qr_code="http://cdn/old.png", created_on=LONG_AGO
        )
        cancelled = factory.booking(
            passenger, bus, 2, status=BookingStatus.CANCELLED, created_on=LONG_AGO
        )
        fresh = factory.booking(passenger, bus, 3)

        attached = retryPendingArtifacts(session, minio_client)

        assert attached == 0
        assert minio_client.uploads == 0
        assert qrCodeOf(session_maker, attachedBooking.id) == "http://cdn/old.png"
        assert qrCodeOf(session_maker, cancelled.id) is None
        assert qrCodeOf(session_maker, fresh.id) is None

    def test_failed_upload_is_left_for_the_next_pass(
        self, session, session_maker, factory, minio_client
    ):
        passenger = factory.account("passenger")
        bus = factory.bus(factory.route())
        pending = factory.booking(passenger, bus, 1, created_on=LONG_AGO)
        minio_client.fail = True

        assert retryPendingArtifacts(session, minio_client) == 0
        assert qrCodeOf(session_maker, pending.id) is None

        minio_client.fail = False
        assert retryPendingArtifacts(session, minio_client) == 1


class TestRemoveExpiredTokens:
    def test_only_expired_tokens_are_removed(self, session, session_maker, factory):
        account = factory.account("passenger")
        now = datetime.now(timezone.utc)
        expired = factory.save(
            AccountToken(
                account_id=account.id,
                expires_in=60,
                expires_at=now - timedelta(minutes=1),
            )
        )
        valid = factory.save(
            AccountToken(
                account_id=account.id,
                expires_in=3600,
                expires_at=now + timedelta(hours=1),
            )
        )

        assert cleaner.removeExpiredTokens(session) == 1
        with session_maker() as other:
            assert other.get(AccountToken, expired.id) is None
            assert other.get(AccountToken, valid.id) is not None


def unreachable():
    raise RuntimeError("storage unreachable")


class TestScriptEntryPoints:
    @pytest.mark.parametrize(
        "module, message", [(retrier, "retrier.py failed"), (cleaner, "cleaner.py failed")]
    )
    def test_startup_failure_is_logged(self, monkeypatch, caplog, module, message):
        monkeypatch.setattr(module, "createEngine", unreachable)

        module.main()

        assert message in caplog.text
        assert "storage unreachable" in caplog.text
