"""
Test doubles and factories shared by the app test suites.

The fakes are also what ``settings/test.py`` wires in as the default
payment processor and identity provider.
"""

from datetime import timedelta
from decimal import Decimal
from itertools import count

from django.contrib.auth import get_user_model
from django.utils import timezone

from services.gateways.identity import IdentityMatch, IdentityProvider, IdentityProviderError
from services.gateways.payments import PaymentProcessor, PaymentProcessorError

User = get_user_model()

_seq = count(1)


class FakePaymentProcessor(PaymentProcessor):
    """Records calls; each operation can be told to fail."""

    def __init__(self, fail_authorize=False, fail_payout=False, fail_refund=False):
        self.fail_authorize = fail_authorize
        self.fail_payout = fail_payout
        self.fail_refund = fail_refund
        self.authorized = []
        self.payouts = []
        self.refunds = []

    def authorize(self, amount):
        if self.fail_authorize:
            raise PaymentProcessorError("Card declined")
        self.authorized.append(Decimal(amount))
        return f"hold_{len(self.authorized)}"

    def payout(self, booking_id, share, account):
        if self.fail_payout:
            raise PaymentProcessorError("Transfer failed")
        self.payouts.append((booking_id, Decimal(share), account))
        return f"completion_{booking_id}"

    def refund(self, hold_ref):
        if self.fail_refund:
            raise PaymentProcessorError("Refund failed")
        self.refunds.append(hold_ref)
        return f"refund_{hold_ref}"


class FakeIdentityProvider(IdentityProvider):

    def __init__(self, confidence=95.0, error=None):
        self.confidence = confidence
        self.error = error
        self.calls = 0

    def verify(self, id_number, photo):
        self.calls += 1
        if self.error:
            raise IdentityProviderError(self.error, status_code=503)
        return IdentityMatch(confidence=self.confidence, reference_id=f"ref_{self.calls}")


# ---------------------- Factories ----------------------

def make_user(role, username=None, **extra):
    n = next(_seq)
    return User.objects.create_user(
        username=username or f"{role}_{n}",
        password="pass1234",
        email=extra.pop("email", f"{role}_{n}@example.com"),
        role=role,
        phone_number=extra.pop("phone_number", f"080{n:08d}"),
        **extra,
    )


def make_client(verified=True, **extra):
    from verification.models import ClientVerificationState

    user = make_user("client", **extra)
    if verified:
        ClientVerificationState.objects.create(
            client=user,
            state=ClientVerificationState.STATE_VERIFIED,
            verified_at=timezone.now(),
        )
    return user


def make_driver(online=True, verified=True, hourly_rate="2000.00", fresh=True, **extra):
    """Returns the DriverProfile; the user is ``profile.user``."""
    from drivers.models import DriverProfile

    user = make_user("driver", **extra)
    stamp = timezone.now() if fresh else timezone.now() - timedelta(hours=2)
    return DriverProfile.objects.create(
        user=user,
        verified=verified,
        hourly_rate=Decimal(hourly_rate),
        payout_account="RCP_test",
        online_status="online" if online else "offline",
        current_latitude=Decimal("6.524379"),
        current_longitude=Decimal("3.379206"),
        last_location_update=stamp,
    )


def make_admin(**extra):
    return make_user("admin", is_staff=True, **extra)


def make_booking(client, driver, booking_status="pending", total_cost="4000.00", **fields):
    from bookings.models import Booking

    defaults = dict(
        start_location="Ikeja City Mall",
        destination="Lekki Phase 1",
        start_latitude=Decimal("6.601838"),
        start_longitude=Decimal("3.351486"),
        destination_latitude=Decimal("6.447809"),
        destination_longitude=Decimal("3.473503"),
        distance_km=Decimal("21.500"),
        duration_hr=Decimal("2.00"),
        hourly_rate=driver.hourly_rate,
        total_cost=Decimal(total_cost),
        payment_status="authorized",
        payment_hold_ref="hold_test",
    )
    defaults.update(fields)
    return Booking.objects.create(client=client, driver=driver, booking_status=booking_status, **defaults)
