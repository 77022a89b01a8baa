"""
Tests for the Stripe gateway adapter, the mock gateway and minor-unit
conversion. Stripe SDK calls are patched; nothing leaves the process.
"""
import asyncio
import json
import time
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import stripe

from marketplace.schemas.payment import PaymentMethod, PaymentStatus
from marketplace.services.payment.currency import from_minor_units, to_minor_units
from marketplace.services.payment.provider_factory import PaymentProviderFactory
from marketplace.services.payment.provider_interface import (
    CreateCheckoutSessionParams,
    PaymentError,
    WebhookEventType,
)
from marketplace.services.payment.providers.mock_provider import MockPaymentProvider
from marketplace.services.payment.providers.stripe_provider import (
    StripeConfig,
    StripeProvider,
    normalize_stripe_event,
)
from tests.utils.webhooks import build_event, checkout_session, stripe_signature

WEBHOOK_SECRET = "whsec_stripe_test"


def run_async(coro):
    """Helper to run async coroutines in sync tests."""
    return asyncio.run(coro)


@pytest.fixture
def stripe_provider():
    return StripeProvider(StripeConfig(secret_key="sk_test_123", webhook_secret=WEBHOOK_SECRET))


def _make_params(**overrides):
    defaults = {
        "order_id": "ord_1",
        "payment_id": "pay_1",
        "amount": Decimal("51.00"),
        "currency": "KWD",
        "method": PaymentMethod.card,
        "success_url": "https://shop.example/success",
        "cancel_url": "https://shop.example/cancel",
        "idempotency_key": "checkout_pay_1",
    }
    defaults.update(overrides)
    return CreateCheckoutSessionParams(**defaults)


# --------------------------------------------------------------------------- #
# Minor units
# --------------------------------------------------------------------------- #


class TestMinorUnits:
    @pytest.mark.parametrize(
        "amount,currency,expected",
        [
            (Decimal("51.00"), "KWD", 51000),
            (Decimal("51.00"), "kwd", 51000),
            (Decimal("19.99"), "USD", 1999),
            (Decimal("500"), "JPY", 500),
            (Decimal("0.005"), "EUR", 1),
        ],
    )
    def test_to_minor_units(self, amount, currency, expected):
        assert to_minor_units(amount, currency) == expected

    def test_from_minor_units_keeps_currency_places(self):
        assert from_minor_units(51000, "KWD") == Decimal("51.000")
        assert str(from_minor_units(1999, "USD")) == "19.99"
        assert from_minor_units(500, "JPY") == Decimal("500")


# --------------------------------------------------------------------------- #
# Checkout sessions
# --------------------------------------------------------------------------- #


class TestCreateCheckoutSession:
    def test_session_parameters(self, stripe_provider):
        session = MagicMock(id="cs_test_1", url="https://checkout.stripe.com/c/cs_test_1", expires_at=1700000000)
        with patch("stripe.checkout.Session.create", return_value=session) as create:
            result = run_async(
                stripe_provider.create_checkout_session(_make_params(method=PaymentMethod.knet))
            )

        assert result.reference == "cs_test_1"
        assert result.redirect_url == "https://checkout.stripe.com/c/cs_test_1"
        assert result.expires_at is not None

        kwargs = create.call_args.kwargs
        assert kwargs["idempotency_key"] == "checkout_pay_1"
        assert kwargs["payment_method_types"] == ["knet"]
        assert kwargs["success_url"] == "https://shop.example/success?ref={CHECKOUT_SESSION_ID}"
        assert kwargs["line_items"][0]["price_data"]["unit_amount"] == 51000
        assert kwargs["line_items"][0]["price_data"]["currency"] == "kwd"
        expected_metadata = {"order_id": "ord_1", "payment_id": "pay_1", "method": "knet"}
        assert kwargs["metadata"] == expected_metadata
        assert kwargs["payment_intent_data"]["metadata"] == expected_metadata

    @pytest.mark.parametrize(
        "method,types",
        [
            (PaymentMethod.apple_pay, ["card"]),
            (PaymentMethod.mada, ["card"]),
            (PaymentMethod.bank_transfer, ["customer_balance"]),
        ],
    )
    def test_method_mapping(self, stripe_provider, method, types):
        session = MagicMock(id="cs_1", url="https://checkout.stripe.com/c/cs_1", expires_at=None)
        with patch("stripe.checkout.Session.create", return_value=session) as create:
            run_async(stripe_provider.create_checkout_session(_make_params(method=method)))
        assert create.call_args.kwargs["payment_method_types"] == types

    def test_stripe_outage_is_retryable(self, stripe_provider):
        with patch(
            "stripe.checkout.Session.create",
            side_effect=stripe.APIConnectionError("connection reset"),
        ):
            with pytest.raises(PaymentError) as exc_info:
                run_async(stripe_provider.create_checkout_session(_make_params()))
        assert exc_info.value.code == "PROVIDER_ERROR"
        assert exc_info.value.retryable is True

    def test_invalid_request_is_not_retryable(self, stripe_provider):
        with patch(
            "stripe.checkout.Session.create",
            side_effect=stripe.InvalidRequestError("No such currency", "currency"),
        ):
            with pytest.raises(PaymentError) as exc_info:
                run_async(stripe_provider.create_checkout_session(_make_params()))
        assert exc_info.value.code == "INVALID_REQUEST"
        assert exc_info.value.retryable is False


class TestSessionStatus:
    @pytest.mark.parametrize(
        "payment_status,status,expected",
        [
            ("paid", "complete", PaymentStatus.captured),
            ("no_payment_required", "complete", PaymentStatus.captured),
            ("unpaid", "expired", PaymentStatus.cancelled),
            ("unpaid", "open", PaymentStatus.pending),
        ],
    )
    def test_status_mapping(self, stripe_provider, payment_status, status, expected):
        session = MagicMock(payment_status=payment_status, status=status)
        with patch("stripe.checkout.Session.retrieve", return_value=session):
            assert run_async(stripe_provider.get_session_status("cs_1")) == expected


# --------------------------------------------------------------------------- #
# Webhooks
# --------------------------------------------------------------------------- #


class TestWebhookSignature:
    def test_valid_signature(self, stripe_provider):
        body = build_event("checkout.session.completed", checkout_session("cs_1"))
        assert stripe_provider.verify_webhook_signature(body, stripe_signature(body, WEBHOOK_SECRET))

    def test_wrong_secret(self, stripe_provider):
        body = build_event("checkout.session.completed", checkout_session("cs_1"))
        assert not stripe_provider.verify_webhook_signature(body, stripe_signature(body, "whsec_other"))

    def test_tampered_body(self, stripe_provider):
        body = build_event("checkout.session.completed", checkout_session("cs_1"))
        header = stripe_signature(body, WEBHOOK_SECRET)
        tampered = body.replace(b"cs_1", b"cs_2")
        assert not stripe_provider.verify_webhook_signature(tampered, header)

    def test_stale_timestamp(self, stripe_provider):
        body = build_event("checkout.session.completed", checkout_session("cs_1"))
        header = stripe_signature(body, WEBHOOK_SECRET, timestamp=int(time.time()) - 3600)
        assert not stripe_provider.verify_webhook_signature(body, header)

    def test_missing_header(self, stripe_provider):
        assert not stripe_provider.verify_webhook_signature(b"{}", "")


class TestNormalizeEvent:
    def test_checkout_completed(self):
        data = json.loads(
            build_event(
                "checkout.session.completed",
                checkout_session("cs_1", order_id="ord_1", payment_id="pay_1"),
                event_id="evt_1",
            )
        )

        event = normalize_stripe_event(data)

        assert event.event_id == "evt_1"
        assert event.event_type == WebhookEventType.CHECKOUT_COMPLETED
        assert event.target_status == PaymentStatus.captured
        assert event.reference == "cs_1"
        assert event.order_id == "ord_1"
        assert event.payment_id == "pay_1"
        assert event.amount == Decimal("51.000")
        assert event.currency == "KWD"

    def test_charge_refunded_uses_refunded_amount(self):
        data = json.loads(
            build_event(
                "charge.refunded",
                {
                    "id": "ch_1",
                    "object": "charge",
                    "payment_intent": "pi_1",
                    "amount": 51000,
                    "amount_refunded": 20000,
                    "currency": "kwd",
                    "metadata": {},
                },
            )
        )

        event = normalize_stripe_event(data)

        assert event.target_status == PaymentStatus.refunded
        assert event.reference is None
        assert event.payment_intent_id == "pi_1"
        assert event.amount == Decimal("20.000")

    def test_camel_case_metadata_is_accepted(self):
        data = json.loads(
            build_event(
                "payment_intent.payment_failed",
                {"id": "pi_1", "object": "payment_intent", "metadata": {"orderId": "ord_9"}},
            )
        )

        event = normalize_stripe_event(data)

        assert event.payment_intent_id == "pi_1"
        assert event.order_id == "ord_9"
        assert event.target_status == PaymentStatus.failed

    def test_unknown_type_has_no_target(self):
        data = json.loads(build_event("invoice.paid", {"id": "in_1", "object": "invoice"}))
        event = normalize_stripe_event(data)
        assert event.event_type == WebhookEventType.UNKNOWN
        assert event.target_status is None

    @pytest.mark.parametrize(
        "data",
        [
            [],
            {"type": "charge.refunded", "data": {"object": {}}},
            {"id": "evt_1", "type": "charge.refunded", "data": {}},
            {"id": "evt_1", "type": "charge.refunded", "data": "oops"},
            {"id": "evt_1", "type": ["charge.refunded"], "data": {"object": {}}},
            {"id": "evt_1", "type": "payment_intent.succeeded", "data": {"object": {"id": 42}}},
            {
                "id": "evt_1",
                "type": "checkout.session.completed",
                "data": {"object": {"id": "cs_1", "amount_total": 100, "currency": 414}},
            },
            {"id": "evt_1", "type": "charge.refunded", "data": {"object": {"payment_intent": 7}}},
            {"id": "evt_1", "type": "charge.refunded", "data": {"object": {"metadata": "ord_1"}}},
            {"id": "evt_1", "type": "charge.refunded", "created": 10**20, "data": {"object": {}}},
        ],
    )
    def test_malformed(self, data):
        with pytest.raises(PaymentError):
            normalize_stripe_event(data)

    def test_enrich_from_payment_intent(self, stripe_provider):
        event = normalize_stripe_event(
            json.loads(
                build_event(
                    "charge.refunded",
                    {"id": "ch_1", "object": "charge", "payment_intent": "pi_1", "metadata": {}},
                )
            )
        )
        intent = MagicMock(metadata={"order_id": "ord_1", "payment_id": "pay_1"})
        with patch("stripe.PaymentIntent.retrieve", return_value=intent) as retrieve:
            enriched = run_async(stripe_provider.enrich_event(event))

        retrieve.assert_called_once_with("pi_1")
        assert enriched.order_id == "ord_1"
        assert enriched.payment_id == "pay_1"

    def test_enrich_skips_when_metadata_present(self, stripe_provider):
        event = normalize_stripe_event(
            json.loads(build_event("checkout.session.completed", checkout_session("cs_1", order_id="ord_1")))
        )
        with patch("stripe.PaymentIntent.retrieve") as retrieve:
            run_async(stripe_provider.enrich_event(event))
        retrieve.assert_not_called()


class TestMockProvider:
    def test_redirects_to_success_url(self):
        provider = MockPaymentProvider("whsec_test")
        result = run_async(
            provider.create_checkout_session(_make_params(success_url="https://shop.example/ok?lang=ar"))
        )
        assert result.reference.startswith("mock_cs_")
        assert result.redirect_url == f"https://shop.example/ok?lang=ar&ref={result.reference}"

    def test_sign_and_verify(self):
        provider = MockPaymentProvider("whsec_test")
        body = b'{"id": "evt_1"}'
        assert provider.verify_webhook_signature(body, provider.sign(body))
        assert not MockPaymentProvider("whsec_other").verify_webhook_signature(body, provider.sign(body))


class TestProviderFactory:
    def test_mock_only_without_stripe_keys(self):
        with patch("marketplace.services.payment.provider_factory.settings") as mock_settings:
            mock_settings.MOCK_WEBHOOK_SECRET = "whsec_mock"
            mock_settings.STRIPE_SECRET_KEY = ""
            mock_settings.STRIPE_WEBHOOK_SECRET = ""
            factory = PaymentProviderFactory()

        assert factory.list_available_providers() == ["mock"]
        with pytest.raises(ValueError):
            factory.get_provider("stripe")

    def test_stripe_registered_with_keys(self):
        with patch("marketplace.services.payment.provider_factory.settings") as mock_settings:
            mock_settings.MOCK_WEBHOOK_SECRET = "whsec_mock"
            mock_settings.STRIPE_SECRET_KEY = "sk_test_123"
            mock_settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET
            mock_settings.STRIPE_API_VERSION = "2023-10-16"
            mock_settings.STRIPE_MAX_NETWORK_RETRIES = 2
            factory = PaymentProviderFactory()

        assert factory.get_provider("stripe").code == "stripe"
        assert factory.get_provider("stripe").signature_header == "Stripe-Signature"
        assert factory.get_provider("mock").signature_header == "X-Signature"
