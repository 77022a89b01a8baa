from marketplace import crud
from marketplace.schemas.payment import WebhookEventCreate, WebhookEventStatus


def _event_in(event_id="evt_1"):
    return WebhookEventCreate(
        provider="mock",
        provider_event_id=event_id,
        provider_event_type="checkout.session.completed",
        payload={"id": event_id},
    )


def test_record_is_idempotent(db):
    first = crud.webhook_event.record(db, obj_in=_event_in())
    second = crud.webhook_event.record(db, obj_in=_event_in())

    assert first.id == second.id
    assert first.status == WebhookEventStatus.pending.value
    assert not crud.webhook_event.is_already_processed(
        db, provider="mock", provider_event_id="evt_1"
    )


def test_same_event_id_from_another_provider_is_distinct(db):
    mock_row = crud.webhook_event.record(db, obj_in=_event_in())
    stripe_row = crud.webhook_event.record(
        db, obj_in=_event_in().model_copy(update={"provider": "stripe"})
    )
    assert mock_row.id != stripe_row.id


def test_mark_processed_and_failed(db):
    row = crud.webhook_event.record(db, obj_in=_event_in())

    crud.webhook_event.mark(db, event_id=row.id, status=WebhookEventStatus.failed, error="boom")
    assert row.processed_at is None
    assert not crud.webhook_event.is_already_processed(
        db, provider="mock", provider_event_id="evt_1"
    )

    crud.webhook_event.mark(
        db, event_id=row.id, status=WebhookEventStatus.processed, related_payment_id="pay_1"
    )
    assert row.processed_at is not None
    assert row.processing_error is None
    assert row.related_payment_id == "pay_1"
    assert crud.webhook_event.is_already_processed(
        db, provider="mock", provider_event_id="evt_1"
    )
