import threading

import pytest
from sqlalchemy.exc import SQLAlchemyError

from payment_intents.database import Base, make_engine, make_session_factory
from payment_intents.exceptions import (
    GatewayTimeout,
    IntentNotFound,
    InvalidStateTransition,
    ReconciliationSkip,
    ValidationError,
)
from payment_intents.lifecycle import LifecycleManager
from payment_intents.models import IntentState, PaymentIntent
from payment_intents.signature import WebhookEvent
from payment_intents.store import IntentStore
from payment_intents.stripe_service import StripeGateway

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_lifecycle.db"
engine = make_engine(SQLALCHEMY_DATABASE_URL)
TestingSessionLocal = make_session_factory(engine)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store():
    return IntentStore(TestingSessionLocal)


@pytest.fixture
def gateway(mocker):
    gateway = mocker.Mock(spec=StripeGateway)
    gateway.create.return_value = ("pi_1", "secret_1")
    return gateway


@pytest.fixture
def manager(store, gateway):
    return LifecycleManager(store, gateway, currency="usd")


def event(event_type, event_id="evt_1", intent_id="pi_1"):
    return WebhookEvent(event_id=event_id, type=f"payment_intent.{event_type}", intent_id=intent_id)


@pytest.mark.parametrize("amount", [1, 50, 3800, 99999999])
def test_create_then_lookup_is_created(manager, amount):
    manager.create(amount)

    intent = manager.get("pi_1")
    assert intent.state is IntentState.CREATED
    assert intent.amount == amount
    assert intent.currency == "usd"
    assert intent.client_secret == "secret_1"
    assert intent.last_event_id is None


@pytest.mark.parametrize("amount", [0, -5, True, 12.5, "100", None])
def test_create_rejects_invalid_amount_without_gateway_call(manager, gateway, amount):
    with pytest.raises(ValidationError):
        manager.create(amount)

    gateway.create.assert_not_called()


def test_create_gateway_timeout_records_nothing(manager, gateway, store):
    gateway.create.side_effect = GatewayTimeout("timed out")

    with pytest.raises(GatewayTimeout):
        manager.create(1000)

    assert store.get("pi_1") is None


def test_create_logs_gateway_intent_that_could_not_be_stored(manager, store, mocker):
    mocker.patch.object(store, "add", side_effect=SQLAlchemyError("disk I/O error"))
    log = mocker.patch("payment_intents.lifecycle.logger")

    with pytest.raises(SQLAlchemyError):
        manager.create(1000)

    log.error.assert_called_once()
    assert "pi_1" in log.error.call_args.args


def test_unknown_ids_leave_no_lock_entries(manager, store, gateway):
    for i in range(100):
        with pytest.raises(IntentNotFound):
            manager.cancel(f"pi_bogus_{i}")
        with pytest.raises(ReconciliationSkip):
            manager.reconcile(event("succeeded", f"evt_{i}", f"pi_bogus_{i}"))

    assert store._locks == {}
    gateway.cancel.assert_not_called()


def test_lock_entries_released_after_cancel_and_reconcile(manager, store):
    manager.create(3800)
    manager.reconcile(event("created", "evt_created"))
    manager.cancel("pi_1")
    with pytest.raises(InvalidStateTransition):
        manager.cancel("pi_1")

    assert store._locks == {}


def test_get_unknown_intent(manager):
    with pytest.raises(IntentNotFound):
        manager.get("pi_missing")


def test_reconcile_succeeded(manager):
    manager.create(3800)

    assert manager.reconcile(event("succeeded")) is IntentState.SUCCEEDED
    assert manager.get("pi_1").last_event_id == "evt_1"


def test_reconcile_same_event_twice_is_idempotent(manager):
    manager.create(3800)
    manager.reconcile(event("created", "evt_created"))
    once = manager.get("pi_1").state

    with pytest.raises(ReconciliationSkip) as excinfo:
        manager.reconcile(event("created", "evt_created"))

    assert "Duplicate" in excinfo.value.reason
    assert manager.get("pi_1").state is once


def test_first_terminal_event_wins(manager):
    manager.create(3800)
    manager.reconcile(event("canceled", "evt_cancel"))

    with pytest.raises(ReconciliationSkip):
        manager.reconcile(event("succeeded", "evt_success"))

    intent = manager.get("pi_1")
    assert intent.state is IntentState.CANCELED
    assert intent.last_event_id == "evt_cancel"


def test_reconcile_unknown_intent_is_skipped(manager):
    with pytest.raises(ReconciliationSkip) as excinfo:
        manager.reconcile(event("succeeded", intent_id="pi_elsewhere"))

    assert excinfo.value.event_id == "evt_1"


def test_reconcile_unhandled_type_leaves_state(manager):
    manager.create(3800)

    with pytest.raises(ReconciliationSkip):
        manager.reconcile(event("requires_action"))

    assert manager.get("pi_1").state is IntentState.CREATED


def test_unknown_state_accepts_transitions(manager, store):
    store.add(PaymentIntent(id="pi_1", amount=100, currency="usd", state=IntentState.UNKNOWN))

    assert manager.reconcile(event("succeeded")) is IntentState.SUCCEEDED


def test_cancel(manager, gateway):
    manager.create(3800)

    intent = manager.cancel("pi_1")

    assert intent.state is IntentState.CANCELED
    gateway.cancel.assert_called_once_with("pi_1")


@pytest.mark.parametrize("state", [IntentState.SUCCEEDED, IntentState.CANCELED, IntentState.FAILED])
def test_cancel_terminal_intent_never_calls_gateway(manager, gateway, store, state):
    store.add(PaymentIntent(id="pi_1", amount=100, currency="usd", state=state))

    with pytest.raises(InvalidStateTransition):
        manager.cancel("pi_1")

    gateway.cancel.assert_not_called()


@pytest.mark.parametrize("intent_id", ["", None, 42])
def test_cancel_malformed_target(manager, gateway, intent_id):
    with pytest.raises(ValidationError):
        manager.cancel(intent_id)

    gateway.cancel.assert_not_called()


def test_cancel_races_with_succeeded_webhook(manager, gateway):
    manager.create(3800)

    def succeed_during_gateway_call(intent_id):
        manager.reconcile(event("succeeded", "evt_race"))

    gateway.cancel.side_effect = succeed_during_gateway_call

    with pytest.raises(InvalidStateTransition):
        manager.cancel("pi_1")

    assert manager.get("pi_1").state is IntentState.SUCCEEDED


def test_cancel_races_with_canceled_webhook(manager, gateway):
    manager.create(3800)

    def cancel_webhook_during_gateway_call(intent_id):
        manager.reconcile(event("canceled", "evt_race"))

    gateway.cancel.side_effect = cancel_webhook_during_gateway_call

    assert manager.cancel("pi_1").state is IntentState.CANCELED


def test_concurrent_conflicting_deliveries_apply_one_terminal_state(manager):
    manager.create(3800)
    events = [event("succeeded", f"evt_s{i}") for i in range(5)]
    events += [event("canceled", f"evt_c{i}") for i in range(5)]
    applied = []
    skipped = []
    barrier = threading.Barrier(len(events))

    def deliver(ev):
        barrier.wait()
        try:
            applied.append((ev.event_id, manager.reconcile(ev)))
        except ReconciliationSkip:
            skipped.append(ev.event_id)

    threads = [threading.Thread(target=deliver, args=(ev,)) for ev in events]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(applied) == 1
    assert len(skipped) == len(events) - 1
    event_id, state = applied[0]
    intent = manager.get("pi_1")
    assert intent.state is state
    assert intent.last_event_id == event_id
