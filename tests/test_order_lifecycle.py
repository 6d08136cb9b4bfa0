from datetime import timedelta

import pytest
from conftest import make_contract, make_user

from vconn import models
from vconn.database import SessionLocal
from vconn.services import contract_registry, order_lifecycle, quota_ledger
from vconn.services.errors import NotEligible, NotFound, QuotaExceeded, ValidationError
from vconn.services.quota_ledger import QuotaKind

OrderStatus = models.OrderStatus


@pytest.mark.parametrize(
    "from_status,to_status,allowed",
    [
        (OrderStatus.pending, OrderStatus.cancelled, True),
        (OrderStatus.pending, OrderStatus.delivered, True),
        (OrderStatus.confirmed, OrderStatus.cancelled, True),
        (OrderStatus.confirmed, OrderStatus.delivered, True),
        (OrderStatus.pending, OrderStatus.confirmed, False),
        (OrderStatus.cancelled, OrderStatus.delivered, False),
        (OrderStatus.delivered, OrderStatus.cancelled, False),
        (OrderStatus.cancelled, OrderStatus.pending, False),
    ],
)
def test_transition_table(from_status, to_status, allowed):
    assert order_lifecycle.can_transition(from_status, to_status) is allowed


def test_terminal_statuses():
    assert order_lifecycle.is_terminal(OrderStatus.cancelled)
    assert order_lifecycle.is_terminal(OrderStatus.delivered)
    assert not order_lifecycle.is_terminal(OrderStatus.pending)
    assert not order_lifecycle.is_terminal(OrderStatus.confirmed)


def test_accept_then_order_end_to_end(db_session, wholesaler, vendor, now):
    contract = make_contract(
        db_session, wholesaler, daily_quantity=10, price_per_unit=5, duration_days=30, now=now
    )
    assert contract_registry.accept_by_vendor(
        db_session, contract_id=contract.id, vendor_id=vendor.id
    ).ok

    outcome = order_lifecycle.place_order(
        db_session, vendor_id=vendor.id, contract_id=contract.id, quantity=3, now=now
    )

    assert outcome.ok
    order = outcome.value
    assert order.total_amount == 15.0
    assert order.status == OrderStatus.pending
    assert order.delivery_date == now.date() + timedelta(days=1)
    assert order.contract.product_name == contract.product_name


def test_accepted_vendor_orders_without_touching_free_attempts(db_session, wholesaler):
    vendor = make_user(db_session, models.UserRole.vendor, free_attempts_used=5)
    contract = make_contract(db_session, wholesaler)
    contract_registry.accept_by_vendor(db_session, contract_id=contract.id, vendor_id=vendor.id)

    for _ in range(8):
        assert order_lifecycle.place_order(
            db_session, vendor_id=vendor.id, contract_id=contract.id, quantity=1
        ).ok

    assert order_lifecycle.count_by_vendor(db_session, vendor_id=vendor.id) == 8
    assert quota_ledger.remaining(db_session, vendor.id, QuotaKind.free_attempts) == 0


def test_free_attempts_are_lifetime_not_per_contract(db_session, wholesaler, vendor):
    contracts = [make_contract(db_session, wholesaler) for _ in range(3)]

    results = [
        order_lifecycle.place_order(
            db_session, vendor_id=vendor.id, contract_id=contracts[i % 3].id, quantity=1
        )
        for i in range(6)
    ]

    assert [r.ok for r in results] == [True] * 5 + [False]
    assert isinstance(results[-1].error, QuotaExceeded)
    assert isinstance(results[-1].error, NotEligible)
    assert order_lifecycle.count_by_vendor(db_session, vendor_id=vendor.id) == 5


def test_can_place_order_reports_the_path_used(db_session, wholesaler, vendor):
    accepted = make_contract(db_session, wholesaler)
    other = make_contract(db_session, wholesaler)
    contract_registry.accept_by_vendor(db_session, contract_id=accepted.id, vendor_id=vendor.id)

    via_acceptance = order_lifecycle.can_place_order(
        db_session, vendor_id=vendor.id, contract_id=accepted.id
    )
    via_free_attempt = order_lifecycle.can_place_order(
        db_session, vendor_id=vendor.id, contract_id=other.id
    )

    assert via_acceptance.allowed and not via_acceptance.uses_free_attempt
    assert via_free_attempt.allowed and via_free_attempt.uses_free_attempt

    exhausted = make_user(db_session, models.UserRole.vendor, free_attempts_used=5)
    denied = order_lifecycle.can_place_order(
        db_session, vendor_id=exhausted.id, contract_id=other.id
    )
    assert not denied.allowed
    assert isinstance(denied.error, QuotaExceeded)


def test_failed_order_does_not_consume_quota(db_session, wholesaler, vendor):
    missing = order_lifecycle.place_order(
        db_session, vendor_id=vendor.id, contract_id=12345, quantity=1
    )
    invalid = order_lifecycle.place_order(
        db_session, vendor_id=vendor.id, contract_id=make_contract(db_session, wholesaler).id,
        quantity=0,
    )

    assert isinstance(missing.error, NotFound)
    assert isinstance(invalid.error, ValidationError)
    assert quota_ledger.remaining(db_session, vendor.id, QuotaKind.free_attempts) == 5


def test_deactivated_contract_takes_no_new_orders(db_session, wholesaler, vendor):
    contract = make_contract(db_session, wholesaler)
    contract_registry.accept_by_vendor(db_session, contract_id=contract.id, vendor_id=vendor.id)
    contract_registry.deactivate_by_wholesaler(
        db_session, contract_id=contract.id, wholesaler_id=wholesaler.id
    )

    outcome = order_lifecycle.place_order(
        db_session, vendor_id=vendor.id, contract_id=contract.id, quantity=1
    )

    assert isinstance(outcome.error, NotEligible)
    assert order_lifecycle.count_by_vendor(db_session, vendor_id=vendor.id) == 0


def test_deactivation_committed_during_place_order_blocks_it(
    db_session, wholesaler, vendor, monkeypatch
):
    contract = make_contract(db_session, wholesaler)
    contract_id, wholesaler_id, vendor_id = contract.id, wholesaler.id, vendor.id
    real_is_accepted = contract_registry.is_accepted

    def is_accepted_then_deactivate(db, **kwargs):
        accepted = real_is_accepted(db, **kwargs)
        other = SessionLocal()
        try:
            contract_registry.deactivate_by_wholesaler(
                other, contract_id=contract_id, wholesaler_id=wholesaler_id
            )
        finally:
            other.close()
        return accepted

    monkeypatch.setattr(contract_registry, "is_accepted", is_accepted_then_deactivate)
    outcome = order_lifecycle.place_order(
        db_session, vendor_id=vendor_id, contract_id=contract_id, quantity=2
    )

    assert isinstance(outcome.error, NotEligible)
    db_session.expire_all()
    assert order_lifecycle.count_by_vendor(db_session, vendor_id=vendor_id) == 0
    assert db_session.get(models.User, vendor_id).free_attempts_used == 0
    assert contract_registry.get(db_session, contract_id).status == "inactive"


def test_order_total_is_frozen_at_creation(db_session, wholesaler, vendor):
    contract = make_contract(db_session, wholesaler, price_per_unit=2.5)
    order = order_lifecycle.place_order(
        db_session, vendor_id=vendor.id, contract_id=contract.id, quantity=4
    ).value

    contract_registry.update_by_wholesaler(
        db_session,
        contract_id=contract.id,
        wholesaler_id=wholesaler.id,
        fields={"price_per_unit": 100.0},
    )

    assert order_lifecycle.get_order(db_session, order.id).total_amount == 10.0


def test_cancel_consumes_exactly_one_cancellation(db_session, wholesaler, vendor):
    contract = make_contract(db_session, wholesaler)
    order = order_lifecycle.place_order(
        db_session, vendor_id=vendor.id, contract_id=contract.id, quantity=1
    ).value

    assert order_lifecycle.can_cancel(db_session, vendor_id=vendor.id, order_id=order.id).allowed
    outcome = order_lifecycle.cancel_order(db_session, order_id=order.id, vendor_id=vendor.id)

    assert outcome.ok
    assert outcome.value.status == OrderStatus.cancelled
    assert quota_ledger.remaining(db_session, vendor.id, QuotaKind.cancellations) == 4

    again = order_lifecycle.cancel_order(db_session, order_id=order.id, vendor_id=vendor.id)
    assert isinstance(again.error, NotEligible)
    assert quota_ledger.remaining(db_session, vendor.id, QuotaKind.cancellations) == 4


def test_cancel_rejects_foreign_delivered_and_missing_orders(db_session, wholesaler, vendor):
    contract = make_contract(db_session, wholesaler)
    order = order_lifecycle.place_order(
        db_session, vendor_id=vendor.id, contract_id=contract.id, quantity=1
    ).value
    other_vendor = make_user(db_session, models.UserRole.vendor)

    foreign = order_lifecycle.cancel_order(db_session, order_id=order.id, vendor_id=other_vendor.id)
    assert isinstance(foreign.error, NotEligible)
    assert not order_lifecycle.can_cancel(
        db_session, vendor_id=other_vendor.id, order_id=order.id
    ).allowed

    order_lifecycle.mark_delivered(db_session, order_id=order.id, wholesaler_id=wholesaler.id)
    delivered = order_lifecycle.cancel_order(db_session, order_id=order.id, vendor_id=vendor.id)
    assert isinstance(delivered.error, NotEligible)

    missing = order_lifecycle.cancel_order(db_session, order_id=999, vendor_id=vendor.id)
    assert isinstance(missing.error, NotFound)

    assert quota_ledger.remaining(db_session, vendor.id, QuotaKind.cancellations) == 5
    assert quota_ledger.remaining(db_session, other_vendor.id, QuotaKind.cancellations) == 5


def test_cancel_without_allowance_rolls_back_status(db_session, wholesaler):
    vendor = make_user(db_session, models.UserRole.vendor, cancellations_used=5)
    contract = make_contract(db_session, wholesaler)
    order = order_lifecycle.place_order(
        db_session, vendor_id=vendor.id, contract_id=contract.id, quantity=1
    ).value

    eligibility = order_lifecycle.can_cancel(db_session, vendor_id=vendor.id, order_id=order.id)
    outcome = order_lifecycle.cancel_order(db_session, order_id=order.id, vendor_id=vendor.id)

    assert isinstance(eligibility.error, QuotaExceeded)
    assert isinstance(outcome.error, QuotaExceeded)
    db_session.expire_all()
    assert order_lifecycle.get_order(db_session, order.id).status == OrderStatus.pending


def test_confirmed_orders_can_still_be_cancelled(db_session, wholesaler, vendor):
    contract = make_contract(db_session, wholesaler)
    order = order_lifecycle.place_order(
        db_session, vendor_id=vendor.id, contract_id=contract.id, quantity=1
    ).value
    # No engine operation confirms an order; simulate an external change.
    db_session.query(models.Order).filter(models.Order.id == order.id).update(
        {models.Order.status: OrderStatus.confirmed}, synchronize_session=False
    )
    db_session.commit()

    outcome = order_lifecycle.cancel_order(db_session, order_id=order.id, vendor_id=vendor.id)

    assert outcome.ok
    assert outcome.value.status == OrderStatus.cancelled


def test_mark_delivered_requires_owning_wholesaler(db_session, wholesaler, vendor):
    contract = make_contract(db_session, wholesaler)
    order = order_lifecycle.place_order(
        db_session, vendor_id=vendor.id, contract_id=contract.id, quantity=2
    ).value
    intruder = make_user(db_session, models.UserRole.wholesaler)

    assert (
        order_lifecycle.mark_delivered(db_session, order_id=order.id, wholesaler_id=intruder.id)
        is None
    )
    db_session.expire_all()
    assert order_lifecycle.get_order(db_session, order.id).status == OrderStatus.pending

    delivered = order_lifecycle.mark_delivered(
        db_session, order_id=order.id, wholesaler_id=wholesaler.id
    )
    assert delivered.status == OrderStatus.delivered
    assert delivered.delivered_at is not None

    # Terminal: a second delivery is a zero-row no-op.
    assert (
        order_lifecycle.mark_delivered(db_session, order_id=order.id, wholesaler_id=wholesaler.id)
        is None
    )


def test_mark_delivered_ignores_cancelled_orders(db_session, wholesaler, vendor):
    contract = make_contract(db_session, wholesaler)
    order = order_lifecycle.place_order(
        db_session, vendor_id=vendor.id, contract_id=contract.id, quantity=1
    ).value
    order_lifecycle.cancel_order(db_session, order_id=order.id, vendor_id=vendor.id)

    assert (
        order_lifecycle.mark_delivered(db_session, order_id=order.id, wholesaler_id=wholesaler.id)
        is None
    )


def test_vendor_reads(db_session, wholesaler, vendor):
    contract = make_contract(db_session, wholesaler)
    contract_registry.accept_by_vendor(db_session, contract_id=contract.id, vendor_id=vendor.id)
    orders = [
        order_lifecycle.place_order(
            db_session, vendor_id=vendor.id, contract_id=contract.id, quantity=q
        ).value
        for q in (1, 2, 3)
    ]
    order_lifecycle.cancel_order(db_session, order_id=orders[0].id, vendor_id=vendor.id)

    listed = order_lifecycle.list_by_vendor(db_session, vendor_id=vendor.id)
    active = order_lifecycle.active_by_vendor(db_session, vendor_id=vendor.id)

    assert [o.id for o in listed] == [orders[2].id, orders[1].id, orders[0].id]
    assert {o.id for o in active} == {orders[1].id, orders[2].id}
    assert order_lifecycle.count_by_vendor(db_session, vendor_id=vendor.id) == 3
