"""Coordinator behaviour with in-memory stores: lock order, rollback and error mapping."""

import logging

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from invoicing.services.invoice_service import InvoiceCoordinator, resolve_payment_status
from invoicing.services.records import CartLine, Tender
from invoicing.services.results import (
    EmptyCart,
    InsufficientStock,
    InvoiceFinalized,
    PersistenceFailure,
    RollbackFailed,
    Timeout,
)

from fakes import FakeCatalogStore, FakeLedgerStore, FakePaymentStore, FakeUnitOfWork


def _coordinator(catalog=None, ledger=None, payments=None, uow=None, **kwargs):
    uow = uow or FakeUnitOfWork()
    coordinator = InvoiceCoordinator(
        catalog or FakeCatalogStore({1: 10, 2: 10, 3: 10}),
        ledger or FakeLedgerStore(),
        payments or FakePaymentStore(),
        unit_of_work_factory=lambda: uow,
        **kwargs,
    )
    return coordinator, uow


def _locked_error(message="database is locked"):
    return OperationalError("SELECT 1", {}, Exception(message))


def test_products_are_locked_in_ascending_id_order():
    catalog = FakeCatalogStore({1: 10, 2: 10, 3: 10})
    coordinator, _ = _coordinator(catalog=catalog)

    coordinator.finalize_invoice(
        [CartLine(3, 1, 100), CartLine(1, 1, 100), CartLine(2, 1, 100), CartLine(1, 1, 100)],
        0,
        [],
    )

    assert catalog.lock_order == [1, 2, 3]
    assert catalog.stock == {1: 8, 2: 9, 3: 9}


def test_success_commits_once_and_closes():
    coordinator, uow = _coordinator()

    outcome = coordinator.finalize_invoice([CartLine(1, 2, 500)], "10", [Tender(1, 900)])

    assert isinstance(outcome, InvoiceFinalized)
    assert outcome.total_cents == 900
    assert uow.calls == ["begin", "commit", "close"]


def test_status_is_written_without_payments():
    payments = FakePaymentStore()
    coordinator, _ = _coordinator(payments=payments)

    outcome = coordinator.finalize_invoice([CartLine(1, 1, 100)], 0, [])

    assert outcome.payment_status == "PARTIAL"
    assert payments.statuses == {outcome.invoice_id: "PARTIAL"}


def test_validation_failure_opens_no_unit_of_work():
    opened = []
    coordinator = InvoiceCoordinator(
        FakeCatalogStore({1: 1}),
        FakeLedgerStore(),
        FakePaymentStore(),
        unit_of_work_factory=lambda: opened.append(1),
    )

    assert coordinator.finalize_invoice([], 0, []) == EmptyCart()
    assert opened == []


def test_business_failure_restores_everything():
    catalog = FakeCatalogStore({1: 10, 2: 1})
    ledger = FakeLedgerStore()
    coordinator, uow = _coordinator(catalog=catalog, ledger=ledger)

    outcome = coordinator.finalize_invoice([CartLine(1, 3, 100), CartLine(2, 2, 100)], 0, [])

    assert outcome == InsufficientStock(product_id=2, available=1, requested=2)
    assert catalog.stock == {1: 10, 2: 1}
    assert ledger.headers == {}
    assert uow.calls == ["begin", "rollback", "close"]


def test_payment_failure_after_lines_restores_everything():
    catalog = FakeCatalogStore({1: 10})
    ledger = FakeLedgerStore()
    payments = FakePaymentStore(active_methods={1})
    coordinator, _ = _coordinator(catalog=catalog, ledger=ledger, payments=payments)

    outcome = coordinator.finalize_invoice([CartLine(1, 1, 100)], 0, [Tender(1, 50), Tender(2, 50)])

    assert outcome.kind == "PaymentMethodUnavailable"
    assert catalog.stock == {1: 10}
    assert ledger.headers == {}
    assert ledger.lines == []
    assert payments.payments == []


def test_lock_timeout_maps_to_timeout():
    catalog = FakeCatalogStore({1: 10}, fail_on=1, error=_locked_error())
    coordinator, uow = _coordinator(catalog=catalog)

    outcome = coordinator.finalize_invoice([CartLine(1, 1, 100)], 0, [])

    assert isinstance(outcome, Timeout)
    assert outcome.category == "infrastructure"
    assert uow.calls == ["begin", "rollback", "close"]


def test_database_error_maps_to_persistence_failure():
    catalog = FakeCatalogStore({1: 10})
    ledger = FakeLedgerStore(line_error=IntegrityError("INSERT", {}, Exception("constraint failed")))
    coordinator, uow = _coordinator(catalog=catalog, ledger=ledger)

    outcome = coordinator.finalize_invoice([CartLine(1, 4, 100)], 0, [])

    assert outcome == PersistenceFailure(detail="IntegrityError")
    assert catalog.stock == {1: 10}
    assert ledger.headers == {}
    assert uow.calls[-2:] == ["rollback", "close"]


def test_refused_status_update_aborts():
    payments = FakePaymentStore(refuse_status=True)
    catalog = FakeCatalogStore({1: 10})
    coordinator, _ = _coordinator(catalog=catalog, payments=payments)

    outcome = coordinator.finalize_invoice([CartLine(1, 1, 100)], 0, [Tender(1, 100)])

    assert isinstance(outcome, PersistenceFailure)
    assert catalog.stock == {1: 10}
    assert payments.payments == []


def test_rollback_failure_is_critical(caplog):
    catalog = FakeCatalogStore({1: 1})
    uow = FakeUnitOfWork(rollback_error=OperationalError("ROLLBACK", {}, Exception("disk I/O error")))
    coordinator, _ = _coordinator(catalog=catalog, uow=uow)

    with caplog.at_level(logging.CRITICAL, logger="invoicing.services.invoice_service"):
        outcome = coordinator.finalize_invoice([CartLine(1, 5, 100)], 0, [])

    assert isinstance(outcome, RollbackFailed)
    assert outcome.category == "critical"
    assert "InsufficientStock" in outcome.detail
    assert uow.calls[-1] == "close"
    assert any(r.levelno == logging.CRITICAL for r in caplog.records)


def test_unexpected_error_is_reraised_after_rollback():
    catalog = FakeCatalogStore({1: 10}, fail_on=1, error=RuntimeError("bug"))
    coordinator, uow = _coordinator(catalog=catalog)

    with pytest.raises(RuntimeError):
        coordinator.finalize_invoice([CartLine(1, 1, 100)], 0, [])

    assert uow.calls == ["begin", "rollback", "close"]


def test_injected_clock_dates_the_header():
    ledger = FakeLedgerStore()
    stamp = object()
    coordinator = InvoiceCoordinator(
        FakeCatalogStore({1: 10}),
        ledger,
        FakePaymentStore(),
        unit_of_work_factory=FakeUnitOfWork,
        clock=lambda: stamp,
    )

    outcome = coordinator.finalize_invoice([CartLine(1, 1, 100)], 0, [])

    assert ledger.headers[outcome.invoice_id].invoice_date is stamp


@pytest.mark.parametrize("paid,total,expected", [
    (0, 100, "PARTIAL"),
    (50, 100, "PARTIAL"),
    (99, 100, "PARTIAL"),
    (100, 100, "PAID"),
    (150, 100, "PAID"),
    (0, 0, "PAID"),
])
def test_resolve_payment_status(paid, total, expected):
    assert resolve_payment_status(paid, total) == expected
