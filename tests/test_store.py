from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from networth_calc.data_models import (
    Account,
    AccountCategory,
    AnnualExtraPayment,
    Household,
    Loan,
    MonthlyExtraPayment,
    PaymentType,
    Totals,
)
from networth_calc.ledger import delete_payment, record_payment
from networth_calc.snapshots import refresh_snapshot, upsert_snapshot
from networth_calc_web.store import RecordNotFoundError

D = Decimal


@pytest.fixture
def household(store):
    return store.add_household(Household(id="h1", name="Home", timezone="UTC"))


@pytest.fixture
def loan(store, household):
    return store.add_loan(
        Loan(
            id="l1",
            household_id="h1",
            original_amount=D("200000"),
            current_balance=D("200000"),
            annual_rate=D("6"),
            term_years=30,
            start_date=date(2024, 1, 1),
            monthly_payment=D("1199.10"),
        )
    )


def test_record_payment_decrements_balance(store, loan):
    record = record_payment(store, "l1", D("1500"), "regular", date(2024, 2, 1), note=" first ")
    assert record.interest_paid == D("1000.00")
    assert record.principal_paid == D("500.00")
    assert record.note == "first"
    assert store.get_loan("l1").current_balance == D("199500")

    (saved,) = store.list_payments("l1")
    assert saved.id == record.id
    assert saved.payment_type is PaymentType.REGULAR
    assert saved.principal_paid == D("500")


def test_delete_payment_restores_balance(store, loan):
    record_payment(store, "l1", D("1500"), "regular", date(2024, 2, 1))
    extra = record_payment(store, "l1", D("10000"), "extra", date(2024, 2, 15))
    assert store.get_loan("l1").current_balance == D("189500")

    deleted = delete_payment(store, extra.id)
    assert deleted.principal_paid == D("10000")
    assert store.get_loan("l1").current_balance == D("199500")
    assert [p.payment_type for p in store.list_payments("l1")] == [PaymentType.REGULAR]


def test_balance_never_goes_negative(store, loan):
    store.update_loan("l1", current_balance=D("300"))
    record = record_payment(store, "l1", D("1000"), "extra", date(2024, 3, 1))
    assert record.principal_paid == D("300")
    assert store.get_loan("l1").current_balance == 0


def test_unknown_payment_cannot_be_deleted(store, loan):
    with pytest.raises(RecordNotFoundError):
        delete_payment(store, "missing")


def test_soft_deleted_loan_is_excluded(store, loan):
    store.delete_loan("l1")
    assert store.list_loans("h1") == []
    with pytest.raises(RecordNotFoundError):
        store.get_loan("l1")
    with pytest.raises(RecordNotFoundError):
        record_payment(store, "l1", D("100"), "extra", date(2024, 3, 1))


def test_accounts_by_category(store, household):
    store.add_account(Account(id="a1", household_id="h1", category=AccountCategory.BANK, balance=D("100")))
    store.add_account(Account(id="a2", household_id="h1", category=AccountCategory.INVESTMENT, balance=D("50")))
    store.add_account(Account(id="a3", household_id="h1", category=AccountCategory.BANK, balance=D("25")))
    store.delete_account("a3")
    assert [a.id for a in store.list_accounts("h1", AccountCategory.BANK)] == ["a1"]
    assert [a.id for a in store.list_accounts("h1", AccountCategory.INVESTMENT)] == ["a2"]
    assert store.update_account("a1", balance=D("175")).balance == D("175")
    with pytest.raises(ValueError):
        store.update_account("a1", household_id="h2")


def test_extra_payment_rules_round_trip_as_variants(store, loan):
    store.add_extra_payment("l1", MonthlyExtraPayment(amount=D("100"), start_date=date(2024, 1, 1)))
    annual = store.add_extra_payment("l1", AnnualExtraPayment(amount=D("2000"), start_date=date(2024, 6, 1)))
    rules = store.list_extra_payments("l1")
    assert {type(r) for r in rules} == {MonthlyExtraPayment, AnnualExtraPayment}
    store.remove_extra_payment(annual.id)
    assert [type(r) for r in store.list_extra_payments("l1")] == [MonthlyExtraPayment]


def test_upsert_keeps_one_row_per_day(store, household):
    morning = datetime(2024, 5, 1, 8, tzinfo=timezone.utc)
    evening = datetime(2024, 5, 1, 20, tzinfo=timezone.utc)
    upsert_snapshot(store, "h1", Totals(D("100"), D("0"), D("0"), D("0")), morning)
    upsert_snapshot(store, "h1", Totals(D("250"), D("10"), D("0"), D("60")), evening)
    snapshots = store.list_snapshots("h1")
    assert len(snapshots) == 1
    assert snapshots[0].date == date(2024, 5, 1)
    assert snapshots[0].total_bank_balance == D("250")
    assert snapshots[0].net_worth == D("200")

    upsert_snapshot(store, "h1", Totals(D("1"), D("0"), D("0"), D("0")), datetime(2024, 5, 2, tzinfo=timezone.utc))
    assert [s.date for s in store.list_snapshots("h1")] == [date(2024, 5, 1), date(2024, 5, 2)]


def test_refresh_snapshot_after_payment(store, loan):
    store.add_account(Account(id="a1", household_id="h1", category=AccountCategory.BANK, balance=D("50000")))
    record_payment(store, "l1", D("1500"), "regular", date(2024, 2, 1))
    snapshot = refresh_snapshot(store, "h1")
    assert snapshot.mortgage_balance == D("199500")
    assert snapshot.net_worth == D("50000") - D("199500")
    assert store.snapshot_for_day("h1", snapshot.date).id == snapshot.id


def test_refresh_snapshot_for_unknown_household_returns_none(store):
    assert refresh_snapshot(store, "nobody") is None
