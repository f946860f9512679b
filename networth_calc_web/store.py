"""Persistence layer for households, balances, loans and snapshots.

This module keeps everything the dashboard needs in a relational database
through SQLAlchemy. It defaults to SQLite for local development, but accepts
any SQLAlchemy-compatible URL (e.g. PostgreSQL/MySQL). Rows are converted to
the plain dataclasses from ``networth_calc.data_models`` on the way out so the
engine never sees ORM objects.

Accounts and loans are soft-deleted and drop out of every listing. Payment
recording and deletion each change the ledger and the loan balance in one
transaction.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    select,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker

from networth_calc.data_models import (
    Account,
    AccountCategory,
    ExtraPaymentRule,
    Household,
    Loan,
    PaymentRecord,
    PaymentType,
    Snapshot,
    extra_payment_rule,
)

logger = logging.getLogger(__name__)

Base = declarative_base()

ZERO = Decimal("0")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordNotFoundError(LookupError):
    """Raised when a requested row does not exist or has been deleted."""


class HouseholdModel(Base):
    __tablename__ = "households"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False, default="")
    currency = Column(String(8), nullable=False, default="USD")
    timezone = Column(String(64), nullable=True)
    home_purchase_price = Column(Numeric(16, 2), nullable=True)
    home_purchase_date = Column(Date, nullable=True)
    appreciation_rate = Column(Numeric(8, 4), nullable=False, default=0)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class AccountModel(Base):
    __tablename__ = "accounts"

    id = Column(String(64), primary_key=True)
    household_id = Column(String(64), index=True, nullable=False)
    category = Column(String(16), index=True, nullable=False)
    institution = Column(String(255), nullable=False, default="")
    account_type = Column(String(64), nullable=False, default="")
    balance = Column(Numeric(16, 2), nullable=False, default=0)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class LoanModel(Base):
    __tablename__ = "loans"

    id = Column(String(64), primary_key=True)
    household_id = Column(String(64), index=True, nullable=False)
    lender = Column(String(255), nullable=False, default="")
    loan_type = Column(String(32), nullable=False, default="mortgage")
    original_amount = Column(Numeric(16, 2), nullable=False)
    current_balance = Column(Numeric(16, 2), nullable=False)
    annual_rate = Column(Numeric(8, 4), nullable=False)
    term_years = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    monthly_payment = Column(Numeric(16, 2), nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class ExtraPaymentModel(Base):
    __tablename__ = "extra_payments"

    id = Column(String(64), primary_key=True)
    loan_id = Column(String(64), index=True, nullable=False)
    amount = Column(Numeric(16, 2), nullable=False)
    frequency = Column(String(16), nullable=False)
    start_date = Column(Date, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class PaymentModel(Base):
    __tablename__ = "payments"

    id = Column(String(64), primary_key=True)
    loan_id = Column(String(64), index=True, nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(16, 2), nullable=False)
    payment_type = Column(String(16), nullable=False)
    principal_paid = Column(Numeric(16, 2), nullable=False)
    interest_paid = Column(Numeric(16, 2), nullable=False)
    note = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class SnapshotModel(Base):
    __tablename__ = "snapshots"
    __table_args__ = (UniqueConstraint("household_id", "date", name="uq_snapshot_household_day"),)

    id = Column(String(64), primary_key=True)
    household_id = Column(String(64), index=True, nullable=False)
    date = Column(Date, nullable=False)
    total_bank_balance = Column(Numeric(16, 2), nullable=False)
    total_investments = Column(Numeric(16, 2), nullable=False)
    home_value = Column(Numeric(16, 2), nullable=False)
    mortgage_balance = Column(Numeric(16, 2), nullable=False)
    net_worth = Column(Numeric(16, 2), nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


_HOUSEHOLD_FIELDS = {"name", "currency", "timezone", "home_purchase_price", "home_purchase_date", "appreciation_rate"}
_ACCOUNT_FIELDS = {"institution", "account_type", "balance"}
_LOAN_FIELDS = {
    "lender",
    "loan_type",
    "original_amount",
    "current_balance",
    "annual_rate",
    "term_years",
    "start_date",
    "monthly_payment",
}


def _apply_fields(row: Any, fields: Dict[str, Any], allowed: Iterable[str]) -> None:
    allowed = set(allowed)
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
    for key, value in fields.items():
        setattr(row, key, value)


class HouseholdStore:
    """Database-backed store for one or more households."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    # households

    def add_household(self, household: Household) -> Household:
        row = HouseholdModel(
            id=household.id,
            name=household.name,
            currency=household.currency,
            timezone=household.timezone,
            home_purchase_price=household.home_purchase_price,
            home_purchase_date=household.home_purchase_date,
            appreciation_rate=household.appreciation_rate,
        )
        with self._session_factory() as session:
            session.add(row)
            session.commit()
        return self._to_household(row)

    def get_household(self, household_id: str) -> Household:
        with self._session_factory() as session:
            row = session.get(HouseholdModel, household_id)
            if row is None:
                raise RecordNotFoundError(f"Household {household_id} not found")
            return self._to_household(row)

    def update_household(self, household_id: str, **fields: Any) -> Household:
        with self._session_factory() as session:
            row = session.get(HouseholdModel, household_id)
            if row is None:
                raise RecordNotFoundError(f"Household {household_id} not found")
            _apply_fields(row, fields, _HOUSEHOLD_FIELDS)
            session.commit()
            return self._to_household(row)

    # bank and investment accounts

    def add_account(self, account: Account) -> Account:
        row = AccountModel(
            id=account.id,
            household_id=account.household_id,
            category=AccountCategory(account.category).value,
            institution=account.institution,
            account_type=account.account_type,
            balance=account.balance,
        )
        with self._session_factory() as session:
            session.add(row)
            session.commit()
        return self._to_account(row)

    def get_account(self, account_id: str) -> Account:
        with self._session_factory() as session:
            return self._to_account(self._live_account(session, account_id))

    def update_account(self, account_id: str, **fields: Any) -> Account:
        with self._session_factory() as session:
            row = self._live_account(session, account_id)
            _apply_fields(row, fields, _ACCOUNT_FIELDS)
            session.commit()
            return self._to_account(row)

    def delete_account(self, account_id: str) -> Account:
        with self._session_factory() as session:
            row = self._live_account(session, account_id)
            row.is_deleted = True
            session.commit()
            return self._to_account(row)

    def list_accounts(self, household_id: str, category: Optional[AccountCategory] = None) -> List[Account]:
        query = select(AccountModel).where(
            AccountModel.household_id == household_id, AccountModel.is_deleted.is_(False)
        )
        if category is not None:
            query = query.where(AccountModel.category == AccountCategory(category).value)
        with self._session_factory() as session:
            rows = session.execute(query.order_by(AccountModel.created_at.asc())).scalars()
            return [self._to_account(row) for row in rows]

    # loans

    def add_loan(self, loan: Loan) -> Loan:
        row = LoanModel(
            id=loan.id,
            household_id=loan.household_id,
            lender=loan.lender,
            loan_type=loan.loan_type,
            original_amount=loan.original_amount,
            current_balance=loan.current_balance,
            annual_rate=loan.annual_rate,
            term_years=loan.term_years,
            start_date=loan.start_date,
            monthly_payment=loan.monthly_payment,
        )
        with self._session_factory() as session:
            session.add(row)
            session.commit()
        return self._to_loan(row)

    def get_loan(self, loan_id: str) -> Loan:
        with self._session_factory() as session:
            return self._to_loan(self._live_loan(session, loan_id))

    def update_loan(self, loan_id: str, **fields: Any) -> Loan:
        with self._session_factory() as session:
            row = self._live_loan(session, loan_id)
            _apply_fields(row, fields, _LOAN_FIELDS)
            if row.current_balance is not None and row.current_balance < 0:
                row.current_balance = ZERO
            session.commit()
            return self._to_loan(row)

    def delete_loan(self, loan_id: str) -> Loan:
        with self._session_factory() as session:
            row = self._live_loan(session, loan_id)
            row.is_deleted = True
            session.commit()
            return self._to_loan(row)

    def list_loans(self, household_id: str) -> List[Loan]:
        with self._session_factory() as session:
            rows = session.execute(
                select(LoanModel)
                .where(LoanModel.household_id == household_id, LoanModel.is_deleted.is_(False))
                .order_by(LoanModel.created_at.asc())
            ).scalars()
            return [self._to_loan(row) for row in rows]

    # extra payment rules

    def add_extra_payment(self, loan_id: str, rule: ExtraPaymentRule) -> ExtraPaymentRule:
        row = ExtraPaymentModel(
            id=rule.id or uuid4().hex,
            loan_id=loan_id,
            amount=rule.amount,
            frequency=rule.frequency.value,
            start_date=rule.start_date,
        )
        with self._session_factory() as session:
            self._live_loan(session, loan_id)
            session.add(row)
            session.commit()
        return self._to_rule(row)

    def list_extra_payments(self, loan_id: str) -> List[ExtraPaymentRule]:
        with self._session_factory() as session:
            rows = session.execute(
                select(ExtraPaymentModel)
                .where(ExtraPaymentModel.loan_id == loan_id)
                .order_by(ExtraPaymentModel.created_at.asc())
            ).scalars()
            return [self._to_rule(row) for row in rows]

    def remove_extra_payment(self, rule_id: str) -> None:
        with self._session_factory() as session:
            row = session.get(ExtraPaymentModel, rule_id)
            if row is None:
                raise RecordNotFoundError(f"Extra payment {rule_id} not found")
            session.delete(row)
            session.commit()

    # payment ledger

    def apply_payment(self, record: PaymentRecord) -> PaymentRecord:
        """Insert a ledger row and decrement the loan balance in one transaction."""
        with self._session_factory() as session:
            loan = self._live_loan(session, record.loan_id)
            session.add(
                PaymentModel(
                    id=record.id,
                    loan_id=record.loan_id,
                    date=record.date,
                    amount=record.amount,
                    payment_type=PaymentType(record.payment_type).value,
                    principal_paid=record.principal_paid,
                    interest_paid=record.interest_paid,
                    note=record.note,
                    created_at=record.created_at or _utcnow(),
                )
            )
            loan.current_balance = max(ZERO, loan.current_balance - record.principal_paid)
            session.commit()
        return record

    def revert_payment(self, payment_id: str) -> PaymentRecord:
        """Delete a ledger row and restore its principal to the loan in one transaction."""
        with self._session_factory() as session:
            row = session.get(PaymentModel, payment_id)
            if row is None:
                raise RecordNotFoundError(f"Payment {payment_id} not found")
            record = self._to_payment(row)
            loan = session.get(LoanModel, row.loan_id)
            if loan is not None:
                loan.current_balance = loan.current_balance + row.principal_paid
            else:
                logger.warning(f"Payment {payment_id} refers to missing loan {row.loan_id}.")
            session.delete(row)
            session.commit()
        return record

    def list_payments(self, loan_id: str) -> List[PaymentRecord]:
        with self._session_factory() as session:
            rows = session.execute(
                select(PaymentModel)
                .where(PaymentModel.loan_id == loan_id)
                .order_by(PaymentModel.date.desc(), PaymentModel.created_at.desc())
            ).scalars()
            return [self._to_payment(row) for row in rows]

    # snapshots

    def snapshot_for_day(self, household_id: str, day: date) -> Optional[Snapshot]:
        with self._session_factory() as session:
            row = session.execute(
                select(SnapshotModel).where(
                    SnapshotModel.household_id == household_id, SnapshotModel.date == day
                )
            ).scalars().first()
            return self._to_snapshot(row) if row is not None else None

    def save_snapshot(self, snapshot: Snapshot) -> Snapshot:
        """Create the day's snapshot, or overwrite the totals of the existing one."""
        try:
            return self._save_snapshot(snapshot)
        except IntegrityError:
            # Another writer created the day's row first; update it instead.
            logger.warning(f"Snapshot for {snapshot.household_id} on {snapshot.date} already exists; updating.")
            return self._save_snapshot(snapshot)

    def _save_snapshot(self, snapshot: Snapshot) -> Snapshot:
        with self._session_factory() as session:
            row = session.execute(
                select(SnapshotModel).where(
                    SnapshotModel.household_id == snapshot.household_id,
                    SnapshotModel.date == snapshot.date,
                )
            ).scalars().first()
            if row is None:
                row = SnapshotModel(
                    id=snapshot.id,
                    household_id=snapshot.household_id,
                    date=snapshot.date,
                    created_at=snapshot.created_at or _utcnow(),
                )
                session.add(row)
            row.total_bank_balance = snapshot.total_bank_balance
            row.total_investments = snapshot.total_investments
            row.home_value = snapshot.home_value
            row.mortgage_balance = snapshot.mortgage_balance
            row.net_worth = snapshot.net_worth
            session.commit()
            return self._to_snapshot(row)

    def list_snapshots(self, household_id: str) -> List[Snapshot]:
        with self._session_factory() as session:
            rows = session.execute(
                select(SnapshotModel)
                .where(SnapshotModel.household_id == household_id)
                .order_by(SnapshotModel.date.asc())
            ).scalars()
            return [self._to_snapshot(row) for row in rows]

    # helpers

    @staticmethod
    def _live_account(session, account_id: str) -> AccountModel:
        row = session.get(AccountModel, account_id)
        if row is None or row.is_deleted:
            raise RecordNotFoundError(f"Account {account_id} not found")
        return row

    @staticmethod
    def _live_loan(session, loan_id: str) -> LoanModel:
        row = session.get(LoanModel, loan_id)
        if row is None or row.is_deleted:
            raise RecordNotFoundError(f"Loan {loan_id} not found")
        return row

    @staticmethod
    def _to_household(row: HouseholdModel) -> Household:
        return Household(
            id=row.id,
            name=row.name,
            currency=row.currency,
            timezone=row.timezone,
            home_purchase_price=row.home_purchase_price,
            home_purchase_date=row.home_purchase_date,
            appreciation_rate=row.appreciation_rate if row.appreciation_rate is not None else ZERO,
        )

    @staticmethod
    def _to_account(row: AccountModel) -> Account:
        return Account(
            id=row.id,
            household_id=row.household_id,
            category=AccountCategory(row.category),
            balance=row.balance,
            institution=row.institution,
            account_type=row.account_type,
            is_deleted=row.is_deleted,
        )

    @staticmethod
    def _to_loan(row: LoanModel) -> Loan:
        return Loan(
            id=row.id,
            household_id=row.household_id,
            original_amount=row.original_amount,
            current_balance=row.current_balance,
            annual_rate=row.annual_rate,
            term_years=row.term_years,
            start_date=row.start_date,
            monthly_payment=row.monthly_payment,
            lender=row.lender,
            loan_type=row.loan_type,
            is_deleted=row.is_deleted,
        )

    @staticmethod
    def _to_rule(row: ExtraPaymentModel) -> ExtraPaymentRule:
        return extra_payment_rule(row.amount, row.frequency, row.start_date, id=row.id)

    @staticmethod
    def _to_payment(row: PaymentModel) -> PaymentRecord:
        return PaymentRecord(
            id=row.id,
            loan_id=row.loan_id,
            date=row.date,
            amount=row.amount,
            payment_type=PaymentType(row.payment_type),
            principal_paid=row.principal_paid,
            interest_paid=row.interest_paid,
            note=row.note,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_snapshot(row: SnapshotModel) -> Snapshot:
        return Snapshot(
            id=row.id,
            household_id=row.household_id,
            date=row.date,
            total_bank_balance=row.total_bank_balance,
            total_investments=row.total_investments,
            home_value=row.home_value,
            mortgage_balance=row.mortgage_balance,
            created_at=row.created_at,
        )


def create_store_from_env(url: str | None) -> HouseholdStore:
    return HouseholdStore(url or "sqlite:///networth_data.sqlite3")
