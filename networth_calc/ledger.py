"""Recording and deleting real loan payments.

A recorded payment is split into interest and principal against the loan's
live balance, then the ledger row and the balance decrement are written as a
single atomic store operation. Deleting a payment reverses it the same way.
The store is any object with ``get_loan``, ``apply_payment`` and
``revert_payment``; see ``networth_calc_web.store.HouseholdStore``.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Union
from uuid import uuid4

from .data_models import PaymentRecord, PaymentType
from .engine import split_payment

logger = logging.getLogger(__name__)


def build_payment(loan, amount: Decimal, payment_type: Union[str, PaymentType], paid_on: date, note: str = "") -> PaymentRecord:
    """Return the ledger entry for a payment against ``loan`` without saving it."""
    payment_type = PaymentType(payment_type)
    breakdown = split_payment(loan.current_balance, loan.annual_rate, amount, payment_type)
    return PaymentRecord(
        id=uuid4().hex,
        loan_id=loan.id,
        date=paid_on,
        amount=Decimal(amount),
        payment_type=payment_type,
        principal_paid=breakdown.principal_paid,
        interest_paid=breakdown.interest_paid,
        note=(note or "").strip(),
        created_at=datetime.now(timezone.utc),
    )


def record_payment(
    store,
    loan_id: str,
    amount: Decimal,
    payment_type: Union[str, PaymentType],
    paid_on: date,
    note: str = "",
) -> PaymentRecord:
    """Split a payment, then save it and decrement the loan balance atomically."""
    loan = store.get_loan(loan_id)
    record = build_payment(loan, amount, payment_type, paid_on, note)
    store.apply_payment(record)
    logger.info(
        f"Recorded {record.payment_type.value} payment {record.id} of {record.amount} on loan {loan_id}: "
        f"principal={record.principal_paid}, interest={record.interest_paid}"
    )
    return record


def delete_payment(store, payment_id: str) -> PaymentRecord:
    """Remove a ledger entry and add its principal back to the loan balance."""
    record = store.revert_payment(payment_id)
    logger.info(f"Deleted payment {payment_id}; restored {record.principal_paid} to loan {record.loan_id}.")
    return record
