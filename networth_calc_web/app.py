import logging
import os
from decimal import Decimal
from uuid import uuid4

from flask import Flask, jsonify, request

from networth_calc.data_models import Account, AccountCategory, Household, Loan, PaymentType, extra_payment_rule
from networth_calc.engine import monthly_payment, payment_retires_balance, project_with_extra_payments, split_payment
from networth_calc.ledger import delete_payment, record_payment
from networth_calc.snapshots import (
    build_forecast,
    build_trend_series,
    compute_totals,
    forecast_horizon,
    normalize_time_range,
    refresh_snapshot,
)
from networth_calc.utils import decimal_from_str, local_day, parse_date, parse_timezone
from networth_calc_web.store import RecordNotFoundError, create_store_from_env

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
app.config["DEFAULT_TIMEZONE"] = os.environ.get("NETWORTH_DEFAULT_TIMEZONE", "UTC")
store = create_store_from_env(os.environ.get("NETWORTH_DATABASE_URL"))

LOAN_TERM_FIELDS = {"original_amount", "annual_rate", "term_years"}


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _money(value) -> float:
    return float(value) if value is not None else None


def _required(data: dict, name: str):
    value = data.get(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(f"Missing required field: {name}")
    return value


def _positive_amount(data: dict, name: str) -> Decimal:
    value = decimal_from_str(_required(data, name))
    if value <= 0:
        raise ValueError(f"{name} must be positive")
    return value


def _optional_date(data: dict, name: str):
    value = data.get(name)
    return parse_date(value) if value else None


def _optional_timezone(value):
    return parse_timezone(value) if value else None


def _household_timezone(household_id: str) -> str:
    return store.get_household(household_id).timezone or app.config["DEFAULT_TIMEZONE"]


def _whole_number(value, name: str) -> int:
    number = decimal_from_str(value)
    if number != number.to_integral_value():
        raise ValueError(f"{name} must be a whole number")
    return int(number)


def _parse_loan_fields(data: dict, partial: bool = False) -> dict:
    """Validate loan input. Only fields present in ``data`` are returned when ``partial``."""
    fields = {}
    for name in ("original_amount", "current_balance", "annual_rate"):
        if name in data or (not partial and name != "current_balance"):
            value = decimal_from_str(_required(data, name))
            if value < 0 or (name == "original_amount" and value == 0):
                raise ValueError(f"{name} is out of range")
            fields[name] = value
    if "term_years" in data or not partial:
        term = _whole_number(_required(data, "term_years"), "term_years")
        if term <= 0:
            raise ValueError("term_years must be positive")
        fields["term_years"] = term
    if "start_date" in data or not partial:
        fields["start_date"] = parse_date(_required(data, "start_date"))
    for name in ("lender", "loan_type"):
        if name in data:
            fields[name] = str(data[name]).strip()
    return fields


def _refresh(household_id: str) -> None:
    # Secondary effect of a mutation that has already been committed.
    refresh_snapshot(store, household_id, default_tz=app.config["DEFAULT_TIMEZONE"])


def _serialize_household(h: Household) -> dict:
    return {
        "id": h.id,
        "name": h.name,
        "currency": h.currency,
        "timezone": h.timezone,
        "home_purchase_price": _money(h.home_purchase_price),
        "home_purchase_date": h.home_purchase_date.isoformat() if h.home_purchase_date else None,
        "appreciation_rate": float(h.appreciation_rate),
    }


def _serialize_account(a: Account) -> dict:
    return {
        "id": a.id,
        "household_id": a.household_id,
        "category": a.category.value,
        "institution": a.institution,
        "account_type": a.account_type,
        "balance": float(a.balance),
    }


def _serialize_loan(loan: Loan) -> dict:
    return {
        "id": loan.id,
        "household_id": loan.household_id,
        "lender": loan.lender,
        "loan_type": loan.loan_type,
        "original_amount": float(loan.original_amount),
        "current_balance": float(loan.current_balance),
        "annual_rate": float(loan.annual_rate),
        "term_years": loan.term_years,
        "start_date": loan.start_date.isoformat(),
        "monthly_payment": float(loan.monthly_payment),
    }


def _serialize_rule(rule) -> dict:
    return {
        "id": rule.id,
        "amount": float(rule.amount),
        "frequency": rule.frequency.value,
        "start_date": rule.start_date.isoformat(),
    }


def _serialize_payment(p) -> dict:
    return {
        "id": p.id,
        "loan_id": p.loan_id,
        "date": p.date.isoformat(),
        "amount": float(p.amount),
        "payment_type": p.payment_type.value,
        "principal_paid": float(p.principal_paid),
        "interest_paid": float(p.interest_paid),
        "note": p.note,
    }


def _serialize_schedule(schedule):
    """Convert schedule entries into JSON-serialisable dictionaries for charts."""
    serialized = []
    for entry in schedule:
        row = {
            "payment_number": entry.payment_number,
            "date": entry.date.isoformat(),
            "payment": float(entry.payment),
            "principal": float(entry.principal),
            "interest": float(entry.interest),
            "balance": float(entry.balance),
        }
        if entry.extra_payment is not None:
            row["extra_payment"] = float(entry.extra_payment)
        serialized.append(row)
    return serialized


@app.errorhandler(RecordNotFoundError)
def _not_found(exc):
    logger.warning(str(exc))
    return jsonify({"error": str(exc)}), 404


@app.errorhandler(ValueError)
def _bad_request(exc):
    return jsonify({"error": str(exc)}), 400


@app.post("/households")
def create_household():
    data = _payload()
    household = Household(
        id=uuid4().hex,
        name=str(data.get("name", "")).strip(),
        currency=str(data.get("currency", "USD")).upper(),
        timezone=_optional_timezone(data.get("timezone")),
        home_purchase_price=decimal_from_str(data["home_purchase_price"]) if data.get("home_purchase_price") else None,
        home_purchase_date=_optional_date(data, "home_purchase_date"),
        appreciation_rate=decimal_from_str(data.get("appreciation_rate", 0)),
    )
    household = store.add_household(household)
    logger.info(f"Created household {household.id}.")
    _refresh(household.id)
    return jsonify(_serialize_household(household)), 201


@app.get("/households/<household_id>")
def get_household(household_id):
    return jsonify(_serialize_household(store.get_household(household_id)))


@app.put("/households/<household_id>")
def update_household(household_id):
    data = _payload()
    fields = {}
    for name in ("name", "currency"):
        if name in data:
            fields[name] = data[name]
    if "timezone" in data:
        fields["timezone"] = _optional_timezone(data["timezone"])
    if "home_purchase_price" in data:
        price = data["home_purchase_price"]
        fields["home_purchase_price"] = decimal_from_str(price) if price not in (None, "") else None
    if "home_purchase_date" in data:
        fields["home_purchase_date"] = _optional_date(data, "home_purchase_date")
    if "appreciation_rate" in data:
        fields["appreciation_rate"] = decimal_from_str(data["appreciation_rate"])
    household = store.update_household(household_id, **fields)
    _refresh(household_id)
    return jsonify(_serialize_household(household))


@app.post("/households/<household_id>/accounts")
def create_account(household_id):
    data = _payload()
    store.get_household(household_id)
    account = Account(
        id=uuid4().hex,
        household_id=household_id,
        category=AccountCategory(data.get("category", "bank")),
        balance=decimal_from_str(_required(data, "balance")),
        institution=str(data.get("institution", "")).strip(),
        account_type=str(data.get("account_type", "")).strip(),
    )
    account = store.add_account(account)
    logger.info(f"Created {account.category.value} account {account.id} for household {household_id}.")
    _refresh(household_id)
    return jsonify(_serialize_account(account)), 201


@app.put("/accounts/<account_id>")
def update_account(account_id):
    data = _payload()
    fields = {name: data[name] for name in ("institution", "account_type") if name in data}
    if "balance" in data:
        fields["balance"] = decimal_from_str(data["balance"])
    account = store.update_account(account_id, **fields)
    _refresh(account.household_id)
    return jsonify(_serialize_account(account))


@app.delete("/accounts/<account_id>")
def delete_account(account_id):
    account = store.delete_account(account_id)
    logger.info(f"Deleted account {account_id}.")
    _refresh(account.household_id)
    return "", 204


@app.post("/households/<household_id>/loans")
def create_loan(household_id):
    fields = _parse_loan_fields(_payload())
    store.get_household(household_id)
    fields.setdefault("current_balance", fields["original_amount"])
    loan = Loan(
        id=uuid4().hex,
        household_id=household_id,
        monthly_payment=monthly_payment(fields["original_amount"], fields["annual_rate"], fields["term_years"]),
        **fields,
    )
    loan = store.add_loan(loan)
    logger.info(f"Created loan {loan.id} for household {household_id}.")
    _refresh(household_id)
    return jsonify(_serialize_loan(loan)), 201


@app.put("/loans/<loan_id>")
def update_loan(loan_id):
    fields = _parse_loan_fields(_payload(), partial=True)
    if LOAN_TERM_FIELDS & set(fields):
        current = store.get_loan(loan_id)
        fields["monthly_payment"] = monthly_payment(
            fields.get("original_amount", current.original_amount),
            fields.get("annual_rate", current.annual_rate),
            fields.get("term_years", current.term_years),
        )
    loan = store.update_loan(loan_id, **fields)
    _refresh(loan.household_id)
    return jsonify(_serialize_loan(loan))


@app.delete("/loans/<loan_id>")
def delete_loan(loan_id):
    loan = store.delete_loan(loan_id)
    logger.info(f"Deleted loan {loan_id}.")
    _refresh(loan.household_id)
    return "", 204


@app.get("/loans/<loan_id>/projection")
def loan_projection(loan_id):
    loan = store.get_loan(loan_id)
    rules = store.list_extra_payments(loan_id)
    result = project_with_extra_payments(
        loan.original_amount, loan.annual_rate, loan.term_years, loan.start_date, rules
    )
    return jsonify(
        {
            "monthly_payment": float(loan.monthly_payment),
            "extra_payments": [_serialize_rule(r) for r in rules],
            "total_interest": float(result.total_interest),
            "payoff_date": result.payoff_date.isoformat() if result.payoff_date else None,
            "interest_saved": float(result.interest_saved),
            "months_saved": result.months_saved,
            "schedule": _serialize_schedule(result.schedule),
        }
    )


@app.post("/loans/<loan_id>/extra-payments")
def create_extra_payment(loan_id):
    data = _payload()
    rule = extra_payment_rule(
        _positive_amount(data, "amount"),
        data.get("frequency", "monthly"),
        parse_date(_required(data, "start_date")),
        id=uuid4().hex,
    )
    rule = store.add_extra_payment(loan_id, rule)
    return jsonify(_serialize_rule(rule)), 201


@app.delete("/extra-payments/<rule_id>")
def delete_extra_payment(rule_id):
    store.remove_extra_payment(rule_id)
    return "", 204


@app.get("/loans/<loan_id>/payments")
def list_payments(loan_id):
    store.get_loan(loan_id)
    payments = store.list_payments(loan_id)
    return jsonify(
        {
            "payments": [_serialize_payment(p) for p in payments],
            "total_principal": float(sum((p.principal_paid for p in payments), Decimal("0"))),
            "total_interest": float(sum((p.interest_paid for p in payments), Decimal("0"))),
        }
    )


@app.post("/loans/<loan_id>/payments")
def create_payment(loan_id):
    data = _payload()
    amount = _positive_amount(data, "amount")
    payment_type = PaymentType(data.get("payment_type", "regular"))
    loan = store.get_loan(loan_id)
    # Undated payments land on the household's current day, like snapshots.
    paid_on = _optional_date(data, "date") or local_day(None, _household_timezone(loan.household_id))

    breakdown = split_payment(loan.current_balance, loan.annual_rate, amount, payment_type)
    if payment_retires_balance(breakdown, amount, payment_type) and not data.get("confirm"):
        return jsonify(
            {
                "error": "This payment amount will pay off the remaining balance.",
                "requires_confirmation": True,
                "principal_paid": float(breakdown.principal_paid),
                "interest_paid": float(breakdown.interest_paid),
            }
        ), 409

    record = record_payment(store, loan_id, amount, payment_type, paid_on, data.get("note", ""))
    _refresh(loan.household_id)
    return jsonify(_serialize_payment(record)), 201


@app.delete("/payments/<payment_id>")
def remove_payment(payment_id):
    record = delete_payment(store, payment_id)
    try:
        household_id = store.get_loan(record.loan_id).household_id
    except RecordNotFoundError:
        logger.warning(f"Loan {record.loan_id} is gone; skipping snapshot refresh.")
    else:
        _refresh(household_id)
    return "", 204


@app.get("/households/<household_id>/dashboard")
def dashboard(household_id):
    household = store.get_household(household_id)
    tz = household.timezone or app.config["DEFAULT_TIMEZONE"]
    window = normalize_time_range(request.args.get("range"))

    totals = compute_totals(
        store.list_accounts(household_id, AccountCategory.BANK),
        store.list_accounts(household_id, AccountCategory.INVESTMENT),
        household,
        store.list_loans(household_id),
    )
    trend = build_trend_series(
        store.list_snapshots(household_id), window, current_totals=totals, today=local_day(None, tz)
    )
    horizon = forecast_horizon(window)
    forecast = build_forecast(trend[-1], horizon)
    return jsonify(
        {
            "range": window,
            "totals": {
                "total_bank_balance": float(totals.total_bank_balance),
                "total_investments": float(totals.total_investments),
                "home_value": float(totals.home_value),
                "mortgage_balance": float(totals.mortgage_balance),
                "home_equity": float(totals.home_equity),
                "net_worth": float(totals.net_worth),
            },
            "trend": [
                {
                    "date": p.date.isoformat(),
                    "net_worth": float(p.net_worth),
                    "total_banks": float(p.total_banks),
                    "total_investments": float(p.total_investments),
                    "home_equity": float(p.home_equity),
                }
                for p in trend
            ],
            "forecast_horizon_days": horizon,
            "forecast": [
                {"date": p.date.isoformat(), "forecast_net_worth": float(p.forecast_net_worth)}
                for p in forecast
            ],
        }
    )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    print("Starting net worth dashboard API...")
    app.run(host="0.0.0.0", port=8710, debug=True)
