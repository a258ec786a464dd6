from datetime import date as dt_date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .models import EXPENSE, INCOME, TRANSACTION_TYPES, NewTransaction

MISSING_FIELDS = "Missing required fields"
INVALID_TYPE = "Invalid transaction type. Must be 'income' or 'expense'"
INVALID_AMOUNT = "Invalid amount. Must be a positive number"
INVALID_DATE = "Invalid date format. Use YYYY-MM-DD format"
FROM_REQUIRED = "From field is required for income transactions"
TO_REQUIRED = "To field is required for expense transactions"

REQUIRED_FIELDS = ("type", "amount", "category", "date")

# Keeps grouped SUMs well inside sqlite's 64-bit INTEGER range
MAX_AMOUNT_CENTS = 10**15


def _text(raw, key: str) -> str:
    value = raw.get(key)
    if value is None:
        return ""
    return str(value)


def validate_type(s: str) -> str:
    if s not in TRANSACTION_TYPES:
        raise ValueError(INVALID_TYPE)
    return s


def parse_amount_to_cents(s: str) -> int:
    if not isinstance(s, str) or not s.strip():
        raise ValueError(INVALID_AMOUNT)
    try:
        d = Decimal(s.strip())
        if not d.is_finite() or d <= 0:
            raise ValueError(INVALID_AMOUNT)
        cents = (d * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError(INVALID_AMOUNT) from e
    if cents <= 0 or cents > MAX_AMOUNT_CENTS:
        raise ValueError(INVALID_AMOUNT)
    return int(cents)


def parse_date(s: str) -> dt_date:
    try:
        return datetime.strptime(s.strip(), "%Y-%m-%d").date()
    except (AttributeError, ValueError) as e:
        raise ValueError(INVALID_DATE) from e


def validate_record(raw) -> NewTransaction:
    """Turn one string-keyed record into a :class:`NewTransaction`.

    Rules are checked in a fixed order and the first failure is raised as
    ``ValueError`` carrying the user-facing reason. The record is not tied
    to any user; callers attach the owner.
    """
    if any(not _text(raw, key).strip() for key in REQUIRED_FIELDS):
        raise ValueError(MISSING_FIELDS)

    txn_type = validate_type(_text(raw, "type").strip())
    amount_cents = parse_amount_to_cents(_text(raw, "amount"))
    txn_date = parse_date(_text(raw, "date"))

    from_party = _text(raw, "from").strip()
    to_party = _text(raw, "to").strip()
    if txn_type == INCOME and not from_party:
        raise ValueError(FROM_REQUIRED)
    if txn_type == EXPENSE and not to_party:
        raise ValueError(TO_REQUIRED)
    if txn_type == INCOME:
        to_party = ""
    else:
        from_party = ""

    return NewTransaction(
        type=txn_type,
        amount_cents=amount_cents,
        category=_text(raw, "category").strip(),
        date=txn_date,
        from_party=from_party,
        to_party=to_party,
        note=_text(raw, "note").strip(),
        media_url=_text(raw, "mediaUrl").strip(),
    )


# Fields that only overwrite when given a non-empty value; note and mediaUrl
# overwrite whenever they are present, so they can be cleared.
_OVERWRITE_IF_TRUTHY = ("type", "amount", "category", "from", "to", "date")
_OVERWRITE_IF_PRESENT = ("note", "mediaUrl")


def merge_update(current: dict, changes: dict) -> NewTransaction:
    merged = dict(current)
    for key in _OVERWRITE_IF_TRUTHY:
        if changes.get(key):
            merged[key] = str(changes[key])
    for key in _OVERWRITE_IF_PRESENT:
        if changes.get(key) is not None:
            merged[key] = str(changes[key])
    return validate_record(merged)
