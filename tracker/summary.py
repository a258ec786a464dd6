import calendar
import logging
from dataclasses import dataclass, field
from datetime import date as dt_date

from .db import Store
from .models import EXPENSE, INCOME, TransactionFilter
from .repo import sum_by_category, sum_by_month, sum_by_type

logger = logging.getLogger(__name__)


def format_amount(amount: float, symbol: str = "₹") -> str:
    """Format an amount for display, e.g. '₹1,234.50'."""
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def resolve_date_range(
    filt: TransactionFilter, today: dt_date | None = None
) -> tuple[str | None, str | None]:
    """Inclusive ISO date bounds for ``filt``; ``None`` means unbounded."""
    if filt.date_from or filt.date_to:
        return (
            filt.date_from.isoformat() if filt.date_from else None,
            filt.date_to.isoformat() if filt.date_to else None,
        )
    if filt.month is not None:
        if not 1 <= filt.month <= 12:
            raise ValueError("month must be between 1 and 12")
        year = filt.year if filt.year is not None else (today or dt_date.today()).year
        last_day = calendar.monthrange(year, filt.month)[1]
        return (
            dt_date(year, filt.month, 1).isoformat(),
            dt_date(year, filt.month, last_day).isoformat(),
        )
    if filt.year is not None:
        return dt_date(filt.year, 1, 1).isoformat(), dt_date(filt.year, 12, 31).isoformat()
    return None, None


@dataclass
class MonthTotals:
    month: str
    income_cents: int = 0
    expense_cents: int = 0


@dataclass
class Summary:
    income_cents: int
    expense_cents: int
    by_category: dict[str, list[tuple[str, int]]] = field(default_factory=dict)
    monthly: list[MonthTotals] = field(default_factory=list)

    @property
    def total_income(self) -> float:
        return self.income_cents / 100

    @property
    def total_expenses(self) -> float:
        return self.expense_cents / 100

    @property
    def net_balance(self) -> float:
        return (self.income_cents - self.expense_cents) / 100

    def to_dict(self, symbol: str = "₹") -> dict:
        def money(cents: int) -> dict:
            return {"raw": cents / 100, "formatted": format_amount(cents / 100, symbol)}

        return {
            "totalIncome": money(self.income_cents),
            "totalExpenses": money(self.expense_cents),
            "netBalance": money(self.income_cents - self.expense_cents),
            "byCategory": {
                txn_type: [
                    {"category": category, "amount": money(cents)}
                    for category, cents in entries
                ]
                for txn_type, entries in self.by_category.items()
            },
            "monthly": [
                {
                    "month": m.month,
                    "income": money(m.income_cents),
                    "expenses": money(m.expense_cents),
                }
                for m in self.monthly
            ],
        }


def compute_summary(
    store: Store,
    owner_id: str,
    filt: TransactionFilter | None = None,
    *,
    today: dt_date | None = None,
) -> Summary:
    filt = filt or TransactionFilter()
    start, end = resolve_date_range(filt, today)
    scope = {
        "owner_id": owner_id,
        "start": start,
        "end": end,
        "category": filt.category,
    }

    totals = sum_by_type(store, **scope)

    by_category: dict[str, list[tuple[str, int]]] = {}
    for row in sum_by_category(store, **scope):
        by_category.setdefault(row["type"], []).append(
            (row["category"], int(row["amount_cents"]))
        )

    months: dict[str, MonthTotals] = {}
    for row in sum_by_month(store, **scope):
        entry = months.setdefault(row["month"], MonthTotals(month=row["month"]))
        if row["type"] == INCOME:
            entry.income_cents = int(row["amount_cents"])
        elif row["type"] == EXPENSE:
            entry.expense_cents = int(row["amount_cents"])

    logger.debug(
        "summary for %s between %s and %s: %d categories, %d months",
        owner_id,
        start,
        end,
        sum(len(v) for v in by_category.values()),
        len(months),
    )
    return Summary(
        income_cents=totals["income_cents"],
        expense_cents=totals["expense_cents"],
        by_category=by_category,
        monthly=sorted(months.values(), key=lambda m: m.month),
    )
