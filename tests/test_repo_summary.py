from datetime import date

import pytest

from tracker.db import Store
from tracker.models import NewTransaction, TransactionFilter
from tracker.repo import create_txn
from tracker.settings import Settings
from tracker.summary import compute_summary, format_amount, resolve_date_range


def _store(tmp_path) -> Store:
    settings = Settings(
        data_dir=tmp_path, db_path=tmp_path / "t.sqlite", upload_dir=tmp_path / "uploads"
    )
    return Store.open(settings)


def _add(store, owner, txn_type, cents, category, day):
    party = {"from_party": "Acme"} if txn_type == "income" else {"to_party": "Shop"}
    return create_txn(
        store,
        owner,
        NewTransaction(
            type=txn_type,
            amount_cents=cents,
            category=category,
            date=date.fromisoformat(day),
            **party,
        ),
    )


APRIL_2025 = [
    ("income", 500000, "Salary", "2025-04-01"),
    ("income", 25000, "Freelance", "2025-04-03"),
    ("expense", 1200, "Food", "2025-04-04"),
    ("expense", 800, "Food", "2025-04-05"),
    ("expense", 30000, "Rent", "2025-04-06"),
    ("expense", 4550, "Transport", "2025-04-10"),
    ("income", 10000, "Freelance", "2025-04-15"),
    ("expense", 2500, "Food", "2025-04-20"),
    ("expense", 999, "Health", "2025-04-28"),
    ("expense", 15000, "Utilities", "2025-04-30"),
]

OTHER_MONTHS = [
    ("expense", 7000, "Food", "2025-03-31"),
    ("income", 480000, "Salary", "2025-05-01"),
    ("expense", 3300, "Rent", "2024-04-15"),
]


def _seed(store):
    for row in APRIL_2025 + OTHER_MONTHS:
        _add(store, "u1", *row)
    _add(store, "u2", "income", 999999, "Salary", "2025-04-02")


def test_summary_for_month(tmp_path):
    with _store(tmp_path) as store:
        _seed(store)
        summary = compute_summary(store, "u1", TransactionFilter(month=4, year=2025))

    income = sum(c for t, c, _, _ in APRIL_2025 if t == "income")
    expense = sum(c for t, c, _, _ in APRIL_2025 if t == "expense")
    assert summary.income_cents == income
    assert summary.expense_cents == expense
    assert summary.total_income == 5350.0
    assert summary.total_expenses == 550.49
    assert summary.net_balance == pytest.approx(5350.0 - 550.49)
    assert [m.month for m in summary.monthly] == ["2025-04"]
    assert summary.monthly[0].income_cents == income
    assert summary.monthly[0].expense_cents == expense


def test_summary_all_time(tmp_path):
    with _store(tmp_path) as store:
        _seed(store)
        summary = compute_summary(store, "u1")

    assert summary.income_cents == 1015000
    assert summary.income_cents - summary.expense_cents == round(summary.net_balance * 100)
    assert [m.month for m in summary.monthly] == ["2024-04", "2025-03", "2025-04", "2025-05"]
    march = summary.monthly[1]
    assert march.income_cents == 0
    assert march.expense_cents == 7000
    may = summary.monthly[3]
    assert may.income_cents == 480000
    assert may.expense_cents == 0

    for txn_type, total in (("income", summary.income_cents), ("expense", summary.expense_cents)):
        assert sum(cents for _, cents in summary.by_category[txn_type]) == total


def test_by_category_is_grouped_and_sorted(tmp_path):
    with _store(tmp_path) as store:
        _seed(store)
        summary = compute_summary(store, "u1", TransactionFilter(month=4, year=2025))

    assert summary.by_category["income"] == [("Salary", 500000), ("Freelance", 35000)]
    assert summary.by_category["expense"] == [
        ("Rent", 30000),
        ("Utilities", 15000),
        ("Transport", 4550),
        ("Food", 4500),
        ("Health", 999),
    ]


def test_category_filter_composes_with_dates(tmp_path):
    with _store(tmp_path) as store:
        _seed(store)
        summary = compute_summary(
            store, "u1", TransactionFilter(category="Food", year=2025)
        )

    assert summary.income_cents == 0
    assert summary.expense_cents == 1200 + 800 + 2500 + 7000
    assert list(summary.by_category) == ["expense"]
    assert [m.month for m in summary.monthly] == ["2025-03", "2025-04"]


def test_empty_summary(tmp_path):
    with _store(tmp_path) as store:
        summary = compute_summary(store, "nobody")

    assert summary.income_cents == 0
    assert summary.expense_cents == 0
    assert summary.net_balance == 0
    assert summary.by_category == {}
    assert summary.monthly == []


def test_summary_to_dict_carries_raw_and_formatted(tmp_path):
    with _store(tmp_path) as store:
        _add(store, "u1", "income", 123450, "Salary", "2025-04-01")
        _add(store, "u1", "expense", 200000, "Rent", "2025-04-02")
        data = compute_summary(store, "u1").to_dict("$")

    assert data["totalIncome"] == {"raw": 1234.5, "formatted": "$1,234.50"}
    assert data["totalExpenses"]["raw"] == 2000.0
    assert data["netBalance"] == {"raw": -765.5, "formatted": "-$765.50"}
    assert data["byCategory"]["expense"] == [
        {"category": "Rent", "amount": {"raw": 2000.0, "formatted": "$2,000.00"}}
    ]
    assert data["monthly"] == [
        {
            "month": "2025-04",
            "income": {"raw": 1234.5, "formatted": "$1,234.50"},
            "expenses": {"raw": 2000.0, "formatted": "$2,000.00"},
        }
    ]


@pytest.mark.parametrize(
    "filt,expected",
    [
        (TransactionFilter(), (None, None)),
        (
            TransactionFilter(date_from=date(2025, 1, 5), month=3, year=2024),
            ("2025-01-05", None),
        ),
        (TransactionFilter(date_to=date(2025, 1, 5)), (None, "2025-01-05")),
        (TransactionFilter(month=2, year=2024), ("2024-02-01", "2024-02-29")),
        (TransactionFilter(month=12), ("2026-12-01", "2026-12-31")),
        (TransactionFilter(year=2025), ("2025-01-01", "2025-12-31")),
    ],
)
def test_resolve_date_range(filt, expected):
    assert resolve_date_range(filt, today=date(2026, 10, 19)) == expected


@pytest.mark.parametrize("month", [0, 13])
def test_resolve_date_range_rejects_bad_month(month):
    with pytest.raises(ValueError):
        resolve_date_range(TransactionFilter(month=month))


def test_format_amount():
    assert format_amount(1234567.891) == "₹1,234,567.89"
    assert format_amount(0) == "₹0.00"
    assert format_amount(-5, "$") == "-$5.00"
