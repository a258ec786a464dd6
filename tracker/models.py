from dataclasses import dataclass, field
from datetime import date as dt_date

INCOME = "income"
EXPENSE = "expense"
TRANSACTION_TYPES = (INCOME, EXPENSE)

SUGGESTED_CATEGORIES = {
    INCOME: ["Salary", "Freelance", "Interest", "Other"],
    EXPENSE: [
        "Rent",
        "Utilities",
        "Groceries",
        "Dining",
        "Shopping",
        "Transportation",
        "Entertainment",
        "Other",
    ],
}


@dataclass(frozen=True)
class NewTransaction:
    """A validated transaction that has not been stored yet."""

    type: str
    amount_cents: int
    category: str
    date: dt_date
    from_party: str = ""
    to_party: str = ""
    note: str = ""
    media_url: str = ""

    @property
    def amount(self) -> float:
        return self.amount_cents / 100

    @property
    def counterparty(self) -> str:
        return self.from_party if self.type == INCOME else self.to_party


@dataclass(frozen=True)
class Transaction:
    id: int
    owner_id: str
    type: str
    amount_cents: int
    category: str
    from_party: str
    to_party: str
    date: str
    note: str
    media_url: str
    created_at: str

    @classmethod
    def from_row(cls, row) -> "Transaction":
        return cls(
            id=int(row["id"]),
            owner_id=row["owner_id"],
            type=row["type"],
            amount_cents=int(row["amount_cents"]),
            category=row["category"],
            from_party=row["from_party"],
            to_party=row["to_party"],
            date=row["date"],
            note=row["note"],
            media_url=row["media_url"],
            created_at=row["created_at"],
        )

    @property
    def amount(self) -> float:
        return self.amount_cents / 100

    def as_raw(self) -> dict:
        """Field values as they would appear in an import row."""
        return {
            "type": self.type,
            "amount": f"{self.amount_cents / 100:.2f}",
            "category": self.category,
            "from": self.from_party,
            "to": self.to_party,
            "date": self.date,
            "note": self.note,
            "mediaUrl": self.media_url,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "amount": self.amount,
            "category": self.category,
            "from": self.from_party,
            "to": self.to_party,
            "date": self.date,
            "note": self.note,
            "mediaUrl": self.media_url,
            "ownerId": self.owner_id,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class RowError:
    row: int
    error: str

    def to_dict(self) -> dict:
        return {"row": self.row, "error": self.error}


@dataclass
class ImportResult:
    imported: list[Transaction] = field(default_factory=list)
    rejected: list[RowError] = field(default_factory=list)

    @property
    def imported_count(self) -> int:
        return len(self.imported)


@dataclass(frozen=True)
class TransactionFilter:
    """Query parameters shared by listing and summaries.

    Date precedence: ``date_from``/``date_to`` > ``month`` (+ ``year``) >
    ``year`` > all time.
    """

    date_from: dt_date | None = None
    date_to: dt_date | None = None
    month: int | None = None
    year: int | None = None
    category: str | None = None
    type: str | None = None
    search: str | None = None


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str
