from .db import Store
from .models import NewTransaction, Transaction

_INSERT_SQL = """
    INSERT INTO transactions(
      owner_id, type, amount_cents, category, from_party, to_party, date, note, media_url
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


def _insert_params(owner_id: str, record: NewTransaction) -> tuple:
    return (
        owner_id,
        record.type,
        record.amount_cents,
        record.category,
        record.from_party,
        record.to_party,
        record.date.isoformat(),
        record.note,
        record.media_url,
    )


def _where(
    *,
    owner_id: str | None = None,
    start: str | None = None,
    end: str | None = None,
    category: str | None = None,
    txn_type: str | None = None,
    search: str | None = None,
) -> tuple[str, list]:
    clauses = []
    params: list = []
    if owner_id is not None:
        clauses.append("owner_id = ?")
        params.append(owner_id)
    if start:
        clauses.append("date >= ?")
        params.append(start)
    if end:
        clauses.append("date <= ?")
        params.append(end)
    if category:
        clauses.append("category = ?")
        params.append(category)
    if txn_type:
        clauses.append("type = ?")
        params.append(txn_type)
    if search:
        pattern = "%" + search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        clauses.append(
            "(category LIKE ? ESCAPE '\\' OR from_party LIKE ? ESCAPE '\\'"
            " OR to_party LIKE ? ESCAPE '\\' OR note LIKE ? ESCAPE '\\')"
        )
        params.extend([pattern] * 4)
    sql = " AND ".join(clauses) if clauses else "1 = 1"
    return sql, params


def create_txn(store: Store, owner_id: str, record: NewTransaction) -> Transaction:
    with store.transaction() as conn:
        cur = conn.execute(_INSERT_SQL, _insert_params(owner_id, record))
        row = conn.execute(
            "SELECT * FROM transactions WHERE id = ?", (cur.lastrowid,)
        ).fetchone()
    return Transaction.from_row(row)


def create_txns(
    store: Store, owner_id: str, records: list[NewTransaction]
) -> list[Transaction]:
    """Insert every record or none of them."""
    with store.transaction() as conn:
        ids = [
            conn.execute(_INSERT_SQL, _insert_params(owner_id, record)).lastrowid
            for record in records
        ]
        rows = [
            conn.execute("SELECT * FROM transactions WHERE id = ?", (txn_id,)).fetchone()
            for txn_id in ids
        ]
    return [Transaction.from_row(row) for row in rows]


def get_txn(store: Store, txn_id: int, *, owner_id: str | None = None) -> Transaction | None:
    where, params = _where(owner_id=owner_id)
    with store.transaction() as conn:
        row = conn.execute(
            f"SELECT * FROM transactions WHERE id = ? AND {where}",
            (txn_id, *params),
        ).fetchone()
    return Transaction.from_row(row) if row is not None else None


def list_txns(
    store: Store,
    *,
    owner_id: str,
    start: str | None = None,
    end: str | None = None,
    category: str | None = None,
    txn_type: str | None = None,
    search: str | None = None,
) -> list[Transaction]:
    where, params = _where(
        owner_id=owner_id,
        start=start,
        end=end,
        category=category,
        txn_type=txn_type,
        search=search,
    )
    with store.transaction() as conn:
        rows = conn.execute(
            f"""
            SELECT * FROM transactions
            WHERE {where}
            ORDER BY date DESC, id DESC
            """,
            params,
        ).fetchall()
    return [Transaction.from_row(row) for row in rows]


def count_txns(store: Store, *, owner_id: str | None = None) -> int:
    where, params = _where(owner_id=owner_id)
    with store.transaction() as conn:
        row = conn.execute(
            f"SELECT COUNT(*) AS c FROM transactions WHERE {where}", params
        ).fetchone()
    return int(row["c"])


def update_txn(
    store: Store,
    txn_id: int,
    record: NewTransaction,
    *,
    owner_id: str | None = None,
) -> Transaction | None:
    where, params = _where(owner_id=owner_id)
    with store.transaction() as conn:
        cur = conn.execute(
            f"""
            UPDATE transactions
            SET type = ?, amount_cents = ?, category = ?, from_party = ?,
                to_party = ?, date = ?, note = ?, media_url = ?
            WHERE id = ? AND {where}
            """,
            (*_insert_params(owner_id or "", record)[1:], txn_id, *params),
        )
        if cur.rowcount == 0:
            return None
        row = conn.execute(
            "SELECT * FROM transactions WHERE id = ?", (txn_id,)
        ).fetchone()
    return Transaction.from_row(row)


def delete_txn(store: Store, txn_id: int, *, owner_id: str | None = None) -> bool:
    where, params = _where(owner_id=owner_id)
    with store.transaction() as conn:
        cur = conn.execute(
            f"DELETE FROM transactions WHERE id = ? AND {where}",
            (txn_id, *params),
        )
        return cur.rowcount > 0


def sum_by_type(
    store: Store,
    *,
    owner_id: str,
    start: str | None = None,
    end: str | None = None,
    category: str | None = None,
) -> dict:
    where, params = _where(owner_id=owner_id, start=start, end=end, category=category)
    with store.transaction() as conn:
        totals = conn.execute(
            f"""
            SELECT
              COALESCE(SUM(CASE WHEN type = 'income' THEN amount_cents END), 0) AS income_cents,
              COALESCE(SUM(CASE WHEN type = 'expense' THEN amount_cents END), 0) AS expense_cents
            FROM transactions
            WHERE {where}
            """,
            params,
        ).fetchone()
    return {
        "income_cents": int(totals["income_cents"]),
        "expense_cents": int(totals["expense_cents"]),
    }


def sum_by_category(
    store: Store,
    *,
    owner_id: str,
    start: str | None = None,
    end: str | None = None,
    category: str | None = None,
):
    where, params = _where(owner_id=owner_id, start=start, end=end, category=category)
    with store.transaction() as conn:
        return conn.execute(
            f"""
            SELECT type, category, SUM(amount_cents) AS amount_cents
            FROM transactions
            WHERE {where}
            GROUP BY type, category
            ORDER BY type ASC, amount_cents DESC, category ASC
            """,
            params,
        ).fetchall()


def sum_by_month(
    store: Store,
    *,
    owner_id: str,
    start: str | None = None,
    end: str | None = None,
    category: str | None = None,
):
    where, params = _where(owner_id=owner_id, start=start, end=end, category=category)
    with store.transaction() as conn:
        return conn.execute(
            f"""
            SELECT substr(date, 1, 7) AS month, type, SUM(amount_cents) AS amount_cents
            FROM transactions
            WHERE {where}
            GROUP BY month, type
            ORDER BY month ASC, type ASC
            """,
            params,
        ).fetchall()
