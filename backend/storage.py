"""
backend/storage.py

Read access to properties, investments and transactions for the ROI routes,
plus insert helpers used for seeding and tests.

All functions take an open connection from ``db.get_db_connection()`` and
use named parameters so the same SQL runs on SQLite and PostgreSQL.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

try:
    from backend.db import DbConnection, execute_query, fetch_all, fetch_one, insert_returning_id, commit
    from backend.models import Investment, Property, Transaction, TransactionType
except ModuleNotFoundError:
    from db import DbConnection, execute_query, fetch_all, fetch_one, insert_returning_id, commit
    from models import Investment, Property, Transaction, TransactionType


def to_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return to_utc(raw)
    text = str(raw).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(text))


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------
# Row -> model conversion
# ---------------------------------------------------------
def _property_from_row(row: Dict[str, Any]) -> Property:
    return Property(
        id=row["id"],
        name=row["name"],
        location=row.get("location") or "",
        property_type=row.get("property_type") or "residential",
        target_return=row["target_return"],
        funding_goal=row.get("funding_goal") or 0.0,
        funding_progress=row.get("funding_progress") or 0.0,
        min_investment=row.get("min_investment") or 0.0,
        duration_months=row.get("duration_months"),
        status=row.get("status") or "pending",
        is_active=bool(row.get("is_active", 1)),
        created_at=parse_timestamp(row["created_at"]),
    )


def _investment_from_row(row: Dict[str, Any]) -> Investment:
    monthly_returns = None
    if row.get("monthly_returns_json"):
        try:
            monthly_returns = json.loads(row["monthly_returns_json"])
        except (json.JSONDecodeError, TypeError):
            print(f"[STORAGE] Ignoring unreadable monthly_returns_json on investment_id={row['id']}")
    return Investment(
        id=row["id"],
        user_id=row["user_id"],
        property_id=row["property_id"],
        amount=row["amount"],
        status=row["status"],
        start_date=parse_timestamp(row["start_date"]),
        earnings=row.get("earnings"),
        monthly_returns=monthly_returns,
        created_at=parse_timestamp(row["created_at"]),
    )


def _transaction_from_row(row: Dict[str, Any]) -> Transaction:
    return Transaction(
        id=row["id"],
        user_id=row["user_id"],
        investment_id=row.get("investment_id"),
        type=row["type"],
        amount=row["amount"],
        status=row.get("status") or "completed",
        created_at=parse_timestamp(row["created_at"]),
    )


# ---------------------------------------------------------
# Reads
# ---------------------------------------------------------
def get_property(conn: DbConnection, property_id: int) -> Optional[Property]:
    row = fetch_one(conn, "SELECT * FROM properties WHERE id = :id", {"id": property_id})
    return _property_from_row(row) if row else None


def get_properties(conn: DbConnection, property_ids: Iterable[int]) -> Dict[int, Property]:
    """Fetch several properties at once, keyed by id. Missing ids are simply absent."""
    ids = sorted(set(property_ids))
    if not ids:
        return {}
    placeholders = ", ".join(f":id{i}" for i in range(len(ids)))
    params = {f"id{i}": pid for i, pid in enumerate(ids)}
    rows = fetch_all(conn, f"SELECT * FROM properties WHERE id IN ({placeholders})", params)
    return {row["id"]: _property_from_row(row) for row in rows}


def get_user_investments(conn: DbConnection, user_id: int) -> List[Investment]:
    rows = fetch_all(
        conn,
        "SELECT * FROM investments WHERE user_id = :user_id ORDER BY start_date ASC, id ASC",
        {"user_id": user_id},
    )
    return [_investment_from_row(row) for row in rows]


def get_property_investments(conn: DbConnection, property_id: int) -> List[Investment]:
    rows = fetch_all(
        conn,
        "SELECT * FROM investments WHERE property_id = :property_id ORDER BY id ASC",
        {"property_id": property_id},
    )
    return [_investment_from_row(row) for row in rows]


def get_user_transactions(
    conn: DbConnection,
    user_id: int,
    type: Optional[Union[str, TransactionType]] = None,
    since: Optional[datetime] = None,
) -> List[Transaction]:
    query = "SELECT * FROM transactions WHERE user_id = :user_id"
    params: Dict[str, Any] = {"user_id": user_id}
    if type is not None:
        query += " AND type = :type"
        params["type"] = TransactionType(type).value
    rows = fetch_all(conn, query + " ORDER BY created_at ASC, id ASC", params)
    transactions = [_transaction_from_row(row) for row in rows]
    if since is not None:
        # Timestamps are ISO text; compare after parsing so offsets are honoured
        cutoff = to_utc(since)
        transactions = [t for t in transactions if t.created_at >= cutoff]
    return transactions


# ---------------------------------------------------------
# Inserts (seeding / tests)
# ---------------------------------------------------------
def create_user(conn: DbConnection, email: str, role: str = "investor", is_active: bool = True) -> int:
    user_id = insert_returning_id(
        conn,
        "INSERT INTO users (email, role, is_active, created_at) VALUES (:email, :role, :is_active, :created_at)",
        {"email": email, "role": role, "is_active": 1 if is_active else 0, "created_at": now_iso()},
    )
    commit(conn)
    return user_id


def create_property(
    conn: DbConnection,
    name: str,
    target_return: str,
    location: str = "",
    property_type: str = "residential",
    funding_goal: float = 0.0,
    funding_progress: float = 0.0,
    min_investment: float = 0.0,
    duration_months: Optional[int] = None,
    status: str = "active",
) -> int:
    property_id = insert_returning_id(
        conn,
        """
        INSERT INTO properties (
            name, location, property_type, target_return,
            funding_goal, funding_progress, min_investment, duration_months,
            status, is_active, created_at
        ) VALUES (
            :name, :location, :property_type, :target_return,
            :funding_goal, :funding_progress, :min_investment, :duration_months,
            :status, 1, :created_at
        )
        """,
        {
            "name": name,
            "location": location,
            "property_type": property_type,
            "target_return": target_return,
            "funding_goal": funding_goal,
            "funding_progress": funding_progress,
            "min_investment": min_investment,
            "duration_months": duration_months,
            "status": status,
            "created_at": now_iso(),
        },
    )
    commit(conn)
    return property_id


def create_investment(
    conn: DbConnection,
    user_id: int,
    property_id: int,
    amount: float,
    start_date: datetime,
    status: str = "active",
    earnings: Optional[float] = None,
    monthly_returns: Optional[List[Any]] = None,
) -> int:
    investment_id = insert_returning_id(
        conn,
        """
        INSERT INTO investments (
            user_id, property_id, amount, status, start_date,
            earnings, monthly_returns_json, created_at
        ) VALUES (
            :user_id, :property_id, :amount, :status, :start_date,
            :earnings, :monthly_returns_json, :created_at
        )
        """,
        {
            "user_id": user_id,
            "property_id": property_id,
            "amount": amount,
            "status": status,
            "start_date": to_utc(start_date).isoformat(),
            "earnings": earnings,
            "monthly_returns_json": json.dumps(monthly_returns) if monthly_returns is not None else None,
            "created_at": now_iso(),
        },
    )
    commit(conn)
    return investment_id


def create_transaction(
    conn: DbConnection,
    user_id: int,
    type: Union[str, TransactionType],
    amount: float,
    created_at: Optional[datetime] = None,
    investment_id: Optional[int] = None,
    status: str = "completed",
) -> int:
    transaction_id = insert_returning_id(
        conn,
        """
        INSERT INTO transactions (user_id, investment_id, type, amount, status, created_at)
        VALUES (:user_id, :investment_id, :type, :amount, :status, :created_at)
        """,
        {
            "user_id": user_id,
            "investment_id": investment_id,
            "type": TransactionType(type).value,
            "amount": amount,
            "status": status,
            "created_at": to_utc(created_at).isoformat() if created_at else now_iso(),
        },
    )
    commit(conn)
    return transaction_id


def clear_all(conn: DbConnection) -> None:
    """Delete every row (tests only)."""
    for table in ("transactions", "investments", "properties", "users"):
        execute_query(conn, f"DELETE FROM {table}")
    commit(conn)
