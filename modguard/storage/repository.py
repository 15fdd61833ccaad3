"""
Repository pattern for data access.

Reads and appends provider cost records and aggregates them per window.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from modguard.core.budget import ProviderCosts, ProviderId
from .db import DEFAULT_DB_PATH, get_connection
from .models import CostRecord

logger = logging.getLogger(__name__)

_INSERT_SQL = """
    INSERT INTO provider_cost
    (timestamp, provider, model, input_tokens, output_tokens,
     cost_usd, request_id)
    VALUES (?, ?, ?, ?, ?, ?, ?)
"""

_BILLABLE = (ProviderId.CLAUDE, ProviderId.OPENAI, ProviderId.DEEPSEEK)


def _to_utc_text(moment: datetime) -> str:
    """Serialize a timestamp as sortable UTC ISO text (naive means UTC)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat()


def _record_params(record: CostRecord) -> tuple:
    return (
        _to_utc_text(record.timestamp),
        record.provider.value,
        record.model,
        record.input_tokens,
        record.output_tokens,
        str(record.cost_usd),
        record.request_id
    )


class CostRepository:
    """Repository for reading the provider cost ledger.

    Costs are stored as decimal text and summed with Decimal, so totals
    are exact to the recorded precision.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def get_provider_costs(
        self,
        since: datetime,
        until: Optional[datetime] = None
    ) -> ProviderCosts:
        """Sum spend per provider over a time range.

        Args:
            since: Inclusive start of the window
            until: Exclusive end of the window (open-ended if None)

        Returns:
            ProviderCosts for the window
        """
        conn = get_connection(self.db_path)
        try:
            query = "SELECT provider, cost_usd FROM provider_cost WHERE timestamp >= ?"
            params = [_to_utc_text(since)]
            if until is not None:
                query += " AND timestamp < ?"
                params.append(_to_utc_text(until))

            sums: Dict[str, Decimal] = {p.value: Decimal("0") for p in _BILLABLE}
            for provider, cost in conn.execute(query, params).fetchall():
                if provider not in sums:
                    logger.warning("Ignoring cost row for unknown provider %r", provider)
                    continue
                sums[provider] += Decimal(cost)

            return ProviderCosts(
                claude=sums[ProviderId.CLAUDE.value],
                openai=sums[ProviderId.OPENAI.value],
                deepseek=sums[ProviderId.DEEPSEEK.value]
            )
        finally:
            conn.close()

    def get_recent_records(
        self,
        provider: Optional[ProviderId] = None,
        limit: int = 100
    ) -> List[CostRecord]:
        """Get recent cost records, newest first.

        Args:
            provider: Optional filter for a single provider
            limit: Maximum number of records to return

        Returns:
            List of cost records ordered by timestamp (newest first)
        """
        conn = get_connection(self.db_path)
        try:
            query = """
                SELECT timestamp, provider, model, input_tokens,
                       output_tokens, cost_usd, request_id
                FROM provider_cost
            """
            params: list = []
            if provider is not None:
                query += " WHERE provider = ?"
                params.append(provider.value)

            query += " ORDER BY timestamp DESC LIMIT ?"
            params.append(limit)

            records = []
            for row in conn.execute(query, params).fetchall():
                records.append(CostRecord(
                    timestamp=datetime.fromisoformat(row[0]),
                    provider=ProviderId(row[1]),
                    model=row[2],
                    input_tokens=row[3],
                    output_tokens=row[4],
                    cost_usd=Decimal(row[5]),
                    request_id=row[6]
                ))
            return records
        finally:
            conn.close()


def get_repository(db_path: str = DEFAULT_DB_PATH) -> CostRepository:
    """Get a repository bound to a database path."""
    return CostRepository(db_path)


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the provider_cost table if it doesn't exist.

    This creates an append-only ledger for immutable cost records.
    No UPDATE or DELETE operations should ever be performed on this table.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS provider_cost (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                provider TEXT NOT NULL,
                model TEXT NOT NULL DEFAULT '',
                input_tokens INTEGER NOT NULL DEFAULT 0,
                output_tokens INTEGER NOT NULL DEFAULT 0,
                cost_usd TEXT NOT NULL,
                request_id TEXT
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_provider_cost_timestamp
            ON provider_cost (timestamp)
        """)
        conn.commit()
    finally:
        conn.close()


def insert_cost_record(record: CostRecord, db_path: str = DEFAULT_DB_PATH) -> None:
    """Append a single cost record to the ledger.

    Args:
        record: The cost record to store
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute(_INSERT_SQL, _record_params(record))
        conn.commit()
    finally:
        conn.close()


def insert_cost_records(records: List[CostRecord], db_path: str = DEFAULT_DB_PATH) -> None:
    """Append multiple cost records atomically.

    All records are inserted in a single transaction; on failure none are.

    Args:
        records: Cost records to store
        db_path: Path to SQLite database file
    """
    if not records:
        return

    conn = get_connection(db_path)
    try:
        conn.execute("BEGIN TRANSACTION")
        for record in records:
            conn.execute(_INSERT_SQL, _record_params(record))
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
