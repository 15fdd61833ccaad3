"""
Data models for storage layer.

Defines the records kept in the cost ledger.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from modguard.core.budget import ProviderId


@dataclass(frozen=True)
class CostRecord:
    """Immutable record of one billed provider call.

    Append-only rows that make up the spend ledger.
    Once written, these records must never be modified.
    """
    timestamp: datetime
    provider: ProviderId
    cost_usd: Decimal
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    request_id: Optional[str] = None

    def __post_init__(self):
        """Validate the record before it can reach the ledger."""
        if self.provider is ProviderId.NONE:
            raise ValueError("cost records need a billable provider")
        if self.cost_usd < 0:
            raise ValueError("cost_usd must be >= 0")
