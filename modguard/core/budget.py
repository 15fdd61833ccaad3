"""
Budget aggregation for AI provider spending.

Turns per-provider cost figures and configured limits into usage
percentages and a discrete status tier for the daily and monthly windows.
All functions here are pure; no I/O.

Status tiers (percentage of limit used):
- below 50: within budget
- 50 to below 75: approaching
- 75 to below 90: near
- 90 and above, including over budget: critical
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional, Union

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ONE_PLACE = Decimal("0.1")

APPROACHING_THRESHOLD = Decimal("50")
NEAR_THRESHOLD = Decimal("75")
CRITICAL_THRESHOLD = Decimal("90")

Amount = Union[Decimal, int, float, str]


def to_decimal(value: Amount) -> Decimal:
    """Convert a figure to Decimal without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


class ProviderId(Enum):
    """AI providers that can be configured or billed."""
    CLAUDE = "claude"
    OPENAI = "openai"
    DEEPSEEK = "deepseek"
    NONE = "none"


ProviderRef = Union[ProviderId, str]


def parse_provider(value: ProviderRef) -> ProviderRef:
    """Map a provider id to ProviderId, keeping unrecognised ids verbatim."""
    if isinstance(value, ProviderId):
        return value
    if not isinstance(value, str):
        logger.warning("Provider id %r is not a string, keeping it as-is", value)
        return value
    try:
        return ProviderId(value.strip().lower())
    except ValueError:
        logger.warning("Unrecognised provider id %r, keeping it as-is", value)
        return value


class BudgetStatus(Enum):
    """Budget status tiers, ordered by severity."""
    WITHIN_BUDGET = 0
    APPROACHING = 1
    NEAR = 2
    CRITICAL = 3

    @property
    def severity(self) -> int:
        return self.value

    def __lt__(self, other):
        if not isinstance(other, BudgetStatus):
            return NotImplemented
        return self.value < other.value

    def __le__(self, other):
        if not isinstance(other, BudgetStatus):
            return NotImplemented
        return self.value <= other.value

    def __gt__(self, other):
        if not isinstance(other, BudgetStatus):
            return NotImplemented
        return self.value > other.value

    def __ge__(self, other):
        if not isinstance(other, BudgetStatus):
            return NotImplemented
        return self.value >= other.value


@dataclass(frozen=True)
class ProviderCosts:
    """Spend per provider over one window.

    The total is always recomputed from the provider figures. A supplied
    total that disagrees is discarded.
    """
    claude: Decimal = ZERO
    openai: Decimal = ZERO
    deepseek: Decimal = ZERO
    total: Optional[Decimal] = None

    def __post_init__(self):
        claude = to_decimal(self.claude)
        openai = to_decimal(self.openai)
        deepseek = to_decimal(self.deepseek)
        total = claude + openai + deepseek

        if self.total is not None and to_decimal(self.total) != total:
            logger.warning(
                "Reported total %s does not match provider sum %s, using the sum",
                self.total, total
            )

        object.__setattr__(self, "claude", claude)
        object.__setattr__(self, "openai", openai)
        object.__setattr__(self, "deepseek", deepseek)
        object.__setattr__(self, "total", total)

    def for_provider(self, provider: ProviderId) -> Decimal:
        """Spend for a single billable provider."""
        if provider is ProviderId.NONE:
            raise ValueError("'none' is not a billable provider")
        return getattr(self, provider.value)


@dataclass(frozen=True)
class BudgetSettings:
    """Configured limits and provider choices.

    A limit of 0 means no ceiling. Negative limits are treated as 0.
    """
    daily_limit: Decimal = ZERO
    monthly_limit: Decimal = ZERO
    dry_run_mode: bool = True
    primary_provider: ProviderRef = ProviderId.CLAUDE
    fallback_provider: ProviderRef = ProviderId.NONE

    def __post_init__(self):
        for name in ("daily_limit", "monthly_limit"):
            limit = to_decimal(getattr(self, name))
            if limit < 0:
                logger.warning("Negative %s %s treated as no ceiling", name, limit)
                limit = ZERO
            object.__setattr__(self, name, limit)

        object.__setattr__(self, "primary_provider", parse_provider(self.primary_provider))
        object.__setattr__(self, "fallback_provider", parse_provider(self.fallback_provider))


@dataclass(frozen=True)
class BudgetSnapshot:
    """Daily and monthly spend with the settings they are judged against."""
    daily: ProviderCosts
    monthly: ProviderCosts
    settings: BudgetSettings
    last_updated_ms: int


@dataclass(frozen=True)
class BudgetUsage:
    """Spend against a limit for one window."""
    spent: Decimal
    limit: Decimal
    percent_used: Decimal
    status: BudgetStatus


@dataclass(frozen=True)
class BudgetReport:
    """Aggregated budget usage for both windows."""
    daily: BudgetUsage
    monthly: BudgetUsage

    @property
    def worst_status(self) -> BudgetStatus:
        return max(self.daily.status, self.monthly.status)


def compute_percent(total: Amount, limit: Amount) -> Decimal:
    """Percentage of limit used, to one decimal place (half-up).

    A limit of 0 (or below) means no ceiling and always yields 0.0.
    """
    total = to_decimal(total)
    limit = to_decimal(limit)
    if limit <= 0:
        return Decimal("0.0")
    return (total / limit * 100).quantize(ONE_PLACE, rounding=ROUND_HALF_UP)


def compute_status(percent_used: Amount) -> BudgetStatus:
    """Map a usage percentage to its status tier."""
    percent = to_decimal(percent_used)
    if not percent.is_finite():
        raise ValueError(f"percent_used must be a finite number, got {percent_used}")
    if percent < APPROACHING_THRESHOLD:
        return BudgetStatus.WITHIN_BUDGET
    if percent < NEAR_THRESHOLD:
        return BudgetStatus.APPROACHING
    if percent < CRITICAL_THRESHOLD:
        return BudgetStatus.NEAR
    return BudgetStatus.CRITICAL


def evaluate_usage(spent: Amount, limit: Amount) -> BudgetUsage:
    """Compute percentage and status for one window."""
    spent = to_decimal(spent)
    limit = to_decimal(limit)
    percent = compute_percent(spent, limit)
    return BudgetUsage(
        spent=spent,
        limit=max(limit, ZERO),
        percent_used=percent,
        status=compute_status(percent)
    )


def aggregate(snapshot: BudgetSnapshot) -> BudgetReport:
    """Evaluate daily and monthly spend against their limits."""
    return BudgetReport(
        daily=evaluate_usage(snapshot.daily.total, snapshot.settings.daily_limit),
        monthly=evaluate_usage(snapshot.monthly.total, snapshot.settings.monthly_limit)
    )
