"""
Cost dashboard rendering.

Formats a budget snapshot as text for moderators. Two modes:

- verbose: per-provider breakdown for today and this month, usage against
  both limits with status labels, current settings and last update time
- condensed: a single line for toast-sized notification surfaces,
  bounded by CONDENSED_MAX_LENGTH characters

Rendering is a pure function of the snapshot.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List

from modguard.core.budget import (
    BudgetSnapshot,
    BudgetStatus,
    BudgetUsage,
    ProviderCosts,
    ProviderId,
    ProviderRef,
    aggregate,
)

CONDENSED_MAX_LENGTH = 80
_ELLIPSIS = "..."

PROVIDER_NAMES = {
    ProviderId.CLAUDE: "Claude 3.5 Haiku",
    ProviderId.OPENAI: "GPT-4o Mini",
    ProviderId.DEEPSEEK: "DeepSeek V3",
    ProviderId.NONE: "None (no fallback)",
}

STATUS_LABELS = {
    BudgetStatus.WITHIN_BUDGET: "Within budget",
    BudgetStatus.APPROACHING: "Approaching limit (50%+)",
    BudgetStatus.NEAR: "Near limit (75%+)",
    BudgetStatus.CRITICAL: "CRITICAL - near or at limit (90%+)",
}


class RenderMode(Enum):
    """Dashboard output modes."""
    VERBOSE = "verbose"
    CONDENSED = "condensed"


def provider_display_name(provider: ProviderRef) -> str:
    """Human-readable provider name; unknown ids are returned verbatim."""
    if isinstance(provider, ProviderId):
        return PROVIDER_NAMES[provider]
    try:
        return PROVIDER_NAMES[ProviderId(provider)]
    except ValueError:
        return str(provider)


def status_label(status: BudgetStatus) -> str:
    return STATUS_LABELS[status]


def format_usd(amount: Decimal) -> str:
    return f"${amount:.2f}"


def format_timestamp(epoch_ms: int) -> str:
    """Format epoch milliseconds as e.g. 'Oct 19, 06:25 UTC'."""
    moment = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return moment.strftime("%b %d, %H:%M UTC")


def render(snapshot: BudgetSnapshot, mode: RenderMode = RenderMode.CONDENSED) -> str:
    """Render a budget snapshot as dashboard text.

    Args:
        snapshot: Spend figures and settings to display
        mode: Verbose multi-line report or condensed single line

    Returns:
        Dashboard text
    """
    if mode is RenderMode.VERBOSE:
        return render_verbose(snapshot)
    return render_condensed(snapshot)


def render_condensed(snapshot: BudgetSnapshot) -> str:
    """Single line: daily and monthly totals against limits plus run mode."""
    settings = snapshot.settings
    suffix = " | DRY-RUN" if settings.dry_run_mode else " | LIVE"
    figures = (
        f"Day: {format_usd(snapshot.daily.total)}/{format_usd(settings.daily_limit)}"
        f" | Mo: {format_usd(snapshot.monthly.total)}/{format_usd(settings.monthly_limit)}"
    )
    # The run mode always survives truncation
    room = CONDENSED_MAX_LENGTH - len(suffix)
    if len(figures) > room:
        figures = figures[:room - len(_ELLIPSIS)] + _ELLIPSIS
    return figures + suffix


def render_verbose(snapshot: BudgetSnapshot) -> str:
    """Full dashboard with breakdowns, budget status and settings."""
    report = aggregate(snapshot)
    settings = snapshot.settings
    month_name = datetime.fromtimestamp(
        snapshot.last_updated_ms / 1000, tz=timezone.utc
    ).strftime("%B")

    lines = ["AI Cost Dashboard", ""]
    lines += _window_lines("Today", snapshot.daily, report.daily)
    lines.append("")
    lines += _window_lines(f"This month ({month_name})", snapshot.monthly, report.monthly)
    lines += [
        "",
        "Settings:",
        f"  Daily limit: {format_usd(settings.daily_limit)}",
        f"  Monthly limit: {format_usd(settings.monthly_limit)}",
        f"  Dry-run mode: {'enabled' if settings.dry_run_mode else 'disabled'}",
        f"  Primary provider: {provider_display_name(settings.primary_provider)}",
        f"  Fallback provider: {provider_display_name(settings.fallback_provider)}",
        "",
        f"Last updated: {format_timestamp(snapshot.last_updated_ms)}",
    ]
    return "\n".join(lines)


def _window_lines(title: str, costs: ProviderCosts, usage: BudgetUsage) -> List[str]:
    lines = [f"{title}:"]
    for provider in (ProviderId.CLAUDE, ProviderId.OPENAI, ProviderId.DEEPSEEK):
        lines.append(
            f"  {provider_display_name(provider)}: {format_usd(costs.for_provider(provider))}"
        )
    lines.append(
        f"  Total: {format_usd(costs.total)} / {format_usd(usage.limit)}"
        f" ({usage.percent_used}%) - {status_label(usage.status)}"
    )
    return lines
