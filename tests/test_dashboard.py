"""
Tests for dashboard rendering and the dashboard data source.
"""

import os
import tempfile
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from modguard.core.budget import BudgetSettings, BudgetSnapshot, ProviderCosts, ProviderId
from modguard.dashboard.renderer import (
    CONDENSED_MAX_LENGTH,
    RenderMode,
    format_timestamp,
    provider_display_name,
    render,
)
from modguard.dashboard.source import DashboardSource, day_start, month_start
from modguard.storage.models import CostRecord
from modguard.storage.repository import (
    CostRepository,
    initialize_schema,
    insert_cost_records,
)

# 2024-03-15 14:30:00 UTC
MARCH_15_MS = int(datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc).timestamp() * 1000)


def make_snapshot(dry_run=False, daily_limit="100.00", monthly_limit="1000.00"):
    return BudgetSnapshot(
        daily=ProviderCosts(
            claude=Decimal("30.00"), openai=Decimal("10.00"), deepseek=Decimal("5.00")
        ),
        monthly=ProviderCosts(
            claude=Decimal("600.00"), openai=Decimal("250.00"), deepseek=Decimal("100.00")
        ),
        settings=BudgetSettings(
            daily_limit=Decimal(daily_limit),
            monthly_limit=Decimal(monthly_limit),
            dry_run_mode=dry_run,
            primary_provider=ProviderId.CLAUDE,
            fallback_provider="openai-compatible"
        ),
        last_updated_ms=MARCH_15_MS
    )


class TestCondensedRender:
    """Test the single-line toast format."""

    def test_live_format(self):
        text = render(make_snapshot(), RenderMode.CONDENSED)
        assert text == "Day: $45.00/$100.00 | Mo: $950.00/$1000.00 | LIVE"

    def test_dry_run_indicator(self):
        text = render(make_snapshot(dry_run=True), RenderMode.CONDENSED)
        assert text.endswith("| DRY-RUN")

    def test_no_breakdown_or_status(self):
        text = render(make_snapshot(), RenderMode.CONDENSED)
        assert "Claude" not in text
        assert "CRITICAL" not in text
        assert "\n" not in text

    def test_default_mode_is_condensed(self):
        assert render(make_snapshot()) == render(make_snapshot(), RenderMode.CONDENSED)

    def test_large_values_fit_budget(self):
        snapshot = BudgetSnapshot(
            daily=ProviderCosts(claude=Decimal("9999.99")),
            monthly=ProviderCosts(openai=Decimal("9999.99")),
            settings=BudgetSettings(
                daily_limit=Decimal("9999.99"),
                monthly_limit=Decimal("9999.99"),
                dry_run_mode=True
            ),
            last_updated_ms=MARCH_15_MS
        )
        text = render(snapshot, RenderMode.CONDENSED)
        assert len(text) <= CONDENSED_MAX_LENGTH
        assert "$9999.99/$9999.99" in text

    def test_extreme_values_truncated(self):
        huge = Decimal("12345678901234567890")
        snapshot = BudgetSnapshot(
            daily=ProviderCosts(claude=huge),
            monthly=ProviderCosts(claude=huge),
            settings=BudgetSettings(daily_limit=huge, monthly_limit=huge),
            last_updated_ms=MARCH_15_MS
        )
        text = render(snapshot, RenderMode.CONDENSED)
        assert len(text) == CONDENSED_MAX_LENGTH
        assert text.endswith("... | DRY-RUN")

    @pytest.mark.parametrize("dry_run, mode_text", [(False, "LIVE"), (True, "DRY-RUN")])
    def test_truncation_keeps_run_mode(self, dry_run, mode_text):
        huge = Decimal("123456789012345678")
        snapshot = BudgetSnapshot(
            daily=ProviderCosts(claude=huge),
            monthly=ProviderCosts(claude=huge),
            settings=BudgetSettings(daily_limit=huge, monthly_limit=huge, dry_run_mode=dry_run),
            last_updated_ms=MARCH_15_MS
        )
        text = render(snapshot, RenderMode.CONDENSED)
        assert len(text) == CONDENSED_MAX_LENGTH
        assert text.startswith("Day: $123456789012345678.00/")
        assert text.endswith(f"... | {mode_text}")


class TestVerboseRender:
    """Test the full dashboard."""

    def test_contains_breakdowns(self):
        text = render(make_snapshot(), RenderMode.VERBOSE)

        assert "Today:" in text
        assert "This month (March):" in text
        assert "Claude 3.5 Haiku: $30.00" in text
        assert "GPT-4o Mini: $250.00" in text
        assert "DeepSeek V3: $100.00" in text

    def test_contains_usage_and_status(self):
        text = render(make_snapshot(), RenderMode.VERBOSE)

        assert "Total: $45.00 / $100.00 (45.0%) - Within budget" in text
        assert "Total: $950.00 / $1000.00 (95.0%) - CRITICAL" in text

    def test_contains_settings(self):
        text = render(make_snapshot(dry_run=True), RenderMode.VERBOSE)

        assert "Daily limit: $100.00" in text
        assert "Monthly limit: $1000.00" in text
        assert "Dry-run mode: enabled" in text
        assert "Primary provider: Claude 3.5 Haiku" in text
        assert "Fallback provider: openai-compatible" in text

    def test_contains_last_updated_utc(self):
        text = render(make_snapshot(), RenderMode.VERBOSE)
        assert "Last updated: Mar 15, 14:30 UTC" in text

    def test_zero_limit_shows_zero_percent(self):
        text = render(make_snapshot(daily_limit="0"), RenderMode.VERBOSE)
        assert "Total: $45.00 / $0.00 (0.0%) - Within budget" in text


class TestDisplayHelpers:
    """Test provider names and timestamps."""

    @pytest.mark.parametrize("provider, expected", [
        (ProviderId.CLAUDE, "Claude 3.5 Haiku"),
        (ProviderId.OPENAI, "GPT-4o Mini"),
        (ProviderId.DEEPSEEK, "DeepSeek V3"),
        (ProviderId.NONE, "None (no fallback)"),
        ("deepseek", "DeepSeek V3"),
        ("mystery-llm", "mystery-llm"),
    ])
    def test_provider_display_name(self, provider, expected):
        assert provider_display_name(provider) == expected

    def test_format_timestamp(self):
        assert format_timestamp(MARCH_15_MS) == "Mar 15, 14:30 UTC"


class TestWindowBoundaries:
    """Test UTC day and month boundaries."""

    def test_day_start(self):
        moment = datetime(2024, 3, 15, 14, 30, 12, tzinfo=timezone.utc)
        assert day_start(moment) == datetime(2024, 3, 15, tzinfo=timezone.utc)

    def test_month_start(self):
        moment = datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc)
        assert month_start(moment) == datetime(2024, 3, 1, tzinfo=timezone.utc)


class TestDashboardSource:
    """Test snapshot building from the ledger."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        initialize_schema(self.db_path)
        self.now_ms = MARCH_15_MS
        self.settings = BudgetSettings(daily_limit=Decimal("10"), monthly_limit=Decimal("100"))
        self.source = DashboardSource(
            CostRepository(self.db_path), self.settings,
            ttl_seconds=60, clock=lambda: self.now_ms
        )

    def teardown_method(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _record(self, when, provider, cost):
        return CostRecord(timestamp=when, provider=provider, cost_usd=Decimal(cost))

    def test_snapshot_splits_day_and_month(self):
        insert_cost_records([
            self._record(datetime(2024, 3, 15, 9, 0, tzinfo=timezone.utc), ProviderId.CLAUDE, "1.50"),
            self._record(datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc), ProviderId.OPENAI, "0.25"),
            self._record(datetime(2024, 3, 2, 8, 0, tzinfo=timezone.utc), ProviderId.DEEPSEEK, "4.00"),
            self._record(datetime(2024, 2, 28, 8, 0, tzinfo=timezone.utc), ProviderId.CLAUDE, "50.00"),
        ], self.db_path)

        snapshot = self.source.snapshot()

        assert snapshot.daily.total == Decimal("1.75")
        assert snapshot.monthly == ProviderCosts(
            claude=Decimal("1.50"), openai=Decimal("0.25"), deepseek=Decimal("4.00")
        )
        assert snapshot.settings is self.settings
        assert snapshot.last_updated_ms == self.now_ms

    def test_snapshot_cached_until_ttl(self):
        first = self.source.snapshot()
        insert_cost_records([
            self._record(datetime(2024, 3, 15, 11, 0, tzinfo=timezone.utc), ProviderId.CLAUDE, "2.00"),
        ], self.db_path)

        assert self.source.snapshot() is first

        self.now_ms += 60_000
        assert self.source.snapshot().daily.total == Decimal("2.00")

    def test_refresh_rereads_ledger(self):
        self.source.snapshot()
        insert_cost_records([
            self._record(datetime(2024, 3, 15, 11, 0, tzinfo=timezone.utc), ProviderId.OPENAI, "3.00"),
        ], self.db_path)

        self.source.refresh()

        assert self.source.snapshot().daily.openai == Decimal("3.00")
