"""
Configuration management and loading.

Handles budget limits, provider choices, cache lifetimes and the
moderation whitelist.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, FrozenSet

import yaml

from modguard.core.budget import BudgetSettings, ProviderId, to_decimal
from modguard.core.ttl_cache import DEFAULT_TTL_SECONDS
from modguard.dashboard.source import DEFAULT_DASHBOARD_TTL_SECONDS


@dataclass(frozen=True)
class BudgetConfig:
    """Budget limits for cost control. 0 means no ceiling."""
    daily: Decimal
    monthly: Decimal


@dataclass(frozen=True)
class ProviderConfig:
    """Primary and fallback AI provider ids."""
    primary: str = ProviderId.CLAUDE.value
    fallback: str = ProviderId.NONE.value


@dataclass(frozen=True)
class CacheConfig:
    """Lifetimes of cached permission rosters and dashboard snapshots."""
    permission_ttl_seconds: float = DEFAULT_TTL_SECONDS
    failure_backoff_seconds: float = 0
    dashboard_ttl_seconds: float = DEFAULT_DASHBOARD_TTL_SECONDS

    def __post_init__(self):
        """Validate cache lifetimes."""
        if self.permission_ttl_seconds <= 0:
            raise ValueError("permission_ttl_seconds must be > 0")
        if self.dashboard_ttl_seconds <= 0:
            raise ValueError("dashboard_ttl_seconds must be > 0")
        if self.failure_backoff_seconds < 0:
            raise ValueError("failure_backoff_seconds must be >= 0")


@dataclass(frozen=True)
class AppConfig:
    """Complete modguard configuration."""
    budget: BudgetConfig
    providers: ProviderConfig = field(default_factory=ProviderConfig)
    dry_run: bool = True
    cache: CacheConfig = field(default_factory=CacheConfig)
    whitelist: FrozenSet[str] = frozenset()

    def budget_settings(self) -> BudgetSettings:
        """Build the BudgetSettings the aggregator and dashboard use."""
        return BudgetSettings(
            daily_limit=self.budget.daily,
            monthly_limit=self.budget.monthly,
            dry_run_mode=self.dry_run,
            primary_provider=self.providers.primary,
            fallback_provider=self.providers.fallback
        )


def load_config(path: str) -> AppConfig:
    """Load and validate configuration from a YAML file.

    Unknown keys and wrong types are rejected so a typo can never silently
    fall back to a default.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    _check_keys(raw_config, {'budget', 'providers', 'dry_run', 'cache', 'whitelist'}, "configuration")

    if 'budget' not in raw_config:
        raise ValueError("Missing required 'budget' section")
    budget = _parse_budget(_section(raw_config, 'budget'))

    providers = ProviderConfig()
    if 'providers' in raw_config:
        providers = _parse_providers(_section(raw_config, 'providers'))

    dry_run = raw_config.get('dry_run', True)
    if not isinstance(dry_run, bool):
        raise ValueError("'dry_run' must be a boolean")

    cache = CacheConfig()
    if 'cache' in raw_config:
        cache = _parse_cache(_section(raw_config, 'cache'))

    whitelist = raw_config.get('whitelist') or []
    if not isinstance(whitelist, list) or not all(isinstance(u, str) for u in whitelist):
        raise ValueError("'whitelist' must be a list of usernames")

    return AppConfig(
        budget=budget,
        providers=providers,
        dry_run=dry_run,
        cache=cache,
        whitelist=frozenset(u.strip().lower() for u in whitelist if u.strip())
    )


def _section(raw_config: Dict, name: str) -> Dict:
    data = raw_config[name]
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    return data


def _check_keys(data: Dict, allowed: set, path: str) -> None:
    unknown_keys = set(data.keys()) - allowed
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")


def _number(value: Any, path: str) -> Decimal:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{path}' must be a number")
    return to_decimal(value)


def _parse_budget(data: Dict) -> BudgetConfig:
    """Parse budget limits. Negative limits are left to BudgetSettings,
    which treats them as no ceiling."""
    _check_keys(data, {'daily', 'monthly'}, "budget")

    if 'daily' not in data:
        raise ValueError("Missing required 'daily' budget")
    if 'monthly' not in data:
        raise ValueError("Missing required 'monthly' budget")

    return BudgetConfig(
        daily=_number(data['daily'], "budget.daily"),
        monthly=_number(data['monthly'], "budget.monthly")
    )


def _parse_providers(data: Dict) -> ProviderConfig:
    _check_keys(data, {'primary', 'fallback'}, "providers")

    values: Dict[str, str] = {}
    for key in ('primary', 'fallback'):
        if key not in data:
            continue
        value = data[key]
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"'providers.{key}' must be a non-empty string")
        values[key] = value.strip()

    return ProviderConfig(**values)


def _parse_cache(data: Dict) -> CacheConfig:
    allowed = ('permission_ttl_seconds', 'failure_backoff_seconds', 'dashboard_ttl_seconds')
    _check_keys(data, set(allowed), "cache")

    values: Dict[str, float] = {}
    for key in allowed:
        if key in data:
            values[key] = float(_number(data[key], f"cache.{key}"))

    return CacheConfig(**values)
