"""
Per-provider pricing.

Prices a provider call from its token usage, in USD.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_UP
from typing import Dict

from .budget import ProviderId
from .token_counter import TokenUsage

MILLION = Decimal("1000000")
COST_PRECISION = Decimal("0.000001")


@dataclass(frozen=True)
class ProviderPricing:
    """Per-token pricing for the model a provider is configured with."""
    model: str
    input_cost_per_mtok: Decimal  # Cost per 1M input tokens
    output_cost_per_mtok: Decimal  # Cost per 1M output tokens


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table for billable providers."""
    prices: Dict[ProviderId, ProviderPricing]

    def get_pricing(self, provider: ProviderId) -> ProviderPricing:
        """Get pricing for a provider.

        Args:
            provider: Provider identifier

        Returns:
            ProviderPricing for the provider

        Raises:
            ValueError: If the provider is not billable
        """
        if provider not in self.prices:
            raise ValueError(f"Unsupported provider: {getattr(provider, 'value', provider)}")
        return self.prices[provider]


# Fixed pricing table - no dynamic fetching, no defaults
PRICING_TABLE = PricingTable({
    ProviderId.CLAUDE: ProviderPricing(
        model="claude-3-5-haiku-20241022",
        input_cost_per_mtok=Decimal("1.00"),
        output_cost_per_mtok=Decimal("5.00")
    ),
    ProviderId.OPENAI: ProviderPricing(
        model="gpt-4o-mini",
        input_cost_per_mtok=Decimal("0.15"),
        output_cost_per_mtok=Decimal("0.60")
    ),
    ProviderId.DEEPSEEK: ProviderPricing(
        model="deepseek-chat",
        input_cost_per_mtok=Decimal("0.27"),
        output_cost_per_mtok=Decimal("1.10")
    )
})


def calculate_cost(provider: ProviderId, usage: TokenUsage) -> Decimal:
    """Calculate the cost of a call with conservative rounding.

    Args:
        provider: Provider that served the call
        usage: Token usage data

    Returns:
        Total cost rounded UP to 6 decimal places

    Raises:
        ValueError: If the provider is not billable
    """
    pricing = PRICING_TABLE.get_pricing(provider)

    input_cost = (Decimal(usage.input_tokens) / MILLION) * pricing.input_cost_per_mtok
    output_cost = (Decimal(usage.output_tokens) / MILLION) * pricing.output_cost_per_mtok

    # Conservative rounding (always round UP)
    return (input_cost + output_cost).quantize(COST_PRECISION, rounding=ROUND_UP)
