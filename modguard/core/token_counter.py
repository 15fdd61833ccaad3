"""
Token usage reported by AI providers.

Holds the token counts a provider bills for a single call.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TokenUsage:
    """Token usage data for cost calculation.

    Exact counts as reported by the provider response, never estimated.
    """
    input_tokens: int
    output_tokens: int

    def __post_init__(self):
        """Reject negative token counts."""
        if self.input_tokens < 0 or self.output_tokens < 0:
            raise ValueError("token counts must be >= 0")

    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output)."""
        return self.input_tokens + self.output_tokens
