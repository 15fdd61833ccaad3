"""
Tracked OpenAI-compatible client wrapper.

Records the cost of every successful call in the spend ledger without
modifying the call itself. DeepSeek exposes the same API and is reached
through its base URL.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from openai import OpenAI

from ..core.budget import ProviderId
from ..core.pricing import PRICING_TABLE, calculate_cost
from ..core.token_counter import TokenUsage
from ..storage.db import DEFAULT_DB_PATH
from ..storage.models import CostRecord
from ..storage.repository import insert_cost_record

DEEPSEEK_BASE_URL = "https://api.deepseek.com"

SUPPORTED_PROVIDERS = (ProviderId.OPENAI, ProviderId.DEEPSEEK)


class TrackedOpenAI:
    """OpenAI-compatible client wrapper that records spend.

    Every successful chat completion appends a CostRecord to the ledger.
    All failures are loud to ensure no spend goes unrecorded silently.
    """

    def __init__(
        self,
        provider: ProviderId = ProviderId.OPENAI,
        model: Optional[str] = None,
        db_path: Optional[str] = None,
        api_key: Optional[str] = None
    ):
        """Initialize tracked client.

        Args:
            provider: ProviderId.OPENAI or ProviderId.DEEPSEEK
            model: Model name (defaults to the provider's priced model)
            db_path: Database file path (defaults to "modguard.db")
            api_key: API key (defaults to the SDK's environment lookup)

        Raises:
            ValueError: If provider is not OpenAI-compatible or model is blank
        """
        if provider not in SUPPORTED_PROVIDERS:
            raise ValueError(f"provider must be one of: {[p.value for p in SUPPORTED_PROVIDERS]}")
        if model is not None and not model.strip():
            raise ValueError("model cannot be empty")

        self.provider = provider
        self.model = model or PRICING_TABLE.get_pricing(provider).model
        self.db_path = db_path or DEFAULT_DB_PATH

        base_url = DEEPSEEK_BASE_URL if provider is ProviderId.DEEPSEEK else None
        self.client = OpenAI(api_key=api_key, base_url=base_url)

    def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs: Any
    ) -> Any:
        """Create chat completion and record its cost.

        Args:
            messages: List of message dictionaries (required)
            temperature: Sampling temperature (optional)
            max_tokens: Maximum tokens to generate (optional)
            **kwargs: Additional API parameters

        Returns:
            The chat completion response, unchanged

        Raises:
            ValueError: If messages is empty or the response has no usage
            OpenAI API errors: Propagated without modification
            Database errors: Propagated without modification
        """
        if not messages:
            raise ValueError("messages is required and cannot be empty")

        params: Dict[str, Any] = dict(kwargs)
        if temperature is not None:
            params["temperature"] = temperature
        if max_tokens is not None:
            params["max_tokens"] = max_tokens

        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            **params
        )

        usage = response.usage
        if not usage:
            raise ValueError(f"{self.provider.value} response missing usage information")

        token_usage = TokenUsage(
            input_tokens=usage.prompt_tokens,
            output_tokens=usage.completion_tokens
        )
        record = CostRecord(
            timestamp=datetime.now(timezone.utc),
            provider=self.provider,
            cost_usd=calculate_cost(self.provider, token_usage),
            model=self.model,
            input_tokens=token_usage.input_tokens,
            output_tokens=token_usage.output_tokens,
            request_id=response.id
        )

        insert_cost_record(record, self.db_path)

        return response
