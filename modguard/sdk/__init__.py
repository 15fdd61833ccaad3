"""
SDK for modguard.

Provides provider clients that record their spend.
"""

from .openai_client import TrackedOpenAI

__all__ = ["TrackedOpenAI"]
