"""
Generation module - simulated buyer replies.
"""

from .buyer_reply import (
    AnthropicBuyerReplyGenerator,
    BuyerReplyGenerator,
    ScriptedBuyerReplyGenerator,
    generate_with_fallback,
)

__all__ = [
    "AnthropicBuyerReplyGenerator",
    "BuyerReplyGenerator",
    "ScriptedBuyerReplyGenerator",
    "generate_with_fallback",
]
