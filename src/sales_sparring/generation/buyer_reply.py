"""
Buyer reply generation for sparring sessions.

The engine never depends on a particular model: it talks to a
BuyerReplyGenerator and always goes through generate_with_fallback(), which
bounds the call with a timeout and degrades to a canned line on any failure
so a turn never fails because of the model.
"""
import asyncio
import logging
import os
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from dotenv import load_dotenv

from sales_sparring.core.models import Difficulty, Mode, TurnRecord
from sales_sparring.personas.profiles import PERSONA_CARDS, PersonaBehaviourProfile

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_TIMEOUT_SECONDS = 8.0

FALLBACK_REPLY = "I'm still not sure about this. The price feels high compared to what I'm getting."
EMPTY_REPLY = "I'm not convinced yet. Can you explain why this is worth the price?"

DIFFICULTY_MODIFIERS = {
    Difficulty.EASY: "fewer objections, more cooperative, gives openings for the rep to win.",
    Difficulty.NORMAL: "standard level objections, fair pushback.",
    Difficulty.HARD: "tougher objections, shorter patience, challenges more aggressively.",
    Difficulty.NIGHTMARE: "interrupts, stacks objections, pulls up past bad experiences, very hard to close.",
}

MODE_MODIFIERS = {
    Mode.STANDARD: "a normal-length discovery call.",
    Mode.TIME_TRIAL: "a timed drill; you are busy and want the rep to be efficient.",
    Mode.CLOSE_IN_2M: "a two-minute closing drill; you have almost no time and expect a clear ask.",
}


class BuyerReplyGenerator(ABC):
    """Produces the simulated buyer's next line."""

    @abstractmethod
    async def generate(self, profile: PersonaBehaviourProfile, history: Sequence[TurnRecord]) -> str:
        """
        Generate the buyer's reply.

        Args:
            profile: Persona/difficulty/mode being simulated.
            history: Ordered transcript, ending with the rep's latest turn.

        Returns:
            Reply text (may be empty; the caller substitutes a canned line).
        """


def build_system_prompt(profile: PersonaBehaviourProfile) -> str:
    """Build the roleplay system prompt for a persona profile."""
    card = PERSONA_CARDS[profile.persona]

    return f"""You are a sales sparring persona playing a buyer on a sales call.
Your behaviour MUST change based on persona, difficulty and drill format.

PERSONA: {card.label}
{card.description}

TRAITS: {", ".join(card.traits)}
TONE: {card.tone}
BEHAVIOUR: {card.behaviour}

DIFFICULTY ({profile.difficulty.value}): {DIFFICULTY_MODIFIERS[profile.difficulty]}
FORMAT ({profile.mode.value}): {MODE_MODIFIERS[profile.mode]}

RULES:
1. Stay in character 100% - never reveal you are an AI
2. Keep replies short (1-3 sentences) unless the persona tends to ramble
3. Behave like a real buyer with emotions, flaws, objections and inconsistency
4. Warm up only if the rep earns it with good questions and clear value"""


class AnthropicBuyerReplyGenerator(BuyerReplyGenerator):
    """
    Generates buyer replies with the Anthropic Messages API.

    Attributes:
        client: AsyncAnthropic client
        model: Model used for roleplay
    """

    def __init__(
        self,
        model: Optional[str] = None,
        max_tokens: int = 220,
        temperature: float = 0.7,
        client=None,
    ):
        if client is None:
            # Lazy import so the engine can run without the SDK configured
            from anthropic import AsyncAnthropic
            client = AsyncAnthropic(api_key=os.getenv("ANTHROPIC_API_KEY"))
        self.client = client
        self.model = model or os.getenv("SPARRING_MODEL", DEFAULT_MODEL)
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def generate(self, profile: PersonaBehaviourProfile, history: Sequence[TurnRecord]) -> str:
        messages = [
            {"role": "user" if turn.role == "rep" else "assistant", "content": turn.text}
            for turn in history
        ]
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=build_system_prompt(profile),
            messages=messages,
        )
        parts = [block.text for block in response.content if getattr(block, "type", None) == "text"]
        return "".join(parts).strip()


class ScriptedBuyerReplyGenerator(BuyerReplyGenerator):
    """
    Deterministic offline generator.

    Cycles through the persona's example lines, switching to its objection
    lines whenever the rep mentions price or pushes for a decision.
    """

    PUSH_MARKERS = ("price", "cost", "sign", "deal", "discount", "next step", "book")

    async def generate(self, profile: PersonaBehaviourProfile, history: Sequence[TurnRecord]) -> str:
        card = PERSONA_CARDS[profile.persona]
        rep_turns = [turn for turn in history if turn.role == "rep"]
        last = rep_turns[-1].text.lower() if rep_turns else ""
        index = max(len(rep_turns) - 1, 0)

        if card.objection_lines and any(marker in last for marker in self.PUSH_MARKERS):
            return card.objection_lines[index % len(card.objection_lines)]
        if card.example_lines:
            return card.example_lines[index % len(card.example_lines)]
        return EMPTY_REPLY


def reply_timeout_from_env() -> float:
    return float(os.environ.get("SPARRING_REPLY_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS)))


async def generate_with_fallback(
    generator: BuyerReplyGenerator,
    profile: PersonaBehaviourProfile,
    history: Sequence[TurnRecord],
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> tuple[str, bool]:
    """
    Generate a reply under a timeout, never raising.

    Returns:
        Tuple of (reply text, degraded) where degraded is True when a canned
        line replaced the model output.
    """
    try:
        reply = await asyncio.wait_for(generator.generate(profile, history), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning("Buyer reply timed out after %.1fs, using fallback line", timeout_seconds)
        return FALLBACK_REPLY, True
    except Exception as e:
        logger.warning("Buyer reply generation failed, using fallback line: %s", e)
        return FALLBACK_REPLY, True

    reply = (reply or "").strip()
    if not reply:
        logger.info("Buyer reply was empty, using default line")
        return EMPTY_REPLY, True
    return reply, False
