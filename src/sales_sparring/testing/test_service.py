#!/usr/bin/env python3
"""
End-to-end tests for SparringService on the in-memory store.

Run with:
    uv run python src/sales_sparring/testing/test_service.py
"""
import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add src to path for imports
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from sales_sparring.config.scoring_config import (
    ScoringConfig,
    ScoringConfigProvider,
    static_scoring_config_loader,
)
from sales_sparring.core.errors import (
    InvalidInputError,
    SessionEndedError,
    SessionNotFoundError,
    StaleSessionError,
)
from sales_sparring.core.models import BaseScoreSource, EmotionalState, EndReason, Persona
from sales_sparring.engine.hangup import HANGUP_LINES
from sales_sparring.engine.micro_scoring import MISSED_PRICE_OBJECTION, STALL_NOT_ADDRESSED
from sales_sparring.generation.buyer_reply import (
    EMPTY_REPLY,
    FALLBACK_REPLY,
    BuyerReplyGenerator,
    ScriptedBuyerReplyGenerator,
)
from sales_sparring.personas.profiles import resolve_profile
from sales_sparring.service import SparringService
from sales_sparring.storage.memory import InMemorySessionStore
from sales_sparring.testing.suite import run_suite

# Scores 57 against a price objection, calibrated 76: a good turn
GOOD_LINE = "I hear you, and the ROI in 3 months pays for itself"
# Scores 37 against a price objection: a bad turn
BAD_LINE = "Hi"


class FixedReplyGenerator(BuyerReplyGenerator):
    def __init__(self, reply: str):
        self.reply = reply
        self.calls = 0

    async def generate(self, profile, history):
        self.calls += 1
        return self.reply


class FailingGenerator(BuyerReplyGenerator):
    async def generate(self, profile, history):
        raise RuntimeError("model unavailable")


class SlowGenerator(BuyerReplyGenerator):
    async def generate(self, profile, history):
        await asyncio.sleep(5)
        return "too late"


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self):
        self.current = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


def make_service(generator=None, config=None, reply_timeout=1.0) -> SparringService:
    return SparringService(
        store=InMemorySessionStore(),
        generator=generator or ScriptedBuyerReplyGenerator(),
        config_provider=ScoringConfigProvider(static_scoring_config_loader(config or ScoringConfig())),
        reply_timeout=reply_timeout,
        now=StepClock(),
    )


async def expect_error(error_type, coro):
    try:
        await coro
    except error_type as e:
        return e
    raise AssertionError(f"Expected {error_type.__name__}")


# =============================================================================
# Start and turns
# =============================================================================

def test_start_session_seeds_baseline():
    """Test 1: New sessions start from the persona baseline."""
    async def run():
        service = make_service()
        started = await service.start_session("angry", "hard", "standard", rep_id="rep-1")
        assert started.persona is Persona.ANGRY
        assert started.initial_state == EmotionalState(anger=50, boredom=15, trust=15)

        session = await service.get_session(started.id)
        assert session.turn_count == 0 and not session.ended and not session.finalized
        assert session.rep_id == "rep-1"

        defaulted = await service.start_session()
        assert defaulted.persona is Persona.PRICE_SENSITIVE
        assert defaulted.difficulty.value == "normal" and defaulted.mode.value == "standard"

    asyncio.run(run())


def test_unknown_ids():
    """Test 2: Unknown persona uses generic; bad difficulty and session ids are rejected."""
    async def run():
        service = make_service()
        started = await service.start_session("space_pirate")
        assert started.persona is Persona.GENERIC

        await expect_error(InvalidInputError, service.start_session("angry", "insane"))
        await expect_error(InvalidInputError, service.start_session("angry", "hard", "marathon"))
        missing = await expect_error(SessionNotFoundError, service.submit_turn("nope", "Hello there, quick question?"))
        assert missing.session_id == "nope"
        await expect_error(InvalidInputError, service.get_session(""))

    asyncio.run(run())


def test_submit_turn():
    """Test 3: A turn updates state, scores the rep and records the transcript."""
    async def run():
        generator = FixedReplyGenerator("That's too expensive")
        service = make_service(generator)
        started = await service.start_session("friendly", "normal")

        result = await service.submit_turn(started.id, f"  {GOOD_LINE}  ")
        assert result.turn_index == 1
        assert result.buyer_reply == "That's too expensive"
        assert result.micro_score is not None and result.micro_score.turn_score == 57
        assert result.streak.streak == 1
        assert not result.ended and not result.reply_degraded

        session = await service.get_session(started.id)
        assert session.turn_count == 1
        assert session.emotional_state == result.new_state
        assert len(session.micro_scores) == 1
        assert session.duration_ms == 1000, f"Got {session.duration_ms}"

        transcript = await service.get_transcript(started.id)
        assert [t.role for t in transcript] == ["rep", "buyer"]
        assert transcript[0].text == GOOD_LINE

        # Turn timestamps come from the service clock
        turn_time = datetime(2025, 1, 1, 0, 0, 2, tzinfo=timezone.utc)
        assert transcript[0].created_at == turn_time, f"Got {transcript[0].created_at}"
        assert transcript[1].created_at == turn_time, f"Got {transcript[1].created_at}"

    asyncio.run(run())


def test_empty_text_rejected():
    """Test 4: Empty or whitespace text is rejected without touching the session."""
    async def run():
        generator = FixedReplyGenerator("Okay.")
        service = make_service(generator)
        started = await service.start_session("cfo")

        for text in ("", "   ", None):
            await expect_error(InvalidInputError, service.submit_turn(started.id, text))

        session = await service.get_session(started.id)
        assert session.turn_count == 0 and session.version == 0
        assert generator.calls == 0

    asyncio.run(run())


def test_hangup_ends_session():
    """Test 5: Soft ceiling hang-up uses the scripted line, later turns fail."""
    async def run():
        generator = FixedReplyGenerator("Go on.")
        service = make_service(generator)
        started = await service.start_session("angry", "nightmare", "close_in_2m")
        profile = resolve_profile(Persona.ANGRY, started.difficulty, started.mode)
        assert profile.soft_ceiling == 4

        for _ in range(3):
            result = await service.submit_turn(started.id, "Tell me about your current setup.")
            assert not result.ended

        result = await service.submit_turn(started.id, "Tell me about your current setup.")
        assert result.ended and result.end_reason is EndReason.ANGRY
        assert result.buyer_reply == HANGUP_LINES[EndReason.ANGRY]
        assert result.micro_score is None, "Hang-up turn is not scored"
        assert generator.calls == 3

        error = await expect_error(SessionEndedError, service.submit_turn(started.id, "Wait, one more thing!"))
        assert error.reason == "angry"

        transcript = await service.get_transcript(started.id)
        assert transcript[-1].scripted is True
        assert len(transcript) == 8

    asyncio.run(run())


def test_generation_failures_degrade():
    """Test 6: Generator errors, timeouts and empty replies use canned lines."""
    async def run():
        failing = make_service(FailingGenerator())
        started = await failing.start_session("cfo")
        result = await failing.submit_turn(started.id, "What does your current process look like?")
        assert result.buyer_reply == FALLBACK_REPLY and result.reply_degraded
        assert result.micro_score is not None

        # The canned line's price and stall wording must not count against the rep
        friendly = make_service(FailingGenerator())
        started = await friendly.start_session("friendly", "easy")
        result = await friendly.submit_turn(started.id, "Tell me about your team and goals.")
        assert result.reply_degraded
        assert MISSED_PRICE_OBJECTION not in result.micro_score.flags, f"Got {result.micro_score.flags}"
        assert STALL_NOT_ADDRESSED not in result.micro_score.flags, f"Got {result.micro_score.flags}"
        assert result.micro_score.breakdown.objections == 55

        slow = make_service(SlowGenerator(), reply_timeout=0.05)
        started = await slow.start_session("cfo")
        result = await slow.submit_turn(started.id, "What does your current process look like?")
        assert result.buyer_reply == FALLBACK_REPLY and result.reply_degraded

        empty = make_service(FixedReplyGenerator("   "))
        started = await empty.start_session("cfo")
        result = await empty.submit_turn(started.id, "What does your current process look like?")
        assert result.buyer_reply == EMPTY_REPLY and result.reply_degraded
        assert result.micro_score.flags == (), f"Got {result.micro_score.flags}"

    asyncio.run(run())


def test_concurrent_turns_are_serialized():
    """Test 7: Concurrent turns on one session both land in order."""
    async def run():
        service = make_service()
        started = await service.start_session("friendly")
        results = await asyncio.gather(
            service.submit_turn(started.id, "What made you take this call today?"),
            service.submit_turn(started.id, "How do you handle reporting right now?"),
        )
        assert sorted(r.turn_index for r in results) == [1, 2]

        session = await service.get_session(started.id)
        assert session.turn_count == 2 and session.version == 2

        others = [await service.start_session("cfo") for _ in range(3)]
        await asyncio.gather(*(service.submit_turn(s.id, "What matters most to you?") for s in others))
        for s in others:
            assert (await service.get_session(s.id)).turn_count == 1

    asyncio.run(run())


# =============================================================================
# Finalization and reads
# =============================================================================

def test_finalize_is_idempotent_with_comeback():
    """Test 8: Comeback bonus is paid on the first finalize only."""
    async def run():
        service = make_service(FixedReplyGenerator("That's too expensive"), ScoringConfig(comeback_bonus=5))
        started = await service.start_session("friendly")

        for line in (GOOD_LINE, GOOD_LINE, BAD_LINE, GOOD_LINE):
            await service.submit_turn(started.id, line)
        session = await service.get_session(started.id)
        assert session.streak.xp_bonus_pending == 5

        first = await service.finalize(started.id)
        assert first.breakdown.bonus_applied == 5
        assert first.breakdown.base_source is BaseScoreSource.MICRO_AVERAGE
        assert not first.already_finalized

        second = await service.finalize(started.id, override_score=99)
        assert second.already_finalized
        assert second.final_score == first.final_score
        assert second.xp_awarded == first.xp_awarded

        session = await service.get_session(started.id)
        assert session.finalized and session.ended
        assert session.streak.xp_bonus_pending == 0

        await expect_error(SessionEndedError, service.submit_turn(started.id, GOOD_LINE))

    asyncio.run(run())


def test_record_total():
    """Test 9: A recorded total becomes the finalization base."""
    async def run():
        service = make_service()
        started = await service.start_session("procurement")
        session = await service.record_total(started.id, 77.5)
        assert session.total_score == 78

        result = await service.finalize(started.id)
        assert result.breakdown.base_source is BaseScoreSource.STORED_TOTAL
        assert result.breakdown.base_score == 78
        assert result.breakdown.finalized_at == service.now.current, "Finalize should stamp the service clock"

        await expect_error(InvalidInputError, service.record_total(started.id, 50))

    asyncio.run(run())


def test_list_sessions_and_leaderboard():
    """Test 10: Listing is newest first; leaderboard counts wins at 80+."""
    async def run():
        service = make_service()
        ids = [(await service.start_session("cfo", rep_id="rep-1")).id for _ in range(3)]
        await service.start_session("angry", rep_id="rep-2")

        listed = await service.list_sessions(rep_id="rep-1")
        assert [s.id for s in listed] == list(reversed(ids))
        assert len(await service.list_sessions(limit=0)) == 4
        assert len(await service.list_sessions(limit=2)) == 2

        for session_id, score in zip(ids, (90, 85, 40)):
            await service.finalize(session_id, override_score=score)

        board = await service.persona_leaderboard("cfo")
        assert (board.wins, board.losses, board.total) == (2, 1, 3)
        assert board.win_rate == 67

        empty = await service.persona_leaderboard(Persona.SILENT)
        assert empty.total == 0 and empty.win_rate == 0

    asyncio.run(run())


def test_store_rejects_stale_writes():
    """Test 11: The store refuses a write based on an old version."""
    async def run():
        store = InMemorySessionStore()
        service = SparringService(
            store=store,
            generator=ScriptedBuyerReplyGenerator(),
            config_provider=ScoringConfigProvider(static_scoring_config_loader(ScoringConfig())),
            reply_timeout=1.0,
        )
        started = await service.start_session("cfo")
        snapshot = await store.get_session(started.id)

        await service.submit_turn(started.id, "What does success look like for you?")

        stale = await expect_error(
            StaleSessionError, store.save_session(snapshot.model_copy(update={"total_score": 10}), snapshot.version)
        )
        assert stale.expected_version == 0 and stale.actual_version == 1
        assert (await store.get_session(started.id)).total_score is None

        await expect_error(ValueError, store.create_session(snapshot))

    asyncio.run(run())


def test_non_finite_scores_rejected():
    """Test 12: Infinite or NaN totals and overrides are rejected without touching the session."""
    async def run():
        service = make_service()
        started = await service.start_session("cfo")

        for bad in (float("inf"), float("-inf"), float("nan")):
            await expect_error(InvalidInputError, service.finalize(started.id, override_score=bad))
            await expect_error(InvalidInputError, service.record_total(started.id, bad))
        await expect_error(InvalidInputError, service.record_total(started.id, True))

        session = await service.get_session(started.id)
        assert not session.finalized and session.version == 0
        assert session.total_score is None

        result = await service.finalize(started.id, override_score=85.0)
        assert result.breakdown.base_score == 85

    asyncio.run(run())


def test_session_locks_are_released():
    """Test 13: Per-session locks do not outlive their callers."""
    async def run():
        service = make_service(FixedReplyGenerator("Sounds interesting, tell me more."))
        for _ in range(5):
            started = await service.start_session("friendly")
            await service.submit_turn(started.id, "What made you take this call today?")
            await service.record_total(started.id, 70)
            await service.finalize(started.id)
        assert len(service._locks) == 0, f"{len(service._locks)} locks left after finished sessions"

        for i in range(20):
            await expect_error(SessionNotFoundError, service.submit_turn(f"bogus-{i}", "Hello there, quick question?"))
            await expect_error(SessionNotFoundError, service.finalize(f"bogus-{i}"))
        assert len(service._locks) == 0, f"{len(service._locks)} locks left after unknown ids"

        started = await service.start_session("friendly")
        await asyncio.gather(*(
            service.submit_turn(started.id, "How do you handle reporting right now?") for _ in range(3)
        ))
        assert (await service.get_session(started.id)).turn_count == 3
        assert len(service._locks) == 0

    asyncio.run(run())


def main():
    """Run all tests."""
    run_suite(
        "SparringService Tests",
        "Testing sessions, turns, hang-ups and finalization end to end",
        {
            "start_session": test_start_session_seeds_baseline,
            "unknown_ids": test_unknown_ids,
            "submit_turn": test_submit_turn,
            "empty_text": test_empty_text_rejected,
            "hangup": test_hangup_ends_session,
            "degraded_replies": test_generation_failures_degrade,
            "concurrency": test_concurrent_turns_are_serialized,
            "finalize_idempotent": test_finalize_is_idempotent_with_comeback,
            "record_total": test_record_total,
            "list_and_leaderboard": test_list_sessions_and_leaderboard,
            "stale_writes": test_store_rejects_stale_writes,
            "non_finite_scores": test_non_finite_scores_rejected,
            "lock_cleanup": test_session_locks_are_released,
        },
    )


if __name__ == "__main__":
    main()
