"""
Sparring session service - the caller-facing operations.

Wires the engine components to a SessionStore and a BuyerReplyGenerator:

    service = create_sparring_service()
    started = await service.start_session("angry", "hard", "standard", rep_id="rep-1")
    turn = await service.submit_turn(started.id, "Thanks for taking the call. What's driving the review?")
    result = await service.finalize(started.id)

Turns on one session are serialized with a per-session lock in this process
and by the store's version check across processes. Sessions share nothing,
so any number of them can run concurrently.
"""
import asyncio
import logging
import math
import os
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

from dotenv import load_dotenv

from sales_sparring.config.scoring_config import ScoringConfigProvider
from sales_sparring.config.tuning import DEFAULT_TUNING, EngineTuning, round_half_up
from sales_sparring.core.errors import InvalidInputError, SessionEndedError, SessionNotFoundError
from sales_sparring.core.models import (
    FinalizeResult,
    LeaderboardEntry,
    Persona,
    SessionStarted,
    SparringSession,
    TurnRecord,
    TurnResult,
    clamp_dial,
)
from sales_sparring.engine.advance import advance
from sales_sparring.engine.finalization import compute_finalization
from sales_sparring.engine.hangup import hangup_line
from sales_sparring.engine.micro_scoring import score_turn
from sales_sparring.engine.streak import update_streak
from sales_sparring.generation.buyer_reply import (
    AnthropicBuyerReplyGenerator,
    BuyerReplyGenerator,
    ScriptedBuyerReplyGenerator,
    generate_with_fallback,
    reply_timeout_from_env,
)
from sales_sparring.personas.profiles import parse_difficulty, parse_mode, resolve_persona, resolve_profile
from sales_sparring.storage.base import SessionStore
from sales_sparring.storage.memory import InMemorySessionStore

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 20
MAX_LIST_LIMIT = 50


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _finite_score(value: float, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidInputError(f"{name} must be a finite number, got {value!r}")
    return value


class _SessionLock:
    """Per-session lock plus the number of callers holding or awaiting it."""

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class SparringService:
    """
    Runs sparring sessions end to end.

    Attributes:
        store: Session persistence.
        generator: Buyer reply generator.
        config_provider: Cached operator scoring config.
        tuning: Engine constants.
        reply_timeout: Seconds allowed for one buyer reply.
    """

    def __init__(
        self,
        store: SessionStore,
        generator: BuyerReplyGenerator,
        config_provider: Optional[ScoringConfigProvider] = None,
        tuning: EngineTuning = DEFAULT_TUNING,
        reply_timeout: Optional[float] = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.generator = generator
        self.config_provider = config_provider or ScoringConfigProvider()
        self.tuning = tuning
        self.reply_timeout = reply_timeout if reply_timeout is not None else reply_timeout_from_env()
        self.now = now
        self._locks: dict[str, _SessionLock] = {}

    @asynccontextmanager
    async def _session_lock(self, session_id: str):
        """
        Serialize work on one session.

        Entries only live while some caller holds or awaits them, so the
        map stays bounded by the number of sessions with work in flight.
        """
        entry = self._locks.get(session_id)
        if entry is None:
            entry = self._locks[session_id] = _SessionLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._locks.pop(session_id, None)

    async def _load(self, session_id: str) -> SparringSession:
        if not isinstance(session_id, str) or not session_id.strip():
            raise InvalidInputError("session id is required")
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    async def start_session(
        self,
        persona: Optional[str | Persona] = None,
        difficulty: Optional[str] = None,
        mode: Optional[str] = None,
        rep_id: Optional[str] = None,
    ) -> SessionStarted:
        """
        Create a session seeded with the persona's baseline emotions.

        Raises:
            InvalidInputError: Unknown difficulty or mode.
        """
        resolved_difficulty = parse_difficulty(difficulty)
        resolved_mode = parse_mode(mode)
        resolved_persona = resolve_persona(persona)
        profile = resolve_profile(resolved_persona, resolved_difficulty, resolved_mode, self.tuning)

        session = SparringSession(
            id=str(uuid.uuid4()),
            rep_id=rep_id,
            persona=resolved_persona,
            difficulty=resolved_difficulty,
            mode=resolved_mode,
            created_at=self.now(),
            emotional_state=profile.baseline,
        )
        stored = await self.store.create_session(session)
        logger.info(
            "Started sparring session %s (persona=%s difficulty=%s mode=%s rep=%s)",
            stored.id, resolved_persona.value, resolved_difficulty.value, resolved_mode.value, rep_id,
        )
        return SessionStarted(
            id=stored.id,
            persona=stored.persona,
            difficulty=stored.difficulty,
            mode=stored.mode,
            initial_state=stored.emotional_state,
        )

    async def submit_turn(self, session_id: str, rep_text: str) -> TurnResult:
        """
        Process one rep utterance.

        Raises:
            InvalidInputError: Empty text or missing session id.
            SessionNotFoundError: Unknown session.
            SessionEndedError: The buyer already ended this session.
            StaleSessionError: Another writer committed first.
        """
        text = (rep_text or "").strip() if isinstance(rep_text, str) else ""
        if not text:
            raise InvalidInputError("text_required")

        async with self._session_lock(session_id):
            session = await self._load(session_id)
            if session.ended:
                raise SessionEndedError(
                    session.id, session.end_reason.value if session.end_reason else None
                )

            profile = resolve_profile(session.persona, session.difficulty, session.mode, self.tuning)
            turn_index = session.turn_count + 1
            new_state, decision = advance(session.emotional_state, profile, turn_index, text, self.tuning)

            turn_time = self.now()
            rep_turn = TurnRecord(
                session_id=session.id, turn_index=turn_index, role="rep", text=text, created_at=turn_time
            )
            micro_score = None
            streak = session.streak
            degraded = False

            if decision.end:
                reply = hangup_line(decision.reason)
                logger.info("Session %s: buyer hung up at turn %d (%s)", session.id, turn_index, decision.reason.value)
            else:
                history = [*await self.store.get_turns(session.id), rep_turn]
                reply, degraded = await generate_with_fallback(
                    self.generator, profile, history, self.reply_timeout
                )
                # A canned line stands in for the buyer; score the rep's words alone
                micro_score = score_turn(text, "" if degraded else reply)
                config = await self.config_provider.get()
                streak = update_streak(
                    session.streak,
                    micro_score.turn_score,
                    config.streak_config(self.tuning.good_turn_threshold),
                    self.tuning,
                )

            buyer_turn = TurnRecord(
                session_id=session.id,
                turn_index=turn_index,
                role="buyer",
                text=reply,
                scripted=decision.end or degraded,
                created_at=turn_time,
            )

            updated = session.model_copy(update={
                "turn_count": turn_index,
                "duration_ms": max(0, int((turn_time - session.created_at).total_seconds() * 1000)),
                "emotional_state": new_state,
                "streak": streak,
                "ended": decision.end,
                "end_reason": decision.reason if decision.end else None,
                "micro_scores": (
                    session.with_micro_score(micro_score) if micro_score is not None else session.micro_scores
                ),
            })
            stored = await self.store.commit_turn(updated, [rep_turn, buyer_turn], session.version)

        logger.debug(
            "Session %s turn %d: state=%s score=%s streak=%d",
            stored.id, turn_index, new_state.model_dump(),
            micro_score.turn_score if micro_score is not None else None, stored.streak.streak,
        )
        return TurnResult(
            session_id=stored.id,
            turn_index=turn_index,
            buyer_reply=reply,
            micro_score=micro_score,
            new_state=stored.emotional_state,
            streak=stored.streak,
            ended=stored.ended,
            end_reason=stored.end_reason,
            reply_degraded=degraded,
        )

    async def finalize(self, session_id: str, override_score: Optional[float] = None) -> FinalizeResult:
        """
        Close the session and award XP.

        Calling it again returns the stored result; the override and any
        pending bonus are ignored on repeat calls.

        Raises:
            InvalidInputError: Override score is not a finite number.
        """
        if override_score is not None:
            _finite_score(override_score, "override_score")

        async with self._session_lock(session_id):
            session = await self._load(session_id)

            if session.finalized and session.finalization is not None:
                logger.info("Session %s already finalized, returning stored result", session.id)
                return FinalizeResult(
                    session_id=session.id,
                    final_score=session.finalization.final_score,
                    outcome=session.finalization.outcome,
                    xp_awarded=session.finalization.xp_awarded,
                    breakdown=session.finalization,
                    already_finalized=True,
                )

            config = await self.config_provider.get()
            updated, breakdown = compute_finalization(
                session, override_score, config, self.tuning, finalized_at=self.now()
            )
            stored = await self.store.save_session(updated, session.version)

        logger.info(
            "Finalized session %s: score=%d outcome=%s xp=%d (base=%s, bonus=%s)",
            stored.id, breakdown.final_score, breakdown.outcome.value, breakdown.xp_awarded,
            breakdown.base_source.value, breakdown.bonus_applied,
        )
        return FinalizeResult(
            session_id=stored.id,
            final_score=breakdown.final_score,
            outcome=breakdown.outcome,
            xp_awarded=breakdown.xp_awarded,
            breakdown=breakdown,
        )

    # =========================================================================
    # Reads and bookkeeping
    # =========================================================================

    async def record_total(self, session_id: str, total: float) -> SparringSession:
        """Store an externally computed total score used as the finalization base."""
        _finite_score(total, "total")
        async with self._session_lock(session_id):
            session = await self._load(session_id)
            if session.finalized:
                raise InvalidInputError(f"Session {session_id} is already finalized")
            updated = session.model_copy(update={"total_score": clamp_dial(round_half_up(total))})
            return await self.store.save_session(updated, session.version)

    async def get_session(self, session_id: str) -> SparringSession:
        return await self._load(session_id)

    async def get_transcript(self, session_id: str) -> list[TurnRecord]:
        await self._load(session_id)
        return await self.store.get_turns(session_id)

    async def list_sessions(self, rep_id: Optional[str] = None, limit: Optional[int] = None) -> list[SparringSession]:
        """Most recent sessions first; limit outside 1..50 falls back to 20."""
        if not isinstance(limit, int) or not 0 < limit <= MAX_LIST_LIMIT:
            limit = DEFAULT_LIST_LIMIT
        return await self.store.list_sessions(rep_id=rep_id, limit=limit)

    async def persona_leaderboard(self, persona: str | Persona) -> LeaderboardEntry:
        """Win/loss counts for a persona across all finalized sessions."""
        resolved = resolve_persona(persona)
        scores = await self.store.finalized_scores(resolved)
        wins = sum(1 for score in scores if score >= self.tuning.win_threshold)
        total = len(scores)
        return LeaderboardEntry(
            persona=resolved,
            wins=wins,
            losses=total - wins,
            total=total,
            win_rate=round_half_up(wins / total * 100) if total else 0,
        )


def create_sparring_service(
    store: Optional[SessionStore] = None,
    offline: bool = False,
    config_provider: Optional[ScoringConfigProvider] = None,
) -> SparringService:
    """
    Build a service with sensible defaults.

    Args:
        store: Session store; defaults to an in-memory store.
        offline: Use the scripted buyer instead of the Anthropic API.
        config_provider: Scoring config provider; defaults to env-backed.
    """
    if offline or not os.getenv("ANTHROPIC_API_KEY"):
        if not offline:
            logger.warning("ANTHROPIC_API_KEY not set, using scripted buyer replies")
        generator: BuyerReplyGenerator = ScriptedBuyerReplyGenerator()
    else:
        generator = AnthropicBuyerReplyGenerator()

    return SparringService(
        store=store or InMemorySessionStore(),
        generator=generator,
        config_provider=config_provider,
    )
