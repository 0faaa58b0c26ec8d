"""
Operator-tunable scoring knobs and their cache.

The scoring config (streak threshold, global XP multiplier, comeback bonus)
is owned by the caller: build a ScoringConfigProvider with a loader and hand
it to the service. The provider caches the loaded value for ``ttl_seconds``
measured on the injected ``clock`` so expiry can be driven from tests.

Usage:
    provider = ScoringConfigProvider(env_scoring_config_loader, ttl_seconds=30)
    config = await provider.get()
    await provider.refresh()  # Force a reload, e.g. after an admin edit
"""
import logging
import os
import time
from datetime import datetime
from typing import Awaitable, Callable, Literal, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30.0


class StreakConfig(BaseModel):
    """Inputs to the streak engine."""
    threshold: int = Field(default=3, ge=1)
    comeback_bonus: float = Field(default=5, ge=0)
    calibrate: bool = True
    good_threshold: int = 75
    basis: Literal["current", "best"] = "current"


class ScoringConfig(BaseModel):
    """Admin-editable scoring configuration."""
    streak_threshold: int = Field(default=3, ge=1)
    xp_multiplier: float = Field(default=1.0, ge=0)  # Global, applied after the streak multiplier
    comeback_bonus: int = Field(default=5, ge=0)
    calibrate: bool = True
    multiplier_basis: Literal["current", "best"] = "current"
    updated_at: Optional[datetime] = None

    def streak_config(self, good_threshold: int = 75) -> StreakConfig:
        return StreakConfig(
            threshold=self.streak_threshold,
            comeback_bonus=self.comeback_bonus,
            calibrate=self.calibrate,
            good_threshold=good_threshold,
            basis=self.multiplier_basis,
        )


ScoringConfigLoader = Callable[[], Awaitable[ScoringConfig]]


async def env_scoring_config_loader() -> ScoringConfig:
    """Load scoring config from SPARRING_* environment variables."""
    return ScoringConfig(
        streak_threshold=int(os.environ.get("SPARRING_STREAK_THRESHOLD", "3")),
        xp_multiplier=float(os.environ.get("SPARRING_XP_MULTIPLIER", "1.0")),
        comeback_bonus=int(os.environ.get("SPARRING_COMEBACK_BONUS", "5")),
        calibrate=os.environ.get("SPARRING_CALIBRATE", "true").lower() == "true",
        multiplier_basis=os.environ.get("SPARRING_MULTIPLIER_BASIS", "current"),
    )


def static_scoring_config_loader(config: ScoringConfig) -> ScoringConfigLoader:
    """Wrap a fixed config as a loader."""
    async def _load() -> ScoringConfig:
        return config
    return _load


class ScoringConfigProvider:
    """
    TTL cache around a ScoringConfigLoader.

    Attributes:
        loader: Async callable returning a fresh ScoringConfig.
        ttl_seconds: How long a loaded value is served before reloading.
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        loader: ScoringConfigLoader = env_scoring_config_loader,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be non-negative")
        self.loader = loader
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._value: Optional[ScoringConfig] = None
        self._expires_at: float = 0.0

    @property
    def is_fresh(self) -> bool:
        return self._value is not None and self._expires_at > self.clock()

    async def get(self) -> ScoringConfig:
        """Return the cached config, reloading it if the TTL has passed."""
        if self.is_fresh:
            return self._value
        return await self.refresh()

    async def refresh(self) -> ScoringConfig:
        """
        Reload the config now.

        If the loader fails, the previous value (or the defaults when nothing
        was ever loaded) is returned without being re-cached, so the next call
        retries the loader.
        """
        try:
            value = await self.loader()
        except Exception as e:
            fallback = self._value or ScoringConfig()
            logger.warning("Failed to load scoring config, using %s values: %s",
                           "stale" if self._value else "default", e)
            return fallback

        self._value = value
        self._expires_at = self.clock() + self.ttl_seconds
        logger.debug("Scoring config loaded: %s (ttl=%.1fs)", value.model_dump(), self.ttl_seconds)
        return value

    def invalidate(self) -> None:
        """Drop the cached value; the next get() reloads."""
        self._expires_at = 0.0
