"""Subscription and free-tier usage checks for the calculator.

The solver never knows about quotas. Routes depend on ``calculation_gate``,
ask it whether a calculation may run, and record a use only after the
engine returned a result.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from isolation_api.auth import get_current_user, optional_user
from isolation_api.database import get_db
from isolation_api.models import UsageResponse
from isolation_api.models_db import Payment, User

logger = logging.getLogger(__name__)

# Free tier calculation limit (per account, or per browser session when anonymous)
FREE_TIER_CALCULATION_LIMIT = int(os.getenv("FREE_TIER_CALCULATION_LIMIT", "3"))

TIER_LEVELS = {"free": 0, "essential": 1, "pro": 2}

SESSION_HEADER = "x-session-id"

# Idle anonymous counters are forgotten after this many seconds (default 1 day)
ANONYMOUS_SESSION_TTL = int(os.getenv("ANONYMOUS_SESSION_TTL", "86400"))


def has_active_subscription(user: User) -> bool:
    """Paid tiers are set by the Stripe webhook and cleared on cancellation."""
    return TIER_LEVELS.get(user.subscription_tier, 0) > 0


def latest_payment(db: Session, user: User) -> Optional[Payment]:
    return (
        db.query(Payment)
        .filter(Payment.user_id == user.id)
        .order_by(Payment.created_at.desc())
        .first()
    )


class AnonymousUsageStore:
    """In-memory calculation counters for callers without an account.

    A counter lives until its key has been idle for ``ttl`` seconds, the
    same as a browser session counter would. Idle keys are pruned at most
    once per cleanup interval.
    """

    # Prune idle keys every 5 minutes
    _CLEANUP_INTERVAL = 300

    def __init__(self, ttl: float = ANONYMOUS_SESSION_TTL, clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self._clock = clock
        self._counts: dict[str, int] = {}
        self._last_seen: dict[str, float] = {}
        self._last_cleanup = clock()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._counts)

    def _cleanup_stale_keys(self, now: float) -> None:
        if now - self._last_cleanup < self._CLEANUP_INTERVAL:
            return
        self._last_cleanup = now
        cutoff = now - self.ttl
        stale_keys = [key for key, seen in self._last_seen.items() if seen < cutoff]
        for key in stale_keys:
            del self._counts[key]
            del self._last_seen[key]
        if stale_keys:
            logger.debug("Pruned %d idle anonymous usage keys", len(stale_keys))

    async def get(self, key: str) -> int:
        async with self._lock:
            self._cleanup_stale_keys(self._clock())
            return self._counts.get(key, 0)

    async def increment(self, key: str) -> int:
        async with self._lock:
            now = self._clock()
            self._cleanup_stale_keys(now)
            self._counts[key] = self._counts.get(key, 0) + 1
            self._last_seen[key] = now
            return self._counts[key]


anonymous_usage = AnonymousUsageStore()


def anonymous_key(request: Request) -> str:
    """Identify an anonymous caller by session header, else client address."""
    session_id = request.headers.get(SESSION_HEADER)
    if session_id:
        return f"session:{session_id.strip()}"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    if request.client:
        return f"ip:{request.client.host}"
    return "ip:unknown"


@dataclass
class CalculationGate:
    """Quota for one caller: checks and records calculator usage."""
    db: Session
    user: Optional[User]
    key: str
    store: AnonymousUsageStore
    limit: int = FREE_TIER_CALCULATION_LIMIT

    @property
    def subscribed(self) -> bool:
        return self.user is not None and has_active_subscription(self.user)

    async def used(self) -> int:
        if self.user is not None:
            return self.user.calculations_used
        return await self.store.get(self.key)

    async def status(self) -> UsageResponse:
        used = await self.used()
        if self.subscribed:
            return UsageResponse(used=used, limit=None, remaining=None, subscribed=True)
        return UsageResponse(
            used=used,
            limit=self.limit,
            remaining=max(self.limit - used, 0),
            subscribed=False,
        )

    async def ensure_allowed(self) -> None:
        """Raise 403 when the free tier is exhausted."""
        if self.subscribed:
            return
        if await self.used() >= self.limit:
            logger.info("Free tier limit reached for %s", self.user.id if self.user else self.key)
            raise HTTPException(
                status_code=403,
                detail=(
                    f"Free tier limit reached ({self.limit} calculations). "
                    "Upgrade your plan to continue using the calculator."
                ),
            )

    async def record(self) -> UsageResponse:
        """Count one successful calculation and return the new status."""
        if self.user is not None:
            self.user.calculations_used = (self.user.calculations_used or 0) + 1
            self.db.commit()
            self.db.refresh(self.user)
        else:
            await self.store.increment(self.key)
        return await self.status()


def get_anonymous_store() -> AnonymousUsageStore:
    """FastAPI dependency for the anonymous counter store (overridable in tests)."""
    return anonymous_usage


async def calculation_gate(
    request: Request,
    user: Optional[User] = Depends(optional_user),
    db: Session = Depends(get_db),
    store: AnonymousUsageStore = Depends(get_anonymous_store),
) -> CalculationGate:
    """FastAPI dependency — build the caller's gate without enforcing it."""
    return CalculationGate(db=db, user=user, key=anonymous_key(request), store=store)


def require_tier(required_tier: str = "free"):
    """Return a FastAPI dependency that checks subscription tier."""
    async def _check(current_user: User = Depends(get_current_user)):
        user_level = TIER_LEVELS.get(current_user.subscription_tier, 0)
        required_level = TIER_LEVELS.get(required_tier, 0)
        if user_level < required_level:
            raise HTTPException(
                status_code=403,
                detail=f"This feature requires a {required_tier} subscription.",
            )
        return current_user
    return _check
