"""Currency, tickets, stamina, VIP status and daily usage limits."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .config import FEATURE_SCAN, LimitSettings, RewardSettings
from .errors import DailyLimitExceeded, InsufficientResource, LimitCheck
from .models import UserProgressionState
from .utils import today_string, utc_now, yesterday_string

logger = logging.getLogger("potenote.ledger")

ChangeHook = Callable[[], None]


@dataclass(frozen=True)
class LoginBonus:
    granted: bool
    coins: int
    consecutive_days: int


class ResourceLedger:
    """Owns the scalar slice of :class:`UserProgressionState`.

    Every failed validation returns a value (``False`` or an error dataclass)
    and leaves the state untouched. Successful mutations call ``on_change`` so
    the owning store can persist.
    """

    def __init__(
        self,
        progression: UserProgressionState,
        *,
        limits: Optional[LimitSettings] = None,
        rewards: Optional[RewardSettings] = None,
        clock: Callable[[], datetime] = utc_now,
        on_change: Optional[ChangeHook] = None,
    ) -> None:
        self._state = progression
        self._limits = limits or LimitSettings()
        self._rewards = rewards or RewardSettings()
        self._clock = clock
        self._on_change = on_change

    @property
    def state(self) -> UserProgressionState:
        return self._state

    @property
    def coins(self) -> int:
        return self._state.coins

    @property
    def tickets(self) -> int:
        return self._state.tickets

    @property
    def stamina(self) -> int:
        return self._state.stamina

    def today(self) -> str:
        return today_string(self._clock())

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    # Currency & tickets -----------------------------------------------------

    def add_currency(self, amount: int) -> int:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        self._state.coins += amount
        self._changed()
        return self._state.coins

    def charge_currency(self, amount: int) -> Optional[InsufficientResource]:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        if self._state.coins < amount:
            return InsufficientResource("coins", amount, self._state.coins)
        self._state.coins -= amount
        self._changed()
        return None

    def spend_currency(self, amount: int) -> bool:
        return self.charge_currency(amount) is None

    def add_tickets(self, amount: int) -> int:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        self._state.tickets += amount
        self._changed()
        return self._state.tickets

    def charge_ticket(self) -> Optional[InsufficientResource]:
        if self._state.tickets <= 0:
            return InsufficientResource("tickets", 1, self._state.tickets)
        self._state.tickets -= 1
        self._changed()
        return None

    def use_ticket(self) -> bool:
        return self.charge_ticket() is None

    # Stamina ----------------------------------------------------------------

    def use_stamina(self, amount: Optional[int] = None) -> bool:
        """Spend ``amount`` stamina, or the cost of one quiz when omitted."""
        if amount is None:
            amount = self._limits.quiz_stamina_cost
        if amount < 0:
            raise ValueError("amount must be non-negative")
        if self._state.stamina < amount:
            return False
        self._state.stamina -= amount
        self._changed()
        return True

    def recover_stamina(self, amount: Optional[int] = None) -> int:
        """Recover ``amount`` stamina, or refill completely when omitted."""
        cap = self._limits.stamina_max
        target = cap if amount is None else self._state.stamina + amount
        self._state.stamina = max(0, min(cap, target))
        self._changed()
        return self._state.stamina

    # VIP --------------------------------------------------------------------

    def is_vip_active(self) -> bool:
        if not self._state.is_vip:
            return False
        expires = self._state.vip_expires_at
        return expires is None or expires > self._clock()

    def activate_vip(self, expires_at: Optional[datetime] = None) -> None:
        self._state.is_vip = True
        self._state.vip_expires_at = expires_at
        logger.info("VIP activated until %s", expires_at.isoformat() if expires_at else "forever")
        self._changed()

    def deactivate_vip(self) -> None:
        self._state.is_vip = False
        self._state.vip_expires_at = None
        self._changed()

    def check_vip_status(self) -> bool:
        """Expire a lapsed VIP subscription and report whether VIP is active."""
        if self._state.is_vip and not self.is_vip_active():
            logger.info("VIP expired at %s", self._state.vip_expires_at)
            self.deactivate_vip()
            return False
        return self._state.is_vip

    # Daily limits -----------------------------------------------------------

    def check_daily_limit(self, feature: str) -> LimitCheck:
        """Evaluate today's allowance for ``feature`` without mutating anything."""
        limit = self._limits.allowance(feature, vip=self.is_vip_active())
        if limit is None:
            return LimitCheck(allowed=True, remaining=None)
        used = self._state.counter(feature).current(self.today())
        remaining = max(0, limit - used)
        if remaining > 0:
            return LimitCheck(allowed=True, remaining=remaining)
        message = self._limits.messages.get(feature, "Daily limit reached.")
        return LimitCheck(
            allowed=False,
            remaining=0,
            error=DailyLimitExceeded(feature=feature, limit=limit, message=message),
        )

    def increment_usage(self, feature: str) -> int:
        if feature not in self._limits.free:
            raise KeyError(f"Unknown daily feature: {feature}")
        counter = self._state.counter(feature)
        counter.roll_over(self.today())
        counter.count += 1
        if feature == FEATURE_SCAN:
            self._state.total_scans += 1
        self._changed()
        return counter.count

    def recover_usage(self, feature: str, amount: Optional[int] = None) -> int:
        """Give back daily allowance, e.g. after a rewarded ad."""
        if amount is None:
            amount = self._limits.ad_recovery.get(feature, 0)
        counter = self._state.counter(feature)
        counter.roll_over(self.today())
        counter.count = max(0, counter.count - amount)
        self._changed()
        return counter.count

    # Login & lifetime counters ----------------------------------------------

    def login_check(self) -> LoginBonus:
        today = self.today()
        state = self._state
        if state.last_login_date == today:
            return LoginBonus(granted=False, coins=0, consecutive_days=state.consecutive_login_days)
        if state.last_login_date == yesterday_string(today):
            state.consecutive_login_days += 1
        else:
            state.consecutive_login_days = 1
        bonus = self._rewards.login_bonus_vip if self.is_vip_active() else self._rewards.login_bonus_free
        state.coins += bonus
        state.last_login_date = today
        logger.info("Login bonus %s coins (day %s)", bonus, state.consecutive_login_days)
        self._changed()
        return LoginBonus(granted=True, coins=bonus, consecutive_days=state.consecutive_login_days)

    def record_quiz(self, *, correct_answers: int, distance: float, cleared: bool) -> None:
        state = self._state
        state.total_quizzes += 1
        state.total_correct_answers += correct_answers
        state.total_distance += distance
        if cleared:
            state.total_quiz_clears += 1
        self._changed()


__all__ = ["LoginBonus", "ResourceLedger"]
