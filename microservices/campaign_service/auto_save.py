"""
Draft Auto-save

Debounced, rate-limited save loop that feeds wizard progress into the
draft store. The controller is a plain state machine driven by
mark_changed() and tick(); time and sleeping are injected so every skip
condition can be exercised without real timers.

States: idle -> dirty -> debounced_pending -> saving -> idle | error
"""

import asyncio
import json
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .models import WIZARD_PREVIEW_STEP, CurrentUser, DraftSaveRequest

logger = logging.getLogger(__name__)


class AutoSaveState(str, Enum):
    IDLE = "idle"
    DIRTY = "dirty"
    DEBOUNCED_PENDING = "debounced_pending"
    SAVING = "saving"
    ERROR = "error"


class Clock(Protocol):
    def now(self) -> float:
        """Seconds on a monotonic timeline"""
        ...


class MonotonicClock:
    def now(self) -> float:
        return time.monotonic()


class AutoSaveSkipped(Exception):
    """A save that was intentionally not attempted"""


NO_MEANINGFUL_DATA = "No meaningful data to save"
PREVIEW_STEP_SKIP = "Cannot auto-save on preview step"
RATE_LIMITED = "Auto-save rate limited"
NO_CHANGES = "No changes detected"

# Failures that are expected and never shown to the user
BENIGN_MESSAGES = ("No meaningful data", PREVIEW_STEP_SKIP, "rate limited", NO_CHANGES)

DEFAULT_DRAFT_NAME = "Campaign Draft"

# (name, data, step, draft_id) -> draft_id
SaveCallback = Callable[[str, Dict[str, Any], int, Optional[str]], Awaitable[str]]


def is_benign_error(error: BaseException) -> bool:
    if isinstance(error, AutoSaveSkipped):
        return True
    message = str(error)
    return any(benign in message for benign in BENIGN_MESSAGES)


def has_meaningful_data(data: Optional[Dict[str, Any]]) -> bool:
    """A campaign name, or at least one audience, KPI or team member"""
    if not data:
        return False
    basics = data.get("basics") or {}
    name = basics.get("name")
    if isinstance(name, str) and name.strip():
        return True
    audiences = (data.get("audience_channels") or {}).get("audiences")
    kpis = (data.get("kpis_metrics") or {}).get("primary_kpis")
    members = (data.get("team_access") or {}).get("team_members")
    return any(bool(items) for items in (audiences, kpis, members))


def snapshot(data: Optional[Dict[str, Any]]) -> str:
    """Key-order independent serialization used for change detection"""
    return json.dumps(data or {}, sort_keys=True, default=str)


def draft_name_for(data: Optional[Dict[str, Any]]) -> str:
    name = ((data or {}).get("basics") or {}).get("name")
    if isinstance(name, str) and name.strip():
        return f"{name.strip()} - Draft"
    return DEFAULT_DRAFT_NAME


class AutoSaveController:
    """Auto-save state machine for one wizard session"""

    INITIAL_DELAY_SECONDS = 30
    SUBSEQUENT_DELAY_SECONDS = 180
    MAX_RETRIES = 3
    PREVIEW_STEP = WIZARD_PREVIEW_STEP

    def __init__(
        self,
        save: SaveCallback,
        clock: Optional[Clock] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        enabled: bool = True,
        draft_id: Optional[str] = None,
        on_error: Optional[Callable[[str], None]] = None,
        on_saved: Optional[Callable[[str], None]] = None,
    ):
        self._save = save
        self.clock = clock or MonotonicClock()
        self._sleep = sleep or asyncio.sleep
        self.enabled = enabled
        self.on_error = on_error
        self.on_saved = on_saved

        self.state = AutoSaveState.IDLE
        self.draft_id = draft_id
        self.initial_save_done = False
        self.last_saved_at: Optional[float] = None
        self.last_saved_snapshot: Optional[str] = None
        self.last_error: Optional[str] = None
        self.last_skip_reason: Optional[str] = None
        self.save_count = 0

        self._data: Optional[Dict[str, Any]] = None
        self._step = 1
        self._deadline: Optional[float] = None
        self._changed_while_saving = False

    @property
    def current_delay(self) -> float:
        """Debounce window; lengthens permanently after the first save"""
        if self.initial_save_done:
            return self.SUBSEQUENT_DELAY_SECONDS
        return self.INITIAL_DELAY_SECONDS

    @property
    def is_saving(self) -> bool:
        return self.state == AutoSaveState.SAVING

    def mark_changed(self, data: Dict[str, Any], step: int) -> None:
        """Record a field change and restart the debounce window"""
        if not self.enabled:
            return
        self._data = data
        self._step = step
        self._deadline = self.clock.now() + self.current_delay
        if self.state == AutoSaveState.SAVING:
            self._changed_while_saving = True
            return
        self.state = AutoSaveState.DIRTY

    def cancel(self) -> None:
        """Drop a pending debounced save; an in-flight save is unaffected"""
        self._deadline = None
        if self.state in (AutoSaveState.DIRTY, AutoSaveState.DEBOUNCED_PENDING):
            self.state = AutoSaveState.IDLE

    async def tick(self) -> Optional[str]:
        """Fire the debounced save once its window has elapsed"""
        if self.state != AutoSaveState.DIRTY or self._deadline is None:
            return None
        if self.clock.now() < self._deadline:
            return None

        self._deadline = None
        self.state = AutoSaveState.DEBOUNCED_PENDING
        return await self._attempt(manual=False)

    async def save_now(
        self, data: Optional[Dict[str, Any]] = None, step: Optional[int] = None
    ) -> Optional[str]:
        """
        Manual save.

        Skips the debounce window and the rate limit and is not retried;
        the meaningful-data check still applies. Non-benign failures are
        raised to the caller.
        """
        if data is not None:
            self._data = data
        if step is not None:
            self._step = step
        self._deadline = None
        return await self._attempt(manual=True)

    def clear_error(self) -> None:
        self.last_error = None
        if self.state == AutoSaveState.ERROR:
            self.state = AutoSaveState.IDLE

    def reset(self) -> None:
        self.state = AutoSaveState.IDLE
        self.draft_id = None
        self.initial_save_done = False
        self.last_saved_at = None
        self.last_saved_snapshot = None
        self.last_error = None
        self.last_skip_reason = None
        self.save_count = 0
        self._deadline = None
        self._changed_while_saving = False

    def _check_skip(self, manual: bool) -> None:
        if not has_meaningful_data(self._data):
            raise AutoSaveSkipped(NO_MEANINGFUL_DATA)
        if manual:
            return
        if self._step == self.PREVIEW_STEP:
            raise AutoSaveSkipped(PREVIEW_STEP_SKIP)
        if snapshot(self._data) == self.last_saved_snapshot:
            raise AutoSaveSkipped(NO_CHANGES)
        if (
            self.last_saved_at is not None
            and self.clock.now() - self.last_saved_at < self.current_delay
        ):
            raise AutoSaveSkipped(RATE_LIMITED)

    async def _attempt(self, manual: bool) -> Optional[str]:
        try:
            self._check_skip(manual)
        except AutoSaveSkipped as skip:
            self.last_skip_reason = str(skip)
            self.state = AutoSaveState.IDLE
            logger.debug(f"Auto-save skipped: {skip}")
            return None

        data = self._data
        step = self._step
        pending_snapshot = snapshot(data)
        self.state = AutoSaveState.SAVING
        self._changed_while_saving = False

        try:
            if manual:
                draft_id = await self._save(draft_name_for(data), data, step, self.draft_id)
            else:
                draft_id = await self._save_with_retry(data, step)
        except Exception as e:
            return self._record_failure(e, raise_error=manual)

        self._record_success(draft_id, pending_snapshot)
        return draft_id

    async def _save_with_retry(self, data: Dict[str, Any], step: int) -> str:
        # 2s, 4s, 8s between attempts
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.MAX_RETRIES + 1),
            wait=wait_exponential(multiplier=2, max=10),
            retry=retry_if_exception(lambda e: not is_benign_error(e)),
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        f"Retrying auto-save (attempt {attempt.retry_state.attempt_number - 1}/"
                        f"{self.MAX_RETRIES})"
                    )
                return await self._save(draft_name_for(data), data, step, self.draft_id)

    def _record_success(self, draft_id: Optional[str], saved_snapshot: str) -> None:
        if draft_id:
            self.draft_id = draft_id
        self.last_saved_snapshot = saved_snapshot
        self.last_saved_at = self.clock.now()
        self.initial_save_done = True
        self.last_error = None
        self.last_skip_reason = None
        self.save_count += 1

        if self._changed_while_saving:
            self._changed_while_saving = False
            self.state = AutoSaveState.DIRTY
        else:
            self.state = AutoSaveState.IDLE

        logger.debug(f"Auto-saved draft {self.draft_id}")
        if self.on_saved:
            self.on_saved(self.draft_id)

    def _record_failure(self, error: Exception, raise_error: bool) -> None:
        if is_benign_error(error):
            # Failed, but not shown to the user
            self.last_skip_reason = str(error)
            self.state = AutoSaveState.ERROR
            logger.debug(f"Auto-save refused by server: {error}")
            return None

        self.state = AutoSaveState.ERROR
        self.last_error = str(error) or "Auto-save failed"
        logger.warning(f"Auto-save failed: {self.last_error}")
        if self.on_error:
            self.on_error(self.last_error)
        if raise_error:
            raise error
        return None


def draft_service_saver(
    service,
    user: CurrentUser,
    organization_id: str,
) -> SaveCallback:
    """Save callback writing through CampaignService.save_draft"""

    async def _save(name: str, data: Dict[str, Any], step: int, draft_id: Optional[str]) -> str:
        draft = await service.save_draft(
            DraftSaveRequest(
                name=name,
                data=data,
                step=step,
                organization_id=organization_id,
                draft_id=draft_id,
            ),
            user,
        )
        return draft.draft_id

    return _save


__all__ = [
    "AutoSaveState",
    "AutoSaveController",
    "AutoSaveSkipped",
    "Clock",
    "MonotonicClock",
    "has_meaningful_data",
    "snapshot",
    "draft_name_for",
    "is_benign_error",
    "draft_service_saver",
]
