from __future__ import annotations

import inspect
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from app.config import settings

logger = logging.getLogger(__name__)


class ActionStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ActionOutcome:
    action_key: str
    status: ActionStatus
    value: Any = None
    error: BaseException | None = None
    skip_reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is ActionStatus.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.status is ActionStatus.FAILED

    @property
    def skipped(self) -> bool:
        return self.status is ActionStatus.SKIPPED


def _call_hook(action_key: str, name: str, hook: Callable[..., None] | None, *args: Any) -> None:
    # hooks observe a run; their errors never change its outcome
    if hook is None:
        return
    try:
        hook(*args)
    except Exception as exc:  # noqa: BLE001
        logger.warning("action %r %s hook raised: %s", action_key, name, exc)


@dataclass
class _LedgerEntry:
    last_invoked_at: float | None = None
    in_flight: bool = False


class ActionThrottle:
    """Per-key guard allowing at most one in-flight run and a minimum interval.

    A call that arrives while its key is running, or too soon after the last
    invocation, is skipped rather than queued. Operation errors are reported
    to ``on_failure`` and returned as a failed outcome, never raised. Errors
    raised by the hooks themselves are logged and ignored.
    """

    def __init__(
        self,
        *,
        default_min_interval_ms: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_min_interval_ms = default_min_interval_ms
        self._clock = clock
        self._ledger: dict[str, _LedgerEntry] = {}

    def _entry(self, action_key: str) -> _LedgerEntry:
        entry = self._ledger.get(action_key)
        if entry is None:
            entry = _LedgerEntry()
            self._ledger[action_key] = entry
        return entry

    def _interval_s(self, min_interval_ms: int | None) -> float:
        if min_interval_ms is None:
            min_interval_ms = self._default_min_interval_ms
        if min_interval_ms is None:
            min_interval_ms = settings.throttle_default_min_interval_ms
        return max(0, int(min_interval_ms)) / 1000.0

    def is_in_flight(self, action_key: str) -> bool:
        entry = self._ledger.get(action_key)
        return bool(entry and entry.in_flight)

    def reset(self) -> None:
        self._ledger.clear()

    def guard(
        self,
        action_key: str,
        operation: Callable[..., Any],
        *,
        min_interval_ms: int | None = None,
        on_start: Callable[[], None] | None = None,
        on_success: Callable[[Any], None] | None = None,
        on_failure: Callable[[BaseException], None] | None = None,
    ) -> Callable[..., Awaitable[ActionOutcome]]:
        interval_s = self._interval_s(min_interval_ms)

        async def _guarded(*args: Any, **kwargs: Any) -> ActionOutcome:
            entry = self._entry(action_key)
            now = self._clock()
            skip_reason = None
            if entry.in_flight:
                skip_reason = "in_flight"
            elif entry.last_invoked_at is not None and now - entry.last_invoked_at < interval_s:
                skip_reason = "min_interval"
            if skip_reason is not None:
                entry.last_invoked_at = now
                logger.debug("throttle skipped %r (%s)", action_key, skip_reason)
                return ActionOutcome(action_key=action_key, status=ActionStatus.SKIPPED, skip_reason=skip_reason)

            entry.in_flight = True
            entry.last_invoked_at = now
            try:
                _call_hook(action_key, "on_start", on_start)
                try:
                    result = operation(*args, **kwargs)
                    if inspect.isawaitable(result):
                        result = await result
                except Exception as exc:  # noqa: BLE001
                    logger.warning("action %r failed: %s", action_key, exc)
                    _call_hook(action_key, "on_failure", on_failure, exc)
                    return ActionOutcome(action_key=action_key, status=ActionStatus.FAILED, error=exc)
            finally:
                entry.in_flight = False
                entry.last_invoked_at = self._clock()

            _call_hook(action_key, "on_success", on_success, result)
            return ActionOutcome(action_key=action_key, status=ActionStatus.SUCCEEDED, value=result)

        return _guarded

    async def run(self, action_key: str, operation: Callable[..., Any], *args: Any, **options: Any) -> ActionOutcome:
        return await self.guard(action_key, operation, **options)(*args)
