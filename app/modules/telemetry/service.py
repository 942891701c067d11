from __future__ import annotations

from collections import Counter
from threading import Lock

from app.modules.throttle.guard import ActionOutcome


class _ActionTelemetryStore:
    def __init__(self) -> None:
        self._lock = Lock()
        self.outcomes: Counter[tuple[str, str]] = Counter()
        self.failure_codes: Counter[str] = Counter()
        self.mapping_fallbacks: int = 0

    def reset(self) -> None:
        with self._lock:
            self.outcomes = Counter()
            self.failure_codes = Counter()
            self.mapping_fallbacks = 0

    def record_outcome(self, outcome: ActionOutcome) -> None:
        with self._lock:
            self.outcomes[(outcome.action_key, outcome.status.value)] += 1
            if outcome.failed and outcome.error is not None:
                code = getattr(outcome.error, "code", None) or outcome.error.__class__.__name__
                self.failure_codes[str(code)] += 1

    def record_mapping_fallback(self) -> None:
        with self._lock:
            self.mapping_fallbacks += 1

    def summary(self) -> dict:
        with self._lock:
            actions: dict[str, dict[str, int]] = {}
            for (action_key, status), count in sorted(self.outcomes.items()):
                actions.setdefault(action_key, {"succeeded": 0, "failed": 0, "skipped": 0})[status] = int(count)
            total = sum(self.outcomes.values())
            skipped = sum(count for (_, status), count in self.outcomes.items() if status == "skipped")
            return {
                "total_actions": int(total),
                "skip_ratio": 0.0 if total <= 0 else round(float(skipped) / float(total), 4),
                "actions": actions,
                "failure_codes": dict(self.failure_codes),
                "mapping_fallbacks": int(self.mapping_fallbacks),
            }


_action_telemetry = _ActionTelemetryStore()


def reset_action_telemetry() -> None:
    _action_telemetry.reset()


def record_action_outcome(outcome: ActionOutcome) -> None:
    _action_telemetry.record_outcome(outcome)


def record_mapping_fallback() -> None:
    _action_telemetry.record_mapping_fallback()


def get_action_telemetry_summary() -> dict:
    return _action_telemetry.summary()
