from __future__ import annotations

import math
import time
from collections import Counter, defaultdict, deque
from dataclasses import dataclass
from typing import Deque, Iterable


@dataclass(frozen=True)
class _Sample:
    ts: float
    label: str
    latency_ms: float
    ok: bool


# Process-local rolling windows; each API or worker process reports its own view.
_requests: Deque[_Sample] = deque(maxlen=20000)
_external_calls: Deque[_Sample] = deque(maxlen=10000)
_counters: Counter[str] = Counter()


def _route_family(path: str) -> str:
    # "/v1/tickets/abc/resolve" -> "tickets"; keeps cardinality bounded by router, not by id.
    parts = [part for part in path.split("/") if part]
    if parts and parts[0].startswith("v") and parts[0][1:].isdigit():
        parts = parts[1:]
    return parts[0] if parts else "root"


def record_request(*, path: str, status_code: int, latency_ms: float) -> None:
    _requests.append(_Sample(ts=time.time(), label=_route_family(path), latency_ms=latency_ms, ok=status_code < 500))


def record_external_call(*, integration: str, latency_ms: float, success: bool) -> None:
    _external_calls.append(_Sample(ts=time.time(), label=integration, latency_ms=latency_ms, ok=success))


def increment_counter(name: str, value: int = 1) -> None:
    _counters[name] += value


def _p95(latencies: list[float]) -> float | None:
    if not latencies:
        return None
    ordered = sorted(latencies)
    return ordered[max(0, math.ceil(0.95 * len(ordered)) - 1)]


def _summarize(samples: Iterable[_Sample]) -> dict[str, float | int | None]:
    window = list(samples)
    return {
        "count": len(window),
        "failures": sum(1 for sample in window if not sample.ok),
        "p95_ms": _p95([sample.latency_ms for sample in window]),
    }


def _grouped(samples: Deque[_Sample], window_s: int) -> dict[str, list[_Sample]]:
    cutoff = time.time() - window_s
    groups: dict[str, list[_Sample]] = defaultdict(list)
    for sample in samples:
        if sample.ts >= cutoff:
            groups[sample.label].append(sample)
    return groups


def request_stats(window_s: int) -> dict[str, object]:
    groups = _grouped(_requests, window_s)
    overall = _summarize(sample for bucket in groups.values() for sample in bucket)
    overall["by_route"] = {label: _summarize(bucket) for label, bucket in sorted(groups.items())}
    return overall


def external_call_stats(window_s: int) -> dict[str, dict[str, float | int | None]]:
    return {label: _summarize(bucket) for label, bucket in _grouped(_external_calls, window_s).items()}


def counters_snapshot() -> dict[str, int]:
    return dict(_counters)


def reset_telemetry() -> None:
    _requests.clear()
    _external_calls.clear()
    _counters.clear()
