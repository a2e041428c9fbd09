"""
Stats Store for Per-Model Routing Statistics

Keeps a rolling window of recent latency samples plus success/failure
counters and cumulative cost for every model. The routing policies read
these figures to rank candidates; the gateway writes one sample after
every dispatch attempt, success or failure.

Storage is in-memory and never persisted across restarts. Each model has
its own lock, so updates for unrelated models never serialize against
each other; a short store-level lock only guards entry creation.
"""

import threading
from collections import deque
from dataclasses import dataclass


@dataclass(frozen=True)
class StatsSample:
    """
    Outcome of one dispatch attempt.

    Attributes:
        success: Whether the attempt produced a completion
        latency_ms: Wall-clock time of the attempt in milliseconds
        cost_delta: Cost incurred by the attempt in USD
    """

    success: bool
    latency_ms: float
    cost_delta: float = 0.0


@dataclass(frozen=True)
class StatsSnapshot:
    """
    Consistent point-in-time view of one model's statistics.

    All fields are captured under the model's lock, so they always agree
    with each other.
    """

    model_id: str
    sample_count: int
    avg_latency_ms: float | None
    success_count: int
    failure_count: int
    cumulative_cost: float

    @property
    def total_requests(self) -> int:
        return self.success_count + self.failure_count

    @property
    def error_rate(self) -> float:
        """Failure fraction over all recorded attempts (0.0 with no attempts)."""
        total = self.total_requests
        return self.failure_count / total if total else 0.0


class StatsEntry:
    """
    Statistics for a single model.

    Latency samples live in a fixed-capacity ring buffer; the oldest sample
    is evicted on overflow, so the average always covers at most
    `capacity` recent samples.
    """

    def __init__(self, model_id: str, capacity: int = 20):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.model_id = model_id
        self._lock = threading.Lock()
        self._latencies: deque[float] = deque(maxlen=capacity)
        self._success_count = 0
        self._failure_count = 0
        self._cumulative_cost = 0.0

    @property
    def capacity(self) -> int:
        return self._latencies.maxlen

    def record(self, sample: StatsSample) -> None:
        with self._lock:
            if sample.success:
                self._success_count += 1
                self._latencies.append(sample.latency_ms)
            else:
                self._failure_count += 1
            self._cumulative_cost += sample.cost_delta

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            count = len(self._latencies)
            return StatsSnapshot(
                model_id=self.model_id,
                sample_count=count,
                avg_latency_ms=(sum(self._latencies) / count) if count else None,
                success_count=self._success_count,
                failure_count=self._failure_count,
                cumulative_cost=self._cumulative_cost,
            )

    def latencies(self) -> list[float]:
        with self._lock:
            return list(self._latencies)


class StatsStore:
    """
    Thread-safe in-memory per-model statistics.

    Safe to share between asyncio tasks and threads: each model has its own
    lock and no lock is ever held across an await.

    Example:
        store = StatsStore(window_size=20)
        store.record("gpt-4o-mini", StatsSample(success=True, latency_ms=420.0, cost_delta=0.0001))
        store.avg_latency("gpt-4o-mini")   # 420.0
        store.error_rate("gpt-4o-mini")    # 0.0
    """

    def __init__(self, window_size: int = 20):
        """
        Initialize the stats store.

        Args:
            window_size: Number of recent latency samples kept per model.
        """
        if window_size < 1:
            raise ValueError("window_size must be at least 1")
        self._window_size = window_size
        self._entries_lock = threading.Lock()
        self._entries: dict[str, StatsEntry] = {}

    @property
    def window_size(self) -> int:
        return self._window_size

    def _entry(self, model_id: str) -> StatsEntry:
        entry = self._entries.get(model_id)
        if entry is None:
            with self._entries_lock:
                entry = self._entries.get(model_id)
                if entry is None:
                    entry = StatsEntry(model_id, self._window_size)
                    self._entries[model_id] = entry
        return entry

    def record(self, model_id: str, sample: StatsSample) -> None:
        """
        Record the outcome of one dispatch attempt.

        Args:
            model_id: Model that was attempted
            sample: Outcome of the attempt
        """
        self._entry(model_id).record(sample)

    def snapshot(self, model_id: str) -> StatsSnapshot:
        """Return a consistent snapshot (all zeros for unseen models)."""
        entry = self._entries.get(model_id)
        if entry is None:
            return StatsSnapshot(
                model_id=model_id,
                sample_count=0,
                avg_latency_ms=None,
                success_count=0,
                failure_count=0,
                cumulative_cost=0.0,
            )
        return entry.snapshot()

    def snapshot_all(self) -> dict[str, StatsSnapshot]:
        """Snapshot every model that has recorded at least one attempt."""
        with self._entries_lock:
            entries = list(self._entries.values())
        return {entry.model_id: entry.snapshot() for entry in entries}

    def avg_latency(self, model_id: str) -> float | None:
        """Average latency over the window, or None without samples."""
        return self.snapshot(model_id).avg_latency_ms

    def error_rate(self, model_id: str) -> float:
        return self.snapshot(model_id).error_rate

    def cumulative_cost(self, model_id: str) -> float:
        return self.snapshot(model_id).cumulative_cost

    def has_samples(self, model_id: str) -> bool:
        """Whether any attempt (success or failure) was recorded."""
        return self.snapshot(model_id).total_requests > 0

    def reset(self) -> None:
        """
        Drop all statistics.

        Primarily used for testing.
        """
        with self._entries_lock:
            self._entries.clear()
