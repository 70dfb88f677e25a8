"""In-process counters and histograms, and the scrape/push metrics of the node monitor."""

from __future__ import annotations

import threading
from bisect import bisect_left
from itertools import accumulate


def exponential_buckets(start, factor, count):
    """Return ``count`` bucket bounds, the first ``start``, each ``factor`` times the last."""
    if count < 1:
        raise ValueError("exponential buckets need a positive count")
    if start <= 0:
        raise ValueError("exponential buckets need a positive start value")
    if factor <= 1:
        raise ValueError("exponential buckets need a factor greater than 1")
    buckets = []
    value = float(start)
    for _ in range(count):
        buckets.append(value)
        value *= factor
    return buckets


def _full_name(name: str, subsystem: str) -> str:
    return f"{subsystem}_{name}" if subsystem else name


class Counter:
    """A monotonically increasing value."""

    def __init__(self, name: str, description: str = "", subsystem: str = ""):
        self.name = _full_name(name, subsystem)
        self.description = description
        self._value = 0.0
        self._lock = threading.Lock()

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def inc(self) -> None:
        self.add(1)

    def add(self, amount) -> None:
        if amount < 0:
            raise ValueError("a counter cannot decrease")
        with self._lock:
            self._value += amount


class CounterVec:
    """A family of counters told apart by label values."""

    def __init__(self, name: str, description: str, label_names, subsystem: str = ""):
        self.name = _full_name(name, subsystem)
        self.description = description
        self.label_names = tuple(label_names)
        self._children: dict[tuple[str, ...], Counter] = {}
        self._lock = threading.Lock()

    def labels(self, *args) -> Counter:
        if len(args) != len(self.label_names):
            raise ValueError(
                f"{self.name} expects {len(self.label_names)} label values, got {len(args)}"
            )
        key = tuple(str(arg) for arg in args)
        with self._lock:
            child = self._children.get(key)
            if child is None:
                child = self._children[key] = Counter(self.name, self.description)
            return child


class Histogram:
    """Counts observations into buckets with fixed upper bounds."""

    def __init__(self, name: str, description: str, buckets, subsystem: str = ""):
        bounds = [float(b) for b in buckets]
        if any(later <= earlier for earlier, later in zip(bounds, bounds[1:])):
            raise ValueError("histogram buckets must be strictly increasing")
        self.name = _full_name(name, subsystem)
        self.description = description
        self.buckets = bounds
        self._raw_counts = [0] * len(bounds)
        self._count = 0
        self._sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value) -> None:
        index = bisect_left(self.buckets, value)
        with self._lock:
            if index < len(self._raw_counts):
                self._raw_counts[index] += 1
            self._count += 1
            self._sum += value

    @property
    def bucket_counts(self) -> list[int]:
        """Cumulative counts, one per upper bound."""
        with self._lock:
            return list(accumulate(self._raw_counts))

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    @property
    def sum(self) -> float:
        with self._lock:
            return self._sum


SUCCESSFUL_SCRAPES = CounterVec(
    "successfull_scrapes_total",
    "Number of successfull scrapes of metrics from the endpoint",
    ("source",),
)
FAILED_SCRAPES = CounterVec(
    "failed_scrapes_total",
    "Number of failed scrapes of metrics from the endpoint",
    ("source",),
)
TIMESERIES_PUSHED = Counter(
    "timeseries_pushed_total",
    "Number of timeseries successfully pushed to the Stackdriver",
)
TIMESERIES_DROPPED = Counter(
    "timeseries_dropped_total",
    "Number of timeseries dropped during a push to the Stackdriver",
)
METRIC_INGESTION_LATENCY = Histogram(
    "metric_ingestion_latency_seconds",
    "Time passed from the moment, when metric was scraped from the monitored component "
    "till it was pushed to the Stackdriver",
    exponential_buckets(1.0, 1.5, 12),
)


def observe_successful_scrape(source) -> None:
    SUCCESSFUL_SCRAPES.labels(source).inc()


def observe_failed_scrape(source) -> None:
    FAILED_SCRAPES.labels(source).inc()


def observe_successful_request(batch_size) -> None:
    TIMESERIES_PUSHED.add(batch_size)


def observe_failed_request(batch_size) -> None:
    TIMESERIES_DROPPED.add(batch_size)


def observe_ingestion_latency(num_timeseries, latency) -> None:
    for _ in range(num_timeseries):
        METRIC_INGESTION_LATENCY.observe(latency)