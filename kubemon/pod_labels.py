"""Owner labels for pods, looked up from the API server and kept in caches."""

from __future__ import annotations

import logging
import re
import threading
import time
from collections import OrderedDict

from kubemon.kube_objects import Pod
from kubemon.telemetry import CounterVec

log = logging.getLogger(__name__)

OWNER_TYPE_KEY = "logging.gke.io/top_level_controller_type"
OWNER_NAME_KEY = "logging.gke.io/top_level_controller_name"
JOBSET_NAME_LABEL_KEY = "jobset.sigs.k8s.io/jobset-name"

# Suffixes holding a number from 20000000 to 59999999 minutes since the epoch,
# that is from January 2008 to January 2084.
_UNIX_TIME_SUFFIX = re.compile(r"-[2-5][0-9]{7}")

CACHE_OPS_COUNT = CounterVec(
    "cache_ops_count",
    "Number of operations in the pod label cache",
    ("operation",),
    subsystem="podlabel",
)
NO_LABEL_POD_CACHE_OPS_COUNT = CounterVec(
    "nolabel_pod_cache_ops_count",
    "Number of operations in the cache for pods with empty labels",
    ("operation",),
    subsystem="podlabel",
)
POD_GET_COUNT = CounterVec(
    "get_count",
    "Number of get pod requests to apiserver",
    ("status",),
    subsystem="podlabel",
)


class ApiStatusError(Exception):
    """An error status returned by the API server."""

    def __init__(self, reason: str, code: int = 0, message: str = ""):
        super().__init__(message or reason)
        self.reason = reason
        self.code = code

    @property
    def not_found(self) -> bool:
        return self.reason == "NotFound" or self.code == 404


class _RateLimiter:
    def __init__(self, interval: float):
        self._interval = interval
        self._last: float | None = None
        self._lock = threading.Lock()

    def allow(self) -> bool:
        now = time.monotonic()
        with self._lock:
            if self._last is None or now - self._last >= self._interval:
                self._last = now
                return True
            return False


_get_pod_error_log_limiter = _RateLimiter(10.0)


class LruCache:
    """A thread-safe cache of bounded size that drops the least recently used entry."""

    def __init__(self, size: int, on_evict=None):
        if size <= 0:
            raise ValueError("must provide a positive size")
        self._size = size
        self._on_evict = on_evict
        self._entries: OrderedDict = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key):
        """Return the value for ``key`` and mark it used, or ``None``."""
        with self._lock:
            if key not in self._entries:
                return None
            self._entries.move_to_end(key)
            return self._entries[key]

    def add(self, key, value) -> bool:
        """Store a value; return whether an older entry was evicted."""
        evicted = None
        with self._lock:
            if key in self._entries:
                self._entries[key] = value
                self._entries.move_to_end(key)
                return False
            self._entries[key] = value
            if len(self._entries) > self._size:
                evicted = self._entries.popitem(last=False)
        if evicted is not None:
            if self._on_evict is not None:
                self._on_evict(*evicted)
            return True
        return False

    def remove(self, key) -> bool:
        """Drop ``key``; return whether it was present."""
        with self._lock:
            if key not in self._entries:
                return False
            value = self._entries.pop(key)
        if self._on_evict is not None:
            self._on_evict(key, value)
        return True


def strip_unix_time_suffix(name):
    """Remove the minute timestamp a cron job appends to job names.

    Return the name without it, or ``None`` if no such suffix is present.
    """
    if len(name) < 10:
        return None
    if _UNIX_TIME_SUFFIX.fullmatch(name[-9:]):
        return name[:-9]
    return None


def labels_from_pod(pod: Pod) -> dict[str, str]:
    """Return the top level controller labels of a pod.

    With several owners, the last one that gives labels wins.
    """
    labels: dict[str, str] = {}
    pod_labels = pod.labels or {}
    for owner in pod.owner_references:
        if owner.kind in ("DaemonSet", "StatefulSet"):
            labels[OWNER_TYPE_KEY] = owner.kind
            labels[OWNER_NAME_KEY] = owner.name
        elif owner.kind == "ReplicaSet":
            # A deployment's replica set is named <deployment>-<pod-template-hash>.
            suffix = "-" + pod_labels.get("pod-template-hash", "")
            if len(suffix) > 1 and owner.name.endswith(suffix):
                labels[OWNER_TYPE_KEY] = "Deployment"
                labels[OWNER_NAME_KEY] = owner.name[: -len(suffix)]
        elif owner.kind == "Job":
            cron_job_name = strip_unix_time_suffix(owner.name)
            jobset_name = pod_labels.get(JOBSET_NAME_LABEL_KEY, "")
            if cron_job_name is not None:
                labels[OWNER_TYPE_KEY] = "CronJob"
                labels[OWNER_NAME_KEY] = cron_job_name
            elif jobset_name:
                labels[OWNER_TYPE_KEY] = "JobSet"
                labels[OWNER_NAME_KEY] = jobset_name
            else:
                labels[OWNER_TYPE_KEY] = "Job"
                labels[OWNER_NAME_KEY] = owner.name
    return labels


def _record_eviction(key, labels) -> None:
    CACHE_OPS_COUNT.labels("evict").inc()


def _record_empty_label_eviction(key, timestamp) -> None:
    NO_LABEL_POD_CACHE_OPS_COUNT.labels("evict").inc()


class CachingPodLabelCollector:
    """Looks up pod owner labels, caching pods with and without labels.

    ``client`` must offer ``get_pod(namespace, name, timeout)`` returning a
    :class:`Pod` and raising :class:`ApiStatusError` for API errors. Times are
    seconds, read from ``clock``.
    """

    def __init__(
        self,
        client,
        ignored_namespaces,
        pod_cache_size: int,
        empty_label_pod_cache_size: int,
        empty_label_pod_cache_ttl: float,
        get_pod_timeout: float,
        clock=time.time,
    ):
        self.client = client
        self.ignored_namespaces = frozenset(ignored_namespaces or ())
        self.get_pod_timeout = get_pod_timeout
        self.empty_label_pod_cache_ttl = empty_label_pod_cache_ttl
        self._clock = clock
        self._cache = LruCache(pod_cache_size, _record_eviction)
        self._empty_label_pod_cache = LruCache(
            empty_label_pod_cache_size, _record_empty_label_eviction
        )

    def get_labels(self, namespace, pod_name):
        """Return the owner labels of a pod, or ``None`` when it has none."""
        if namespace in self.ignored_namespaces:
            return None
        key = (namespace, pod_name)
        labels = self._cache.get(key)
        if labels is not None:
            CACHE_OPS_COUNT.labels("queryhit").inc()
            return labels
        CACHE_OPS_COUNT.labels("querymiss").inc()

        added_at = self._empty_label_pod_cache.get(key)
        if added_at is None:
            NO_LABEL_POD_CACHE_OPS_COUNT.labels("querymiss").inc()
        elif added_at + self.empty_label_pod_cache_ttl > self._clock():
            NO_LABEL_POD_CACHE_OPS_COUNT.labels("queryhit").inc()
            return None
        else:
            NO_LABEL_POD_CACHE_OPS_COUNT.labels("expire").inc()
            self._empty_label_pod_cache.remove(key)

        try:
            pod = self.client.get_pod(namespace, pod_name, self.get_pod_timeout)
        except ApiStatusError as err:
            self._log_get_error(namespace, pod_name, err)
            POD_GET_COUNT.labels(err.reason).inc()
            if err.not_found:
                self._remember_empty(key)
            return None
        except Exception as err:  # any failure of the lookup leaves the entry unlabelled
            self._log_get_error(namespace, pod_name, err)
            POD_GET_COUNT.labels("UnknownFailure").inc()
            return None

        POD_GET_COUNT.labels("OK").inc()
        labels = labels_from_pod(pod)
        if labels:
            self._cache.add(key, labels)
            CACHE_OPS_COUNT.labels("add").inc()
            return labels
        self._remember_empty(key)
        return None

    def _remember_empty(self, key) -> None:
        NO_LABEL_POD_CACHE_OPS_COUNT.labels("add").inc()
        self._empty_label_pod_cache.add(key, self._clock())

    @staticmethod
    def _log_get_error(namespace, pod_name, err) -> None:
        if _get_pod_error_log_limiter.allow():
            log.error("Failed to get pod %s/%s %s", namespace, pod_name, err)