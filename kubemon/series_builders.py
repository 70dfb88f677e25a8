"""Building monitoring time series out of kubelet stats."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from kubemon.gcm_types import (
    GcmResource,
    Metric,
    Point,
    TimeInterval,
    TimeSeries,
    TypedValue,
    format_rfc3339,
)
from kubemon.kubelet_client import FsStats


class TranslationError(ValueError):
    """Stats lack what a time series needs."""


@dataclass(frozen=True)
class MetricMetadata:
    """The kind, value type and name of a metric."""

    metric_kind: str
    value_type: str
    name: str


DAEMON_CPU_CORE_USAGE_TIME_MD = MetricMetadata(
    "CUMULATIVE", "DOUBLE", "kubernetes.io/node_daemon/cpu/core_usage_time"
)
DAEMON_MEM_USED_MD = MetricMetadata(
    "GAUGE", "INT64", "kubernetes.io/node_daemon/memory/used_bytes"
)

CONTAINER_UPTIME_MD = MetricMetadata("GAUGE", "DOUBLE", "kubernetes.io/container/uptime")
CONTAINER_CPU_CORE_USAGE_TIME_MD = MetricMetadata(
    "CUMULATIVE", "DOUBLE", "kubernetes.io/container/cpu/core_usage_time"
)
CONTAINER_MEM_TOTAL_MD = MetricMetadata(
    "GAUGE", "INT64", "kubernetes.io/container/memory/limit_bytes"
)
CONTAINER_MEM_USED_MD = MetricMetadata(
    "GAUGE", "INT64", "kubernetes.io/container/memory/used_bytes"
)
CONTAINER_PAGE_FAULTS_MD = MetricMetadata(
    "CUMULATIVE", "INT64", "kubernetes.io/container/memory/page_fault_count"
)
CONTAINER_EPHEMERAL_STORAGE_USED_MD = MetricMetadata(
    "GAUGE", "INT64", "kubernetes.io/container/ephemeral_storage/used_bytes"
)

NODE_CPU_CORE_USAGE_TIME_MD = MetricMetadata(
    "CUMULATIVE", "DOUBLE", "kubernetes.io/node/cpu/core_usage_time"
)
NODE_MEM_TOTAL_MD = MetricMetadata("GAUGE", "INT64", "kubernetes.io/node/memory/total_bytes")
NODE_MEM_USED_MD = MetricMetadata("GAUGE", "INT64", "kubernetes.io/node/memory/used_bytes")
NODE_EPHEMERAL_STORAGE_TOTAL_MD = MetricMetadata(
    "GAUGE", "INT64", "kubernetes.io/node/ephemeral_storage/total_bytes"
)
NODE_EPHEMERAL_STORAGE_USED_MD = MetricMetadata(
    "GAUGE", "INT64", "kubernetes.io/node/ephemeral_storage/used_bytes"
)

LEGACY_USAGE_TIME_MD = MetricMetadata(
    "CUMULATIVE", "DOUBLE", "container.googleapis.com/container/cpu/usage_time"
)
LEGACY_DISK_TOTAL_MD = MetricMetadata(
    "GAUGE", "INT64", "container.googleapis.com/container/disk/bytes_total"
)
LEGACY_DISK_USED_MD = MetricMetadata(
    "GAUGE", "INT64", "container.googleapis.com/container/disk/bytes_used"
)
LEGACY_MEM_TOTAL_MD = MetricMetadata(
    "GAUGE", "INT64", "container.googleapis.com/container/memory/bytes_total"
)
LEGACY_MEM_USED_MD = MetricMetadata(
    "GAUGE", "INT64", "container.googleapis.com/container/memory/bytes_used"
)
LEGACY_PAGE_FAULTS_MD = MetricMetadata(
    "CUMULATIVE", "INT64", "container.googleapis.com/container/memory/page_fault_count"
)
LEGACY_UPTIME_MD = MetricMetadata(
    "CUMULATIVE", "DOUBLE", "container.googleapis.com/container/uptime"
)

LEGACY_RESOURCE_TYPE = "gke_container"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimeSeriesFactory:
    """Makes points and time series of one monitored resource.

    ``resolution`` is in seconds; ``clock`` returns the current time.
    """

    def __init__(self, monitored_resource: GcmResource, resolution, clock=None):
        self.monitored_resource = monitored_resource
        self.resolution = resolution
        self.clock = clock or _utc_now

    def new_point(self, value, collection_start, sample_time, metric_kind) -> Point:
        if metric_kind == "GAUGE":
            collection_start = sample_time
        return Point(
            interval=TimeInterval(
                start_time=format_rfc3339(collection_start),
                end_time=format_rfc3339(sample_time),
            ),
            value=value,
        )

    def new_time_series(self, metric_labels, metadata: MetricMetadata, point) -> TimeSeries:
        return TimeSeries(
            metric=Metric(type=metadata.name, labels=metric_labels),
            resource=self.monitored_resource,
            metric_kind=metadata.metric_kind,
            value_type=metadata.value_type,
            points=[point],
        )


def _with_component(labels: dict, component: str) -> dict:
    if component:
        labels["component"] = component
    return labels


def translate_cpu(cpu, factory, start_time, usage_time_md, component) -> list[TimeSeries]:
    """Return the CPU usage series, or none right after the start."""
    if cpu is None:
        raise TranslationError("CPU information missing.")
    if cpu.usage_core_nano_seconds is None:
        raise TranslationError(f"UsageCoreNanoSeconds missing from CPUStats {cpu}")
    # Right after a start the kubelet may report the start time as the sample time.
    if not cpu.time > start_time:
        return []
    point = factory.new_point(
        TypedValue(double_value=cpu.usage_core_nano_seconds / 1e9),
        start_time,
        cpu.time,
        usage_time_md.metric_kind,
    )
    return [factory.new_time_series(_with_component({}, component), usage_time_md, point)]


def translate_fs(volume, fs, factory, start_time, disk_used_md, disk_total_md) -> list[TimeSeries]:
    """Return the capacity and usage series of a file system."""
    if fs is None:
        raise TranslationError("File-system information missing.")
    # The kubelet does not say when this sample is from.
    now = factory.clock()

    def labels() -> dict:
        if factory.monitored_resource.type != LEGACY_RESOURCE_TYPE:
            return {}
        return {"device_name": volume}

    series = []
    if disk_total_md is not None:
        if fs.capacity_bytes is None:
            raise TranslationError(f"CapacityBytes is missing from FsStats {fs}")
        point = factory.new_point(
            TypedValue(int64_value=fs.capacity_bytes), start_time, now, disk_total_md.metric_kind
        )
        series.append(factory.new_time_series(labels(), disk_total_md, point))
    if disk_used_md is not None:
        if fs.used_bytes is None:
            raise TranslationError(f"UsedBytes is missing from FsStats {fs}")
        point = factory.new_point(
            TypedValue(int64_value=fs.used_bytes), start_time, now, disk_used_md.metric_kind
        )
        series.append(factory.new_time_series(labels(), disk_used_md, point))
    return series


def container_translate_fs(volume, rootfs, logs, factory, start_time) -> list[TimeSeries]:
    """Return the ephemeral storage series of a container: root and log usage combined."""
    if rootfs is None and logs is None:
        combined = None
    else:
        total = 0
        for fs in (rootfs, logs):
            if fs is None:
                continue
            if fs.used_bytes is None:
                raise TranslationError(f"UsedBytes is missing from FsStats {fs}")
            total += fs.used_bytes
        combined = FsStats(used_bytes=total)
    return translate_fs(
        volume, combined, factory, start_time, CONTAINER_EPHEMERAL_STORAGE_USED_MD, None
    )


def translate_memory(
    memory, factory, start_time, mem_used_md, mem_total_md, page_faults_md, component
) -> list[TimeSeries]:
    """Return the page fault, used and available memory series."""
    if memory is None:
        raise TranslationError("Memory information missing.")
    series = []

    # Right after a start the kubelet may report the start time as the sample time.
    if page_faults_md is not None and memory.time > start_time:
        if memory.major_page_faults is not None:
            point = factory.new_point(
                TypedValue(int64_value=memory.major_page_faults),
                start_time,
                memory.time,
                page_faults_md.metric_kind,
            )
            series.append(factory.new_time_series({"fault_type": "major"}, page_faults_md, point))
        if memory.page_faults is not None:
            if memory.major_page_faults is None:
                raise TranslationError(f"MajorPageFaults missing in MemoryStats {memory}")
            point = factory.new_point(
                TypedValue(int64_value=memory.page_faults - memory.major_page_faults),
                start_time,
                memory.time,
                page_faults_md.metric_kind,
            )
            series.append(factory.new_time_series({"fault_type": "minor"}, page_faults_md, point))

    if mem_used_md is not None:
        if memory.working_set_bytes is None:
            raise TranslationError(f"WorkingSetBytes information missing in MemoryStats {memory}")
        point = factory.new_point(
            TypedValue(int64_value=memory.working_set_bytes),
            start_time,
            memory.time,
            mem_used_md.metric_kind,
        )
        labels = _with_component({"memory_type": "non-evictable"}, component)
        series.append(factory.new_time_series(labels, mem_used_md, point))
        if memory.usage_bytes is not None:
            point = factory.new_point(
                TypedValue(int64_value=memory.usage_bytes - memory.working_set_bytes),
                start_time,
                memory.time,
                mem_used_md.metric_kind,
            )
            labels = _with_component({"memory_type": "evictable"}, component)
            series.append(factory.new_time_series(labels, mem_used_md, point))

    # Available memory may be absent; that is not an error.
    if mem_total_md is not None and memory.available_bytes is not None:
        point = factory.new_point(
            TypedValue(int64_value=memory.available_bytes),
            start_time,
            memory.time,
            mem_total_md.metric_kind,
        )
        series.append(factory.new_time_series({}, mem_total_md, point))
    return series