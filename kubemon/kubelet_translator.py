"""Turning the kubelet's stats summary into monitoring time series."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from kubemon.gcm_types import (
    CreateTimeSeriesRequest,
    GcmResource,
    Point,
    TimeInterval,
    TimeSeries,
    TypedValue,
    format_rfc3339,
)
from kubemon.kubelet_client import ZERO_TIME
from kubemon.series_builders import (
    CONTAINER_CPU_CORE_USAGE_TIME_MD,
    CONTAINER_EPHEMERAL_STORAGE_USED_MD,
    CONTAINER_MEM_TOTAL_MD,
    CONTAINER_MEM_USED_MD,
    CONTAINER_PAGE_FAULTS_MD,
    CONTAINER_UPTIME_MD,
    DAEMON_CPU_CORE_USAGE_TIME_MD,
    DAEMON_MEM_USED_MD,
    LEGACY_DISK_TOTAL_MD,
    LEGACY_DISK_USED_MD,
    LEGACY_MEM_TOTAL_MD,
    LEGACY_MEM_USED_MD,
    LEGACY_PAGE_FAULTS_MD,
    LEGACY_RESOURCE_TYPE,
    LEGACY_UPTIME_MD,
    LEGACY_USAGE_TIME_MD,
    NODE_CPU_CORE_USAGE_TIME_MD,
    NODE_EPHEMERAL_STORAGE_TOTAL_MD,
    NODE_EPHEMERAL_STORAGE_USED_MD,
    NODE_MEM_TOTAL_MD,
    NODE_MEM_USED_MD,
    MetricMetadata,
    TimeSeriesFactory,
    TranslationError,
    container_translate_fs,
    translate_cpu,
    translate_fs,
    translate_memory,
)

log = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class KubeletTranslator:
    """Translates kubelet summaries into the time series of the node and its containers.

    An empty ``schema_prefix`` selects the old resource model (``gke_container``).
    ``resolution`` is in seconds; ``clock`` returns the current time.
    """

    def __init__(
        self,
        zone,
        project,
        cluster,
        cluster_location,
        instance,
        instance_id,
        schema_prefix,
        monitored_resource_labels,
        resolution,
        clock=None,
    ):
        self.zone = zone
        self.project = project
        self.cluster = cluster
        self.cluster_location = cluster_location
        self.instance = instance
        self.instance_id = instance_id
        self.schema_prefix = schema_prefix
        self.monitored_resource_labels = dict(monitored_resource_labels or {})
        self.resolution = resolution
        self.use_old_resource_model = schema_prefix == ""
        self._clock = clock or _utc_now

    def translate(self, summary) -> CreateTimeSeriesRequest:
        """Return the time series of the node followed by those of the pods' containers."""
        series = self.translate_node(summary.node)
        series.extend(self.translate_containers(summary.pods))
        return CreateTimeSeriesRequest(time_series=series)

    def _factory(self, labels) -> TimeSeriesFactory:
        return TimeSeriesFactory(self.monitored_resource(labels), self.resolution, self._clock)

    def translate_node(self, node) -> list[TimeSeries]:
        factory = self._factory({"pod": "machine"})
        resource_type = factory.monitored_resource.type
        start = node.start_time

        series = [factory.new_time_series({}, self._uptime_md(), self._uptime_point(start))]

        mem_used_md, mem_total_md, page_faults_md = self._memory_md(resource_type)
        series.extend(
            translate_memory(
                node.memory, factory, start, mem_used_md, mem_total_md, page_faults_md, ""
            )
        )
        disk_used_md, disk_total_md = self._fs_md(resource_type)
        series.extend(translate_fs("/", node.fs, factory, start, disk_used_md, disk_total_md))
        series.extend(translate_cpu(node.cpu, factory, start, self._cpu_md(resource_type), ""))

        # System containers have no pod, no namespace, no file-system stats
        # and are never duplicated.
        for container in node.system_containers:
            if self.use_old_resource_model:
                try:
                    series.extend(self.translate_container("", "", container, False))
                except TranslationError as err:
                    log.warning(
                        "Failed to translate system container stats for %r: %s",
                        container.name,
                        err,
                    )
                continue
            try:
                series.extend(
                    translate_cpu(
                        container.cpu, factory, start, DAEMON_CPU_CORE_USAGE_TIME_MD, container.name
                    )
                )
            except TranslationError as err:
                log.warning(
                    "Failed to translate system container CPU stats for %r: %s",
                    container.name,
                    err,
                )
            try:
                series.extend(
                    translate_memory(
                        container.memory,
                        factory,
                        start,
                        DAEMON_MEM_USED_MD,
                        None,
                        None,
                        container.name,
                    )
                )
            except TranslationError as err:
                log.warning(
                    "Failed to translate system container memory stats for %r: %s",
                    container.name,
                    err,
                )
        return series

    def translate_containers(self, pods) -> list[TimeSeries]:
        """Return the series of all containers, keeping only the latest of duplicates."""
        series: list[TimeSeries] = []
        for pod in pods:
            seen: dict[str, datetime] = {}
            per_container: dict[str, list[TimeSeries]] = {}
            namespace = pod.pod_ref.namespace
            pod_id = pod.pod_ref.name
            for container in pod.containers:
                name = container.name
                if container.start_time <= seen.get(name, ZERO_TIME):
                    continue
                seen[name] = container.start_time
                try:
                    per_container[name] = self.translate_container(
                        pod_id, namespace, container, True
                    )
                except TranslationError as err:
                    log.warning(
                        "Failed to translate container stats for container %r in pod %r(%r): %s",
                        name,
                        pod_id,
                        namespace,
                        err,
                    )
            for container_series in per_container.values():
                series.extend(container_series)
        return series

    def translate_container(
        self, pod_id, namespace, container, require_fs_stats
    ) -> list[TimeSeries]:
        labels = {"namespace": namespace, "pod": pod_id, "container": container.name}
        factory = self._factory(labels)
        resource_type = factory.monitored_resource.type
        start = container.start_time

        series = [factory.new_time_series({}, self._uptime_md(), self._uptime_point(start))]

        mem_used_md, mem_total_md, page_faults_md = self._memory_md(resource_type)
        try:
            series.extend(
                translate_memory(
                    container.memory,
                    factory,
                    start,
                    mem_used_md,
                    mem_total_md,
                    page_faults_md,
                    "",
                )
            )
        except TranslationError as err:
            raise TranslationError(f"failed to translate memory stats: {err}") from err

        disk_used_md, disk_total_md = self._fs_md(resource_type)
        try:
            if self.use_old_resource_model:
                rootfs_series = translate_fs(
                    "/", container.rootfs, factory, start, disk_used_md, disk_total_md
                )
            else:
                rootfs_series = container_translate_fs(
                    "/", container.rootfs, container.logs, factory, start
                )
        except TranslationError as err:
            if require_fs_stats:
                raise TranslationError(f"failed to translate rootfs stats: {err}") from err
        else:
            series.extend(rootfs_series)

        if self.use_old_resource_model:
            try:
                logs_series = translate_fs(
                    "logs", container.logs, factory, start, disk_used_md, disk_total_md
                )
            except TranslationError as err:
                if require_fs_stats:
                    raise TranslationError(f"failed to translate log stats: {err}") from err
            else:
                series.extend(logs_series)

        try:
            series.extend(
                translate_cpu(container.cpu, factory, start, self._cpu_md(resource_type), "")
            )
        except TranslationError as err:
            raise TranslationError(f"failed to translate cpu stats: {err}") from err
        return series

    def monitored_resource(self, labels) -> GcmResource:
        """Return the resource of a node, or of a container when ``labels`` name one."""
        resource_labels = {"project_id": self.project, "cluster_name": self.cluster}

        if self.use_old_resource_model:
            resource_labels["zone"] = self.zone
            resource_labels["instance_id"] = self.instance
            resource_labels["namespace_id"] = labels.get("namespace", "")
            resource_labels["pod_id"] = labels.get("pod", "")
            resource_labels["container_name"] = labels.get("container", "")
            return GcmResource(type=LEGACY_RESOURCE_TYPE, labels=resource_labels)

        resource_labels["location"] = self.cluster_location
        if self.schema_prefix != "k8s_":
            resource_labels["instance_id"] = self.instance_id
        resource_labels.update(self.monitored_resource_labels)

        if "container" not in labels:
            if self.instance:
                resource_labels["node_name"] = self.instance
            return GcmResource(type=self.schema_prefix + "node", labels=resource_labels)

        resource_labels["namespace_name"] = labels.get("namespace", "")
        resource_labels["pod_name"] = labels.get("pod", "")
        resource_labels["container_name"] = labels["container"]
        return GcmResource(type=self.schema_prefix + "container", labels=resource_labels)

    def _uptime_md(self) -> MetricMetadata:
        return LEGACY_UPTIME_MD if self.use_old_resource_model else CONTAINER_UPTIME_MD

    def _uptime_point(self, start_time: datetime) -> Point:
        now = self._clock()
        start = start_time if self.use_old_resource_model else now
        return Point(
            interval=TimeInterval(start_time=format_rfc3339(start), end_time=format_rfc3339(now)),
            value=TypedValue(double_value=(now - start_time).total_seconds()),
        )

    def _cpu_md(self, resource_type: str) -> MetricMetadata:
        if resource_type == self.schema_prefix + "node":
            return NODE_CPU_CORE_USAGE_TIME_MD
        if resource_type == self.schema_prefix + "container":
            return CONTAINER_CPU_CORE_USAGE_TIME_MD
        return LEGACY_USAGE_TIME_MD

    def _fs_md(self, resource_type: str):
        if resource_type == self.schema_prefix + "node":
            return NODE_EPHEMERAL_STORAGE_USED_MD, NODE_EPHEMERAL_STORAGE_TOTAL_MD
        if resource_type == self.schema_prefix + "container":
            return CONTAINER_EPHEMERAL_STORAGE_USED_MD, None
        return LEGACY_DISK_USED_MD, LEGACY_DISK_TOTAL_MD

    def _memory_md(self, resource_type: str):
        if resource_type == self.schema_prefix + "node":
            return NODE_MEM_USED_MD, NODE_MEM_TOTAL_MD, None
        if resource_type == self.schema_prefix + "container":
            return CONTAINER_MEM_USED_MD, CONTAINER_MEM_TOTAL_MD, CONTAINER_PAGE_FAULTS_MD
        return LEGACY_MEM_USED_MD, LEGACY_MEM_TOTAL_MD, LEGACY_PAGE_FAULTS_MD