"""Turning controller manager metrics into monitoring time series."""

from __future__ import annotations

from datetime import datetime, timezone

from kubemon.gcm_types import (
    CreateTimeSeriesRequest,
    GcmResource,
    Metric,
    Point,
    TimeInterval,
    TimeSeries,
    TypedValue,
    format_rfc3339,
)

NODE_EVICTION_COUNT_METRIC = "container.googleapis.com/master/node_controller/node_eviction_count"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ControllerTranslator:
    """Builds the node eviction time series of the controller manager.

    ``resolution`` is in seconds; ``clock`` returns the current time.
    """

    def __init__(self, zone, project, cluster, instance_id, resolution, clock=None):
        self.zone = zone
        self.project = project
        self.cluster = cluster
        self.instance_id = instance_id
        self.resolution = resolution
        self._clock = clock or _utc_now

    def translate(self, metrics) -> CreateTimeSeriesRequest:
        return CreateTimeSeriesRequest(time_series=[self._translate_eviction(metrics)])

    def _translate_eviction(self, metrics) -> TimeSeries:
        created = datetime.fromtimestamp(metrics.create_time, timezone.utc)
        point = Point(
            interval=TimeInterval(
                start_time=format_rfc3339(created),
                end_time=format_rfc3339(self._clock()),
            ),
            value=TypedValue(int64_value=metrics.node_evictions),
        )
        return TimeSeries(
            metric=Metric(type=NODE_EVICTION_COUNT_METRIC, labels={}),
            resource=GcmResource(
                type="gke_container",
                labels={
                    "project_id": self.project,
                    "cluster_name": self.cluster,
                    "zone": self.zone,
                    "instance_id": self.instance_id,
                    "namespace_id": "",
                    "pod_id": "machine",
                    "container_name": "",
                },
            ),
            metric_kind="CUMULATIVE",
            value_type="INT64",
            points=[point],
        )