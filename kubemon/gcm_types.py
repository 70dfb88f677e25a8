"""Time series types of the monitoring API, with their JSON shapes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def format_rfc3339(timestamp: datetime) -> str:
    """Format a time as RFC 3339 to whole seconds; naive times are taken to be UTC."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    text = timestamp.replace(microsecond=0).isoformat()
    if not timestamp.utcoffset():
        return text[:19] + "Z"
    return text


@dataclass
class TypedValue:
    """A single value; exactly one of the fields is normally set."""

    int64_value: int | None = None
    double_value: float | None = None

    def to_dict(self) -> dict:
        result: dict = {}
        if self.int64_value is not None:
            # 64-bit integers travel as strings in the API's JSON.
            result["int64Value"] = str(self.int64_value)
        if self.double_value is not None:
            result["doubleValue"] = self.double_value
        return result


@dataclass
class TimeInterval:
    """The interval a point covers, as RFC 3339 strings."""

    start_time: str = ""
    end_time: str = ""

    def to_dict(self) -> dict:
        result: dict = {}
        if self.end_time:
            result["endTime"] = self.end_time
        if self.start_time:
            result["startTime"] = self.start_time
        return result


@dataclass
class Point:
    """One value over one interval."""

    interval: TimeInterval = field(default_factory=TimeInterval)
    value: TypedValue = field(default_factory=TypedValue)

    def to_dict(self) -> dict:
        return {"interval": self.interval.to_dict(), "value": self.value.to_dict()}


@dataclass
class Metric:
    """A metric type with its labels."""

    type: str = ""
    labels: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"labels": dict(self.labels), "type": self.type}


@dataclass
class GcmResource:
    """The monitored resource a time series belongs to."""

    type: str = ""
    labels: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"labels": dict(self.labels), "type": self.type}


@dataclass
class TimeSeries:
    """Points of one metric of one resource."""

    metric: Metric = field(default_factory=Metric)
    resource: GcmResource = field(default_factory=GcmResource)
    metric_kind: str = ""
    value_type: str = ""
    points: list[Point] = field(default_factory=list)

    def to_dict(self) -> dict:
        result: dict = {
            "metric": self.metric.to_dict(),
            "resource": self.resource.to_dict(),
            "points": [point.to_dict() for point in self.points],
        }
        if self.metric_kind:
            result["metricKind"] = self.metric_kind
        if self.value_type:
            result["valueType"] = self.value_type
        return result


@dataclass
class CreateTimeSeriesRequest:
    """A batch of time series to create."""

    time_series: list[TimeSeries] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"timeSeries": [series.to_dict() for series in self.time_series]}