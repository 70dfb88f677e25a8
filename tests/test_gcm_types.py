import json
from datetime import datetime, timedelta, timezone

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


def test_format_rfc3339_utc():
    ts = datetime(2016, 6, 9, 23, 23, 43, tzinfo=timezone.utc)
    assert format_rfc3339(ts) == "2016-06-09T23:23:43Z"


def test_format_rfc3339_drops_fraction_and_treats_naive_as_utc():
    aware = datetime(2016, 6, 9, 23, 23, 43, 999999, tzinfo=timezone.utc)
    naive = datetime(2016, 6, 9, 23, 23, 43, 123)
    assert format_rfc3339(aware) == format_rfc3339(naive)
    assert format_rfc3339(naive).endswith("43Z")


def test_format_rfc3339_keeps_offset():
    ts = datetime(2016, 6, 9, 23, 23, 43, tzinfo=timezone(timedelta(hours=2)))
    assert format_rfc3339(ts) == "2016-06-09T23:23:43+02:00"


def test_typed_value_int64_is_string():
    assert TypedValue(int64_value=42).to_dict() == {"int64Value": "42"}


def test_typed_value_zero_is_sent():
    assert TypedValue(double_value=0.0).to_dict() == {"doubleValue": 0.0}


def _series():
    return TimeSeries(
        metric=Metric(type="kubernetes.io/node/memory/used_bytes", labels={"memory_type": "evictable"}),
        resource=GcmResource(type="k8s_node", labels={"project_id": "p"}),
        metric_kind="GAUGE",
        value_type="INT64",
        points=[
            Point(
                interval=TimeInterval(start_time="2016-06-09T23:23:43Z", end_time="2016-06-09T23:23:43Z"),
                value=TypedValue(int64_value=7),
            )
        ],
    )


def test_time_series_to_dict_shape():
    data = _series().to_dict()
    assert data["metricKind"] == "GAUGE"
    assert data["valueType"] == "INT64"
    assert data["metric"] == {
        "labels": {"memory_type": "evictable"},
        "type": "kubernetes.io/node/memory/used_bytes",
    }
    assert data["resource"]["type"] == "k8s_node"
    assert data["points"][0]["value"] == {"int64Value": "7"}
    assert data["points"][0]["interval"]["endTime"] == "2016-06-09T23:23:43Z"


def test_request_to_dict_is_json_serialisable():
    request = CreateTimeSeriesRequest(time_series=[_series(), _series()])
    decoded = json.loads(json.dumps(request.to_dict()))
    assert len(decoded["timeSeries"]) == 2
    assert decoded["timeSeries"][0] == _series().to_dict()