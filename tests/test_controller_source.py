from datetime import datetime, timezone

import pytest
import requests
import responses

from kubemon.controller_source import ControllerSource
from kubemon.controller_translator import NODE_EVICTION_COUNT_METRIC
from kubemon.poll import SourceConfig

URL = "http://localhost:10252/metrics"
BODY = (
    "# HELP node_collector_evictions_number Evictions\n"
    "# TYPE node_collector_evictions_number counter\n"
    "node_collector_evictions_number 7\n"
    "process_start_time_seconds 1465345537\n"
)


def make_config(**overrides):
    values = dict(
        zone="us-central1-f",
        project="test-project",
        cluster="unit-test-clus",
        host="localhost",
        instance="this-instance",
        port=10252,
        resolution=10.0,
    )
    values.update(overrides)
    return SourceConfig(**values)


def fixed_clock():
    return datetime(2016, 6, 9, 23, 23, 43, tzinfo=timezone.utc)


def test_name_and_project_path():
    source = ControllerSource(make_config())
    assert source.name == "kube-controller-manager"
    assert source.project_path == "projects/test-project"


def test_time_series_request_from_metrics():
    source = ControllerSource(make_config(), clock=fixed_clock)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, body=BODY)
        request = source.get_time_series_request()
    assert len(request.time_series) == 1
    series = request.time_series[0]
    assert series.metric.type == NODE_EVICTION_COUNT_METRIC
    assert series.points[0].value.int64_value == 7
    assert series.points[0].interval.start_time == "2016-06-08T00:25:37Z"
    assert series.points[0].interval.end_time == "2016-06-09T23:23:43Z"
    assert series.resource.labels["instance_id"] == "this-instance"
    assert series.resource.labels["project_id"] == "test-project"


def test_failed_scrape_is_reported():
    source = ControllerSource(make_config())
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, status=500, body="boom")
        with pytest.raises(requests.RequestException, match="Failed to get metrics"):
            source.get_time_series_request()


def test_unparsable_metrics_are_reported():
    source = ControllerSource(make_config())
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, body="metric{broken 1\n")
        with pytest.raises(ValueError, match="Failed to get metrics"):
            source.get_time_series_request()


def test_bad_port_fails_on_creation():
    with pytest.raises(ValueError, match="Failed to create a controller client"):
        ControllerSource(make_config(port=99999))