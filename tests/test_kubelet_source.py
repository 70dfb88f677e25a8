import json

import pytest
import requests
import responses

from kubemon.kubelet_client import Summary
from kubemon.kubelet_source import KubeletSource, secured_session
from kubemon.kubelet_translator import KubeletTranslator
from kubemon.poll import SourceConfig
from kubemon.series_builders import TranslationError

SUMMARY = {
    "node": {
        "cpu": {"time": "2016-06-09T23:23:43Z", "usageCoreNanoSeconds": 10000000000},
        "fs": {"availableBytes": 6000, "capacityBytes": 10000, "usedBytes": 4000},
        "memory": {
            "majorPageFaults": 6,
            "pageFaults": 10,
            "time": "2016-06-09T23:23:43Z",
            "usageBytes": 2800,
            "workingSetBytes": 2700,
        },
        "nodeName": "test-node",
        "startTime": "2016-06-08T00:25:37Z",
        "systemContainers": [],
    },
    "pods": [],
}


@pytest.fixture
def mocked_http():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def make_config(**overrides):
    values = dict(
        zone="us-central1-f",
        project="test-project",
        cluster="unit-test-clus",
        cluster_location="test-location",
        host="kubelet.local",
        instance="this-instance",
        instance_id="id",
        schema_prefix="k8s_",
        port=10255,
        resolution=10.0,
    )
    values.update(overrides)
    return SourceConfig(**values)


def test_name_and_project_path():
    source = KubeletSource(make_config())
    assert source.name == "kubelet"
    assert source.project_path == "projects/test-project"


def test_get_time_series_request_translates_summary(mocked_http):
    mocked_http.add(
        responses.GET, "http://kubelet.local:10255/stats/summary", json=SUMMARY, status=200
    )
    cfg = make_config()
    request = KubeletSource(cfg).get_time_series_request()
    expected = KubeletTranslator(
        cfg.zone,
        cfg.project,
        cfg.cluster,
        cfg.cluster_location,
        cfg.instance,
        cfg.instance_id,
        cfg.schema_prefix,
        {},
        cfg.resolution,
    ).translate(Summary.from_dict(json.loads(json.dumps(SUMMARY))))
    assert [s.metric.type for s in request.time_series] == [
        s.metric.type for s in expected.time_series
    ]
    assert all(s.resource.type == "k8s_node" for s in request.time_series)


def test_missing_endpoint_raises(mocked_http):
    mocked_http.add(responses.GET, "http://kubelet.local:10255/stats/summary", status=404)
    with pytest.raises(requests.RequestException, match="not found"):
        KubeletSource(make_config()).get_time_series_request()


def test_untranslatable_summary_raises(mocked_http):
    broken = json.loads(json.dumps(SUMMARY))
    del broken["node"]["memory"]
    mocked_http.add(
        responses.GET, "http://kubelet.local:10255/stats/summary", json=broken, status=200
    )
    with pytest.raises(TranslationError, match="Failed to translate data from summary"):
        KubeletSource(make_config()).get_time_series_request()


def test_secured_session_missing_file(tmp_path):
    with pytest.raises(ValueError, match="failed to read file"):
        secured_session(tmp_path / "absent.pem")


def test_secured_session_rejects_non_pem(tmp_path):
    path = tmp_path / "cert.pem"
    path.write_text("not a certificate\n")
    with pytest.raises(ValueError, match="failed to parse kubelet certificate"):
        secured_session(path)


def test_source_with_bad_certificate_fails(tmp_path):
    path = tmp_path / "cert.pem"
    path.write_text("garbage")
    with pytest.raises(ValueError, match="failed to create secure http client"):
        KubeletSource(make_config(certificate_location=str(path)))