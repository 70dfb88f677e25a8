import json
from datetime import datetime, timezone

import pytest
import requests
import responses

from kubemon.kubelet_client import (
    ZERO_TIME,
    KubeletClient,
    PodStats,
    Summary,
)

SUMMARY = {
    "node": {
        "cpu": {
            "time": "2016-06-09T23:23:43Z",
            "usageCoreNanoSeconds": 10000000000,
            "usageNanoCores": 1000000000,
        },
        "fs": {"availableBytes": 6000, "capacityBytes": 10000, "usedBytes": 4000},
        "memory": {
            "majorPageFaults": 6,
            "pageFaults": 10,
            "rssBytes": 2900,
            "time": "2016-06-09T23:23:43Z",
            "usageBytes": 2800,
            "workingSetBytes": 2700,
        },
        "nodeName": "gke-node-example",
        "startTime": "2016-06-08T00:25:37Z",
        "systemContainers": [
            {
                "cpu": {"time": "2016-06-09T23:23:45Z", "usageCoreNanoSeconds": 10000000000},
                "name": "misc",
                "startTime": "2016-06-08T00:26:41Z",
                "userDefinedMetrics": None,
            }
        ],
    },
    "pods": [
        {
            "containers": [
                {
                    "name": "test-container",
                    "startTime": "2016-06-08T00:27:48Z",
                    "rootfs": {"availableBytes": 6000, "capacityBytes": 10000, "usedBytes": 4000},
                    "logs": {"availableBytes": 5000, "capacityBytes": 8000, "usedBytes": 3000},
                }
            ],
            "podRef": {"name": "test-pod", "namespace": "kube-system", "uid": "uid-1"},
            "startTime": "2016-06-08T00:27:47Z",
        }
    ],
}


def test_summary_from_dict_reads_node():
    summary = Summary.from_dict(SUMMARY)
    assert summary.node.node_name == "gke-node-example"
    assert summary.node.start_time == datetime(2016, 6, 8, 0, 25, 37, tzinfo=timezone.utc)
    assert summary.node.cpu.usage_core_nano_seconds == 10000000000
    assert summary.node.memory.working_set_bytes == 2700
    assert summary.node.memory.available_bytes is None
    assert summary.node.fs.capacity_bytes == 10000
    assert [c.name for c in summary.node.system_containers] == ["misc"]
    assert summary.node.system_containers[0].memory is None


def test_summary_from_dict_reads_pods():
    summary = Summary.from_dict(SUMMARY)
    pod = summary.pods[0]
    assert pod.pod_ref.name == "test-pod"
    assert pod.pod_ref.namespace == "kube-system"
    assert pod.containers[0].logs.used_bytes == 3000
    assert pod.containers[0].cpu is None


def test_pod_stats_fractional_time_and_missing_time():
    pod = PodStats.from_dict(
        {
            "podRef": {"name": "p"},
            "startTime": "2025-04-06T11:28:17.123456789Z",
            "containers": [{"name": "c", "memory": {"workingSetBytes": 76451840}}],
        }
    )
    assert pod.start_time.microsecond == 123456
    assert pod.containers[0].memory.time == ZERO_TIME
    assert pod.containers[0].start_time == ZERO_TIME


def test_bad_time_is_rejected():
    with pytest.raises(ValueError):
        PodStats.from_dict({"startTime": "yesterday"})


def test_get_summary_over_http():
    client = KubeletClient("localhost", 10255)
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET, "http://localhost:10255/stats/summary", body=json.dumps(SUMMARY)
        )
        summary = client.get_summary()
    assert summary == Summary.from_dict(SUMMARY)


def test_auth_port_uses_https():
    client = KubeletClient("localhost", 10250, use_auth_port=True)
    assert client.summary_url == "https://localhost:10250/stats/summary"


def test_not_found():
    client = KubeletClient("localhost", 10255)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, "http://localhost:10255/stats/summary", status=404)
        with pytest.raises(requests.HTTPError, match="not found"):
            client.get_summary()


def test_server_error():
    client = KubeletClient("localhost", 10255)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, "http://localhost:10255/stats/summary", status=500, body="boom")
        with pytest.raises(requests.HTTPError, match="request failed"):
            client.get_summary()


def test_invalid_json():
    client = KubeletClient("localhost", 10255)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, "http://localhost:10255/stats/summary", body="{not json")
        with pytest.raises(ValueError, match="failed to parse output"):
            client.get_summary()


def test_malformed_port_fails_fast():
    with pytest.raises(ValueError):
        KubeletClient("localhost", 99999)