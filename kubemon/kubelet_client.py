"""Reading the kubelet's stats summary."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from urllib.parse import urlsplit

import requests

# Stands for a time the kubelet did not report.
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_TIME = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt ](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})"
)


def _parse_time(value) -> datetime:
    if value is None or value == "":
        return ZERO_TIME
    match = _TIME.fullmatch(str(value))
    if match is None:
        raise ValueError(f"not an RFC 3339 time: {value!r}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        tz = timezone(-offset if zone[0] == "-" else offset)
    micros = int((fraction or "").ljust(6, "0")[:6])
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micros, tzinfo=tz
    )


def _int(value) -> int | None:
    return None if value is None else int(value)


@dataclass
class CpuStats:
    """CPU usage of a node or container."""

    time: datetime = ZERO_TIME
    usage_nano_cores: int | None = None
    usage_core_nano_seconds: int | None = None


@dataclass
class MemoryStats:
    """Memory usage of a node or container."""

    time: datetime = ZERO_TIME
    available_bytes: int | None = None
    usage_bytes: int | None = None
    working_set_bytes: int | None = None
    rss_bytes: int | None = None
    page_faults: int | None = None
    major_page_faults: int | None = None


@dataclass
class FsStats:
    """Usage of one file system."""

    available_bytes: int | None = None
    capacity_bytes: int | None = None
    used_bytes: int | None = None


@dataclass
class ContainerStats:
    """Stats of one container."""

    name: str = ""
    start_time: datetime = ZERO_TIME
    cpu: CpuStats | None = None
    memory: MemoryStats | None = None
    rootfs: FsStats | None = None
    logs: FsStats | None = None


@dataclass
class PodReference:
    """Identifies a pod."""

    name: str = ""
    namespace: str = ""
    uid: str = ""


def _cpu(data) -> CpuStats | None:
    if data is None:
        return None
    return CpuStats(
        time=_parse_time(data.get("time")),
        usage_nano_cores=_int(data.get("usageNanoCores")),
        usage_core_nano_seconds=_int(data.get("usageCoreNanoSeconds")),
    )


def _memory(data) -> MemoryStats | None:
    if data is None:
        return None
    return MemoryStats(
        time=_parse_time(data.get("time")),
        available_bytes=_int(data.get("availableBytes")),
        usage_bytes=_int(data.get("usageBytes")),
        working_set_bytes=_int(data.get("workingSetBytes")),
        rss_bytes=_int(data.get("rssBytes")),
        page_faults=_int(data.get("pageFaults")),
        major_page_faults=_int(data.get("majorPageFaults")),
    )


def _fs(data) -> FsStats | None:
    if data is None:
        return None
    return FsStats(
        available_bytes=_int(data.get("availableBytes")),
        capacity_bytes=_int(data.get("capacityBytes")),
        used_bytes=_int(data.get("usedBytes")),
    )


def _container(data) -> ContainerStats:
    return ContainerStats(
        name=data.get("name") or "",
        start_time=_parse_time(data.get("startTime")),
        cpu=_cpu(data.get("cpu")),
        memory=_memory(data.get("memory")),
        rootfs=_fs(data.get("rootfs")),
        logs=_fs(data.get("logs")),
    )


@dataclass
class PodStats:
    """Stats of one pod and its containers."""

    pod_ref: PodReference = field(default_factory=PodReference)
    start_time: datetime = ZERO_TIME
    containers: list[ContainerStats] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data) -> "PodStats":
        """Build the stats from the kubelet's JSON object of a pod."""
        ref = data.get("podRef") or {}
        return cls(
            pod_ref=PodReference(
                name=ref.get("name") or "",
                namespace=ref.get("namespace") or "",
                uid=ref.get("uid") or "",
            ),
            start_time=_parse_time(data.get("startTime")),
            containers=[_container(c) for c in data.get("containers") or []],
        )


@dataclass
class NodeStats:
    """Stats of the node and its system containers."""

    node_name: str = ""
    start_time: datetime = ZERO_TIME
    cpu: CpuStats | None = None
    memory: MemoryStats | None = None
    fs: FsStats | None = None
    system_containers: list[ContainerStats] = field(default_factory=list)


@dataclass
class Summary:
    """The kubelet's stats summary."""

    node: NodeStats = field(default_factory=NodeStats)
    pods: list[PodStats] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data) -> "Summary":
        """Build the summary from the kubelet's JSON object."""
        node = data.get("node") or {}
        return cls(
            node=NodeStats(
                node_name=node.get("nodeName") or "",
                start_time=_parse_time(node.get("startTime")),
                cpu=_cpu(node.get("cpu")),
                memory=_memory(node.get("memory")),
                fs=_fs(node.get("fs")),
                system_containers=[_container(c) for c in node.get("systemContainers") or []],
            ),
            pods=[PodStats.from_dict(p) for p in data.get("pods") or []],
        )


class KubeletClient:
    """Fetches the stats summary from a kubelet."""

    def __init__(self, host, port, session=None, use_auth_port=False, timeout=None):
        protocol = "https" if use_auth_port else "http"
        url = f"{protocol}://{host}:{port}/stats/summary"
        urlsplit(url).port  # fail fast on a malformed host or port
        self.summary_url = url
        self.timeout = timeout
        self._session = session or requests.Session()

    def get_summary(self) -> Summary:
        response = self._session.get(self.summary_url, timeout=self.timeout)
        body = response.text
        if response.status_code == 404:
            raise requests.HTTPError(f"{self.summary_url!r} not found", response=response)
        if response.status_code != 200:
            raise requests.HTTPError(
                f"request failed - {response.status_code} {response.reason!r}, "
                f"response: {body!r}",
                response=response,
            )
        try:
            data = json.loads(body)
            if not isinstance(data, dict):
                raise ValueError("summary is not a JSON object")
            return Summary.from_dict(data)
        except (ValueError, TypeError, AttributeError) as err:
            raise ValueError(f"failed to parse output. Response: {body!r}. Error: {err}") from err