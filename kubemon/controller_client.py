"""Scraping the controller manager's Prometheus metrics."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from urllib.parse import urlsplit

import requests

_METRIC_NAME = re.compile(r"[a-zA-Z_:][a-zA-Z0-9_:]*")
_LABEL_NAME = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")
_ESCAPES = {"\\": "\\", '"': '"', "n": "\n"}


def _skip_blanks(line: str, pos: int) -> int:
    while pos < len(line) and line[pos] in " \t":
        pos += 1
    return pos


def _expect(line: str, pos: int, char: str) -> int:
    if pos >= len(line) or line[pos] != char:
        raise ValueError(f"expected {char!r} at column {pos + 1}")
    return pos + 1


def _parse_labels(line: str, pos: int) -> tuple[dict[str, str], int]:
    labels: dict[str, str] = {}
    while True:
        pos = _skip_blanks(line, pos)
        if pos < len(line) and line[pos] == "}":
            return labels, pos + 1
        match = _LABEL_NAME.match(line, pos)
        if match is None:
            raise ValueError(f"invalid label name at column {pos + 1}")
        name = match.group()
        pos = _expect(line, _skip_blanks(line, match.end()), "=")
        pos = _expect(line, _skip_blanks(line, pos), '"')
        chars = []
        while True:
            if pos >= len(line):
                raise ValueError("unterminated label value")
            char = line[pos]
            if char == '"':
                pos += 1
                break
            if char == "\\":
                if pos + 1 >= len(line) or line[pos + 1] not in _ESCAPES:
                    raise ValueError(f"invalid escape in label value at column {pos + 1}")
                chars.append(_ESCAPES[line[pos + 1]])
                pos += 2
                continue
            chars.append(char)
            pos += 1
        if name in labels:
            raise ValueError(f"duplicate label {name!r}")
        labels[name] = "".join(chars)
        pos = _skip_blanks(line, pos)
        if pos < len(line) and line[pos] == ",":
            pos += 1
            continue
        pos = _expect(line, pos, "}")
        return labels, pos


def _parse_value(text: str) -> float:
    if "_" in text:
        raise ValueError(f"invalid value {text!r}")
    try:
        return float(text)
    except ValueError:
        raise ValueError(f"invalid value {text!r}") from None


def _parse_sample(line: str) -> tuple[str, dict[str, str], float]:
    match = _METRIC_NAME.match(line)
    if match is None:
        raise ValueError("invalid metric name")
    name, pos = match.group(), match.end()
    labels: dict[str, str] = {}
    if pos < len(line) and line[pos] == "{":
        labels, pos = _parse_labels(line, pos + 1)
    rest = line[pos:]
    if not rest or not rest[0].isspace():
        raise ValueError("expected a value after the metric")
    fields = rest.split()
    if len(fields) not in (1, 2):
        raise ValueError("expected a value and an optional timestamp")
    value = _parse_value(fields[0])
    if len(fields) == 2:
        try:
            int(fields[1])
        except ValueError:
            raise ValueError(f"invalid timestamp {fields[1]!r}") from None
    return name, labels, value


def parse_prometheus_text(data) -> list[tuple[str, dict[str, str], float]]:
    """Parse the Prometheus text format into ``(name, labels, value)`` samples."""
    samples = []
    for number, raw in enumerate(data.splitlines(), 1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        try:
            samples.append(_parse_sample(line))
        except ValueError as err:
            raise ValueError(f"line {number}: {err}") from err
    return samples


def _to_int(value: float) -> int:
    return int(value) if math.isfinite(value) else 0


@dataclass
class ControllerMetrics:
    """The values read from the controller manager."""

    create_time: int = 0
    node_evictions: int = 0

    @classmethod
    def from_text(cls, data) -> "ControllerMetrics":
        """Build the metrics from a Prometheus text response body."""
        try:
            samples = parse_prometheus_text(data)
        except ValueError as err:
            raise ValueError(f"Failed to create a new Metrics object: Invalid decode: {err}") from err
        metrics = cls()
        for name, _labels, value in samples:
            if name == "node_collector_evictions_number":
                metrics.node_evictions = _to_int(value)
            elif name == "process_start_time_seconds":
                metrics.create_time = _to_int(value)
        return metrics


class ControllerClient:
    """Queries the metrics endpoint of the controller manager."""

    def __init__(self, host, port, session=None, timeout: float | None = None):
        url = f"http://{host}:{port}/metrics"
        urlsplit(url).port  # fail fast on a malformed host or port
        self.metrics_url = url
        self.timeout = timeout
        self._session = session or requests.Session()

    def get_metrics(self) -> ControllerMetrics:
        response = self._session.get(self.metrics_url, timeout=self.timeout)
        if response.status_code == 404:
            raise requests.HTTPError(f"{self.metrics_url!r} not found", response=response)
        if response.status_code != 200:
            raise requests.HTTPError(
                f"request failed - {response.status_code} {response.reason!r}, "
                f"response: {response.text!r}",
                response=response,
            )
        return ControllerMetrics.from_text(response.text)