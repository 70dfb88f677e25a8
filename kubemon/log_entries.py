"""Log entries built from events, and the metrics of the logging sink."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from kubemon.kube_objects import Event
from kubemon.resources import K8S_POD, NAMESPACE_NAME, POD_NAME, MonitoredResource
from kubemon.telemetry import Counter, CounterVec, Histogram, exponential_buckets

log = logging.getLogger(__name__)

# Fields left out of the payload: events are already demuxed.
FIELD_BLACKLIST = ("count", "firstTimestamp")

RECEIVED_ENTRY_COUNT = Counter(
    "received_entry_count",
    "Number of entries received by the Stackdriver sink",
    subsystem="stackdriver_sink",
)
REQUEST_COUNT = CounterVec(
    "request_count",
    "Number of request, issued to Stackdriver API",
    ("code",),
    subsystem="stackdriver_sink",
)
SUCCESSFULLY_SENT_ENTRY_COUNT = Counter(
    "successfully_sent_entry_count",
    "Number of entries successfully ingested by Stackdriver",
    subsystem="stackdriver_sink",
)
# The highest bucket starts at 2 s * 1.5^19, about 4433.68 s.
RECORD_LATENCY = Histogram(
    "records_latency_seconds",
    "Log entry latency between log timestamp and delivery to StackDriver.",
    exponential_buckets(2, 1.5, 20),
    subsystem="stackdriver_sink",
)

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(?:([Zz])|([+-])(\d{2}):(\d{2}))"
)


def format_rfc3339_nano(timestamp: datetime) -> str:
    """Format a time as RFC 3339 with trailing zeros of the fraction dropped.

    Naive times are taken to be UTC.
    """
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    text = (
        f"{timestamp.year:04d}-{timestamp.month:02d}-{timestamp.day:02d}"
        f"T{timestamp.hour:02d}:{timestamp.minute:02d}:{timestamp.second:02d}"
    )
    fraction = f"{timestamp.microsecond:06d}".rstrip("0")
    if fraction:
        text += "." + fraction
    offset = timestamp.utcoffset() or timedelta(0)
    if not offset:
        return text + "Z"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _parse_rfc3339(text: str) -> datetime:
    match = _RFC3339.fullmatch(text)
    if match is None:
        raise ValueError(f"not an RFC 3339 time: {text!r}")
    year, month, day, hour, minute, second, fraction, zulu, sign, off_h, off_m = match.groups()
    if zulu:
        tz = timezone.utc
    else:
        offset = timedelta(hours=int(off_h), minutes=int(off_m))
        tz = timezone(-offset if sign == "-" else offset)
    micros = int((fraction or "").ljust(6, "0")[:6])
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micros, tzinfo=tz
    )


@dataclass
class LogEntry:
    """One entry to write to the logging API."""

    severity: str = ""
    timestamp: str = ""
    resource: MonitoredResource | None = None
    labels: dict[str, str] | None = None
    json_payload: dict | None = None
    text_payload: str = ""

    def to_dict(self) -> dict:
        """Return the entry in the API's JSON shape, leaving out empty fields."""
        result: dict = {}
        if self.json_payload is not None:
            result["jsonPayload"] = self.json_payload
        if self.text_payload:
            result["textPayload"] = self.text_payload
        if self.severity:
            result["severity"] = self.severity
        if self.timestamp:
            result["timestamp"] = self.timestamp
        if self.resource is not None:
            result["resource"] = self.resource.to_dict()
        if self.labels:
            result["labels"] = dict(self.labels)
        return result


def serialize_event(event: Event) -> dict:
    """Return the event's JSON object without the fields demuxing makes redundant."""
    payload = event.to_dict()
    for name in FIELD_BLACKLIST:
        payload.pop(name, None)
    return payload


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LogEntryFactory:
    """Builds log entries from events and from plain messages.

    ``clock`` returns the current time as a datetime.
    """

    def __init__(self, clock, resource_factory, pod_label_collector=None):
        self.clock = clock or _utc_now
        self.resource_factory = resource_factory
        self.pod_label_collector = pod_label_collector

    def from_event(self, event: Event) -> LogEntry:
        try:
            payload = serialize_event(event)
        except (TypeError, ValueError) as err:
            log.warning("Failed to encode event %r: %s", event, err)
            payload = None

        resource = self.resource_factory.resource_from_event(event)
        entry = LogEntry(
            severity=self._detect_severity(event),
            resource=resource,
            json_payload=payload,
        )
        if resource.type == K8S_POD and self.pod_label_collector is not None:
            entry.labels = self.pod_label_collector.get_labels(
                resource.labels[NAMESPACE_NAME], resource.labels[POD_NAME]
            )
        if event.last_timestamp is not None:
            # Emitted through the core/v1 API.
            entry.timestamp = format_rfc3339_nano(event.last_timestamp)
        elif event.series is not None and event.series.last_observed_time is not None:
            # Emitted through the events/v1 API.
            entry.timestamp = format_rfc3339_nano(event.series.last_observed_time)
        return entry

    def from_message(self, msg) -> LogEntry:
        return LogEntry(
            text_payload=msg,
            severity="WARNING",
            timestamp=format_rfc3339_nano(self.clock()),
        )

    @staticmethod
    def _detect_severity(event: Event) -> str:
        return "WARNING" if event.type == "Warning" else "INFO"


def measure_latency_on_success(entries) -> None:
    """Record how long ago each timestamped entry was logged."""
    samples = []
    for entry in entries:
        if not entry.timestamp:
            continue
        try:
            samples.append(_parse_rfc3339(entry.timestamp))
        except ValueError:
            log.warning("Failed to parse timestamp: %s", entry.timestamp)
    now = _utc_now()
    for sample in samples:
        RECORD_LATENCY.observe((now - sample).total_seconds())