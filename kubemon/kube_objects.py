"""Kubernetes objects used by the event exporter, and the handler and sink interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone


def _as_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def _format_time(timestamp: datetime | None) -> str | None:
    if timestamp is None:
        return None
    return _as_utc(timestamp).strftime("%Y-%m-%dT%H:%M:%SZ")


def _format_micro_time(timestamp: datetime | None) -> str | None:
    if timestamp is None:
        return None
    return _as_utc(timestamp).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _without_empty(values: dict) -> dict:
    return {key: value for key, value in values.items() if value}


@dataclass
class ObjectReference:
    """The object an event is about."""

    kind: str = ""
    name: str = ""
    namespace: str = ""
    uid: str = ""
    api_version: str = ""
    resource_version: str = ""
    field_path: str = ""


@dataclass
class EventSeries:
    """Repetition data of an event emitted through the events API."""

    count: int = 0
    last_observed_time: datetime | None = None


@dataclass
class Event:
    """A core Kubernetes event. Timestamps left as ``None`` are unset."""

    name: str = ""
    namespace: str = ""
    uid: str = ""
    resource_version: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    involved_object: ObjectReference = field(default_factory=ObjectReference)
    reason: str = ""
    message: str = ""
    source_component: str = ""
    source_host: str = ""
    first_timestamp: datetime | None = None
    last_timestamp: datetime | None = None
    count: int = 0
    type: str = ""
    event_time: datetime | None = None
    series: EventSeries | None = None
    action: str = ""
    reporting_component: str = ""
    reporting_instance: str = ""

    def to_dict(self) -> dict:
        """Return the event in the JSON shape the API server uses for core/v1."""
        metadata = _without_empty(
            {
                "name": self.name,
                "namespace": self.namespace,
                "uid": self.uid,
                "resourceVersion": self.resource_version,
            }
        )
        metadata["creationTimestamp"] = None
        if self.labels:
            metadata["labels"] = dict(self.labels)
        ref = self.involved_object
        result: dict = {
            "kind": "Event",
            "apiVersion": "v1",
            "metadata": metadata,
            "involvedObject": _without_empty(
                {
                    "kind": ref.kind,
                    "namespace": ref.namespace,
                    "name": ref.name,
                    "uid": ref.uid,
                    "apiVersion": ref.api_version,
                    "resourceVersion": ref.resource_version,
                    "fieldPath": ref.field_path,
                }
            ),
        }
        if self.reason:
            result["reason"] = self.reason
        if self.message:
            result["message"] = self.message
        result["source"] = _without_empty(
            {"component": self.source_component, "host": self.source_host}
        )
        result["firstTimestamp"] = _format_time(self.first_timestamp)
        result["lastTimestamp"] = _format_time(self.last_timestamp)
        if self.count:
            result["count"] = self.count
        if self.type:
            result["type"] = self.type
        result["eventTime"] = _format_micro_time(self.event_time)
        if self.series is not None:
            result["series"] = {
                "count": self.series.count,
                "lastObservedTime": _format_micro_time(self.series.last_observed_time),
            }
        if self.action:
            result["action"] = self.action
        result["reportingComponent"] = self.reporting_component
        result["reportingInstance"] = self.reporting_instance
        return result


@dataclass
class EventList:
    """A page of events returned by a list call."""

    items: list[Event] = field(default_factory=list)
    resource_version: str = ""


@dataclass
class OwnerReference:
    """A reference from an object to the controller that owns it."""

    kind: str = ""
    name: str = ""
    api_version: str = ""
    uid: str = ""
    controller: bool = False


@dataclass
class Pod:
    """The parts of a pod the label collector needs."""

    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    owner_references: list[OwnerReference] = field(default_factory=list)


class EventHandler(ABC):
    """Acts on signals from a watcher of the events resource."""

    @abstractmethod
    def on_add(self, event):
        """Handle an event added during watching."""

    @abstractmethod
    def on_update(self, old_event, new_event):
        """Handle an updated event; ``old_event`` may be ``None``."""

    @abstractmethod
    def on_delete(self, event):
        """Handle a deleted event."""


class Sink(EventHandler):
    """Handles events and the initial lists of events.

    ``on_add`` only sees events added while watching; a sink that cares about
    the events present before must handle them in ``on_list``.
    """

    @abstractmethod
    def on_list(self, event_list):
        """Handle a list of events fetched before watching."""

    @abstractmethod
    def run(self, stop_event):
        """Block, doing the sink's work, until ``stop_event`` is set."""