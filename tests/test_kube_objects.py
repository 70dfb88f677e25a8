import json
import threading
from datetime import datetime, timezone

import pytest

from kubemon.kube_objects import (
    Event,
    EventHandler,
    EventList,
    EventSeries,
    ObjectReference,
    OwnerReference,
    Pod,
    Sink,
)


def test_event_to_dict_identifies_kind_and_version():
    data = Event().to_dict()
    assert data["kind"] == "Event"
    assert data["apiVersion"] == "v1"
    assert data["firstTimestamp"] is None
    assert data["lastTimestamp"] is None
    assert "count" not in data
    assert "series" not in data


def test_event_to_dict_carries_fields():
    event = Event(
        name="ev1",
        namespace="ns",
        involved_object=ObjectReference(kind="Pod", name="p", namespace="ns"),
        reason="Killing",
        message="stopping",
        type="Warning",
        count=3,
    )
    data = event.to_dict()
    assert data["metadata"]["name"] == "ev1"
    assert data["metadata"]["namespace"] == "ns"
    assert data["involvedObject"] == {"kind": "Pod", "namespace": "ns", "name": "p"}
    assert data["reason"] == "Killing"
    assert data["message"] == "stopping"
    assert data["type"] == "Warning"
    assert data["count"] == 3


def test_event_to_dict_is_json_serialisable_and_formats_times():
    stamp = datetime(2020, 1, 2, 3, 4, 5, 123456, tzinfo=timezone.utc)
    event = Event(
        last_timestamp=stamp,
        series=EventSeries(count=2, last_observed_time=stamp),
    )
    data = json.loads(json.dumps(event.to_dict()))
    assert data["lastTimestamp"] == "2020-01-02T03:04:05Z"
    assert data["series"]["lastObservedTime"] == "2020-01-02T03:04:05.123456Z"
    assert data["series"]["count"] == 2


def test_event_list_and_pod_defaults_are_independent():
    first, second = EventList(), EventList()
    first.items.append(Event(name="a"))
    assert second.items == []
    pod = Pod(owner_references=[OwnerReference(kind="DaemonSet", name="agent")])
    assert Pod().owner_references == []
    assert pod.owner_references[0].name == "agent"


def test_abstract_interfaces_cannot_be_instantiated():
    with pytest.raises(TypeError):
        EventHandler()
    with pytest.raises(TypeError):
        Sink()


class _RecordingSink(Sink):
    def __init__(self):
        self.seen = []

    def on_add(self, event):
        self.seen.append(("add", event))

    def on_update(self, old_event, new_event):
        self.seen.append(("update", new_event))

    def on_delete(self, event):
        self.seen.append(("delete", event))

    def on_list(self, event_list):
        self.seen.append(("list", event_list))

    def run(self, stop_event):
        stop_event.wait()
        self.seen.append(("stopped", None))


def test_concrete_sink_receives_calls():
    sink = _RecordingSink()
    event = Event(name="x")
    sink.on_add(event)
    sink.on_list(EventList(items=[event]))
    stop = threading.Event()
    stop.set()
    sink.run(stop)
    assert [kind for kind, _ in sink.seen] == ["add", "list", "stopped"]
    assert isinstance(sink, EventHandler)