# kubemon

A library of building blocks for two kinds of Kubernetes monitoring agents:

* **Event export.** It turns cluster events into structured log entries and
  writes them to the logging API.
* **Node metrics.** It scrapes the kubelet's stats summary and the
  kube-controller-manager's Prometheus endpoint, translates the figures into
  monitoring time series and pushes them to the monitoring API.

The only runtime dependency is `requests`.

## Event export

| Module | What it provides |
| --- | --- |
| `kubemon.kube_objects` | Dataclasses `Event`, `EventSeries`, `EventList`, `ObjectReference`, `Pod` and `OwnerReference`. `Event.to_dict()` returns the core/v1 JSON shape. Also the abstract `EventHandler` (`on_add`, `on_update`, `on_delete`) and `Sink` (adds `on_list`, `run`) interfaces. |
| `kubemon.resources` | `MonitoredResourceFactory`. With `ResourceModel.NEW` it maps an event to a `k8s_pod`, `k8s_node` or `k8s_cluster` resource. With `ResourceModel.OLD` it always gives `gke_cluster`. `load_factory_config(resource_model, metadata)` reads the cluster name, project and location from the metadata server. It falls back to the zone when no cluster location is set. |
| `kubemon.log_entries` | `LogEntryFactory.from_event` sets severity (`WARNING` for `Warning` events, otherwise `INFO`), the timestamp (last timestamp, or the series' last observed time) and, for pod events, the owner labels from a pod label collector. `from_message` builds a `WARNING` text entry stamped with the clock. `serialize_event` drops `count` and `firstTimestamp` from the payload. |
| `kubemon.pod_labels` | `CachingPodLabelCollector.get_labels(namespace, pod_name)` gives a pod's top-level controller: Deployment, DaemonSet, StatefulSet, CronJob, JobSet or Job. Found labels are kept in one `LruCache`, and pods without labels in a second one with a TTL. The client you pass must offer `get_pod(namespace, name, timeout)` and raise `ApiStatusError` for API errors. Pods in ignored namespaces get `None`. |
| `kubemon.sink_config` | `SinkConfig` holds the flush delay (5 s), maximum buffer size (100), maximum concurrency (10), log name, endpoint and universe domain. `gce_sink_config(metadata)` fills in the log name `projects/<project>/logs/events`. |
| `kubemon.writer` | `LoggingService.write_entries` posts a write request. When given a `MetadataClient`, it attaches the default service account's access token. `StackdriverWriter.write(entries, log_name, resource)` retries every 10 seconds until the write succeeds. It gives up only on 400 Bad Request. |
| `kubemon.concurrency` | `run_concurrently_until(stop_event, *funcs)` runs each function in its own thread with the `threading.Event`. It returns once the event is set and every function has returned. |

Example:

```python
from kubemon.kube_objects import Event, ObjectReference
from kubemon.log_entries import LogEntryFactory
from kubemon.resources import MonitoredResourceFactory, MonitoredResourceFactoryConfig, ResourceModel
from kubemon.writer import LoggingService, StackdriverWriter

config = MonitoredResourceFactoryConfig(ResourceModel.NEW, "my-cluster", "us-central1", "my-project")
resources = MonitoredResourceFactory(config)
entries = LogEntryFactory(None, resources)

event = Event(type="Warning", involved_object=ObjectReference(kind="Node", name="node-1"))
writer = StackdriverWriter(LoggingService())
writer.write([entries.from_event(event)], "projects/my-project/logs/events", resources.default_resource)
```

## Node metrics

| Module | What it provides |
| --- | --- |
| `kubemon.kubelet_client` | `KubeletClient.get_summary()` fetches `/stats/summary` over http, or over https on the authenticated port. It parses the result into a `Summary`: `NodeStats`, `PodStats`, `ContainerStats`, `CpuStats`, `MemoryStats`, `FsStats`. |
| `kubemon.series_builders` | `TimeSeriesFactory`, `MetricMetadata` and the builders `translate_cpu`, `translate_memory`, `translate_fs` and `container_translate_fs`. Missing stats raise `TranslationError`. |
| `kubemon.kubelet_translator` | `KubeletTranslator` turns a `Summary` into node and container time series. An empty schema prefix selects the legacy `gke_container` model. A prefix such as `k8s_` selects separate node and container resources. For duplicate containers, only the latest start counts. |
| `kubemon.controller_client` | `parse_prometheus_text` parses the Prometheus text format. `ControllerMetrics.from_text` picks out `node_collector_evictions_number` and `process_start_time_seconds`. `ControllerClient.get_metrics()` fetches `/metrics`. |
| `kubemon.controller_translator` | `ControllerTranslator` emits the cumulative node eviction count series. |
| `kubemon.kubelet_source`, `kubemon.controller_source` | `KubeletSource` and `ControllerSource` implement `MetricsSource` by combining a client with a translator. `secured_session(cert_location)` builds a session that trusts only a given PEM certificate. |
| `kubemon.poll` | `SourceConfig`, the `MetricsSource` interface and `MonitoringService.create_time_series`. `once(source, service)` scrapes a source once and pushes the result in chunks of at most 200 series (`sub_requests`). It stops at the first failed chunk. |
| `kubemon.gcm_types` | `TimeSeries`, `Point`, `TimeInterval`, `TypedValue`, `Metric`, `GcmResource` and `CreateTimeSeriesRequest`. `to_dict()` gives the API's JSON shape. `format_rfc3339` formats times to whole seconds. |

Example:

```python
from kubemon.gce_metadata import MetadataClient
from kubemon.kubelet_source import KubeletSource
from kubemon.poll import MonitoringService, SourceConfig, once

cfg = SourceConfig(
    zone="us-central1-f", project="my-project", cluster="my-cluster",
    cluster_location="us-central1", host="10.0.0.2", instance="node-1",
    instance_id="1234", port=10255, resolution=10,
)
once(KubeletSource(cfg), MonitoringService(metadata=MetadataClient()))
```

## Instrumentation

`kubemon.telemetry` has in-process `Counter`, `CounterVec` and `Histogram` types, plus `exponential_buckets`. The modules above use them to count:

* scrapes,
* pushed and dropped time series,
* pod label cache operations,
* logging requests,
* latencies.

## GCE metadata

`kubemon.gce_metadata.MetadataClient` reads values from the metadata server:

* `project_id()`
* `zone()`
* `hostname()`
* `instance_attribute(name)`
* `get(path)`

The server address can be overridden with `GCE_METADATA_HOST`. A failed lookup raises `MetadataError`. `get_gce_config(client)` gathers project, location, cluster and instance into a `GceConfig`.

## What the package does not do

* **No commands or daemons.** There is no polling loop and no entry point. You call `once` or `StackdriverWriter.write` from your own process.
* **No watching of the API server for events.** You feed `Event` objects in yourself.
* **No buffering sink.** `Sink` is only an interface. Nothing in the package batches entries or limits concurrent writes for you.
* **No resolution of `use-gce` settings.** `SourceConfig` must be filled in directly, or from `MetadataClient` calls of your own.
* **No exposure of the counters over HTTP.** The counters are not served to any endpoint.