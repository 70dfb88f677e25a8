"""Settings of the logging sink and their defaults on GCE."""

from __future__ import annotations

from dataclasses import dataclass

from kubemon.gce_metadata import MetadataError

DEFAULT_FLUSH_DELAY = 5.0
DEFAULT_MAX_BUFFER_SIZE = 100
DEFAULT_MAX_CONCURRENCY = 10
DEFAULT_ENDPOINT = ""
DEFAULT_UNIVERSE_DOMAIN = "googleapis.com"

EVENTS_LOG_NAME = "events"


@dataclass
class SinkConfig:
    """How the sink batches entries and where it sends them.

    ``flush_delay`` is in seconds.
    """

    flush_delay: float = DEFAULT_FLUSH_DELAY
    max_buffer_size: int = DEFAULT_MAX_BUFFER_SIZE
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    log_name: str = ""
    endpoint: str = DEFAULT_ENDPOINT
    universe_domain: str = ""


def gce_sink_config(metadata) -> SinkConfig:
    """Return the default sink settings for the project this instance belongs to."""
    if not metadata.on_gce():
        raise MetadataError("not running on GCE, which is not supported for Stackdriver sink")
    try:
        project_id = metadata.project_id()
    except MetadataError as err:
        raise MetadataError(f"failed to get project id: {err}") from err
    return SinkConfig(
        flush_delay=DEFAULT_FLUSH_DELAY,
        max_buffer_size=DEFAULT_MAX_BUFFER_SIZE,
        max_concurrency=DEFAULT_MAX_CONCURRENCY,
        log_name=f"projects/{project_id}/logs/{EVENTS_LOG_NAME}",
        endpoint=DEFAULT_ENDPOINT,
    )