"""Polling a metrics source once and pushing the result to the monitoring API."""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import requests

from kubemon.gce_metadata import MetadataError
from kubemon.gcm_types import CreateTimeSeriesRequest
from kubemon.telemetry import (
    observe_failed_request,
    observe_failed_scrape,
    observe_ingestion_latency,
    observe_successful_request,
    observe_successful_scrape,
)

log = logging.getLogger(__name__)

MAX_TIME_SERIES_PER_REQUEST = 200
DEFAULT_MONITORING_ENDPOINT = "https://monitoring.googleapis.com/"

_TOKEN_PATH = "instance/service-accounts/default/token"
_TOKEN_EARLY_REFRESH = 60.0


@dataclass
class SourceConfig:
    """What is needed to set up a data source such as the kubelet.

    ``resolution`` is in seconds.
    """

    zone: str = ""
    project: str = ""
    cluster: str = ""
    cluster_location: str = ""
    host: str = ""
    instance: str = ""
    instance_id: str = ""
    schema_prefix: str = ""
    certificate_location: str = ""
    monitored_resource_labels: dict[str, str] = field(default_factory=dict)
    port: int = 0
    resolution: float = 0.0


class MetricsSource(ABC):
    """Provides metrics of a component in the monitoring API's format."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The name of the monitored component."""

    @property
    @abstractmethod
    def project_path(self) -> str:
        """The project path, as ``projects/<id>``."""

    @abstractmethod
    def get_time_series_request(self) -> CreateTimeSeriesRequest:
        """Scrape the component and return its time series."""


class MonitoringService:
    """Posts time series to the monitoring API.

    With ``metadata`` given, access tokens of the instance's default service
    account are fetched from it and sent along.
    """

    def __init__(self, endpoint: str = "", session=None, metadata=None, timeout: float = 30.0):
        base = endpoint or DEFAULT_MONITORING_ENDPOINT
        self.base_url = base if base.endswith("/") else base + "/"
        self.timeout = timeout
        self._session = session or requests.Session()
        self._metadata = metadata
        self._token: str | None = None
        self._token_expiry = 0.0

    def _authorization(self) -> str | None:
        if self._metadata is None:
            return None
        now = time.monotonic()
        if self._token is None or now >= self._token_expiry:
            try:
                data = json.loads(self._metadata.get(_TOKEN_PATH))
                token = data["access_token"]
                lifetime = float(data.get("expires_in", 0))
            except (ValueError, KeyError, TypeError) as err:
                raise MetadataError(f"malformed token response: {err}") from err
            self._token = token
            self._token_expiry = now + max(0.0, lifetime - _TOKEN_EARLY_REFRESH)
        return f"Bearer {self._token}"

    def create_time_series(self, project_path, request) -> None:
        """Create the time series of ``request``; raise ``requests.HTTPError`` on failure."""
        headers = {"Content-Type": "application/json"}
        authorization = self._authorization()
        if authorization is not None:
            headers["Authorization"] = authorization
        response = self._session.post(
            f"{self.base_url}v3/{project_path}/timeSeries",
            data=json.dumps(request.to_dict()),
            headers=headers,
            timeout=self.timeout,
        )
        response.raise_for_status()


def sub_requests(request: CreateTimeSeriesRequest) -> list[CreateTimeSeriesRequest]:
    """Split a request into requests of at most the API's limit of time series."""
    series = request.time_series
    if len(series) <= MAX_TIME_SERIES_PER_REQUEST:
        return [request]
    parts = [
        CreateTimeSeriesRequest(time_series=series[start : start + MAX_TIME_SERIES_PER_REQUEST])
        for start in range(0, len(series), MAX_TIME_SERIES_PER_REQUEST)
    ]
    log.debug("Splitting CreateTimeSeriesRequest into %d requests", len(parts))
    return parts


def once(source: MetricsSource, service) -> None:
    """Scrape ``source`` and push its time series to ``service`` one time."""
    scraped_at = time.monotonic()
    try:
        request = source.get_time_series_request()
    except Exception as err:  # a failed scrape is counted and skipped
        observe_failed_scrape(source.name)
        log.warning("Failed to create time series request: %s", err)
        return
    observe_successful_scrape(source.name)

    for sub_request in sub_requests(request):
        count = len(sub_request.time_series)
        try:
            service.create_time_series(source.project_path, sub_request)
        except (requests.RequestException, MetadataError) as err:
            log.warning("Failed to write time series data, err: %s", err)
            observe_failed_request(count)
            log.warning("JSON GCM: %s", json.dumps(sub_request.to_dict()))
            return
        log.debug("Successfully wrote TimeSeries data for %s to GCM v3 API.", source.name)
        observe_successful_request(count)
        observe_ingestion_latency(count, time.monotonic() - scraped_at)