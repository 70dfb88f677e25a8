"""Access to the GCE metadata server, and the cluster configuration read from it."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import requests

log = logging.getLogger(__name__)

_DEFAULT_METADATA_HOST = "169.254.169.254"


class MetadataError(Exception):
    """The metadata server could not be reached or did not have a value."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class MetadataClient:
    """A small client for the metadata server's v1 API."""

    def __init__(self, base_url: str | None = None, session=None, timeout: float = 5.0):
        if base_url is None:
            host = os.environ.get("GCE_METADATA_HOST") or _DEFAULT_METADATA_HOST
            base_url = f"http://{host}/computeMetadata/v1"
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def _request(self, url: str) -> requests.Response:
        try:
            return self._session.get(
                url, headers={"Metadata-Flavor": "Google"}, timeout=self.timeout
            )
        except requests.RequestException as err:
            raise MetadataError(f"metadata request {url!r} failed: {err}") from err

    def get(self, path) -> str:
        """Return the raw value stored under ``path``."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        response = self._request(url)
        if response.status_code == 404:
            raise MetadataError(f"metadata {path!r} not defined", status=404)
        if response.status_code != 200:
            raise MetadataError(
                f"metadata request {url!r} returned status {response.status_code}",
                status=response.status_code,
            )
        return response.text

    def on_gce(self) -> bool:
        """Tell whether a metadata server answers."""
        try:
            response = self._request(f"{self.base_url}/")
        except MetadataError:
            return False
        return response.headers.get("Metadata-Flavor") == "Google"

    def project_id(self) -> str:
        return self.get("project/project-id").strip()

    def zone(self) -> str:
        return self.get("instance/zone").strip().rsplit("/", 1)[-1]

    def hostname(self) -> str:
        return self.get("instance/hostname").strip()

    def instance_attribute(self, name) -> str:
        return self.get(f"instance/attributes/{name}")


@dataclass(frozen=True)
class GceConfig:
    """The GCE parameters a cluster component runs with."""

    project: str
    location: str
    cluster: str
    instance: str


def get_gce_config(client: MetadataClient) -> GceConfig:
    """Read the project, cluster location and name, and host from the metadata server."""
    if not client.on_gce():
        raise MetadataError("Not running on GCE.")
    try:
        project = client.project_id()
    except MetadataError as err:
        raise MetadataError(f"error while getting project id: {err}") from err

    try:
        location = client.instance_attribute("cluster-location")
    except MetadataError as err:
        log.warning("Failed to retrieve cluster location, falling back to local zone: %s", err)
        try:
            location = client.zone()
        except MetadataError as zone_err:
            raise MetadataError(
                f"error while getting cluster location: {zone_err}"
            ) from zone_err

    try:
        cluster = client.instance_attribute("cluster-name")
    except MetadataError as err:
        raise MetadataError(f"error while getting cluster name: {err}") from err

    try:
        instance = client.hostname()
    except MetadataError as err:
        raise MetadataError(f"error while getting instance hostname: {err}") from err

    return GceConfig(
        project=project,
        location=location.strip(),
        cluster=cluster.strip(),
        instance=instance,
    )