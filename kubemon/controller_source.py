"""The controller manager as a source of monitoring time series."""

from __future__ import annotations

import requests

from kubemon.controller_client import ControllerClient
from kubemon.controller_translator import ControllerTranslator
from kubemon.gcm_types import CreateTimeSeriesRequest
from kubemon.poll import MetricsSource, SourceConfig


class ControllerSource(MetricsSource):
    """Scrapes the controller manager and translates what it reports."""

    def __init__(self, cfg: SourceConfig, session=None, clock=None):
        self.translator = ControllerTranslator(
            cfg.zone, cfg.project, cfg.cluster, cfg.instance, cfg.resolution, clock=clock
        )
        try:
            self.client = ControllerClient(cfg.host, cfg.port, session)
        except ValueError as err:
            raise ValueError(
                f"Failed to create a controller client with config {cfg}: {err}"
            ) from err
        self._project_path = f"projects/{cfg.project}"

    @property
    def name(self) -> str:
        return "kube-controller-manager"

    @property
    def project_path(self) -> str:
        return self._project_path

    def get_time_series_request(self) -> CreateTimeSeriesRequest:
        try:
            metrics = self.client.get_metrics()
        except requests.RequestException as err:
            raise requests.RequestException(
                f"Failed to get metrics from controller: {err}"
            ) from err
        except ValueError as err:
            raise ValueError(f"Failed to get metrics from controller: {err}") from err
        return self.translator.translate(metrics)