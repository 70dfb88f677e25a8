"""The kubelet as a source of monitoring time series."""

from __future__ import annotations

import re
import ssl

import requests

from kubemon.gcm_types import CreateTimeSeriesRequest
from kubemon.kubelet_client import KubeletClient
from kubemon.kubelet_translator import KubeletTranslator
from kubemon.poll import MetricsSource, SourceConfig
from kubemon.series_builders import TranslationError

_PEM_CERTIFICATE = re.compile(
    r"-----BEGIN CERTIFICATE-----\s.*?-----END CERTIFICATE-----", re.DOTALL
)


def secured_session(cert_location) -> requests.Session:
    """Return a session that trusts only the certificates in ``cert_location``."""
    try:
        with open(cert_location, encoding="ascii", errors="replace") as handle:
            text = handle.read()
    except OSError as err:
        raise ValueError(f"failed to read file with kubelet certificate: {err}") from err
    blocks = _PEM_CERTIFICATE.findall(text)
    if not blocks:
        raise ValueError("failed to parse kubelet certificate")
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    try:
        context.load_verify_locations(cadata="\n".join(blocks))
    except ssl.SSLError as err:
        raise ValueError("failed to parse kubelet certificate") from err
    session = requests.Session()
    session.verify = str(cert_location)
    return session


class KubeletSource(MetricsSource):
    """Scrapes the kubelet's stats summary and translates it."""

    def __init__(self, cfg: SourceConfig, session=None, clock=None):
        self.translator = KubeletTranslator(
            cfg.zone,
            cfg.project,
            cfg.cluster,
            cfg.cluster_location,
            cfg.instance,
            cfg.instance_id,
            cfg.schema_prefix,
            cfg.monitored_resource_labels,
            cfg.resolution,
            clock=clock,
        )
        use_auth_port = False
        if cfg.certificate_location:
            try:
                session = secured_session(cfg.certificate_location)
            except ValueError as err:
                raise ValueError(f"failed to create secure http client: {err}") from err
            use_auth_port = True
        try:
            self.client = KubeletClient(cfg.host, cfg.port, session, use_auth_port)
        except ValueError as err:
            raise ValueError(
                f"Failed to create a kubelet client with config {cfg}: {err}"
            ) from err
        self._project_path = f"projects/{cfg.project}"

    @property
    def name(self) -> str:
        return "kubelet"

    @property
    def project_path(self) -> str:
        return self._project_path

    def get_time_series_request(self) -> CreateTimeSeriesRequest:
        try:
            summary = self.client.get_summary()
        except requests.RequestException as err:
            raise requests.RequestException(f"Failed to get summary from kubelet: {err}") from err
        except ValueError as err:
            raise ValueError(f"Failed to get summary from kubelet: {err}") from err
        try:
            return self.translator.translate(summary)
        except TranslationError as err:
            raise TranslationError(
                f"Failed to translate data from summary {summary}: {err}"
            ) from err