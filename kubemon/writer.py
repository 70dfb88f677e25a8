"""Writing log entries to the logging API, retrying until accepted or rejected."""

from __future__ import annotations

import json
import logging
import time

import requests

from kubemon.gce_metadata import MetadataError
from kubemon.log_entries import (
    REQUEST_COUNT,
    SUCCESSFULLY_SENT_ENTRY_COUNT,
    measure_latency_on_success,
)
from kubemon.sink_config import DEFAULT_UNIVERSE_DOMAIN

log = logging.getLogger(__name__)

RETRY_DELAY = 10.0
BAD_REQUEST = 400

_TOKEN_PATH = "instance/service-accounts/default/token"
_TOKEN_EARLY_REFRESH = 60.0


class LoggingApiError(Exception):
    """The logging API answered with an error status."""

    def __init__(self, code: int, message: str = ""):
        super().__init__(f"logging API returned status {code}: {message}")
        self.code = code


class LoggingService:
    """Posts write requests to the logging API.

    With ``metadata`` given, access tokens of the instance's default service
    account are fetched from it and sent along.
    """

    def __init__(
        self,
        endpoint: str = "",
        universe_domain: str = DEFAULT_UNIVERSE_DOMAIN,
        session=None,
        metadata=None,
        timeout: float = 30.0,
    ):
        base = endpoint or f"https://logging.{universe_domain or DEFAULT_UNIVERSE_DOMAIN}/"
        self.url = base.rstrip("/") + "/v2/entries:write"
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

    def write_entries(self, request) -> int:
        """Send one write request; return the HTTP status on success."""
        headers = {"Content-Type": "application/json"}
        authorization = self._authorization()
        if authorization is not None:
            headers["Authorization"] = authorization
        response = self._session.post(
            self.url, data=json.dumps(request), headers=headers, timeout=self.timeout
        )
        if not 200 <= response.status_code < 300:
            raise LoggingApiError(response.status_code, response.text)
        return response.status_code


class StackdriverWriter:
    """Writes batches of entries, retrying forever unless the API calls the request bad."""

    def __init__(self, service, retry_delay: float = RETRY_DELAY, sleep=time.sleep):
        self.service = service
        self.retry_delay = retry_delay
        self._sleep = sleep

    def write(self, entries, log_name, resource) -> None:
        entries = list(entries)
        request: dict = {
            "entries": [entry.to_dict() for entry in entries],
            "logName": log_name,
        }
        if resource is not None:
            request["resource"] = resource.to_dict()

        while True:
            try:
                status = self.service.write_entries(request)
            except LoggingApiError as err:
                REQUEST_COUNT.labels(str(err.code)).inc()
                # A malformed request will not get better by retrying.
                if err.code == BAD_REQUEST:
                    log.warning(
                        "Received bad request response from server, "
                        "assuming some entries were rejected: %s",
                        err,
                    )
                    return
                log.warning("Failed to send request to Stackdriver: %s", err)
            except (requests.RequestException, MetadataError) as err:
                log.warning("Failed to send request to Stackdriver: %s", err)
            else:
                REQUEST_COUNT.labels(str(status)).inc()
                SUCCESSFULLY_SENT_ENTRY_COUNT.add(len(entries))
                measure_latency_on_success(entries)
                return
            self._sleep(self.retry_delay)