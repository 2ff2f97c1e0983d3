"""
REST client for the Azure AI Search management endpoints.

Upserts are full replacements: the same PUT creates a resource on the first
call and overwrites it completely afterwards. Nothing is merged with what
already exists on the service.
"""

import json
import os
import re
from abc import ABC, abstractmethod
from typing import Optional

import requests

from .errors import APIError, CredentialError, TransportError
from .models import RunSettings, UpsertOutcome
from .payloads import to_json


def build_headers(api_key: str) -> dict:
    return {
        "api-key": api_key,
        "Content-Type": "application/json",
    }


def data_source_url(endpoint: str, name: str, api_version: str) -> str:
    return f"{endpoint}/datasources('{name}')?api-version={api_version}"


def index_url(endpoint: str, name: str, api_version: str) -> str:
    return f"{endpoint}/indexes('{name}')?api-version={api_version}"


def indexer_url(endpoint: str, name: str, api_version: str, action: str = "") -> str:
    path = f"{endpoint}/indexers/{name}"
    if action:
        path = f"{path}/{action}"
    return f"{path}?api-version={api_version}"


def is_success(status_code: Optional[int]) -> bool:
    return status_code is not None and 200 <= status_code < 300


class ErrorSink(ABC):
    """Receives the detail of failed calls for later inspection."""

    @abstractmethod
    def record(self, outcome: UpsertOutcome) -> Optional[str]:
        """Persist the failure and return where it went, if anywhere."""
        pass


class NullErrorSink(ErrorSink):
    def record(self, outcome: UpsertOutcome) -> Optional[str]:
        return None


class FileErrorSink(ErrorSink):
    """Writes one JSON file per failed resource into `artifact_dir`."""

    def __init__(self, artifact_dir: str):
        self.artifact_dir = artifact_dir

    def path_for(self, outcome: UpsertOutcome) -> str:
        safe_name = re.sub(r"[^A-Za-z0-9_.-]", "_", outcome.resource_name)
        return os.path.join(self.artifact_dir, f"{outcome.resource_kind}-{safe_name}-error.json")

    def record(self, outcome: UpsertOutcome) -> Optional[str]:
        os.makedirs(self.artifact_dir, exist_ok=True)
        path = self.path_for(outcome)
        artifact = {
            "resourceKind": outcome.resource_kind,
            "resourceName": outcome.resource_name,
            "url": outcome.url,
            "httpStatus": outcome.http_status,
            "errorDetail": outcome.error_detail,
        }
        with open(path, "w", encoding="utf-8") as f:
            json.dump(artifact, f, indent=2)
        return path


class SearchApiClient:
    """
    Issues requests against one search service and classifies the responses.

    No retries: a failed call is reported once and the caller decides what to do.
    """

    def __init__(self, settings: Optional[RunSettings] = None, error_sink: Optional[ErrorSink] = None):
        self.settings = settings or RunSettings()
        self.logger = self.settings.logger
        self.error_sink = error_sink or NullErrorSink()

    def send(self, method: str, url: str, headers: dict, body=None) -> requests.Response:
        """Send one request, raising TransportError or APIError on failure."""
        data = to_json(body).encode("utf-8") if body is not None else None
        self.logger.debug(f"{method} {url}")

        try:
            response = requests.request(
                method=method,
                url=url,
                headers=headers,
                data=data,
                timeout=self.settings.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(str(e)) from e

        if not is_success(response.status_code):
            raise APIError(response.status_code, response.text)
        return response

    def upsert(
        self,
        method: str,
        url: str,
        headers: dict,
        body: dict,
        resource_kind: str = "",
        resource_name: str = "",
        sink: Optional[ErrorSink] = None,
    ) -> UpsertOutcome:
        """
        Create or fully replace a resource.

        Only PUT is accepted. `headers` must carry the admin key (see
        `build_headers`), otherwise CredentialError is raised; the content type
        is always forced to JSON. Transport failures and non-2xx responses are
        recorded by the error sink and returned as a failed outcome instead of
        being raised.
        """
        if method.upper() != "PUT":
            raise ValueError(f"Upsert requires PUT, got {method}")
        if not headers.get("api-key"):
            raise CredentialError("Upsert requires an api-key header (see build_headers)")

        request_headers = dict(headers)
        request_headers["Content-Type"] = "application/json"

        outcome = UpsertOutcome(
            resource_kind=resource_kind,
            resource_name=resource_name,
            succeeded=False,
            url=url,
            document=body,
        )

        try:
            response = self.send("PUT", url, request_headers, body)
        except APIError as e:
            outcome.http_status = e.status_code
            outcome.error_detail = e.body
        except TransportError as e:
            outcome.error_detail = str(e)
        else:
            outcome.succeeded = True
            outcome.http_status = response.status_code
            self.logger.info(f"Upserted {resource_kind} '{resource_name}' ({response.status_code})")
            return outcome

        outcome.artifact_path = (sink or self.error_sink).record(outcome)
        self.logger.error(
            f"Failed to upsert {resource_kind} '{resource_name}': "
            f"{outcome.http_status if outcome.http_status is not None else 'no response'}"
        )
        if outcome.artifact_path:
            self.logger.error(f"Error detail written to {outcome.artifact_path}")
        else:
            self.logger.debug(outcome.error_detail)
        return outcome

    def run_indexer(self, url: str, headers: dict) -> bool:
        """Trigger an indexer run; the service answers 202 when it is queued."""
        try:
            response = self.send("POST", url, headers)
        except (APIError, TransportError) as e:
            self.logger.error(f"Error running indexer: {e}")
            return False
        return response.status_code == 202

    def get_indexer_status(self, url: str, headers: dict) -> Optional[dict]:
        try:
            response = self.send("GET", url, headers)
        except (APIError, TransportError) as e:
            self.logger.error(f"Error getting indexer status: {e}")
            return None
        return response.json()

    def delete(self, url: str, headers: dict) -> bool:
        """Delete a resource. A missing resource counts as deleted."""
        try:
            self.send("DELETE", url, headers)
        except APIError as e:
            if e.status_code == 404:
                return True
            self.logger.error(f"Error deleting {url}: {e}")
            return False
        except TransportError as e:
            self.logger.error(f"Error deleting {url}: {e}")
            return False
        return True
