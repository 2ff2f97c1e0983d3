"""Shared fixtures for provisioning tests."""

import pytest
from unittest.mock import MagicMock

from search_provisioner.credentials import CredentialProvider
from search_provisioner.models import PipelineConfig


class FakeKeyProvider(CredentialProvider):
    """Counts lookups so tests can assert a fresh key per stage."""

    def __init__(self, key="test-admin-key"):
        self.key = key
        self.calls = []

    def get_admin_key(self, resource_group, service_name):
        self.calls.append((resource_group, service_name))
        return self.key


def make_response(status_code=201, text="", json_body=None):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.json.return_value = json_body or {}
    return response


@pytest.fixture
def make_config():
    def _make(**overrides):
        values = {
            "resource_group": "rg-search",
            "service_name": "my-search",
            "embedding_service_name": "my-openai",
            "container_name": "docs",
            "connection_string": "DefaultEndpointsProtocol=https;AccountName=acct;AccountKey=secret",
        }
        values.update(overrides)
        return PipelineConfig(**values)
    return _make


@pytest.fixture
def key_provider():
    return FakeKeyProvider()
