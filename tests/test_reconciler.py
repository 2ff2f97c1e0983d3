"""Tests for stage ordering, dry-run and failure handling."""

from unittest.mock import MagicMock, patch

import pytest

from search_provisioner.api_client import ErrorSink, FileErrorSink, SearchApiClient
from search_provisioner.credentials import StaticKeyProvider
from search_provisioner.errors import ConfigurationError, CredentialError
from search_provisioner.reconciler import (
    DATA_SOURCE,
    DATA_SOURCE_UPSERTED,
    INDEX,
    INDEXER,
    INDEXER_UPSERTED,
    IDLE,
    Reconciler,
    ReconcileResult,
    failed_state,
)
from tests.conftest import make_response


def test_three_puts_in_dependency_order(make_config, key_provider):
    config = make_config()
    reconciler = Reconciler(config, SearchApiClient(), key_provider)

    with patch(
        "search_provisioner.api_client.requests.request",
        side_effect=[make_response(201), make_response(201), make_response(200)],
    ) as request:
        result = reconciler.reconcile()

    assert result.succeeded is True
    assert result.state == INDEXER_UPSERTED
    assert [o.resource_kind for o in result.outcomes] == [DATA_SOURCE, INDEX, INDEXER]
    assert all(o.succeeded for o in result.outcomes)

    calls = request.call_args_list
    assert [c.kwargs["method"] for c in calls] == ["PUT", "PUT", "PUT"]
    assert "/datasources('docs-datasource')?api-version=2024-05-01-preview" in calls[0].kwargs["url"]
    assert "/indexes('docs-index')?api-version=2024-07-01" in calls[1].kwargs["url"]
    assert "/indexers/docs-indexer?api-version=2024-07-01" in calls[2].kwargs["url"]
    assert all(c.kwargs["headers"]["api-key"] == "test-admin-key" for c in calls)

    # A fresh key per stage
    assert key_provider.calls == [("rg-search", "my-search")] * 3


def test_dry_run_makes_no_calls(make_config, key_provider):
    config = make_config(dry_run=True)
    client = MagicMock(spec=SearchApiClient)
    reconciler = Reconciler(config, client, key_provider)

    result = reconciler.reconcile()

    assert result.succeeded is True
    assert len(result.outcomes) == 3
    for outcome in result.outcomes:
        assert outcome.succeeded is True
        assert outcome.dry_run is True
        assert outcome.url.startswith("https://my-search.search.windows.net/")
        assert outcome.document["name"] == outcome.resource_name
    assert result.outcome_for(INDEX).document["vectorSearch"]["algorithms"][0]["kind"] == "hnsw"

    client.upsert.assert_not_called()
    assert key_provider.calls == []


def test_dry_run_never_touches_transport(make_config, key_provider):
    reconciler = Reconciler(make_config(dry_run=True), SearchApiClient(), key_provider)

    with patch("search_provisioner.api_client.requests.request") as request:
        reconciler.reconcile()

    request.assert_not_called()


def test_data_source_failure_halts_pipeline(make_config, key_provider, tmp_path):
    sink = FileErrorSink(str(tmp_path))
    reconciler = Reconciler(make_config(), SearchApiClient(), key_provider, error_sink=sink)

    with patch(
        "search_provisioner.api_client.requests.request",
        return_value=make_response(403, text="Forbidden"),
    ) as request:
        result = reconciler.reconcile()

    assert request.call_count == 1
    assert result.succeeded is False
    assert result.state == failed_state(DATA_SOURCE)
    assert len(result.outcomes) == 1

    outcome = result.outcomes[0]
    assert outcome.http_status == 403
    assert outcome.artifact_path == str(tmp_path / "datasource-docs-datasource-error.json")
    assert (tmp_path / "datasource-docs-datasource-error.json").exists()


def test_index_failure_keeps_data_source(make_config, key_provider):
    """No rollback: the data source stays even though the index failed."""
    sink = MagicMock(spec=ErrorSink)
    sink.record.return_value = None
    reconciler = Reconciler(make_config(), SearchApiClient(), key_provider, error_sink=sink)

    with patch(
        "search_provisioner.api_client.requests.request",
        side_effect=[make_response(201), make_response(400, text="Invalid field")],
    ) as request:
        result = reconciler.reconcile()

    assert request.call_count == 2
    assert [c.kwargs["method"] for c in request.call_args_list] == ["PUT", "PUT"]
    assert result.state == failed_state(INDEX)
    assert result.outcome_for(DATA_SOURCE).succeeded is True
    assert result.outcome_for(INDEXER) is None


def test_credential_failure_propagates(make_config):
    reconciler = Reconciler(make_config(), MagicMock(spec=SearchApiClient), StaticKeyProvider(None))

    with pytest.raises(CredentialError):
        reconciler.reconcile()


def test_configuration_error_before_any_call(make_config, key_provider):
    config = make_config(managed_identity_resource_id="/mi", storage_resource_id="/sa")
    client = MagicMock(spec=SearchApiClient)
    reconciler = Reconciler(config, client, key_provider)

    with pytest.raises(ConfigurationError):
        reconciler.reconcile()

    client.upsert.assert_not_called()
    assert key_provider.calls == []


def test_result_state_defaults():
    result = ReconcileResult()

    assert result.state == IDLE
    assert result.succeeded is False
    assert DATA_SOURCE_UPSERTED != IDLE


def test_invalid_index_config_sends_nothing(make_config, key_provider):
    """A bad index definition stops the run before the data source is written."""
    reconciler = Reconciler(make_config(vectorizer_kind="huggingFace"), SearchApiClient(), key_provider)

    with patch("search_provisioner.api_client.requests.request", return_value=make_response(201)) as request:
        with pytest.raises(ConfigurationError):
            reconciler.reconcile()

    assert request.call_count == 0
    assert key_provider.calls == []
