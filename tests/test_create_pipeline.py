"""Tests for the command line entry point."""

from unittest.mock import MagicMock, patch

import pytest

from search_provisioner import create_pipeline
from search_provisioner.credentials import ManagementKeyProvider
from tests.conftest import make_response


BASE_ARGS = [
    "--resource-group", "rg-search",
    "--service-name", "my-search",
    "--embedding-service", "my-openai",
    "--connection-string", "DefaultEndpointsProtocol=https;AccountName=acct;AccountKey=secret",
    "--container", "docs",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in [
        "API_KEY", "RESOURCE_GROUP", "SEARCH_SERVICE_NAME", "EMBEDDING_SERVICE_NAME", "STORAGE_CONNECTION_STRING",
        "MANAGED_IDENTITY_RESOURCE_ID", "STORAGE_RESOURCE_ID", "CONTAINER_NAME", "RESOURCE_PREFIX",
        "DATASOURCE_NAME", "INDEX_NAME", "INDEXER_NAME", "ARTIFACT_DIR", "VERBOSITY",
    ]:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(create_pipeline, "load_base_env", lambda: None)


def test_dry_run_prints_documents(capsys, tmp_path):
    with patch("search_provisioner.api_client.requests.request") as request:
        create_pipeline.main(BASE_ARGS + ["--dry-run", "--artifact-dir", str(tmp_path)])

    request.assert_not_called()
    out = capsys.readouterr().out
    assert "datasource: docs-datasource (dry-run)" in out
    assert "PUT https://my-search.search.windows.net/indexes('docs-index')?api-version=2024-07-01" in out
    assert "All resources created successfully" in out


def test_successful_run_exits_zero(monkeypatch, capsys, tmp_path):
    monkeypatch.setenv("API_KEY", "static-key")

    with patch(
        "search_provisioner.api_client.requests.request",
        return_value=make_response(201),
    ) as request:
        create_pipeline.main(BASE_ARGS + ["--artifact-dir", str(tmp_path)])

    assert request.call_count == 3
    assert "All resources created successfully" in capsys.readouterr().out


def test_failed_stage_exits_nonzero(monkeypatch, capsys, tmp_path):
    monkeypatch.setenv("API_KEY", "static-key")

    with patch(
        "search_provisioner.api_client.requests.request",
        return_value=make_response(500, text="Internal error"),
    ) as request:
        with pytest.raises(SystemExit) as exc:
            create_pipeline.main(BASE_ARGS + ["--artifact-dir", str(tmp_path)])

    assert exc.value.code == 1
    assert request.call_count == 1
    out = capsys.readouterr().out
    assert "Details:" in out
    assert (tmp_path / "datasource-docs-datasource-error.json").exists()


def test_missing_configuration_exits_nonzero():
    with pytest.raises(SystemExit) as exc:
        create_pipeline.main(["--service-name", "my-search", "--dry-run"])

    assert exc.value.code == 1


def test_missing_storage_credentials_exits_nonzero():
    args = [a for a in BASE_ARGS if not a.startswith("DefaultEndpoints") and a != "--connection-string"]

    with pytest.raises(SystemExit) as exc:
        create_pipeline.main(args + ["--dry-run"])

    assert exc.value.code == 1


def test_custom_names_and_prefix(capsys):
    create_pipeline.main(BASE_ARGS + ["--dry-run", "--prefix", "kb", "--index-name", "custom-index"])

    out = capsys.readouterr().out
    assert "datasource: kb-datasource" in out
    assert "index: custom-index" in out
    assert "indexer: kb-indexer" in out


def test_make_credential_provider_prefers_api_key(monkeypatch):
    args = create_pipeline.build_parser().parse_args(BASE_ARGS)
    assert type(create_pipeline.make_credential_provider(args)).__name__ == "ManagementKeyProvider"

    monkeypatch.setenv("API_KEY", "static-key")
    assert type(create_pipeline.make_credential_provider(args)).__name__ == "StaticKeyProvider"


def test_delete_resources(monkeypatch, capsys):
    monkeypatch.setenv("API_KEY", "static-key")

    with patch("search_provisioner.api_client.requests.request", return_value=make_response(204)) as request:
        with pytest.raises(SystemExit) as exc:
            create_pipeline.main(BASE_ARGS + ["--delete"])

    assert exc.value.code == 0
    methods_urls = [(c.kwargs["method"], c.kwargs["url"]) for c in request.call_args_list]
    assert [m for m, _ in methods_urls] == ["DELETE", "DELETE", "DELETE"]
    assert "/indexers/docs-indexer" in methods_urls[0][1]
    assert "/datasources('docs-datasource')" in methods_urls[2][1]


def test_invalid_verbosity_from_env_exits_nonzero(monkeypatch):
    monkeypatch.setenv("VERBOSITY", "verbose")

    with pytest.raises(SystemExit) as exc:
        create_pipeline.main(BASE_ARGS + ["--dry-run"])

    assert exc.value.code == 1


def test_unreadable_admin_key_exits_nonzero(monkeypatch, tmp_path):
    monkeypatch.setenv("AZURE_SUBSCRIPTION_ID", "sub-id")
    response = make_response(200, text="not json")
    response.json.side_effect = ValueError("not json")
    credential = MagicMock()
    credential.get_token.return_value = MagicMock(token="arm-token")
    monkeypatch.setattr(
        create_pipeline,
        "make_credential_provider",
        lambda args: ManagementKeyProvider(args.subscription_id, credential=credential),
    )

    with patch("search_provisioner.credentials.requests.post", return_value=response):
        with patch("search_provisioner.api_client.requests.request") as request:
            with pytest.raises(SystemExit) as exc:
                create_pipeline.main(BASE_ARGS + ["--artifact-dir", str(tmp_path)])

    assert exc.value.code == 1
    request.assert_not_called()
