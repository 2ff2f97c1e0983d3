"""
Create Azure AI Search resources for ingesting JSON blobs.

This script creates, in order:
1. Data Source - Azure Blob Storage container (connection string or managed identity)
2. Index - id/url/content/timestamp with semantic and vector search
3. Indexer - Pulls raw JSON content from the data source into the index

Every resource is written with PUT, so running the script again overwrites the
existing definitions. Use --dry-run to print the documents without sending them.
"""

import argparse
import json
import logging
import os
import sys

from .api_client import (
    FileErrorSink,
    SearchApiClient,
    build_headers,
    data_source_url,
    index_url,
    indexer_url,
)
from .credentials import ManagementKeyProvider, StaticKeyProvider
from .errors import ConfigurationError, CredentialError
from .models import DATA_SOURCE_API_VERSION, STABLE_API_VERSION, PipelineConfig
from .reconciler import Reconciler
from .shared import (
    VERBOSITY_LEVELS,
    configure_console_logging,
    load_base_env,
    make_run_settings,
    validate_config,
)


def build_parser():
    parser = argparse.ArgumentParser(
        description="Create Azure AI Search data source, index and indexer for blob ingestion"
    )
    parser.add_argument("--resource-group", default=os.getenv("RESOURCE_GROUP"), help="Resource group of the search service")
    parser.add_argument("--service-name", default=os.getenv("SEARCH_SERVICE_NAME"), help="Search service name")
    parser.add_argument("--embedding-service", default=os.getenv("EMBEDDING_SERVICE_NAME"), help="Azure OpenAI resource name used by the vectorizer")
    parser.add_argument("--connection-string", default=os.getenv("STORAGE_CONNECTION_STRING"), help="Storage connection string")
    parser.add_argument("--managed-identity", default=os.getenv("MANAGED_IDENTITY_RESOURCE_ID"), help="User-assigned managed identity resource id")
    parser.add_argument("--storage-resource-id", default=os.getenv("STORAGE_RESOURCE_ID"), help="Storage account resource id (managed identity only)")
    parser.add_argument("--container", default=os.getenv("CONTAINER_NAME"), help="Blob container name")
    parser.add_argument("--storage-type", default="azureblob", help="Data source type")
    parser.add_argument("--prefix", default=os.getenv("RESOURCE_PREFIX", "docs"), help="Prefix for default resource names")
    parser.add_argument("--datasource-name", default=os.getenv("DATASOURCE_NAME"))
    parser.add_argument("--index-name", default=os.getenv("INDEX_NAME"))
    parser.add_argument("--indexer-name", default=os.getenv("INDEXER_NAME"))
    parser.add_argument("--semantic-config-name", default=os.getenv("SEMANTIC_CONFIG_NAME"))
    parser.add_argument("--algorithm-name", default=os.getenv("VECTOR_ALGORITHM_NAME"))
    parser.add_argument("--profile-name", default=os.getenv("VECTOR_PROFILE_NAME"))
    parser.add_argument("--vectorizer-name", default=os.getenv("VECTORIZER_NAME"))
    parser.add_argument("--embedding-model", default=os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"))
    parser.add_argument("--embedding-deployment", default=os.getenv("EMBEDDING_DEPLOYMENT"))
    parser.add_argument("--analyzer", default=os.getenv("ANALYZER", "en.microsoft"), help="Analyzer for url and content fields")
    parser.add_argument("--subscription-id", default=os.getenv("AZURE_SUBSCRIPTION_ID"), help="Subscription used to look up the admin key")
    parser.add_argument("--artifact-dir", default=os.getenv("ARTIFACT_DIR", "."), help="Where error details are written")
    parser.add_argument(
        "--verbosity",
        default=os.getenv("VERBOSITY", "info"),
        choices=list(VERBOSITY_LEVELS),
        help="Lowest log level to show"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the documents and URLs without calling the service"
    )
    parser.add_argument(
        "--delete",
        action="store_true",
        help="Delete existing resources instead of creating"
    )
    parser.add_argument(
        "--run",
        action="store_true",
        help="Run the indexer after creation"
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Check indexer status"
    )
    return parser


def load_config(args):
    """Turn parsed arguments into a validated PipelineConfig."""
    raw = {
        "resource_group": args.resource_group,
        "service_name": args.service_name,
        "embedding_service_name": args.embedding_service,
        "container_name": args.container,
    }
    validate_config(raw, list(raw))

    if not args.connection_string and not args.managed_identity:
        raise ConfigurationError(
            "Missing required configuration: connection_string or managed_identity"
        )

    return PipelineConfig(
        connection_string=args.connection_string,
        managed_identity_resource_id=args.managed_identity,
        storage_resource_id=args.storage_resource_id,
        storage_type=args.storage_type,
        resource_prefix=args.prefix,
        data_source_name=args.datasource_name,
        index_name=args.index_name,
        indexer_name=args.indexer_name,
        semantic_config_name=args.semantic_config_name,
        algorithm_name=args.algorithm_name,
        profile_name=args.profile_name,
        vectorizer_name=args.vectorizer_name,
        embedding_model=args.embedding_model,
        embedding_deployment=args.embedding_deployment,
        analyzer=args.analyzer,
        data_source_api_version=DATA_SOURCE_API_VERSION,
        api_version=STABLE_API_VERSION,
        dry_run=args.dry_run,
        **raw,
    )


def make_credential_provider(args):
    # An explicit API_KEY skips the management-plane lookup
    api_key = os.getenv("API_KEY")
    if api_key:
        return StaticKeyProvider(api_key)
    return ManagementKeyProvider(args.subscription_id)


def print_summary(result):
    print("\n" + "=" * 60)
    for outcome in result.outcomes:
        mark = "✓" if outcome.succeeded else "✗"
        suffix = " (dry-run)" if outcome.dry_run else ""
        print(f"  {mark} {outcome.resource_kind}: {outcome.resource_name}{suffix}")
        if outcome.dry_run:
            print(f"     PUT {outcome.url}")
            print("     " + json.dumps(outcome.document, indent=2).replace("\n", "\n     "))
        elif not outcome.succeeded:
            status = outcome.http_status if outcome.http_status is not None else "no response"
            print(f"     Error: {status}")
            if outcome.artifact_path:
                print(f"     Details: {outcome.artifact_path}")

    if result.succeeded:
        print("\n✅ All resources created successfully!")
    else:
        print("\n❌ Some resources failed to create. Check errors above.")
        print("   Re-running is safe: each resource is fully replaced.")
    print("=" * 60)


def delete_resources(config, client, credential_provider):
    """Delete all created resources, indexer first."""
    print("\n🗑️  Deleting resources...")
    headers = build_headers(credential_provider.get_admin_key(config.resource_group, config.service_name))
    endpoint = config.search_endpoint

    ok = True
    for kind, url in [
        ("indexer", indexer_url(endpoint, config.indexer_name, config.api_version)),
        ("index", index_url(endpoint, config.index_name, config.api_version)),
        ("datasource", data_source_url(endpoint, config.data_source_name, config.data_source_api_version)),
    ]:
        if client.delete(url, headers):
            print(f"   ✓ Deleted {kind}")
        else:
            print(f"   ✗ Error deleting {kind}")
            ok = False
    return ok


def run_indexer(config, client, credential_provider):
    print(f"\n▶️  Running indexer: {config.indexer_name}")
    headers = build_headers(credential_provider.get_admin_key(config.resource_group, config.service_name))
    url = indexer_url(config.search_endpoint, config.indexer_name, config.api_version, action="run")
    if client.run_indexer(url, headers):
        print("   ✓ Indexer started successfully")
        return True
    print("   ✗ Error running indexer")
    return False


def get_indexer_status(config, client, credential_provider):
    print(f"\n📊 Checking indexer status: {config.indexer_name}")
    headers = build_headers(credential_provider.get_admin_key(config.resource_group, config.service_name))
    url = indexer_url(config.search_endpoint, config.indexer_name, config.api_version, action="status")
    status = client.get_indexer_status(url, headers)
    if status is None:
        print("   ✗ Error getting status")
        return None

    print(f"   Status: {status.get('status', 'unknown')}")
    if status.get("lastResult"):
        last = status["lastResult"]
        print(f"   Last run: {last.get('status', 'unknown')}")
        print(f"   Items processed: {last.get('itemsProcessed', 0)}")
        print(f"   Items failed: {last.get('itemsFailed', 0)}")
    return status


def main(argv=None):
    """Main execution function."""
    load_base_env()
    args = build_parser().parse_args(argv)

    configure_console_logging()
    try:
        # argparse does not check an env-provided default against choices
        settings = make_run_settings(verbosity=args.verbosity, artifact_dir=args.artifact_dir)
    except ConfigurationError as e:
        logging.getLogger("search_provisioner").error(str(e))
        sys.exit(1)

    print("=" * 60)
    print("Search Pipeline Resources Creator")
    print("=" * 60)

    try:
        config = load_config(args)
    except ConfigurationError as e:
        settings.logger.error(str(e))
        sys.exit(1)

    print(f"\nConfiguration:")
    print(f"  Search Endpoint: {config.search_endpoint}")
    print(f"  Data Source: {config.data_source_name}")
    print(f"  Index: {config.index_name}")
    print(f"  Indexer: {config.indexer_name}")
    print(f"  Embedding Model: {config.embedding_model}")
    print(f"  Storage Auth: {'Managed identity' if config.managed_identity_resource_id else 'Connection string'}")
    print(f"  Dry Run: {'Enabled' if config.dry_run else 'Disabled'}")

    error_sink = FileErrorSink(settings.artifact_dir)
    client = SearchApiClient(settings, error_sink)
    credential_provider = make_credential_provider(args)

    try:
        if args.delete:
            sys.exit(0 if delete_resources(config, client, credential_provider) else 1)

        if args.status:
            sys.exit(0 if get_indexer_status(config, client, credential_provider) is not None else 1)

        reconciler = Reconciler(config, client, credential_provider, settings, error_sink)
        result = reconciler.reconcile()
        print_summary(result)

        if not result.succeeded:
            sys.exit(1)

        if args.run and not config.dry_run:
            if not run_indexer(config, client, credential_provider):
                sys.exit(1)
    except (ConfigurationError, CredentialError) as e:
        settings.logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
