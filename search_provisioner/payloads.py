"""
Build the desired-state documents for the data source, index and indexer.

Everything here is pure: the same configuration always produces the same
documents, and nothing talks to the network.
"""

import json

from .errors import ConfigurationError
from .models import (
    ALGORITHM_KINDS,
    STORAGE_TYPES,
    VECTORIZER_KINDS,
    DataSourceSpec,
    FieldDefinition,
    IndexerSpec,
    IndexSpec,
    PipelineConfig,
    SemanticConfig,
    VectorSearchConfig,
)


USER_ASSIGNED_IDENTITY_TYPE = "#Microsoft.Azure.Search.DataUserAssignedIdentity"
BM25_SIMILARITY_TYPE = "#Microsoft.Azure.Search.BM25Similarity"


def to_json(document):
    """Serialize a document canonically so equal documents give equal bytes."""
    return json.dumps(document, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


# ============ DATA SOURCE ============

def build_data_source_spec(config: PipelineConfig) -> DataSourceSpec:
    return DataSourceSpec(
        name=config.data_source_name,
        container_name=config.container_name,
        storage_type=config.storage_type,
        connection_string=config.connection_string,
        managed_identity_resource_id=config.managed_identity_resource_id,
        storage_resource_id=config.storage_resource_id,
    )


def validate_data_source_spec(spec: DataSourceSpec) -> None:
    if spec.storage_type not in STORAGE_TYPES:
        raise ConfigurationError(
            f"Unsupported storage type '{spec.storage_type}' (supported: {', '.join(STORAGE_TYPES)})"
        )
    if spec.connection_string and spec.managed_identity_resource_id:
        raise ConfigurationError(
            "Both a storage connection string and a managed identity were supplied; choose one"
        )
    if not spec.connection_string and not spec.managed_identity_resource_id:
        raise ConfigurationError(
            "A storage connection string or a managed identity resource id is required"
        )
    if spec.uses_managed_identity and not spec.storage_resource_id:
        raise ConfigurationError(
            "A storage account resource id is required when using a managed identity"
        )
    if not spec.container_name:
        raise ConfigurationError("A storage container name is required")


def build_data_source_document(spec: DataSourceSpec) -> dict:
    """Build the data source definition for the selected credential mode."""
    validate_data_source_spec(spec)

    if spec.uses_managed_identity:
        # No secret: the service resolves the storage account through the identity
        credentials = {"connectionString": f"ResourceId={spec.storage_resource_id};"}
    else:
        credentials = {"connectionString": spec.connection_string}

    datasource = {
        "name": spec.name,
        "type": spec.storage_type,
        "credentials": credentials,
        "container": {
            "name": spec.container_name,
        },
    }

    if spec.uses_managed_identity:
        datasource["identity"] = {
            "@odata.type": USER_ASSIGNED_IDENTITY_TYPE,
            "userAssignedIdentity": spec.managed_identity_resource_id,
        }

    return datasource


# ============ INDEX ============

def build_fields(analyzer: str) -> list[FieldDefinition]:
    """The fixed four-field schema: key, origin URL, body content, timestamp."""
    return [
        # Key field
        FieldDefinition(
            name="id",
            data_type="Edm.String",
            is_key=True,
            filterable=True,
            sortable=True,
        ),
        # Origin URL of the document
        FieldDefinition(
            name="url",
            data_type="Edm.String",
            searchable=True,
            analyzer=analyzer,
        ),
        # Body content
        FieldDefinition(
            name="content",
            data_type="Edm.String",
            searchable=True,
            analyzer=analyzer,
        ),
        FieldDefinition(
            name="timestamp",
            data_type="Edm.DateTimeOffset",
            filterable=True,
            sortable=True,
        ),
    ]


def build_index_spec(config: PipelineConfig) -> IndexSpec:
    semantic_config = SemanticConfig(
        name=config.semantic_config_name,
        title_field="url",
        prioritized_content_fields=["content"],
        prioritized_keywords_fields=["url"],
    )
    vector_search_config = VectorSearchConfig(
        algorithm_name=config.algorithm_name,
        profile_name=config.profile_name,
        vectorizer_name=config.vectorizer_name,
        vectorizer_kind=config.vectorizer_kind,
        resource_uri=config.embedding_endpoint,
        deployment_id=config.embedding_deployment,
        model_name=config.embedding_model,
    )
    return IndexSpec(
        name=config.index_name,
        fields=build_fields(config.analyzer),
        semantic_config=semantic_config,
        vector_search_config=vector_search_config,
    )


def validate_index_spec(spec: IndexSpec) -> None:
    keys = [f.name for f in spec.fields if f.is_key]
    if len(keys) != 1:
        raise ConfigurationError(
            f"Index '{spec.name}' must have exactly one key field, found {len(keys)}"
        )
    vector = spec.vector_search_config
    if vector.vectorizer_kind not in VECTORIZER_KINDS:
        raise ConfigurationError(
            f"Unsupported vectorizer kind '{vector.vectorizer_kind}' (supported: {', '.join(VECTORIZER_KINDS)})"
        )
    if vector.algorithm_kind not in ALGORITHM_KINDS:
        raise ConfigurationError(
            f"Unsupported vector search algorithm '{vector.algorithm_kind}'"
        )


def field_document(definition: FieldDefinition) -> dict:
    document = {
        "name": definition.name,
        "type": definition.data_type,
        "key": definition.is_key,
        "searchable": definition.searchable,
        "filterable": definition.filterable,
        "retrievable": definition.retrievable,
        "stored": definition.stored,
        "sortable": definition.sortable,
        "facetable": definition.facetable,
    }
    if definition.analyzer:
        document["analyzer"] = definition.analyzer
    return document


def semantic_document(config: SemanticConfig) -> dict:
    return {
        "defaultConfiguration": config.name,
        "configurations": [
            {
                "name": config.name,
                "prioritizedFields": {
                    "titleField": {"fieldName": config.title_field},
                    "prioritizedContentFields": [
                        {"fieldName": name} for name in config.prioritized_content_fields
                    ],
                    "prioritizedKeywordsFields": [
                        {"fieldName": name} for name in config.prioritized_keywords_fields
                    ],
                },
            }
        ],
    }


def vector_search_document(config: VectorSearchConfig) -> dict:
    return {
        "algorithms": [
            {
                "name": config.algorithm_name,
                "kind": config.algorithm_kind,
                "hnswParameters": {
                    "metric": config.metric,
                    "m": config.m,
                    "efConstruction": config.ef_construction,
                    "efSearch": config.ef_search,
                },
            }
        ],
        "profiles": [
            {
                "name": config.profile_name,
                "algorithm": config.algorithm_name,
                "vectorizer": config.vectorizer_name,
            }
        ],
        "vectorizers": [
            {
                "name": config.vectorizer_name,
                "kind": config.vectorizer_kind,
                "azureOpenAIParameters": {
                    "resourceUri": config.resource_uri,
                    "deploymentId": config.deployment_id,
                    "modelName": config.model_name,
                },
            }
        ],
    }


def build_index_document(spec: IndexSpec) -> dict:
    """Build the index definition with semantic and vector search blocks."""
    validate_index_spec(spec)

    return {
        "name": spec.name,
        "fields": [field_document(f) for f in spec.fields],
        "similarity": {
            "@odata.type": BM25_SIMILARITY_TYPE,
        },
        "semantic": semantic_document(spec.semantic_config),
        "vectorSearch": vector_search_document(spec.vector_search_config),
    }


# ============ INDEXER ============

def build_indexer_spec(config: PipelineConfig) -> IndexerSpec:
    return IndexerSpec(
        name=config.indexer_name,
        data_source_name=config.data_source_name,
        target_index_name=config.index_name,
    )


def build_indexer_document(spec: IndexerSpec) -> dict:
    """
    Build the indexer definition.

    No schedule, skillset or field mappings: raw content is ingested as-is.
    """
    return {
        "name": spec.name,
        "dataSourceName": spec.data_source_name,
        "targetIndexName": spec.target_index_name,
        "parameters": {
            "configuration": {
                "dataToExtract": spec.data_to_extract,
                "parsingMode": spec.parsing_mode,
            }
        },
        "fieldMappings": [],
        "outputFieldMappings": [],
    }
