"""
Data structures describing the three pipeline resources and their outcomes.

Specs are rebuilt from configuration on every run; the search service is the
only persistent store.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional


# Supported enumerations
STORAGE_TYPES = ("azureblob",)
VECTORIZER_KINDS = ("azureOpenAI",)
ALGORITHM_KINDS = ("hnsw",)

# API versions: data source identities are only available in preview
DATA_SOURCE_API_VERSION = "2024-05-01-preview"
STABLE_API_VERSION = "2024-07-01"

DEFAULT_RESOURCE_PREFIX = "docs"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_ANALYZER = "en.microsoft"


@dataclass
class DataSourceSpec:
    name: str
    container_name: str
    storage_type: str = "azureblob"
    connection_string: Optional[str] = None
    managed_identity_resource_id: Optional[str] = None
    storage_resource_id: Optional[str] = None

    @property
    def uses_managed_identity(self) -> bool:
        return bool(self.managed_identity_resource_id)


@dataclass
class FieldDefinition:
    name: str
    data_type: str
    searchable: bool = False
    filterable: bool = False
    retrievable: bool = True
    stored: bool = True
    sortable: bool = False
    facetable: bool = False
    is_key: bool = False
    analyzer: Optional[str] = None


@dataclass
class SemanticConfig:
    name: str
    title_field: str
    prioritized_content_fields: list[str] = field(default_factory=list)
    prioritized_keywords_fields: list[str] = field(default_factory=list)


@dataclass
class VectorSearchConfig:
    """
    One HNSW algorithm, one profile and one Azure OpenAI vectorizer.

    The profile links `algorithm_name` and `vectorizer_name`.
    """
    algorithm_name: str
    profile_name: str
    vectorizer_name: str
    resource_uri: str
    deployment_id: str
    model_name: str
    algorithm_kind: str = "hnsw"
    ef_construction: int = 400
    ef_search: int = 500
    m: int = 6
    metric: str = "cosine"
    vectorizer_kind: str = "azureOpenAI"


@dataclass
class IndexSpec:
    name: str
    fields: list[FieldDefinition]
    semantic_config: SemanticConfig
    vector_search_config: VectorSearchConfig
    similarity_algorithm: str = "BM25"


@dataclass
class IndexerSpec:
    name: str
    data_source_name: str
    target_index_name: str
    data_to_extract: str = "contentAndMetadata"
    parsing_mode: str = "json"


@dataclass
class UpsertOutcome:
    """Result of one resource upsert (or of its dry-run simulation)."""
    resource_kind: str
    resource_name: str
    succeeded: bool
    url: str = ""
    http_status: Optional[int] = None
    error_detail: Optional[str] = None
    document: Optional[dict[str, Any]] = None
    dry_run: bool = False
    artifact_path: Optional[str] = None


@dataclass
class PipelineConfig:
    """
    Validated input for one provisioning run.

    Resource names default to ``<resource_prefix>-datasource``,
    ``<resource_prefix>-index`` and ``<resource_prefix>-indexer`` when not given.
    """
    resource_group: str
    service_name: str
    embedding_service_name: str
    container_name: str
    connection_string: Optional[str] = None
    managed_identity_resource_id: Optional[str] = None
    storage_resource_id: Optional[str] = None
    storage_type: str = "azureblob"
    resource_prefix: str = DEFAULT_RESOURCE_PREFIX
    data_source_name: Optional[str] = None
    index_name: Optional[str] = None
    indexer_name: Optional[str] = None
    semantic_config_name: Optional[str] = None
    algorithm_name: Optional[str] = None
    profile_name: Optional[str] = None
    vectorizer_name: Optional[str] = None
    vectorizer_kind: str = "azureOpenAI"
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embedding_deployment: Optional[str] = None
    analyzer: str = DEFAULT_ANALYZER
    data_source_api_version: str = DATA_SOURCE_API_VERSION
    api_version: str = STABLE_API_VERSION
    dry_run: bool = False

    def __post_init__(self):
        prefix = self.resource_prefix
        self.data_source_name = self.data_source_name or f"{prefix}-datasource"
        self.index_name = self.index_name or f"{prefix}-index"
        self.indexer_name = self.indexer_name or f"{prefix}-indexer"
        self.semantic_config_name = self.semantic_config_name or f"{prefix}-semantic-configuration"
        self.algorithm_name = self.algorithm_name or f"{prefix}-vector-search-algorithm"
        self.profile_name = self.profile_name or f"{prefix}-vector-search-profile"
        self.vectorizer_name = self.vectorizer_name or f"{prefix}-vectorizer"
        self.embedding_deployment = self.embedding_deployment or self.embedding_model

    @property
    def search_endpoint(self) -> str:
        return f"https://{self.service_name}.search.windows.net"

    @property
    def embedding_endpoint(self) -> str:
        return f"https://{self.embedding_service_name}.openai.azure.com"


@dataclass
class RunSettings:
    """
    Output and diagnostics settings passed explicitly to the core.

    `timeout` of None leaves request timeouts to the transport default.
    """
    verbosity: str = "info"
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("search_provisioner"))
    artifact_dir: Optional[str] = None
    timeout: Optional[float] = None
