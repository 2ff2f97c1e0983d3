"""
Provision an Azure AI Search data source, index and indexer with idempotent upserts.
"""

from .api_client import FileErrorSink, NullErrorSink, SearchApiClient
from .credentials import ManagementKeyProvider, StaticKeyProvider
from .errors import (
    APIError,
    ConfigurationError,
    CredentialError,
    ProvisioningError,
    TransportError,
)
from .models import PipelineConfig, RunSettings, UpsertOutcome
from .reconciler import Reconciler, ReconcileResult

__all__ = [
    "APIError",
    "ConfigurationError",
    "CredentialError",
    "FileErrorSink",
    "ManagementKeyProvider",
    "NullErrorSink",
    "PipelineConfig",
    "ProvisioningError",
    "ReconcileResult",
    "Reconciler",
    "RunSettings",
    "SearchApiClient",
    "StaticKeyProvider",
    "TransportError",
    "UpsertOutcome",
]
