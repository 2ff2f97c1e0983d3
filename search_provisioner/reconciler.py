"""
Apply the data source, index and indexer in dependency order.

The indexer references the data source and the index by name, so the service
rejects it unless both exist already. Stages therefore run strictly one after
another and the first failure stops the run.

There is no rollback. A failure leaves earlier resources in place; because
every upsert is a full replace, re-running the whole pipeline is safe
(at-least-once, non-transactional).
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

from .api_client import (
    ErrorSink,
    SearchApiClient,
    build_headers,
    data_source_url,
    index_url,
    indexer_url,
)
from .credentials import CredentialProvider
from .models import PipelineConfig, RunSettings, UpsertOutcome
from . import payloads


IDLE = "Idle"
DATA_SOURCE_UPSERTED = "DataSourceUpserted"
INDEX_UPSERTED = "IndexUpserted"
INDEXER_UPSERTED = "IndexerUpserted"

DATA_SOURCE = "datasource"
INDEX = "index"
INDEXER = "indexer"

STAGE_ORDER = (DATA_SOURCE, INDEX, INDEXER)


def failed_state(resource_kind: str) -> str:
    return f"Failed<{resource_kind}>"


@dataclass
class Stage:
    resource_kind: str
    resource_name: str
    url: str
    build_document: Callable[[], dict]
    next_state: str


@dataclass
class ReconcileResult:
    state: str = IDLE
    outcomes: list[UpsertOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == INDEXER_UPSERTED

    def outcome_for(self, resource_kind: str) -> Optional[UpsertOutcome]:
        for outcome in self.outcomes:
            if outcome.resource_kind == resource_kind:
                return outcome
        return None


class Reconciler:
    """
    Drives the three upserts for one PipelineConfig.

    Example:
        >>> reconciler = Reconciler(config, SearchApiClient(), StaticKeyProvider(key))
        >>> result = reconciler.reconcile()
        >>> result.succeeded
        True
    """

    def __init__(
        self,
        config: PipelineConfig,
        client: SearchApiClient,
        credential_provider: CredentialProvider,
        settings: Optional[RunSettings] = None,
        error_sink: Optional[ErrorSink] = None,
    ):
        self.config = config
        self.client = client
        self.credential_provider = credential_provider
        self.settings = settings or RunSettings()
        self.logger = self.settings.logger
        self.error_sink = error_sink

    def stages(self) -> list[Stage]:
        config = self.config
        endpoint = config.search_endpoint

        return [
            Stage(
                resource_kind=DATA_SOURCE,
                resource_name=config.data_source_name,
                url=data_source_url(endpoint, config.data_source_name, config.data_source_api_version),
                build_document=lambda: payloads.build_data_source_document(
                    payloads.build_data_source_spec(config)
                ),
                next_state=DATA_SOURCE_UPSERTED,
            ),
            Stage(
                resource_kind=INDEX,
                resource_name=config.index_name,
                url=index_url(endpoint, config.index_name, config.api_version),
                build_document=lambda: payloads.build_index_document(
                    payloads.build_index_spec(config)
                ),
                next_state=INDEX_UPSERTED,
            ),
            Stage(
                resource_kind=INDEXER,
                resource_name=config.indexer_name,
                url=indexer_url(endpoint, config.indexer_name, config.api_version),
                build_document=lambda: payloads.build_indexer_document(
                    payloads.build_indexer_spec(config)
                ),
                next_state=INDEXER_UPSERTED,
            ),
        ]

    def run_stage(self, stage: Stage, document: dict) -> UpsertOutcome:
        # CredentialError propagates to the caller
        if self.config.dry_run:
            self.logger.info(f"[dry-run] PUT {stage.url}")
            self.logger.debug(payloads.to_json(document))
            return UpsertOutcome(
                resource_kind=stage.resource_kind,
                resource_name=stage.resource_name,
                succeeded=True,
                url=stage.url,
                document=document,
                dry_run=True,
            )

        api_key = self.credential_provider.get_admin_key(
            self.config.resource_group, self.config.service_name
        )
        return self.client.upsert(
            "PUT",
            stage.url,
            build_headers(api_key),
            document,
            resource_kind=stage.resource_kind,
            resource_name=stage.resource_name,
            sink=self.error_sink,
        )

    def reconcile(self) -> ReconcileResult:
        result = ReconcileResult()

        # Every document is built (and validated) before the first request
        planned = [(stage, stage.build_document()) for stage in self.stages()]

        for stage, document in planned:
            self.logger.info(f"Applying {stage.resource_kind} '{stage.resource_name}'")
            outcome = self.run_stage(stage, document)
            result.outcomes.append(outcome)

            if not outcome.succeeded:
                result.state = failed_state(stage.resource_kind)
                self.logger.error(
                    f"Stopping after {stage.resource_kind} '{stage.resource_name}' failed; "
                    "earlier resources are left in place"
                )
                return result

            result.state = stage.next_state

        return result
