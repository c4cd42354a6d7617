"""Background scan processing."""

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from neurotrack.core.config import Settings
from neurotrack.services.analysis.gateway import AnalysisGateway
from neurotrack.services.analysis.materializer import ResultMaterializer
from neurotrack.services.analysis.poller import JobPoller, TransientPollPolicy
from neurotrack.services.blob import BlobFetcher
from neurotrack.services.processing.orchestrator import BatchOrchestrator, BatchResult, ScanOutcome
from neurotrack.services.processing.retry import RetryDecision, RetryPolicy
from neurotrack.services.store import ScanStore


def build_orchestrator(
    settings: Settings,
    session_maker: async_sessionmaker[AsyncSession],
    http_client: httpx.AsyncClient,
) -> BatchOrchestrator:
    """Wire the processing components from settings.

    The caller owns the session maker and the HTTP client and is
    responsible for closing them.
    """
    processor = settings.processor
    analysis = settings.analysis

    store = ScanStore(
        session_maker,
        default_age=processor.default_patient_age,
        default_sex=processor.default_patient_sex,
    )
    gateway = AnalysisGateway(
        http_client,
        base_url=analysis.base_url,
        upload_timeout_seconds=analysis.upload_timeout_seconds,
        request_timeout_seconds=analysis.request_timeout_seconds,
    )
    return BatchOrchestrator(
        store=store,
        blob_fetcher=BlobFetcher(http_client, timeout_seconds=analysis.download_timeout_seconds),
        gateway=gateway,
        poller=JobPoller(
            gateway,
            interval_seconds=processor.poll_interval_seconds,
            max_attempts=processor.max_poll_attempts,
            transient_policy=TransientPollPolicy(processor.transient_poll_failures),
            max_transient_failures=processor.max_transient_poll_failures,
        ),
        materializer=ResultMaterializer(
            store,
            model_name=analysis.model_name,
            atrophy_threshold_mm3=processor.hippocampus_atrophy_threshold_mm3,
            enlargement_threshold_mm3=processor.ventricle_enlargement_threshold_mm3,
        ),
        retry_policy=RetryPolicy(store, max_retries=processor.max_retries),
        batch_limit=processor.batch_limit,
    )


__all__ = [
    "BatchOrchestrator",
    "BatchResult",
    "ScanOutcome",
    "RetryPolicy",
    "RetryDecision",
    "build_orchestrator",
]
