"""
Cross-check reported fragment counts against the fragment registry.

Workers report how many fragments each chunk produced; the registry
holds what the extractor's callback actually recorded. Both must agree
before any manifest is written.
"""

import logging
from typing import Iterable

from ..common.errors import JobCancelledError, RegistryConsistencyError
from .fragment_registry import RegistrySnapshot
from .worker_pool import ExtractionResult

logger = logging.getLogger(__name__)


def first_error(results: Iterable[ExtractionResult]):
    """
    Return the error of the lowest failed chunk id, or None.

    Real failures take precedence over jobs skipped after cancellation.
    """
    failed = sorted(
        (r for r in results if r.error is not None),
        key=lambda r: (isinstance(r.error, JobCancelledError), r.chunk_id)
    )
    return failed[0].error if failed else None


def reconcile(results: Iterable[ExtractionResult], snapshot: RegistrySnapshot) -> int:
    """
    Verify that every fragment reported by a worker is visible in the snapshot.

    Args:
        results: One result per chunk
        snapshot: Registry contents aggregated after all results were drained

    Returns:
        Total number of fragments

    Raises:
        The first job error, if any job failed
        RegistryConsistencyError: Reported and observed counts differ
    """
    results = list(results)
    error = first_error(results)
    if error is not None:
        raise error

    reported = sum(r.fragment_count for r in results)
    observed = snapshot.total_fragments()
    if reported != observed:
        raise RegistryConsistencyError(reported, observed)

    logger.info(f"Reconciled {reported} fragments across {len(results)} chunks and {len(snapshot)} objects")
    return reported
