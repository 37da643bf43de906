"""
Chunk processing modules: planning, worker pool, registry, reconciliation.
"""

from .chunk_planner import ChunkDescriptor, plan_chunks, iter_chunks, count_chunks, validate_request
from .fragment_registry import FragmentRegistry, RegistrySnapshot
from .worker_pool import ExtractionWorkerPool, ExtractionTarget, ExtractionResult, MeshJob
from .reconcile import reconcile

__all__ = [
    "ChunkDescriptor",
    "plan_chunks",
    "iter_chunks",
    "count_chunks",
    "validate_request",
    "FragmentRegistry",
    "RegistrySnapshot",
    "ExtractionWorkerPool",
    "ExtractionTarget",
    "ExtractionResult",
    "MeshJob",
    "reconcile"
]
