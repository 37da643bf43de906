"""
Fragment Registry Module

Thread-safe record of which mesh fragment file belongs to which object,
keyed by the chunk that produced it. Workers write into it from the
extractor's fragment callback; the orchestrator reads it back once all
results have been drained.
"""

import logging
import threading
from typing import Dict, Iterable, Optional

logger = logging.getLogger(__name__)


class RegistrySnapshot(dict):
    """Object id -> fragment paths, aggregated across chunks."""

    def total_fragments(self) -> int:
        return sum(len(paths) for paths in self.values())


class FragmentRegistry:
    """
    Chunk id -> {object id -> fragment path}.

    One lock guards the whole map. Each update is a single dict
    assignment, so contention stays small compared to meshing.
    """

    def __init__(self):
        self._chunks: Dict[int, Dict[int, str]] = {}
        self._lock = threading.Lock()

    def record(self, chunk_id: int, object_id: int, path: str) -> None:
        """Add one fragment for an object found in a chunk."""
        with self._lock:
            entries = self._chunks.setdefault(int(chunk_id), {})
            if int(object_id) in entries:
                logger.warning(
                    f"Chunk {chunk_id}: object {object_id} reported twice, "
                    f"replacing {entries[int(object_id)]} with {path}"
                )
            entries[int(object_id)] = path

    def chunk_entries(self, chunk_id: int) -> Dict[int, str]:
        with self._lock:
            return dict(self._chunks.get(chunk_id, {}))

    def __len__(self) -> int:
        with self._lock:
            return sum(len(entries) for entries in self._chunks.values())

    def snapshot(self, chunk_ids: Optional[Iterable[int]] = None) -> RegistrySnapshot:
        """
        Aggregate every chunk's entries by object id.

        Chunks are visited in ascending id order, so the result does not
        depend on the order in which workers finished.

        Args:
            chunk_ids: Restrict aggregation to these chunks (default: all)

        Returns:
            RegistrySnapshot mapping object id to its fragment paths
        """
        with self._lock:
            ids = sorted(self._chunks) if chunk_ids is None else sorted(chunk_ids)
            snapshot = RegistrySnapshot()
            for chunk_id in ids:
                for object_id, path in self._chunks.get(chunk_id, {}).items():
                    snapshot.setdefault(object_id, []).append(path)
        logger.debug(f"Registry snapshot: {len(snapshot)} objects from {len(ids)} chunks")
        return snapshot
