"""
Neuroglancer manifest publishing.

Manifest Format (legacy precomputed meshes):
    Filename: <object id>
    Body: {"fragments": ["mesh.<chunk id>.<object id>", ...]}

Fragment names are relative to the directory holding the manifest, so
only the base filename of each fragment is listed.
"""

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Sequence, Union

from ..common.errors import ManifestWriteError
from ..common.io import write_json

logger = logging.getLogger(__name__)


def build_manifest(fragment_paths: Sequence[str]) -> Dict[str, List[str]]:
    """Manifest document listing the base filename of every fragment."""
    return {"fragments": [path.rsplit("/", 1)[-1] for path in fragment_paths]}


def publish_manifests(
    snapshot: Mapping[int, Sequence[str]],
    output_dir: Union[str, Path]
) -> int:
    """
    Write one manifest per object.

    Existing manifests are overwritten. A failed write stops publishing;
    manifests already written for earlier objects are left in place.

    Args:
        snapshot: Object id -> fragment paths
        output_dir: Directory receiving the manifests

    Returns:
        Number of manifests written
    """
    output_dir = Path(output_dir)
    written = 0
    for object_id, fragment_paths in snapshot.items():
        path = output_dir / str(object_id)
        try:
            write_json(path, build_manifest(fragment_paths))
        except (OSError, TypeError, ValueError) as e:
            raise ManifestWriteError(str(path), e) from e
        written += 1

    logger.info(f"Wrote {written} manifests to {output_dir}")
    return written
