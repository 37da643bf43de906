"""
Mesh Extraction Module

Turns one labeled chunk into one Neuroglancer mesh fragment per object,
using marching cubes on each label's binary mask.

The workflow per chunk:
1. Reinterpret the cutout bytes as uint64 labels and narrow them to uint32
2. For every non-zero label, crop its mask with a one-voxel margin
3. Extract the isosurface at level 0.5 (no padding at the chunk faces)
4. Map vertices to global nanometer coordinates and write an ngmesh file
5. Report the fragment through the on_fragment sink
"""

import logging
from typing import Callable, Optional, Protocol, Sequence, Tuple

import numpy as np
import trimesh
from scipy import ndimage
from skimage.measure import marching_cubes

from ..common.errors import ExtractionError
from ..common.io import write_ngmesh

logger = logging.getLogger(__name__)

# on_fragment(fragment_path, object_id, chunk_id)
FragmentSink = Callable[[str, int, int], None]


class MeshExtractor(Protocol):
    """Anything the worker pool can hand a chunk to for meshing."""

    def extract(
        self,
        volume: np.ndarray,
        chunk_id: int,
        prefix: str,
        shape: Sequence[int],
        offset: Sequence[int],
        resolution: Sequence[float],
        on_fragment: FragmentSink
    ) -> int:
        ...


BOSS_VOXEL_DTYPE = np.dtype('<u8')
EXTRACTOR_VOXEL_DTYPE = np.dtype(np.uint32)


def to_extractor_volume(raw: bytes, shape: Sequence[int], chunk_id: Optional[int] = None) -> np.ndarray:
    """
    Convert raw cutout bytes to the extractor's voxel width.

    Args:
        raw: Decompressed cutout, uint64 labels packed in (z, y, x) order
        shape: Chunk extent as (x, y, z)
        chunk_id: Used in error messages only

    Returns:
        uint32 array of shape (z, y, x)
    """
    x, y, z = shape
    expected = x * y * z * BOSS_VOXEL_DTYPE.itemsize
    if len(raw) != expected:
        raise ExtractionError(
            f"chunk {chunk_id}: cutout has {len(raw)} bytes, expected {expected} "
            f"for {x}x{y}x{z} uint64 voxels",
            chunk_id,
        )
    labels = np.frombuffer(raw, dtype=BOSS_VOXEL_DTYPE).reshape(z, y, x)
    if labels.size and labels.max() > np.iinfo(EXTRACTOR_VOXEL_DTYPE).max:
        raise ExtractionError(
            f"chunk {chunk_id}: label {int(labels.max())} does not fit in 32 bits", chunk_id
        )
    return labels.astype(EXTRACTOR_VOXEL_DTYPE)


class MarchingCubesExtractor:
    """
    Per-label marching cubes mesher writing ngmesh fragments.

    Surfaces are left open where an object touches a chunk face. The
    neighbouring chunk overlaps by one voxel, so the two open surfaces
    meet on the shared voxel plane.
    """

    def __init__(self, level: float = 0.5, step_size: int = 1):
        """
        Args:
            level: Isosurface level on the 0/1 label mask
            step_size: Marching cubes step size in voxels
        """
        self.level = level
        self.step_size = step_size

    def _mesh_label(
        self,
        volume: np.ndarray,
        label: int,
        box: Tuple[slice, slice, slice],
        offset_zyx: np.ndarray,
        spacing_zyx: Tuple[float, float, float]
    ) -> Tuple[np.ndarray, np.ndarray]:
        # one voxel of margin so the surface closes where the object stops inside the chunk
        lo = np.array([max(s.start - 1, 0) for s in box])
        hi = np.array([min(s.stop + 1, n) for s, n in zip(box, volume.shape)])
        crop = volume[lo[0]:hi[0], lo[1]:hi[1], lo[2]:hi[2]] == label
        if min(crop.shape) < 2:
            return np.empty((0, 3)), np.empty((0, 3), dtype=np.uint32)

        try:
            verts, faces, _, _ = marching_cubes(
                crop.astype(np.float32),
                level=self.level,
                spacing=spacing_zyx,
                step_size=self.step_size,
                allow_degenerate=False
            )
        except (ValueError, RuntimeError) as e:
            # raised when the crop has no surface crossing, e.g. a label filling the chunk
            logger.debug(f"Marching cubes produced no surface: {e}")
            return np.empty((0, 3)), np.empty((0, 3), dtype=np.uint32)

        verts = verts + (offset_zyx + lo) * np.asarray(spacing_zyx)
        # marching cubes winds inward in zyx; the mirror to xyz turns the faces outward
        return verts[:, ::-1], faces

    def extract(
        self,
        volume: np.ndarray,
        chunk_id: int,
        prefix: str,
        shape: Sequence[int],
        offset: Sequence[int],
        resolution: Sequence[float],
        on_fragment: FragmentSink
    ) -> int:
        """
        Mesh every object in a chunk.

        Args:
            volume: uint32 labels, shape (z, y, x)
            chunk_id: Chunk identifier, passed back through on_fragment
            prefix: Fragment path prefix; fragments are written to <prefix>.<object id>
            shape: Chunk extent (x, y, z)
            offset: Global voxel offset of the chunk (x, y, z)
            resolution: Voxel size (x, y, z) in nanometers
            on_fragment: Called once per written fragment

        Returns:
            Number of fragments written
        """
        x, y, z = shape
        if volume.shape != (z, y, x):
            raise ExtractionError(
                f"chunk {chunk_id}: volume shape {volume.shape} does not match (z, y, x) = {(z, y, x)}",
                chunk_id,
            )

        offset_zyx = np.array(offset[::-1], dtype=np.float64)
        spacing_zyx = tuple(float(r) for r in resolution[::-1])

        # dense ids 1..n index both the unique labels and the bounding boxes
        labels, inverse = np.unique(volume, return_inverse=True)
        boxes = ndimage.find_objects(inverse.reshape(volume.shape).astype(np.int32) + 1)
        n_objects = int(np.count_nonzero(labels))

        n_fragments = 0
        for label, box in zip(labels, boxes):
            if label == 0 or box is None:
                continue
            verts, faces = self._mesh_label(volume, label, box, offset_zyx, spacing_zyx)
            if len(faces) == 0:
                continue

            mesh = trimesh.Trimesh(vertices=verts, faces=faces, process=True)
            if len(mesh.faces) == 0:
                continue

            path = f"{prefix}.{int(label)}"
            write_ngmesh(path, mesh.vertices, mesh.faces)
            on_fragment(path, int(label), chunk_id)
            n_fragments += 1

        logger.info(f"Chunk {chunk_id}: {n_fragments} fragments from {n_objects} labels")
        return n_fragments
