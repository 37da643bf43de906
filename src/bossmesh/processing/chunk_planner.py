"""
Chunk Planning Module

Tiles a requested bounding box into chunks small enough to download
and mesh independently.

Each chunk extends one voxel below its scan start on every axis (the
halo) so that marching cubes sees the shared face of its lower
neighbour and the surfaces of adjacent chunks meet without seams. At
the lower face of the requested box there is no neighbour, so no halo
is requested there.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, List, Sequence, Tuple

from ..acquisition.boss_client import CoordinateFrame
from ..common.errors import ConfigurationError, RangeOutOfBoundsError, UnsupportedResolutionError

logger = logging.getLogger(__name__)

Range = Tuple[int, int]


@dataclass(frozen=True)
class ChunkDescriptor:
    """One sub-volume request. Ranges are start-inclusive, end-exclusive."""
    chunk_id: int
    x_range: Range
    y_range: Range
    z_range: Range
    resolution: int = 0

    @property
    def offset(self) -> Tuple[int, int, int]:
        """Global (x, y, z) of the chunk's first voxel."""
        return self.x_range[0], self.y_range[0], self.z_range[0]

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Chunk extent as (x, y, z)."""
        return (
            self.x_range[1] - self.x_range[0],
            self.y_range[1] - self.y_range[0],
            self.z_range[1] - self.z_range[0],
        )

    @property
    def num_voxels(self) -> int:
        x, y, z = self.shape
        return x * y * z


def validate_request(
    offset: Sequence[int],
    size: Sequence[int],
    frame: CoordinateFrame
) -> None:
    """
    Check the requested box against the coordinate frame.

    Raises:
        RangeOutOfBoundsError: offset < frame start or offset + size > frame stop
    """
    for axis, o, s, (start, stop) in zip("xyz", offset, size, frame.bounds):
        if o < start or o + s > stop:
            raise RangeOutOfBoundsError(axis, o, o + s, start, stop)


def _axis_ranges(offset: int, size: int, stride: int) -> List[Range]:
    end = offset + size
    ranges = []
    for scan in range(offset, end, stride):
        # the halo widens the chunk; the far face stays at scan + stride
        start = max(scan - 1, offset)
        ranges.append((start, min(scan + stride, end)))
    return ranges


def _check_positive(size: Sequence[int], stride: Sequence[int]) -> None:
    for axis, s, st in zip("xyz", size, stride):
        if s <= 0:
            raise ConfigurationError(f"{axis}size must be positive (got {s})")
        if st <= 0:
            raise ConfigurationError(f"{axis}stride must be positive (got {st})")


def iter_chunks(
    offset: Sequence[int],
    size: Sequence[int],
    stride: Sequence[int],
    frame: CoordinateFrame,
    resolution: int = 0
) -> Iterator[ChunkDescriptor]:
    """
    Yield chunk descriptors in scan order (x outermost, z innermost).

    Args:
        offset: (x, y, z) start of the requested box
        size: (x, y, z) extent of the requested box
        stride: (x, y, z) chunk step
        frame: Coordinate frame the box must lie in
        resolution: Resolution level; only 0 is supported

    Yields:
        ChunkDescriptor with ids 0, 1, 2, ...
    """
    if resolution != 0:
        # TODO: scale voxel sizes by the experiment's hierarchy method to mesh coarser levels
        raise UnsupportedResolutionError(resolution)
    _check_positive(size, stride)
    validate_request(offset, size, frame)

    x_ranges, y_ranges, z_ranges = (
        _axis_ranges(o, s, st) for o, s, st in zip(offset, size, stride)
    )

    chunk_id = 0
    for x_range in x_ranges:
        for y_range in y_ranges:
            for z_range in z_ranges:
                logger.debug(
                    f"Chunk {chunk_id}: {x_range[0]} {y_range[0]} {z_range[0]} -> "
                    f"{x_range[1]} {y_range[1]} {z_range[1]}"
                )
                yield ChunkDescriptor(chunk_id, x_range, y_range, z_range, resolution)
                chunk_id += 1


def plan_chunks(
    offset: Sequence[int],
    size: Sequence[int],
    stride: Sequence[int],
    frame: CoordinateFrame,
    resolution: int = 0
) -> List[ChunkDescriptor]:
    """Materialize iter_chunks()."""
    chunks = list(iter_chunks(offset, size, stride, frame, resolution))
    logger.info(f"Planned {len(chunks)} chunks")
    return chunks


def count_chunks(size: Sequence[int], stride: Sequence[int]) -> int:
    """Number of chunks plan_chunks() would produce."""
    _check_positive(size, stride)
    total = 1
    for s, st in zip(size, stride):
        total *= -(-s // st)
    return total
