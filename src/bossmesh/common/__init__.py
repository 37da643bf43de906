"""
Common modules shared by every pipeline stage.

Units: all voxel resolutions handed to the mesher are in nanometers.
Neuroglancer expects mesh vertices in nanometer coordinates.
"""

from .config import Config, VoxelUnit
from .errors import (
    BossMeshError,
    ConfigurationError,
    RangeOutOfBoundsError,
    UnsupportedResolutionError,
    RemoteError,
    RemoteMetadataError,
    RemoteCutoutError,
    DecompressionError,
    ExtractionError,
    JobCancelledError,
    RegistryConsistencyError,
    ManifestWriteError,
)
from .io import write_ngmesh, write_json

__all__ = [
    'Config', 'VoxelUnit',
    'BossMeshError', 'ConfigurationError', 'RangeOutOfBoundsError',
    'UnsupportedResolutionError', 'RemoteError', 'RemoteMetadataError',
    'RemoteCutoutError', 'DecompressionError', 'ExtractionError',
    'JobCancelledError', 'RegistryConsistencyError', 'ManifestWriteError',
    'write_ngmesh', 'write_json',
]
