"""
Geometry modules: per-label meshing and Neuroglancer manifests.
"""

from .mesh_extractor import MarchingCubesExtractor, MeshExtractor, to_extractor_volume
from .manifest import build_manifest, publish_manifests

__all__ = [
    "MarchingCubesExtractor",
    "MeshExtractor",
    "to_extractor_volume",
    "build_manifest",
    "publish_manifests"
]
