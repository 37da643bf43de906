"""
Data I/O utilities.

Handles writing mesh fragments in Neuroglancer's legacy binary format
and small JSON documents (manifests).

ngmesh layout (little-endian):
    uint32              num_vertices
    float32[n, 3]       vertex positions (x, y, z) in nanometers
    uint32[m, 3]        triangle vertex indices
"""

import json
import logging
import struct
from pathlib import Path
from typing import Any, Union

import numpy as np

logger = logging.getLogger(__name__)


def encode_ngmesh(vertices: np.ndarray, faces: np.ndarray) -> bytes:
    """Serialize a triangle mesh to ngmesh bytes."""
    vertices = np.asarray(vertices, dtype='<f4').reshape(-1, 3)
    faces = np.asarray(faces, dtype='<u4').reshape(-1, 3)
    return struct.pack('<I', len(vertices)) + vertices.tobytes() + faces.tobytes()


def write_ngmesh(path: Union[str, Path], vertices: np.ndarray, faces: np.ndarray) -> int:
    """
    Write a mesh fragment to disk.

    Args:
        path: Output file path (no extension is added)
        vertices: Nx3 float vertex positions in nanometers
        faces: Mx3 integer triangle indices

    Returns:
        Number of bytes written
    """
    payload = encode_ngmesh(vertices, faces)
    with open(path, 'wb') as f:
        f.write(payload)
    logger.debug(f"Wrote fragment {path} ({len(vertices)} verts, {len(faces)} tris)")
    return len(payload)


def write_json(path: Union[str, Path], document: Any) -> None:
    """Write a JSON document, replacing any existing file."""
    with open(path, 'w') as f:
        json.dump(document, f)
