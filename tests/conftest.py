"""
Shared fixtures: a fake Boss HTTP session, an in-memory Boss client and
a recording mesh extractor.
"""

import json
import struct
import threading

import numpy as np
import pytest
from numcodecs import Blosc

from bossmesh.acquisition.boss_client import CoordinateFrame
from bossmesh.common.errors import RemoteCutoutError


# ============== HTTP fakes ==============

class FakeResponse:
    def __init__(self, status_code=200, content=b"", text=None):
        self.status_code = status_code
        self.content = content
        self.text = text if text is not None else content.decode("utf-8", errors="replace")

    def json(self):
        return json.loads(self.content.decode("utf-8"))


class FakeSession:
    """Records every GET and answers from a url -> FakeResponse table."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.headers = {}
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        merged = dict(self.headers)
        merged.update(headers or {})
        self.calls.append({"url": url, "headers": merged, "timeout": timeout})
        if url not in self.routes:
            return FakeResponse(404, b'{"detail": "Not found."}')
        response = self.routes[url]
        if isinstance(response, Exception):
            raise response
        return response


def json_response(document, status_code=200):
    return FakeResponse(status_code, json.dumps(document).encode("utf-8"))


def blosc_bytes(array: np.ndarray) -> bytes:
    return bytes(Blosc(cname="lz4", clevel=5).encode(np.ascontiguousarray(array)))


class FailingCodec:
    """Stands in for numcodecs.Blosc and fails the way blosc reports errors."""

    def __init__(self, code):
        self.code = code

    def decode(self, buf, out=None):
        raise RuntimeError(f"error during blosc decompression: {self.code}")


# ============== ngmesh reading ==============

def decode_ngmesh(data: bytes):
    """Parse legacy ngmesh bytes into (vertices, faces)."""
    (n_vertices,) = struct.unpack_from('<I', data, 0)
    vertex_end = 4 + n_vertices * 12
    assert len(data) >= vertex_end and (len(data) - vertex_end) % 12 == 0
    vertices = np.frombuffer(data, dtype='<f4', count=n_vertices * 3, offset=4).reshape(-1, 3)
    faces = np.frombuffer(data, dtype='<u4', offset=vertex_end).reshape(-1, 3)
    return vertices, faces


def read_ngmesh(path):
    with open(path, 'rb') as f:
        return decode_ngmesh(f.read())


# ============== In-memory Boss ==============

class InMemoryBoss:
    """
    Serves cutouts from a global uint64 label volume indexed (z, y, x).

    Chunks listed in fail_with raise the given exception instead.
    """

    def __init__(self, labels: np.ndarray, fail_with=None):
        self.labels = labels.astype(np.uint64)
        self.fail_with = dict(fail_with or {})
        self.requests = []
        self._lock = threading.Lock()

    def cutout(self, collection, experiment, channel, x_range, y_range, z_range, resolution):
        key = (tuple(x_range), tuple(y_range), tuple(z_range))
        with self._lock:
            self.requests.append(key)
        if key in self.fail_with:
            raise self.fail_with[key]
        block = self.labels[z_range[0]:z_range[1], y_range[0]:y_range[1], x_range[0]:x_range[1]]
        return np.ascontiguousarray(block).tobytes()


class RecordingExtractor:
    """
    Stand-in for the mesher: reports one fragment per non-zero label
    without computing geometry.
    """

    def __init__(self, extra_reported=0):
        self.calls = []
        self.extra_reported = extra_reported
        self._lock = threading.Lock()

    def extract(self, volume, chunk_id, prefix, shape, offset, resolution, on_fragment):
        with self._lock:
            self.calls.append({
                "chunk_id": chunk_id,
                "prefix": prefix,
                "shape": tuple(shape),
                "offset": tuple(offset),
                "resolution": tuple(resolution),
                "dtype": volume.dtype,
            })
        labels = [int(v) for v in np.unique(volume) if v != 0]
        for label in labels:
            on_fragment(f"{prefix}.{label}", label, chunk_id)
        return len(labels) + self.extra_reported


# ============== Fixtures ==============

@pytest.fixture
def frame():
    return CoordinateFrame(
        name="test_frame",
        x_start=0, x_stop=100,
        y_start=0, y_stop=100,
        z_start=0, z_stop=100,
        x_voxel_size=4.0, y_voxel_size=4.0, z_voxel_size=40.0,
        voxel_unit="nanometers",
    )


@pytest.fixture
def frame_json():
    return {
        "name": "test_frame",
        "description": "",
        "x_start": 0, "x_stop": 100,
        "y_start": 0, "y_stop": 100,
        "z_start": 0, "z_stop": 100,
        "x_voxel_size": 4.0, "y_voxel_size": 4.0, "z_voxel_size": 40.0,
        "voxel_unit": "nanometers",
        "time_step": None,
    }


@pytest.fixture
def experiment_json():
    return {
        "name": "exp",
        "description": "test experiment",
        "collection": "col",
        "coord_frame": "test_frame",
        "channels": ["seg"],
        "num_hierarchy_levels": 5,
        "hierarchy_method": "anisotropic",
        "num_time_samples": 1,
        "time_step": None,
        "time_step_unit": "",
        "creator": "tester",
    }


@pytest.fixture
def two_object_labels():
    """20^3 volume with object 42 in two chunks and object 7 in one."""
    labels = np.zeros((20, 20, 20), dtype=np.uint64)
    labels[2:5, 2:5, 2:5] = 42        # chunk at scan start (0, 0, 0)
    labels[14:17, 14:17, 14:17] = 42  # chunk at scan start (10, 10, 10)
    labels[2:5, 2:5, 14:17] = 7       # x in [14, 17): chunk at scan start (10, 0, 0)
    return labels


@pytest.fixture
def raise_cutout_404():
    def make(x_range, y_range, z_range):
        url = (
            f"https://api.example.org/v1/cutout/col/exp/seg/0/"
            f"{x_range[0]}:{x_range[1]}/{y_range[0]}:{y_range[1]}/{z_range[0]}:{z_range[1]}/"
        )
        return RemoteCutoutError(404, '{"detail": "Cutout out of range"}', url)
    return make
