"""
Error taxonomy for mesh extraction runs.

There is no retry policy: every error below is terminal for the run.
Configuration errors are raised before any network call is issued.
"""

from typing import Optional


class BossMeshError(Exception):
    """Base class for all bossmesh errors."""


class ConfigurationError(BossMeshError):
    """Missing or invalid run input."""


class RangeOutOfBoundsError(ConfigurationError):
    """Requested bounding box is not contained in the coordinate frame."""

    def __init__(self, axis: str, start: int, stop: int, frame_start: int, frame_stop: int):
        self.axis = axis
        self.start = start
        self.stop = stop
        self.frame_start = frame_start
        self.frame_stop = frame_stop
        super().__init__(
            f"invalid {axis} coordinate range [{start}, {stop}): "
            f"coordinate frame spans [{frame_start}, {frame_stop})"
        )


class UnsupportedResolutionError(ConfigurationError):
    """Meshing is only implemented for the native resolution (0)."""

    def __init__(self, resolution: int):
        self.resolution = resolution
        super().__init__(f"unable to generate meshes for res > 0 (requested res={resolution})")


class RemoteError(BossMeshError):
    """Failure talking to the Boss."""


class RemoteMetadataError(RemoteError):
    """Metadata request failed or returned an unusable body."""

    def __init__(self, message: str, url: Optional[str] = None):
        self.url = url
        if url:
            message = f"{message}\nURL Requested: {url}"
        super().__init__(message)


class RemoteCutoutError(RemoteError):
    """Cutout request returned a non-success status."""

    def __init__(self, status_code: Optional[int], body: str, url: str):
        self.status_code = status_code
        self.body = body
        self.url = url
        super().__init__(
            f"cutout: http request returned error ({status_code}):\n{body}\nURL Requested: {url}"
        )


class DecompressionError(BossMeshError):
    """Blosc payload could not be decompressed."""

    def __init__(self, code: int, detail: str = ""):
        self.code = code
        message = f"blosc: decompression error with error code {code}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ExtractionError(BossMeshError):
    """A chunk could not be converted or meshed."""

    def __init__(self, message: str, chunk_id: Optional[int] = None):
        self.chunk_id = chunk_id
        super().__init__(message)


class JobCancelledError(ExtractionError):
    """Job was skipped because the run had already been cancelled."""

    def __init__(self, chunk_id: int):
        super().__init__(f"chunk {chunk_id} skipped: extraction run was cancelled", chunk_id)


class RegistryConsistencyError(BossMeshError):
    """Reported fragment count differs from the fragments visible in the registry."""

    def __init__(self, reported: int, observed: int):
        self.reported = reported
        self.observed = observed
        super().__init__(
            f"number of extracted meshes ({reported}) does not match number of meshes "
            f"read post extraction ({observed}). Possible synchronization error"
        )


class ManifestWriteError(BossMeshError):
    """A manifest file could not be written."""

    def __init__(self, path: str, cause: Exception):
        self.path = path
        super().__init__(f"failed to write manifest {path}: {cause}")
