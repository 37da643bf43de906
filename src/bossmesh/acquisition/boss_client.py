"""
Boss Data Acquisition Module

Reads experiment and coordinate frame metadata from the Boss REST API
and downloads blosc-compressed annotation cutouts.

API reference: https://docs.theboss.io/
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from ..common.config import BOSS_VERSION, VoxelUnit
from ..common.errors import ConfigurationError, RemoteCutoutError, RemoteMetadataError
from . import blosc_codec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExperimentMetadata:
    """Metadata for a Boss experiment nested in a collection."""
    name: str
    collection: str
    coord_frame: str
    description: str = ""
    channels: List[str] = field(default_factory=list)
    num_hierarchy_levels: int = 1
    hierarchy_method: str = ""
    num_time_samples: int = 1
    time_step: Optional[Any] = None
    time_step_unit: str = ""
    creator: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExperimentMetadata":
        if not data.get("coord_frame"):
            raise RemoteMetadataError("experiment: response has no coord_frame")
        return cls(
            name=data.get("name", ""),
            collection=data.get("collection", ""),
            coord_frame=data["coord_frame"],
            description=data.get("description") or "",
            channels=list(data.get("channels") or []),
            num_hierarchy_levels=int(data.get("num_hierarchy_levels") or 1),
            hierarchy_method=data.get("hierarchy_method") or "",
            num_time_samples=int(data.get("num_time_samples") or 1),
            time_step=data.get("time_step"),
            time_step_unit=data.get("time_step_unit") or "",
            creator=data.get("creator") or "",
        )


@dataclass(frozen=True)
class CoordinateFrame:
    """
    Global bounds and voxel size of a Boss coordinate frame.

    Bounds are start-inclusive, stop-exclusive voxel indices at native
    resolution.
    """
    name: str
    x_start: int
    x_stop: int
    y_start: int
    y_stop: int
    z_start: int
    z_stop: int
    x_voxel_size: float
    y_voxel_size: float
    z_voxel_size: float
    voxel_unit: str
    description: str = ""

    def __post_init__(self):
        for axis, (start, stop) in zip("xyz", (self.x_bounds, self.y_bounds, self.z_bounds)):
            if stop <= start:
                raise RemoteMetadataError(
                    f"coord frame {self.name}: {axis}_stop ({stop}) must exceed {axis}_start ({start})"
                )

    @property
    def x_bounds(self) -> Tuple[int, int]:
        return self.x_start, self.x_stop

    @property
    def y_bounds(self) -> Tuple[int, int]:
        return self.y_start, self.y_stop

    @property
    def z_bounds(self) -> Tuple[int, int]:
        return self.z_start, self.z_stop

    @property
    def bounds(self) -> Tuple[Tuple[int, int], Tuple[int, int], Tuple[int, int]]:
        return self.x_bounds, self.y_bounds, self.z_bounds

    def voxel_size_nm(self) -> Tuple[float, float, float]:
        """Voxel size (x, y, z) converted to nanometers."""
        scale = VoxelUnit.parse(self.voxel_unit).nm_scale
        return (
            self.x_voxel_size * scale,
            self.y_voxel_size * scale,
            self.z_voxel_size * scale,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CoordinateFrame":
        try:
            return cls(
                name=data.get("name", ""),
                description=data.get("description") or "",
                x_start=int(data["x_start"]),
                x_stop=int(data["x_stop"]),
                y_start=int(data["y_start"]),
                y_stop=int(data["y_stop"]),
                z_start=int(data["z_start"]),
                z_stop=int(data["z_stop"]),
                x_voxel_size=float(data["x_voxel_size"]),
                y_voxel_size=float(data["y_voxel_size"]),
                z_voxel_size=float(data["z_voxel_size"]),
                voxel_unit=data["voxel_unit"],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteMetadataError(f"coord frame: unable to parse coordinate frame information ({e})") from e


class BossClient:
    """Client for the Boss metadata and cutout services."""

    def __init__(
        self,
        hostname: str,
        token: Optional[str],
        version: str = BOSS_VERSION,
        timeout: float = 120.0,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize Boss client.

        Args:
            hostname: Boss API host, without scheme
            token: Boss API token (required)
            version: API version path segment; empty means "latest"
            timeout: Per-request timeout in seconds
            session: Optional pre-configured requests session
        """
        if not token:
            raise ConfigurationError("boss API Token is required")
        self.hostname = hostname
        self.version = version or "latest"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Token {token}",
        })

    @property
    def server_url(self) -> str:
        return f"https://{self.hostname}/{self.version}"

    def _get_json(self, url: str, what: str) -> Dict[str, Any]:
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteMetadataError(f"{what}: request failed: {e}", url) from e

        if not 200 <= response.status_code < 300:
            raise RemoteMetadataError(
                f"{what}: http request returned error ({response.status_code}):\n{response.text}", url
            )
        if not response.content:
            raise RemoteMetadataError(f"{what}: empty response body", url)

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteMetadataError(f"{what}: unable to parse JSON {what} information", url) from e

        if not isinstance(data, dict) or not data:
            raise RemoteMetadataError(f"{what}: unable to parse JSON {what} information", url)
        return data

    def get_experiment_info(self, collection: str, experiment: str) -> ExperimentMetadata:
        """
        Get metadata for an experiment nested in a collection.

        Args:
            collection: Boss collection name
            experiment: Boss experiment name

        Returns:
            ExperimentMetadata (names the coordinate frame to fetch next)
        """
        url = f"{self.server_url}/collection/{collection}/experiment/{experiment}/"
        data = self._get_json(url, "experiment")
        try:
            return ExperimentMetadata.from_dict(data)
        except RemoteMetadataError as e:
            raise RemoteMetadataError(str(e), url) from e

    def get_coordinate_frame(self, name: str) -> CoordinateFrame:
        """Get the bounds and voxel size of a coordinate frame."""
        url = f"{self.server_url}/coord/{name}"
        data = self._get_json(url, "coord frame")
        try:
            return CoordinateFrame.from_dict(data)
        except RemoteMetadataError as e:
            raise RemoteMetadataError(str(e), url) from e

    def cutout_url(
        self,
        collection: str,
        experiment: str,
        channel: str,
        x_range: Sequence[int],
        y_range: Sequence[int],
        z_range: Sequence[int],
        resolution: int
    ) -> str:
        args = (
            f"{resolution}/{x_range[0]}:{x_range[1]}/"
            f"{y_range[0]}:{y_range[1]}/{z_range[0]}:{z_range[1]}/"
        )
        return f"{self.server_url}/cutout/{collection}/{experiment}/{channel}/{args}"

    def cutout(
        self,
        collection: str,
        experiment: str,
        channel: str,
        x_range: Sequence[int],
        y_range: Sequence[int],
        z_range: Sequence[int],
        resolution: int
    ) -> bytes:
        """
        Download a blosc-compressed cutout and return the raw voxel bytes.

        Args:
            collection, experiment, channel: Boss resource names
            x_range, y_range, z_range: (start, stop) per axis, stop exclusive
            resolution: Resolution level (0 = native)

        Returns:
            Uncompressed voxel bytes, packed in the Boss' (z, y, x) order

        Raises:
            RemoteCutoutError: Non-success status or transport failure
            DecompressionError: Corrupt payload
        """
        url = self.cutout_url(collection, experiment, channel, x_range, y_range, z_range, resolution)
        try:
            response = self.session.get(
                url,
                headers={"Accept": "application/blosc"},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise RemoteCutoutError(None, str(e), url) from e

        if not 200 <= response.status_code < 300:
            raise RemoteCutoutError(response.status_code, response.text, url)

        logger.debug(f"Cutout {url}: {len(response.content)} compressed bytes")
        return blosc_codec.decompress(response.content)
