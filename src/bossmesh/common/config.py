"""
Configuration and constants for mesh extraction runs.

Unit Model:
- The Boss reports voxel sizes in nanometers or micrometers
- Everything handed to the mesher is converted to nanometers
- Neuroglancer reads mesh vertices as nanometers
"""

from enum import Enum
from dataclasses import dataclass
from typing import Optional, Dict, Any, Tuple
import json
from pathlib import Path

from .errors import ConfigurationError


BOSS_VERSION = "v1"
DEFAULT_HOSTNAME = "api.boss.neurodata.io"


class VoxelUnit(Enum):
    """
    Voxel size units a Boss coordinate frame may declare.

    NANOMETERS: used as-is
    MICROMETERS: multiplied by 1000 before meshing
    """
    NANOMETERS = "nanometers"
    MICROMETERS = "micrometers"

    @property
    def nm_scale(self) -> float:
        return 1000.0 if self is VoxelUnit.MICROMETERS else 1.0

    @classmethod
    def parse(cls, value: str) -> "VoxelUnit":
        try:
            return cls(value)
        except ValueError:
            raise ConfigurationError(f"invalid voxel unit: {value}") from None


@dataclass
class Config:
    """
    Settings for a single extraction run.

    Offsets, sizes and strides are (x, y, z) voxel counts at the
    requested resolution. The token is never written by save().
    """

    # Boss access
    token: Optional[str] = None
    hostname: str = DEFAULT_HOSTNAME
    version: str = BOSS_VERSION
    request_timeout: float = 120.0

    # Dataset
    collection: str = ""
    experiment: str = ""
    channel: str = ""

    # Bounding box
    offset: Tuple[int, int, int] = (0, 0, 0)
    size: Tuple[int, int, int] = (0, 0, 0)
    stride: Tuple[int, int, int] = (0, 0, 0)
    resolution: int = 0

    # Worker pool
    threads: int = 10
    cooldown_s: float = 15.0  # politeness delay between jobs, per worker

    # Output
    output_dir: Optional[Path] = None
    prefix: str = "mesh"

    def validate(self) -> None:
        """Check everything that can be checked before talking to the Boss."""
        if not self.token:
            raise ConfigurationError("boss API Token is required")
        if self.output_dir is None or not str(self.output_dir):
            raise ConfigurationError("directory path for output files is required")
        for name in ("collection", "experiment", "channel"):
            if not getattr(self, name):
                raise ConfigurationError(f"boss {name} is required")
        for axis, size, stride in zip("xyz", self.size, self.stride):
            if size <= 0:
                raise ConfigurationError(f"{axis}size must be positive (got {size})")
            if stride <= 0:
                raise ConfigurationError(f"{axis}stride must be positive (got {stride})")
        if self.threads < 1:
            raise ConfigurationError(f"threads must be at least 1 (got {self.threads})")
        if self.cooldown_s < 0:
            raise ConfigurationError(f"cooldown must be non-negative (got {self.cooldown_s})")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hostname": self.hostname,
            "version": self.version,
            "request_timeout": self.request_timeout,
            "collection": self.collection,
            "experiment": self.experiment,
            "channel": self.channel,
            "offset": list(self.offset),
            "size": list(self.size),
            "stride": list(self.stride),
            "resolution": self.resolution,
            "threads": self.threads,
            "cooldown_s": self.cooldown_s,
            "output_dir": str(self.output_dir) if self.output_dir is not None else None,
            "prefix": self.prefix,
        }

    @classmethod
    def from_json(cls, path: Path) -> "Config":
        """Load config from JSON file."""
        with open(path) as f:
            data = json.load(f)
        for key in ("offset", "size", "stride"):
            if key in data:
                data[key] = tuple(int(v) for v in data[key])
        if data.get("output_dir") is not None:
            data["output_dir"] = Path(data["output_dir"])
        return cls(**data)

    def save(self, path: Path) -> None:
        """Save config to JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
