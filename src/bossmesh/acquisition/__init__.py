"""
Boss acquisition modules: metadata, cutouts and blosc decoding.
"""

from .boss_client import BossClient, CoordinateFrame, ExperimentMetadata
from .blosc_codec import decompress

__all__ = [
    "BossClient",
    "CoordinateFrame",
    "ExperimentMetadata",
    "decompress"
]
