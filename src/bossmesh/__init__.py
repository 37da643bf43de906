"""
bossmesh - Chunked Neuroglancer mesh extraction from Boss volumes.

Pipeline stages:
- Acquisition: metadata and blosc cutouts from the Boss REST API
- Processing: chunk planning, bounded worker pool, fragment registry
- Geometry: marching cubes per label, ngmesh fragments, manifests

Usage:
    bossmesh --token $BOSS_TOKEN --path meshes/ --collection c --experiment e \
        --channel seg --xsize 1024 --ysize 1024 --zsize 64 \
        --xstride 512 --ystride 512 --zstride 32
"""

__version__ = "2.0.0"
