#!/usr/bin/env python3
"""
bossmesh - Orchestrator

Mesh every labeled object inside a bounding box of a Boss channel and
publish Neuroglancer fragments plus one manifest per object.

Usage:
    bossmesh --token $BOSS_TOKEN --path out/ --collection col --experiment exp --channel seg \
        --xsize 2048 --ysize 2048 --zsize 128 --xstride 512 --ystride 512 --zstride 64
    bossmesh --config run.json --token $BOSS_TOKEN --threads 4
"""

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from .acquisition.boss_client import BossClient
from .common.config import Config, DEFAULT_HOSTNAME
from .common.errors import BossMeshError, ConfigurationError
from .geometry.manifest import publish_manifests
from .geometry.mesh_extractor import MarchingCubesExtractor
from .processing.chunk_planner import count_chunks, plan_chunks
from .processing.fragment_registry import FragmentRegistry
from .processing.reconcile import first_error, reconcile
from .processing.worker_pool import ExtractionResult, ExtractionTarget, ExtractionWorkerPool, MeshJob

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    num_chunks: int
    num_fragments: int
    num_objects: int


def run_extraction(
    config: Config,
    client: Optional[BossClient] = None,
    extractor=None
) -> RunSummary:
    """
    Run a full extraction: plan, mesh, reconcile, publish.

    Any failed chunk aborts the run after every result has been drained;
    no manifest is written unless all chunks succeeded and the fragment
    counts reconcile.

    Args:
        config: Run configuration
        client: Boss client (default: built from config)
        extractor: Mesh extractor (default: MarchingCubesExtractor)

    Returns:
        RunSummary
    """
    config.validate()
    if client is None:
        client = BossClient(config.hostname, config.token, config.version, config.request_timeout)
    if extractor is None:
        extractor = MarchingCubesExtractor()

    experiment = client.get_experiment_info(config.collection, config.experiment)
    frame = client.get_coordinate_frame(experiment.coord_frame)
    resolution_nm = frame.voxel_size_nm()
    logger.info(
        f"Coordinate frame {frame.name}: x={frame.x_bounds} y={frame.y_bounds} z={frame.z_bounds}, "
        f"voxel size {resolution_nm} nm"
    )

    logger.info(
        f"Tiling {config.size} voxels from {config.offset} with stride {config.stride} "
        f"into {count_chunks(config.size, config.stride)} chunks"
    )
    chunks = plan_chunks(config.offset, config.size, config.stride, frame, config.resolution)

    output_dir = Path(config.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    target = ExtractionTarget(config.collection, config.experiment, config.channel, resolution_nm)
    jobs = [MeshJob(chunk, target, str(output_dir), config.prefix) for chunk in chunks]

    registry = FragmentRegistry()
    pool = ExtractionWorkerPool(client, extractor, registry, config.threads, config.cooldown_s)

    results: List[ExtractionResult] = []
    for result in tqdm(pool.run(jobs), total=len(jobs), desc="Extracting", unit="chunk"):
        results.append(result)
        if result.error is not None and not pool.cancelled:
            pool.cancel()

    error = first_error(results)
    if error is not None:
        raise error

    snapshot = registry.snapshot(chunk.chunk_id for chunk in chunks)
    num_fragments = reconcile(results, snapshot)
    num_objects = publish_manifests(snapshot, output_dir)

    logger.info(f"Done: Extracted {num_fragments} meshes.")
    return RunSummary(len(chunks), num_fragments, num_objects)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="bossmesh - Extract Neuroglancer meshes from a Boss annotation channel"
    )
    parser.add_argument("--config", type=Path, help="JSON config file; flags override its values")
    parser.add_argument("--token", help="Boss API token (default: $BOSS_TOKEN)")
    parser.add_argument("--path", type=Path, help="Directory to use for output files")
    parser.add_argument("--prefix", help="Prefix for Neuroglancer mesh files (default: mesh)")
    parser.add_argument("--hostname", help=f"Boss server hostname (default: {DEFAULT_HOSTNAME})")
    parser.add_argument("--collection", help="Boss collection")
    parser.add_argument("--experiment", help="Boss experiment")
    parser.add_argument("--channel", help="Boss channel")
    for axis in "xyz":
        parser.add_argument(f"--{axis}offset", type=int, help=f"The {axis}-offset of the cutout")
        parser.add_argument(f"--{axis}size", type=int, help=f"The {axis}-size of the cutout")
        parser.add_argument(f"--{axis}stride", type=int, help=f"The size of the stride in the {axis} dimension")
    parser.add_argument("--res", type=int, help="The resolution of the cutout (only 0 is supported)")
    parser.add_argument("--threads", type=int, help="Number of simultaneous workers (default: 10)")
    parser.add_argument("--cooldown", type=float, help="Seconds each worker waits between chunks (default: 15)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    return parser


def config_from_args(args: argparse.Namespace) -> Config:
    """Build a Config from a JSON file (optional) overridden by CLI flags."""
    if args.config:
        try:
            config = Config.from_json(args.config)
        except (OSError, TypeError, ValueError) as e:
            raise ConfigurationError(f"unable to load config {args.config}: {e}") from e
    else:
        config = Config()

    overrides = {
        "token": args.token,
        "output_dir": args.path,
        "prefix": args.prefix,
        "hostname": args.hostname,
        "collection": args.collection,
        "experiment": args.experiment,
        "channel": args.channel,
        "resolution": args.res,
        "threads": args.threads,
        "cooldown_s": args.cooldown,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(config, key, value)

    for name in ("offset", "size", "stride"):
        current = list(getattr(config, name))
        for i, axis in enumerate("xyz"):
            value = getattr(args, f"{axis}{name}")
            if value is not None:
                current[i] = value
        setattr(config, name, tuple(current))

    if not config.token:
        config.token = os.getenv("BOSS_TOKEN")
    return config


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        config = config_from_args(args)
        summary = run_extraction(config)
    except BossMeshError as e:
        logger.error(f"bossmesh: {e}")
        sys.exit(1)

    logger.info(
        f"COMPLETE: {summary.num_chunks} chunks, {summary.num_fragments} fragments, "
        f"{summary.num_objects} manifests"
    )


if __name__ == "__main__":
    main()
