"""
End-to-end tests for the orchestrator and its command line.
"""

import json
from pathlib import Path

import pytest

from bossmesh.acquisition.boss_client import ExperimentMetadata
from bossmesh.common.config import Config
from bossmesh.common.errors import (
    BossMeshError,
    ConfigurationError,
    ExtractionError,
    RangeOutOfBoundsError,
    RegistryConsistencyError,
    RemoteCutoutError,
)
from bossmesh.run_all import build_parser, config_from_args, main, run_extraction

from conftest import InMemoryBoss, RecordingExtractor, read_ngmesh


class StubBoss(InMemoryBoss):
    """In-memory Boss that also answers metadata queries."""

    def __init__(self, labels, frame, fail_with=None):
        super().__init__(labels, fail_with)
        self.frame = frame
        self.metadata_calls = []

    def get_experiment_info(self, collection, experiment):
        self.metadata_calls.append(("experiment", collection, experiment))
        return ExperimentMetadata(name=experiment, collection=collection, coord_frame=self.frame.name,
                                  channels=["seg"])

    def get_coordinate_frame(self, name):
        self.metadata_calls.append(("coord", name))
        return self.frame


@pytest.fixture
def config(tmp_path):
    return Config(
        token="secret",
        collection="col",
        experiment="exp",
        channel="seg",
        offset=(0, 0, 0),
        size=(20, 20, 20),
        stride=(10, 10, 10),
        threads=3,
        cooldown_s=0,
        output_dir=tmp_path / "meshes",
    )


def manifest(output_dir: Path, object_id: int):
    return json.loads((output_dir / str(object_id)).read_text())


# ============== Run Tests ==============

class TestRunExtraction:

    def test_two_objects_across_chunks(self, config, frame, two_object_labels):
        boss = StubBoss(two_object_labels, frame)

        summary = run_extraction(config, client=boss)

        assert summary.num_chunks == 8
        assert summary.num_fragments == 3
        assert summary.num_objects == 2
        assert len(boss.requests) == 8

        out = config.output_dir
        assert sorted(manifest(out, 42)["fragments"]) == ["mesh.0.42", "mesh.7.42"]
        assert manifest(out, 7) == {"fragments": ["mesh.4.7"]}
        for name in ("mesh.0.42", "mesh.7.42", "mesh.4.7"):
            vertices, faces = read_ngmesh(out / name)
            assert len(vertices) > 0 and len(faces) > 0

    def test_custom_prefix(self, config, frame, two_object_labels):
        config.prefix = "seg"
        run_extraction(config, client=StubBoss(two_object_labels, frame), extractor=RecordingExtractor())
        assert sorted(manifest(config.output_dir, 42)["fragments"]) == ["seg.0.42", "seg.7.42"]

    def test_failed_chunk_aborts_before_manifests(self, config, frame, two_object_labels, raise_cutout_404):
        key = ((9, 20), (0, 10), (0, 10))
        boss = StubBoss(two_object_labels, frame, fail_with={key: raise_cutout_404(*key)})

        with pytest.raises(RemoteCutoutError) as exc:
            run_extraction(config, client=boss, extractor=RecordingExtractor())

        assert exc.value.status_code == 404
        assert not (config.output_dir / "42").exists()
        assert not (config.output_dir / "7").exists()

    def test_count_mismatch_aborts_before_manifests(self, config, frame, two_object_labels):
        boss = StubBoss(two_object_labels, frame)

        with pytest.raises(RegistryConsistencyError):
            run_extraction(config, client=boss, extractor=RecordingExtractor(extra_reported=1))

        assert not (config.output_dir / "42").exists()

    def test_missing_token_fails_before_any_request(self, config, frame, two_object_labels):
        config.token = None
        boss = StubBoss(two_object_labels, frame)

        with pytest.raises(ConfigurationError):
            run_extraction(config, client=boss)

        assert boss.metadata_calls == []
        assert boss.requests == []

    def test_box_outside_frame_fails_before_cutouts(self, config, frame, two_object_labels):
        config.offset = (95, 0, 0)
        boss = StubBoss(two_object_labels, frame)

        with pytest.raises(RangeOutOfBoundsError):
            run_extraction(config, client=boss)

        assert boss.requests == []
        assert not config.output_dir.exists()

    def test_unexpected_job_error_stays_in_error_family(self, config, frame, two_object_labels):
        class BrokenExtractor:
            def extract(self, *args):
                raise OSError("disk full")

        config.threads = 1
        with pytest.raises(BossMeshError) as exc:
            run_extraction(config, client=StubBoss(two_object_labels, frame), extractor=BrokenExtractor())

        assert isinstance(exc.value, ExtractionError)
        assert exc.value.chunk_id == 0
        assert not (config.output_dir / "42").exists()

    def test_single_worker(self, config, frame, two_object_labels):
        config.threads = 1
        summary = run_extraction(config, client=StubBoss(two_object_labels, frame), extractor=RecordingExtractor())
        assert summary.num_fragments == 3


# ============== CLI Tests ==============

class TestCommandLine:

    def test_flags(self, monkeypatch, tmp_path):
        monkeypatch.delenv("BOSS_TOKEN", raising=False)
        args = build_parser().parse_args([
            "--token", "abc", "--path", str(tmp_path), "--collection", "col",
            "--experiment", "exp", "--channel", "seg",
            "--xsize", "100", "--ysize", "50", "--zsize", "10",
            "--xstride", "25", "--ystride", "25", "--zstride", "5",
            "--zoffset", "3", "--threads", "4", "--cooldown", "0.5",
        ])

        config = config_from_args(args)

        assert config.token == "abc"
        assert config.output_dir == tmp_path
        assert config.size == (100, 50, 10)
        assert config.stride == (25, 25, 5)
        assert config.offset == (0, 0, 3)
        assert config.threads == 4
        assert config.cooldown_s == 0.5
        assert config.prefix == "mesh"

    def test_token_from_environment(self, monkeypatch):
        monkeypatch.setenv("BOSS_TOKEN", "from-env")
        config = config_from_args(build_parser().parse_args([]))
        assert config.token == "from-env"

    def test_flags_override_config_file(self, monkeypatch, tmp_path):
        monkeypatch.delenv("BOSS_TOKEN", raising=False)
        path = tmp_path / "run.json"
        Config(collection="col", experiment="exp", channel="seg",
               size=(10, 10, 10), stride=(5, 5, 5), output_dir=tmp_path).save(path)

        config = config_from_args(build_parser().parse_args(["--config", str(path), "--ystride", "2"]))

        assert config.collection == "col"
        assert config.stride == (5, 2, 5)
        assert config.token is None

    def test_unreadable_config_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            config_from_args(build_parser().parse_args(["--config", str(path)]))

    def test_main_exits_nonzero_on_error(self, monkeypatch, tmp_path):
        monkeypatch.delenv("BOSS_TOKEN", raising=False)
        with pytest.raises(SystemExit) as exc:
            main(["--path", str(tmp_path), "--collection", "col", "--experiment", "exp", "--channel", "seg"])
        assert exc.value.code == 1
