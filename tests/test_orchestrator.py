import os
import threading
import time

import pytest

import vidprep_lib.providers as prov
from vidprep_lib.data.schemas import ChunkPolicy, OutputFormat
from vidprep_lib.errors import BatchProcessingError
from vidprep_lib.pipeline.clip_pipeline import ClipPipeline
from vidprep_lib.pipeline.orchestrator import ParallelOrchestrator


def build_orchestrator(engine, output_root, dims, workers, output_format=OutputFormat.NPY):
    serializer = prov.get_serializer(output_format, 8, dims, 8)
    pipeline = ClipPipeline(engine, serializer, output_root, 8, ChunkPolicy.TRUNCATE)
    return ParallelOrchestrator(pipeline, workers=workers)


@pytest.mark.parametrize("workers", [-3, 0, 1, 4, 32])
def test_every_clip_is_processed(tmp_path, dims, engine_factory, make_clips, workers):
    clips = make_clips(*[f"clip{i}" for i in range(10)])
    engine = engine_factory(frames=16)
    out = str(tmp_path / "out")

    report = build_orchestrator(engine, out, dims, workers).run(clips)

    assert report.chunks_per_clip == {clip.key: 2 for clip in clips}
    assert report.total_chunks == 20
    assert report.failed_keys == []
    assert len(engine.seen_paths) == 10
    assert sorted(os.listdir(out)) == sorted(clip.key for clip in clips)


def test_failing_clip_does_not_stop_siblings(tmp_path, dims, engine_factory, make_clips):
    clips = make_clips("a", "b", "bad", "c", "d")
    engine = engine_factory(frames=24, fail_keys=["bad"])
    out = tmp_path / "out"

    with pytest.raises(BatchProcessingError) as excinfo:
        build_orchestrator(engine, str(out), dims, workers=3).run(clips)

    error = excinfo.value
    assert error.failed_keys == ["bad"]
    assert "encountered 1 errors" in str(error)
    assert "error processing bad" in str(error)
    assert error.report.chunks_per_clip == {"a": 3, "b": 3, "c": 3, "d": 3}
    for key in ("a", "b", "c", "d"):
        assert len([n for n in os.listdir(out / key) if n.endswith(".npy")]) == 3


def test_all_failures_are_reported(tmp_path, dims, engine_factory, make_clips):
    clips = make_clips("x1", "x2", "ok")
    engine = engine_factory(fail_keys=["x1", "x2"])

    with pytest.raises(BatchProcessingError) as excinfo:
        build_orchestrator(engine, str(tmp_path / "out"), dims, workers=2).run(clips)

    assert sorted(excinfo.value.failed_keys) == ["x1", "x2"]
    assert "encountered 2 errors" in str(excinfo.value)


def test_worker_count_bounds_concurrency(tmp_path, dims, engine_factory, make_clips):
    clips = make_clips(*[f"clip{i}" for i in range(12)])
    active = 0
    peak = 0
    lock = threading.Lock()
    base = engine_factory(frames=8)

    class SlowEngine:
        def extract_raw(self, video_path, fps, dims):
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.02)
            with lock:
                active -= 1
            return base.extract_raw(video_path, fps, dims)

    build_orchestrator(SlowEngine(), str(tmp_path / "out"), dims, workers=3).run(clips)

    assert 1 <= peak <= 3


def test_empty_batch(tmp_path, dims, fake_engine):
    report = build_orchestrator(fake_engine, str(tmp_path / "out"), dims, workers=4).run([])

    assert report.total_chunks == 0
    assert report.chunks_per_clip == {}


def test_unwritable_temp_root_fails_every_clip(tmp_path, dims, fake_engine, make_clips):
    clips = make_clips("a", "b", "c")
    serializer = prov.get_serializer(OutputFormat.NPY, 8, dims, 8)
    pipeline = ClipPipeline(
        fake_engine, serializer, str(tmp_path / "out"), 8, temp_root=str(tmp_path / "missing")
    )

    with pytest.raises(BatchProcessingError) as excinfo:
        ParallelOrchestrator(pipeline, workers=1).run(clips)

    assert sorted(excinfo.value.failed_keys) == ["a", "b", "c"]
    assert "encountered 3 errors" in str(excinfo.value)
    assert excinfo.value.report.chunks_per_clip == {}


def test_unexpected_pipeline_error_keeps_worker_alive(tmp_path, dims, fake_engine, make_clips):
    clips = make_clips("a", "boom", "b", "c")
    serializer = prov.get_serializer(OutputFormat.NPY, 8, dims, 8)

    class FragilePipeline(ClipPipeline):
        def process(self, clip):
            if clip.key == "boom":
                raise RuntimeError("unexpected")
            return super().process(clip)

    pipeline = FragilePipeline(fake_engine, serializer, str(tmp_path / "out"), 8)

    with pytest.raises(BatchProcessingError) as excinfo:
        ParallelOrchestrator(pipeline, workers=1).run(clips)

    error = excinfo.value
    assert error.failed_keys == ["boom"]
    assert "error processing boom: unexpected" in str(error)
    assert error.report.chunks_per_clip == {"a": 3, "b": 3, "c": 3}
