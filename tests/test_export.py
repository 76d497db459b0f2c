import asyncio
import time

import cv2
import numpy as np
import pytest

from memeshot.config import ExportSettings
from memeshot.errors import (
    EncodingError,
    ExportUnavailable,
    GeometryError,
    TargetMissing,
)
from memeshot.pipeline import (
    ExportOrchestrator,
    ExportState,
    build_presentation,
    run_export,
    select_capture_target,
)
from memeshot.scene.model import (
    ImageRef,
    LayoutMetrics,
    Rect,
    Scene,
    TextField,
    TextKind,
)

CLOCK = 1700000000.0


class RecordingSink:
    def __init__(self, fail=False):
        self.fail = fail
        self.emitted = []

    def emit(self, data, filename):
        if self.fail:
            raise OSError("disk full")
        self.emitted.append((data, filename))


class RecordingNotifier:
    def __init__(self):
        self.successes = []
        self.failures = []

    def success(self, message):
        self.successes.append(message)

    def failure(self, message):
        self.failures.append(message)


class StaticRasterizer:
    def __init__(self, buffer):
        self.buffer = buffer
        self.calls = []

    def render(self, target, options):
        self.calls.append((target, options))
        return self.buffer


class RaisingRasterizer:
    def __init__(self):
        self.calls = 0

    def render(self, target, options):
        self.calls += 1
        raise RuntimeError("canvas tainted")


class StyleSnoopingRasterizer:
    """Records the presentation styles seen while rendering, then optionally raises."""

    def __init__(self, raise_after=False):
        self.raise_after = raise_after
        self.seen = {}

    def render(self, target, options):
        for node in target.node.iter_nodes():
            self.seen[node.name] = dict(node.style)
        if self.raise_after:
            raise RuntimeError("boom")
        return _margined_capture()


def _margined_capture(width=820, height=620, margin=10):
    buf = np.full((height, width, 4), 255, dtype=np.uint8)
    buf[margin:height - margin, margin:width - margin] = (90, 60, 30, 255)
    return buf


def _scene(header="", placeholder=False):
    return Scene(
        background_image=ImageRef(pixels=np.full((300, 400, 3), 128, dtype=np.uint8)),
        text_fields=[
            TextField(id=1, kind=TextKind.HEADER, text=header),
            TextField(id=2, kind=TextKind.FOOTER, text=""),
            TextField(id=3, text="" if placeholder else "Top", x=50.0, y=50.0),
        ],
    )


def _layout(header_h=0.0):
    return LayoutMetrics(
        image_area=Rect(0.0, header_h, 400.0, 300.0),
        header=Rect(0.0, 0.0, 400.0, header_h) if header_h else None,
    )


def _orchestrator(rasterizer=None, sink=None, settings=None):
    sink = sink or RecordingSink()
    notifier = RecordingNotifier()
    orchestrator = ExportOrchestrator(sink, notifier, rasterizer=rasterizer, settings=settings, clock=lambda: CLOCK)
    return orchestrator, sink, notifier


def test_primary_capture_is_trimmed_and_emitted():
    rasterizer = StaticRasterizer(_margined_capture())
    orchestrator, sink, notifier = _orchestrator(rasterizer)
    scene, layout = _scene(), _layout()
    result = run_export(orchestrator, scene, layout, build_presentation(scene, layout))

    assert result.ok
    assert result.states == [
        ExportState.IDLE,
        ExportState.CAPTURING,
        ExportState.TRIMMING,
        ExportState.ENCODING,
        ExportState.DONE,
    ]
    assert result.buffer.shape == (600, 800, 4)
    assert not result.reconstructed
    assert len(sink.emitted) == 1
    data, filename = sink.emitted[0]
    assert filename == "meme-1700000000000.png"
    assert data.startswith(b"\x89PNG")
    assert len(notifier.successes) == 1 and not notifier.failures


def test_render_options_and_image_only_target():
    rasterizer = StaticRasterizer(_margined_capture())
    orchestrator, _, _ = _orchestrator(rasterizer)
    scene, layout = _scene(), _layout()
    run_export(orchestrator, scene, layout, build_presentation(scene, layout))
    target, options = rasterizer.calls[0]
    assert target.kind == "image"
    assert (options.width, options.height) == (400.0, 300.0)
    assert options.scale == 2
    assert options.background_color == "#ffffff"


def test_header_text_selects_wrapper_target():
    scene, layout = _scene(header="TOP"), _layout(header_h=40.0)
    target = select_capture_target(scene, build_presentation(scene, layout))
    assert target.kind == "wrapper"
    assert (target.width, target.height) == (400.0, 340.0)


def test_rasterizer_failure_falls_back_to_reconstruction():
    rasterizer = RaisingRasterizer()
    orchestrator, sink, notifier = _orchestrator(rasterizer)
    scene, layout = _scene(), _layout()
    result = run_export(orchestrator, scene, layout, build_presentation(scene, layout))

    assert result.ok and result.reconstructed
    assert ExportState.RECONSTRUCTING in result.states
    assert ExportState.TRIMMING not in result.states
    assert result.buffer.shape == (600, 800, 4)
    assert len(notifier.successes) == 1
    assert notifier.failures == []
    assert len(sink.emitted) == 1


def test_empty_capture_falls_back_to_reconstruction():
    orchestrator, _, notifier = _orchestrator(StaticRasterizer(np.zeros((0, 0, 4), dtype=np.uint8)))
    scene, layout = _scene(), _layout()
    result = run_export(orchestrator, scene, layout, build_presentation(scene, layout))
    assert result.ok and result.reconstructed
    assert len(notifier.successes) == 1


def test_async_rasterizer_is_awaited():
    class AsyncRasterizer:
        async def render(self, target, options):
            await asyncio.sleep(0)
            return _margined_capture()

    orchestrator, _, _ = _orchestrator(AsyncRasterizer())
    scene, layout = _scene(), _layout()
    result = run_export(orchestrator, scene, layout, build_presentation(scene, layout))
    assert result.ok and not result.reconstructed
    assert result.buffer.shape == (600, 800, 4)


def test_capture_timeout_falls_back():
    class SlowRasterizer:
        async def render(self, target, options):
            await asyncio.sleep(5)
            return _margined_capture()

    settings = ExportSettings(capture_timeout=0.01)
    orchestrator, _, notifier = _orchestrator(SlowRasterizer(), settings=settings)
    scene, layout = _scene(), _layout()
    result = run_export(orchestrator, scene, layout, build_presentation(scene, layout))
    assert result.ok and result.reconstructed
    assert len(notifier.successes) == 1


def test_empty_scene_reports_single_failure():
    orchestrator, sink, notifier = _orchestrator(RaisingRasterizer())
    scene = Scene()
    layout = _layout()
    result = run_export(orchestrator, scene, layout, build_presentation(scene, layout))

    assert result.state is ExportState.FAILED
    assert isinstance(result.error, ExportUnavailable)
    assert isinstance(result.error.__cause__, GeometryError)
    assert sink.emitted == []
    assert len(notifier.failures) == 1
    assert notifier.successes == []


def test_missing_target_fails_without_fallback():
    rasterizer = RaisingRasterizer()
    orchestrator, sink, notifier = _orchestrator(rasterizer)
    result = run_export(orchestrator, _scene(), _layout(), None)

    assert result.state is ExportState.FAILED
    assert isinstance(result.error, TargetMissing)
    assert ExportState.RECONSTRUCTING not in result.states
    assert rasterizer.calls == 0
    assert sink.emitted == []
    assert len(notifier.failures) == 1


def test_sink_failure_is_encoding_error():
    orchestrator, _, notifier = _orchestrator(StaticRasterizer(_margined_capture()), sink=RecordingSink(fail=True))
    scene, layout = _scene(), _layout()
    result = run_export(orchestrator, scene, layout, build_presentation(scene, layout))

    assert result.state is ExportState.FAILED
    assert isinstance(result.error, EncodingError)
    assert result.states[-2] is ExportState.ENCODING
    assert len(notifier.failures) == 1 and notifier.successes == []


def test_no_rasterizer_reconstructs_directly():
    orchestrator, sink, _ = _orchestrator()
    result = run_export(orchestrator, _scene(), _layout())
    assert result.ok and result.reconstructed
    assert ExportState.CAPTURING not in result.states
    assert len(sink.emitted) == 1


@pytest.mark.parametrize("raise_after", [False, True])
def test_presentation_restored_after_capture(raise_after):
    scene, layout = _scene(placeholder=True), _layout()
    presentation = build_presentation(scene, layout)
    presentation.image_area.style["box-shadow"] = "0 4px 12px black"
    rasterizer = StyleSnoopingRasterizer(raise_after=raise_after)
    orchestrator, _, _ = _orchestrator(rasterizer)

    run_export(orchestrator, scene, layout, presentation)

    assert rasterizer.seen["text-3"] == {"visibility": "hidden"}
    assert rasterizer.seen["image-area"]["box-shadow"] == "none"
    assert presentation.image_area.find("text-3").style == {}
    assert presentation.image_area.style == {"box-shadow": "0 4px 12px black"}


def test_placeholder_absent_from_reconstruction():
    orchestrator, _, _ = _orchestrator(RaisingRasterizer())
    scene, layout = _scene(placeholder=True), _layout()
    result = run_export(orchestrator, scene, layout, build_presentation(scene, layout))
    assert result.ok
    assert (result.buffer[:, :, :3] == 128).all()


def test_overlapping_exports_are_serialized():
    active = []
    overlaps = []

    class TrackingRasterizer:
        async def render(self, target, options):
            active.append(1)
            overlaps.append(len(active))
            await asyncio.sleep(0.01)
            active.pop()
            return _margined_capture()

    orchestrator, sink, _ = _orchestrator(TrackingRasterizer())
    scene, layout = _scene(), _layout()
    presentation = build_presentation(scene, layout)

    async def _both():
        return await asyncio.gather(
            orchestrator.export(scene, layout, presentation),
            orchestrator.export(scene, layout, presentation),
        )

    results = asyncio.run(_both())
    assert all(r.ok for r in results)
    assert max(overlaps) == 1
    assert len(sink.emitted) == 2


def _disk_scene(src):
    return Scene(
        background_image=ImageRef(src=src),
        text_fields=[TextField(id=1, text="Top", x=50.0, y=50.0)],
    )


@pytest.mark.parametrize("dtype, value", [(np.uint8, 128), (np.uint16, 128 * 257)])
def test_background_loaded_from_disk_during_reconstruction(tmp_path, dtype, value):
    path = tmp_path / "template.png"
    cv2.imwrite(str(path), np.full((300, 400, 3), value, dtype=dtype))
    orchestrator, sink, notifier = _orchestrator()
    scene = _disk_scene(str(path))
    result = run_export(orchestrator, scene, _layout())

    assert result.ok and result.reconstructed
    assert scene.background_image.is_ready
    assert tuple(result.buffer[5, 5]) == (128, 128, 128, 255)
    assert tuple(result.buffer[595, 795]) == (128, 128, 128, 255)
    assert len(notifier.successes) == 1 and notifier.failures == []
    assert len(sink.emitted) == 1


def test_missing_background_file_is_skipped(tmp_path):
    orchestrator, _, notifier = _orchestrator()
    scene = _disk_scene(str(tmp_path / "absent.png"))
    result = run_export(orchestrator, scene, _layout())

    assert result.ok
    assert isinstance(scene.background_image.error, FileNotFoundError)
    assert tuple(result.buffer[5, 5]) == (255, 255, 255, 255)
    assert len(notifier.successes) == 1 and notifier.failures == []


def test_background_load_timeout_is_skipped(monkeypatch):
    def _slow_load(path):
        time.sleep(1.0)
        return np.full((300, 400, 4), 128, dtype=np.uint8)

    monkeypatch.setattr("memeshot.scene.model.load_image", _slow_load)
    settings = ExportSettings(image_load_timeout=0.05)
    orchestrator, _, notifier = _orchestrator(settings=settings)
    scene = _disk_scene("/slow/template.png")
    result = run_export(orchestrator, scene, _layout())

    assert result.ok and result.reconstructed
    assert isinstance(scene.background_image.error, asyncio.TimeoutError)
    assert tuple(result.buffer[5, 5]) == (255, 255, 255, 255)
    assert len(notifier.successes) == 1 and notifier.failures == []
