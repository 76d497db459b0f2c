"""Export orchestration: capture → trim → encode, with reconstruction fallback.

The run moves through ``ExportState`` values. Each stage returns a tagged
value (``Captured``, ``Reconstructed`` or ``Failed``) instead of raising, so
the transitions stay visible on the returned ``ExportResult``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Union

import numpy as np

from memeshot.config import ExportSettings
from memeshot.errors import (
    EncodingError,
    ExportError,
    ExportUnavailable,
    GeometryError,
    RasterizerFailure,
    TargetMissing,
)
from memeshot.geometry.resolver import bar_inclusion, resolve_geometry
from memeshot.image.buffer import PixelBuffer, as_rgba, encode_png, is_empty
from memeshot.image.trim import trim_borders
from memeshot.render.compose import compose_fallback
from memeshot.scene.model import LayoutMetrics, Scene

from .interfaces import CaptureTarget, Notifier, OutputSink, Rasterizer, RenderOptions
from .presentation import PresentationGuard, ScenePresentation

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Download successful! Your meme has been downloaded as PNG."
FAILURE_MESSAGE = "Download failed"


class ExportState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    TRIMMING = "trimming"
    RECONSTRUCTING = "reconstructing"
    ENCODING = "encoding"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Captured:
    buffer: PixelBuffer


@dataclass(frozen=True)
class Reconstructed:
    buffer: PixelBuffer


@dataclass(frozen=True)
class Failed:
    reason: ExportError


StageResult = Union[Captured, Reconstructed, Failed]


@dataclass
class ExportResult:
    state: ExportState
    states: List[ExportState] = field(default_factory=list)
    filename: Optional[str] = None
    data: Optional[bytes] = None
    buffer: Optional[PixelBuffer] = None
    error: Optional[ExportError] = None
    reconstructed: bool = False

    @property
    def ok(self) -> bool:
        return self.state is ExportState.DONE


def _unavailable(cause: Exception) -> Failed:
    failure = ExportUnavailable(f"Unable to reconstruct meme: {cause}")
    failure.__cause__ = cause
    return Failed(failure)


def select_capture_target(scene: Scene, presentation: Optional[ScenePresentation]) -> CaptureTarget:
    """Pick the wrapper when a bar has text, otherwise the image area alone.

    - @throws TargetMissing: If the image area or the chosen root is absent.
    """
    if presentation is None or presentation.image_area is None:
        raise TargetMissing("Could not find meme to download")
    include_header, include_footer = bar_inclusion(scene)
    if include_header or include_footer:
        if presentation.wrapper is None:
            raise TargetMissing("Could not find complete meme area")
        return CaptureTarget(presentation.wrapper, "wrapper")
    return CaptureTarget(presentation.image_area, "image")


class ExportOrchestrator:
    """Run one export at a time against injected collaborators.

    ``rasterizer`` may be None, in which case every export is reconstructed
    from geometry.
    """

    def __init__(
        self,
        sink: OutputSink,
        notifier: Notifier,
        rasterizer: Optional[Rasterizer] = None,
        settings: Optional[ExportSettings] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.sink = sink
        self.notifier = notifier
        self.rasterizer = rasterizer
        self.settings = settings or ExportSettings()
        self._clock = clock
        self._lock = asyncio.Lock()

    def make_filename(self) -> str:
        return f"{self.settings.filename_prefix}-{int(self._clock() * 1000)}.png"

    async def export(
        self,
        scene: Scene,
        layout: LayoutMetrics,
        presentation: Optional[ScenePresentation] = None,
    ) -> ExportResult:
        """Export a scene snapshot; exactly one notification is sent per call."""
        async with self._lock:
            result = ExportResult(state=ExportState.IDLE, states=[ExportState.IDLE])
            try:
                buffer = await self._produce(scene, layout, presentation, result)
                self._transition(result, ExportState.ENCODING)
                result.buffer = buffer
                result.filename = self.make_filename()
                result.data = self._encode_and_emit(buffer, result.filename)
            except ExportError as exc:
                return self._fail(result, exc)
            self._transition(result, ExportState.DONE)
            logger.info("Exported %s (%dx%d, reconstructed=%s)", result.filename, buffer.shape[1], buffer.shape[0], result.reconstructed)
            self.notifier.success(SUCCESS_MESSAGE)
            return result

    async def _produce(
        self,
        scene: Scene,
        layout: LayoutMetrics,
        presentation: Optional[ScenePresentation],
        result: ExportResult,
    ) -> PixelBuffer:
        stage: StageResult
        if self.rasterizer is None:
            logger.info("No rasterizer configured, reconstructing from geometry")
            stage = Failed(RasterizerFailure("no rasterizer configured"))
        else:
            target = select_capture_target(scene, presentation)
            self._transition(result, ExportState.CAPTURING)
            stage = await self.capture(target)

        if isinstance(stage, Captured):
            self._transition(result, ExportState.TRIMMING)
            return trim_borders(stage.buffer, self.settings.trim_tolerance)

        if self.rasterizer is not None:
            logger.warning("Primary capture failed (%s), reconstructing from geometry", stage.reason)
        self._transition(result, ExportState.RECONSTRUCTING)
        stage = await self.reconstruct(scene, layout)
        if isinstance(stage, Failed):
            raise stage.reason
        result.reconstructed = True
        return stage.buffer

    async def capture(self, target: CaptureTarget) -> StageResult:
        """Rasterize ``target`` with placeholders hidden and shadows suppressed."""
        options = RenderOptions(
            background_color=self.settings.background_color,
            scale=self.settings.scale,
            width=target.width,
            height=target.height,
        )
        try:
            with PresentationGuard(target.node):
                rendered = self.rasterizer.render(target, options)
                if inspect.isawaitable(rendered):
                    rendered = await asyncio.wait_for(rendered, self.settings.capture_timeout)
        except asyncio.TimeoutError:
            return Failed(RasterizerFailure(f"capture timed out after {self.settings.capture_timeout}s"))
        except Exception as exc:  # any rasterizer error falls back
            logger.debug("Rasterizer raised", exc_info=True)
            return Failed(RasterizerFailure(f"rasterizer raised {type(exc).__name__}: {exc}"))

        if rendered is None or is_empty(np.asarray(rendered)):
            return Failed(RasterizerFailure("rasterizer returned an empty buffer"))
        try:
            buffer = as_rgba(np.asarray(rendered))
        except ValueError as exc:
            return Failed(RasterizerFailure(str(exc)))
        logger.debug("Captured %s target at %dx%d", target.kind, buffer.shape[1], buffer.shape[0])
        return Captured(buffer)

    async def reconstruct(self, scene: Scene, layout: LayoutMetrics) -> StageResult:
        """Resolve geometry and redraw the scene without the live presentation."""
        if scene.background_image is not None:
            await scene.background_image.wait_loaded(self.settings.image_load_timeout)
        try:
            geometry = resolve_geometry(scene, layout)
        except GeometryError as exc:
            return _unavailable(exc)
        try:
            buffer = compose_fallback(scene, geometry, self.settings)
        except Exception as exc:
            logger.exception("Fallback compositor failed")
            return _unavailable(exc)
        return Reconstructed(buffer)

    def _encode_and_emit(self, buffer: PixelBuffer, filename: str) -> bytes:
        try:
            data = encode_png(buffer)
        except Exception as exc:
            raise EncodingError(f"Failed to encode image: {exc}") from exc
        try:
            self.sink.emit(data, filename)
        except Exception as exc:
            raise EncodingError(f"Output sink rejected {filename}: {exc}") from exc
        return data

    def _transition(self, result: ExportResult, state: ExportState) -> None:
        logger.debug("Export state %s -> %s", result.state.value, state.value)
        result.state = state
        result.states.append(state)

    def _fail(self, result: ExportResult, error: ExportError) -> ExportResult:
        self._transition(result, ExportState.FAILED)
        result.error = error
        logger.error("Export failed: %s", error)
        self.notifier.failure(f"{FAILURE_MESSAGE}: {error}")
        return result


def run_export(
    orchestrator: ExportOrchestrator,
    scene: Scene,
    layout: LayoutMetrics,
    presentation: Optional[ScenePresentation] = None,
) -> ExportResult:
    """Synchronous wrapper around ``ExportOrchestrator.export``."""
    return asyncio.run(orchestrator.export(scene, layout, presentation))
