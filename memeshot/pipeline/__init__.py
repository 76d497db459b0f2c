"""Export orchestration and its collaborator interfaces."""

from .export import (
    Captured,
    ExportOrchestrator,
    ExportResult,
    ExportState,
    Failed,
    Reconstructed,
    run_export,
    select_capture_target,
)
from .interfaces import CaptureTarget, Notifier, OutputSink, Rasterizer, RenderOptions
from .presentation import (
    PresentationGuard,
    PresentationNode,
    ScenePresentation,
    build_presentation,
)
from .sink import FileSink, ImageFileRasterizer, LoggingNotifier

__all__ = [
    "Captured",
    "ExportOrchestrator",
    "ExportResult",
    "ExportState",
    "Failed",
    "Reconstructed",
    "run_export",
    "select_capture_target",
    "CaptureTarget",
    "Notifier",
    "OutputSink",
    "Rasterizer",
    "RenderOptions",
    "PresentationGuard",
    "PresentationNode",
    "ScenePresentation",
    "build_presentation",
    "FileSink",
    "ImageFileRasterizer",
    "LoggingNotifier",
]
