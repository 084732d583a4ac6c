from stageplan.canvas.commands import (
    CanvasColor,
    CanvasFill,
    CanvasStroke,
    CanvasTextStyle,
    CanvasTransform,
    CommandBuffer,
    CommandMetadata,
    HorizontalAlign,
    Transform2D,
    VerticalAlign,
)
from stageplan.canvas.interface import Canvas
from stageplan.canvas.multi import MultiCanvas
from stageplan.canvas.recording import RecordingCanvas

__all__ = [
    "CanvasColor",
    "CanvasFill",
    "CanvasStroke",
    "CanvasTextStyle",
    "CanvasTransform",
    "CommandBuffer",
    "CommandMetadata",
    "HorizontalAlign",
    "Transform2D",
    "VerticalAlign",
    "Canvas",
    "MultiCanvas",
    "RecordingCanvas",
]
