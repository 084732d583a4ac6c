from stageplan.pdf.errors import ExportValidationError, FontParseError
from stageplan.pdf.exporter import ExportResult, export_layout_pdf, export_plan_pdf, record_plan
from stageplan.pdf.layout import (
    LayoutEventTable,
    LayoutFrame,
    LayoutLegend,
    LayoutTextBox,
    LayoutView,
    LegendItem,
    TextAlignment,
    TextRun,
)

__all__ = [
    "ExportValidationError",
    "FontParseError",
    "ExportResult",
    "export_layout_pdf",
    "export_plan_pdf",
    "record_plan",
    "LayoutEventTable",
    "LayoutFrame",
    "LayoutLegend",
    "LayoutTextBox",
    "LayoutView",
    "LegendItem",
    "TextAlignment",
    "TextRun",
]
