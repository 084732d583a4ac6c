from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from stageplan.canvas.commands import CommandBuffer
from stageplan.canvas.interface import Canvas
from stageplan.canvas.recording import RecordingCanvas
from stageplan.config import PrintOptions
from stageplan.pdf import errors
from stageplan.pdf.content import (
    PartitionedBuffer,
    RenderOptions,
    append_symbol_xobject,
    partition_buffer,
    render_commands_to_stream,
    resources_dictionary,
)
from stageplan.pdf.errors import ExportValidationError
from stageplan.pdf.fonts import FontCatalog, load_font_catalog
from stageplan.pdf.layout import (
    LayoutEventTable,
    LayoutLegend,
    LayoutTextBox,
    LayoutView,
    close_frame,
    collect_legend_symbols,
    legend_xobject_scale,
    open_frame,
    render_event_table,
    render_legend,
    render_order,
    render_text_box,
)
from stageplan.pdf.objects import FloatFormatter, PdfDocument, make_pdf_name, make_stream_object
from stageplan.pdf.writer import serialize_document
from stageplan.render.mapping import (
    PDF_POINTS_PER_PIXEL,
    PIXELS_PER_METER,
    RenderMapping,
    ViewState,
    build_view_mapping,
    zoom_is_valid,
)
from stageplan.symbols.cache import SymbolDefinition, compute_symbol_bounds

LOGGER = logging.getLogger(__name__)

# Legend symbols keep their model-unit strokes thin at legend scale.
LEGEND_STROKE_SCALE = 1.0 / PIXELS_PER_METER

PathLike = Union[str, Path]


@dataclass(frozen=True)
class ExportResult:
    success: bool = False
    message: str = ""


@dataclass
class _ViewPass:
    """One captured view, validated and mapped onto the page."""

    index: int
    parts: PartitionedBuffer
    mapping: RenderMapping
    stroke_scale: float
    symbols: Optional[Mapping[int, SymbolDefinition]]
    # Clip rectangle in page space; None draws the view unframed.
    rect: Optional[Tuple[float, float, float, float]] = None
    z_index: int = 0
    key_names: Dict[str, str] = field(default_factory=dict)
    id_names: Dict[int, str] = field(default_factory=dict)


def record_plan(draw: Callable[[Canvas], None], options: Optional[PrintOptions] = None) -> CommandBuffer:
    """Run ``draw`` against a fresh recording canvas and return the captured buffer."""
    options = options or PrintOptions()
    canvas = RecordingCanvas(simplify_footprints=options.use_simplified_footprints)
    canvas.begin_frame()
    draw(canvas)
    canvas.end_frame()
    return canvas.buffer


def _check_output_path(output_path: Optional[PathLike], missing_message: str) -> Path:
    if output_path is None or str(output_path).strip() == "":
        raise ExportValidationError(missing_message)
    path = Path(output_path).expanduser()
    if path.name == "":
        raise ExportValidationError(missing_message)
    if not path.parent.exists():
        raise ExportValidationError(errors.MSG_FOLDER_MISSING)
    return path


def _view_stroke_scale(mapping: RenderMapping) -> float:
    # Captured widths are screen pixels; keep them the same physical size on paper.
    return PDF_POINTS_PER_PIXEL / mapping.scale


def _layout_name_for_key(view_index: int, key: str) -> str:
    return "K" + make_pdf_name(f"V{view_index}_{key}")


def _layout_name_for_id(view_index: int, symbol_id: int) -> str:
    return "S" + make_pdf_name(f"V{view_index}_{symbol_id}")


def _append_view_symbols(
    doc: PdfDocument,
    view: _ViewPass,
    captures: Mapping[str, CommandBuffer],
    fmt: FloatFormatter,
    compress: bool,
    xobjects: Dict[str, int],
) -> None:
    for key in view.parts.used_keys:
        commands = captures.get(key)
        if commands is None:
            LOGGER.debug("View %d places symbol '%s' that was never captured", view.index, key)
            continue
        name = _layout_name_for_key(view.index, key)
        bounds = compute_symbol_bounds(commands.commands)
        xobjects[name] = append_symbol_xobject(
            doc, commands, bounds, view.mapping.scale, fmt, view.stroke_scale, compress
        )
        view.key_names[key] = name

    if view.symbols is None:
        return
    for symbol_id in view.parts.used_ids:
        definition = view.symbols.get(symbol_id)
        if definition is None:
            LOGGER.debug("View %d references unknown symbol id %d", view.index, symbol_id)
            continue
        name = _layout_name_for_id(view.index, symbol_id)
        xobjects[name] = append_symbol_xobject(
            doc,
            definition.local_commands,
            definition.bounds,
            view.mapping.scale,
            fmt,
            view.stroke_scale,
            compress,
        )
        view.id_names[symbol_id] = name


def _render_view(out: List[str], fmt: FloatFormatter, view: _ViewPass, fonts: FontCatalog) -> None:
    options = RenderOptions(
        include_text=True,
        stroke_scale=view.stroke_scale,
        fonts=fonts,
        symbol_key_names=view.key_names,
        symbol_id_names=view.id_names,
    )
    if view.rect is not None:
        open_frame(out, fmt, view.rect)
    out.append(render_commands_to_stream(view.parts.main, view.mapping, fmt, options))
    if view.rect is not None:
        close_frame(out, fmt, view.rect)


def _synthesize(
    page_size: Tuple[float, float],
    views: Sequence[_ViewPass],
    legends: Sequence[LayoutLegend],
    tables: Sequence[LayoutEventTable],
    texts: Sequence[LayoutTextBox],
    options: PrintOptions,
) -> Tuple[PdfDocument, int]:
    """Build every object of the single-page document; returns it with the catalog number."""
    page_w, page_h = page_size
    compress = bool(options.compress_streams)
    fmt = FloatFormatter(options.float_precision)
    doc = PdfDocument()
    fonts = load_font_catalog(doc, options.regular_font_path, options.bold_font_path)

    captures: Dict[str, CommandBuffer] = {}
    for view in views:
        for key, commands in view.parts.captures.items():
            captures.setdefault(key, commands)

    xobjects: Dict[str, int] = {}
    for view in views:
        _append_view_symbols(doc, view, captures, fmt, compress, xobjects)

    fallback_symbols = next((v.symbols for v in views if v.symbols is not None), None)
    legend_names: Dict[int, str] = {}
    for definition, name in collect_legend_symbols(legends, fallback_symbols):
        xobjects[name] = append_symbol_xobject(
            doc,
            definition.local_commands,
            definition.bounds,
            legend_xobject_scale(definition),
            fmt,
            LEGEND_STROKE_SCALE,
            compress,
        )
        legend_names[definition.symbol_id] = name

    out: List[str] = []
    for element in render_order([*views, *legends, *tables, *texts]):
        if isinstance(element, _ViewPass):
            _render_view(out, fmt, element, fonts)
        elif isinstance(element, LayoutLegend):
            symbols = element.symbols if element.symbols is not None else fallback_symbols
            render_legend(out, fmt, element, page_h, fonts, symbols, legend_names)
        elif isinstance(element, LayoutEventTable):
            render_event_table(out, fmt, element, page_h, fonts)
        elif isinstance(element, LayoutTextBox):
            render_text_box(out, fmt, element, page_h, fonts)

    content = "".join(out).encode("latin-1")
    content_id = doc.add(make_stream_object(content, compress=compress))
    page_id = doc.next_number
    pages_id = page_id + 1
    catalog_id = pages_id + 1
    doc.add(
        f"<< /Type /Page /Parent {pages_id} 0 R /MediaBox [0 0 {fmt.join(page_w, page_h)}] "
        f"/Contents {content_id} 0 R /Resources {resources_dictionary(fonts, xobjects)} >>"
    )
    doc.add(f"<< /Type /Pages /Kids [{page_id} 0 R] /Count 1 >>")
    doc.add(f"<< /Type /Catalog /Pages {pages_id} 0 R >>")
    return doc, catalog_id


def _write(doc: PdfDocument, catalog_id: int, path: Path) -> ExportResult:
    try:
        handle = path.open("wb")
    except OSError as e:
        LOGGER.error("PDF export: cannot open %s: %s", path, e)
        return ExportResult(False, errors.MSG_OPEN_FAILED)
    with handle:
        serialize_document(doc, catalog_id, handle)
    LOGGER.info("PDF export: wrote %d objects to %s", len(doc), path)
    return ExportResult(True, "")


def _run(build: Callable[[], ExportResult]) -> ExportResult:
    try:
        return build()
    except ExportValidationError as e:
        LOGGER.warning("PDF export rejected: %s", e)
        return ExportResult(False, str(e))
    except (OSError, ValueError) as e:
        LOGGER.error("PDF export failed: %s", e)
        return ExportResult(False, errors.MSG_GENERATE_FAILED + str(e))
    except Exception:
        LOGGER.exception("PDF export failed unexpectedly")
        return ExportResult(False, errors.MSG_UNKNOWN_ERROR)


def export_plan_pdf(
    buffer: CommandBuffer,
    view_state: ViewState,
    output_path: Optional[PathLike],
    options: Optional[PrintOptions] = None,
    symbols: Optional[Mapping[int, SymbolDefinition]] = None,
) -> ExportResult:
    """
    Export one captured 2D view as a single-page PDF.

    The view is fitted inside the page margins. Symbol instances are
    resolved against ``symbols`` (normally a ``SymbolCache.snapshot()``).
    Every failure is reported in the result; nothing is raised.
    """
    options = options or PrintOptions()

    def build() -> ExportResult:
        if buffer is None or buffer.is_empty():
            raise ExportValidationError(errors.MSG_NOTHING_TO_EXPORT)
        path = _check_output_path(output_path, errors.MSG_NO_OUTPUT)
        if view_state.viewport_width <= 0 or view_state.viewport_height <= 0:
            raise ExportValidationError(errors.MSG_VIEWPORT_NOT_READY)
        if not zoom_is_valid(float(view_state.zoom)):
            raise ExportValidationError(errors.MSG_INVALID_ZOOM)

        page_w, page_h = options.page_size()
        margin = float(options.margin_pt)
        if page_w - margin * 2.0 <= 0.0 or page_h - margin * 2.0 <= 0.0:
            raise ExportValidationError(errors.MSG_NO_DRAWING_SPACE)
        mapping = build_view_mapping(view_state, page_w, page_h, margin)
        if mapping is None:
            raise ExportValidationError(errors.MSG_VIEWPORT_INVALID)

        view = _ViewPass(
            index=0,
            parts=partition_buffer(buffer, include_grid=options.include_grid),
            mapping=mapping,
            stroke_scale=_view_stroke_scale(mapping),
            symbols=symbols,
        )
        doc, catalog_id = _synthesize((page_w, page_h), [view], (), (), (), options)
        return _write(doc, catalog_id, path)

    return _run(build)


def export_layout_pdf(
    views: Sequence[LayoutView],
    output_path: Optional[PathLike],
    options: Optional[PrintOptions] = None,
    legends: Sequence[LayoutLegend] = (),
    tables: Sequence[LayoutEventTable] = (),
    texts: Sequence[LayoutTextBox] = (),
) -> ExportResult:
    """
    Compose framed views, legends, event tables and text boxes on one page.

    Frames are in points from the top-left page corner. Elements are drawn
    by ascending ``z_index``; ties keep the order views, legends, tables,
    texts, each in the given sequence.
    """
    options = options or PrintOptions()

    def build() -> ExportResult:
        if not views:
            raise ExportValidationError(errors.MSG_NO_LAYOUT_VIEWS)
        path = _check_output_path(output_path, errors.MSG_LAYOUT_NO_OUTPUT)
        page_w, page_h = options.page_size()
        if page_w <= 0.0 or page_h <= 0.0:
            raise ExportValidationError(errors.MSG_LAYOUT_NO_PAGE)

        passes: List[_ViewPass] = []
        for idx, view in enumerate(views):
            state = view.view_state
            if view.buffer is None or view.buffer.is_empty():
                raise ExportValidationError(errors.MSG_LAYOUT_CAPTURE_FAILED)
            if state.viewport_width <= 0 or state.viewport_height <= 0:
                raise ExportValidationError(errors.MSG_LAYOUT_VIEWPORT_NOT_READY)
            if not zoom_is_valid(float(state.zoom)):
                raise ExportValidationError(errors.MSG_LAYOUT_INVALID_ZOOM)
            if not view.frame.is_valid():
                raise ExportValidationError(errors.MSG_LAYOUT_FRAME_INVALID)
            local = build_view_mapping(state, view.frame.width, view.frame.height, 0.0)
            if local is None:
                raise ExportValidationError(errors.MSG_LAYOUT_VIEW_INVALID)

            rect = view.frame.to_page(page_h)
            passes.append(
                _ViewPass(
                    index=idx,
                    parts=partition_buffer(view.buffer, include_grid=options.include_grid),
                    mapping=local.shifted(rect[0], rect[1]),
                    stroke_scale=_view_stroke_scale(local),
                    symbols=view.symbols,
                    rect=rect,
                    z_index=view.z_index,
                )
            )

        doc, catalog_id = _synthesize((page_w, page_h), passes, legends, tables, texts, options)
        return _write(doc, catalog_id, path)

    return _run(build)
