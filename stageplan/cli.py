from __future__ import annotations

import argparse
import logging
from pathlib import Path

from stageplan.config import PrintOptions, load_print_options
from stageplan.canvas.plot_canvas import render_preview_png
from stageplan.pdf.exporter import export_layout_pdf, export_plan_pdf, record_plan
from stageplan.pdf.layout import (
    LayoutEventTable,
    LayoutFrame,
    LayoutLegend,
    LayoutTextBox,
    LayoutView,
    TextAlignment,
    TextRun,
)
from stageplan.scene.plan_renderer import PlanScene, demo_scene, draw_plan, fit_view
from stageplan.symbols.cache import SymbolCache, SymbolViewKind


def _options_from_args(args: argparse.Namespace) -> PrintOptions:
    if getattr(args, "options", None):
        options = load_print_options(Path(args.options))
    else:
        options = PrintOptions.from_page(args.page, landscape=bool(args.landscape))
    if getattr(args, "no_compress", False):
        options.compress_streams = False
    if getattr(args, "no_grid", False):
        options.include_grid = False
    if getattr(args, "no_simplify", False):
        options.use_simplified_footprints = False
    return options


def _capture(scene: PlanScene, cache: SymbolCache, view: SymbolViewKind, options: PrintOptions):
    return record_plan(lambda canvas: draw_plan(scene, canvas, cache, view), options)


def _cmd_demo(args: argparse.Namespace) -> int:
    outpath = Path(args.out).expanduser().resolve()
    outpath.parent.mkdir(parents=True, exist_ok=True)
    try:
        options = _options_from_args(args)
    except (OSError, ValueError) as e:
        print(f"[ERROR] Could not read print options: {e}")
        return 2

    scene = demo_scene(count=args.count)
    cache = SymbolCache()
    view = fit_view(scene)
    buffer = _capture(scene, cache, view.view_kind, options)
    symbols = cache.snapshot()

    result = export_plan_pdf(buffer, view, outpath, options, symbols=symbols)
    if not result.success:
        print(f"[ERROR] {result.message}")
        return 3

    print("Stageplan Demo")
    print(f"  Fixtures: {len(scene.fixtures)}")
    print(f"  Commands: {len(buffer)}")
    print(f"  Symbols: {len(symbols)} ({cache.hits} reuse(s))")
    print(f"  Saved: {outpath}")

    if args.preview:
        png = render_preview_png(buffer, Path(args.preview), symbols=symbols)
        print(f"  Saved: {png}")
    return 0


def _cmd_layout(args: argparse.Namespace) -> int:
    outpath = Path(args.out).expanduser().resolve()
    outpath.parent.mkdir(parents=True, exist_ok=True)
    try:
        options = _options_from_args(args)
    except (OSError, ValueError) as e:
        print(f"[ERROR] Could not read print options: {e}")
        return 2

    scene = demo_scene(count=args.count)
    cache = SymbolCache()
    page_w, page_h = options.page_size()
    m = options.margin_pt
    side_w = min(260.0, (page_w - 3 * m) * 0.35)
    main_w = page_w - 3 * m - side_w
    top_h = (page_h - 3 * m) * 0.6
    bottom_h = page_h - 3 * m - top_h

    views = []
    for kind, frame in (
        (SymbolViewKind.TOP, LayoutFrame(m, m, main_w, top_h)),
        (SymbolViewKind.FRONT, LayoutFrame(m, 2 * m + top_h, main_w, bottom_h)),
    ):
        state = fit_view(scene, (int(frame.width * 2), int(frame.height * 2)), kind)
        buffer = _capture(scene, cache, kind, options)
        views.append(LayoutView(frame=frame, view_state=state, buffer=buffer))

    symbols = cache.snapshot()
    for v in views:
        v.symbols = symbols

    table_h = 120.0
    legend = LayoutLegend(
        frame=LayoutFrame(2 * m + main_w, m, side_w, max(40.0, page_h - 3 * m - table_h - 60.0)),
        items=scene.legend_items(),
        symbols=symbols,
    )
    table = LayoutEventTable(
        frame=LayoutFrame(2 * m + main_w, page_h - m - table_h, side_w, table_h),
        fields=[args.venue, "Main hall", "", "Stage A", "1", "Lighting", ""],
    )
    note = LayoutTextBox(
        frame=LayoutFrame(2 * m + main_w, page_h - m - table_h - 55.0, side_w, 50.0),
        lines=[
            [TextRun("Rig plan", bold=True, font_size=11.0)],
            [TextRun("Heights are to the truss bottom chord. "), TextRun("Not to scale.", italic=True)],
        ],
        alignment=TextAlignment.LEFT,
        font_size=8.0,
        z_index=1,
    )

    result = export_layout_pdf(views, outpath, options, legends=[legend], tables=[table], texts=[note])
    if not result.success:
        print(f"[ERROR] {result.message}")
        return 3
    print("Stageplan Layout")
    print(f"  Views: {len(views)}")
    print(f"  Saved: {outpath}")
    return 0


def _add_page_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--page", default="A3", choices=["A3", "A4"], help="Paper size (default: A3)")
    p.add_argument("--landscape", action="store_true", help="Landscape orientation")
    p.add_argument("--options", default=None, help="JSON print options file (overrides --page/--landscape)")
    p.add_argument("--no-compress", action="store_true", help="Write uncompressed content streams")
    p.add_argument("--no-grid", action="store_true", help="Leave the grid out of the PDF")
    p.add_argument("--no-simplify", action="store_true", help="Keep every captured primitive")
    p.add_argument("--count", type=int, default=24, help="Number of demo fixtures")


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="stageplan")
    p.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    demo = sub.add_parser("demo", help="Capture a demo rig and export it as a single-view PDF plan.")
    demo.add_argument("--out", default="out/plan.pdf", help="Output PDF path")
    demo.add_argument("--preview", default=None, help="Also save a PNG preview to this path")
    _add_page_args(demo)
    demo.set_defaults(func=_cmd_demo)

    layout = sub.add_parser("layout", help="Export a demo multi-element layout page.")
    layout.add_argument("--out", default="out/layout.pdf", help="Output PDF path")
    layout.add_argument("--venue", default="Demo Venue", help="Venue shown in the event table")
    _add_page_args(layout)
    layout.set_defaults(func=_cmd_layout)

    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
