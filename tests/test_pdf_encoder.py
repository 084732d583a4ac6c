from __future__ import annotations

from stageplan.canvas import (
    CanvasColor,
    CanvasFill,
    CanvasStroke,
    CanvasTextStyle,
    CanvasTransform,
    CommandBuffer,
    RecordingCanvas,
    Transform2D,
)
from stageplan.canvas.commands import (
    CircleCommand,
    HorizontalAlign,
    LineCommand,
    RectangleCommand,
    SymbolInstanceCommand,
    TextCommand,
    VerticalAlign,
)
from stageplan.pdf.content import RenderOptions, partition_buffer, render_commands_to_stream
from stageplan.pdf.encoder import (
    BEZIER_CIRCLE_K,
    append_symbol_instance,
    circle_path,
    escape_pdf_string,
    layout_text,
)
from stageplan.pdf.objects import FloatFormatter, make_pdf_name, make_stream_object
from stageplan.render.mapping import RenderMapping


BLACK = CanvasStroke(CanvasColor(), 1.0)


def test_single_line_stream_is_exact() -> None:
    buf = CommandBuffer()
    buf.append(LineCommand(0.0, 0.0, 10.0, 10.0, BLACK))
    out = render_commands_to_stream(buf, RenderMapping(), FloatFormatter(3))
    assert out == "1 j\n1 J\n0.000 0.000 0.000 RG\n1.000 w\n0.000 0.000 m\n10.000 10.000 l\nS\n"


def test_unchanged_stroke_state_is_not_repeated() -> None:
    buf = CommandBuffer()
    buf.append(LineCommand(0.0, 0.0, 1.0, 0.0, BLACK))
    buf.append(LineCommand(0.0, 1.0, 1.0, 1.0, BLACK))
    out = render_commands_to_stream(buf, RenderMapping(), FloatFormatter(3))
    assert out.count(" RG\n") == 1
    assert out.count(" w\n") == 1
    assert out.count("S\n") == 2


def test_group_strokes_come_before_fills() -> None:
    fill = CanvasFill(CanvasColor(1.0, 0.0, 0.0))
    buf = CommandBuffer()
    buf.append(RectangleCommand(0, 0, 1, 1, BLACK, fill), source="fx")
    buf.append(RectangleCommand(2, 0, 1, 1, BLACK, fill), source="fx")
    out = render_commands_to_stream(buf, RenderMapping(), FloatFormatter(3))
    last_stroke = out.rindex("re\nS\n")
    first_fill = out.index("re\nf\n")
    assert last_stroke < first_fill
    assert out.count("1.000 0.000 0.000 rg\n") == 1


def test_barrier_splits_groups() -> None:
    fill = CanvasFill(CanvasColor(0.0, 0.0, 1.0))
    buf = CommandBuffer()
    buf.append(RectangleCommand(0, 0, 1, 1, BLACK, fill), source="fx")
    buf.append(TextCommand(0, 0, "A"), source="fx")
    buf.append(RectangleCommand(2, 0, 1, 1, BLACK, fill), source="fx")
    out = render_commands_to_stream(buf, RenderMapping(), FloatFormatter(3))
    assert out.index("re\nf\n") < out.index("BT\n")
    # Text changes the fill colour, so the second fill restates it.
    assert out.count("0.000 0.000 1.000 rg\n") == 2


def test_text_can_be_suppressed() -> None:
    buf = CommandBuffer()
    buf.append(TextCommand(0, 0, "A"))
    out = render_commands_to_stream(buf, RenderMapping(), FloatFormatter(3), RenderOptions(include_text=False))
    assert out == ""


def test_circle_uses_four_bezier_segments() -> None:
    path = circle_path(FloatFormatter(3), (0.0, 0.0), 1.0)
    assert path.startswith("1.000 0.000 m\n")
    assert path.count(" c\n") == 4
    assert f"1.000 {BEZIER_CIRCLE_K:.3f}" in path

    buf = CommandBuffer()
    buf.append(CircleCommand(0.0, 0.0, 1.0, CanvasStroke(width=0.0), CanvasFill()))
    out = render_commands_to_stream(buf, RenderMapping(), FloatFormatter(3))
    assert "S\n" not in out
    assert out.endswith(" c\nf\n")


def test_stroke_width_follows_mapping_scale() -> None:
    buf = CommandBuffer()
    buf.append(LineCommand(0.0, 0.0, 1.0, 0.0, CanvasStroke(width=2.0)))
    out = render_commands_to_stream(
        buf, RenderMapping(scale=10.0), FloatFormatter(2), RenderOptions(stroke_scale=0.5)
    )
    assert "10.00 w\n" in out


def test_float_formatter_normalizes_negative_zero() -> None:
    fmt = FloatFormatter(2)
    assert fmt(-0.0001) == "0.00"
    assert fmt.join(1, -2.5) == "1.00 -2.50"
    assert FloatFormatter(12).precision == 6


def test_escape_pdf_string() -> None:
    assert escape_pdf_string(b"a(b)c\\") == "a\\(b\\)c\\\\"
    assert escape_pdf_string(b"\n\t") == "\\n\\t"
    assert escape_pdf_string(bytes([0xE9, 0x01])) == "\\351\\001"


def test_pdf_names_are_sanitized() -> None:
    assert make_pdf_name("V0_spot 600/a") == "XV0_spot_600_a"
    assert make_pdf_name("") == "XObj"


def test_stream_object_length_and_filter() -> None:
    plain = make_stream_object(b"0 0 m\n", compress=False)
    assert plain.startswith(b"<< /Length 6 >>\nstream\n")
    assert plain.endswith(b"endstream")
    packed = make_stream_object(b"0 0 m\n" * 50, "/Type /XObject", compress=True)
    assert b"/Filter /FlateDecode" in packed
    assert packed.startswith(b"<< /Type /XObject /Length ")


def test_empty_stream_is_never_filtered() -> None:
    body = make_stream_object(b"", "/Type /XObject", compress=True)
    assert body == b"<< /Type /XObject /Length 0 >>\nstream\nendstream"


def test_symbol_instance_matrix() -> None:
    out = []
    mapping = RenderMapping(scale=2.0, offset_x=10.0, offset_y=20.0)
    append_symbol_instance(out, FloatFormatter(1), mapping, CanvasTransform(), Transform2D(tx=1.0, ty=1.0), "S1")
    assert "".join(out) == "q\n1.0 0.0 0.0 1.0 12.0 22.0 cm\n/S1 Do\nQ\n"


def test_instances_without_a_name_are_skipped() -> None:
    buf = CommandBuffer()
    buf.append(SymbolInstanceCommand(3))
    out = render_commands_to_stream(buf, RenderMapping(), FloatFormatter(3), RenderOptions(symbol_id_names={4: "S4"}))
    assert out == ""


def test_text_alignment_offsets() -> None:
    style = CanvasTextStyle(
        font_size=10.0,
        ascent=8.0,
        descent=2.0,
        h_align=HorizontalAlign.RIGHT,
        v_align=VerticalAlign.TOP,
    )
    layout = layout_text(TextCommand(0.0, 0.0, "ab\nc", style), 1.0, None)
    assert layout.lines == [b"ab", b"c"]
    assert layout.dy == -8.0
    assert layout.dx < 0.0
    assert layout.advance == -10.0


def test_partition_moves_symbol_content_out_of_main() -> None:
    rec = RecordingCanvas()
    rec.begin_frame()
    rec.set_source_key("grid")
    rec.draw_line(0, 0, 5, 0, BLACK)
    rec.set_source_key("fx")
    rec.begin_symbol("spot")
    rec.draw_circle(0, 0, 1, BLACK)
    rec.end_symbol("spot")
    rec.place_symbol("spot", CanvasTransform(1.0, 2.0, 2.0))
    rec.end_frame()

    parts = partition_buffer(rec.buffer, include_grid=False)
    assert list(parts.captures) == ["spot"]
    assert len(parts.captures["spot"]) == 1
    assert parts.used_keys == ["spot"]
    assert len(parts.main) == 1
