from __future__ import annotations

import json
from pathlib import Path

import pytest

from stageplan.config import PrintOptions, load_print_options, save_print_options


def test_defaults_are_a3_portrait() -> None:
    opts = PrintOptions()
    w, h = opts.page_size()
    assert w < h
    assert abs(w - 841.89) < 0.01
    assert opts.compress_streams and opts.include_grid and opts.use_simplified_footprints


def test_landscape_swaps_page_size() -> None:
    opts = PrintOptions.from_page("a4", landscape=True)
    w, h = opts.page_size()
    assert w > h
    assert abs(h - 595.28) < 0.01


def test_unknown_page_is_rejected() -> None:
    with pytest.raises(ValueError):
        PrintOptions.from_page("Letter-ish")


def test_precision_is_clamped() -> None:
    assert PrintOptions(float_precision=9).float_precision == 6
    assert PrintOptions(float_precision=-1).float_precision == 0


def test_round_trip_through_json(tmp_path: Path) -> None:
    opts = PrintOptions.from_page("A4", landscape=True, margin_pt=18.0, include_grid=False)
    path = tmp_path / "cfg" / "print.json"
    save_print_options(opts, path)

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["margin_pt"] == 18.0
    assert load_print_options(path) == opts


def test_from_dict_ignores_unknown_keys_and_checks_types() -> None:
    opts = PrintOptions.from_dict({"margin_pt": 10, "future_option": True})
    assert opts.margin_pt == 10.0
    with pytest.raises(ValueError):
        PrintOptions.from_dict({"landscape": "yes"})
    with pytest.raises(ValueError):
        PrintOptions.from_dict({"float_precision": 2.5})
    with pytest.raises(ValueError):
        PrintOptions.from_dict(["not", "a", "dict"])
