from __future__ import annotations

import re
import zlib
from dataclasses import dataclass, field
from typing import List, Union


# Fast level keeps large plans quick to write; ratio barely differs for vector text.
DEFLATE_LEVEL = 1


class FloatFormatter:
    """Fixed-point number formatting for content streams (precision clamped to 0..6)."""

    def __init__(self, precision: int = 3) -> None:
        self.precision = max(0, min(6, int(precision)))

    def __call__(self, value: float) -> str:
        text = f"{float(value):.{self.precision}f}"
        # "-0.000" and "0.000" must format identically.
        if text.startswith("-") and float(text) == 0.0:
            text = text[1:]
        return text

    def join(self, *values: float) -> str:
        return " ".join(self(v) for v in values)


def deflate(data: bytes) -> bytes:
    return zlib.compress(data, DEFLATE_LEVEL)


_NAME_SAFE = re.compile(r"[^A-Za-z0-9]")


def make_pdf_name(key: str) -> str:
    name = "X" + _NAME_SAFE.sub("_", key)
    if name == "X":
        name += "Obj"
    return name


def make_stream_object(data: bytes, dictionary: str = "", compress: bool = False) -> bytes:
    """Wrap ``data`` as a stream object body with /Length and optional /FlateDecode."""
    # An empty body stays unfiltered; zero bytes are not a zlib stream.
    filtered = compress and bool(data)
    if filtered:
        data = deflate(data)
    head = "<< "
    if dictionary:
        head += dictionary + " "
    head += f"/Length {len(data)}"
    if filtered:
        head += " /Filter /FlateDecode"
    head += " >>\nstream\n"
    return head.encode("latin-1") + data + b"endstream"


@dataclass
class PdfDocument:
    """
    Append-only list of indirect object bodies.

    Object numbers are 1-based positions; a body is never changed after it
    has been added.
    """

    objects: List[bytes] = field(default_factory=list)

    def add(self, body: Union[str, bytes]) -> int:
        if isinstance(body, str):
            body = body.encode("latin-1")
        self.objects.append(bytes(body))
        return len(self.objects)

    @property
    def next_number(self) -> int:
        return len(self.objects) + 1

    def __len__(self) -> int:
        return len(self.objects)
