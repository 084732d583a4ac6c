from __future__ import annotations

from typing import BinaryIO, List

from stageplan.pdf.objects import PdfDocument

PDF_HEADER = b"%PDF-1.4\n"


def serialize_document(doc: PdfDocument, catalog_id: int, stream: BinaryIO) -> None:
    """Write header, numbered objects, a single xref section and the trailer."""
    stream.write(PDF_HEADER)
    position = len(PDF_HEADER)
    offsets: List[int] = []
    for number, body in enumerate(doc.objects, start=1):
        offsets.append(position)
        chunk = f"{number} 0 obj\n".encode("latin-1") + body + b"\nendobj\n"
        stream.write(chunk)
        position += len(chunk)

    size = len(doc.objects) + 1
    xref = [f"xref\n0 {size}\n", "0000000000 65535 f \n"]
    xref.extend(f"{offset:010d} 00000 n \n" for offset in offsets)
    xref.append(f"trailer\n<< /Size {size} /Root {catalog_id} 0 R >>\nstartxref\n{position}\n%%EOF")
    stream.write("".join(xref).encode("latin-1"))

