"""
Isolated PDF text extraction.

Run as ``python -m docsearch.services.ingestion.pdf_worker <path>``.
Prints ``{"pages": [...], "page_count": n}`` as JSON on stdout.

Exit codes: 0 ok, 1 extraction error (code on stderr), 2 bad usage / missing file.
"""

import json
import sys
from pathlib import Path

from docsearch.services.ingestion.pdf_text import extract_pdf_pages


def main(argv: list[str]) -> int:
    if len(argv) != 1:
        print("usage: pdf_worker <pdf-path>", file=sys.stderr)
        return 2

    pdf_path = Path(argv[0])
    if not pdf_path.is_file():
        print(f"FILE_NOT_FOUND: {pdf_path}", file=sys.stderr)
        return 2

    try:
        extracted = extract_pdf_pages(pdf_path)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 1

    json.dump(
        {"pages": extracted.pages, "page_count": extracted.page_count},
        sys.stdout,
        ensure_ascii=False,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
