from pathlib import Path

from docx import Document


def extract_docx_text(docx_path: Path) -> str:
    """
    Paragraph text followed by table cell text, one block per line.
    """
    document = Document(str(docx_path))

    parts = [p.text for p in document.paragraphs if p.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [c.text.strip() for c in row.cells if c.text.strip()]
            if cells:
                parts.append(" ".join(cells))

    return "\n".join(parts)
