"""CSV export of extracted invoice data.

Three layouts, chosen by payload shape:

* ``{header, lineItems}``: a ``Header Field,Header Value`` table, a blank
  line, then the line-item table.
* ``{documents: [...]}``: a ``Document N Header`` table per document, each
  followed by its line items.
* anything else: nested keys flattened with dots into ``Field,Value`` rows.

Column headings use field labels where a label is known.
"""

import csv
import io
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..exceptions import ValidationError
from ..models import SuggestedField

__all__ = ["CSVExporter", "ExportedCSV"]

DEFAULT_TITLE = "invoice_extraction"


@dataclass(frozen=True)
class ExportedCSV:
    filename: str
    content: str

    @property
    def data(self) -> bytes:
        return self.content.encode("utf-8")


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


def flatten(obj: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flatten nested mappings into dot-separated keys; lists are kept as values."""
    out: Dict[str, Any] = {}
    for key, value in obj.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            out.update(flatten(value, full_key))
        else:
            out[full_key] = value
    return out


class CSVExporter:
    """Serializes extracted data to CSV text."""

    def export(self, data: Dict[str, Any], fields: Optional[Iterable[SuggestedField]] = None,
               job_title: Optional[str] = None, today: Optional[date] = None) -> ExportedCSV:
        """Render ``data`` as CSV.

        Args:
            data: Extracted payload
            fields: Field definitions used to label columns
            job_title: Used to build the file name
            today: Date stamped into the file name (defaults to today)

        Raises:
            ValidationError: If ``data`` is not a non-empty object
        """
        if not isinstance(data, dict) or not data:
            raise ValidationError("Data is required")

        labels = {f.name: f.label or f.name for f in (fields or [])}
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")

        if "header" in data and "lineItems" in data:
            self._write_header_table(writer, ["Header Field", "Header Value"],
                                     data.get("header") or {}, labels)
            writer.writerow([])
            self._write_line_items(writer, data.get("lineItems") or [], labels)
        elif isinstance(data.get("documents"), list) and data["documents"]:
            self._write_documents(writer, data["documents"], labels)
        else:
            writer.writerow(["Field", "Value"])
            for key, value in flatten(data).items():
                writer.writerow([key, _cell(value)])

        return ExportedCSV(filename=self.filename(job_title, today), content=buffer.getvalue())

    @staticmethod
    def filename(job_title: Optional[str], today: Optional[date] = None) -> str:
        stem = re.sub(r"[^a-zA-Z0-9]", "_", job_title or DEFAULT_TITLE)
        return f"{stem}_{(today or date.today()).isoformat()}.csv"

    def _write_documents(self, writer: Any, documents: List[Dict[str, Any]],
                         labels: Dict[str, str]) -> None:
        first = documents[0] if isinstance(documents[0], dict) else {}
        header_keys = list((first.get("header") or {}).keys())
        first_items = first.get("lineItems") or []
        line_keys = list(first_items[0].keys()) if first_items else []

        for index, document in enumerate(documents, start=1):
            document = document if isinstance(document, dict) else {}
            header = document.get("header") or {}
            writer.writerow([f"Document {index} Header"])
            for key in header_keys:
                writer.writerow([labels.get(key, key), _cell(header.get(key))])
            writer.writerow([])
            if line_keys:
                writer.writerow([labels.get(k, k) for k in line_keys])
                for row in document.get("lineItems") or []:
                    writer.writerow([_cell(row.get(k)) for k in line_keys])
            writer.writerow([])

    @staticmethod
    def _write_header_table(writer: Any, heading: Sequence[str], header: Dict[str, Any],
                            labels: Dict[str, str]) -> None:
        writer.writerow(heading)
        for key, value in header.items():
            writer.writerow([labels.get(key, key), _cell(value)])

    @staticmethod
    def _write_line_items(writer: Any, line_items: List[Dict[str, Any]],
                          labels: Dict[str, str]) -> None:
        if not line_items:
            return
        keys = list(line_items[0].keys())
        writer.writerow([labels.get(k, k) for k in keys])
        for row in line_items:
            writer.writerow([_cell(row.get(k)) for k in keys])
