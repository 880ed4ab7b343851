"""Helpers for editing the suggested and confirmed field schemas.

The workbench keeps two copies of every field: one in the analysis result
(grouped into header and line-item fields) and one in the flat confirmed
list. ``name`` joins the two, and edits are applied to both.
"""

import re
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

from ..models import AnalysisResult, SuggestedField

__all__ = [
    "FieldGroup",
    "slugify_label",
    "split_confirmed",
    "replace_in_analysis",
    "replace_in_list",
]

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9 ]")


class FieldGroup(str, Enum):
    HEADER = "header"
    LINE_ITEM = "lineItem"


def slugify_label(label: str) -> str:
    """Turn a human label into a camelCase field name.

    >>> slugify_label("Invoice Date!!")
    'invoiceDate'
    """
    words = [w for w in _NON_ALNUM.sub(" ", label).split(" ") if w]
    return "".join(
        w.lower() if i == 0 else w[0].upper() + w[1:].lower()
        for i, w in enumerate(words)
    )


def split_confirmed(confirmed: Sequence[SuggestedField],
                    analysis: Optional[AnalysisResult]) -> Tuple[List[SuggestedField], List[SuggestedField]]:
    """Split confirmed fields into (header, line-item) groups by name.

    Confirmed fields keep their own (possibly edited) values and order;
    fields absent from both analysis groups are dropped.
    """
    if analysis is None:
        return [], []
    header_names = set(analysis.header_names())
    line_names = set(analysis.line_item_names())
    headers = [f for f in confirmed if f.name in header_names]
    line_items = [f for f in confirmed if f.name in line_names]
    return headers, line_items


def replace_in_list(fields: Sequence[SuggestedField], name: str,
                    **changes: Any) -> Tuple[List[SuggestedField], bool]:
    """Return a copy of ``fields`` with the named field changed, and whether it was found."""
    found = False
    out: List[SuggestedField] = []
    for f in fields:
        if f.name == name:
            out.append(f.with_changes(**changes))
            found = True
        else:
            out.append(f)
    return out, found


def replace_in_analysis(analysis: AnalysisResult, name: str,
                        **changes: Any) -> Tuple[AnalysisResult, bool]:
    """Apply ``changes`` to the named field in whichever analysis group holds it."""
    headers, in_header = replace_in_list(analysis.header_fields, name, **changes)
    line_items, in_lines = replace_in_list(analysis.line_item_fields, name, **changes)
    if not (in_header or in_lines):
        return analysis, False
    return analysis.with_changes(header_fields=headers, line_item_fields=line_items), True
