"""Merging edits into extracted-data payloads.

Payloads take one of two shapes: ``{"header": {...}, "lineItems": [...]}``
for a single document, or ``{"documents": [{header, lineItems}, ...]}``.
Objects are merged recursively, arrays and scalars are replaced.
"""

import copy
from typing import Any, Dict, Optional

from ..exceptions import ValidationError

__all__ = [
    "EDITABLE_SECTIONS",
    "deep_merge",
    "merge_extraction_update",
    "replace_document",
    "apply_review_edit",
]

EDITABLE_SECTIONS = ("header", "lineItems", "documents")


def deep_merge(target: Any, source: Any) -> Any:
    """Recursively merge ``source`` into a copy of ``target``.

    Nested dicts merge key by key. Lists and scalars in ``source`` replace
    the target value. A non-dict target is replaced by ``source`` outright.
    Neither argument is modified.
    """
    if not isinstance(target, dict) or not isinstance(source, dict):
        return copy.deepcopy(source)

    merged = dict(target)
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def merge_extraction_update(current: Optional[Dict[str, Any]],
                            partial: Dict[str, Any]) -> Dict[str, Any]:
    """Merge a partial update into an extracted-data payload.

    Only the known sections may be updated. ``header`` merges field by
    field; ``lineItems`` and ``documents`` are arrays and are replaced.

    Raises:
        ValidationError: If the update is not a dict or names an unknown section
    """
    if not isinstance(partial, dict):
        raise ValidationError("Extraction update must be an object")
    unknown = [key for key in partial if key not in EDITABLE_SECTIONS]
    if unknown:
        raise ValidationError(f"Unknown extraction sections: {', '.join(unknown)}")

    base: Dict[str, Any] = dict(current) if isinstance(current, dict) else {}
    for section, value in partial.items():
        if section == "header":
            if not isinstance(value, dict):
                raise ValidationError("header must be an object")
            base["header"] = deep_merge(base.get("header") or {}, value)
        else:
            if not isinstance(value, list):
                raise ValidationError(f"{section} must be an array")
            base[section] = copy.deepcopy(value)
    return base


def replace_document(payload: Dict[str, Any], index: int,
                     document: Dict[str, Any]) -> Dict[str, Any]:
    """Return a payload whose ``documents[index]`` is replaced by ``document``.

    Every other document is carried over as the same object.

    Raises:
        ValidationError: If there is no documents list or the index is out of range
    """
    documents = payload.get("documents") if isinstance(payload, dict) else None
    if not isinstance(documents, list):
        raise ValidationError("Payload has no documents to edit")
    if not 0 <= index < len(documents):
        raise ValidationError(f"Document index {index} out of range (0-{len(documents) - 1})")
    if not isinstance(document, dict):
        raise ValidationError("Document edit must be an object")

    updated = list(documents)
    updated[index] = copy.deepcopy(document)
    return {**payload, "documents": updated}


def apply_review_edit(payload: Optional[Dict[str, Any]], edit: Dict[str, Any],
                      document_index: Optional[int] = None) -> Dict[str, Any]:
    """Apply a reviewer's edit: per-document replace, or a section merge."""
    if document_index is not None:
        return replace_document(payload or {}, document_index, edit)
    return merge_extraction_update(payload, edit)
