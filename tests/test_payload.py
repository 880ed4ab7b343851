"""Tests for merging edits into extracted-data payloads."""

import copy
import json

import pytest

from invoice_workflow.exceptions import ValidationError
from invoice_workflow.workflow import (
    apply_review_edit,
    deep_merge,
    merge_extraction_update,
    replace_document,
)


@pytest.fixture
def documents_payload():
    return {
        "documents": [
            {"header": {"invoiceNumber": "A-1", "total": 10},
             "lineItems": [{"description": "Bolt", "lineTotal": 10}]},
            {"header": {"invoiceNumber": "B-2", "total": 20},
             "lineItems": [{"description": "Nut", "lineTotal": 20}]},
            {"header": {"invoiceNumber": "C-3", "total": 30}, "lineItems": []},
        ]
    }


class TestDeepMerge:
    """Test cases for deep_merge."""

    def test_nested_dicts_merge(self):
        target = {"a": {"b": 1, "c": 2}, "d": 3}
        merged = deep_merge(target, {"a": {"c": 20, "e": 5}})
        assert merged == {"a": {"b": 1, "c": 20, "e": 5}, "d": 3}

    def test_lists_and_scalars_replace(self):
        merged = deep_merge({"items": [1, 2, 3], "n": 1}, {"items": [9], "n": None})
        assert merged == {"items": [9], "n": None}

    def test_inputs_not_modified(self):
        target = {"a": {"b": [1]}}
        source = {"a": {"c": {"d": 1}}}
        before = copy.deepcopy((target, source))

        merged = deep_merge(target, source)
        merged["a"]["c"]["d"] = 99

        assert (target, source) == before

    def test_non_dict_target_replaced(self):
        assert deep_merge([1, 2], {"a": 1}) == {"a": 1}


class TestMergeExtractionUpdate:
    """Test cases for merge_extraction_update."""

    def test_header_merges_field_by_field(self, extracted_payload):
        merged = merge_extraction_update(extracted_payload, {"header": {"total": 120}})

        assert merged["header"] == {**extracted_payload["header"], "total": 120}
        assert merged["lineItems"] == extracted_payload["lineItems"]
        assert extracted_payload["header"]["total"] == 110

    def test_line_items_replaced(self, extracted_payload):
        merged = merge_extraction_update(extracted_payload,
                                         {"lineItems": [{"description": "Only"}]})
        assert merged["lineItems"] == [{"description": "Only"}]

    def test_empty_payload(self):
        assert merge_extraction_update(None, {"header": {"total": 1}}) == {"header": {"total": 1}}

    @pytest.mark.parametrize("partial", [
        {"footer": {}},
        {"header": [1]},
        {"lineItems": {"a": 1}},
        {"documents": "x"},
        ["header"],
    ])
    def test_invalid_updates_rejected(self, extracted_payload, partial):
        with pytest.raises(ValidationError):
            merge_extraction_update(extracted_payload, partial)


class TestDocumentEdits:
    """Test cases for per-document edits."""

    def test_edit_leaves_other_documents_unchanged(self, documents_payload):
        before = [json.dumps(d, sort_keys=True) for d in documents_payload["documents"]]

        updated = replace_document(documents_payload, 1,
                                   {"header": {"invoiceNumber": "B-2", "total": 25},
                                    "lineItems": []})

        after = [json.dumps(d, sort_keys=True) for d in updated["documents"]]
        assert after[0] == before[0]
        assert after[2] == before[2]
        assert updated["documents"][1]["header"]["total"] == 25
        assert documents_payload["documents"][1]["header"]["total"] == 20

    @pytest.mark.parametrize("index", [-1, 3])
    def test_index_out_of_range(self, documents_payload, index):
        with pytest.raises(ValidationError):
            replace_document(documents_payload, index, {"header": {}})

    def test_payload_without_documents(self, extracted_payload):
        with pytest.raises(ValidationError):
            replace_document(extracted_payload, 0, {"header": {}})

    def test_apply_review_edit_dispatch(self, documents_payload, extracted_payload):
        edited = apply_review_edit(documents_payload, {"header": {"total": 1}}, document_index=2)
        assert edited["documents"][2] == {"header": {"total": 1}}

        merged = apply_review_edit(extracted_payload, {"header": {"total": 1}})
        assert merged["header"]["invoiceNumber"] == "INV-001"
