"""Tests for template matching.

Covers the similarity floor and ordering of TemplateMatcher.match and the
three write paths of upsert_template.
"""

from unittest.mock import Mock

import pytest

from invoice_workflow.database import SearchHit
from invoice_workflow.exceptions import EmbeddingError, ValidationError
from invoice_workflow.matching import TemplateMatch, TemplateMatcher
from invoice_workflow.models import ExtractionTemplate, SuggestedField, fields_to_dicts

from tests.helpers import vector_with_score


def _store(template_repository, supplier, score, client_id=None, client_name=None,
           fields=None):
    fields = fields or [SuggestedField(name="total", label="Total")]
    return template_repository.insert(
        supplier=supplier,
        header_fields=fields_to_dicts(fields),
        line_item_fields=[],
        embedding=vector_with_score(score),
        client_id=client_id,
        client_name=client_name,
    )


class TestTemplateMatcherMatch:
    """Test cases for TemplateMatcher.match."""

    def test_threshold_excludes_scores_below_floor(self, fake_embedder):
        """Scores below 0.80 are dropped, 0.80 and above are kept."""
        repository = Mock()
        repository.search.return_value = [
            SearchHit(1, 0.97), SearchHit(2, 0.80), SearchHit(3, 0.7999), SearchHit(4, 0.10),
        ]
        repository.get_many.side_effect = lambda ids: {
            i: ExtractionTemplate(id=i, supplier=f"Acme {i}", header_fields=[],
                                  line_item_fields=[], embedding=[])
            for i in ids
        }
        matcher = TemplateMatcher(repository, fake_embedder)

        matches = matcher.match("Acme Pty Ltd")

        assert [m.template_id for m in matches] == [1, 2]
        repository.get_many.assert_called_once_with([1, 2])

    def test_threshold_against_stored_vectors(self, template_matcher, template_repository):
        keep = _store(template_repository, "Acme Pty Ltd", 0.97)
        _store(template_repository, "Acme Group", 0.79)

        assert [m.template_id for m in template_matcher.match("Acme Pty Ltd")] == [keep]

    def test_results_sorted_by_descending_score(self, template_matcher, template_repository):
        """Survivors are ranked best first."""
        ids = {score: _store(template_repository, f"Supplier {score}", score)
               for score in (0.82, 0.99, 0.91)}

        matches = template_matcher.match("Supplier")

        assert [m.template_id for m in matches] == [ids[0.99], ids[0.91], ids[0.82]]
        assert [round(m.score, 6) for m in matches] == [0.99, 0.91, 0.82]

    def test_no_templates_returns_empty_list(self, template_matcher):
        """An empty store is not an error."""
        assert template_matcher.match("Acme Pty Ltd") == []

    def test_all_below_threshold_returns_empty_list(self, template_matcher, template_repository):
        _store(template_repository, "Acme", 0.5)
        assert template_matcher.match("Acme") == []

    def test_returns_full_field_schemas(self, template_matcher, template_repository,
                                        header_fields):
        """Each match carries the template's header and line-item fields."""
        _store(template_repository, "Acme", 0.95, client_name="Globex", fields=header_fields)

        match = template_matcher.match("Acme", "Globex")[0]

        assert match.supplier == "Acme"
        assert match.client_name == "Globex"
        assert match.header_fields == header_fields
        assert match.line_item_fields == []

    def test_limit_caps_candidates(self, template_repository, fake_embedder):
        """Only the nearest ``limit`` candidates are considered."""
        for i in range(5):
            _store(template_repository, f"Acme {i}", 0.9 + i / 100)
        matcher = TemplateMatcher(template_repository, fake_embedder, limit=2)

        matches = matcher.match("Acme")

        assert len(matches) == 2
        assert matches[0].score > matches[1].score

    def test_query_concatenates_supplier_and_client(self, template_matcher, fake_embedder):
        template_matcher.match("  Acme Pty Ltd ", " Globex ")
        assert fake_embedder.calls == ["Acme Pty Ltd Globex"]

    def test_query_without_client(self, template_matcher, fake_embedder):
        template_matcher.match("Acme")
        assert fake_embedder.calls == ["Acme"]

    @pytest.mark.parametrize("supplier", ["", "   ", None])
    def test_empty_supplier_rejected(self, template_matcher, supplier):
        with pytest.raises(ValidationError):
            template_matcher.match(supplier)

    def test_embedding_failure_propagates(self, template_repository):
        """Embedding errors are not swallowed."""
        class BrokenEmbedder:
            def embed(self, text):
                raise EmbeddingError("Embedding dimension mismatch")

        matcher = TemplateMatcher(template_repository, BrokenEmbedder())

        with pytest.raises(EmbeddingError):
            matcher.match("Acme")


class TestTemplateMatcherUpsert:
    """Test cases for TemplateMatcher.upsert_template."""

    def test_insert_new_template(self, template_matcher, template_repository,
                                 header_fields, line_item_fields, people):
        template_id = template_matcher.upsert_template(
            "Acme", header_fields, line_item_fields,
            client_id=people["client_id"], client_name="Globex", created_by=people["compiler"],
        )

        stored = template_repository.get(template_id)
        assert stored.supplier == "Acme"
        assert stored.client_id == people["client_id"]
        assert stored.created_by == people["compiler"]
        assert stored.header_fields == fields_to_dicts(header_fields)
        assert len(stored.embedding) == 1536

    def test_patch_by_template_id(self, template_matcher, template_repository, fake_embedder,
                                  header_fields):
        template_id = _store(template_repository, "Old Name", 0.9)
        fake_embedder.register("New Name", "Globex", vector_with_score(0.5))

        returned = template_matcher.upsert_template("New Name", header_fields, [],
                                                    client_name="Globex",
                                                    template_id=template_id)

        stored = template_repository.get(template_id)
        assert returned == template_id
        assert stored.supplier == "New Name"
        assert stored.embedding == vector_with_score(0.5)
        assert len(template_repository.list_templates()) == 1

    def test_patch_existing_client_supplier_pair(self, template_matcher, template_repository,
                                                 header_fields, people):
        existing = _store(template_repository, "Acme", 0.9, client_id=people["client_id"])

        returned = template_matcher.upsert_template("Acme", header_fields, [],
                                                    client_id=people["client_id"])

        assert returned == existing
        assert template_repository.get(existing).header_fields == fields_to_dicts(header_fields)
        assert len(template_repository.list_templates()) == 1

    def test_same_supplier_other_client_inserts(self, template_matcher, template_repository,
                                                people, user_repository):
        other_client = user_repository.create_client("Initech")
        _store(template_repository, "Acme", 0.9, client_id=people["client_id"])

        template_matcher.upsert_template("Acme", [], [], client_id=other_client)

        assert len(template_repository.list_templates()) == 2

    def test_embedding_recomputed_on_every_save(self, template_matcher, fake_embedder):
        template_id = template_matcher.upsert_template("Acme", [], [], client_name="Globex")
        template_matcher.upsert_template("Acme", [], [], client_name="Globex",
                                         template_id=template_id)
        assert fake_embedder.calls == ["Acme Globex", "Acme Globex"]

    def test_empty_supplier_rejected(self, template_matcher):
        with pytest.raises(ValidationError):
            template_matcher.upsert_template("  ", [], [])


class TestTemplateMatch:
    """Test cases for the TemplateMatch value type."""

    def test_from_dict_and_to_analysis(self):
        match = TemplateMatch.from_dict({
            "templateId": 7,
            "supplier": "Acme",
            "clientName": "Globex",
            "headerFields": [{"name": "total", "label": "Total", "type": "number"}],
            "lineItemFields": [],
            "score": 0.97,
        })

        analysis = match.to_analysis()

        assert match.template_id == 7
        assert analysis.header_names() == ["total"]
        assert analysis.confidence == 0.97
        assert analysis.document_type == "Invoice"

    def test_zero_score_analysis_confidence_defaults_to_one(self):
        assert TemplateMatch(template_id=1, supplier="Acme").to_analysis().confidence == 1.0

    def test_from_dict_requires_id_and_supplier(self):
        with pytest.raises(ValidationError):
            TemplateMatch.from_dict({"supplier": "Acme"})
