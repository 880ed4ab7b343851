"""Tests for the template, inbox, settings and user repositories."""

import pytest

from invoice_workflow.exceptions import EmbeddingError, ValidationError
from invoice_workflow.models import UserRole

from tests.helpers import unit_vector, vector_with_score


class TestTemplateRepository:
    """Test cases for TemplateRepository class."""

    def test_insert_and_get(self, template_repository, people):
        template_id = template_repository.insert(
            supplier="Acme", header_fields=[{"name": "total"}], line_item_fields=[],
            embedding=unit_vector(3), client_id=people["client_id"], client_name="Globex",
            created_by=people["compiler"],
        )

        stored = template_repository.get(template_id)
        assert stored.supplier == "Acme"
        assert stored.client_name == "Globex"
        assert stored.embedding == unit_vector(3)

    @pytest.mark.parametrize("length", [0, 1535, 1537])
    def test_wrong_dimension_rejected(self, template_repository, length):
        with pytest.raises(EmbeddingError):
            template_repository.insert("Acme", [], [], [0.1] * length)
        assert template_repository.list_templates() == []

    def test_patch(self, template_repository):
        template_id = template_repository.insert("Acme", [], [], unit_vector(0))

        template_repository.patch(template_id, supplier="Acme Ltd", header_fields=[{"name": "x"}])

        stored = template_repository.get(template_id)
        assert stored.supplier == "Acme Ltd"
        assert stored.header_fields == [{"name": "x"}]

    def test_patch_rejects_unknown_columns_and_ids(self, template_repository):
        template_id = template_repository.insert("Acme", [], [], unit_vector(0))
        with pytest.raises(ValidationError):
            template_repository.patch(template_id, client_id=5)
        with pytest.raises(ValidationError):
            template_repository.patch(999, supplier="x")
        with pytest.raises(EmbeddingError):
            template_repository.patch(template_id, embedding=[1.0])

    def test_search_orders_by_cosine_similarity(self, template_repository):
        low = template_repository.insert("Low", [], [], vector_with_score(0.3))
        high = template_repository.insert("High", [], [], vector_with_score(0.9))
        opposite = template_repository.insert("Opposite", [], [], [-x for x in unit_vector(0)])

        hits = template_repository.search(unit_vector(0), limit=10)

        assert [h.template_id for h in hits] == [high, low, opposite]
        assert hits[0].score == pytest.approx(0.9)
        assert hits[-1].score == pytest.approx(-1.0)

    def test_search_limit_and_empty_store(self, template_repository):
        assert template_repository.search(unit_vector(0), limit=5) == []
        for i in range(3):
            template_repository.insert(f"S{i}", [], [], vector_with_score(0.5 + i / 10))
        assert len(template_repository.search(unit_vector(0), limit=2)) == 2
        assert template_repository.search(unit_vector(0), limit=0) == []

    def test_zero_vector_scores_zero(self, template_repository):
        template_repository.insert("Zero", [], [], [0.0] * 1536)
        assert template_repository.search(unit_vector(0), limit=1)[0].score == 0.0

    def test_find_by_client_supplier(self, template_repository, people):
        owned = template_repository.insert("Acme", [], [], unit_vector(0),
                                           client_id=people["client_id"])
        shared = template_repository.insert("Acme", [], [], unit_vector(0))

        assert template_repository.find_by_client_supplier(people["client_id"], "Acme").id == owned
        assert template_repository.find_by_client_supplier(None, "Acme").id == shared
        assert template_repository.find_by_client_supplier(people["client_id"], "Other") is None

    def test_list_and_get_many(self, template_repository, people):
        a = template_repository.insert("A", [], [], unit_vector(0), client_id=people["client_id"])
        b = template_repository.insert("B", [], [], unit_vector(1))

        assert [t.id for t in template_repository.list_templates()] == [a, b]
        assert [t.id for t in template_repository.list_templates(people["client_id"])] == [a]
        assert set(template_repository.get_many([a, b, 999])) == {a, b}
        assert template_repository.get_many([]) == {}


class TestInboxRepository:
    """Test cases for InboxRepository class."""

    def test_inbound_is_deduplicated_by_message_id(self, inbox_repository):
        first = inbox_repository.record_inbound("a@b.test", "in@x.test", "<m1>")
        again = inbox_repository.record_inbound("a@b.test", "in@x.test", "<m1>")
        assert first == again

    def test_latest_linked_email_wins(self, inbox_repository, make_job):
        job_id = make_job()
        older = inbox_repository.record_inbound("a@b.test", "in@x.test", "<m1>")
        newer = inbox_repository.record_inbound("c@d.test", "in@x.test", "<m2>")
        inbox_repository.link_job(older, job_id)
        inbox_repository.link_job(newer, job_id)

        linked = inbox_repository.find_linked_email(job_id)

        assert linked.id == newer
        assert linked.status == "processed"

    def test_outbound_status_validated(self, inbox_repository):
        with pytest.raises(ValidationError):
            inbox_repository.record_outbound("a@b.test", "c@d.test", "id", status="queued")

    def test_link_missing_email(self, inbox_repository, make_job):
        with pytest.raises(ValidationError):
            inbox_repository.link_job(999, make_job())


class TestUserRepository:
    """Test cases for UserRepository class."""

    def test_create_and_get_user(self, user_repository, people):
        user = user_repository.get_user(people["compiler"])
        assert user.role == UserRole.COMPILER.value
        assert user.email == "cody@compile.test"

    def test_unknown_role_rejected(self, user_repository):
        with pytest.raises(ValidationError):
            user_repository.create_user("Eve", "eve@x.test", "SUPERUSER")


class TestSettingsRepository:
    """Test cases for SettingsRepository class."""

    def test_upsert_overwrites(self, settings_repository):
        settings_repository.upsert("compilerCommission", 70, "cut")
        settings_repository.upsert("compilerCommission", 75, "cut")
        assert settings_repository.all_values() == {"compilerCommission": 75}
