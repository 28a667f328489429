"""
Unit tests for duplicate-free ingestion.
"""

import pytest
from pydantic import ValidationError

from quizpool.db.models import AuditRecord, MasteryRecord, QuizItem
from quizpool.domain import Difficulty, ItemStatus, ItemType
from quizpool.exceptions import ItemNotFoundError
from quizpool.identity import (
    CollisionLevel,
    GeneratedItem,
    InsertOutcome,
    ItemRepository,
    classify_collision_rate,
)


@pytest.fixture
def repo(session):
    return ItemRepository(session)


class TestGeneratedItem:
    def test_accepts_type_alias(self, make_item):
        item = make_item(type="fill-in-blank", acceptable_variations=["paris", "  "])
        assert item.item_type == ItemType.FILL_IN_BLANK
        assert item.acceptable_variations == ["paris"]

    def test_rejects_unknown_difficulty(self, make_item):
        with pytest.raises(ValidationError):
            make_item(difficulty="expert")

    def test_rejects_empty_question(self, make_item):
        with pytest.raises(ValidationError):
            make_item(question="")


class TestInsert:
    def test_new_item_is_pending(self, repo, make_item):
        result = repo.insert(make_item())

        assert result.outcome == InsertOutcome.INSERTED
        stored = repo.require(result.item_id)
        assert stored.status == ItemStatus.PENDING.value

    def test_identical_item_twice_is_skipped(self, repo, session, make_item):
        item = make_item(question="What is the capital of France?")

        first = repo.insert(item)
        second = repo.insert(item)

        assert first.inserted
        assert second.outcome == InsertOutcome.SKIPPED_DUPLICATE
        assert second.item_id is None
        assert session.query(QuizItem).count() == 1

    def test_cosmetic_variant_is_skipped(self, repo, make_item):
        repo.insert(make_item(question="What is the capital of France?"))
        result = repo.insert(make_item(question="  what is the CAPITAL of france? "))
        assert result.outcome == InsertOutcome.SKIPPED_DUPLICATE

    def test_same_question_other_difficulty_is_new(self, repo, make_item):
        repo.insert(make_item(question="Q1", difficulty="beginner"))
        result = repo.insert(make_item(question="Q1", difficulty="advanced"))
        assert result.inserted

    def test_choice_items_drop_variations(self, repo, make_item):
        result = repo.insert(make_item(acceptable_variations=["x"]))
        assert repo.require(result.item_id).acceptable_variations == []

    def test_typed_items_drop_options(self, repo, make_item):
        result = repo.insert(make_item(type="writing", acceptable_variations=["x"]))
        stored = repo.require(result.item_id)
        assert stored.options is None
        assert stored.acceptable_variations == ["x"]


class TestIngest:
    def test_rerun_of_same_batch_inserts_nothing(self, repo, make_item):
        items = [make_item(question=f"Question {i}") for i in range(4)]

        first = repo.ingest(items, source_file="unit1.json")
        second = repo.ingest(items, source_file="unit1.json")

        assert first.inserted == 4
        assert second.inserted == 0
        assert second.skipped == 4
        assert second.collision_rate == 1.0
        assert second.collision_level == CollisionLevel.STOP

    def test_duplicates_within_a_batch(self, repo, make_item):
        item = make_item(question="Same")
        report = repo.ingest([item, item, make_item(question="Other")])

        assert report.attempted == 3
        assert report.inserted == 2
        assert report.skipped == 1
        assert len(report.inserted_ids) == 2

    def test_batch_provenance_is_recorded(self, repo, make_item):
        report = repo.ingest([make_item()], source_file="gen.json", generated_by="gen-v2")

        batch = repo.get_batch(report.batch_id)
        assert batch.source_file == "gen.json"
        assert batch.inserted == 1
        stored = repo.require(report.inserted_ids[0])
        assert stored.batch_id == report.batch_id
        assert stored.generated_by == "gen-v2"

    def test_empty_batch(self, repo):
        report = repo.ingest([])
        assert report.attempted == 0
        assert report.collision_rate == 0.0
        assert report.collision_level == CollisionLevel.OK


class TestCollisionLevels:
    @pytest.mark.parametrize(
        "rate,level",
        [
            (0.0, CollisionLevel.OK),
            (0.29, CollisionLevel.OK),
            (0.30, CollisionLevel.SATURATING),
            (0.50, CollisionLevel.DEGRADING),
            (0.79, CollisionLevel.DEGRADING),
            (0.80, CollisionLevel.STOP),
        ],
    )
    def test_thresholds(self, rate, level):
        assert classify_collision_rate(rate) == level


class TestLookupAndDelete:
    def test_find_filters(self, repo, make_item):
        repo.insert(make_item(question="A", unit_id="unit-1", difficulty="beginner"))
        repo.insert(make_item(question="B", unit_id="unit-2", difficulty="beginner"))
        repo.insert(make_item(question="C", unit_id="unit-1", difficulty="advanced"))

        found = repo.find(unit_id="unit-1", difficulty=Difficulty.BEGINNER)
        assert [i.question for i in found] == ["A"]

    def test_require_missing_raises(self, repo):
        from uuid import uuid4

        with pytest.raises(ItemNotFoundError):
            repo.require(uuid4())

    def test_delete_frees_fingerprint(self, repo, session, make_item):
        item = make_item(question="Removable")
        result = repo.insert(item)
        session.add(MasteryRecord(learner_id="l1", item_id=result.item_id, box=2, consecutive_correct=0))
        session.add(AuditRecord(item_id=result.item_id, auditor="a", kind="core", payload={}))
        session.flush()

        repo.delete(result.item_id)

        assert session.query(MasteryRecord).count() == 0
        assert session.query(AuditRecord).count() == 0
        assert repo.insert(item).inserted
