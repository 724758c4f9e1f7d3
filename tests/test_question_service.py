import logging

import pytest

from conftest import make_exam, make_question
from exam_portal.core.errors import NotFound, ValidationFailed
from exam_portal.schemas.question import Difficulty, QuestionType, QuestionUpdate
from exam_portal.services.question_service import (
    delete_question,
    get_question,
    get_question_metadata,
    list_questions,
    update_question,
)


def test_create_requires_options_for_multiple_choice(db):
    with pytest.raises(ValidationFailed):
        make_question(db, options=[])
    with pytest.raises(ValidationFailed):
        make_question(db, options=["  "])


def test_short_answer_needs_no_options(db):
    question = make_question(db, type="short_answer", options=[], correct_answer="Au")
    assert question.type == QuestionType.short_answer
    assert get_question(question.question_id, db=db).correct_answer == "Au"


def test_list_filters_and_paginates(db):
    for idx in range(12):
        make_question(db, text=f"Geo {idx}", difficulty="easy" if idx % 2 else "hard")
    make_question(db, text="Chem", subject="Science", topic="Chemistry")

    first = list_questions(subject="Geography", page=1, limit=5, db=db)
    assert first.total == 12
    assert first.pages == 3
    assert len(first.items) == 5

    last = list_questions(subject="Geography", page=3, limit=5, db=db)
    assert len(last.items) == 2

    hard = list_questions(subject="Geography", difficulty=Difficulty.hard, db=db)
    assert hard.total == 6
    assert all(q.difficulty == Difficulty.hard for q in hard.items)

    chemistry = list_questions(topic="Chemistry", db=db)
    assert [q.text for q in chemistry.items] == ["Chem"]


def test_empty_listing_has_zero_pages(db):
    result = list_questions(db=db)
    assert result.total == 0
    assert result.pages == 0
    assert result.items == []


def test_update_merges_and_revalidates(db):
    question = make_question(db, type="short_answer", options=[], correct_answer="42", marks=2)

    updated = update_question(question.question_id, QuestionUpdate(marks=4, topic="Numbers"), db=db)
    assert updated.marks == 4
    assert updated.topic == "Numbers"
    assert updated.correct_answer == "42"
    assert updated.updated_at >= question.updated_at

    with pytest.raises(ValidationFailed):
        update_question(question.question_id, QuestionUpdate(type=QuestionType.multiple_choice), db=db)


def test_update_and_delete_unknown_ids(db):
    with pytest.raises(NotFound):
        update_question("missing", QuestionUpdate(marks=2), db=db)
    with pytest.raises(NotFound):
        delete_question("missing", db=db)


def test_delete_referenced_question_leaves_exam_untouched(db, caplog):
    question = make_question(db)
    exam = make_exam(db, [question.question_id], [])

    with caplog.at_level(logging.WARNING):
        delete_question(question.question_id, db=db)

    assert "still referenced by 1 exam" in caplog.text
    assert db.get_exam(exam.exam_id).question_ids == [question.question_id]
    with pytest.raises(NotFound):
        get_question(question.question_id, db=db)


def test_metadata_lists_distinct_sorted_values(db):
    make_question(db, subject="Science", topic="Physics")
    make_question(db, subject="Geography", topic="Capitals")
    make_question(db, subject="Science", topic="Chemistry")

    metadata = get_question_metadata(db=db)
    assert metadata.subjects == ["Geography", "Science"]
    assert metadata.topics == ["Capitals", "Chemistry", "Physics"]
