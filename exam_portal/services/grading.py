"""
Deterministic scoring of a submission.

Every question type is graded the same way: the submitted answer must equal the
stored correct answer ignoring case. Short answers are therefore matched
literally, not semantically.
"""

from typing import Dict, List, NamedTuple

from exam_portal.schemas.question import QuestionResponse
from exam_portal.schemas.result import GradedAnswer


class GradingOutcome(NamedTuple):
    answers: List[GradedAnswer]
    obtained_marks: int
    total_marks: int

    @property
    def score(self) -> str:
        return f"{self.obtained_marks}/{self.total_marks}"


def answers_match(submitted: str, correct: str) -> bool:
    return submitted.lower() == correct.lower()


def grade_submission(questions: List[QuestionResponse], answers: Dict[str, str]) -> GradingOutcome:
    """
    Grade ``answers`` (question_id -> answer) against the exam's ``questions``.

    Entries naming a question outside the exam are ignored. ``total_marks`` sums
    every question of the exam, answered or not.
    """

    by_id: Dict[str, QuestionResponse] = {}
    for question in questions:
        by_id.setdefault(question.question_id, question)

    graded: List[GradedAnswer] = []
    obtained = 0
    for question_id, submitted in answers.items():
        question = by_id.get(question_id)
        if question is None:
            continue
        is_correct = answers_match(submitted, question.correct_answer)
        awarded = question.marks if is_correct else 0
        obtained += awarded
        graded.append(
            GradedAnswer(
                question_id=question_id,
                submitted_answer=submitted,
                is_correct=is_correct,
                awarded_marks=awarded,
            )
        )

    total = sum(q.marks for q in questions)
    return GradingOutcome(answers=graded, obtained_marks=obtained, total_marks=total)
