"""Quiz scoring.

``evaluate`` turns a quiz definition and a learner's answers into an
``EvaluationResult``.  It performs no I/O and returns immutable models, so
grading the same answers twice always produces equal results.  Recording
the outcome is the job of ``lms.crud.record_attempt``.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from lms.errors import InvalidQuizDefinition, MalformedAnswerSet
from lms.models import Quiz


class ChoiceDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    text: str = ""
    is_correct: bool = False


class QuestionDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    text: str = ""
    choices: tuple[ChoiceDefinition, ...]
    points: int = 1
    explanation: Optional[str] = None

    @property
    def correct_choice_id(self) -> int:
        return next(c.id for c in self.choices if c.is_correct)


class QuizDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    title: str = ""
    pass_percentage: int = 70
    time_limit_minutes: Optional[int] = None
    questions: tuple[QuestionDefinition, ...]

    @classmethod
    def from_model(cls, quiz: Quiz) -> "QuizDefinition":
        """Build a definition from a quiz with questions and options loaded."""
        questions = sorted(quiz.questions, key=lambda q: (q.question_order, q.id))
        return cls(
            id=quiz.id,
            title=quiz.title,
            pass_percentage=quiz.pass_percentage,
            time_limit_minutes=quiz.time_limit_minutes,
            questions=tuple(
                QuestionDefinition(
                    id=q.id,
                    text=q.question_text,
                    points=q.points,
                    explanation=q.explanation,
                    choices=tuple(
                        ChoiceDefinition(
                            id=o.id, text=o.option_text, is_correct=o.is_correct
                        )
                        for o in sorted(q.options, key=lambda o: (o.option_order, o.id))
                    ),
                )
                for q in questions
            ),
        )


class QuestionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_id: int
    selected_choice_id: Optional[int]
    correct_choice_id: int
    is_correct: bool
    points_earned: int
    explanation: Optional[str] = None


class EvaluationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_points_earned: int
    total_points_possible: int
    percentage: int
    passed: bool
    per_question: tuple[QuestionResult, ...]


Answers = Union[Mapping[int, Optional[int]], Iterable[tuple[int, Optional[int]]]]


def validate_quiz(quiz: QuizDefinition) -> None:
    """Raise ``InvalidQuizDefinition`` if ``quiz`` cannot be graded."""
    if not 0 <= quiz.pass_percentage <= 100:
        raise InvalidQuizDefinition("Pass percentage must be between 0 and 100")
    if not quiz.questions:
        raise InvalidQuizDefinition("Quiz has no questions")
    for number, question in enumerate(quiz.questions, start=1):
        if len(question.choices) < 2:
            raise InvalidQuizDefinition(
                f"Question {number}: at least two choices are required"
            )
        correct = sum(1 for c in question.choices if c.is_correct)
        if correct != 1:
            raise InvalidQuizDefinition(
                f"Question {number}: exactly one correct choice is required, found {correct}"
            )
        if question.points <= 0:
            raise InvalidQuizDefinition(f"Question {number}: points must be positive")


def normalize_answers(answers: Answers) -> dict[int, Optional[int]]:
    """Return ``answers`` as a dict, rejecting repeated question ids."""
    if isinstance(answers, Mapping):
        return dict(answers)
    normalized: dict[int, Optional[int]] = {}
    for question_id, choice_id in answers:
        if question_id in normalized:
            raise MalformedAnswerSet(
                f"Question {question_id} was answered more than once"
            )
        normalized[question_id] = choice_id
    return normalized


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def evaluate(quiz: QuizDefinition, answers: Answers) -> EvaluationResult:
    validate_quiz(quiz)
    selected = normalize_answers(answers)

    earned = 0
    possible = 0
    results = []
    for question in quiz.questions:
        possible += question.points
        choice_id = selected.get(question.id)
        # ids from another question (stale client state) simply never match
        is_correct = choice_id is not None and choice_id == question.correct_choice_id
        points = question.points if is_correct else 0
        earned += points
        results.append(
            QuestionResult(
                question_id=question.id,
                selected_choice_id=choice_id,
                correct_choice_id=question.correct_choice_id,
                is_correct=is_correct,
                points_earned=points,
                explanation=question.explanation,
            )
        )

    percentage = round_half_up(Decimal(100 * earned) / Decimal(possible))
    return EvaluationResult(
        total_points_earned=earned,
        total_points_possible=possible,
        percentage=percentage,
        passed=percentage >= quiz.pass_percentage,
        per_question=tuple(results),
    )
