"""Tests for quiz scoring rules."""

import pathlib
import sys

import pytest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from lms.errors import InvalidQuizDefinition, MalformedAnswerSet
from lms.grading import (
    ChoiceDefinition,
    QuestionDefinition,
    QuizDefinition,
    evaluate,
    validate_quiz,
)


def make_question(qid, points=1, correct=0, n_choices=3, explanation=None):
    return QuestionDefinition(
        id=qid,
        text=f"Question {qid}",
        points=points,
        explanation=explanation,
        choices=tuple(
            ChoiceDefinition(id=qid * 10 + i, text=f"Choice {i}", is_correct=i == correct)
            for i in range(n_choices)
        ),
    )


def make_quiz(*questions, pass_percentage=70):
    return QuizDefinition(id=1, title="Quiz", pass_percentage=pass_percentage, questions=questions)


def correct_answers(quiz):
    return {q.id: q.correct_choice_id for q in quiz.questions}


def test_all_correct_scores_full_marks():
    quiz = make_quiz(make_question(1), make_question(2, points=2), make_question(3), pass_percentage=100)
    result = evaluate(quiz, correct_answers(quiz))
    assert result.percentage == 100
    assert result.passed
    assert result.total_points_earned == result.total_points_possible == 4
    assert all(r.is_correct for r in result.per_question)


def test_no_answers_scores_zero():
    quiz = make_quiz(make_question(1), make_question(2))
    result = evaluate(quiz, {})
    assert result.percentage == 0
    assert not result.passed
    assert [r.selected_choice_id for r in result.per_question] == [None, None]
    assert [r.points_earned for r in result.per_question] == [0, 0]

    lenient = make_quiz(make_question(1), pass_percentage=0)
    assert evaluate(lenient, {}).passed


def test_weighted_questions():
    quiz = make_quiz(make_question(1, points=1), make_question(2, points=3))
    result = evaluate(quiz, {1: 10, 2: 21})
    assert result.total_points_earned == 1
    assert result.total_points_possible == 4
    assert result.percentage == 25
    assert [r.points_earned for r in result.per_question] == [1, 0]


def test_pass_boundary_is_inclusive():
    # 7 of 10 equally weighted questions -> 70%
    questions = [make_question(i) for i in range(1, 11)]
    quiz = make_quiz(*questions, pass_percentage=70)
    answers = {q.id: q.correct_choice_id for q in questions[:7]}
    result = evaluate(quiz, answers)
    assert result.percentage == 70
    assert result.passed

    # 69 of 100 points -> 69%
    quiz = make_quiz(make_question(1, points=69), make_question(2, points=31), pass_percentage=70)
    result = evaluate(quiz, {1: 10})
    assert result.percentage == 69
    assert not result.passed


def test_four_question_scenario():
    quiz = make_quiz(*(make_question(i) for i in range(1, 5)), pass_percentage=75)
    answers = {1: 10, 2: 20, 3: 30, 4: 41}
    result = evaluate(quiz, answers)
    assert result.total_points_earned == 3
    assert result.percentage == 75
    assert result.passed
    assert [r.is_correct for r in result.per_question] == [True, True, True, False]


def test_rounds_half_up():
    # 1 of 8 points is 12.5% and 5 of 8 is 62.5%
    quiz = make_quiz(make_question(1, points=1), make_question(2, points=7))
    assert evaluate(quiz, {1: 10}).percentage == 13
    quiz = make_quiz(make_question(1, points=5), make_question(2, points=3))
    assert evaluate(quiz, {1: 10}).percentage == 63
    # 2 of 3 -> 66.67%
    quiz = make_quiz(make_question(1), make_question(2), make_question(3))
    assert evaluate(quiz, {1: 10, 2: 20}).percentage == 67


def test_choice_from_another_question_is_incorrect():
    quiz = make_quiz(make_question(1), make_question(2))
    result = evaluate(quiz, {1: 20, 2: 999})
    first, second = result.per_question
    assert first.selected_choice_id == 20
    assert not first.is_correct
    assert not second.is_correct
    assert result.total_points_earned == 0


def test_answers_for_unknown_questions_are_ignored():
    quiz = make_quiz(make_question(1))
    result = evaluate(quiz, {1: 10, 42: 420})
    assert result.percentage == 100
    assert len(result.per_question) == 1


def test_result_mirrors_question_order_and_explanations():
    quiz = make_quiz(
        make_question(3, explanation="Third"),
        make_question(1),
        make_question(2, correct=2, explanation="Second"),
    )
    result = evaluate(quiz, {2: 22})
    assert [r.question_id for r in result.per_question] == [3, 1, 2]
    assert [r.correct_choice_id for r in result.per_question] == [30, 10, 22]
    assert [r.explanation for r in result.per_question] == ["Third", None, "Second"]


def test_evaluate_is_deterministic():
    quiz = make_quiz(make_question(1), make_question(2, points=2))
    answers = {1: 10, 2: 21}
    first = evaluate(quiz, answers)
    second = evaluate(quiz, answers)
    assert first == second
    assert first.model_dump() == second.model_dump()


def test_duplicate_answer_pairs_are_rejected():
    quiz = make_quiz(make_question(1), make_question(2))
    with pytest.raises(MalformedAnswerSet):
        evaluate(quiz, [(1, 10), (2, 20), (1, 11)])
    result = evaluate(quiz, [(1, 10), (2, 21)])
    assert result.total_points_earned == 1


def test_zero_question_quiz_is_invalid():
    with pytest.raises(InvalidQuizDefinition):
        evaluate(make_quiz(), {})


def test_question_needs_exactly_one_correct_choice():
    no_correct = QuestionDefinition(
        id=1,
        choices=(ChoiceDefinition(id=1), ChoiceDefinition(id=2)),
    )
    two_correct = QuestionDefinition(
        id=1,
        choices=(
            ChoiceDefinition(id=1, is_correct=True),
            ChoiceDefinition(id=2, is_correct=True),
        ),
    )
    for question in (no_correct, two_correct):
        with pytest.raises(InvalidQuizDefinition):
            evaluate(make_quiz(question), {})


def test_other_definition_checks():
    with pytest.raises(InvalidQuizDefinition):
        validate_quiz(make_quiz(make_question(1, n_choices=1)))
    with pytest.raises(InvalidQuizDefinition):
        validate_quiz(make_quiz(make_question(1, points=0)))
    with pytest.raises(InvalidQuizDefinition):
        validate_quiz(make_quiz(make_question(1), pass_percentage=101))
    validate_quiz(make_quiz(make_question(1, n_choices=2)))
