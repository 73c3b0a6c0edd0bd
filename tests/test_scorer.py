# tests/test_scorer.py
from quizapp.models import (
    Answer, ChoiceResponse, MatchingPair, MatchingResponse, Option, Question, TextResponse,
)
from quizapp.scorer import score_answers


def build_questions():
    single = Question(id=1, quiz_id=1, content="s", type="SINGLE", options=[
        Option(id=11, question_id=1, text="A", is_correct=True),
        Option(id=12, question_id=1, text="B"),
    ])
    text = Question(id=2, quiz_id=1, content="t", type="TEXT")
    matching = Question(id=3, quiz_id=1, content="m", type="MATCHING", pairs=[
        MatchingPair(id=31, question_id=3, left="x", right="1"),
    ])
    return [single, text, matching]


def answer(question_id, response):
    return Answer(id=None, attempt_id=1, question_id=question_id, response=response)


def test_unanswered_questions_count_as_incorrect():
    report = score_answers(build_questions(), [])
    assert report.score == 0
    assert report.total_questions == 3
    assert report.answered == 0


def test_free_text_is_present_but_unscored():
    answers = [
        answer(1, ChoiceResponse.of(11)),
        answer(2, TextResponse("anything")),
        answer(3, MatchingResponse({"x": "1"})),
    ]
    report = score_answers(build_questions(), answers)
    assert report.score == 2
    assert report.total_questions == 3
    assert report.auto_graded == 2
    assert report.ungraded_question_ids == [2]
    assert report.answered == 3
    assert report.percentage == 100.0


def test_answers_outside_quiz_are_ignored():
    answers = [answer(99, ChoiceResponse.of(11)), answer(1, ChoiceResponse.of(11))]
    report = score_answers(build_questions(), answers)
    assert report.score == 1
    assert report.answered == 1


def test_matched_fraction_lookup():
    report = score_answers(build_questions(), [answer(3, MatchingResponse({"x": "2"}))])
    assert report.matched_fraction(3) == 0.0
    assert report.matched_fraction(2) is None
    assert report.matched_fraction(404) is None


def test_empty_quiz():
    report = score_answers([], [])
    assert report.score == 0
    assert report.total_questions == 0
    assert report.percentage == 0.0
