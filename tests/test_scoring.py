# Scoring engine and submission API tests.
import pytest

from lms_quiz.catalog import normalize_questions
from lms_quiz.errors import InvalidQuestionError, ValidationError
from lms_quiz.models import Course, Quiz, Submission
from lms_quiz.schemas import AnswerCreate
from lms_quiz.scoring import clamp_time_taken, evaluate_answers, score_submission


@pytest.fixture()
def stored_quiz(db_session, sample_questions):
    course = Course(title="Letters", created_by="instructor-1")
    db_session.add(course)
    db_session.commit()
    quiz = Quiz(
        course_id=course.id,
        title="Letters quiz",
        description="Pick the letter",
        questions=normalize_questions(sample_questions),
        created_by="instructor-1",
    )
    db_session.add(quiz)
    db_session.commit()
    db_session.refresh(quiz)
    return quiz


def _answers(quiz, selections, times=(10, 5)):
    return [
        AnswerCreate(question_id=q["id"], selected_option=s, time_taken=t)
        for q, s, t in zip(quiz.questions, selections, times)
    ]


def test_all_correct_answers(db_session, stored_quiz):
    submission = score_submission(db_session, stored_quiz, "learner-1", _answers(stored_quiz, [1, 3]))

    assert submission.score == 2
    assert submission.correct_answers == 2
    assert submission.total_questions == 2
    assert submission.course_id == stored_quiz.course_id
    assert [a["time_taken"] for a in submission.answers] == [10, 5]


def test_one_wrong_answer(db_session, stored_quiz):
    submission = score_submission(db_session, stored_quiz, "learner-1", _answers(stored_quiz, [0, 3]))

    assert submission.score == 1
    assert [a["is_correct"] for a in submission.answers] == [False, True]

# Out-of-range or missing selections are just wrong; the rest still scores.
@pytest.mark.parametrize("bad_selection", [7, -1, None])
def test_out_of_range_selection_is_incorrect(db_session, stored_quiz, bad_selection):
    submission = score_submission(
        db_session, stored_quiz, "learner-1", _answers(stored_quiz, [bad_selection, 3])
    )

    assert submission.score == 1
    assert submission.answers[0]["is_correct"] is False
    assert submission.answers[0]["selected_option"] == bad_selection


def test_unknown_question_persists_nothing(db_session, stored_quiz):
    answers = _answers(stored_quiz, [1, 3]) + [AnswerCreate(question_id="nope", selected_option=0)]

    with pytest.raises(InvalidQuestionError):
        score_submission(db_session, stored_quiz, "learner-1", answers)

    assert db_session.query(Submission).count() == 0


def test_duplicate_answers_are_rejected(stored_quiz):
    question_id = stored_quiz.questions[0]["id"]
    answers = [
        AnswerCreate(question_id=question_id, selected_option=1),
        AnswerCreate(question_id=question_id, selected_option=1),
    ]

    with pytest.raises(ValidationError):
        evaluate_answers(stored_quiz, answers)


def test_empty_answers_are_rejected(stored_quiz):
    with pytest.raises(ValidationError):
        evaluate_answers(stored_quiz, [])

# Total reflects the answers given, not the quiz length.
def test_partial_answer_set_totals(db_session, stored_quiz):
    answers = _answers(stored_quiz, [1])

    submission = score_submission(db_session, stored_quiz, "learner-1", answers)

    assert submission.total_questions == 1
    assert submission.score == 1


def test_clamp_time_taken():
    assert clamp_time_taken(-4, 100) == 0
    assert clamp_time_taken(12.6, 100) == 13
    assert clamp_time_taken(500, 100) == 100
    assert clamp_time_taken(float("nan"), 100) == 0

# A failing notifier is logged and never fails the submission.
def test_notifier_failure_is_swallowed(db_session, stored_quiz, caplog):
    def broken(user_id):
        raise RuntimeError("streak store down")

    submission = score_submission(
        db_session, stored_quiz, "learner-1", _answers(stored_quiz, [1, 3]), notify=broken
    )

    assert submission.id
    assert db_session.query(Submission).count() == 1
    assert "Activity notification failed" in caplog.text


def test_notifier_receives_user(db_session, stored_quiz):
    seen = []

    score_submission(
        db_session, stored_quiz, "learner-1", _answers(stored_quiz, [1, 3]), notify=seen.append
    )

    assert seen == ["learner-1"]


def test_submit_quiz_api(client, learner_headers, create_quiz, sample_questions):
    quiz = create_quiz(sample_questions)
    answers = [
        {"question_id": quiz["questions"][0]["id"], "selected_option": 1, "time_taken": 10},
        {"question_id": quiz["questions"][1]["id"], "selected_option": 3, "time_taken": 5},
    ]

    response = client.post(
        f"/quizzes/{quiz['id']}/submissions", json={"answers": answers}, headers=learner_headers
    )

    assert response.status_code == 201
    payload = response.json()
    assert payload["score"] == 2
    assert payload["correct_answers"] == 2
    assert payload["total_questions"] == 2
    assert payload["user_id"] == "learner-1"
    assert payload["quiz_title"] == "Sample Quiz"

    streak = client.get("/streaks", headers=learner_headers).json()
    assert streak["current_streak"] == 1
    assert len(streak["streak_days"]) == 1


def test_submit_quiz_api_invalid_question(client, learner_headers, create_quiz, sample_questions):
    quiz = create_quiz(sample_questions)

    response = client.post(
        f"/quizzes/{quiz['id']}/submissions",
        json={"answers": [{"question_id": "stale", "selected_option": 0, "time_taken": 1}]},
        headers=learner_headers,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "invalid question id: stale"
    listing = client.get("/submissions/user", headers=learner_headers).json()
    assert listing["total"] == 0


def test_submit_unknown_quiz(client, learner_headers):
    response = client.post(
        "/quizzes/missing/submissions",
        json={"answers": [{"question_id": "q", "selected_option": 0}]},
        headers=learner_headers,
    )

    assert response.status_code == 404

# A broken streak store does not turn a scored submission into an error.
def test_submit_survives_streak_failure(client, learner_headers, create_quiz, sample_questions, monkeypatch):
    def broken(db, user_id, today=None):
        raise RuntimeError("streak store down")

    monkeypatch.setattr("lms_quiz.streaks.record_activity", broken)
    quiz = create_quiz(sample_questions)
    answers = [{"question_id": q["id"], "selected_option": 0} for q in quiz["questions"]]

    response = client.post(
        f"/quizzes/{quiz['id']}/submissions", json={"answers": answers}, headers=learner_headers
    )

    assert response.status_code == 201
    assert response.json()["score"] == 0

# Editing the quiz later leaves stored submissions untouched.
def test_submission_snapshot_survives_quiz_edit(
    client, author_headers, learner_headers, create_quiz, sample_questions, build_questions
):
    quiz = create_quiz(sample_questions)
    answers = [{"question_id": q["id"], "selected_option": 1} for q in quiz["questions"]]
    created = client.post(
        f"/quizzes/{quiz['id']}/submissions", json={"answers": answers}, headers=learner_headers
    ).json()

    client.put(f"/quizzes/{quiz['id']}", json={"questions": build_questions(5)}, headers=author_headers)
    client.delete(f"/quizzes/{quiz['id']}", headers=author_headers)

    first = client.get(f"/submissions/{created['id']}", headers=learner_headers).json()
    second = client.get(f"/submissions/{created['id']}", headers=learner_headers).json()
    assert first == second == created
    assert first["total_questions"] == 2

# Malformed selections score as wrong without rejecting the rest of the submission.
@pytest.mark.parametrize("bad_selection", ["B", 1.5, [1]])
def test_submit_api_tolerates_malformed_selection(
    client, learner_headers, create_quiz, sample_questions, bad_selection
):
    quiz = create_quiz(sample_questions)
    answers = [
        {"question_id": quiz["questions"][0]["id"], "selected_option": bad_selection, "time_taken": 2},
        {"question_id": quiz["questions"][1]["id"], "selected_option": 3, "time_taken": 2},
    ]

    response = client.post(
        f"/quizzes/{quiz['id']}/submissions", json={"answers": answers}, headers=learner_headers
    )

    assert response.status_code == 201
    payload = response.json()
    assert payload["score"] == 1
    assert payload["answers"][0]["is_correct"] is False
    assert payload["answers"][0]["selected_option"] == bad_selection
