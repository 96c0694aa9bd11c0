# exam_portal/utils/attempts.py
"""
Attempt lifecycle: admission or resume, draft answers, submission and grading
"""
import random
from flask import current_app
from flask_babel import _
from sqlalchemy.exc import IntegrityError

from exam_portal import db
from exam_portal.errors import NotFound, Forbidden, InvalidInput, Conflict
from exam_portal.models.test import Test
from exam_portal.models.attempt import TestAttempt, Answer, STATUS_IN_PROGRESS
from exam_portal.utils.auth import authorize
from exam_portal.utils.dates import utcnow
from exam_portal.utils.scoring import is_answer_correct, calculate_score, determine_status


def find_in_progress(user_id, test_id):
    return TestAttempt.query.filter_by(user_id=user_id, test_id=test_id,
                                       status=STATUS_IN_PROGRESS).first()


def admit_participant(user, test_id, now=None):
    """
    Start a new attempt or resume the unfinished one

    Args:
        user (User): Participant
        test_id (int): Test to take
        now (datetime): Reference moment, defaults to the current UTC time

    Returns:
        tuple: (TestAttempt, created flag)

    Raises:
        NotFound: The test does not exist
        Forbidden: The test is inactive or outside its window
    """
    authorize(user, 'attempt.take')
    test = db.session.get(Test, test_id)
    if test is None:
        raise NotFound(_('Test not found'))

    now = now or utcnow()
    if not test.accepts_attempts(now):
        current_app.logger.warning(f"Admission refused: user {user.id}, test {test.id} not within window")
        raise Forbidden(_('Test is not available at this time'))

    attempt = find_in_progress(user.id, test.id)
    if attempt is not None:
        current_app.logger.info(f"Attempt {attempt.id} resumed by user {user.id}")
        return attempt, False

    order = [q.id for q in test.question_set.questions]
    if test.randomize_questions:
        random.shuffle(order)

    attempt = TestAttempt(user_id=user.id, test_id=test.id, status=STATUS_IN_PROGRESS, start_time=now)
    attempt.question_ids = order
    db.session.add(attempt)
    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent admission won the partial unique index
        db.session.rollback()
        attempt = find_in_progress(user.id, test.id)
        if attempt is None:
            raise
        current_app.logger.warning(f"Concurrent admission for user {user.id}, test {test.id}: reusing attempt {attempt.id}")
        return attempt, False

    current_app.logger.info(f"Attempt {attempt.id} created for user {user.id}, test {test.id}")
    return attempt, True


def ordered_questions(attempt):
    """
    Questions of the attempt in the order fixed at admission

    Questions added to the set later are appended in creation order, deleted ones are skipped.

    Args:
        attempt (TestAttempt): Attempt

    Returns:
        list: Question objects
    """
    questions = attempt.test.question_set.questions
    by_id = {q.id: q for q in questions}
    stored = attempt.question_ids
    ordered = [by_id[qid] for qid in stored if qid in by_id]
    known = set(stored)
    ordered.extend(q for q in questions if q.id not in known)
    return ordered


def _normalize_answers(answers):
    """Turn {"12": "a"} into {12: "a"}, dropping empty entries"""
    if answers is None:
        return {}
    if not isinstance(answers, dict):
        raise InvalidInput(_('Answers must be an object keyed by question id'))

    normalized = {}
    for key, value in answers.items():
        try:
            question_id = int(key)
        except (TypeError, ValueError):
            raise InvalidInput(_('Invalid question id: %(id)s', id=key))
        if value is None:
            continue
        normalized[question_id] = value if isinstance(value, str) else str(value)
    return normalized


def _upsert_answers(attempt, answers):
    valid_ids = {q.id for q in attempt.test.question_set.questions}
    existing = attempt.answer_map()
    stored = 0
    for question_id, value in answers.items():
        if question_id not in valid_ids:
            current_app.logger.warning(f"Attempt {attempt.id}: ignoring answer to foreign question {question_id}")
            continue
        answer = existing.get(question_id)
        if answer is None:
            attempt.answers.append(Answer(question_id=question_id, answer=value))
        else:
            answer.answer = value
            answer.is_correct = None
        stored += 1
    return stored


def _require_in_progress(attempt):
    if attempt.status != STATUS_IN_PROGRESS:
        raise Conflict(_('Attempt is already submitted'))


def save_answers(user, attempt, answers):
    """
    Save draft answers of an unfinished attempt

    Args:
        user (User): Principal
        attempt (TestAttempt): Attempt owned by the principal
        answers (dict): {question id: answer}

    Returns:
        int: Number of answers stored
    """
    authorize(user, 'attempt.answer', attempt)
    _require_in_progress(attempt)
    stored = _upsert_answers(attempt, _normalize_answers(answers))
    db.session.commit()
    return stored


def submit_attempt(user, attempt, answers, now=None):
    """
    Grade and close an attempt

    Args:
        user (User): Principal, must own the attempt
        attempt (TestAttempt): Attempt in progress
        answers (dict): Final answers {question id: answer}; merged over saved drafts
        now (datetime): Reference moment

    Returns:
        TestAttempt: Attempt in its terminal state

    Raises:
        Forbidden: Not the owner
        Conflict: The attempt is already terminal
    """
    authorize(user, 'attempt.answer', attempt)
    _require_in_progress(attempt)

    _upsert_answers(attempt, _normalize_answers(answers))

    questions = attempt.test.question_set.questions
    by_id = {q.id: q for q in questions}
    correct_count = 0
    for answer in attempt.answers:
        question = by_id.get(answer.question_id)
        answer.is_correct = question is not None and is_answer_correct(
            question.type, question.correct_answer, answer.answer)
        if answer.is_correct:
            correct_count += 1

    attempt.score = calculate_score(correct_count, len(questions))
    attempt.status = determine_status(attempt.score, attempt.test.passing_score)
    attempt.end_time = now or utcnow()
    db.session.commit()

    current_app.logger.info(
        f"Attempt {attempt.id} submitted: score {attempt.score}, status {attempt.status}")
    return attempt
