# exam_portal/utils/scoring.py
"""
Scoring of test attempts
Pure functions: no database access, no request context
"""
from decimal import Decimal, ROUND_HALF_UP

QUESTION_ESSAY = 'ESSAY'

STATUS_COMPLETED = 'COMPLETED'
STATUS_PASSED = 'PASSED'
STATUS_FAILED = 'FAILED'


def round_half_up(value, digits=0):
    """
    Round a number with halves going up (2.5 -> 3), unlike the built-in round()

    Args:
        value (int|float|Decimal): Value to round
        digits (int): Number of decimal places

    Returns:
        int|float: int when digits == 0, float otherwise
    """
    quantum = Decimal(1).scaleb(-digits)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if digits == 0 else float(rounded)


def is_answer_correct(question_type, correct_answer, answer):
    """
    Check a single answer against the key

    Args:
        question_type (str): 'MULTIPLE_CHOICE' or 'ESSAY'
        correct_answer (str|None): Stored answer key
        answer (str|None): Participant answer

    Returns:
        bool: True only for an exact match on a gradable question
    """
    if question_type == QUESTION_ESSAY or correct_answer is None or answer is None:
        return False
    return answer == correct_answer


def calculate_score(correct_count, total_questions):
    """
    Percentage of correctly answered questions, rounded half up

    Args:
        correct_count (int): Number of correct answers
        total_questions (int): Number of questions in the test

    Returns:
        int: Score in [0, 100]; 0 for a test without questions
    """
    if total_questions <= 0:
        return 0
    return int((Decimal(100 * correct_count) / Decimal(total_questions)).quantize(
        Decimal(1), rounding=ROUND_HALF_UP))


def determine_status(score, passing_score):
    """
    Terminal status of a submitted attempt

    Args:
        score (int): Attempt score
        passing_score (int|None): Threshold of the test

    Returns:
        str: 'PASSED', 'FAILED' or 'COMPLETED' when the test has no threshold
    """
    if passing_score is None:
        return STATUS_COMPLETED
    return STATUS_PASSED if score >= passing_score else STATUS_FAILED


def summarize_result(total_questions, answer_flags, start_time, end_time, now):
    """
    Aggregate figures shown on the result page

    Args:
        total_questions (int): Questions in the test's set
        answer_flags (list): is_correct value of every persisted answer
        start_time (datetime): Attempt start
        end_time (datetime|None): Attempt end, None while in progress
        now (datetime): Used in place of end_time for unfinished attempts

    Returns:
        dict: Counters, accuracy and timings (minutes)
    """
    answered = len(answer_flags)
    correct = sum(1 for flag in answer_flags if flag)
    finished_at = end_time or now
    time_spent = round_half_up(max((finished_at - start_time).total_seconds(), 0) / 60)

    return {
        'totalQuestions': total_questions,
        'answeredQuestions': answered,
        'correctAnswers': correct,
        'incorrectAnswers': answered - correct,
        'skippedQuestions': total_questions - answered,
        'accuracy': calculate_score(correct, total_questions),
        'timeSpent': time_spent,
        'timePerQuestion': round_half_up(time_spent / total_questions, 1) if total_questions else 0,
    }


def summarize_scores(attempts):
    """
    Participant metrics over terminal attempts

    Args:
        attempts (list): Objects with 'score' and 'status' attributes

    Returns:
        dict: totalAttempts, averageScore, highestScore, passRate
    """
    scores = [a.score for a in attempts if a.score is not None]
    passed = sum(1 for a in attempts if a.status == STATUS_PASSED)
    return {
        'totalAttempts': len(attempts),
        'averageScore': round_half_up(sum(scores) / len(scores)) if scores else 0,
        'highestScore': max(scores) if scores else 0,
        'passRate': calculate_score(passed, len(attempts)),
    }
