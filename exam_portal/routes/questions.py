# exam_portal/routes/questions.py
"""
Question bank routes
Question sets and their questions; authors edit their own sets,
participants only see sets of tests they have attempted
"""
import string
from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from flask_babel import _
from exam_portal import db
from exam_portal.errors import InvalidInput, Forbidden, NotFound, Conflict
from exam_portal.models.question_set import QuestionSet
from exam_portal.models.question import Question, QUESTION_TYPES, DIFFICULTIES, TYPE_MULTIPLE_CHOICE
from exam_portal.models.test import Test
from exam_portal.models.attempt import TestAttempt, Answer, STATUS_IN_PROGRESS
from exam_portal.utils.auth import authorize, permission_required
from exam_portal.utils.pagination import paginate, apply_sorting
from exam_portal.utils.validation import (get_json_body, require_string, optional_string,
                                          require_int, require_choice)

bp = Blueprint('questions', __name__)


# === Participant visibility ===

def _attempted_set_ids(user, in_progress_only=False):
    """Ids of question sets behind tests the participant has attempted"""
    query = db.session.query(Test.question_set_id) \
        .join(TestAttempt, TestAttempt.test_id == Test.id) \
        .filter(TestAttempt.user_id == user.id)
    if in_progress_only:
        query = query.filter(TestAttempt.status == STATUS_IN_PROGRESS)
    return {row[0] for row in query.distinct().all()}


def _visibility(user):
    """
    Returns:
        tuple: (visible set ids or None for everything, set ids whose answer keys are hidden)
    """
    if user.has_permission('manage_question_bank'):
        return None, set()
    return _attempted_set_ids(user), _attempted_set_ids(user, in_progress_only=True)


def _get_question_set(set_id):
    question_set = db.session.get(QuestionSet, set_id)
    if question_set is None:
        raise NotFound(_('Question set not found'))
    return question_set


def _get_question(question_id):
    question = db.session.get(Question, question_id)
    if question is None:
        raise NotFound(_('Question not found'))
    return question


def _ensure_visible(set_id, visible):
    if visible is not None and set_id not in visible:
        raise Forbidden(_('You do not have access to this question set'))


# === Question payload ===

def _parse_options(raw):
    """
    Accept {"a": "X"}, [{"id": "a", "text": "X"}] or ["X", "Y"] (ids assigned a, b, ...)

    Returns:
        dict: {option id: option text}
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        pairs = list(raw.items())
    elif isinstance(raw, list):
        pairs = []
        for index, item in enumerate(raw):
            if isinstance(item, dict):
                pairs.append((item.get('id'), item.get('text')))
            elif index < len(string.ascii_lowercase):
                pairs.append((string.ascii_lowercase[index], item))
            else:
                raise InvalidInput(_('Too many options'))
    else:
        raise InvalidInput(_('options must be an object or a list'))

    options = {}
    for key, text in pairs:
        if key is None or not isinstance(text, str) or not text.strip():
            raise InvalidInput(_('Every option needs an id and a non-empty text'))
        options[str(key)] = text.strip()
    return options


def _parse_question(data, question_set):
    """
    Validate a question payload

    Args:
        data (dict): Request body (camelCase keys)
        question_set (QuestionSet): Owning set, provides the default subject

    Returns:
        dict: Model fields
    """
    fields = {
        'text': require_string(data, 'text', 3),
        'type': require_choice(data, 'type', QUESTION_TYPES, default=TYPE_MULTIPLE_CHOICE),
        'difficulty': require_choice(data, 'difficulty', DIFFICULTIES, default='MEDIUM'),
        'explanation': optional_string(data, 'explanation'),
        'points': require_int(data, 'points', minimum=1) if data.get('points') is not None else 1,
    }
    fields['subject'] = optional_string(data, 'subject') or question_set.subject

    correct_answer = data.get('correctAnswer')
    if correct_answer is not None and not isinstance(correct_answer, str):
        correct_answer = str(correct_answer)

    if fields['type'] == TYPE_MULTIPLE_CHOICE:
        options = _parse_options(data.get('options'))
        if len(options) < 2:
            raise InvalidInput(_('Multiple choice questions need at least two options'))
        if correct_answer is not None and correct_answer not in options:
            raise InvalidInput(_('Correct answer must be one of the option ids'))
        fields['options'] = options
    else:
        fields['options'] = {}

    fields['correct_answer'] = correct_answer
    return fields


def _question_as_payload(question):
    return {
        'text': question.text,
        'type': question.type,
        'subject': question.subject,
        'difficulty': question.difficulty,
        'options': question.options,
        'correctAnswer': question.correct_answer,
        'explanation': question.explanation,
        'points': question.points,
    }


# === Question sets ===

@bp.route('/question-sets', methods=['GET'])
@login_required
def list_question_sets():
    """Question sets visible to the caller, filtered by subject and author"""
    visible = _visibility(current_user)[0]
    query = QuestionSet.query
    if visible is not None:
        query = query.filter(QuestionSet.id.in_(visible))

    subject = request.args.get('subject')
    if subject:
        query = query.filter(QuestionSet.subject == subject)
    created_by = request.args.get('createdById', type=int)
    if created_by and visible is None:
        query = query.filter(QuestionSet.created_by_id == created_by)

    sort_fields = {'title': QuestionSet.title, 'subject': QuestionSet.subject, 'date': QuestionSet.created_at}
    query = apply_sorting(query, sort_fields, QuestionSet.created_at)
    return jsonify(paginate(query, QuestionSet.to_dict))


@bp.route('/question-sets', methods=['POST'])
@login_required
def create_question_set():
    authorize(current_user, 'question_set.create')
    data = get_json_body()
    question_set = QuestionSet(
        title=require_string(data, 'title', 3),
        subject=require_string(data, 'subject', 2),
        description=optional_string(data, 'description'),
        created_by_id=current_user.id
    )
    db.session.add(question_set)
    db.session.commit()
    current_app.logger.info(f"Question set {question_set.id} created by user {current_user.id}")
    return jsonify(question_set.to_dict(include_questions=True)), 201


@bp.route('/question-sets/<int:set_id>', methods=['GET'])
@login_required
def get_question_set(set_id):
    question_set = _get_question_set(set_id)
    visible, hidden = _visibility(current_user)
    _ensure_visible(question_set.id, visible)
    return jsonify(question_set.to_dict(include_questions=True,
                                        include_answers=question_set.id not in hidden))


@bp.route('/question-sets/<int:set_id>', methods=['PUT'])
@login_required
@permission_required('question_set.modify')
def update_question_set(set_id):
    """Update title, subject and description; the owner never changes"""
    question_set = _get_question_set(set_id)
    authorize(current_user, 'question_set.modify', question_set)
    data = get_json_body()

    if 'title' in data:
        question_set.title = require_string(data, 'title', 3)
    if 'subject' in data:
        question_set.subject = require_string(data, 'subject', 2)
    if 'description' in data:
        question_set.description = optional_string(data, 'description')

    db.session.commit()
    return jsonify(question_set.to_dict(include_questions=True))


@bp.route('/question-sets/<int:set_id>', methods=['DELETE'])
@login_required
@permission_required('question_set.modify')
def delete_question_set(set_id):
    """Delete a set and its questions unless a test still uses it"""
    question_set = _get_question_set(set_id)
    authorize(current_user, 'question_set.modify', question_set)

    if Test.query.filter_by(question_set_id=question_set.id).first() is not None:
        raise Conflict(_('Question set is used by a test and cannot be deleted'))

    db.session.delete(question_set)
    db.session.commit()
    current_app.logger.info(f"Question set {set_id} deleted by user {current_user.id}")
    return jsonify({'message': _('Question set deleted')})


@bp.route('/question-sets/<int:set_id>/questions', methods=['POST'])
@login_required
@permission_required('question_set.modify')
def bulk_create_questions(set_id):
    """Add several questions at once; nothing is stored if one of them is invalid"""
    question_set = _get_question_set(set_id)
    authorize(current_user, 'question_set.modify', question_set)

    data = request.get_json(silent=True)
    items = data.get('questions') if isinstance(data, dict) else data
    if not isinstance(items, list) or not items:
        raise InvalidInput(_('questions must be a non-empty list'))

    parsed = []
    for item in items:
        if not isinstance(item, dict):
            raise InvalidInput(_('Every question must be an object'))
        parsed.append(_parse_question(item, question_set))

    created = []
    for fields in parsed:
        question = Question(question_set_id=question_set.id)
        for field, value in fields.items():
            setattr(question, field, value)
        db.session.add(question)
        created.append(question)
    db.session.commit()

    current_app.logger.info(f"{len(created)} questions added to set {set_id}")
    return jsonify({'data': [q.to_dict() for q in created]}), 201


# === Questions ===

@bp.route('/questions', methods=['GET'])
@login_required
def list_questions():
    """Questions filtered by subject, type, difficulty and set"""
    visible, hidden = _visibility(current_user)
    query = Question.query
    if visible is not None:
        query = query.filter(Question.question_set_id.in_(visible))

    for arg, column in (('subject', Question.subject), ('type', Question.type),
                        ('difficulty', Question.difficulty)):
        value = request.args.get(arg)
        if value:
            query = query.filter(column == value)
    set_id = request.args.get('questionSetId', type=int)
    if set_id:
        query = query.filter(Question.question_set_id == set_id)

    sort_fields = {'type': Question.type, 'difficulty': Question.difficulty, 'date': Question.created_at}
    query = apply_sorting(query, sort_fields, Question.created_at)
    return jsonify(paginate(
        query, lambda q: q.to_dict(include_answer=q.question_set_id not in hidden)))


@bp.route('/questions', methods=['POST'])
@login_required
@permission_required('question_set.modify')
def create_question():
    data = get_json_body()
    set_id = require_int(data, 'questionSetId')
    question_set = _get_question_set(set_id)
    authorize(current_user, 'question_set.modify', question_set)

    question = Question(question_set_id=question_set.id)
    for field, value in _parse_question(data, question_set).items():
        setattr(question, field, value)
    db.session.add(question)
    db.session.commit()
    current_app.logger.info(f"Question {question.id} created in set {set_id}")
    return jsonify(question.to_dict()), 201


@bp.route('/questions/<int:question_id>', methods=['GET'])
@login_required
def get_question(question_id):
    question = _get_question(question_id)
    visible, hidden = _visibility(current_user)
    _ensure_visible(question.question_set_id, visible)
    return jsonify(question.to_dict(include_answer=question.question_set_id not in hidden))


@bp.route('/questions/<int:question_id>', methods=['PUT'])
@login_required
@permission_required('question.modify')
def update_question(question_id):
    """Partial update; the merged question is validated as a whole"""
    question = _get_question(question_id)
    authorize(current_user, 'question.modify', question)
    data = get_json_body()

    if 'questionSetId' in data and data['questionSetId'] != question.question_set_id:
        raise InvalidInput(_('A question cannot be moved to another set'))

    merged = _question_as_payload(question)
    merged.update(data)
    for field, value in _parse_question(merged, question.question_set).items():
        setattr(question, field, value)

    db.session.commit()
    return jsonify(question.to_dict())


@bp.route('/questions/<int:question_id>', methods=['DELETE'])
@login_required
@permission_required('question.modify')
def delete_question(question_id):
    """Delete the question's answers, then the question"""
    question = _get_question(question_id)
    authorize(current_user, 'question.modify', question)

    Answer.query.filter_by(question_id=question.id).delete(synchronize_session=False)
    db.session.delete(question)
    db.session.commit()
    current_app.logger.info(f"Question {question_id} deleted by user {current_user.id}")
    return jsonify({'message': _('Question deleted')})
