from datetime import datetime
from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from opsboard import db
from opsboard.errors import InputError, NotFoundError
from opsboard.models.production import JobCard, JOB_STATUSES, ISSUE_TYPES
from opsboard.models.user import User
from opsboard.services.insights import get_insight_engine
from opsboard.utils import payload

job_cards_bp = Blueprint('job_cards', __name__)

ISSUE_INSIGHT_TYPES = ('alert', 'recommendation')

JOB_FIELDS = {
    'workstation': ('workstation', None),
    'line': ('line', None),
    'product': ('product', None),
    'startTime': ('start_time', payload.as_datetime),
    'endTime': ('end_time', payload.as_datetime),
    'issues': ('issues', None),
    'targetCycleTime': ('target_cycle_time', payload.as_number),
    'unitsCompleted': ('units_completed', payload.as_integer),
    'unitsScrapped': ('units_scrapped', payload.as_integer),
}


def _is_foreign(job_card):
    """Operators may only touch their own job cards"""
    return current_user.role == 'operator' and job_card.operator_id != current_user.id


def _get_or_404(job_id):
    job_card = db.session.get(JobCard, job_id)
    if job_card is None:
        raise NotFoundError('Job card not found')
    return job_card


def _completed_cycle_time(steps):
    if not isinstance(steps, list):
        raise InputError('steps must be a list')
    total = 0
    for step in steps:
        if not isinstance(step, dict):
            raise InputError('steps must be a list of objects')
        cycle_time = step.get('cycleTime')
        if step.get('status') == 'completed' and cycle_time:
            total += payload.number(step, 'cycleTime', minimum=0)
    return total


@job_cards_bp.route('/')
@login_required
def list_job_cards():
    """Job cards newest first; operators only see their own"""
    query = JobCard.query
    for key, column in (('status', JobCard.status),
                        ('workstation', JobCard.workstation),
                        ('line', JobCard.line)):
        if request.args.get(key):
            query = query.filter(column == request.args[key])
    if request.args.get('operator'):
        query = query.filter(JobCard.operator_id == request.args.get('operator', type=int))

    if current_user.role == 'operator':
        query = query.filter(JobCard.operator_id == current_user.id)

    job_cards = query.order_by(JobCard.start_time.desc()).all()
    return jsonify({'success': True, 'data': [j.to_dict() for j in job_cards]})


@job_cards_bp.route('/<int:job_id>')
@login_required
def get_job_card(job_id):
    """Job card with optimization suggestions for its workstation"""
    job_card = _get_or_404(job_id)
    if _is_foreign(job_card):
        return jsonify({'message': 'Access denied'}), 403

    suggestions = get_insight_engine().optimization(job_card.line, job_card.workstation)

    return jsonify({
        'success': True,
        'data': {
            'jobCard': job_card.to_dict(),
            'aiSuggestions': [s.to_dict() for s in suggestions],
        }
    })


@job_cards_bp.route('/', methods=['POST'])
@login_required
def create_job_card():
    """Start a job card; operator defaults to the current user"""
    data = payload.json_body()
    payload.require(data, 'jobNumber', 'workstation', 'line', 'product', 'targetCycleTime')

    if JobCard.query.filter_by(job_number=data['jobNumber']).first():
        raise InputError('Job number already exists')

    operator_id = payload.integer(data, 'operator', default=current_user.id)
    if db.session.get(User, operator_id) is None:
        raise InputError('Operator not found')

    steps = data.get('steps') or []
    job_card = JobCard(
        job_number=data['jobNumber'],
        operator_id=operator_id,
        status='in-progress',
        steps=steps,
        total_cycle_time=_completed_cycle_time(steps),
        units_completed=0,
        units_scrapped=0,
    )
    payload.assign(job_card, data, JOB_FIELDS)
    if job_card.start_time is None:
        job_card.start_time = datetime.utcnow()

    db.session.add(job_card)
    db.session.commit()

    return jsonify({'success': True, 'data': job_card.to_dict()}), 201


@job_cards_bp.route('/<int:job_id>', methods=['PUT'])
@login_required
def update_job_card(job_id):
    """Update a job card; completing it stamps the end time"""
    job_card = _get_or_404(job_id)
    if _is_foreign(job_card):
        return jsonify({'message': 'Access denied'}), 403

    data = payload.json_body()
    payload.assign(job_card, data, JOB_FIELDS)

    if 'status' in data:
        job_card.status = payload.choice(data, 'status', JOB_STATUSES)
        if job_card.status == 'completed' and job_card.end_time is None:
            job_card.end_time = datetime.utcnow()

    if 'steps' in data:
        steps = data['steps'] or []
        job_card.total_cycle_time = _completed_cycle_time(steps)
        job_card.steps = steps

    db.session.commit()
    return jsonify({'success': True, 'data': job_card.to_dict()})


@job_cards_bp.route('/<int:job_id>/log-issue', methods=['POST'])
@login_required
def log_issue(job_id):
    """Append an issue and return the line's alerts and recommendations"""
    job_card = _get_or_404(job_id)
    if _is_foreign(job_card):
        return jsonify({'message': 'Access denied'}), 403

    data = payload.json_body()
    payload.require(data, 'type', 'description')
    issue_type = payload.choice(data, 'type', ISSUE_TYPES)

    # Reassign so the JSON column is flagged dirty
    job_card.issues = list(job_card.issues or []) + [{
        'type': issue_type,
        'description': data['description'],
        'timestamp': datetime.utcnow().isoformat(),
        'resolved': False,
    }]
    db.session.commit()

    insights = get_insight_engine().generate(job_card.line)

    return jsonify({
        'success': True,
        'data': {
            'jobCard': job_card.to_dict(),
            'aiInsights': [i.to_dict() for i in insights if i.type in ISSUE_INSIGHT_TYPES],
        }
    })
