from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from opsboard import db
from opsboard.errors import InputError, NotFoundError
from opsboard.models.improvement import (
    CIProject, TrainingRecord, PROJECT_STATUSES, PROJECT_CATEGORIES,
    PRIORITIES, TRAINING_LEVELS, TRAINING_STATUSES
)
from opsboard.models.user import User
from opsboard.services import metrics
from opsboard.utils.auth import role_required, MANAGER_ROLES
from opsboard.utils.dates import iso, parse_date_range
from opsboard.utils import payload

improvement_bp = Blueprint('improvement', __name__)

MATRIX_ROLES = ('operator', 'supervisor')
ADOPTION_STATUSES = ('in-progress', 'review', 'completed')

PROJECT_FIELDS = {
    'title': ('title', None),
    'description': ('description', None),
    'targetSavings': ('target_savings', payload.as_number),
    'actualSavings': ('actual_savings', payload.as_number),
    'targetOEEImprovement': ('target_oee_improvement', payload.as_number),
    'targetScrapReduction': ('target_scrap_reduction', payload.as_number),
    'startDate': ('start_date', payload.as_datetime),
    'dueDate': ('due_date', payload.as_datetime),
    'completedDate': ('completed_date', payload.as_datetime),
    'milestones': ('milestones', None),
    'employeeEngagement': ('employee_engagement', payload.as_number),
    'changeAdoptionRate': ('change_adoption_rate', payload.as_number),
    'notes': ('notes', None),
    'attachments': ('attachments', None),
}


def _members(projects):
    ids = {uid for p in projects for uid in (p.team_member_ids or [])}
    if not ids:
        return {}
    return {u.id: u for u in User.query.filter(User.id.in_(ids)).all()}


def _user_ids(data, key):
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise InputError(f'{key} must be a list of user ids')
    ids = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, int):
            raise InputError(f'{key} must be a list of user ids')
        ids.append(item)
    return ids


def _apply_project(project, data):
    payload.assign(project, data, PROJECT_FIELDS)
    if 'status' in data:
        project.status = payload.choice(data, 'status', PROJECT_STATUSES)
    if 'priority' in data:
        project.priority = payload.choice(data, 'priority', PRIORITIES)
    if 'category' in data:
        project.category = payload.choice(data, 'category', PROJECT_CATEGORIES)
    if 'teamMembers' in data:
        project.team_member_ids = _user_ids(data, 'teamMembers')
    if 'owner' in data:
        owner_id = payload.integer(data, 'owner')
        if owner_id is None or db.session.get(User, owner_id) is None:
            raise InputError('Owner not found')
        project.owner_id = owner_id
    progress = project.progress or 0
    if progress < 0 or progress > 100:
        raise InputError('progress must be between 0 and 100')


@improvement_bp.route('/projects')
@login_required
def list_projects():
    """CI projects, newest first, with kanban grouping by status"""
    query = CIProject.query
    for key, column in (('status', CIProject.status),
                        ('priority', CIProject.priority),
                        ('category', CIProject.category)):
        if request.args.get(key):
            query = query.filter(column == request.args[key])
    if request.args.get('owner'):
        query = query.filter(CIProject.owner_id == request.args.get('owner', type=int))
    projects = query.order_by(CIProject.created_at.desc()).all()

    members = _members(projects)
    serialized = [p.to_dict(members) for p in projects]

    return jsonify({
        'success': True,
        'data': {
            'projects': serialized,
            'kanban': {status: [p for p in serialized if p['status'] == status]
                       for status in PROJECT_STATUSES},
        }
    })


@improvement_bp.route('/projects/<int:project_id>')
@login_required
def get_project(project_id):
    project = db.session.get(CIProject, project_id)
    if project is None:
        raise NotFoundError('Project not found')
    return jsonify({'success': True, 'data': project.to_dict(_members([project]))})


@improvement_bp.route('/projects', methods=['POST'])
@login_required
def create_project():
    """Create a CI project; owner defaults to the current user"""
    data = payload.json_body()
    payload.require(data, 'title', 'description', 'category')

    project = CIProject(owner_id=current_user.id, status='backlog', priority='medium', progress=0)
    if 'progress' in data:
        project.progress = payload.number(data, 'progress', default=0)
    _apply_project(project, data)

    db.session.add(project)
    db.session.commit()
    return jsonify({'success': True, 'data': project.to_dict(_members([project]))}), 201


@improvement_bp.route('/projects/<int:project_id>', methods=['PUT'])
@login_required
def update_project(project_id):
    project = db.session.get(CIProject, project_id)
    if project is None:
        raise NotFoundError('Project not found')

    data = payload.json_body()
    if 'progress' in data:
        project.progress = payload.number(data, 'progress', default=0)
    _apply_project(project, data)

    db.session.commit()
    return jsonify({'success': True, 'data': project.to_dict(_members([project]))})


@improvement_bp.route('/engagement')
@role_required(*MANAGER_ROLES)
def engagement():
    """Engagement and change adoption of projects created in the window (90 days)"""
    start, end = parse_date_range(request.args, default_days=90)
    projects = CIProject.query.filter(
        CIProject.created_at >= start,
        CIProject.created_at <= end
    ).order_by(CIProject.created_at.asc()).all()

    trends = [{
        'date': iso(p.created_at),
        'engagement': p.employee_engagement or 0,
        'changeAdoption': p.change_adoption_rate or 0,
        'projectId': p.id,
        'projectTitle': p.title,
    } for p in projects]

    return jsonify({
        'success': True,
        'data': {
            'averageEngagement': metrics.average(t['engagement'] for t in trends),
            'trends': trends,
        }
    })


@improvement_bp.route('/training')
@login_required
def training():
    """Training records and the operator/supervisor skill matrix"""
    query = TrainingRecord.query
    if request.args.get('employee'):
        query = query.filter(TrainingRecord.employee_id == request.args.get('employee', type=int))
    if request.args.get('skill'):
        query = query.filter(TrainingRecord.skill == request.args['skill'])
    if request.args.get('status'):
        query = query.filter(TrainingRecord.status == request.args['status'])
    records = query.all()

    skills = []
    for record in records:
        if record.skill not in skills:
            skills.append(record.skill)

    levels = {(r.employee_id, r.skill): r.level for r in records}
    employees = User.query.filter(User.role.in_(MATRIX_ROLES)).order_by(User.id).all()
    matrix = [{
        'employee': {
            'id': emp.id,
            'name': emp.full_name,
            'email': emp.email,
            'role': emp.role,
        },
        'skills': {skill: levels.get((emp.id, skill), 'not-trained') for skill in skills},
    } for emp in employees]

    return jsonify({
        'success': True,
        'data': {
            'trainings': [r.to_dict() for r in records],
            'skillMatrix': matrix,
        }
    })


@improvement_bp.route('/training', methods=['POST'])
@login_required
def create_training():
    data = payload.json_body()
    payload.require(data, 'employee', 'skill', 'level')

    employee_id = payload.integer(data, 'employee')
    if db.session.get(User, employee_id) is None:
        raise NotFoundError('Employee not found')

    record = TrainingRecord(
        employee_id=employee_id,
        skill=data['skill'],
        level=payload.choice(data, 'level', TRAINING_LEVELS),
        status=payload.choice(data, 'status', TRAINING_STATUSES, default='not-started'),
        completion_date=payload.as_datetime(data, 'completionDate'),
        expiry_date=payload.as_datetime(data, 'expiryDate'),
        certification=data.get('certification'),
        notes=data.get('notes'),
    )
    db.session.add(record)
    db.session.commit()

    return jsonify({'success': True, 'data': record.to_dict()}), 201


@improvement_bp.route('/change-adoption')
@role_required(*MANAGER_ROLES)
def change_adoption():
    """Adoption rate of projects that have left the backlog"""
    projects = CIProject.query.filter(CIProject.status.in_(ADOPTION_STATUSES)) \
        .order_by(CIProject.created_at.desc()).all()

    rows = [{
        'projectId': p.id,
        'projectTitle': p.title,
        'changeAdoptionRate': p.change_adoption_rate or 0,
        'employeeEngagement': p.employee_engagement or 0,
        'status': p.status,
        'createdAt': iso(p.created_at),
    } for p in projects]

    return jsonify({
        'success': True,
        'data': {
            'averageAdoption': metrics.average(r['changeAdoptionRate'] for r in rows),
            'metrics': rows,
        }
    })
