from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required
from opsboard.errors import InputError
from opsboard.services.insights import PREDICTION_METRICS, get_insight_engine
from opsboard.services.simulation import run_simulation
from opsboard.utils.auth import role_required, SUPERVISOR_ROLES
from opsboard.utils.dates import parse_date_range
from opsboard.utils.payload import json_body, number

ai_bp = Blueprint('ai', __name__)


@ai_bp.route('/insights')
@login_required
def insights():
    """Threshold-based insights, trailing 7 days by default"""
    line = request.args.get('line') or None
    start, end = parse_date_range(request.args, default_days=7)

    results = get_insight_engine().generate(line, start, end)

    return jsonify({
        'success': True,
        'data': [insight.to_dict() for insight in results]
    })


@ai_bp.route('/optimization')
@login_required
def optimization():
    """Cycle-time optimization suggestions for a line/station"""
    line = request.args.get('line')
    station = request.args.get('station') or None

    if not line:
        return jsonify({'message': 'Line parameter is required'}), 400

    suggestions = get_insight_engine().optimization(line, station)

    return jsonify({
        'success': True,
        'data': [s.to_dict() for s in suggestions]
    })


@ai_bp.route('/simulate', methods=['POST'])
@role_required(*SUPERVISOR_ROLES)
def simulate():
    """What-if simulation from the latest sample of a line"""
    data = json_body()
    line = data.get('line')

    if not line:
        return jsonify({'message': 'Line parameter is required'}), 400

    shift_length = number(data, 'shiftLength')
    if shift_length is not None and shift_length <= 0:
        raise InputError('shiftLength must be greater than 0')

    result = run_simulation(
        line,
        shift_length=shift_length,
        cycle_time_adjustment=number(data, 'cycleTimeAdjustment'),
        operators=number(data, 'operators'),
        unit_cost=current_app.config['SCRAP_UNIT_COST'],
    )

    return jsonify({
        'success': True,
        'data': result.to_dict()
    })


@ai_bp.route('/predictions')
@login_required
def predictions():
    """Flat-trend projection of a KPI"""
    metric = request.args.get('metric')
    line = request.args.get('line') or None

    if metric not in PREDICTION_METRICS:
        return jsonify({
            'message': f'Metric must be one of: {", ".join(PREDICTION_METRICS)}'
        }), 400

    days = request.args.get('days', 30, type=int)

    results = get_insight_engine().predictions(metric, line, days)

    return jsonify({
        'success': True,
        'data': [p.to_dict() for p in results]
    })
