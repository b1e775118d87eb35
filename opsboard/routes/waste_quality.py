from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from opsboard import db
from opsboard.models.oee import ProductionSample
from opsboard.models.quality import DefectEvent
from opsboard.services import metrics
from opsboard.services.queries import window
from opsboard.utils.dates import parse_date_range
from opsboard.utils import payload

waste_quality_bp = Blueprint('waste_quality', __name__)


def _defects(default_days):
    start, end = parse_date_range(request.args, default_days=default_days)
    query = window(DefectEvent, request.args.get('line'), start, end)
    return query, start, end


@waste_quality_bp.route('/scrap-overview')
@login_required
def scrap_overview():
    """Scrap totals, cost and scrap rate, trailing 30 days by default"""
    query, start, end = _defects(30)
    if request.args.get('station'):
        query = query.filter(DefectEvent.station == request.args['station'])
    if request.args.get('product'):
        query = query.filter(DefectEvent.product == request.args['product'])
    events = query.all()

    # Same line/station/product/date predicate on both sides of the ratio
    samples_query = window(ProductionSample, request.args.get('line'), start, end,
                           station=request.args.get('station'))
    if request.args.get('product'):
        samples_query = samples_query.filter(ProductionSample.product == request.args['product'])
    samples = samples_query.all()

    return jsonify({
        'success': True,
        'data': {
            'totalScrap': sum(e.quantity for e in events),
            'totalCost': sum(e.cost for e in events),
            'scrapPercentage': metrics.scrap_percentage(events, samples),
            'reworkCount': sum(1 for e in events if e.is_rework),
            'scrapCount': sum(1 for e in events if not e.is_rework),
            'breakdown': [e.to_dict() for e in events],
        }
    })


@waste_quality_bp.route('/defect-categories')
@login_required
def defect_categories():
    """Quantity and cost per defect category"""
    query, _, _ = _defects(30)

    categories = {}
    for event in query.all():
        entry = categories.setdefault(event.defect_category, {'count': 0, 'cost': 0})
        entry['count'] += event.quantity
        entry['cost'] += event.cost

    return jsonify({
        'success': True,
        'data': [{'category': category, **totals} for category, totals in categories.items()]
    })


@waste_quality_bp.route('/pareto')
@login_required
def pareto():
    """Defect types ranked by quantity with cumulative share"""
    query, _, _ = _defects(30)

    return jsonify({
        'success': True,
        'data': metrics.pareto(query.all())
    })


@waste_quality_bp.route('/rework-vs-scrap')
@login_required
def rework_vs_scrap():
    """Recoverable (rework) vs lost (scrap) quantity and cost"""
    query, _, _ = _defects(30)
    events = query.all()

    rework = [e for e in events if e.is_rework]
    scrap = [e for e in events if not e.is_rework]
    rework_quantity = sum(e.quantity for e in rework)
    scrap_quantity = sum(e.quantity for e in scrap)
    total_quantity = rework_quantity + scrap_quantity

    return jsonify({
        'success': True,
        'data': {
            'rework': {
                'quantity': rework_quantity,
                'cost': sum(e.cost for e in rework),
                'time': sum(e.rework_time or 0 for e in rework),
                'count': len(rework),
            },
            'scrap': {
                'quantity': scrap_quantity,
                'cost': sum(e.cost for e in scrap),
                'count': len(scrap),
            },
            'comparison': {
                'reworkPercentage': rework_quantity / total_quantity * 100 if total_quantity else 0,
                'scrapPercentage': scrap_quantity / total_quantity * 100 if total_quantity else 0,
            },
        }
    })


@waste_quality_bp.route('/quality-trend')
@login_required
def quality_trend():
    """Daily mean quality, trailing 90 days by default"""
    start, end = parse_date_range(request.args, default_days=90)
    samples = window(ProductionSample, request.args.get('line'), start, end) \
        .order_by(ProductionSample.date.asc()).all()

    daily = {}
    for sample in samples:
        daily.setdefault(sample.date.date().isoformat(), []).append(sample.quality)

    return jsonify({
        'success': True,
        'data': [{'date': day, 'quality': metrics.average(values)}
                 for day, values in daily.items()]
    })


@waste_quality_bp.route('/scrap', methods=['POST'])
@login_required
def create_defect():
    """Record a scrap or rework event"""
    data = payload.json_body()
    payload.require(data, 'line', 'shift', 'date', 'product', 'defectType',
                    'defectCategory', 'quantity', 'cost')

    event = DefectEvent(
        line=data['line'],
        station=data.get('station'),
        shift=data['shift'],
        date=payload.as_datetime(data, 'date'),
        operator=data.get('operator') or current_user.username,
        product=data['product'],
        defect_type=data['defectType'],
        defect_category=data['defectCategory'],
        quantity=payload.integer(data, 'quantity', minimum=1),
        cost=payload.number(data, 'cost', minimum=0),
        is_rework=payload.as_bool(data, 'isRework'),
        rework_time=payload.number(data, 'reworkTime', minimum=0),
        root_cause=data.get('rootCause'),
        corrective_action=data.get('correctiveAction'),
        notes=data.get('notes'),
        evidence=data.get('evidence'),
    )
    db.session.add(event)
    db.session.commit()

    return jsonify({'success': True, 'data': event.to_dict()}), 201
