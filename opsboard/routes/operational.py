from flask import Blueprint, jsonify, request
from flask_login import login_required
from opsboard import db
from opsboard.errors import InputError
from opsboard.models.oee import ProductionSample
from opsboard.models.production import JobCard
from opsboard.services import metrics
from opsboard.services.queries import window
from opsboard.utils.dates import iso, parse_date_range
from opsboard.utils import payload

operational_bp = Blueprint('operational', __name__)


@operational_bp.route('/oee')
@login_required
def oee_dashboard():
    """OEE averages and per-sample breakdown, trailing 7 days by default"""
    start, end = parse_date_range(request.args, default_days=7)

    query = window(ProductionSample, request.args.get('line'), start, end,
                   station=request.args.get('station'))
    for key, column in (('shift', ProductionSample.shift),
                        ('operator', ProductionSample.operator),
                        ('product', ProductionSample.product)):
        if request.args.get(key):
            query = query.filter(column == request.args[key])

    samples = query.order_by(ProductionSample.date.desc()).all()

    cycle_time_variations = [
        dict(variation, line=s.line, station=s.station)
        for s in samples
        for variation in (s.cycle_time_variations or [])
    ]

    return jsonify({
        'success': True,
        'data': {
            'oee': {
                'overall': metrics.average(s.oee for s in samples),
                'availability': metrics.average(s.availability for s in samples),
                'performance': metrics.average(s.performance for s in samples),
                'quality': metrics.average(s.quality for s in samples),
            },
            'breakdown': [s.to_dict() for s in samples],
            'cycleTimeVariations': cycle_time_variations,
        }
    })


@operational_bp.route('/throughput')
@login_required
def throughput():
    """Good units by shift and by sample, trailing 30 days by default"""
    start, end = parse_date_range(request.args, default_days=30)

    query = window(ProductionSample, request.args.get('line'), start, end)
    if request.args.get('shift'):
        query = query.filter(ProductionSample.shift == request.args['shift'])
    samples = query.order_by(ProductionSample.date.asc()).all()

    by_shift = {}
    for sample in samples:
        by_shift[sample.shift] = by_shift.get(sample.shift, 0) + sample.good_units

    return jsonify({
        'success': True,
        'data': {
            'totalThroughput': metrics.throughput(samples),
            'byShift': by_shift,
            'daily': [{
                'date': iso(s.date),
                'throughput': s.good_units,
                'line': s.line
            } for s in samples],
        }
    })


@operational_bp.route('/lead-time')
@login_required
def lead_time():
    """Lead time of completed jobs, trailing 30 days by default"""
    start, end = parse_date_range(request.args, default_days=30)

    query = JobCard.query.filter(
        JobCard.status == 'completed',
        JobCard.start_time >= start,
        JobCard.start_time <= end
    )
    if request.args.get('line'):
        query = query.filter(JobCard.line == request.args['line'])
    jobs = query.order_by(JobCard.start_time.desc()).all()

    lead_times = [{
        'jobNumber': job.job_number,
        'leadTime': (job.end_time - job.start_time).total_seconds() / 60,
        'line': job.line,
        'product': job.product,
        'date': iso(job.start_time),
    } for job in jobs if job.start_time and job.end_time]
    values = [lt['leadTime'] for lt in lead_times]

    return jsonify({
        'success': True,
        'data': {
            'averageLeadTime': metrics.lead_time_minutes(jobs),
            'leadTimes': lead_times,
            'min': min(values) if values else 0,
            'max': max(values) if values else 0,
        }
    })


@operational_bp.route('/cycle-time-variation')
@login_required
def cycle_time_variation():
    """Actual vs ideal cycle time grouped by station (or line)"""
    start, end = parse_date_range(request.args, default_days=7)

    samples = window(ProductionSample, request.args.get('line'), start, end,
                     station=request.args.get('station')).all()

    variation_map = {}
    for sample in samples:
        ideal = sample.ideal_cycle_time
        variation = sample.actual_cycle_time - ideal
        variation_map.setdefault(sample.location, []).append({
            'date': iso(sample.date),
            'idealCycleTime': ideal,
            'actualCycleTime': sample.actual_cycle_time,
            'variation': variation,
            'variationPercent': variation / ideal * 100 if ideal else None,
        })

    return jsonify({
        'success': True,
        'data': {'variationMap': variation_map}
    })


@operational_bp.route('/oee', methods=['POST'])
@login_required
def create_sample():
    """Record a production sample; missing OEE components are calculated"""
    data = payload.json_body()
    payload.require(data, 'line', 'shift', 'date', 'plannedProductionTime',
                    'idealCycleTime', 'actualCycleTime', 'totalUnits', 'goodUnits')

    sample = build_sample(data)
    db.session.add(sample)
    db.session.commit()

    return jsonify({'success': True, 'data': sample.to_dict()}), 201


def build_sample(data):
    """ProductionSample from a JSON body, filling availability/performance/quality/oee"""
    planned = payload.number(data, 'plannedProductionTime', minimum=0)
    downtime = payload.number(data, 'downtime', default=0, minimum=0)
    ideal = payload.number(data, 'idealCycleTime', minimum=0)
    actual = payload.number(data, 'actualCycleTime', minimum=0)
    total_units = payload.integer(data, 'totalUnits', minimum=0)
    good_units = payload.integer(data, 'goodUnits', minimum=0)
    if good_units > total_units:
        raise InputError('goodUnits cannot exceed totalUnits')
    defective_units = payload.integer(data, 'defectiveUnits', default=total_units - good_units, minimum=0)

    availability = payload.number(data, 'availability')
    if availability is None:
        availability = metrics.availability(planned, downtime)
    performance = payload.number(data, 'performance')
    if performance is None:
        performance = metrics.performance(ideal, actual, total_units)
    quality = payload.number(data, 'quality')
    if quality is None:
        quality = metrics.quality(good_units, total_units)
    oee = payload.number(data, 'oee')
    if oee is None:
        oee = metrics.compose_oee(availability, performance, quality)

    return ProductionSample(
        line=data['line'],
        station=data.get('station'),
        shift=data['shift'],
        date=payload.as_datetime(data, 'date'),
        operator=data.get('operator'),
        product=data.get('product'),
        planned_production_time=planned,
        downtime=downtime,
        availability=availability,
        ideal_cycle_time=ideal,
        actual_cycle_time=actual,
        total_units=total_units,
        performance=performance,
        good_units=good_units,
        defective_units=defective_units,
        quality=quality,
        oee=oee,
        downtime_reasons=data.get('downtimeReasons'),
        cycle_time_variations=data.get('cycleTimeVariations'),
    )
