from datetime import timedelta
from flask import Blueprint, jsonify, request
from flask_login import login_required
from opsboard.models.oee import ProductionSample
from opsboard.models.production import JobCard
from opsboard.models.quality import DefectEvent
from opsboard.services import metrics
from opsboard.services.insights import get_insight_engine
from opsboard.services.queries import window
from opsboard.utils.dates import parse_date_range

executive_bp = Blueprint('executive', __name__)

TOP_OPPORTUNITIES = 5


@executive_bp.route('/')
@login_required
def summary():
    """Headline KPIs for a line, trailing 30 days by default"""
    line = request.args.get('line') or None
    start, end = parse_date_range(request.args, default_days=30)

    samples = window(ProductionSample, line, start, end).all()
    defects = window(DefectEvent, line, start, end).all()

    jobs_query = JobCard.query.filter(
        JobCard.status == 'completed',
        JobCard.start_time >= start,
        JobCard.start_time <= end
    )
    if line:
        jobs_query = jobs_query.filter(JobCard.line == line)
    completed_jobs = jobs_query.all()

    # Last 7 days vs the 7 before
    seven_days_ago = end - timedelta(days=7)
    fourteen_days_ago = end - timedelta(days=14)
    recent = window(ProductionSample, line, seven_days_ago, end).all()
    previous = window(ProductionSample, line, fourteen_days_ago) \
        .filter(ProductionSample.date < seven_days_ago).all()

    recent_oee = metrics.average(s.oee for s in recent)
    previous_oee = metrics.average(s.oee for s in previous)
    oee_trend = (recent_oee - previous_oee) / previous_oee * 100 if previous_oee > 0 else 0

    avg_oee = metrics.average(s.oee for s in samples)
    scrap_percentage = metrics.scrap_percentage(defects, samples)
    insights = get_insight_engine().generate(line, start, end)

    return jsonify({
        'success': True,
        'data': {
            'kpis': {
                'oee': {'value': avg_oee, 'trend': oee_trend, 'unit': '%'},
                'scrapPercentage': {'value': scrap_percentage, 'unit': '%'},
                'throughput': {'value': metrics.throughput(samples), 'unit': 'units'},
                'leadTime': {'value': metrics.lead_time_minutes(completed_jobs), 'unit': 'minutes'},
            },
            'trends': {
                'productivity': oee_trend,
                'waste': scrap_percentage,
                'quality': metrics.average(s.quality for s in recent),
            },
            'aiQuickOpportunities': [i.to_dict() for i in insights[:TOP_OPPORTUNITIES]],
        }
    })
