from flask import Blueprint, jsonify, request
from flask_login import login_required
from opsboard import db
from opsboard.models.customer import CustomerRecord, FEEDBACK_TYPES, RESOLUTION_STATUSES
from opsboard.services import metrics
from opsboard.utils.auth import role_required, MANAGER_ROLES
from opsboard.utils.dates import iso, parse_date_range
from opsboard.utils import payload

customer_bp = Blueprint('customer', __name__)


def _count_by(records, attribute):
    counts = {}
    for record in records:
        value = getattr(record, attribute)
        if value:
            counts[value] = counts.get(value, 0) + 1
    return counts


@customer_bp.route('/csat')
@role_required(*MANAGER_ROLES)
def csat():
    """Customer satisfaction index, trailing 90 days by default"""
    start, end = parse_date_range(request.args, default_days=90)
    query = CustomerRecord.query.filter(
        CustomerRecord.feedback_date >= start,
        CustomerRecord.feedback_date <= end
    )
    if request.args.get('customerId'):
        query = query.filter(CustomerRecord.customer_id == request.args['customerId'])
    if request.args.get('region'):
        query = query.filter(CustomerRecord.region == request.args['region'])
    records = [r for r in query.all() if r.satisfaction_score is not None]

    scores_by_type = {}
    for record in records:
        scores_by_type.setdefault(record.feedback_type, []).append(record.satisfaction_score)

    return jsonify({
        'success': True,
        'data': {
            'averageCSAT': metrics.average(r.satisfaction_score for r in records),
            'totalResponses': len(records),
            'feedbackBreakdown': [{
                'type': feedback_type,
                'averageScore': metrics.average(scores),
                'count': len(scores),
            } for feedback_type, scores in scores_by_type.items()],
            'trends': [{
                'date': iso(r.feedback_date),
                'score': r.satisfaction_score,
                'type': r.feedback_type,
                'customer': r.customer_name,
            } for r in records],
        }
    })


@customer_bp.route('/on-time-delivery')
@role_required(*MANAGER_ROLES)
def on_time_delivery():
    """On-time delivery rate, trailing 90 days of orders by default"""
    start, end = parse_date_range(request.args, default_days=90)
    query = CustomerRecord.query.filter(
        CustomerRecord.order_date >= start,
        CustomerRecord.order_date <= end
    )
    for key, column in (('customerId', CustomerRecord.customer_id),
                        ('product', CustomerRecord.product),
                        ('region', CustomerRecord.region)):
        if request.args.get(key):
            query = query.filter(column == request.args[key])
    orders = query.all()

    on_time = [o for o in orders if o.on_time_delivery]
    late = [o for o in orders if not o.on_time_delivery]

    return jsonify({
        'success': True,
        'data': {
            'onTimePercentage': len(on_time) / len(orders) * 100 if orders else 0,
            'totalOrders': len(orders),
            'onTimeOrders': len(on_time),
            'lateOrders': len(late),
            'averageDaysLate': metrics.average(o.days_late or 0 for o in late),
            'breakdown': [{
                'orderId': o.order_id,
                'customer': o.customer_name,
                'product': o.product,
                'promisedDate': iso(o.promised_delivery_date),
                'actualDate': iso(o.actual_delivery_date),
                'onTime': bool(o.on_time_delivery),
                'daysLate': o.days_late,
            } for o in orders],
        }
    })


@customer_bp.route('/feedback-patterns')
@role_required(*MANAGER_ROLES)
def feedback_patterns():
    """Complaint, feedback-type and resolution counts, trailing 180 days by default"""
    start, end = parse_date_range(request.args, default_days=180)
    query = CustomerRecord.query.filter(
        CustomerRecord.feedback_date >= start,
        CustomerRecord.feedback_date <= end
    )
    if request.args.get('customerId'):
        query = query.filter(CustomerRecord.customer_id == request.args['customerId'])
    records = query.all()

    return jsonify({
        'success': True,
        'data': {
            'complaintCategories': _count_by(records, 'complaint_category'),
            'feedbackTypes': _count_by(records, 'feedback_type'),
            'resolutionStatus': _count_by(records, 'resolution_status'),
            'patterns': [{
                'date': iso(r.feedback_date),
                'type': r.feedback_type,
                'category': r.complaint_category,
                'score': r.satisfaction_score,
                'customer': r.customer_name,
                'resolution': r.resolution_status,
            } for r in records],
        }
    })


@customer_bp.route('/', methods=['POST'])
@login_required
def create_record():
    """Record customer feedback/delivery; on-time flag is derived from the dates"""
    data = payload.json_body()
    payload.require(data, 'customerId', 'customerName', 'feedbackDate', 'feedbackType',
                    'orderId', 'product', 'orderDate', 'promisedDeliveryDate')

    score = payload.number(data, 'satisfactionScore', minimum=0)
    if score is not None and score > 100:
        return jsonify({'message': 'satisfactionScore must be between 0 and 100'}), 400

    record = CustomerRecord(
        customer_id=data['customerId'],
        customer_name=data['customerName'],
        region=data.get('region'),
        satisfaction_score=score,
        feedback_date=payload.as_datetime(data, 'feedbackDate'),
        feedback_type=payload.choice(data, 'feedbackType', FEEDBACK_TYPES),
        feedback_text=data.get('feedbackText'),
        order_id=data['orderId'],
        product=data['product'],
        order_date=payload.as_datetime(data, 'orderDate'),
        promised_delivery_date=payload.as_datetime(data, 'promisedDeliveryDate'),
        actual_delivery_date=payload.as_datetime(data, 'actualDeliveryDate'),
        on_time_delivery=bool(data.get('onTimeDelivery', True)),
        days_late=payload.integer(data, 'daysLate', minimum=0),
        complaint_category=data.get('complaintCategory'),
        complaint_details=data.get('complaintDetails'),
        resolution_status=payload.choice(data, 'resolutionStatus', RESOLUTION_STATUSES),
    )
    record.calculate_delivery()
    db.session.add(record)
    db.session.commit()

    return jsonify({'success': True, 'data': record.to_dict()}), 201
