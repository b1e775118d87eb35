from flask import Blueprint, jsonify, request
from opsboard import db
from opsboard.errors import InputError
from opsboard.models.financial import FinancialRecord, SAVINGS_CATEGORIES
from opsboard.services import metrics
from opsboard.utils.auth import role_required, MANAGER_ROLES
from opsboard.utils import payload

financial_bp = Blueprint('financial', __name__)


def _records(ascending=False):
    query = FinancialRecord.query
    if request.args.get('period'):
        query = query.filter(FinancialRecord.period == request.args['period'])
    if request.args.get('line'):
        query = query.filter(FinancialRecord.line == request.args['line'])
    order = FinancialRecord.period.asc() if ascending else FinancialRecord.period.desc()
    return query.order_by(order).all()


@financial_bp.route('/cost-savings')
@role_required(*MANAGER_ROLES)
def cost_savings():
    """Savings per period with category breakdown"""
    records = _records()

    return jsonify({
        'success': True,
        'data': {
            'totalSavings': sum(r.cost_savings or 0 for r in records),
            'breakdown': [r.to_dict() for r in records],
            'byPeriod': [{
                'period': r.period,
                'savings': r.cost_savings or 0,
                'breakdown': r.breakdown,
            } for r in records],
        }
    })


@financial_bp.route('/margin')
@role_required(*MANAGER_ROLES)
def margin():
    """Gross margin per period and change from first to last period"""
    records = _records(ascending=True)
    trend = 0
    if len(records) > 1:
        trend = (records[-1].gross_margin_percent or 0) - (records[0].gross_margin_percent or 0)

    return jsonify({
        'success': True,
        'data': {
            'margins': [{
                'period': r.period,
                'revenue': r.revenue or 0,
                'costOfGoodsSold': r.cost_of_goods_sold or 0,
                'grossMargin': r.gross_margin or 0,
                'grossMarginPercent': r.gross_margin_percent or 0,
            } for r in records],
            'trend': trend,
        }
    })


@financial_bp.route('/roi')
@role_required(*MANAGER_ROLES)
def roi():
    """Return on CI investment per period"""
    records = _records()
    rows = [{
        'period': r.period,
        'investment': r.investment or 0,
        'returnOnInvestment': r.return_on_investment or 0,
        'costSavings': r.cost_savings or 0,
        'ciContributions': r.ci_project_contributions or [],
    } for r in records]

    return jsonify({
        'success': True,
        'data': {
            'roi': rows,
            'averageROI': metrics.average(r['returnOnInvestment'] for r in rows),
            'totalInvestment': sum(r['investment'] for r in rows),
            'totalSavings': sum(r['costSavings'] for r in rows),
        }
    })


@financial_bp.route('/', methods=['POST'])
@role_required(*MANAGER_ROLES)
def create_record():
    """Record a financial period; gross margin and ROI are derived"""
    data = payload.json_body()
    payload.require(data, 'period')

    breakdown = data.get('savingsBreakdown') or {}
    if not isinstance(breakdown, dict):
        raise InputError('savingsBreakdown must be an object')
    unknown = set(breakdown) - set(SAVINGS_CATEGORIES)
    if unknown:
        raise InputError(f'Unknown savings categories: {", ".join(sorted(unknown))}')

    record = FinancialRecord(
        period=data['period'],
        line=data.get('line'),
        cost_savings=payload.number(data, 'costSavings', default=0),
        savings_breakdown={key: payload.number(breakdown, key, default=0) for key in SAVINGS_CATEGORIES},
        revenue=payload.number(data, 'revenue', default=0),
        cost_of_goods_sold=payload.number(data, 'costOfGoodsSold', default=0),
        gross_margin=payload.number(data, 'grossMargin', default=0),
        gross_margin_percent=payload.number(data, 'grossMarginPercent', default=0),
        investment=payload.number(data, 'investment', default=0),
        return_on_investment=payload.number(data, 'returnOnInvestment', default=0),
        ci_project_contributions=data.get('ciProjectContributions'),
    )
    record.calculate_derived()
    db.session.add(record)
    db.session.commit()

    return jsonify({'success': True, 'data': record.to_dict()}), 201
