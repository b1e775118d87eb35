"""
Reporting route tests: operational performance, waste/quality, executive,
financial and customer impact
"""

from datetime import datetime, timedelta

import pytest

from opsboard import db
from opsboard.models.production import JobCard


@pytest.fixture
def operator_client(login, users):
    return login(users['operator'])


@pytest.fixture
def manager_client(login, users):
    return login(users['manager'])


# ============================================
# Operational performance
# ============================================

def test_create_sample_fills_oee_components(operator_client):
    response = operator_client.post('/api/operational-performance/oee', json={
        'line': 'Line-1', 'shift': 'A', 'date': '2024-03-01T06:00:00Z',
        'plannedProductionTime': 480, 'downtime': 48,
        'idealCycleTime': 1.5, 'actualCycleTime': 2.0,
        'totalUnits': 200, 'goodUnits': 190,
    })

    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['availability'] == pytest.approx(90)
    assert data['performance'] == pytest.approx(75)
    assert data['quality'] == pytest.approx(95)
    assert data['oee'] == pytest.approx(64.125)
    assert data['defectiveUnits'] == 10


def test_create_sample_keeps_explicit_zero_oee(operator_client):
    response = operator_client.post('/api/operational-performance/oee', json={
        'line': 'Line-1', 'shift': 'A', 'date': '2024-03-01T06:00:00Z',
        'plannedProductionTime': 480, 'downtime': 48,
        'idealCycleTime': 1.5, 'actualCycleTime': 2.0,
        'totalUnits': 200, 'goodUnits': 190, 'oee': 0,
    })

    assert response.status_code == 201
    assert response.get_json()['data']['oee'] == 0


def test_create_sample_validation(operator_client):
    response = operator_client.post('/api/operational-performance/oee', json={'line': 'Line-1'})
    assert response.status_code == 400
    assert response.get_json()['message'].startswith('Missing required fields')

    response = operator_client.post('/api/operational-performance/oee', json={
        'line': 'Line-1', 'shift': 'A', 'date': '2024-03-01',
        'plannedProductionTime': 480, 'idealCycleTime': 1, 'actualCycleTime': 1,
        'totalUnits': 10, 'goodUnits': 11,
    })
    assert response.status_code == 400


def test_oee_dashboard_averages(operator_client, add_sample):
    add_sample(oee=80, availability=90)
    add_sample(oee=60, availability=70, line='Line-2')

    data = operator_client.get('/api/operational-performance/oee').get_json()['data']
    assert data['oee']['overall'] == pytest.approx(70)
    assert len(data['breakdown']) == 2

    data = operator_client.get('/api/operational-performance/oee?line=Line-2').get_json()['data']
    assert data['oee']['availability'] == pytest.approx(70)


def test_throughput_by_shift(operator_client, add_sample):
    add_sample(shift='A', good_units=100)
    add_sample(shift='B', good_units=50)
    add_sample(shift='A', good_units=25)

    data = operator_client.get('/api/operational-performance/throughput').get_json()['data']
    assert data['totalThroughput'] == 175
    assert data['byShift'] == {'A': 125, 'B': 50}


def test_lead_time(operator_client, users):
    start = datetime.utcnow() - timedelta(hours=3)
    for number, minutes in (('J-1', 60), ('J-2', 120)):
        db.session.add(JobCard(job_number=number, operator_id=users['operator'].id,
                               workstation='WS-1', line='Line-1', product='Widget',
                               status='completed', start_time=start,
                               end_time=start + timedelta(minutes=minutes), target_cycle_time=5))
    db.session.commit()

    data = operator_client.get('/api/operational-performance/lead-time').get_json()['data']
    assert data['averageLeadTime'] == pytest.approx(90)
    assert data['min'] == pytest.approx(60)
    assert data['max'] == pytest.approx(120)


def test_cycle_time_variation_groups_by_station(operator_client, add_sample):
    add_sample(station='S-1', ideal_cycle_time=2, actual_cycle_time=3)
    add_sample(station=None, ideal_cycle_time=2, actual_cycle_time=2)

    data = operator_client.get('/api/operational-performance/cycle-time-variation').get_json()['data']
    assert data['variationMap']['S-1'][0]['variationPercent'] == pytest.approx(50)
    assert data['variationMap']['Line-1'][0]['variation'] == 0


# ============================================
# Waste & quality
# ============================================

def test_scrap_overview(operator_client, add_sample, add_defect):
    add_sample(total_units=400)
    add_defect('Scratch', quantity=10)
    add_defect('Dent', quantity=10, is_rework=True)

    data = operator_client.get('/api/waste-quality/scrap-overview').get_json()['data']
    assert data['totalScrap'] == 20
    assert data['scrapPercentage'] == pytest.approx(5)
    assert data['reworkCount'] == 1
    assert data['scrapCount'] == 1


def test_scrap_overview_for_one_station(operator_client, add_sample, add_defect):
    add_sample(station='S-1', total_units=100)
    add_sample(station='S-2', total_units=900)
    add_defect('Scratch', quantity=10, station='S-1')

    data = operator_client.get('/api/waste-quality/scrap-overview?line=Line-1&station=S-1').get_json()['data']
    assert data['totalScrap'] == 10
    assert data['scrapPercentage'] == pytest.approx(10)

    data = operator_client.get('/api/waste-quality/scrap-overview?line=Line-1').get_json()['data']
    assert data['scrapPercentage'] == pytest.approx(1)


def test_pareto_route(operator_client, add_defect):
    add_defect('A', quantity=5)
    add_defect('B', quantity=12)
    add_defect('C', quantity=3)

    data = operator_client.get('/api/waste-quality/pareto').get_json()['data']
    assert [row['defectType'] for row in data] == ['B', 'A', 'C']
    assert data[-1]['cumulativePercentage'] == pytest.approx(100)


def test_rework_vs_scrap_without_events(operator_client):
    data = operator_client.get('/api/waste-quality/rework-vs-scrap').get_json()['data']
    assert data['comparison'] == {'reworkPercentage': 0, 'scrapPercentage': 0}


def test_create_scrap_defaults_operator(operator_client):
    response = operator_client.post('/api/waste-quality/scrap', json={
        'line': 'Line-1', 'shift': 'A', 'date': '2024-03-01', 'product': 'Widget',
        'defectType': 'Scratch', 'defectCategory': 'cosmetic', 'quantity': 3, 'cost': 30,
    })
    assert response.status_code == 201
    assert response.get_json()['data']['operator'] == 'operator'
    assert response.get_json()['data']['isRework'] is False


def test_create_rework_event(operator_client):
    response = operator_client.post('/api/waste-quality/scrap', json={
        'line': 'Line-1', 'shift': 'A', 'date': '2024-03-01', 'product': 'Widget',
        'defectType': 'Burr', 'defectCategory': 'dimensional', 'quantity': 2, 'cost': 8,
        'isRework': True, 'reworkTime': 15,
    })
    assert response.status_code == 201
    assert response.get_json()['data']['isRework'] is True


def test_create_scrap_rejects_zero_quantity(operator_client):
    response = operator_client.post('/api/waste-quality/scrap', json={
        'line': 'Line-1', 'shift': 'A', 'date': '2024-03-01', 'product': 'Widget',
        'defectType': 'Scratch', 'defectCategory': 'cosmetic', 'quantity': 0, 'cost': 30,
    })
    assert response.status_code == 400


# ============================================
# Executive summary
# ============================================

def test_executive_summary(operator_client, add_sample, add_defect):
    now = datetime.utcnow()
    add_sample(date=now - timedelta(days=1), oee=80, downtime=100)
    add_sample(date=now - timedelta(days=9), oee=64)
    add_defect('Scratch', quantity=12)

    data = operator_client.get('/api/executive-summary/').get_json()['data']

    assert data['kpis']['oee']['value'] == pytest.approx(72)
    assert data['kpis']['oee']['trend'] == pytest.approx(25)
    assert data['kpis']['throughput']['value'] == 380
    assert [i['type'] for i in data['aiQuickOpportunities']] == ['opportunity', 'alert']


# ============================================
# Financial impact
# ============================================

def test_financial_requires_manager(operator_client):
    assert operator_client.get('/api/financial-impact/roi').status_code == 403


def test_financial_record_derives_margin_and_roi(manager_client):
    response = manager_client.post('/api/financial-impact/', json={
        'period': '2024-01', 'costSavings': 5000,
        'savingsBreakdown': {'scrapReduction': 3000, 'downtimeReduction': 2000},
        'revenue': 100000, 'costOfGoodsSold': 60000, 'investment': 10000,
    })

    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['grossMargin'] == 40000
    assert data['grossMarginPercent'] == pytest.approx(40)
    assert data['returnOnInvestment'] == pytest.approx(50)
    assert data['savingsBreakdown']['other'] == 0


def test_financial_rejects_unknown_category(manager_client):
    response = manager_client.post('/api/financial-impact/', json={
        'period': '2024-01', 'savingsBreakdown': {'luck': 1},
    })
    assert response.status_code == 400


def test_margin_trend(manager_client):
    for period, revenue in (('2024-01', 100), ('2024-02', 200)):
        manager_client.post('/api/financial-impact/', json={
            'period': period, 'revenue': revenue, 'costOfGoodsSold': 80,
        })

    data = manager_client.get('/api/financial-impact/margin').get_json()['data']
    assert [m['period'] for m in data['margins']] == ['2024-01', '2024-02']
    assert data['trend'] == pytest.approx(40)


# ============================================
# Customer impact
# ============================================

def _customer_payload(**overrides):
    now = datetime.utcnow()
    payload = {
        'customerId': 'C-1', 'customerName': 'Acme', 'feedbackDate': now.isoformat(),
        'feedbackType': 'survey', 'satisfactionScore': 80,
        'orderId': 'O-1', 'product': 'Widget',
        'orderDate': (now - timedelta(days=10)).isoformat(),
        'promisedDeliveryDate': (now - timedelta(days=3)).isoformat(),
        'actualDeliveryDate': (now - timedelta(days=1)).isoformat(),
    }
    payload.update(overrides)
    return payload


def test_customer_record_derives_lateness(operator_client):
    response = operator_client.post('/api/customer-impact/', json=_customer_payload())

    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['onTimeDelivery'] is False
    assert data['daysLate'] == 2


def test_on_time_delivery(manager_client):
    now = datetime.utcnow()
    manager_client.post('/api/customer-impact/', json=_customer_payload())
    manager_client.post('/api/customer-impact/', json=_customer_payload(
        orderId='O-2', actualDeliveryDate=(now - timedelta(days=4)).isoformat()))

    data = manager_client.get('/api/customer-impact/on-time-delivery').get_json()['data']
    assert data['totalOrders'] == 2
    assert data['onTimePercentage'] == pytest.approx(50)
    assert data['averageDaysLate'] == pytest.approx(2)


def test_csat_and_feedback_patterns(manager_client):
    manager_client.post('/api/customer-impact/', json=_customer_payload())
    manager_client.post('/api/customer-impact/', json=_customer_payload(
        orderId='O-2', feedbackType='complaint', satisfactionScore=40,
        complaintCategory='late delivery', resolutionStatus='open'))

    csat = manager_client.get('/api/customer-impact/csat').get_json()['data']
    assert csat['averageCSAT'] == pytest.approx(60)
    assert csat['totalResponses'] == 2

    patterns = manager_client.get('/api/customer-impact/feedback-patterns').get_json()['data']
    assert patterns['feedbackTypes'] == {'survey': 1, 'complaint': 1}
    assert patterns['complaintCategories'] == {'late delivery': 1}


def test_customer_score_out_of_range(operator_client):
    response = operator_client.post('/api/customer-impact/',
                                    json=_customer_payload(satisfactionScore=120))
    assert response.status_code == 400
