"""
Insight engine tests
"""

import json
from datetime import datetime, timedelta

import pytest
import requests

from opsboard.errors import InputError
from opsboard.models.oee import ProductionSample
from opsboard.models.quality import DefectEvent
from opsboard.services import insights
from opsboard.services.insights import (
    HttpInsightEnricher, Impact, InsightEngine, InsightRecord,
    PassThroughEnricher, build_enricher
)


def _sample(actual_cycle_time=10, planned=480, downtime=0, station=None, **kwargs):
    return ProductionSample(
        line='Line-1', station=station, shift='A',
        date=kwargs.pop('date', datetime(2024, 3, 1, 12, 0)),
        planned_production_time=planned, downtime=downtime,
        ideal_cycle_time=kwargs.pop('ideal_cycle_time', 8),
        actual_cycle_time=actual_cycle_time, **kwargs
    )


def _insight(**overrides):
    values = dict(type='alert', title='High Downtime at Line-1', description='20.0% downtime',
                  priority='critical', actionable=True, action_items=['Review downtime reasons'])
    values.update(overrides)
    return InsightRecord(**values)


class _Response:
    def __init__(self, body, status=200):
        self.body = body
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f'{self.status} error')

    def json(self):
        if isinstance(self.body, Exception):
            raise self.body
        return self.body


# ============================================
# Checks
# ============================================

def test_cycle_time_anomaly_flags_only_slow_record():
    # newest first; the slow record is the most recent
    samples = [_sample(20, station='S-9')] + [_sample(10) for _ in range(9)]

    results = insights.detect_cycle_time_anomalies(samples)

    assert len(results) == 1
    assert results[0].type == 'anomaly'
    assert results[0].priority == 'high'
    assert results[0].title == 'High Cycle Time at S-9'
    assert results[0].description == 'Cycle time is 81.8% above average'
    assert results[0].impact.time_saved == pytest.approx(9)


def test_cycle_time_anomaly_needs_ten_records():
    samples = [_sample(20)] + [_sample(10) for _ in range(8)]
    assert insights.detect_cycle_time_anomalies(samples) == []


def test_cycle_time_anomaly_only_checks_recent_seven():
    samples = [_sample(10) for _ in range(9)] + [_sample(20)]
    assert insights.detect_cycle_time_anomalies(samples) == []


def test_scrap_concentration_on_top_type():
    events = [DefectEvent(defect_type='A', quantity=5),
              DefectEvent(defect_type='B', quantity=12),
              DefectEvent(defect_type='C', quantity=3)]

    results = insights.detect_scrap_concentration(events)

    assert len(results) == 1
    assert results[0].type == 'opportunity'
    assert results[0].title == 'High Scrap Rate: B'
    assert results[0].description == '12 units scrapped due to B'
    assert results[0].impact.scrap_reduction == 6


def test_scrap_concentration_threshold_is_exclusive():
    events = [DefectEvent(defect_type='A', quantity=10)]
    assert insights.detect_scrap_concentration(events) == []
    assert insights.detect_scrap_concentration([]) == []


def test_downtime_alert():
    flagged = insights.detect_downtime([_sample(planned=480, downtime=80)])
    assert len(flagged) == 1
    assert flagged[0].type == 'alert'
    assert flagged[0].priority == 'critical'
    assert flagged[0].description == '16.7% downtime on 2024-03-01'

    assert insights.detect_downtime([_sample(planned=480, downtime=50)]) == []


def test_downtime_skips_samples_without_planned_time():
    assert insights.detect_downtime([_sample(planned=0, downtime=30)]) == []


def test_optimization_suggestion():
    samples = [_sample(10, ideal_cycle_time=8) for _ in range(3)]

    results = insights.optimization_suggestions(samples)

    assert len(results) == 1
    assert results[0].area == 'Cycle Time'
    assert results[0].suggested_value == 8
    assert results[0].improvement == pytest.approx(20)
    assert results[0].confidence == 75
    assert insights.optimization_suggestions([_sample(8.5, ideal_cycle_time=8)]) == []
    assert insights.optimization_suggestions([]) == []


def test_predictions():
    samples = [_sample(oee=70, good_units=100, total_units=110, defective_units=10)
               for _ in range(3)]

    result = insights.predictions('oee', samples, days=14)[0]
    assert result.current_value == pytest.approx(70)
    assert result.predicted_value == pytest.approx(71.4)
    assert result.timeframe == '14 days'
    assert result.confidence == 70

    assert insights.predictions('throughput', [], days=30) == []


def test_predictions_rejects_unknown_metric():
    with pytest.raises(InputError):
        insights.predictions('yield', [])


# ============================================
# Serialization
# ============================================

def test_insight_json_round_trip():
    insight = _insight(impact=Impact(time_saved=4.5, scrap_reduction=2))
    data = json.loads(json.dumps(insight.to_dict()))

    assert data['impact'] == {'timeSaved': 4.5, 'scrapReduction': 2}
    assert InsightRecord.from_dict(data) == insight


def test_insight_without_impact_omits_key():
    assert 'impact' not in _insight().to_dict()


def test_insight_from_dict_rejects_unknown_type():
    with pytest.raises(ValueError):
        InsightRecord.from_dict(dict(_insight().to_dict(), type='rumour'))


# ============================================
# Enrichment
# ============================================

def test_build_enricher_requires_url_and_key():
    assert isinstance(build_enricher({'AI_SERVICE_URL': 'http://ai', 'AI_API_KEY': None}),
                      PassThroughEnricher)
    enricher = build_enricher({'AI_SERVICE_URL': 'http://ai/', 'AI_API_KEY': 'k',
                               'AI_SERVICE_TIMEOUT': 3})
    assert isinstance(enricher, HttpInsightEnricher)
    assert enricher.base_url == 'http://ai'
    assert enricher.timeout == 3


def test_http_enricher_replaces_insights(monkeypatch):
    calls = []
    enhanced = _insight(title='Downtime spike on Line-1', priority='high').to_dict()

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append((url, json, headers, timeout))
        return _Response({'enhancedInsights': [enhanced]})

    monkeypatch.setattr(requests, 'post', fake_post)

    result = HttpInsightEnricher('http://ai', 'key', timeout=5).enrich([_insight()])

    assert [i.title for i in result] == ['Downtime spike on Line-1']
    url, body, headers, timeout = calls[0]
    assert url == 'http://ai/enhance-insights'
    assert body['insights'][0]['title'] == 'High Downtime at Line-1'
    assert headers['Authorization'] == 'Bearer key'
    assert timeout == 5


@pytest.mark.parametrize('response', [
    requests.ConnectionError('refused'),
    _Response({}, status=503),
    _Response(ValueError('not json')),
    _Response(['not', 'an', 'object']),
    _Response({'enhancedInsights': [{'title': 'missing fields'}]}),
])
def test_http_enricher_falls_back_to_input(monkeypatch, response):
    def fake_post(*args, **kwargs):
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(requests, 'post', fake_post)
    original = [_insight()]

    assert HttpInsightEnricher('http://ai', 'key').enrich(original) is original


def test_http_enricher_keeps_input_without_enhanced_field(monkeypatch):
    monkeypatch.setattr(requests, 'post', lambda *a, **k: _Response({'status': 'ok'}))
    original = [_insight()]
    assert HttpInsightEnricher('http://ai', 'key').enrich(original) is original


# ============================================
# Engine
# ============================================

def test_engine_orders_anomaly_opportunity_alert(app, add_sample, add_defect):
    now = datetime.utcnow()
    for minutes in range(1, 10):
        add_sample(date=now - timedelta(minutes=minutes + 1), actual_cycle_time=10, downtime=0)
    add_sample(date=now - timedelta(minutes=1), actual_cycle_time=20, downtime=100)
    add_defect('Scratch', quantity=12)

    results = InsightEngine().generate('Line-1', now - timedelta(days=1), now)

    assert [i.type for i in results] == ['anomaly', 'opportunity', 'alert']


def test_engine_uses_enricher(app, add_defect):
    add_defect('Scratch', quantity=12)

    class Reversing:
        def enrich(self, items):
            return list(reversed(items)) + [_insight(type='recommendation', priority='low')]

    results = InsightEngine(enricher=Reversing()).generate('Line-1')
    assert [i.type for i in results] == ['opportunity', 'recommendation']
