"""
Insight Engine

Threshold checks over the most recent production and defect records:

* cycle time more than 20% above the window mean (anomaly)
* a single defect type accounting for more than 10 units (opportunity)
* downtime above 15% of planned production time (alert)

Checks are pure functions over records fetched newest-first.
``InsightEngine`` performs the queries, concatenates the results in the
order above and passes them through an optional enricher.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests
from flask import current_app

from opsboard.errors import InputError, UpstreamError
from opsboard.services import metrics
from opsboard.services.queries import latest, window

logger = logging.getLogger(__name__)

INSIGHT_TYPES = ('anomaly', 'opportunity', 'alert', 'recommendation')
PRIORITIES = ('low', 'medium', 'high', 'critical')
PREDICTION_METRICS = ('leadTime', 'throughput', 'scrap', 'oee')

CYCLE_TIME_WINDOW = 100
SCRAP_WINDOW = 100
DOWNTIME_WINDOW = 50
CYCLE_TIME_RECENT = 7
CYCLE_TIME_MIN_RECORDS = 10
CYCLE_TIME_FACTOR = 1.2
SCRAP_UNITS_THRESHOLD = 10
SCRAP_ACHIEVABLE_REDUCTION = 0.5
DOWNTIME_RATIO_THRESHOLD = 0.15

OPTIMIZATION_WINDOW = 30
OPTIMIZATION_FACTOR = 1.1
PREDICTION_WINDOW = 30
PREDICTION_RECENT = 7
PREDICTION_TREND = 1.02

CYCLE_TIME_ACTIONS = [
    'Review workstation setup',
    'Check for material flow issues',
    'Verify operator training',
]
SCRAP_ACTIONS = [
    'Investigate root cause',
    'Review quality control procedures',
    'Consider tooling/material changes',
]
DOWNTIME_ACTIONS = [
    'Review downtime reasons',
    'Check equipment maintenance schedule',
    'Investigate root causes',
]

_IMPACT_KEYS = (('time_saved', 'timeSaved'),
                ('cost_impact', 'costImpact'),
                ('scrap_reduction', 'scrapReduction'))


@dataclass
class Impact:
    """Estimated effect of acting on an insight or suggestion"""
    time_saved: Optional[float] = None
    cost_impact: Optional[float] = None
    scrap_reduction: Optional[float] = None

    def is_empty(self) -> bool:
        return all(getattr(self, attr) is None for attr, _ in _IMPACT_KEYS)

    def to_dict(self) -> Dict[str, float]:
        return {key: getattr(self, attr) for attr, key in _IMPACT_KEYS
                if getattr(self, attr) is not None}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Impact':
        data = data or {}
        if not isinstance(data, dict):
            raise ValueError('impact must be an object')
        return cls(**{attr: data.get(key) for attr, key in _IMPACT_KEYS})


@dataclass
class InsightRecord:
    type: str
    title: str
    description: str
    priority: str
    actionable: bool
    impact: Impact = field(default_factory=Impact)
    action_items: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'type': self.type,
            'title': self.title,
            'description': self.description,
            'priority': self.priority,
            'actionable': self.actionable,
        }
        if not self.impact.is_empty():
            data['impact'] = self.impact.to_dict()
        if self.action_items is not None:
            data['actionItems'] = list(self.action_items)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InsightRecord':
        if data.get('type') not in INSIGHT_TYPES:
            raise ValueError(f"Unknown insight type: {data.get('type')!r}")
        if data.get('priority') not in PRIORITIES:
            raise ValueError(f"Unknown insight priority: {data.get('priority')!r}")
        action_items = data.get('actionItems')
        return cls(
            type=data['type'],
            title=str(data['title']),
            description=str(data['description']),
            priority=data['priority'],
            actionable=bool(data.get('actionable', False)),
            impact=Impact.from_dict(data.get('impact')),
            action_items=[str(item) for item in action_items] if action_items is not None else None,
        )


@dataclass
class OptimizationSuggestion:
    area: str
    current_value: float
    suggested_value: float
    improvement: float  # %
    impact: Impact
    confidence: int  # 0-100

    def to_dict(self) -> Dict[str, Any]:
        return {
            'area': self.area,
            'currentValue': self.current_value,
            'suggestedValue': self.suggested_value,
            'improvement': self.improvement,
            'impact': self.impact.to_dict(),
            'confidence': self.confidence,
        }


@dataclass
class Prediction:
    metric: str
    current_value: float
    predicted_value: float
    timeframe: str
    confidence: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'metric': self.metric,
            'currentValue': self.current_value,
            'predictedValue': self.predicted_value,
            'timeframe': self.timeframe,
            'confidence': self.confidence,
        }


# ============================================
# Checks
# ============================================

def detect_cycle_time_anomalies(samples) -> List[InsightRecord]:
    """Flag recent samples running 20% slower than the window mean"""
    if len(samples) < CYCLE_TIME_MIN_RECORDS:
        return []

    mean_cycle_time = metrics.average(s.actual_cycle_time for s in samples)
    insights = []
    for sample in samples[:CYCLE_TIME_RECENT]:
        if sample.actual_cycle_time > mean_cycle_time * CYCLE_TIME_FACTOR:
            excess = (sample.actual_cycle_time - mean_cycle_time) / mean_cycle_time * 100
            insights.append(InsightRecord(
                type='anomaly',
                title=f'High Cycle Time at {sample.location}',
                description=f'Cycle time is {excess:.1f}% above average',
                priority='high',
                impact=Impact(time_saved=sample.actual_cycle_time - mean_cycle_time),
                actionable=True,
                action_items=list(CYCLE_TIME_ACTIONS),
            ))
    return insights


def detect_scrap_concentration(defect_events) -> List[InsightRecord]:
    """One opportunity for the top defect type when it exceeds 10 units"""
    totals = {}
    for event in defect_events:
        totals[event.defect_type] = totals.get(event.defect_type, 0) + event.quantity
    if not totals:
        return []

    defect_type, total = max(totals.items(), key=lambda item: item[1])
    if total <= SCRAP_UNITS_THRESHOLD:
        return []

    return [InsightRecord(
        type='opportunity',
        title=f'High Scrap Rate: {defect_type}',
        description=f'{total} units scrapped due to {defect_type}',
        priority='high',
        impact=Impact(scrap_reduction=total * SCRAP_ACHIEVABLE_REDUCTION),
        actionable=True,
        action_items=list(SCRAP_ACTIONS),
    )]


def detect_downtime(samples) -> List[InsightRecord]:
    """One critical alert per sample with downtime above 15% of planned time"""
    insights = []
    for sample in samples:
        ratio = sample.downtime_ratio
        if ratio is None or ratio <= DOWNTIME_RATIO_THRESHOLD:
            continue
        insights.append(InsightRecord(
            type='alert',
            title=f'High Downtime at {sample.location}',
            description=f'{ratio * 100:.1f}% downtime on {sample.date.date().isoformat()}',
            priority='critical',
            actionable=True,
            action_items=list(DOWNTIME_ACTIONS),
        ))
    return insights


def optimization_suggestions(samples) -> List[OptimizationSuggestion]:
    """Suggest closing the gap when mean cycle time exceeds ideal by 10%"""
    if not samples:
        return []
    mean_cycle_time = metrics.average(s.actual_cycle_time for s in samples)
    ideal = samples[0].ideal_cycle_time
    if mean_cycle_time <= ideal * OPTIMIZATION_FACTOR:
        return []
    return [OptimizationSuggestion(
        area='Cycle Time',
        current_value=mean_cycle_time,
        suggested_value=ideal,
        improvement=(mean_cycle_time - ideal) / mean_cycle_time * 100,
        impact=Impact(time_saved=mean_cycle_time - ideal),
        confidence=75,
    )]


def _sample_value(metric, sample):
    if metric == 'oee':
        return sample.oee
    if metric == 'throughput':
        return sample.good_units
    # scrap rate of the sample
    if not sample.total_units:
        return 0
    return (sample.defective_units or 0) / sample.total_units * 100


def predictions(metric, samples, completed_jobs=(), days=30) -> List[Prediction]:
    """Project the recent mean forward by a flat 2% trend"""
    if metric not in PREDICTION_METRICS:
        raise InputError(f'Metric must be one of: {", ".join(PREDICTION_METRICS)}')

    if metric == 'leadTime':
        recent_jobs = list(completed_jobs)[:PREDICTION_RECENT]
        if not recent_jobs:
            return []
        current = metrics.lead_time_minutes(recent_jobs)
    else:
        recent = list(samples)[:PREDICTION_RECENT]
        if not recent:
            return []
        current = metrics.average(_sample_value(metric, s) for s in recent)

    return [Prediction(
        metric=metric,
        current_value=current,
        predicted_value=current * PREDICTION_TREND,
        timeframe=f'{days} days',
        confidence=70,
    )]


# ============================================
# Enrichment
# ============================================

class PassThroughEnricher:
    """Default enricher: insights are returned unchanged"""

    def enrich(self, insights: List[InsightRecord]) -> List[InsightRecord]:
        return insights


class HttpInsightEnricher:
    """Send insights to an external service for rewording/ranking.

    Best effort: any failure returns the insights that were passed in.
    """

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout

    def enrich(self, insights: List[InsightRecord]) -> List[InsightRecord]:
        try:
            return self._request(insights)
        except UpstreamError as e:
            logger.warning('Insight enrichment failed, returning %d insights unchanged: %s',
                           len(insights), e.message)
            return insights

    def _request(self, insights):
        try:
            response = requests.post(
                f'{self.base_url}/enhance-insights',
                json={'insights': [insight.to_dict() for insight in insights]},
                headers={'Authorization': f'Bearer {self.api_key}'},
                timeout=self.timeout
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            raise UpstreamError(str(e))

        if not isinstance(body, dict):
            raise UpstreamError('Response body is not an object')
        enhanced = body.get('enhancedInsights')
        if enhanced is None:
            return insights
        if not isinstance(enhanced, list):
            raise UpstreamError('enhancedInsights is not a list')
        try:
            return [InsightRecord.from_dict(item) for item in enhanced]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise UpstreamError(f'Malformed insight in response: {e}')


def build_enricher(config):
    """HTTP enricher when both AI_SERVICE_URL and AI_API_KEY are set"""
    url = config.get('AI_SERVICE_URL')
    key = config.get('AI_API_KEY')
    if url and key:
        return HttpInsightEnricher(url, key, timeout=config.get('AI_SERVICE_TIMEOUT', 10.0))
    return PassThroughEnricher()


# ============================================
# Engine
# ============================================

class InsightEngine:
    """Query the record store and run the checks"""

    def __init__(self, enricher=None):
        self.enricher = enricher or PassThroughEnricher()

    def generate(self, line=None, start=None, end=None) -> List[InsightRecord]:
        from opsboard.models.oee import ProductionSample
        from opsboard.models.quality import DefectEvent

        samples = latest(window(ProductionSample, line, start, end),
                         ProductionSample.date, CYCLE_TIME_WINDOW)
        defects = latest(window(DefectEvent, line, start, end),
                         DefectEvent.date, SCRAP_WINDOW)

        insights = []
        insights.extend(detect_cycle_time_anomalies(samples))
        insights.extend(detect_scrap_concentration(defects))
        insights.extend(detect_downtime(samples[:DOWNTIME_WINDOW]))

        logger.debug('Generated %d insights for line=%s', len(insights), line)
        return self.enricher.enrich(insights)

    def optimization(self, line, station=None) -> List[OptimizationSuggestion]:
        from opsboard.models.oee import ProductionSample

        samples = latest(window(ProductionSample, line, station=station),
                         ProductionSample.date, OPTIMIZATION_WINDOW)
        return optimization_suggestions(samples)

    def predictions(self, metric, line=None, days=30) -> List[Prediction]:
        from opsboard.models.oee import ProductionSample
        from opsboard.models.production import JobCard

        if metric not in PREDICTION_METRICS:
            raise InputError(f'Metric must be one of: {", ".join(PREDICTION_METRICS)}')

        samples = []
        jobs = []
        if metric == 'leadTime':
            query = JobCard.query.filter(JobCard.status == 'completed',
                                         JobCard.end_time.isnot(None))
            if line:
                query = query.filter(JobCard.line == line)
            jobs = latest(query, JobCard.end_time, PREDICTION_WINDOW)
        else:
            samples = latest(window(ProductionSample, line),
                             ProductionSample.date, PREDICTION_WINDOW)
        return predictions(metric, samples, jobs, days)


def get_insight_engine() -> InsightEngine:
    return current_app.extensions['insight_engine']
