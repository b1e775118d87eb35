"""
What-if simulator: project one shift from the latest production sample of a line.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

from opsboard.errors import PreconditionError

logger = logging.getLogger(__name__)

DEFAULT_SHIFT_HOURS = 8
DEFAULT_SCRAP_UNIT_COST = 50.0


@dataclass
class SimulationResult:
    predicted_throughput: float
    predicted_scrap: float
    predicted_oee: float
    cost_impact: float

    def to_dict(self) -> Dict[str, float]:
        return {
            'predictedThroughput': self.predicted_throughput,
            'predictedScrap': self.predicted_scrap,
            'predictedOEE': self.predicted_oee,
            'costImpact': self.cost_impact,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SimulationResult':
        return cls(
            predicted_throughput=data['predictedThroughput'],
            predicted_scrap=data['predictedScrap'],
            predicted_oee=data['predictedOEE'],
            cost_impact=data['costImpact'],
        )


def project(baseline, shift_length=None, cycle_time_adjustment=None,
            unit_cost=DEFAULT_SCRAP_UNIT_COST):
    """
    Project throughput, scrap, OEE and scrap cost for one shift.

    ``baseline`` needs ideal_cycle_time, downtime, quality and oee.
    ``cycle_time_adjustment`` multiplies the ideal cycle time (default 1);
    ``shift_length`` is in hours (default 8). OEE scales linearly with the
    inverse of the multiplier rather than being recomposed.
    """
    if not baseline.ideal_cycle_time or baseline.ideal_cycle_time <= 0:
        raise PreconditionError('Invalid ideal cycle time in historical data. Cannot perform simulation.')

    multiplier = cycle_time_adjustment if cycle_time_adjustment is not None else 1
    predicted_cycle_time = baseline.ideal_cycle_time * multiplier
    if predicted_cycle_time <= 0:
        raise PreconditionError('Invalid predicted cycle time. Cycle time must be greater than 0.')

    shift_minutes = (shift_length if shift_length is not None else DEFAULT_SHIFT_HOURS) * 60
    available_time = shift_minutes - (baseline.downtime or 0)
    predicted_units = available_time / predicted_cycle_time
    predicted_scrap = predicted_units * (1 - baseline.quality / 100)
    predicted_good_units = predicted_units - predicted_scrap

    return SimulationResult(
        predicted_throughput=predicted_good_units,
        predicted_scrap=predicted_scrap,
        predicted_oee=baseline.oee * (1 / multiplier),
        cost_impact=predicted_scrap * unit_cost,
    )


def run_simulation(line, shift_length=None, cycle_time_adjustment=None,
                   operators=None, unit_cost=DEFAULT_SCRAP_UNIT_COST):
    """Simulate from the most recent sample of ``line``.

    ``operators`` is accepted for API compatibility and does not affect
    the projection.
    """
    from opsboard.models.oee import ProductionSample

    baseline = ProductionSample.query.filter_by(line=line) \
        .order_by(ProductionSample.date.desc()).first()
    if baseline is None:
        raise PreconditionError('No historical data found for simulation')

    logger.info('Simulating line %s from sample %s (shift=%s, adjustment=%s, operators=%s)',
                line, baseline.id, shift_length, cycle_time_adjustment, operators)
    return project(baseline, shift_length, cycle_time_adjustment, unit_cost)
