"""
What-if simulation tests
"""

from datetime import datetime, timedelta

import pytest

from opsboard.errors import PreconditionError
from opsboard.models.oee import ProductionSample
from opsboard.services.simulation import SimulationResult, project, run_simulation


def _baseline(**overrides):
    values = dict(ideal_cycle_time=2, downtime=30, quality=95, oee=68)
    values.update(overrides)
    return ProductionSample(**values)


def test_projection_of_one_shift():
    result = project(_baseline(), shift_length=8, cycle_time_adjustment=1)

    assert result.predicted_scrap == pytest.approx(11.25)
    assert result.predicted_throughput == pytest.approx(213.75)
    assert result.predicted_oee == pytest.approx(68)
    assert result.cost_impact == pytest.approx(562.5)


def test_projection_defaults_to_eight_hours_and_no_adjustment():
    assert project(_baseline()) == project(_baseline(), shift_length=8, cycle_time_adjustment=1)


def test_slower_cycle_scales_oee_inversely():
    result = project(_baseline(), cycle_time_adjustment=2)
    assert result.predicted_oee == pytest.approx(34)
    assert result.predicted_throughput == pytest.approx(106.875)


def test_unit_cost_is_configurable():
    assert project(_baseline(), unit_cost=10).cost_impact == pytest.approx(112.5)


@pytest.mark.parametrize('baseline, adjustment, message', [
    (_baseline(ideal_cycle_time=0), 1, 'Invalid ideal cycle time'),
    (_baseline(ideal_cycle_time=-1), 1, 'Invalid ideal cycle time'),
    (_baseline(), 0, 'Invalid predicted cycle time'),
    (_baseline(), -0.5, 'Invalid predicted cycle time'),
])
def test_invalid_cycle_times_fail_before_dividing(baseline, adjustment, message):
    with pytest.raises(PreconditionError, match=message):
        project(baseline, cycle_time_adjustment=adjustment)


def test_result_round_trip():
    result = project(_baseline())
    assert SimulationResult.from_dict(result.to_dict()) == result


def test_run_simulation_uses_latest_sample(app, add_sample):
    now = datetime.utcnow()
    add_sample(date=now - timedelta(days=1), ideal_cycle_time=4, downtime=0, quality=100, oee=50)
    add_sample(date=now, ideal_cycle_time=2, downtime=30, quality=95, oee=68)

    result = run_simulation('Line-1', operators=3)

    assert result.predicted_throughput == pytest.approx(213.75)


def test_run_simulation_without_history(app):
    with pytest.raises(PreconditionError, match='No historical data'):
        run_simulation('Line-404')
