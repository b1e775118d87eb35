"""
Pytest configuration for the operations dashboard tests
"""

from datetime import datetime, timedelta

import pytest

from opsboard import create_app, db
from opsboard.models.oee import ProductionSample
from opsboard.models.quality import DefectEvent
from opsboard.models.user import User

PASSWORD = 'secret123'


@pytest.fixture
def app():
    """Fresh application and in-memory database per test."""
    app = create_app('testing')
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def make_user(app):
    def _make_user(username, role='operator', **kwargs):
        user = User(username=username, email=f'{username}@example.com', role=role, **kwargs)
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def users(make_user):
    return {role: make_user(role, role=role)
            for role in ('operator', 'supervisor', 'manager', 'admin')}


@pytest.fixture
def login(client):
    """Log the test client in as ``user``."""
    def _login(user):
        response = client.post('/api/auth/login',
                               json={'username': user.username, 'password': PASSWORD})
        assert response.status_code == 200
        return client
    return _login


@pytest.fixture
def add_sample(app):
    def _add_sample(line='Line-1', date=None, **overrides):
        values = dict(
            line=line,
            station=None,
            shift='A',
            date=date or datetime.utcnow(),
            planned_production_time=480,
            downtime=30,
            availability=93.75,
            ideal_cycle_time=2,
            actual_cycle_time=2,
            total_units=200,
            performance=100,
            good_units=190,
            defective_units=10,
            quality=95,
            oee=89.06,
        )
        values.update(overrides)
        sample = ProductionSample(**values)
        db.session.add(sample)
        db.session.commit()
        return sample
    return _add_sample


@pytest.fixture
def add_defect(app):
    def _add_defect(defect_type='Scratch', quantity=1, line='Line-1', date=None, **overrides):
        values = dict(
            line=line,
            shift='A',
            date=date or datetime.utcnow() - timedelta(minutes=5),
            product='Widget',
            defect_type=defect_type,
            defect_category='cosmetic',
            quantity=quantity,
            cost=quantity * 10.0,
            is_rework=False,
        )
        values.update(overrides)
        event = DefectEvent(**values)
        db.session.add(event)
        db.session.commit()
        return event
    return _add_defect
