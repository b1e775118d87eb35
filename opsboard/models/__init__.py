# Models package
from opsboard.models.user import User
from opsboard.models.oee import ProductionSample
from opsboard.models.quality import DefectEvent
from opsboard.models.production import JobCard
from opsboard.models.financial import FinancialRecord
from opsboard.models.customer import CustomerRecord
from opsboard.models.improvement import CIProject, TrainingRecord

__all__ = [
    'User',
    'ProductionSample',
    'DefectEvent',
    'JobCard',
    'FinancialRecord',
    'CustomerRecord',
    'CIProject', 'TrainingRecord',
]
