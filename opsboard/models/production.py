from datetime import datetime
from opsboard import db
from opsboard.utils.dates import iso

JOB_STATUSES = ('pending', 'in-progress', 'completed', 'paused', 'cancelled')
ISSUE_TYPES = ('scrap', 'delay', 'material-shortage', 'tool-issue', 'other')


class JobCard(db.Model):
    """Operator job card - one job run at a workstation"""
    __tablename__ = 'job_cards'
    __table_args__ = (
        db.Index('ix_job_cards_operator_status', 'operator_id', 'status'),
        db.Index('ix_job_cards_line_status', 'line', 'status'),
    )

    id = db.Column(db.Integer, primary_key=True)
    job_number = db.Column(db.String(50), unique=True, nullable=False, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    workstation = db.Column(db.String(100), nullable=False)
    line = db.Column(db.String(100), nullable=False)
    product = db.Column(db.String(100), nullable=False)

    start_time = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    end_time = db.Column(db.DateTime)
    status = db.Column(db.String(20), default='pending')  # see JOB_STATUSES

    # [{stepNumber, description, instructions, status, completedAt, cycleTime, issues}]
    steps = db.Column(db.JSON)
    # [{type, description, timestamp, resolved}]
    issues = db.Column(db.JSON)

    # Performance
    total_cycle_time = db.Column(db.Float, default=0)
    target_cycle_time = db.Column(db.Float, nullable=False)
    units_completed = db.Column(db.Integer, default=0)
    units_scrapped = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<JobCard {self.job_number}>'

    @property
    def current_cycle_time(self):
        """Running average cycle time per completed unit"""
        return (self.total_cycle_time or 0) / max(self.units_completed or 0, 1)

    def to_dict(self):
        return {
            'id': self.id,
            'jobNumber': self.job_number,
            'operator': self.operator.to_summary() if self.operator else self.operator_id,
            'workstation': self.workstation,
            'line': self.line,
            'product': self.product,
            'startTime': iso(self.start_time),
            'endTime': iso(self.end_time),
            'status': self.status,
            'steps': self.steps or [],
            'issues': self.issues or [],
            'totalCycleTime': self.total_cycle_time,
            'targetCycleTime': self.target_cycle_time,
            'unitsCompleted': self.units_completed,
            'unitsScrapped': self.units_scrapped,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }
