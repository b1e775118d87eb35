"""
Continuous improvement projects and the training/skill matrix
"""
from datetime import datetime
from opsboard import db
from opsboard.utils.dates import iso

PROJECT_STATUSES = ('backlog', 'in-progress', 'review', 'completed', 'cancelled')
PROJECT_CATEGORIES = ('process', 'quality', 'safety', 'cost', 'training', 'other')
PRIORITIES = ('low', 'medium', 'high', 'critical')
TRAINING_LEVELS = ('beginner', 'intermediate', 'advanced', 'expert')
TRAINING_STATUSES = ('not-started', 'in-progress', 'completed', 'expired')


class CIProject(db.Model):
    """Continuous improvement initiative tracked on the kanban board"""
    __tablename__ = 'ci_projects'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), default='backlog', index=True)
    priority = db.Column(db.String(20), default='medium')
    category = db.Column(db.String(20), nullable=False, index=True)

    # Team
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    team_member_ids = db.Column(db.JSON)  # [user id]

    # Impact targets
    target_savings = db.Column(db.Float)
    actual_savings = db.Column(db.Float)
    target_oee_improvement = db.Column(db.Float)
    target_scrap_reduction = db.Column(db.Float)

    # Timeline
    start_date = db.Column(db.DateTime)
    due_date = db.Column(db.DateTime)
    completed_date = db.Column(db.DateTime)

    progress = db.Column(db.Float, default=0)  # 0-100
    milestones = db.Column(db.JSON)  # [{title, dueDate, completed, completedDate}]

    # Engagement (0-100)
    employee_engagement = db.Column(db.Float)
    change_adoption_rate = db.Column(db.Float)

    notes = db.Column(db.Text)
    attachments = db.Column(db.JSON)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = db.relationship('User', backref='ci_projects')

    def __repr__(self):
        return f'<CIProject {self.title}>'

    def to_dict(self, members=None):
        """``members`` maps user id -> User for expanding the team list"""
        team_ids = self.team_member_ids or []
        if members is not None:
            team = [members[uid].to_summary() if uid in members else uid for uid in team_ids]
        else:
            team = team_ids
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'status': self.status,
            'priority': self.priority,
            'category': self.category,
            'owner': self.owner.to_summary() if self.owner else self.owner_id,
            'teamMembers': team,
            'targetSavings': self.target_savings,
            'actualSavings': self.actual_savings,
            'targetOEEImprovement': self.target_oee_improvement,
            'targetScrapReduction': self.target_scrap_reduction,
            'startDate': iso(self.start_date),
            'dueDate': iso(self.due_date),
            'completedDate': iso(self.completed_date),
            'progress': self.progress or 0,
            'milestones': self.milestones or [],
            'employeeEngagement': self.employee_engagement,
            'changeAdoptionRate': self.change_adoption_rate,
            'notes': self.notes,
            'attachments': self.attachments or [],
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }


class TrainingRecord(db.Model):
    """Skill level of one employee"""
    __tablename__ = 'training_records'
    __table_args__ = (
        db.Index('ix_training_records_employee_skill', 'employee_id', 'skill'),
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    skill = db.Column(db.String(100), nullable=False)
    level = db.Column(db.String(20), nullable=False)  # see TRAINING_LEVELS
    status = db.Column(db.String(20), default='not-started', index=True)
    completion_date = db.Column(db.DateTime)
    expiry_date = db.Column(db.DateTime)
    certification = db.Column(db.String(200))
    notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'employee': self.employee.to_summary() if self.employee else self.employee_id,
            'skill': self.skill,
            'level': self.level,
            'status': self.status,
            'completionDate': iso(self.completion_date),
            'expiryDate': iso(self.expiry_date),
            'certification': self.certification,
            'notes': self.notes,
            'createdAt': iso(self.created_at),
        }
