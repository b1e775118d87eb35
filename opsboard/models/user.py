from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin
from opsboard import db, login_manager

ROLES = ('operator', 'supervisor', 'manager', 'admin')


class User(UserMixin, db.Model):
    """User model for authentication and authorization"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    first_name = db.Column(db.String(64))
    last_name = db.Column(db.String(64))
    role = db.Column(db.String(20), nullable=False, default='operator')  # operator, supervisor, manager, admin
    employee_id = db.Column(db.String(50))
    department = db.Column(db.String(100))
    shift = db.Column(db.String(20))
    workstation = db.Column(db.String(100))
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_login = db.Column(db.DateTime)

    # Relationships
    job_cards = db.relationship('JobCard', backref='operator', lazy='dynamic')
    trainings = db.relationship('TrainingRecord', backref='employee', lazy='dynamic')

    def __repr__(self):
        return f'<User {self.username}>'

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password"""
        return check_password_hash(self.password_hash, password)

    @property
    def full_name(self):
        """Return full name"""
        if self.first_name and self.last_name:
            return f'{self.first_name} {self.last_name}'
        return self.username

    def has_role(self, *roles):
        return self.role in roles

    def to_summary(self):
        return {
            'id': self.id,
            'name': self.full_name,
            'email': self.email,
            'role': self.role,
            'workstation': self.workstation,
        }

    def to_dict(self):
        data = self.to_summary()
        data.update({
            'username': self.username,
            'employeeId': self.employee_id,
            'department': self.department,
            'shift': self.shift,
            'isActive': self.is_active,
            'lastLogin': self.last_login.isoformat() if self.last_login else None,
        })
        return data


@login_manager.user_loader
def load_user(user_id):
    """Load user by ID for Flask-Login"""
    return db.session.get(User, int(user_id))
