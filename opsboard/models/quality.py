from datetime import datetime
from opsboard import db
from opsboard.utils.dates import iso


class DefectEvent(db.Model):
    """Scrap or rework event for pareto and scrap-rate analysis"""
    __tablename__ = 'defect_events'
    __table_args__ = (
        db.Index('ix_defect_events_line_date', 'line', 'date'),
        db.Index('ix_defect_events_product_date', 'product', 'date'),
    )

    id = db.Column(db.Integer, primary_key=True)
    line = db.Column(db.String(100), nullable=False)
    station = db.Column(db.String(100))
    shift = db.Column(db.String(20), nullable=False)
    date = db.Column(db.DateTime, nullable=False)
    operator = db.Column(db.String(100))
    product = db.Column(db.String(100), nullable=False)

    # Defect details
    defect_type = db.Column(db.String(100), nullable=False, index=True)
    defect_category = db.Column(db.String(100), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    cost = db.Column(db.Float, nullable=False)

    # Classification
    is_rework = db.Column(db.Boolean, default=False)
    rework_time = db.Column(db.Float)  # minutes

    # Root cause
    root_cause = db.Column(db.Text)
    corrective_action = db.Column(db.Text)

    notes = db.Column(db.Text)
    evidence = db.Column(db.JSON)  # URLs or file paths

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<DefectEvent {self.defect_type} x{self.quantity}>'

    def to_dict(self):
        return {
            'id': self.id,
            'line': self.line,
            'station': self.station,
            'shift': self.shift,
            'date': iso(self.date),
            'operator': self.operator,
            'product': self.product,
            'defectType': self.defect_type,
            'defectCategory': self.defect_category,
            'quantity': self.quantity,
            'cost': self.cost,
            'isRework': bool(self.is_rework),
            'reworkTime': self.rework_time,
            'rootCause': self.root_cause,
            'correctiveAction': self.corrective_action,
            'notes': self.notes,
            'evidence': self.evidence or [],
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }
