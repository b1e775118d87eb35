"""
OEE (Overall Equipment Effectiveness) Tracking
Per shift/station production samples with availability, performance and quality
"""
from datetime import datetime
from opsboard import db
from opsboard.utils.dates import iso


class ProductionSample(db.Model):
    """Production sample for one line/station and shift - tracks OEE metrics"""
    __tablename__ = 'production_samples'
    __table_args__ = (
        db.Index('ix_production_samples_line_date', 'line', 'date'),
        db.Index('ix_production_samples_station_date', 'station', 'date'),
    )

    id = db.Column(db.Integer, primary_key=True)
    line = db.Column(db.String(100), nullable=False)
    station = db.Column(db.String(100))
    shift = db.Column(db.String(20), nullable=False)  # day, night, etc.
    date = db.Column(db.DateTime, nullable=False)
    operator = db.Column(db.String(100))
    product = db.Column(db.String(100))

    # Availability (minutes)
    planned_production_time = db.Column(db.Float, nullable=False)
    downtime = db.Column(db.Float, default=0)
    availability = db.Column(db.Float, nullable=False)  # %

    # Performance (minutes per unit)
    ideal_cycle_time = db.Column(db.Float, nullable=False)
    actual_cycle_time = db.Column(db.Float, nullable=False)
    total_units = db.Column(db.Integer, nullable=False)
    performance = db.Column(db.Float, nullable=False)  # %

    # Quality
    good_units = db.Column(db.Integer, nullable=False)
    defective_units = db.Column(db.Integer, default=0)
    quality = db.Column(db.Float, nullable=False)  # %

    oee = db.Column(db.Float, nullable=False)  # %

    # [{reason, duration, timestamp}]
    downtime_reasons = db.Column(db.JSON)
    # [{unit, cycleTime, timestamp}]
    cycle_time_variations = db.Column(db.JSON)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<ProductionSample {self.line}/{self.station or "-"} {self.date:%Y-%m-%d}>'

    @property
    def downtime_ratio(self):
        """Downtime as a fraction of planned time, None when nothing was planned"""
        if not self.planned_production_time or self.planned_production_time <= 0:
            return None
        return (self.downtime or 0) / self.planned_production_time

    @property
    def location(self):
        return self.station or self.line

    def to_dict(self):
        return {
            'id': self.id,
            'line': self.line,
            'station': self.station,
            'shift': self.shift,
            'date': iso(self.date),
            'operator': self.operator,
            'product': self.product,
            'plannedProductionTime': self.planned_production_time,
            'downtime': self.downtime,
            'availability': self.availability,
            'idealCycleTime': self.ideal_cycle_time,
            'actualCycleTime': self.actual_cycle_time,
            'totalUnits': self.total_units,
            'performance': self.performance,
            'goodUnits': self.good_units,
            'defectiveUnits': self.defective_units,
            'quality': self.quality,
            'oee': self.oee,
            'downtimeReasons': self.downtime_reasons or [],
            'cycleTimeVariations': self.cycle_time_variations or [],
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }
