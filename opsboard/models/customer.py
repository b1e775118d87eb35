import math
from datetime import datetime
from opsboard import db
from opsboard.utils.dates import iso

FEEDBACK_TYPES = ('survey', 'review', 'complaint', 'praise')
RESOLUTION_STATUSES = ('open', 'in-progress', 'resolved', 'closed')


class CustomerRecord(db.Model):
    """Customer feedback and delivery outcome for one order"""
    __tablename__ = 'customer_records'
    __table_args__ = (
        db.Index('ix_customer_records_customer_feedback', 'customer_id', 'feedback_date'),
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.String(50), nullable=False)
    customer_name = db.Column(db.String(200), nullable=False)
    region = db.Column(db.String(100))

    # CSAT
    satisfaction_score = db.Column(db.Float)  # 0-100
    feedback_date = db.Column(db.DateTime, nullable=False)
    feedback_type = db.Column(db.String(20), nullable=False)  # see FEEDBACK_TYPES
    feedback_text = db.Column(db.Text)

    # Delivery
    order_id = db.Column(db.String(50), nullable=False, index=True)
    product = db.Column(db.String(100), nullable=False, index=True)
    order_date = db.Column(db.DateTime, nullable=False)
    promised_delivery_date = db.Column(db.DateTime, nullable=False)
    actual_delivery_date = db.Column(db.DateTime)
    on_time_delivery = db.Column(db.Boolean, nullable=False, default=True)
    days_late = db.Column(db.Integer)

    # Complaints
    complaint_category = db.Column(db.String(100))
    complaint_details = db.Column(db.Text)
    resolution_status = db.Column(db.String(20))  # see RESOLUTION_STATUSES

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<CustomerRecord {self.customer_id} order {self.order_id}>'

    def calculate_delivery(self):
        """Derive on-time flag and whole days late from the delivery dates"""
        if self.actual_delivery_date and self.promised_delivery_date:
            self.on_time_delivery = self.actual_delivery_date <= self.promised_delivery_date
            if not self.on_time_delivery:
                late = self.actual_delivery_date - self.promised_delivery_date
                self.days_late = math.ceil(late.total_seconds() / 86400)
            else:
                self.days_late = None

    def to_dict(self):
        return {
            'id': self.id,
            'customerId': self.customer_id,
            'customerName': self.customer_name,
            'region': self.region,
            'satisfactionScore': self.satisfaction_score,
            'feedbackDate': iso(self.feedback_date),
            'feedbackType': self.feedback_type,
            'feedbackText': self.feedback_text,
            'orderId': self.order_id,
            'product': self.product,
            'orderDate': iso(self.order_date),
            'promisedDeliveryDate': iso(self.promised_delivery_date),
            'actualDeliveryDate': iso(self.actual_delivery_date),
            'onTimeDelivery': bool(self.on_time_delivery),
            'daysLate': self.days_late,
            'complaintCategory': self.complaint_category,
            'complaintDetails': self.complaint_details,
            'resolutionStatus': self.resolution_status,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }
