"""
Financial impact records - savings, margin and ROI per period and line
"""
from datetime import datetime
from opsboard import db
from opsboard.utils.dates import iso

SAVINGS_CATEGORIES = ('scrapReduction', 'downtimeReduction', 'efficiencyGains',
                      'materialOptimization', 'other')


class FinancialRecord(db.Model):
    """Financial results for one period (YYYY-MM), optionally per line"""
    __tablename__ = 'financial_records'
    __table_args__ = (
        db.Index('ix_financial_records_line_period', 'line', 'period'),
    )

    id = db.Column(db.Integer, primary_key=True)
    period = db.Column(db.String(7), nullable=False, index=True)  # e.g. 2024-01
    line = db.Column(db.String(100))

    # Cost savings
    cost_savings = db.Column(db.Float, default=0)
    savings_breakdown = db.Column(db.JSON)  # keys from SAVINGS_CATEGORIES

    # Margin
    revenue = db.Column(db.Float, default=0)
    cost_of_goods_sold = db.Column(db.Float, default=0)
    gross_margin = db.Column(db.Float, default=0)
    gross_margin_percent = db.Column(db.Float, default=0)

    # ROI
    investment = db.Column(db.Float, default=0)
    return_on_investment = db.Column(db.Float, default=0)  # %

    # [{projectId, contribution}]
    ci_project_contributions = db.Column(db.JSON)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<FinancialRecord {self.period} {self.line or "all"}>'

    def calculate_derived(self):
        """Fill gross margin and ROI from revenue/COGS and investment/savings"""
        if self.revenue and self.cost_of_goods_sold:
            self.gross_margin = self.revenue - self.cost_of_goods_sold
            self.gross_margin_percent = (self.gross_margin / self.revenue) * 100
        if self.investment and self.cost_savings:
            self.return_on_investment = (self.cost_savings / self.investment) * 100

    @property
    def breakdown(self):
        stored = self.savings_breakdown or {}
        return {key: stored.get(key, 0) for key in SAVINGS_CATEGORIES}

    def to_dict(self):
        return {
            'id': self.id,
            'period': self.period,
            'line': self.line,
            'costSavings': self.cost_savings or 0,
            'savingsBreakdown': self.breakdown,
            'revenue': self.revenue or 0,
            'costOfGoodsSold': self.cost_of_goods_sold or 0,
            'grossMargin': self.gross_margin or 0,
            'grossMarginPercent': self.gross_margin_percent or 0,
            'investment': self.investment or 0,
            'returnOnInvestment': self.return_on_investment or 0,
            'ciProjectContributions': self.ci_project_contributions or [],
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }
