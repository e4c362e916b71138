# ==============================================================================
# app/models.py
# ------------------------------------------------------------------------------
# Defines the database schema using SQLAlchemy ORM models.
# ==============================================================================

from datetime import datetime
import json
import uuid
from werkzeug.security import generate_password_hash, check_password_hash
from app import db

PRODUCT_TYPES = ('BASICA', 'NATAL', 'CUSTOM')
CAMPAIGN_TYPES = ('AVISTA_BAIXA_MARGEM', 'META_BAIXA_MARGEM')


def _new_id():
    return str(uuid.uuid4())


class User(db.Model):
    """
    A salesperson. The monthly basic-basket goal gates the goal-based
    campaign overlay.
    """
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(db.String(36), unique=True, nullable=False, default=_new_id)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    password_hash = db.Column(db.String(256))
    company_id = db.Column(db.String(64), index=True)
    monthly_basic_basket_goal = db.Column(db.Float, nullable=True)

    sales = db.relationship('Sale', backref='user', lazy='dynamic', cascade="all, delete-orphan")

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return bool(self.password_hash) and check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<User {self.username}>'


class Sale(db.Model):
    """
    A sale record with the base commission computed when it was recorded.
    Campaign fields are filled at read time by the overlay pass, never stored.
    """
    __tablename__ = 'sale'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('user.uid'), nullable=False, index=True)
    client = db.Column(db.String(256), nullable=False)
    product_type = db.Column(db.String(16), nullable=False, default='BASICA')
    status = db.Column(db.String(16), default='FATURADO')
    quantity = db.Column(db.Float, default=0)
    value_proposed = db.Column(db.Float, default=0)
    value_sold = db.Column(db.Float, default=0)
    margin_percent = db.Column(db.Float, default=0)
    payment_method = db.Column(db.String(128))
    date = db.Column(db.String(10), index=True)  # YYYY-MM-DD
    commission_base_total = db.Column(db.Float, default=0)
    commission_value_total = db.Column(db.Float, default=0)
    commission_rate_used = db.Column(db.Float, default=0)
    deleted = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, index=True, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'client': self.client,
            'type': self.product_type,
            'status': self.status,
            'quantity': self.quantity,
            'value_proposed': self.value_proposed,
            'value_sold': self.value_sold,
            'margin_percent': self.margin_percent,
            'payment_method': self.payment_method,
            'date': self.date,
            'commission_base_total': self.commission_base_total,
            'commission_value_total': self.commission_value_total,
            'commission_rate_used': self.commission_rate_used,
            'deleted': bool(self.deleted),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Sale {self.id}: {self.client}>'


class CommissionTier(db.Model):
    """
    One margin band of a commission table. Saving a table deactivates the
    previous rows and writes a new version, so history is kept.
    """
    __tablename__ = 'commission_tier'
    id = db.Column(db.Integer, primary_key=True)
    product_type = db.Column(db.String(16), nullable=False, index=True)
    min_percent = db.Column(db.Float, nullable=True)  # None = unbounded below
    max_percent = db.Column(db.Float, nullable=True)  # None = unbounded above
    rate = db.Column(db.Float, nullable=False, default=0)  # fraction, 0.05 = 5%
    is_active = db.Column(db.Boolean, default=True, index=True)
    version = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_document(self):
        """The flat storage shape read back by rules_from_documents."""
        return {'id': self.id, 'min': self.min_percent, 'max': self.max_percent, 'rate': self.rate}

    def __repr__(self):
        return f'<CommissionTier {self.id}: {self.product_type} ({self.min_percent}-{self.max_percent})>'


class CommissionCampaign(db.Model):
    """
    A promotional overlay for a company over a range of months. The rules
    payload depends on the campaign type and is kept as a JSON string.
    """
    __tablename__ = 'commission_campaign'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    company_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    type = db.Column(db.String(32), nullable=False, default='META_BAIXA_MARGEM')
    active = db.Column(db.Boolean, default=True)
    start_month = db.Column(db.String(7), nullable=False)  # YYYY-MM
    end_month = db.Column(db.String(7), nullable=False)
    rules_json = db.Column(db.Text, nullable=False, default='{}')
    user_id = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def rules(self):
        return json.loads(self.rules_json or '{}')

    @rules.setter
    def rules(self, value):
        self.rules_json = json.dumps(value or {}, ensure_ascii=False)

    def to_dict(self):
        return {
            'id': self.id,
            'company_id': self.company_id,
            'name': self.name,
            'type': self.type,
            'active': bool(self.active),
            'start_month': self.start_month,
            'end_month': self.end_month,
            'rules': self.rules,
            'user_id': self.user_id,
        }

    def __repr__(self):
        return f'<CommissionCampaign {self.id}: {self.name}>'


class AppSetting(db.Model):
    """
    Key-value pairs for the admin-tunable business rules (the à vista
    low-margin rule and the payment method list).
    """
    __tablename__ = 'app_setting'
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), unique=True, nullable=False, index=True)
    value = db.Column(db.String(512), nullable=False)
    description = db.Column(db.String(512))
    value_type = db.Column(db.String(32), default='string')  # 'float', 'int', 'bool', 'string', 'json'

    def __repr__(self):
        return f'<AppSetting {self.key}: {self.value}>'

    def get_value(self):
        """Casts the string value to its correct Python type."""
        if self.value_type == 'float':
            return float(self.value)
        if self.value_type == 'int':
            return int(self.value)
        if self.value_type == 'bool':
            return self.value.strip().lower() in ('1', 'true', 'yes', 'sim')
        if self.value_type == 'json':
            return json.loads(self.value)
        return self.value
