# ==============================================================================
# app/calculator/store.py
# ------------------------------------------------------------------------------
# Data access for the commission engine: rule tables, campaigns, sales and
# the admin-tunable system configuration. The engine itself never queries;
# callers fetch through here and pass plain values in.
# ==============================================================================

import logging
from app import db
from app.models import AppSetting, CommissionCampaign, CommissionTier, Sale, User
from .tiers import compute_commission_values, rules_from_documents

DEFAULT_PAYMENT_METHODS = ['À vista / Antecipado', 'À prazo']


def is_payment_method_list(value):
    """Payment method settings must be a JSON list of labels."""
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


# --- Configuration Loader Class ---

class CalculationConfig:
    """
    A singleton class to load and hold the admin-tunable business rules from
    the database. Editing a setting resets _instance so the next read reloads.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            logging.info("Creating and loading CalculationConfig instance...")
            instance = super(CalculationConfig, cls).__new__(cls)
            try:
                instance.load_settings()
                logging.info("CalculationConfig loaded successfully.")
            except Exception as e:
                logging.error(f"Could not load settings from database. Error: {e}", exc_info=True)
                raise
            cls._instance = instance
        return cls._instance

    def load_settings(self):
        """Loads all settings from the AppSetting table into attributes."""
        settings = AppSetting.query.all()
        settings_dict = {s.key: s.get_value() for s in settings}

        self.AVISTA_LOW_MARGIN_RULE_ENABLED = settings_dict.get('AVISTA_LOW_MARGIN_RULE_ENABLED', True)
        self.AVISTA_LOW_MARGIN_COMMISSION_PCT = settings_dict.get('AVISTA_LOW_MARGIN_COMMISSION_PCT', 25.0)
        self.AVISTA_LOW_MARGIN_PAYMENT_METHODS = settings_dict.get('AVISTA_LOW_MARGIN_PAYMENT_METHODS', ['À vista / Antecipado'])
        self.PAYMENT_METHODS = settings_dict.get('PAYMENT_METHODS', DEFAULT_PAYMENT_METHODS)
        if not is_payment_method_list(self.PAYMENT_METHODS):
            logging.error(f"Setting PAYMENT_METHODS is not a list of labels ({self.PAYMENT_METHODS!r}); using the defaults.")
            self.PAYMENT_METHODS = list(DEFAULT_PAYMENT_METHODS)

    def avista_rule_config(self):
        """
        The à vista low-margin rule in the shape apply_avista_low_margin_rule reads.
        A payment list that is not a list of labels switches the rule off; only
        an explicit empty list admits every payment method.
        """
        methods = self.AVISTA_LOW_MARGIN_PAYMENT_METHODS
        if not is_payment_method_list(methods):
            logging.error(f"Setting AVISTA_LOW_MARGIN_PAYMENT_METHODS is not a list of labels ({methods!r}); "
                          "the à vista low-margin rule is disabled.")
            return {'enabled': False, 'commission_pct': self.AVISTA_LOW_MARGIN_COMMISSION_PCT,
                    'payment_types_allowed': []}
        return {
            'enabled': bool(self.AVISTA_LOW_MARGIN_RULE_ENABLED),
            'commission_pct': self.AVISTA_LOW_MARGIN_COMMISSION_PCT,
            'payment_types_allowed': list(methods),
        }

    @classmethod
    def reset(cls):
        cls._instance = None


# --- Commission Tables ---

def get_stored_table(product_type):
    """Active tiers of a product type as CommissionRule objects, sorted by min."""
    rows = CommissionTier.query.filter_by(product_type=product_type, is_active=True).all()
    return rules_from_documents([row.to_document() for row in rows])

def save_commission_rules(product_type, rules):
    """
    Replaces the active table of a product type. Previous rows are kept but
    deactivated; the new rows share the next version number.
    """
    previous = CommissionTier.query.filter_by(product_type=product_type, is_active=True).all()
    last_version = db.session.query(db.func.max(CommissionTier.version)) \
        .filter(CommissionTier.product_type == product_type).scalar() or 0
    for row in previous:
        row.is_active = False

    new_rows = []
    for rule in rules:
        row = CommissionTier(
            product_type=product_type,
            min_percent=rule.min_percent,
            max_percent=rule.max_percent,
            rate=float(rule.commission_rate),
            is_active=True,
            version=last_version + 1
        )
        db.session.add(row)
        new_rows.append(row)

    db.session.commit()
    logging.info(f"Commission table [{product_type}] updated to version {last_version + 1} "
                 f"({len(new_rows)} tiers, {len(previous)} deactivated).")
    return new_rows


# --- Campaigns ---

def get_campaigns_by_company(company_id):
    campaigns = CommissionCampaign.query.filter_by(company_id=company_id) \
        .order_by(CommissionCampaign.start_month.desc()).all()
    logging.info(f"Campaigns: {len(campaigns)} loaded for company {company_id}.")
    return campaigns

def save_campaign(campaign):
    db.session.add(campaign)
    db.session.commit()
    logging.info(f"Campaigns: campaign {campaign.id} saved for company {campaign.company_id}.")
    return campaign

def toggle_campaign_active(campaign, active):
    campaign.active = bool(active)
    save_campaign(campaign)
    logging.info(f"Campaigns: campaign {campaign.id} active={campaign.active}.")
    return campaign


# --- Users and Sales ---

def resolve_company_id(user):
    """A user's tenant; users without a company form their own."""
    return str(user.company_id) if user.company_id else user.uid

def get_user_by_uid(uid):
    return User.query.filter_by(uid=uid).first()

def get_stored_sales(user_id):
    return Sale.query.filter_by(user_id=user_id, deleted=False) \
        .order_by(Sale.created_at.desc()).all()

def create_sale(user, data):
    """
    Records a sale with its base commission resolved from the active table
    of its product type. Campaign overlays are applied at read time.

    Args:
        user (User): The salesperson.
        data (dict): Sale fields (client, product_type, quantity, value_proposed,
            value_sold, margin_percent, payment_method, date).

    Returns:
        Sale: The sale, added to the session; the caller commits.
    """
    product_type = data.get('product_type') or 'BASICA'
    # a missing margin counts as 0, both for the tier lookup and on the row
    margin = data.get('margin_percent') or 0
    rules = get_stored_table(product_type)
    base = compute_commission_values(data.get('quantity'), data.get('value_proposed'), margin, rules)
    sale = Sale(
        user_id=user.uid,
        client=data['client'],
        product_type=product_type,
        status=data.get('status') or 'FATURADO',
        quantity=data.get('quantity') or 0,
        value_proposed=data.get('value_proposed') or 0,
        value_sold=data.get('value_sold') or 0,
        margin_percent=margin,
        payment_method=data.get('payment_method'),
        date=data.get('date'),
        commission_base_total=base['commission_base'],
        commission_value_total=base['commission_value'],
        commission_rate_used=base['rate_used']
    )
    db.session.add(sale)
    return sale
