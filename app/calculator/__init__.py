from .tiers import CommissionRule, compute_commission_values, find_conflicting_rules, rules_from_documents
from .engine import apply_avista_low_margin_rule, apply_campaign_overlay, apply_commission_overlays
from .progress import get_monthly_basic_basket_progress, is_month_within_range
