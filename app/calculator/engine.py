# ==============================================================================
# app/calculator/engine.py
# ------------------------------------------------------------------------------
# Promotional overlays applied on top of the base tier commission:
#   - the à vista low-margin rule (global, admin-tunable)
#   - commission campaigns ('AVISTA_BAIXA_MARGEM' flat, 'META_BAIXA_MARGEM'
#     tiered and gated by the monthly goal)
# At most one overlay wins. Every function here is pure and never raises on
# bad rule payloads; a malformed rule simply does not match.
# ==============================================================================

import math
from .fields import read_field
from .payments import matches_allowed_payment, resolve_sale_payment_type
from .progress import is_month_within_range

AVISTA_CAMPAIGN = 'AVISTA_BAIXA_MARGEM'
META_CAMPAIGN = 'META_BAIXA_MARGEM'

TAG_AVISTA = 'PREMIACAO_AVISTA'
TAG_META = 'PREMIACAO_META'
LABEL_AVISTA = 'Premiação À Vista'
LABEL_META = 'Premiação por Meta'
COLOR_AVISTA = 'amber'
COLOR_META = 'emerald'

# The à vista rule only covers margins in [0, 4)
LOW_MARGIN_CEILING = 4


# --- Helper Functions ---

def _to_number(value, default=None):
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return default if math.isnan(number) else number

def _sale_margin(sale):
    raw = read_field(sale, 'margin_percent', 'marginPercent')
    if raw is None:
        return 0.0
    return _to_number(raw, default=math.nan)

def _rule_number(rules, *keys):
    return _to_number(read_field(rules, *keys))

def _campaign_rules(campaign):
    rules = read_field(campaign, 'rules')
    return rules if isinstance(rules, dict) else {}

def format_pct(value):
    """pt-BR percentage: 2 decimals, comma separator."""
    return f"{value:.2f}".replace('.', ',')

def build_fixed_message(label, rate_pct):
    return f"{label} • {format_pct(rate_pct)}%"

def build_tier_message(label, rate_pct, tier_from, tier_to):
    return f"{label} • {format_pct(rate_pct)}% (faixa {format_pct(tier_from)}% - {format_pct(tier_to)}%)"

def _overlay_result(base_commission, commission_pct, tag, label, message, color):
    rate_used = commission_pct / 100
    commission_base_total = _to_number(read_field(base_commission, 'commission_base_total'), 0)
    return {
        'commission_value_total': commission_base_total * rate_used,
        'commission_rate_used': rate_used,
        'campaign_tag': tag,
        'campaign_label': label,
        'campaign_message': message,
        'campaign_rate_used': rate_used,
        'campaign_color': color,
    }

def base_commission_from_sale(sale):
    """The stored base commission of a sale, in the shape the overlays read."""
    return {
        'commission_base_total': read_field(sale, 'commission_base_total', default=0),
        'commission_value_total': read_field(sale, 'commission_value_total', default=0),
        'commission_rate_used': read_field(sale, 'commission_rate_used', default=0),
    }


# --- Overlays ---

def apply_avista_low_margin_rule(sale, base_commission, config):
    """
    The global à vista rule: a flat commission_pct over the commission base
    for margins in [0, 4) paid with an allowed payment method.

    Args:
        sale: Sale row or dict (margin_percent, payment method fields).
        base_commission (dict): {'commission_base_total', ...}.
        config (dict): {'enabled', 'commission_pct', 'payment_types_allowed'}.
            An empty payment list allows every payment method.

    Returns:
        dict or None: The overlay result, or None when the rule does not apply.
    """
    if not read_field(config, 'enabled'):
        return None
    margin = _sale_margin(sale)
    if not 0 <= margin < LOW_MARGIN_CEILING:
        return None

    allowed = read_field(config, 'payment_types_allowed') or []
    if allowed and not matches_allowed_payment(resolve_sale_payment_type(sale), allowed):
        return None

    commission_pct = _rule_number(config, 'commission_pct')
    if commission_pct is None:
        return None
    return _overlay_result(base_commission, commission_pct, TAG_AVISTA, LABEL_AVISTA,
                           build_fixed_message(LABEL_AVISTA, commission_pct), COLOR_AVISTA)

def apply_campaign_overlay(sale, base_commission, context):
    """
    Applies the campaigns running in context['month'] to one sale.

    An à vista campaign is checked first and wins when the payment method is
    allowed and the margin is in [min_margin, max_margin_exclusive). A meta
    campaign is only considered afterwards, and only when
    context['goal_progress']['hit'] is True; its first tier with
    from <= margin <= to sets the rate.

    Args:
        sale: Sale row or dict.
        base_commission (dict): {'commission_base_total', ...}.
        context (dict): {'month', 'campaigns', 'goal_progress',
            'sale_payment_type' (optional, overrides the sale's own)}.

    Returns:
        dict or None: The overlay result, or None when no campaign applies.
    """
    month = read_field(context, 'month')
    campaigns = read_field(context, 'campaigns') or []
    active_campaigns = [
        campaign for campaign in campaigns
        if read_field(campaign, 'active')
        and is_month_within_range(month, read_field(campaign, 'start_month'), read_field(campaign, 'end_month'))
    ]
    if not active_campaigns:
        return None

    margin = _sale_margin(sale)

    avista_campaign = next((c for c in active_campaigns if read_field(c, 'type') == AVISTA_CAMPAIGN), None)
    if avista_campaign is not None:
        if isinstance(context, dict) and 'sale_payment_type' in context:
            payment_type = context['sale_payment_type']
        else:
            payment_type = resolve_sale_payment_type(sale)

        rules = _campaign_rules(avista_campaign)
        min_margin = _rule_number(rules, 'min_margin', 'minMargin')
        max_margin = _rule_number(rules, 'max_margin_exclusive', 'maxMarginExclusive')
        commission_pct = _rule_number(rules, 'commission_pct', 'commissionPct')
        allowed = read_field(rules, 'payment_types_allowed', 'paymentTypesAllowed') or []
        if (None not in (min_margin, max_margin, commission_pct)
                and matches_allowed_payment(payment_type, allowed)
                and min_margin <= margin < max_margin):
            return _overlay_result(base_commission, commission_pct, TAG_AVISTA, LABEL_AVISTA,
                                   build_fixed_message(LABEL_AVISTA, commission_pct), COLOR_AVISTA)

    meta_campaign = next((c for c in active_campaigns if read_field(c, 'type') == META_CAMPAIGN), None)
    goal_progress = read_field(context, 'goal_progress')
    if meta_campaign is None or read_field(goal_progress, 'hit') is not True:
        return None

    rules = _campaign_rules(meta_campaign)
    min_margin = _rule_number(rules, 'min_margin', 'minMargin')
    max_margin = _rule_number(rules, 'max_margin_exclusive', 'maxMarginExclusive')
    if min_margin is None or max_margin is None or not min_margin <= margin < max_margin:
        return None

    for tier in read_field(rules, 'tiers') or []:
        tier_from = _rule_number(tier, 'from')
        tier_to = _rule_number(tier, 'to')
        commission_pct = _rule_number(tier, 'commission_pct', 'commissionPct')
        if None in (tier_from, tier_to, commission_pct):
            continue
        if tier_from <= margin <= tier_to:
            return _overlay_result(base_commission, commission_pct, TAG_META, LABEL_META,
                                   build_tier_message(LABEL_META, commission_pct, tier_from, tier_to),
                                   COLOR_META)
    return None

def apply_commission_overlays(sale, base_commission, avista_config, context=None):
    """
    Picks the overlay that wins for a sale: the à vista low-margin rule
    first, the campaign overlay only when the rule does not apply.
    """
    overlay = apply_avista_low_margin_rule(sale, base_commission, avista_config)
    if overlay is not None:
        return overlay
    if not read_field(context, 'month'):
        return None
    return apply_campaign_overlay(sale, base_commission, context)
