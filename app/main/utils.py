# ==============================================================================
# app/main/utils.py
# ------------------------------------------------------------------------------
# Shapes engine output for the API: tier labels and monthly aggregation of
# overlaid sales.
# ==============================================================================

from app.calculator.engine import format_pct
from app.calculator.progress import get_sale_month_key

def tier_range_label(rule):
    """Human-readable band of a commission tier, e.g. 'Faixa: 0,00% - 2,50%'."""
    min_str = "-∞" if rule.min_percent is None else f"{format_pct(rule.min_percent)}%"
    max_str = "∞" if rule.max_percent is None else f"{format_pct(rule.max_percent)}%"
    return f"Faixa: {min_str} - {max_str}"

def serialize_rule(rule):
    data = rule.to_dict()
    data['label'] = tier_range_label(rule)
    data['rate_pct'] = rule.commission_rate * 100
    return data

def summarize_sales(rows):
    """
    Aggregates overlaid sale dicts per month: commission base, commission
    before and after overlays, and how many sales each promotion touched.
    """
    months = {}
    for row in rows:
        month_key = get_sale_month_key(row) or 'sem-data'
        month = months.setdefault(month_key, {
            'sales_count': 0,
            'commission_base_total': 0,
            'base_commission_value_total': 0,
            'commission_value_total': 0,
            'overlay_count': 0,
            'by_tag': {}
        })
        final_value = row.get('commission_value_total') or 0
        base_value = row.get('campaign_base_commission_value_total', final_value) or 0

        month['sales_count'] += 1
        month['commission_base_total'] += row.get('commission_base_total') or 0
        month['base_commission_value_total'] += base_value
        month['commission_value_total'] += final_value
        if row.get('campaign_tag'):
            month['overlay_count'] += 1
            month['by_tag'][row['campaign_tag']] = month['by_tag'].get(row['campaign_tag'], 0) + 1

    return {key: months[key] for key in sorted(months)}
