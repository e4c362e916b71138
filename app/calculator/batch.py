# ==============================================================================
# app/calculator/batch.py
# ------------------------------------------------------------------------------
# Runs the overlay engine over many sales at once: the read-time pass over a
# salesperson's sales, and the campaign simulation used from the settings API.
# ==============================================================================

import logging
from datetime import date
from .engine import apply_commission_overlays, base_commission_from_sale
from .fields import read_field
from .progress import (BASIC_PRODUCT_TYPE, get_monthly_basic_basket_progress,
                       get_sale_month_key, resolve_monthly_basic_basket_target)

SIMULATION_MARGINS = [1, 3, -1]
SIMULATION_PAYMENT_METHOD = 'À vista / Antecipado'


def _sale_dict(sale):
    return sale.to_dict() if hasattr(sale, 'to_dict') else dict(sale)

def _company_of(user):
    return read_field(user, 'company_id') or read_field(user, 'uid')

def apply_overlays_to_sales(sales, user, campaigns, avista_config):
    """
    Applies the winning overlay to each sale of one salesperson.

    Goal progress is computed once per month from the same list of sales.
    Sales with no usable date pass through untouched.

    Returns:
        list: Sale dicts. Overlaid sales carry the campaign_* fields and
        'campaign_base_commission_value_total', the value before the overlay.
    """
    if user is None or not sales:
        logging.info(f"Campaign overlays skipped (user={'yes' if user is not None else 'no'}, sales={len(sales or [])}).")
        return [_sale_dict(sale) for sale in sales or []]

    user_id = read_field(user, 'uid')
    company_id = _company_of(user)
    target = resolve_monthly_basic_basket_target(user)
    months = sorted({get_sale_month_key(sale) for sale in sales} - {''})
    progress_by_month = {
        month: get_monthly_basic_basket_progress(user_id, month, company_id, sales=sales, target_override=target)
        for month in months
    }

    rows = []
    overlaid = 0
    for sale in sales:
        row = _sale_dict(sale)
        month = get_sale_month_key(sale)
        if not month:
            rows.append(row)
            continue

        base_commission = base_commission_from_sale(sale)
        overlay = apply_commission_overlays(sale, base_commission, avista_config, {
            'month': month,
            'campaigns': campaigns,
            'goal_progress': progress_by_month.get(month),
        })
        if overlay is not None:
            row.update(overlay)
            row['campaign_base_commission_value_total'] = base_commission['commission_value_total']
            overlaid += 1
        rows.append(row)

    logging.info(f"Campaign overlays applied to {overlaid} of {len(rows)} sales for {user_id}.")
    return rows

def run_campaign_simulation(user, campaigns, avista_config, today=None):
    """
    Evaluates the overlays against three sample à vista sales (margins 1, 3
    and -1, one basket of 1000 each, base commission 50) so an admin can see
    which promotion would win this month.
    """
    today = today or date.today()
    day = today.isoformat()
    user_id = read_field(user, 'uid')
    target = resolve_monthly_basic_basket_target(user)

    samples = [{
        'id': f"sim-{str(margin).replace('.', '_')}",
        'user_id': user_id,
        'client': 'Simulação Campanha',
        'quantity': 1,
        'type': BASIC_PRODUCT_TYPE,
        'status': 'FATURADO',
        'value_proposed': 1000,
        'value_sold': 1000,
        'margin_percent': margin,
        'date': day,
        'commission_base_total': 1000,
        'commission_value_total': 50,
        'commission_rate_used': 0.05,
        'deleted': False,
        'payment_method': SIMULATION_PAYMENT_METHOD,
    } for margin in SIMULATION_MARGINS]

    month = get_sale_month_key(samples[0])
    progress = get_monthly_basic_basket_progress(user_id, month, _company_of(user),
                                                 sales=samples, target_override=target)

    rows = []
    for sale in samples:
        base_commission = base_commission_from_sale(sale)
        overlay = apply_commission_overlays(sale, base_commission, avista_config, {
            'month': month,
            'campaigns': campaigns,
            'goal_progress': progress,
        })
        rows.append({
            'id': sale['id'],
            'margin': sale['margin_percent'],
            'base_commission_value_total': sale['commission_value_total'],
            'overlay_commission_value_total': overlay['commission_value_total'] if overlay else sale['commission_value_total'],
            'campaign_tag': overlay['campaign_tag'] if overlay else '-',
            'campaign_label': overlay['campaign_label'] if overlay else 'Sem campanha',
            'campaign_message': overlay['campaign_message'] if overlay else 'Sem overlay aplicado.',
            'campaign_color': overlay['campaign_color'] if overlay else 'slate',
            'applied': overlay is not None,
        })

    logging.info(f"Campaign simulation for {user_id}: target={target}, progress={progress}, "
                 f"applied={sum(1 for row in rows if row['applied'])}/{len(rows)}")
    return {'month': month, 'goal_progress': progress, 'rows': rows}
