# ==============================================================================
# app/calculator/progress.py
# ------------------------------------------------------------------------------
# Monthly goal tracking for the goal-gated campaign overlay: month keys,
# campaign month ranges and basic-basket volume per salesperson.
# ==============================================================================

import logging
import math
from datetime import date, datetime, timezone
from .fields import read_field

BASIC_PRODUCT_TYPE = 'BASICA'

DATE_FIELDS = ('date', 'completion_date', 'quote_date', 'created_at')
QUANTITY_FIELDS = ('quantity', 'qtd_cestas', 'qtd_cesta', 'quantidade', 'qtde', 'qtd')
GOAL_FIELDS = ('monthly_basic_basket_goal', 'monthly_basic_basket_target')

_warned_missing_goal_target = False
_warned_missing_quantity = False


def is_month_within_range(month, start_month, end_month):
    """Inclusive YYYY-MM range test; any empty bound means not in range."""
    if not month or not start_month or not end_month:
        return False
    return str(start_month) <= str(month) <= str(end_month)

def get_sale_month_key(sale):
    """The YYYY-MM month of a sale, or '' when it carries no usable date."""
    raw = read_field(sale, *DATE_FIELDS)
    if raw is None or raw == '':
        return ''
    if isinstance(raw, (datetime, date)):
        return raw.strftime('%Y-%m')
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        # epoch milliseconds
        return datetime.fromtimestamp(raw / 1000, tz=timezone.utc).strftime('%Y-%m')
    text = str(raw)
    if '-' in text:
        return text[:7]
    return ''

def resolve_sale_quantity(sale):
    global _warned_missing_quantity
    for name in QUANTITY_FIELDS:
        try:
            quantity = float(read_field(sale, name))
        except (TypeError, ValueError):
            continue
        if not math.isnan(quantity) and quantity > 0:
            return quantity
    if not _warned_missing_quantity:
        _warned_missing_quantity = True
        logging.warning("Campaigns: basket quantity not found on sale; counting 0.")
    return 0

def resolve_monthly_basic_basket_target(user):
    global _warned_missing_goal_target
    if user is None:
        return 0
    candidate = read_field(user, *GOAL_FIELDS)
    if candidate is None:
        sales_targets = read_field(user, 'sales_targets', 'targets') or {}
        candidate = sales_targets.get('basic') if isinstance(sales_targets, dict) else None
    if candidate is None:
        if not _warned_missing_goal_target:
            _warned_missing_goal_target = True
            logging.warning("Campaigns: monthly basic-basket goal not found on user.")
        return 0
    try:
        target = float(candidate)
    except (TypeError, ValueError):
        return 0
    return 0 if math.isnan(target) else target

def get_monthly_basic_basket_progress(user_id, month_key, company_id, sales=None, target_override=None):
    """
    Basic-basket volume of a salesperson for one month against their goal.

    Args:
        user_id (str): The salesperson's uid.
        month_key (str): 'YYYY-MM'.
        company_id (str): Tenant of the campaign being evaluated.
        sales (list, optional): Sales to count; the user's stored sales otherwise.
        target_override (float, optional): Goal to use instead of the user's own.

    Returns:
        dict: {'target', 'current', 'hit'}. A zero goal is never hit.
    """
    if sales is None or target_override is None:
        from .store import get_stored_sales, get_user_by_uid
        if sales is None:
            sales = get_stored_sales(user_id)
        if target_override is None:
            target_override = resolve_monthly_basic_basket_target(get_user_by_uid(user_id))

    target = target_override or 0
    current = sum(
        resolve_sale_quantity(sale) for sale in sales
        if read_field(sale, 'user_id') == user_id
        and not read_field(sale, 'deleted', default=False)
        and read_field(sale, 'type', 'product_type') == BASIC_PRODUCT_TYPE
        and get_sale_month_key(sale) == month_key
    )
    logging.debug(f"Goal progress for {user_id} in {month_key} (company {company_id}): {current}/{target}")
    return {'target': target, 'current': current, 'hit': target > 0 and current >= target}
