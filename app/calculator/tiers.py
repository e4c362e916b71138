# ==============================================================================
# app/calculator/tiers.py
# ------------------------------------------------------------------------------
# Margin-band commission resolver.
#
# LOCKED: the sha256 of this file is pinned in commission.lock and checked by
# `flask verify-commission-lock`. The signatures and the zero-on-conflict
# result of compute_commission_values must not change.
# ==============================================================================

import logging
import math


class CommissionRule:
    """
    One band of a commission table: margins in [min_percent, max_percent]
    earn commission_rate (a fraction). None bounds are open-ended.
    """

    def __init__(self, id, min_percent, max_percent, commission_rate, is_active=True):
        self.id = id
        self.min_percent = min_percent
        self.max_percent = max_percent
        self.commission_rate = commission_rate
        self.is_active = is_active

    def to_dict(self):
        return {
            'id': self.id,
            'min_percent': self.min_percent,
            'max_percent': self.max_percent,
            'commission_rate': self.commission_rate,
            'is_active': self.is_active,
        }

    def __repr__(self):
        return f'<CommissionRule {self.id}: ({self.min_percent}-{self.max_percent}) @ {self.commission_rate}>'


# --- Helper Functions ---

def _ensure_number(value, default=0.0):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return default if math.isnan(number) else number

def _first_present(document, *keys):
    for key in keys:
        if document.get(key) is not None:
            return document[key]
    return None

def _optional_bound(value):
    return None if value is None else _ensure_number(value)

def _bounds(rule):
    min_value = -math.inf if rule.min_percent is None else rule.min_percent
    max_value = math.inf if rule.max_percent is None else rule.max_percent
    return min_value, max_value

def _sorted_bands(rules):
    """(rule, min_value, max_value) triples in ascending min order."""
    bands = [(rule,) + _bounds(rule) for rule in (rules or [])]
    return sorted(bands, key=lambda band: band[1])


# --- Storage Adapter ---

def _rule_from_document(document, rule_id):
    return CommissionRule(
        id=rule_id,
        min_percent=_optional_bound(_first_present(document, 'min', 'minPercent', 'min_percent')),
        max_percent=_optional_bound(_first_present(document, 'max', 'maxPercent', 'max_percent')),
        commission_rate=_ensure_number(_first_present(document, 'rate', 'commissionRate', 'commission_rate')),
        is_active=True
    )

def rules_from_documents(documents):
    """
    Parses stored rule-table documents into CommissionRule objects.

    Two storage shapes are accepted: a flat document per band
    ({'min', 'max', 'rate'}) or a document holding a 'tiers' list of such
    bands. Nested bands get the id '<document id>_<index>'. Documents marked
    inactive are skipped.

    Returns:
        list: CommissionRule objects sorted by min_percent, open-ended first.
    """
    rules = []
    for index, document in enumerate(documents or []):
        if document.get('isActive', document.get('is_active', True)) is False:
            continue
        document_id = document.get('id', index)
        tiers = document.get('tiers')
        if isinstance(tiers, list):
            for tier_index, tier in enumerate(tiers):
                rules.append(_rule_from_document(tier, f"{document_id}_{tier_index}"))
        else:
            rules.append(_rule_from_document(document, document_id))

    rules.sort(key=lambda rule: -math.inf if rule.min_percent is None else rule.min_percent)
    return rules


# --- Resolver ---

def find_conflicting_rules(rules):
    """
    Returns the rules involved in an overlap, in ascending order. A band
    conflicts with its predecessor when its min is <= the predecessor's max,
    so bands sharing a boundary value (2.5 / 2.5) conflict too.
    """
    bands = _sorted_bands(rules)
    conflicting = []
    for previous, current in zip(bands, bands[1:]):
        if current[1] <= previous[2]:
            for rule in (previous[0], current[0]):
                if not any(rule is seen for seen in conflicting):
                    conflicting.append(rule)
    return conflicting

def compute_commission_values(quantity, value_proposed, margin, rules):
    """
    Resolves the base commission of a sale from its margin.

    Args:
        quantity (float): Units sold; falsy counts as 0.
        value_proposed (float): Unit value; falsy counts as 0.
        margin (float): Margin percentage, compared inclusively on both bounds.
        rules (list): CommissionRule objects of one product type.

    Returns:
        dict: {'commission_base', 'commission_value', 'rate_used'}. An
        overlapping table or a margin outside every band yields a zero rate;
        the base is always quantity * value_proposed.
    """
    commission_base = (quantity or 0) * (value_proposed or 0)
    rules_count = len(rules or [])

    if find_conflicting_rules(rules):
        logging.error(
            f"Conflicting commission tiers found (margin={margin}, tiers={rules_count}). "
            "Check the table for duplicated or overlapping bands.",
            extra={'margin': margin, 'rules_count': rules_count}
        )
        return {'commission_base': commission_base, 'commission_value': 0, 'rate_used': 0}

    margin_value = _ensure_number(margin, default=math.nan)
    rule = next((band[0] for band in _sorted_bands(rules)
                 if band[1] <= margin_value <= band[2]), None)
    if rule is None:
        logging.warning(
            f"No commission tier found for margin {margin} ({rules_count} tiers).",
            extra={'margin': margin, 'rules_count': rules_count}
        )

    rate_used = _ensure_number(rule.commission_rate, 0) if rule is not None else 0
    return {'commission_base': commission_base, 'commission_value': commission_base * rate_used, 'rate_used': rate_used}
