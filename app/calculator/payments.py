# ==============================================================================
# app/calculator/payments.py
# ------------------------------------------------------------------------------
# Payment-method canonicalisation shared by every overlay that filters on
# payment type. Labels such as "À vista / Antecipado" are compared as tokens:
# uppercase, diacritics stripped, whitespace removed, split on / | , ; and
# also kept whole.
# ==============================================================================

import logging
import re
import unicodedata
from .fields import read_field

_DELIMITERS = re.compile(r'[\\/|,;]+')
_WHITESPACE = re.compile(r'\s+')

PAYMENT_FIELDS = ('payment_type', 'payment_method', 'payment_mode', 'payment_condition',
                  'payment_terms', 'payment', 'paymentType', 'paymentMethod')

_warned_missing_payment_type = False


def strip_diacritics(text):
    decomposed = unicodedata.normalize('NFD', text)
    return ''.join(ch for ch in decomposed if not unicodedata.combining(ch))

def payment_tokens(payment_type):
    """
    Splits a payment label into comparable tokens.

    Example: "À vista / Antecipado" -> ['AVISTA', 'ANTECIPADO', 'AVISTA/ANTECIPADO']
    """
    if not payment_type:
        return []
    normalized = strip_diacritics(str(payment_type).upper())
    tokens = [_WHITESPACE.sub('', token) for token in _DELIMITERS.split(normalized)]
    tokens = [token for token in tokens if token]
    compact = _WHITESPACE.sub('', normalized)
    if compact and compact not in tokens:
        tokens.append(compact)
    return tokens

def allowed_payment_tokens(allowed):
    tokens = set()
    for item in allowed or []:
        if item is None:
            continue
        tokens.update(payment_tokens(item))
    return tokens

def matches_allowed_payment(payment_type, allowed):
    """
    True when any token of payment_type is a token of an allowed entry.

    Allowed entries are split into tokens too, so the match is wider than a
    whole-label comparison: a sale paid "Antecipado" matches an allowed
    "À vista / Antecipado", and so does "PIX; à vista". Labels recorded through
    the API and the import are restricted to the PAYMENT_METHODS setting.
    """
    allowed_tokens = allowed_payment_tokens(allowed)
    return any(token in allowed_tokens for token in payment_tokens(payment_type))

def resolve_sale_payment_type(sale):
    """The raw payment label of a sale, or None (warned once per process)."""
    global _warned_missing_payment_type
    raw = read_field(sale, *PAYMENT_FIELDS)
    if raw is None or not str(raw).strip():
        if not _warned_missing_payment_type:
            _warned_missing_payment_type = True
            logging.warning("Campaigns: sale has no payment method field; payment filters will not match.")
        return None
    return str(raw).strip()
