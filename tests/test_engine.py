# tests/test_engine.py

import pytest

from app.calculator.engine import (apply_avista_low_margin_rule, apply_campaign_overlay,
                                   apply_commission_overlays, build_fixed_message,
                                   build_tier_message, format_pct)
from app.calculator.tiers import CommissionRule, compute_commission_values

AVISTA_CONFIG = {
    'enabled': True,
    'commission_pct': 25,
    'payment_types_allowed': ['À vista / Antecipado'],
}

BASE = {'commission_base_total': 1000, 'commission_value_total': 50, 'commission_rate_used': 0.05}


def make_sale(margin, payment='À vista / Antecipado', **extra):
    sale = {'id': 's1', 'user_id': 'u1', 'type': 'BASICA', 'quantity': 1, 'value_proposed': 1000,
            'margin_percent': margin, 'payment_method': payment, 'date': '2025-03-10'}
    sale.update(extra)
    return sale


def meta_campaign(**overrides):
    campaign = {
        'id': 'meta', 'type': 'META_BAIXA_MARGEM', 'active': True,
        'start_month': '2025-01', 'end_month': '2025-12',
        'rules': {'min_margin': 0, 'max_margin_exclusive': 4,
                  'tiers': [{'from': 0, 'to': 2, 'commission_pct': 3},
                            {'from': 2.01, 'to': 3.99, 'commission_pct': 5}]},
    }
    campaign.update(overrides)
    return campaign


def avista_campaign(**overrides):
    campaign = {
        'id': 'avista', 'type': 'AVISTA_BAIXA_MARGEM', 'active': True,
        'start_month': '2025-03', 'end_month': '2025-03',
        'rules': {'min_margin': 0, 'max_margin_exclusive': 4, 'commission_pct': 20,
                  'payment_types_allowed': ['À vista']},
    }
    campaign.update(overrides)
    return campaign


HIT = {'target': 10, 'current': 12, 'hit': True}
MISSED = {'target': 10, 'current': 3, 'hit': False}


# --- À vista low-margin rule ---

def test_margin_four_is_outside_the_low_margin_band():
    assert apply_avista_low_margin_rule(make_sale(4), BASE, AVISTA_CONFIG) is None
    overlay = apply_avista_low_margin_rule(make_sale(3.999), BASE, AVISTA_CONFIG)
    assert overlay is not None
    assert overlay['campaign_tag'] == 'PREMIACAO_AVISTA'


def test_negative_margin_and_disabled_rule_do_not_apply():
    assert apply_avista_low_margin_rule(make_sale(-0.5), BASE, AVISTA_CONFIG) is None
    disabled = dict(AVISTA_CONFIG, enabled=False)
    assert apply_avista_low_margin_rule(make_sale(1), BASE, disabled) is None


def test_payment_method_must_be_allowed():
    assert apply_avista_low_margin_rule(make_sale(1, payment='À prazo'), BASE, AVISTA_CONFIG) is None


def test_empty_allowed_list_admits_every_payment_method():
    config = dict(AVISTA_CONFIG, payment_types_allowed=[])
    assert apply_avista_low_margin_rule(make_sale(1, payment='Boleto'), BASE, config) is not None


def test_missing_commission_pct_is_no_match():
    config = {'enabled': True, 'payment_types_allowed': []}
    assert apply_avista_low_margin_rule(make_sale(1), BASE, config) is None


def test_avista_overlay_fields():
    overlay = apply_avista_low_margin_rule(make_sale(1), BASE, AVISTA_CONFIG)
    assert overlay == {
        'commission_value_total': 250,
        'commission_rate_used': 0.25,
        'campaign_tag': 'PREMIACAO_AVISTA',
        'campaign_label': 'Premiação À Vista',
        'campaign_message': 'Premiação À Vista • 25,00%',
        'campaign_rate_used': 0.25,
        'campaign_color': 'amber',
    }


def test_avista_rule_does_not_mutate_inputs():
    sale, base = make_sale(1), dict(BASE)
    apply_avista_low_margin_rule(sale, base, AVISTA_CONFIG)
    assert sale == make_sale(1)
    assert base == BASE


# --- Campaign overlay ---

def test_meta_campaign_applies_when_goal_is_hit():
    context = {'month': '2025-03', 'campaigns': [meta_campaign()], 'goal_progress': HIT}
    overlay = apply_campaign_overlay(make_sale(3, payment='À prazo'), BASE, context)
    assert overlay['campaign_tag'] == 'PREMIACAO_META'
    assert overlay['campaign_color'] == 'emerald'
    assert overlay['commission_value_total'] == pytest.approx(50)
    assert overlay['campaign_message'] == 'Premiação por Meta • 5,00% (faixa 2,01% - 3,99%)'


def test_meta_campaign_is_gated_by_goal_progress():
    for progress in (MISSED, None, {'hit': 'yes'}):
        context = {'month': '2025-03', 'campaigns': [meta_campaign()], 'goal_progress': progress}
        assert apply_campaign_overlay(make_sale(1), BASE, context) is None


def test_meta_campaign_band_is_exclusive_at_the_top():
    campaign = meta_campaign(rules={'min_margin': 0, 'max_margin_exclusive': 2,
                                    'tiers': [{'from': 0, 'to': 5, 'commission_pct': 3}]})
    context = {'month': '2025-03', 'campaigns': [campaign], 'goal_progress': HIT}
    assert apply_campaign_overlay(make_sale(2), BASE, context) is None
    assert apply_campaign_overlay(make_sale(1.99), BASE, context) is not None


def test_campaign_outside_its_months_or_inactive_is_ignored():
    for campaign in (meta_campaign(start_month='2025-04'), meta_campaign(active=False),
                     meta_campaign(end_month='')):
        context = {'month': '2025-03', 'campaigns': [campaign], 'goal_progress': HIT}
        assert apply_campaign_overlay(make_sale(1), BASE, context) is None


def test_avista_campaign_wins_over_meta_campaign():
    context = {'month': '2025-03', 'campaigns': [meta_campaign(), avista_campaign()], 'goal_progress': HIT}
    overlay = apply_campaign_overlay(make_sale(1), BASE, context)
    assert overlay['campaign_tag'] == 'PREMIACAO_AVISTA'
    assert overlay['commission_value_total'] == pytest.approx(200)


def test_avista_campaign_falls_through_to_meta_when_payment_differs():
    context = {'month': '2025-03', 'campaigns': [avista_campaign(), meta_campaign()],
               'goal_progress': HIT, 'sale_payment_type': 'À prazo'}
    overlay = apply_campaign_overlay(make_sale(1), BASE, context)
    assert overlay['campaign_tag'] == 'PREMIACAO_META'


def test_avista_campaign_accepts_camel_case_rules():
    campaign = avista_campaign(rules={'minMargin': 0, 'maxMarginExclusive': 4, 'commissionPct': 10,
                                      'paymentTypesAllowed': ['Antecipado']})
    context = {'month': '2025-03', 'campaigns': [campaign], 'goal_progress': MISSED}
    assert apply_campaign_overlay(make_sale(2), BASE, context)['commission_rate_used'] == 0.10


def test_malformed_campaign_rules_never_raise():
    broken = [
        avista_campaign(rules={'min_margin': 'x', 'max_margin_exclusive': 4, 'commission_pct': 20}),
        avista_campaign(rules=None),
        meta_campaign(rules={'min_margin': 0, 'max_margin_exclusive': 4, 'tiers': [{'from': 'a'}, None]}),
    ]
    context = {'month': '2025-03', 'campaigns': broken, 'goal_progress': HIT}
    assert apply_campaign_overlay(make_sale(1), BASE, context) is None


def test_campaign_models_are_read_like_dicts(app_with_db):
    from app.models import CommissionCampaign
    campaign = CommissionCampaign(company_id='acme', name='Meta março', type='META_BAIXA_MARGEM',
                                  active=True, start_month='2025-03', end_month='2025-03')
    campaign.rules = meta_campaign()['rules']
    context = {'month': '2025-03', 'campaigns': [campaign], 'goal_progress': HIT}
    assert apply_campaign_overlay(make_sale(1), BASE, context)['campaign_tag'] == 'PREMIACAO_META'


# --- Precedence ---

def test_avista_rule_short_circuits_campaigns():
    # the meta campaign would pay 3%; the à vista rule must win
    context = {'month': '2025-03', 'campaigns': [meta_campaign()], 'goal_progress': HIT}
    overlay = apply_commission_overlays(make_sale(1), BASE, AVISTA_CONFIG, context)
    assert overlay['campaign_tag'] == 'PREMIACAO_AVISTA'
    assert overlay['commission_value_total'] == 250


def test_campaigns_need_a_month_in_context():
    sale = make_sale(1, payment='À prazo')
    context = {'campaigns': [meta_campaign()], 'goal_progress': HIT}
    assert apply_commission_overlays(sale, BASE, AVISTA_CONFIG, context) is None
    assert apply_commission_overlays(sale, BASE, AVISTA_CONFIG) is None


def test_end_to_end_avista_sale():
    rules = [CommissionRule('t1', 0, 2.50, 0.05), CommissionRule('t2', 2.51, 4.00, 0.10),
             CommissionRule('t3', 4.01, None, 0.15)]
    sale = make_sale(1)
    base = compute_commission_values(sale['quantity'], sale['value_proposed'], sale['margin_percent'], rules)
    assert base['commission_value'] == 50

    base_commission = {'commission_base_total': base['commission_base'],
                       'commission_value_total': base['commission_value'],
                       'commission_rate_used': base['rate_used']}
    overlay = apply_commission_overlays(sale, base_commission, AVISTA_CONFIG, {'month': '2025-03'})
    assert overlay['commission_value_total'] == 250
    assert overlay['campaign_tag'] == 'PREMIACAO_AVISTA'


# --- Messages ---

def test_messages_use_pt_br_decimals():
    assert format_pct(2.5) == '2,50'
    assert build_fixed_message('Premiação À Vista', 25) == 'Premiação À Vista • 25,00%'
    assert build_tier_message('Premiação por Meta', 3, 1, 5) == 'Premiação por Meta • 3,00% (faixa 1,00% - 5,00%)'
