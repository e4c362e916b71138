# tests/test_cli.py

import json


def test_seed_is_idempotent(app_with_db):
    from app.models import AppSetting, CommissionTier
    runner = app_with_db.test_cli_runner()
    assert runner.invoke(args=['seed']).exit_code == 0
    assert runner.invoke(args=['seed']).exit_code == 0
    assert AppSetting.query.count() == 4
    assert CommissionTier.query.filter_by(product_type='BASICA').count() == 3


def test_import_rules_replaces_the_table(seeded_app, tmp_path):
    from app.calculator.store import get_stored_table
    path = tmp_path / 'custom.json'
    path.write_text(json.dumps({'id': 'custom', 'tiers': [
        {'minPercent': 0, 'maxPercent': 1.99, 'commissionRate': 0.02},
        {'minPercent': 2, 'maxPercent': None, 'commissionRate': 0.07},
    ]}), encoding='utf-8')

    result = seeded_app.test_cli_runner().invoke(args=['import-rules', str(path), '--product-type', 'CUSTOM'])
    assert result.exit_code == 0
    assert 'Imported 2 tiers into table CUSTOM.' in result.output
    assert [rule.commission_rate for rule in get_stored_table('CUSTOM')] == [0.02, 0.07]


def test_import_rules_refuses_conflicts(seeded_app, tmp_path):
    from app.calculator.store import get_stored_table
    path = tmp_path / 'basica.json'
    path.write_text(json.dumps([
        {'id': 'low', 'min': 0, 'max': 3, 'rate': 0.05},
        {'id': 'high', 'min': 3, 'max': None, 'rate': 0.10},
    ]), encoding='utf-8')

    result = seeded_app.test_cli_runner().invoke(args=['import-rules', str(path)])
    assert result.exit_code != 0
    assert 'low, high' in result.output
    assert len(get_stored_table('BASICA')) == 3
