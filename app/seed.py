import json
from app import db
from app.models import AppSetting, CommissionTier

DEFAULT_SETTINGS = {
    # key: [value, description, value_type]
    'AVISTA_LOW_MARGIN_RULE_ENABLED': ['true', 'Ativa a premiação à vista para margens entre 0% e 4%', 'bool'],
    'AVISTA_LOW_MARGIN_COMMISSION_PCT': ['25', 'Percentual da premiação à vista sobre a base de comissão (ex: 25 para 25%)', 'float'],
    'AVISTA_LOW_MARGIN_PAYMENT_METHODS': [json.dumps(['À vista / Antecipado'], ensure_ascii=False), 'Formas de pagamento elegíveis à premiação à vista (formato JSON)', 'json'],
    'PAYMENT_METHODS': [json.dumps(['À vista / Antecipado', 'À prazo'], ensure_ascii=False), 'Formas de pagamento disponíveis no cadastro de vendas (formato JSON)', 'json'],
}

DEFAULT_COMMISSION_TIERS = [
    # (product_type, min %, max %, rate)
    ('BASICA', 0, 2.50, 0.05),
    ('BASICA', 2.51, 4.00, 0.10),
    ('BASICA', 4.01, None, 0.15),
    ('NATAL', 0, 3.00, 0.04),
    ('NATAL', 3.01, 6.00, 0.08),
    ('NATAL', 6.01, None, 0.12),
]

def seed_data():
    """Populates the database with default settings and commission tables."""
    for key, data in DEFAULT_SETTINGS.items():
        setting = AppSetting.query.filter_by(key=key).first()
        if not setting:  # Only add if it doesn't exist
            setting = AppSetting(key=key, value=data[0], description=data[1], value_type=data[2])
            db.session.add(setting)
            print(f'Seeding setting: {key}')

    if CommissionTier.query.count() == 0:
        print('Seeding default commission tables...')
        for product_type, min_p, max_p, rate in DEFAULT_COMMISSION_TIERS:
            db.session.add(CommissionTier(product_type=product_type, min_percent=min_p,
                                          max_percent=max_p, rate=rate, is_active=True, version=1))

    db.session.commit()
    print('Seeding complete.')
