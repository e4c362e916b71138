# ==============================================================================
# app/main/forms.py
# ------------------------------------------------------------------------------
# Defines input forms using Flask-WTF. The admin API posts JSON; Flask-WTF
# reads JSON bodies as form data, so the same forms validate both.
# ==============================================================================

import json
from flask_wtf import FlaskForm
from wtforms import (BooleanField, Field, FloatField, PasswordField, SelectField,
                     StringField, TextAreaField)
from wtforms.validators import (DataRequired, InputRequired, NumberRange, Optional,
                                Regexp, ValidationError)
from app.models import CAMPAIGN_TYPES, PRODUCT_TYPES

MONTH_PATTERN = r'^\d{4}-(0[1-9]|1[0-2])$'
DATE_PATTERN = r'^\d{4}-\d{2}-\d{2}$'


class JSONListField(Field):
    """
    A list posted either as a JSON array (one value per item) or as a single
    JSON-encoded string from a plain form post.
    """

    def _value(self):
        return json.dumps(self.data or [], ensure_ascii=False)

    def process_formdata(self, valuelist):
        if not valuelist:
            return
        if len(valuelist) == 1 and isinstance(valuelist[0], str) and valuelist[0].lstrip().startswith('['):
            try:
                self.data = json.loads(valuelist[0])
            except json.JSONDecodeError:
                self.data = None
                raise ValueError('JSON inválido.')
        else:
            self.data = list(valuelist)


def _number(value):
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class AppSettingForm(FlaskForm):
    """Form for editing a single application setting."""
    value = TextAreaField('Valor', validators=[DataRequired()])

class AdminLoginForm(FlaskForm):
    """Form for admin login."""
    password = PasswordField('Senha', validators=[InputRequired(message="A senha é obrigatória.")])

class RuleTableForm(FlaskForm):
    """A full commission table: flat {min, max, rate} documents or {tiers: [...]} documents."""
    documents = JSONListField('Faixas', validators=[DataRequired(message="Informe ao menos uma faixa.")])

    def validate_documents(self, field):
        if not all(isinstance(document, dict) for document in field.data):
            raise ValidationError('Cada faixa deve ser um objeto.')

class CampaignForm(FlaskForm):
    """Form for adding or editing a commission campaign."""
    name = StringField('Nome', validators=[DataRequired(message="Informe o nome da campanha.")])
    company_id = StringField('Empresa', validators=[DataRequired(message="Informe a empresa.")])
    type = SelectField('Tipo', choices=[(t, t) for t in CAMPAIGN_TYPES], default='META_BAIXA_MARGEM')
    start_month = StringField('Início', validators=[DataRequired(message="Informe o período da campanha."),
                                                    Regexp(MONTH_PATTERN, message="Use o formato AAAA-MM.")])
    end_month = StringField('Fim', validators=[DataRequired(message="Informe o período da campanha."),
                                               Regexp(MONTH_PATTERN, message="Use o formato AAAA-MM.")])
    active = BooleanField('Ativa', default=True)
    min_margin = FloatField('Margem mínima (%)', default=0, validators=[Optional()])
    max_margin_exclusive = FloatField('Margem máxima exclusiva (%)', default=4, validators=[Optional()])
    commission_pct = FloatField('Premiação (%)', validators=[Optional(), NumberRange(min=0, max=100)])
    payment_types_allowed = JSONListField('Formas de pagamento')
    tiers = JSONListField('Faixas da meta')

    def validate_end_month(self, field):
        if self.start_month.data and field.data and field.data < self.start_month.data:
            raise ValidationError('O fim da campanha deve ser igual ou posterior ao início.')

    def validate_max_margin_exclusive(self, field):
        if self.min_margin.data is not None and field.data is not None and field.data <= self.min_margin.data:
            raise ValidationError('A margem máxima deve ser maior que a mínima.')

    def validate(self, extra_validators=None):
        # Optional() stops the chain on a missing value, so the per-type
        # requirement on commission_pct is checked here
        valid = super().validate(extra_validators)
        if self.type.data == 'AVISTA_BAIXA_MARGEM' and self.commission_pct.data is None:
            self.commission_pct.errors.append('Informe o percentual da premiação.')
            return False
        return valid

    def validate_payment_types_allowed(self, field):
        if self.type.data == 'AVISTA_BAIXA_MARGEM' and not field.data:
            raise ValidationError('Informe ao menos uma forma de pagamento.')

    def validate_tiers(self, field):
        if self.type.data != 'META_BAIXA_MARGEM':
            return
        if not field.data:
            raise ValidationError('Informe ao menos uma faixa.')
        for index, tier in enumerate(field.data, start=1):
            if not isinstance(tier, dict):
                raise ValidationError(f'Faixa {index}: formato inválido.')
            tier_from, tier_to = _number(tier.get('from')), _number(tier.get('to'))
            pct = _number(tier.get('commission_pct'))
            if None in (tier_from, tier_to, pct):
                raise ValidationError(f'Faixa {index}: informe de, até e percentual.')
            if tier_from > tier_to:
                raise ValidationError(f'Faixa {index}: "de" maior que "até".')

    def to_rules(self):
        """The rules payload stored on the campaign."""
        rules = {
            'min_margin': self.min_margin.data if self.min_margin.data is not None else 0,
            'max_margin_exclusive': self.max_margin_exclusive.data if self.max_margin_exclusive.data is not None else 4,
        }
        if self.type.data == 'AVISTA_BAIXA_MARGEM':
            rules['commission_pct'] = self.commission_pct.data
            rules['payment_types_allowed'] = [str(item) for item in self.payment_types_allowed.data]
        else:
            rules['tiers'] = [{'from': _number(t['from']), 'to': _number(t['to']),
                               'commission_pct': _number(t['commission_pct'])} for t in self.tiers.data]
        return rules

class SimulationForm(FlaskForm):
    """Runs the campaign simulation for one salesperson."""
    username = StringField('Usuário', validators=[DataRequired()])

class UserForm(FlaskForm):
    """Form for adding a salesperson."""
    username = StringField('Usuário', validators=[DataRequired(message="Este campo é obrigatório.")])
    name = StringField('Nome completo', validators=[DataRequired(message="Este campo é obrigatório.")])
    password = PasswordField('Senha', validators=[DataRequired(message="Este campo é obrigatório.")])
    company_id = StringField('Empresa', validators=[Optional()])
    monthly_basic_basket_goal = FloatField('Meta mensal de cestas básicas',
                                           validators=[Optional(), NumberRange(min=0)])

class SaleForm(FlaskForm):
    """Form for recording a sale. Margin is informed already computed."""
    client = StringField('Cliente', validators=[DataRequired(message="Informe o cliente.")])
    product_type = SelectField('Tipo', choices=[(t, t) for t in PRODUCT_TYPES], default='BASICA')
    quantity = FloatField('Quantidade', validators=[NumberRange(min=0, message="Quantidade inválida.")])
    value_proposed = FloatField('Valor proposto', validators=[NumberRange(min=0.01, message="Informe o valor proposto.")])
    value_sold = FloatField('Valor vendido', default=0, validators=[Optional()])
    margin_percent = FloatField('Margem (%)', validators=[NumberRange(message="Informe a margem.")])
    payment_method = StringField('Forma de pagamento')
    date = StringField('Data de faturamento', validators=[DataRequired(message="Informe a data."),
                                                          Regexp(DATE_PATTERN, message="Use o formato AAAA-MM-DD.")])

    def __init__(self, *args, payment_methods=None, **kwargs):
        super().__init__(*args, **kwargs)
        self._payment_methods = payment_methods or []

    def validate_payment_method(self, field):
        if not self._payment_methods:
            return
        label = (field.data or '').strip()
        if not label:
            raise ValidationError('Informe a forma de pagamento.')
        if label not in self._payment_methods:
            raise ValidationError(f'Forma de pagamento "{label}" não cadastrada.')
        field.data = label
