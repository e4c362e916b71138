# ==============================================================================
# app/main/routes.py
# ------------------------------------------------------------------------------
# JSON API of the back office: admin session, commission tables, campaigns,
# settings, salespeople and their sales (recorded, imported and listed with
# campaign overlays applied).
# ==============================================================================

import os
import json
from functools import wraps
from flask import abort, current_app, jsonify, request, session
from flask_wtf.csrf import generate_csrf
from werkzeug.utils import secure_filename
from sqlalchemy.exc import IntegrityError

from app import db
from app.main import bp
from app.models import PRODUCT_TYPES, AppSetting, CommissionCampaign, User
from app.calculator.batch import apply_overlays_to_sales, run_campaign_simulation
from app.calculator.schema import SALES_SHEET
from app.calculator.store import (CalculationConfig, create_sale, get_campaigns_by_company,
                                  get_stored_sales, get_stored_table, is_payment_method_list,
                                  resolve_company_id, save_campaign, save_commission_rules,
                                  toggle_campaign_active)
from app.calculator.tiers import find_conflicting_rules, rules_from_documents
from app.calculator.validator import extract_sales_rows, validate_excel_file
from app.main.forms import (AdminLoginForm, AppSettingForm, CampaignForm, RuleTableForm,
                            SaleForm, SimulationForm, UserForm)
from app.main.utils import serialize_rule, summarize_sales

PAYMENT_LIST_SETTINGS = ('AVISTA_LOW_MARGIN_PAYMENT_METHODS', 'PAYMENT_METHODS')

# --- Helper Functions ---

def allowed_file(filename):
    """Checks if the file extension is allowed based on the app config."""
    return '.' in filename and \
           os.path.splitext(filename)[1].lower() in current_app.config['ALLOWED_EXTENSIONS']

def admin_required(f):
    """Decorator to protect admin routes with session-based authentication."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not session.get('admin_logged_in'):
            return jsonify({'error': 'Acesso restrito ao painel administrativo.'}), 401
        return f(*args, **kwargs)
    return decorated_function

def form_errors(form):
    return jsonify({'errors': form.errors}), 400

def posted_fields():
    return request.get_json(silent=True) or request.form

def get_user_or_404(username):
    return User.query.filter_by(username=username).first_or_404()

def check_product_type(product_type):
    if product_type not in PRODUCT_TYPES:
        abort(404)

def serialize_user(user):
    return {
        'uid': user.uid, 'username': user.username, 'name': user.name,
        'company_id': user.company_id,
        'monthly_basic_basket_goal': user.monthly_basic_basket_goal
    }

# --- Admin Session ---

@bp.route('/admin/csrf-token')
def csrf_token():
    return jsonify({'csrf_token': generate_csrf()})

@bp.route('/admin/login', methods=['POST'])
def admin_login():
    """Handles admin login."""
    form = AdminLoginForm()
    if not form.validate_on_submit():
        return form_errors(form)
    if form.password.data != current_app.config.get('ADMIN_PASSWORD'):
        current_app.logger.warning("Admin login refused: wrong password.")
        return jsonify({'error': 'Senha inválida.'}), 401
    session['admin_logged_in'] = True
    return jsonify({'ok': True})

@bp.route('/admin/logout')
def admin_logout():
    session.pop('admin_logged_in', None)
    return jsonify({'ok': True})

# --- Commission Tables ---

@bp.route('/admin/rules/<product_type>')
@admin_required
def list_rules(product_type):
    check_product_type(product_type)
    rules = get_stored_table(product_type)
    return jsonify({
        'product_type': product_type,
        'rules': [serialize_rule(rule) for rule in rules],
        'conflicts': [rule.id for rule in find_conflicting_rules(rules)]
    })

@bp.route('/admin/rules/<product_type>', methods=['POST'])
@admin_required
def replace_rules(product_type):
    """Replaces a commission table. Overlapping bands are refused, nothing is saved."""
    check_product_type(product_type)
    form = RuleTableForm()
    if not form.validate_on_submit():
        return form_errors(form)

    rules = rules_from_documents(form.documents.data)
    if not rules:
        return jsonify({'errors': {'documents': ['Nenhuma faixa ativa informada.']}}), 400
    conflicts = find_conflicting_rules(rules)
    if conflicts:
        current_app.logger.warning(f"Commission table [{product_type}] refused: overlapping tiers {[r.id for r in conflicts]}")
        return jsonify({
            'error': 'Faixas de comissão conflitantes. Verifique duplicidades ou sobreposição.',
            'conflicts': [rule.id for rule in conflicts]
        }), 400

    save_commission_rules(product_type, rules)
    saved = get_stored_table(product_type)
    return jsonify({'product_type': product_type, 'rules': [serialize_rule(rule) for rule in saved]}), 201

# --- Campaigns ---

@bp.route('/admin/campaigns')
@admin_required
def list_campaigns():
    company_id = request.args.get('company_id')
    if not company_id:
        return jsonify({'errors': {'company_id': ['Informe a empresa.']}}), 400
    return jsonify({'campaigns': [c.to_dict() for c in get_campaigns_by_company(company_id)]})

def _fill_campaign(campaign, form):
    campaign.name = form.name.data.strip()
    campaign.company_id = form.company_id.data.strip()
    campaign.type = form.type.data
    campaign.start_month = form.start_month.data
    campaign.end_month = form.end_month.data
    if 'active' in posted_fields():
        campaign.active = form.active.data
    elif campaign.active is None:
        campaign.active = True
    campaign.rules = form.to_rules()

@bp.route('/admin/campaigns', methods=['POST'])
@admin_required
def add_campaign():
    form = CampaignForm()
    if not form.validate_on_submit():
        return form_errors(form)
    campaign = CommissionCampaign()
    _fill_campaign(campaign, form)
    save_campaign(campaign)
    return jsonify(campaign.to_dict()), 201

@bp.route('/admin/campaigns/<campaign_id>', methods=['POST'])
@admin_required
def edit_campaign(campaign_id):
    campaign = db.get_or_404(CommissionCampaign, campaign_id)
    form = CampaignForm()
    if not form.validate_on_submit():
        return form_errors(form)
    _fill_campaign(campaign, form)
    save_campaign(campaign)
    return jsonify(campaign.to_dict())

@bp.route('/admin/campaigns/<campaign_id>/toggle', methods=['POST'])
@admin_required
def toggle_campaign(campaign_id):
    campaign = db.get_or_404(CommissionCampaign, campaign_id)
    toggle_campaign_active(campaign, not campaign.active)
    return jsonify(campaign.to_dict())

@bp.route('/admin/campaigns/simulate', methods=['POST'])
@admin_required
def simulate_campaigns():
    """Shows which promotion would win for three sample sales of a salesperson this month."""
    form = SimulationForm()
    if not form.validate_on_submit():
        return form_errors(form)
    user = get_user_or_404(form.username.data)
    campaigns = get_campaigns_by_company(resolve_company_id(user))
    result = run_campaign_simulation(user, campaigns, CalculationConfig().avista_rule_config())
    return jsonify(result)

# --- Settings ---

@bp.route('/admin/settings')
@admin_required
def admin_settings():
    settings = AppSetting.query.order_by(AppSetting.key).all()
    return jsonify({'settings': [
        {'id': s.id, 'key': s.key, 'value': s.get_value(), 'value_type': s.value_type, 'description': s.description}
        for s in settings
    ]})

@bp.route('/admin/setting/<int:setting_id>', methods=['POST'])
@admin_required
def edit_setting(setting_id):
    setting = db.get_or_404(AppSetting, setting_id)
    form = AppSettingForm()
    if not form.validate_on_submit():
        return form_errors(form)

    new_value = form.value.data
    if not isinstance(new_value, str):
        new_value = json.dumps(new_value, ensure_ascii=False)
    try:
        if setting.value_type == 'json':
            parsed = json.loads(new_value)
            if setting.key in PAYMENT_LIST_SETTINGS and not is_payment_method_list(parsed):
                return jsonify({'errors': {'value': ['Informe uma lista JSON de formas de pagamento, ex: ["PIX"].']}}), 400
            new_value = json.dumps(parsed, ensure_ascii=False)
        elif setting.value_type == 'float':
            float(new_value)
        elif setting.value_type == 'int':
            int(new_value)
    except ValueError:
        return jsonify({'errors': {'value': [f'Valor inválido para um ajuste do tipo {setting.value_type}.']}}), 400

    setting.value = new_value
    db.session.commit()
    CalculationConfig.reset()
    current_app.logger.info(f'Setting "{setting.key}" updated; configuration cache cleared.')
    return jsonify({'id': setting.id, 'key': setting.key, 'value': setting.get_value()})

# --- Users ---

@bp.route('/admin/users')
@admin_required
def manage_users():
    users = User.query.order_by(User.name).all()
    return jsonify({'users': [serialize_user(user) for user in users]})

@bp.route('/admin/users', methods=['POST'])
@admin_required
def add_user():
    form = UserForm()
    if not form.validate_on_submit():
        return form_errors(form)
    try:
        user = User(username=form.username.data, name=form.name.data,
                    company_id=form.company_id.data or None,
                    monthly_basic_basket_goal=form.monthly_basic_basket_goal.data)
        user.set_password(form.password.data)
        db.session.add(user)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'Nome de usuário já existe.'}), 409
    return jsonify(serialize_user(user)), 201

# --- Sales ---

@bp.route('/admin/users/<username>/sales')
@admin_required
def list_sales(username):
    """A salesperson's sales with the winning promotion applied, plus monthly totals."""
    user = get_user_or_404(username)
    sales = get_stored_sales(user.uid)
    campaigns = get_campaigns_by_company(resolve_company_id(user))
    rows = apply_overlays_to_sales(sales, user, campaigns, CalculationConfig().avista_rule_config())
    return jsonify({'sales': rows, 'summary': summarize_sales(rows)})

@bp.route('/admin/users/<username>/sales', methods=['POST'])
@admin_required
def add_sale(username):
    user = get_user_or_404(username)
    form = SaleForm(payment_methods=CalculationConfig().PAYMENT_METHODS)
    if not form.validate_on_submit():
        return form_errors(form)
    data = {field.name: field.data for field in form if field.name != 'csrf_token'}
    sale = create_sale(user, data)
    db.session.commit()
    current_app.logger.info(f"Sale {sale.id} recorded for {user.username}: base={sale.commission_base_total}, "
                            f"rate={sale.commission_rate_used}")
    return jsonify(sale.to_dict()), 201

@bp.route('/admin/users/<username>/sales/import', methods=['POST'])
@admin_required
def import_sales(username):
    """Imports the 'Vendas' sheet of an .xlsx upload for one salesperson."""
    user = get_user_or_404(username)
    if 'file' not in request.files:
        return jsonify({'errors': ['Nenhum arquivo enviado.']}), 400
    file = request.files['file']
    if file.filename == '':
        return jsonify({'errors': ['Nenhum arquivo selecionado.']}), 400
    if not allowed_file(file.filename):
        return jsonify({'errors': ['Tipo de arquivo não permitido. Envie um arquivo .xlsx.']}), 400

    filename = secure_filename(file.filename)
    os.makedirs(current_app.config['UPLOAD_FOLDER'], exist_ok=True)
    filepath = os.path.join(current_app.config['UPLOAD_FOLDER'], filename)
    file.save(filepath)

    try:
        dataframes, errors = validate_excel_file(filepath, payment_methods=CalculationConfig().PAYMENT_METHODS)
    finally:
        os.remove(filepath)
    if errors:
        return jsonify({'errors': errors}), 400

    try:
        rows = extract_sales_rows(dataframes[SALES_SHEET])
        sales = [create_sale(user, row) for row in rows]
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Sales import failed for {user.username}: {e}", exc_info=True)
        return jsonify({'errors': [f'Erro inesperado durante a importação: {e}']}), 500

    current_app.logger.info(f"Imported {len(sales)} sales from {filename} for {user.username}.")
    return jsonify({'imported': len(sales), 'sales': [sale.to_dict() for sale in sales]}), 201
