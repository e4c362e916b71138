# ==============================================================================
# app/__init__.py
# ------------------------------------------------------------------------------
# Application factory for creating and configuring the Flask app instance.
# ==============================================================================

import os
import json
import logging
import click
from flask import Flask
from config import Config
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Initialize extensions globally to be accessible by other modules
db = SQLAlchemy()
migrate = Migrate()

def create_app(config_class=Config):
    """
    Application factory function. Creates and configures the Flask application.

    Args:
        config_class (class): The configuration class to use.

    Returns:
        Flask: The configured Flask application instance.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_class)

    # Configure logging
    logging.basicConfig(level=logging.INFO,
                        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')

    # Ensure the instance folder exists for the SQLite database and uploads
    os.makedirs(app.instance_path, exist_ok=True)

    # Initialize extensions with the application instance
    db.init_app(app)
    migrate.init_app(app, db)

    # Register blueprints with the application
    from app.main import bp as main_bp
    app.register_blueprint(main_bp)

    @app.cli.command("seed")
    def seed():
        """Seeds the database with default settings and commission tables."""
        from app.seed import seed_data
        seed_data()
        app.logger.info("Database has been seeded with default values.")

    @app.cli.command("import-rules")
    @click.argument('path', type=click.Path(exists=True, dir_okay=False))
    @click.option('--product-type', default='BASICA', show_default=True,
                  help='Product type whose commission table is replaced.')
    def import_rules(path, product_type):
        """Replaces a commission table from a JSON file of rule documents."""
        from app.calculator.store import save_commission_rules
        from app.calculator.tiers import find_conflicting_rules, rules_from_documents

        with open(path, encoding='utf-8') as fh:
            documents = json.load(fh)
        if isinstance(documents, dict):
            documents = [documents]

        rules = rules_from_documents(documents)
        conflicts = find_conflicting_rules(rules)
        if conflicts:
            raise click.ClickException(
                f"Conflicting tiers, nothing saved: {', '.join(str(r.id) for r in conflicts)}")
        save_commission_rules(product_type, rules)
        click.echo(f"Imported {len(rules)} tiers into table {product_type}.")

    @app.cli.command("verify-commission-lock")
    def verify_commission_lock():
        """Fails when app/calculator/tiers.py no longer matches commission.lock."""
        from app.calculator.lock import CommissionLockError, verify_lock
        try:
            digest = verify_lock(app.config['COMMISSION_LOCK_PATH'])
        except CommissionLockError as e:
            raise click.ClickException(f"Commission engine is locked; do not modify. {e}")
        click.echo(f"[commission-lock] OK {digest}")

    app.logger.info('Gestor360 commission engine startup complete')

    return app
