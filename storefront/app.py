import json
import logging
import os

from dotenv import load_dotenv
from flask import Flask, current_app, jsonify
from flask_login import LoginManager

from .currency import CURRENCY_RATES
from .errors import ConfigurationError, InvalidOrderError, ValidationError
from .models import CatalogNotFound, User, db

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

login_manager = LoginManager()


def _default_config() -> dict:
    return {
        "SECRET_KEY": os.getenv("SECRET_KEY", "dev-secret-change-me"),
        "SQLALCHEMY_DATABASE_URI": os.getenv("DATABASE_URL", "sqlite:///" + os.path.join(BASE_DIR, "storefront.db")),
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        "DEFAULT_MARKET": os.getenv("DEFAULT_MARKET", "lb"),
        "DELIVERY_FEE": os.getenv("DELIVERY_FEE", "0"),
        "MANUAL_ORDER_DELIVERY_FEE": os.getenv("MANUAL_ORDER_DELIVERY_FEE", "50"),
        "CURRENCY_RATES": os.getenv("CURRENCY_RATES"),
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
    }


def currency_rates(app=None) -> dict:
    """Built-in rate table with any CURRENCY_RATES overrides (dict or JSON string) applied."""
    app = app or current_app
    rates = dict(CURRENCY_RATES)
    override = app.config.get("CURRENCY_RATES")
    if isinstance(override, str) and override.strip():
        try:
            override = json.loads(override)
        except ValueError:
            raise ConfigurationError("CURRENCY_RATES is not valid JSON")
    if override:
        rates.update({str(k).upper(): v for k, v in dict(override).items()})
    return rates


# -------------------- Auth --------------------
@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"ok": False, "error": "Login required"}), 401


# -------------------- Error mapping --------------------
def _register_error_handlers(app: Flask):
    @app.errorhandler(ValidationError)
    def _validation(e):
        return jsonify({"ok": False, "error": str(e)}), 400

    @app.errorhandler(InvalidOrderError)
    def _invalid_order(e):
        return jsonify({"ok": False, "error": str(e)}), 422

    @app.errorhandler(CatalogNotFound)
    def _not_found(e):
        return jsonify({"ok": False, "error": str(e.args[0] if e.args else e)}), 404

    @app.errorhandler(ConfigurationError)
    def _configuration(e):
        app.logger.exception("Configuration error")
        return jsonify({"ok": False, "error": "Store configuration error"}), 500


def create_app(config: dict | None = None) -> Flask:
    load_dotenv()

    app = Flask(__name__)
    app.config.update(_default_config())
    if config:
        if "DATABASE_URL" in config:
            app.config["SQLALCHEMY_DATABASE_URI"] = config["DATABASE_URL"]
        app.config.update(config)

    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))

    db.init_app(app)
    login_manager.init_app(app)

    from .shop_api import shop_api
    from .admin_api import admin_api
    app.register_blueprint(shop_api)
    app.register_blueprint(admin_api)

    _register_error_handlers(app)

    with app.app_context():
        db.create_all()

    return app


if __name__ == "__main__":
    # python -m storefront.app
    create_app().run(debug=True)
