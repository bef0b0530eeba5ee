import os
import logging
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from .config import CONFIGS, ProdConfig

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()


def create_app(config_name: str | None = None) -> Flask:
    """Application factory with environment based configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)
    os.makedirs(app.instance_path, exist_ok=True)

    # Pick configuration
    env = config_name or os.getenv('ENV') or os.getenv('FLASK_ENV') or 'production'
    app.config.from_object(CONFIGS.get(env, ProdConfig))

    # Initialise logging
    level = logging.DEBUG if app.debug else getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO)
    logging.basicConfig(level=level)

    db.init_app(app)
    migrate.init_app(app, db)

    # Ensure models loaded so tables can be created
    from quotehub import models  # noqa
    with app.app_context():
        db.create_all()

    register_error_handlers(app)

    @app.route('/health')
    def health():
        return jsonify(success=True, data={'status': 'ok'})

    from quotehub.quotes.routes import bp as quotes_bp
    from quotehub.customers.routes import bp as customers_bp
    from quotehub.portal.routes import bp as portal_bp
    from quotehub.settings.routes import bp as settings_bp
    from quotehub.cli import quotehub_cli

    app.register_blueprint(quotes_bp, url_prefix='/quotes')
    app.register_blueprint(customers_bp, url_prefix='/customers')
    app.register_blueprint(portal_bp, url_prefix='/portal')
    app.register_blueprint(settings_bp, url_prefix='/settings')
    app.cli.add_command(quotehub_cli)

    return app


def register_error_handlers(app: Flask) -> None:
    from quotehub.errors import InternalError, PersistenceError, QuoteHubError

    @app.errorhandler(QuoteHubError)
    def domain_error(err):
        if isinstance(err, PersistenceError):
            # callers only learn that the write failed
            logging.error("persistence failure: %s", err)
            err = PersistenceError('The change could not be saved')
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(HTTPException)
    def http_error(err):
        return jsonify(success=False, message=err.description, error=err.name), err.code

    @app.errorhandler(Exception)
    def unexpected_error(err):
        logging.exception("unhandled error: %s", err)
        wrapped = InternalError()
        return jsonify(wrapped.to_dict()), wrapped.status_code
