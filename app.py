# app.py
# Flask application built with the Application Factory pattern

import logging
import os

from flask import Flask, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from config import Config
from errors import JudgingError
from extensions import db, migrate

# Models must be imported here so Migrate can see every table
from models import User, Team, Member, Criterion, Round, RoundCriterion, Score

logger = logging.getLogger(__name__)


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    app.logger.setLevel(level)


def _error(message, status):
    return jsonify({'success': False, 'message': message}), status


def register_error_handlers(app):
    @app.errorhandler(JudgingError)
    def handle_judging_error(error):
        # Drop half-applied changes from the rejected request
        db.session.rollback()
        if error.status_code >= 500:
            logger.error('%s: %s', type(error).__name__, error.message)
        else:
            logger.warning('%s: %s', type(error).__name__, error.message)
        return _error(error.message, error.status_code)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(error):
        db.session.rollback()
        logger.warning('Integrity error: %s', error.orig)
        return _error('Duplicate entry or invalid reference', 409)

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return _error(error.description, error.code)

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        db.session.rollback()
        logger.exception('Unhandled error')
        return _error('Internal Server Error', 500)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    os.makedirs(app.instance_path, exist_ok=True)

    configure_logging(app)

    # --- Extensions ---
    db.init_app(app)
    migrate.init_app(app, db)

    # --- Blueprints ---
    from routes.auth import auth_bp
    from routes.main import main_bp
    from routes.admin import admin_bp
    from routes.assignment import assignment_bp
    from routes.scores import scores_bp
    from routes.results import results_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(main_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(assignment_bp)
    app.register_blueprint(scores_bp)
    app.register_blueprint(results_bp)

    register_error_handlers(app)

    @app.cli.command('seed')
    def seed():
        """Replace the database contents with the demo data set."""
        from seed_data import seed_demo_data
        db.create_all()
        seed_demo_data()

    @app.route('/api/health')
    def health():
        return jsonify({'success': True, 'message': 'Server is running'})

    return app
