import logging
import os
from flask import Flask, request, session
from flask_babel import Babel
from .models import db
from .changefeed import ChangeFeed
from .settings_store import CostRateSettingsStore

change_feed = ChangeFeed()


def get_locale():
    selected_locale = request.args.get('lang', session.get('lang', 'ja'))
    return selected_locale


def create_app(test_config=None):
    app = Flask(__name__)

    # Load configurations
    app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv("DATABASE_URL", "sqlite:///costcalc.db")
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # Secret key for session management
    app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    app.config['CURRENCY_SYMBOL'] = os.getenv('CURRENCY_SYMBOL', '¥')

    app.config['BABEL_DEFAULT_LOCALE'] = 'ja'
    app.config['BABEL_SUPPORTED_LOCALES'] = ['ja', 'en']
    app.config['BABEL_TRANSLATION_DIRECTORIES'] = '../translations'

    # Use /images as the persistent volume for menu photos (production)
    # or /tmp/images for local development
    if os.path.exists('/images'):
        app.config['UPLOAD_FOLDER'] = '/images'
    else:
        app.config['UPLOAD_FOLDER'] = '/tmp/images'

    app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max upload size
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')

    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO))

    @app.before_request
    def before_request():
        """Capture language parameter and save to session for persistence across pages"""
        if 'lang' in request.args:
            session['lang'] = request.args.get('lang')

    Babel(app, locale_selector=get_locale)

    # Initialize database
    db.init_app(app)
    change_feed.init_app(app)

    # Register blueprints
    from .routes import materials_blueprint, menus_blueprint, recipes_blueprint, settings_blueprint, admin_blueprint
    app.register_blueprint(materials_blueprint)
    app.register_blueprint(menus_blueprint)
    app.register_blueprint(recipes_blueprint)
    app.register_blueprint(settings_blueprint)
    app.register_blueprint(admin_blueprint)

    with app.app_context():
        db.create_all()

        # Thresholds are read from the database once per request
        store = CostRateSettingsStore()
        app.extensions['cost_rate_settings_store'] = store
        app.logger.info("Cost rate thresholds: %s", store.load())

    return app
