import logging
import os
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_socketio import SocketIO
from flask_wtf.csrf import CSRFProtect
from werkzeug.exceptions import HTTPException
from config import config

db = SQLAlchemy()
login_manager = LoginManager()
csrf = CSRFProtect()
socketio = SocketIO()


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'message': 'Authentication required'}), 401


def create_app(config_name=None):
    """Application factory"""
    if config_name is None:
        config_name = os.environ.get('FLASK_CONFIG', 'default')

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)
    csrf.init_app(app)
    socketio.init_app(
        app,
        cors_allowed_origins=app.config['CORS_ORIGIN'],
        async_mode=app.config['SOCKETIO_ASYNC_MODE']
    )

    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite:///') and \
            ':memory:' not in app.config['SQLALCHEMY_DATABASE_URI']:
        os.makedirs(os.path.join(os.path.dirname(os.path.dirname(__file__)), 'instance'), exist_ok=True)

    init_services(app)

    # Register blueprints
    from opsboard.routes.main import main_bp
    from opsboard.routes.auth import auth_bp
    from opsboard.routes.ai import ai_bp
    from opsboard.routes.notifications import notifications_bp
    from opsboard.routes.operational import operational_bp
    from opsboard.routes.waste_quality import waste_quality_bp
    from opsboard.routes.executive import executive_bp
    from opsboard.routes.financial import financial_bp
    from opsboard.routes.customer import customer_bp
    from opsboard.routes.improvement import improvement_bp
    from opsboard.routes.job_cards import job_cards_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(ai_bp, url_prefix='/api/ai')
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')
    app.register_blueprint(operational_bp, url_prefix='/api/operational-performance')
    app.register_blueprint(waste_quality_bp, url_prefix='/api/waste-quality')
    app.register_blueprint(executive_bp, url_prefix='/api/executive-summary')
    app.register_blueprint(financial_bp, url_prefix='/api/financial-impact')
    app.register_blueprint(customer_bp, url_prefix='/api/customer-impact')
    app.register_blueprint(improvement_bp, url_prefix='/api/continuous-improvement')
    app.register_blueprint(job_cards_bp, url_prefix='/api/job-cards')

    register_error_handlers(app)

    from opsboard.websocket import register_events
    register_events(socketio)

    # Create database tables
    import opsboard.models  # noqa: F401
    with app.app_context():
        db.create_all()
        if app.config.get('CREATE_DEFAULT_ADMIN'):
            # Create default admin user if not exists
            from opsboard.models.user import User
            if not User.query.filter_by(username='admin').first():
                admin = User(
                    username='admin',
                    email='admin@opsboard.local',
                    role='admin',
                    first_name='System',
                    last_name='Administrator'
                )
                admin.set_password('admin123')  # Change in production!
                db.session.add(admin)
                db.session.commit()
                app.logger.warning('Created default admin user; change its password')

    return app


def configure_logging(app):
    """Apply LOG_LEVEL to the application logger and its children"""
    level = logging.getLevelName(str(app.config.get('LOG_LEVEL', 'INFO')).upper())
    if not isinstance(level, int):
        level = logging.INFO
    app.logger.setLevel(level)


def init_services(app):
    """Construct the per-app insight engine and notification hub"""
    from opsboard.services.insights import InsightEngine, build_enricher
    from opsboard.services.notifications import NotificationHub, SocketIOTransport

    app.extensions['insight_engine'] = InsightEngine(enricher=build_enricher(app.config))
    app.extensions['notification_hub'] = NotificationHub(
        transport=SocketIOTransport(socketio),
        mailbox_limit=app.config.get('NOTIFICATION_MAILBOX_LIMIT'),
        scrap_units_threshold=app.config['MONITOR_SCRAP_UNITS'],
        downtime_ratio_threshold=app.config['MONITOR_DOWNTIME_RATIO'],
        cycle_overrun_ratio=app.config['MONITOR_CYCLE_OVERRUN'],
    )


def register_error_handlers(app):
    """Render every error as {message, error?}"""
    from opsboard.errors import OpsError

    @app.errorhandler(OpsError)
    def handle_ops_error(e):
        if e.status_code >= 500:
            app.logger.error('%s: %s', type(e).__name__, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'message': e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        app.logger.exception('Unhandled error')
        db.session.rollback()
        return jsonify({'message': 'Server error', 'error': str(e)}), 500
