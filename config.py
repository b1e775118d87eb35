import os

basedir = os.path.abspath(os.path.dirname(__file__))


def _env_float(name, default):
    value = os.environ.get(name)
    return float(value) if value else default


class Config:
    """Base configuration"""
    OPSBOARD_VERSION = '1.0.0'
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Database
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'opsboard.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'

    # Push channel
    CORS_ORIGIN = os.environ.get('CORS_ORIGIN') or 'http://localhost:3001'
    SOCKETIO_ASYNC_MODE = 'threading'

    # External insight enrichment (both must be set to enable)
    AI_SERVICE_URL = os.environ.get('AI_SERVICE_URL')
    AI_API_KEY = os.environ.get('AI_API_KEY')
    AI_SERVICE_TIMEOUT = _env_float('AI_SERVICE_TIMEOUT', 10.0)  # seconds

    # Simulation
    SCRAP_UNIT_COST = _env_float('SCRAP_UNIT_COST', 50.0)

    # Alert monitor
    ALERT_MONITOR_INTERVAL = _env_float('ALERT_MONITOR_INTERVAL', 300.0)  # 5 minutes
    MONITOR_SCRAP_UNITS = _env_float('MONITOR_SCRAP_UNITS', 50.0)  # per line, last 24h
    MONITOR_DOWNTIME_RATIO = _env_float('MONITOR_DOWNTIME_RATIO', 0.20)
    MONITOR_CYCLE_OVERRUN = _env_float('MONITOR_CYCLE_OVERRUN', 1.30)

    # None keeps every notification until restart
    NOTIFICATION_MAILBOX_LIMIT = int(os.environ['NOTIFICATION_MAILBOX_LIMIT']) \
        if os.environ.get('NOTIFICATION_MAILBOX_LIMIT') else None

    CREATE_DEFAULT_ADMIN = True


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    # In production, ensure SECRET_KEY is set via environment variable


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    WTF_CSRF_ENABLED = False
    AI_SERVICE_URL = None
    AI_API_KEY = None
    NOTIFICATION_MAILBOX_LIMIT = None
    CREATE_DEFAULT_ADMIN = False


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
