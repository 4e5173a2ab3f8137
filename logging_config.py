"""
Centralized Logging Configuration
Console output plus a rotating log file for the back office and its cascades
"""
import logging
import logging.handlers
from pathlib import Path

NOISY_LOGGERS = ('werkzeug', 'urllib3', 'requests_oauthlib', 'sqlalchemy.engine')


def setup_logging(app):
    """
    Setup application-wide logging with file rotation and console output

    Args:
        app: Flask application instance

    Returns:
        The configured root logger
    """
    log_level = getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO)
    formatter = logging.Formatter(app.config['LOG_FORMAT'])

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Tests log to the console only
    if not app.config.get('TESTING'):
        log_dir = Path(app.config.get('LOG_DIR', 'logs'))
        log_dir.mkdir(exist_ok=True)
        log_path = log_dir / app.config['LOG_FILE']

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        app.logger.info(f"Log file: {log_path}")

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    app.logger.info(f"Logging initialized at {logging.getLevelName(log_level)} level")

    return root_logger
