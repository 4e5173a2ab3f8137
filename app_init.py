"""
Application Initialization Module
Initializes the Flask app with the store, change bus, workflow services and
background polling.
"""
import os
from flask import Flask
from config import get_config
from logging_config import setup_logging
from security import setup_security
from health_checks import register_health_checks
from database.seed import seed_default_crew
from services.accounting_client import AccountingClient
from services.archive_service import ArchiveService
from services.collection_store import create_store
from services.event_bus import ChangeBus, StoreWatcher
from services.notification_service import CrewFeedRegistry, CrewNotificationService
from services.quickbooks_bridge import QuickBooksBridge
from services.reminder_service import YearlyReminderService
from services.scheduler import BackgroundScheduler, init_scheduler
from services.workflow_service import WorkflowService
import logging

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Everything the blueprints need, built once per app"""

    def __init__(self, store, bus, watcher, workflow, notifications, feeds,
                 archive, reminders, bridge, accounting):
        self.store = store
        self.bus = bus
        self.watcher = watcher
        self.workflow = workflow
        self.notifications = notifications
        self.feeds = feeds
        self.archive = archive
        self.reminders = reminders
        self.bridge = bridge
        self.accounting = accounting
        self.scheduler = None

    def shutdown(self):
        if self.scheduler:
            self.scheduler.stop()
        self.feeds.close()
        self.workflow.detach()


def create_app(config_class=None):
    """
    Application factory that creates and configures Flask app with all infrastructure

    Args:
        config_class: Configuration class (defaults to get_config())

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    app.config.from_object(config_class or get_config())

    setup_logging(app)

    logger.info("=" * 60)
    logger.info("🚀 Initializing K&R Powerwashing Back Office")
    logger.info("=" * 60)
    logger.info(f"Environment: {os.environ.get('FLASK_ENV', 'development')}")
    logger.info(f"Debug mode: {app.debug}")

    # Setup security (CORS, headers, error handlers)
    setup_security(app, app.config)

    create_required_directories(app)

    from app import register_blueprints
    register_blueprints(app)

    services = initialize_services(app)
    app.config['SERVICES'] = services

    register_health_checks(app)

    if app.config.get('SEED_DEFAULT_CREW'):
        seed_default_crew(services.store, services.bus)

    if app.config.get('RESYNC_ON_STARTUP'):
        result = services.workflow.resynchronize()
        if not result.get('success'):
            logger.error(f"Startup resynchronization failed: {result.get('error')}")

    if app.config.get('ENABLE_SCHEDULER'):
        services.scheduler = init_scheduler(
            services.watcher,
            services.feeds,
            poll_interval=app.config['CREW_POLL_INTERVAL_SECONDS'],
            scheduler=BackgroundScheduler(),
        )

    logger.info("✅ Application initialization complete")
    logger.info("=" * 60)

    return app


def create_required_directories(app):
    """
    Create all required application directories

    Args:
        app: Flask application instance
    """
    directories = [app.config['UPLOAD_FOLDER']]
    if not app.config.get('DATABASE_URL'):
        directories.append(app.config['STORE_FOLDER'])

    for directory in directories:
        try:
            os.makedirs(directory, exist_ok=True)
            logger.debug(f"Directory ensured: {directory}")
        except OSError as e:
            logger.error(f"Failed to create directory {directory}: {e}")

    logger.info(f"✅ Created {len(directories)} required directories")


def initialize_services(app):
    """
    Build the store, bus and every service on top of them

    Args:
        app: Flask application instance

    Returns:
        ServiceContainer instance
    """
    store = create_store(app.config)
    bus = ChangeBus()
    watcher = StoreWatcher(store, bus)

    notifications = CrewNotificationService(store, bus)
    workflow = WorkflowService(
        store, bus,
        notifications=notifications,
        invoice_due_days=app.config['INVOICE_DUE_DAYS'],
    )
    workflow.attach()

    bridge = QuickBooksBridge(store, app.config)
    accounting = AccountingClient(
        bridge=bridge,
        base_url=app.config.get('ACCOUNTING_BRIDGE_URL'),
        timeout=app.config['ACCOUNTING_TIMEOUT'],
        api_key=app.config.get('BRIDGE_API_KEY'),
    )

    if bridge.credentials_configured():
        logger.info("✅ QuickBooks credentials configured")
    else:
        logger.warning("⚠️  QuickBooks credentials not configured - invoices sync in demo mode")

    return ServiceContainer(
        store=store,
        bus=bus,
        watcher=watcher,
        workflow=workflow,
        notifications=notifications,
        feeds=CrewFeedRegistry(notifications),
        archive=ArchiveService(store, bus),
        reminders=YearlyReminderService(
            store, bus, workflow,
            window_days=app.config['YEARLY_REMINDER_WINDOW_DAYS'],
        ),
        bridge=bridge,
        accounting=accounting,
    )


def get_services(app):
    """
    Get the service container from the app

    Args:
        app: Flask application instance

    Returns:
        ServiceContainer instance
    """
    return app.config['SERVICES']
