"""
FlightGlobe Flask Application.

Main entry point for the web application. Initializes:
- Position ledger (optional - without DATABASE_URL history is not kept)
- OpenSky client, writer, sweeper and trajectory services
- Background ingestion loop
- API routes

Usage:
    python -m flightglobe.app

Or with gunicorn:
    gunicorn 'flightglobe.app:create_app()'
"""

import logging
import os
from typing import Optional

from flask import Flask
from flask_cors import CORS

from flightglobe.config import config, AppConfig
from flightglobe.api import flights_bp, trajectories_bp, settings_bp, cron_bp, status_bp
from flightglobe.ledger import PositionLedger
from flightglobe.services import AppServices, build_services

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)
logger = logging.getLogger(__name__)


def create_app(
    services: Optional[AppServices] = None,
    app_config: Optional[AppConfig] = None,
    start_ingestion: Optional[bool] = None,
) -> Flask:
    """
    Application factory for Flask.

    Args:
        services: Pre-built services (tests inject ledgers and fake clients).
                  Built from configuration if None.
        app_config: Configuration to use instead of the environment singleton.
        start_ingestion: Whether to start the background polling loop.
                         Defaults to INGESTION_ENABLED, and to False when
                         services are injected.

    Returns:
        Configured Flask application instance.
    """
    app_config = app_config or config

    app = Flask(__name__)
    app.config['SECRET_KEY'] = app_config.secret_key
    app.config['CRON_SECRET'] = app_config.cron_secret

    # Enable CORS for API endpoints
    CORS(app, resources={r'/api/*': {'origins': '*'}})

    if services is None:
        logger.info('Initializing position ledger...')
        services = build_services(PositionLedger.from_config())
        if start_ingestion is None:
            start_ingestion = app_config.ingestion.enabled
    app.config['SERVICES'] = services

    app.register_blueprint(flights_bp)
    app.register_blueprint(trajectories_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(cron_bp)
    app.register_blueprint(status_bp)

    if start_ingestion:
        if services.ledger is None:
            logger.warning('Background ingestion disabled: no ledger to write to')
        else:
            services.pipeline.start_background()

    @app.route('/health')
    def health():
        """Simple health check endpoint."""
        return {'status': 'ok'}

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.errorhandler(404)
    def not_found(e):
        return {'error': 'Not found'}, 404

    @app.errorhandler(500)
    def server_error(e):
        logger.error(f'Server error: {e}')
        return {'error': 'Internal server error'}, 500

    return app


def run_development_server():
    """Run the development server."""
    app = create_app()

    port = int(os.environ.get('PORT', 5000))

    logger.info(f'Starting FlightGlobe on http://localhost:{port}')

    try:
        app.run(
            host='0.0.0.0',
            port=port,
            debug=config.debug,
            use_reloader=False,  # Reloader would start a second polling thread
        )
    finally:
        app.config['SERVICES'].shutdown()


if __name__ == '__main__':
    run_development_server()
