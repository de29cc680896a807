"""
FlightGlobe Backend Package.

Flight position history service built with Flask, SQLAlchemy and requests.

Modules:
    api/         REST endpoints for live flights, trajectories, settings and the cron job
    models/      SQLAlchemy ORM models (FlightPosition, AppSetting)
    ingestion/   OpenSky client and state vector normalization
    history/     Deduplicating writer, retention sweeper, trajectory reconstruction
    ledger.py    Persistent store access (insert, window queries, age-based delete)
    pipeline.py  Poll cycle orchestration and background scheduling
    config.py    Centralized configuration from environment variables
"""

__version__ = '1.0.0'
