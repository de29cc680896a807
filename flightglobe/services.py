"""
Long-lived service instances shared by the API and the background poller.

Everything process-scoped (ledger engine, settings cache, OpenSky token
and rate-limit state, writer executor) hangs off one AppServices object
built at startup and attached to the Flask app.
"""

from dataclasses import dataclass
from typing import Optional

from flask import current_app

from flightglobe.history import (
    DeduplicatingWriter,
    RetentionSweeper,
    SettingsStore,
    TrajectoryReconstructor,
)
from flightglobe.ingestion import OpenSkyClient
from flightglobe.ledger import PositionLedger
from flightglobe.pipeline import IngestionPipeline


@dataclass
class AppServices:
    ledger: Optional[PositionLedger]
    client: OpenSkyClient
    settings: SettingsStore
    writer: DeduplicatingWriter
    sweeper: RetentionSweeper
    trajectories: TrajectoryReconstructor
    pipeline: IngestionPipeline

    def shutdown(self) -> None:
        self.pipeline.stop()
        self.writer.shutdown(wait=True)


def build_services(
    ledger: Optional[PositionLedger],
    client: Optional[OpenSkyClient] = None,
    **pipeline_kwargs,
) -> AppServices:
    """Wire the pipeline components around one ledger and one feed client."""
    client = client or OpenSkyClient.from_config()
    settings = SettingsStore(ledger)
    writer = DeduplicatingWriter(ledger)
    sweeper = RetentionSweeper(ledger, settings)

    return AppServices(
        ledger=ledger,
        client=client,
        settings=settings,
        writer=writer,
        sweeper=sweeper,
        trajectories=TrajectoryReconstructor(ledger),
        pipeline=IngestionPipeline(client, writer, sweeper, settings, **pipeline_kwargs),
    )


def get_services() -> AppServices:
    """Services of the current Flask app."""
    return current_app.config['SERVICES']
