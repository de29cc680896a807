from datetime import timedelta

import pytest

from flightglobe.app import create_app
from flightglobe.config import AppConfig
from flightglobe.ingestion import OpenSkyRateLimitError
from flightglobe.models import Region
from flightglobe.services import build_services

from conftest import FakeOpenSkyClient, state_vector, store_row


@pytest.fixture
def services(ledger, fake_client):
    services = build_services(ledger, client=fake_client, region_delay_seconds=0, deadline_seconds=0)
    yield services
    services.shutdown()


@pytest.fixture
def client(services):
    app = create_app(services=services, app_config=AppConfig())
    return app.test_client()


def _drain_writer(services):
    # The writer runs one job at a time; this returns once earlier submissions finish
    services.writer._executor.submit(lambda: None).result(timeout=5)


def test_health(client):
    assert client.get('/health').get_json() == {'status': 'ok'}


def test_list_trajectories(client, ledger):
    store_row(ledger, icao24='abc123', lat=40.1, age=timedelta(minutes=10))
    store_row(ledger, icao24='abc123', lat=40.0, age=timedelta(minutes=20))
    store_row(ledger, icao24='solo11', age=timedelta(minutes=5))

    response = client.get('/api/trajectories?region=usa&hours=1')

    assert response.status_code == 200
    data = response.get_json()
    assert data['count'] == 1
    assert data['total_points'] == 2
    trajectory = data['trajectories'][0]
    assert trajectory['icao24'] == 'abc123'
    assert trajectory['start_lat'] == 40.0
    assert trajectory['end_lat'] == 40.1


@pytest.mark.parametrize('query', ['region=mars', 'hours=-1', 'hours=abc'])
def test_list_trajectories_rejects_bad_params(client, query):
    assert client.get(f'/api/trajectories?{query}').status_code == 400


def test_single_trajectory(client, ledger):
    store_row(ledger, icao24='abc123', lat=40.1, age=timedelta(minutes=1))
    store_row(ledger, icao24='abc123', lat=40.0, age=timedelta(minutes=20))

    data = client.get('/api/trajectories/abc123').get_json()

    assert [p['lat'] for p in data['trajectory']['points']] == [40.0, 40.1]
    assert data['estimated_position']['lat'] == 40.1


def test_single_trajectory_stale_estimate(client, ledger):
    store_row(ledger, icao24='abc123', age=timedelta(minutes=30))
    store_row(ledger, icao24='abc123', lat=40.5, age=timedelta(minutes=20))

    data = client.get('/api/trajectories/abc123').get_json()

    assert data['estimated_position'] is None


def test_single_trajectory_not_found(client):
    assert client.get('/api/trajectories/ffffff').status_code == 404


def test_flights_are_served_and_tracked(client, services, fake_client, ledger):
    fake_client.states_by_region = {
        Region.USA: [state_vector(icao24='AAA111'), state_vector(icao24='GGG000', on_ground=True)],
    }

    data = client.get('/api/flights?region=usa').get_json()
    _drain_writer(services)

    assert data['count'] == 1
    assert data['flights'][0]['icao24'] == 'aaa111'
    assert data['tracking'] is True
    assert ledger.latest_position('aaa111').source == 'client'


def test_flights_not_tracked_when_disabled(client, services, fake_client, ledger):
    ledger.upsert_setting('client_tracking', 'false')
    services.settings.invalidate()
    fake_client.states_by_region = {Region.USA: [state_vector(icao24='AAA111')]}

    data = client.get('/api/flights?region=usa').get_json()
    _drain_writer(services)

    assert data['tracking'] is False
    assert ledger.latest_position('aaa111') is None


def test_flights_rate_limited(client, fake_client):
    fake_client.errors = {Region.EUROPE: OpenSkyRateLimitError('limited', retry_after_seconds=60)}

    response = client.get('/api/flights?region=europe')

    assert response.status_code == 429
    assert response.get_json()['retry_after_seconds'] == 60


def test_settings_roundtrip(client):
    assert client.get('/api/settings').get_json()['settings']['retention_days'] == 14

    response = client.put('/api/settings', json={'retention_days': 7, 'client_tracking': False})

    assert response.status_code == 200
    settings = response.get_json()['settings']
    assert settings['retention_days'] == 7
    assert settings['client_tracking'] is False


def test_settings_rejects_invalid_update(client, ledger):
    response = client.put('/api/settings', json={'retention_days': 7, 'refresh_interval': -1})

    assert response.status_code == 400
    assert ledger.get_settings() == {}


def test_settings_save_failure_keeps_earlier_keys(client, ledger, monkeypatch):
    upsert_setting = ledger.upsert_setting

    def reject_tracking(key, value):
        if key == 'client_tracking':
            return False
        return upsert_setting(key, value)

    monkeypatch.setattr(ledger, 'upsert_setting', reject_tracking)

    response = client.put('/api/settings', json={'retention_days': 7, 'client_tracking': False})

    assert response.status_code == 500
    assert response.get_json()['failed'] == ['client_tracking']
    assert ledger.get_settings() == {'retention_days': '7'}


def test_cron_runs_cycle(client, fake_client):
    fake_client.states_by_region = {Region.USA: [state_vector(icao24='AAA111')]}

    data = client.get('/api/cron/flights').get_json()

    assert [r['region'] for r in data['regions']] == ['usa', 'europe', 'eastAsia']
    assert data['totals']['saved'] == 1
    assert 'deleted' in data['cleanup']


def test_cron_requires_secret_when_configured(services):
    app = create_app(services=services, app_config=AppConfig(cron_secret='s3cret'))
    client = app.test_client()

    assert client.get('/api/cron/flights').status_code == 401
    response = client.get('/api/cron/flights', headers={'Authorization': 'Bearer s3cret'})
    assert response.status_code == 200


def test_opensky_status(client):
    data = client.get('/api/opensky/status').get_json()

    assert data['configured'] is False
    assert data['rate_limit']['remaining'] == 3999
    assert data['rate_limit']['last_updated'] is None
    assert data['limits']['authenticated'] == 4000


def test_system_status(client):
    data = client.get('/api/status').get_json()

    assert data['status'] == 'healthy'
    assert data['ledger'] == {'configured': True, 'connected': True}


def test_degraded_without_ledger(fake_client):
    services = build_services(None, client=fake_client)
    try:
        client = create_app(services=services, app_config=AppConfig()).test_client()

        assert client.get('/api/status').get_json()['status'] == 'degraded'
        assert client.get('/api/trajectories').get_json()['count'] == 0
        assert client.put('/api/settings', json={'retention_days': 3}).status_code == 503
    finally:
        services.shutdown()
