"""Integration tests for the JSON API and application factory."""
from datetime import datetime, timezone
from pathlib import Path

import pytest

from photodatefix import db, get_service
from photodatefix.lib.exceptions import TransactionError

UTC = timezone.utc


@pytest.fixture
def photos(app, library_dir, make_jpeg):
    """Three mismatched photos (2011, 2014, 2019) and one correct one."""
    store = get_service(app).store
    rows = [
        ('a.jpg', datetime(2011, 3, 1, 12, tzinfo=UTC), '2011:03:01 09:00:00'),
        ('b.jpg', datetime(2014, 3, 1, 12, tzinfo=UTC), '2014:03:01 09:00:00'),
        ('c.jpg', datetime(2019, 3, 1, 12, tzinfo=UTC), '2019:03:01 09:00:00'),
        ('ok.jpg', datetime(2016, 3, 1, 12, tzinfo=UTC), '2016:03:01 12:00:00'),
    ]
    assets = {}
    for name, recorded, exif_text in rows:
        path = library_dir / name
        path.write_bytes(make_jpeg(exif_text, '+00:00'))
        assets[name] = store.add_asset(path, creation_date=recorded)
    return assets


def run_scan(client, app):
    response = client.post('/api/scan')
    assert response.status_code == 202
    get_service(app).wait(timeout=30)


class TestConfig:
    """Tests for the application factory configuration."""

    def test_testing_config(self, app):
        assert app.config['TESTING'] is True
        assert app.config['TIMEZONE'] == 'UTC'
        assert isinstance(app.config['LIBRARY_FOLDER'], Path)
        assert app.config['LIBRARY_FOLDER'].is_dir()

    def test_service_registered(self, app):
        service = get_service(app)
        assert service.tolerance_seconds == app.config['DATE_TOLERANCE_SECONDS']
        assert service.default_tz == 'UTC'

    def test_invalid_timezone_rejected(self, tmp_path):
        from photodatefix import create_app

        with pytest.raises(ValueError):
            create_app('testing', overrides={
                'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'bad.db'}",
                'LIBRARY_FOLDER': tmp_path / 'library',
                'TIMEZONE': 'Mars/Olympus_Mons',
            })

    def test_negative_tolerance_rejected(self, tmp_path):
        from photodatefix import create_app

        with pytest.raises(ValueError):
            create_app('testing', overrides={
                'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'bad.db'}",
                'LIBRARY_FOLDER': tmp_path / 'library',
                'DATE_TOLERANCE_SECONDS': -5,
            })


class TestScanEndpoints:
    """Tests for starting, polling and cancelling scans."""

    def test_idle_status(self, client):
        data = client.get('/api/scan/status').get_json()
        assert data['state'] == 'idle'
        assert data['mismatch_count'] == 0

    def test_scan_and_poll(self, client, app, photos):
        run_scan(client, app)

        data = client.get('/api/scan/status').get_json()
        assert data['state'] == 'completed'
        assert data['progress'] == 1.0
        assert data['total_scanned'] == 4
        assert data['total_candidates'] == 4
        assert data['mismatch_count'] == 3

    def test_second_scan_rejected_while_running(self, client, app):
        get_service(app)._begin_scan()
        response = client.post('/api/scan')
        assert response.status_code == 409
        assert 'error' in response.get_json()

    def test_cancel_when_idle(self, client):
        assert client.post('/api/scan/cancel').get_json() == {'cancelled': False}


class TestMismatches:
    """Tests for listing, filtering and selecting mismatches."""

    def test_list_newest_first(self, client, app, photos):
        run_scan(client, app)

        data = client.get('/api/mismatches').get_json()
        assert data['count'] == 3
        assert data['total'] == 3
        assert data['all_selected'] is False
        assert [item['filename'] for item in data['items']] == ['c.jpg', 'b.jpg', 'a.jpg']

        item = data['items'][0]
        assert item['time_difference'] == -10800
        assert item['formatted_time_difference'] == '−3h 0m'
        assert item['extracted_date'] == '2019-03-01T09:00:00+00:00'
        assert item['selected'] is False

    def test_filter_narrows_list(self, client, app, photos):
        run_scan(client, app)

        response = client.put('/api/filter', json={'start': '2012-01-01', 'end': '2015-12-31'})
        assert response.status_code == 200
        assert response.get_json() == {
            'start': '2012-01-01T00:00:00+00:00',
            'end': '2015-12-31T23:59:59.999999+00:00',
        }

        data = client.get('/api/mismatches').get_json()
        assert [item['filename'] for item in data['items']] == ['b.jpg']
        assert data['total'] == 3

        client.delete('/api/filter')
        assert client.get('/api/mismatches').get_json()['count'] == 3

    def test_filter_with_datetime_bound(self, client):
        response = client.put('/api/filter', json={'start': '2020-06-01T08:30:00'})
        assert response.get_json() == {'start': '2020-06-01T08:30:00+00:00', 'end': None}

    def test_invalid_filter_date(self, client):
        response = client.put('/api/filter', json={'start': 'last tuesday'})
        assert response.status_code == 400

    def test_toggle_and_select_all(self, client, app, photos):
        run_scan(client, app)
        identifier = photos['b.jpg'].identifier

        response = client.post(f'/api/mismatches/{identifier}/toggle')
        assert response.get_json() == {'identifier': identifier, 'selected': True}

        assert client.post('/api/mismatches/select-all').get_json() == {'selected_count': 3}
        assert client.get('/api/mismatches').get_json()['all_selected'] is True
        assert client.post('/api/mismatches/deselect-all').get_json() == {'selected_count': 0}

    def test_toggle_unknown(self, client):
        assert client.post('/api/mismatches/nope/toggle').status_code == 404


class TestFix:
    """Tests for committing corrections over HTTP."""

    def test_fix_selection(self, client, app, photos):
        run_scan(client, app)
        client.post(f"/api/mismatches/{photos['a.jpg'].identifier}/toggle")

        response = client.post('/api/fix')
        assert response.status_code == 200
        assert response.get_json() == {'fixed': 1, 'remaining': 2}

        db.session.expire_all()
        asset = get_service(app).store.get(photos['a.jpg'].identifier)
        assert asset.recorded_date == datetime(2011, 3, 1, 9, tzinfo=UTC)

    def test_fix_by_identifiers(self, client, app, photos):
        run_scan(client, app)
        identifiers = [photos['b.jpg'].identifier, photos['c.jpg'].identifier]

        response = client.post('/api/fix', json={'identifiers': identifiers})
        assert response.get_json() == {'fixed': 2, 'remaining': 1}

        remaining = client.get('/api/mismatches').get_json()['items']
        assert [item['filename'] for item in remaining] == ['a.jpg']

    def test_fix_unknown_identifiers(self, client, app, photos):
        run_scan(client, app)
        response = client.post('/api/fix', json={'identifiers': ['ghost']})
        assert response.status_code == 404
        assert response.get_json()['missing'] == ['ghost']

    @pytest.mark.parametrize('identifiers', ['ABC', 42, {'id': 'x'}, [1, 2]])
    def test_fix_rejects_malformed_identifiers(self, client, app, photos, identifiers):
        run_scan(client, app)
        response = client.post('/api/fix', json={'identifiers': identifiers})

        assert response.status_code == 400
        assert 'error' in response.get_json()
        assert len(get_service(app).mismatched_photos) == 3

    def test_fix_nothing_selected(self, client, app, photos):
        run_scan(client, app)
        assert client.post('/api/fix').get_json() == {'fixed': 0, 'remaining': 3}

    def test_failed_fix_reports_error(self, client, app, photos, monkeypatch):
        run_scan(client, app)
        service = get_service(app)

        def reject(changes):
            raise TransactionError('database is locked')

        monkeypatch.setattr(service.store, 'perform_changes', reject)
        client.post('/api/mismatches/select-all')

        response = client.post('/api/fix')
        assert response.status_code == 500
        assert response.get_json() == {'error': 'database is locked'}
        assert len(service.mismatched_photos) == 3

    def test_fix_rejected_while_scanning(self, client, app, photos):
        run_scan(client, app)
        service = get_service(app)
        service.select_all()
        service._begin_scan()

        assert client.post('/api/fix').status_code == 409
