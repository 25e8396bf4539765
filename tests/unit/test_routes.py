"""
Unit tests for the HTTP API (dirbackup/routes/).

Tests source registration, settings, history and the dashboard with the
scheduler thread disabled.
"""

from unittest.mock import patch

from dirbackup.scheduler import BackupScheduler


class TestHealth:
    """Test the health check."""

    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.get_json() == {'status': 'healthy'}


class TestSourcesRoutes:
    """Test /api/sources."""

    def test_list_sources_empty(self, client):
        response = client.get('/api/sources/')

        assert response.status_code == 200
        assert response.get_json() == []

    def test_register_source_with_query(self, client, sample_tree):
        """Test a text query is parsed into a selector."""
        response = client.post('/api/sources/', json={
            'directory': str(sample_tree),
            'selector': 'name = *.mp3 and size > 100'
        })

        assert response.status_code == 201
        data = response.get_json()
        assert data['position'] == 0
        assert data['source'] == {
            'root': str(sample_tree),
            'selector': {
                'type': 'and',
                'left': {'type': 'name', 'pattern': '*.mp3'},
                'right': {'type': 'larger_than', 'bytes': 100}
            }
        }

    def test_register_source_with_dict_selector(self, client, sample_tree, temp_files):
        """Test sources keep registration order."""
        client.post('/api/sources/', json={'directory': str(sample_tree)})
        response = client.post('/api/sources/', json={
            'directory': str(temp_files),
            'selector': {'type': 'not', 'expression': {'type': 'writable'}}
        })

        assert response.status_code == 201
        assert response.get_json()['position'] == 1

        sources = client.get('/api/sources/').get_json()
        assert [source['root'] for source in sources] == [str(sample_tree), str(temp_files)]
        assert sources[0]['selector'] == {'type': 'all'}

    def test_register_source_requires_directory(self, client):
        response = client.post('/api/sources/', json={'selector': 'all'})

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Source directory is required'

    def test_register_source_non_object_body(self, client):
        response = client.post('/api/sources/', json=['/tmp'])

        assert response.status_code == 400

    def test_register_source_bad_query(self, client, sample_tree):
        """Test a malformed query is rejected instead of selecting everything."""
        response = client.post('/api/sources/', json={
            'directory': str(sample_tree),
            'selector': 'size > lots'
        })

        assert response.status_code == 400
        assert 'size in bytes' in response.get_json()['error']
        assert client.get('/api/sources/').get_json() == []

    def test_register_source_inside_destination(self, client, tmp_path):
        response = client.post('/api/sources/', json={'directory': str(tmp_path / 'backups' / 'data')})

        assert response.status_code == 400
        assert 'must not contain each other' in response.get_json()['error']


class TestSettingsRoutes:
    """Test /api/settings."""

    def test_get_settings(self, client, tmp_path):
        response = client.get('/api/settings/')

        assert response.status_code == 200
        assert response.get_json() == {
            'destination': str(tmp_path / 'backups'),
            'interval_minutes': 60,
            'data_sources': []
        }

    def test_update_settings(self, client, tmp_path):
        response = client.put('/api/settings/', json={
            'destination': str(tmp_path / 'elsewhere'),
            'interval_minutes': 15
        })

        assert response.status_code == 200
        settings = response.get_json()['settings']
        assert settings['destination'] == str(tmp_path / 'elsewhere')
        assert settings['interval_minutes'] == 15

    def test_update_settings_invalid_interval(self, client, tmp_path):
        """Test nothing is applied when the interval is invalid."""
        response = client.put('/api/settings/', json={
            'destination': str(tmp_path / 'elsewhere'),
            'interval_minutes': 0
        })

        assert response.status_code == 400
        assert client.get('/api/settings/').get_json()['destination'] == str(tmp_path / 'backups')

    def test_update_settings_destination_is_file(self, client, tmp_path):
        target = tmp_path / 'not_a_dir'
        target.write_text('x')

        response = client.put('/api/settings/', json={'destination': str(target)})

        assert response.status_code == 400
        assert 'not a directory' in response.get_json()['error']

    def test_update_settings_requires_object(self, client):
        response = client.put('/api/settings/', data='15', content_type='application/json')

        assert response.status_code == 400

    def test_interval_change_reschedules_running_scheduler(self, app, client):
        with patch.object(BackupScheduler, 'is_running', return_value=True), \
                patch.object(BackupScheduler, 'sync') as mock_sync:
            response = client.put('/api/settings/', json={'interval_minutes': 10})

        assert response.status_code == 200
        mock_sync.assert_called_once()


class TestHistoryRoutes:
    """Test /api/history."""

    def test_latest_before_any_pass(self, client):
        response = client.get('/api/history/latest')

        assert response.status_code == 404

    def test_run_pass_synchronously(self, client, sample_tree, tmp_path):
        """Test a pass runs inside the request when the scheduler is off."""
        client.post('/api/sources/', json={'directory': str(sample_tree), 'selector': 'name = *.mp3'})

        response = client.post('/api/history/run')

        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'success'
        assert data['files_copied'] == 2
        assert data['sources'][0]['matched'] == 2

        pass_dir = tmp_path / 'backups' / data['name']
        assert pass_dir.is_dir()
        mirrored = pass_dir / str(sample_tree).lstrip('/')
        assert sorted(p.name for p in mirrored.iterdir()) == ['b.mp3', 'c.mp3']

    def test_history_lists_passes(self, client, sample_tree):
        client.post('/api/sources/', json={'directory': str(sample_tree)})
        client.post('/api/history/run')

        response = client.get('/api/history/')
        latest = client.get('/api/history/latest')

        assert response.status_code == 200
        data = response.get_json()
        assert data['total'] == 1
        assert data['passes'][0]['files_copied'] == 3
        assert latest.get_json()['name'] == data['passes'][0]['name']

    def test_history_status_filter(self, client):
        client.post('/api/history/run')

        assert client.get('/api/history/?status=success').get_json()['total'] == 1
        assert client.get('/api/history/?status=failed').get_json()['total'] == 0

    def test_history_invalid_status_filter(self, client):
        response = client.get('/api/history/?status=bogus')

        assert response.status_code == 400

    def test_run_queues_job_when_scheduler_running(self, client):
        with patch.object(BackupScheduler, 'is_running', return_value=True), \
                patch.object(BackupScheduler, 'trigger_now', return_value='manual_1') as mock_trigger:
            response = client.post('/api/history/run')

        assert response.status_code == 202
        assert response.get_json()['job_id'] == 'manual_1'
        mock_trigger.assert_called_once()


class TestDashboardRoutes:
    """Test /api/dashboard."""

    def test_overview_before_any_pass(self, client, tmp_path):
        response = client.get('/api/dashboard/overview')

        assert response.status_code == 200
        data = response.get_json()
        assert data['destination'] == str(tmp_path / 'backups')
        assert data['source_count'] == 0
        assert data['scheduler_status'] == 'stopped'
        assert data['next_run'] is None
        assert data['last_pass'] is None

    def test_overview_after_pass(self, client, sample_tree):
        client.post('/api/sources/', json={'directory': str(sample_tree)})
        client.post('/api/history/run')

        last_pass = client.get('/api/dashboard/overview').get_json()['last_pass']

        assert last_pass['status'] == 'success'
        assert last_pass['files_copied'] == 3
        assert last_pass['failure_count'] == 0

    def test_scheduler_diagnostics(self, client):
        response = client.get('/api/dashboard/scheduler-diagnostics')

        assert response.status_code == 200
        assert response.get_json()['running'] is False
