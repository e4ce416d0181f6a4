from zen_activity import create_app
from zen_activity.config.settings import Settings

WALLET = '0x' + 'A' * 40


class FakeService:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def build_activity(self, address, start, end):
        self.calls.append(('activity', address, start, end))
        if self.fail:
            raise RuntimeError('explorer exploded')
        return [{'kind': 'native', 'hash': '0x1', 'timeMs': 1000, 'direction': 'out', 'category': 'gm'}]

    def build_stats(self, address, start, end):
        self.calls.append(('stats', address, start, end))
        return {'gmCount': 1, 'nativeSends': 0}


def _client(service):
    app = create_app(Settings(DEBUG=False), service=service)
    return app.test_client()


def test_activity_endpoint():
    service = FakeService()
    resp = _client(service).get('/api/activity', query_string={'address': WALLET, 'start': '100', 'end': '200'})
    assert resp.status_code == 200
    assert resp.headers['Cache-Control'] == 's-maxage=15, stale-while-revalidate=30'
    data = resp.get_json()
    assert data['address'] == WALLET.lower()
    assert data['window'] == {'start': 100, 'end': 200}
    assert data['count'] == 1
    assert data['activity'][0]['category'] == 'gm'
    assert service.calls == [('activity', WALLET.lower(), 100, 200)]


def test_stats_endpoint():
    resp = _client(FakeService()).get('/api/stats', query_string={'address': WALLET, 'period': 'all'})
    assert resp.status_code == 200
    assert resp.headers['Cache-Control'] == 's-maxage=30, stale-while-revalidate=60'
    data = resp.get_json()
    assert data['kpis']['gmCount'] == 1
    assert data['window']['start'] == 0


def test_stats_endpoint_marks_bridged_as_pending():
    data = _client(FakeService()).get('/api/stats', query_string={'address': WALLET}).get_json()
    assert data['kpis']['bridged'] == 'coming_soon'
    assert data['kpis']['nativeSends'] == 0


def test_invalid_address_is_400():
    service = FakeService()
    resp = _client(service).get('/api/stats', query_string={'address': 'not-an-address'})
    assert resp.status_code == 400
    assert 'valid wallet address' in resp.get_json()['error']
    assert service.calls == []


def test_invalid_window_is_400():
    resp = _client(FakeService()).get('/api/activity', query_string={'address': WALLET, 'start': '500', 'end': '100'})
    assert resp.status_code == 400


def test_non_get_is_405():
    resp = _client(FakeService()).post('/api/stats', query_string={'address': WALLET})
    assert resp.status_code == 405
    assert resp.headers['Allow'] == 'GET'


def test_unexpected_error_is_500():
    resp = _client(FakeService(fail=True)).get('/api/activity', query_string={'address': WALLET})
    assert resp.status_code == 500
    assert resp.get_json()['error'] == 'explorer exploded'


def test_health():
    resp = _client(FakeService()).get('/health')
    assert resp.status_code == 200
    assert resp.get_json() == {'status': 'ok'}
