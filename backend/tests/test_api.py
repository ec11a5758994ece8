import json
import math
import pytest


def _guess(client, target, clicked, lat, lng):
    return client.post('/api/game/guess', json={'target_kod': target, 'clicked_kod': clicked, 'lat': lat, 'lng': lng})


def test_index_and_health(client):
    assert client.get('/').status_code == 200
    health = client.get('/health').get_json()
    assert health['status'] == 'ok'
    assert health['persistence_warning'] is False


def test_list_regions_as_feature_collection(client, seeded_regions):
    res = client.get('/api/orp')
    assert res.status_code == 200
    data = res.get_json()
    assert data['type'] == 'FeatureCollection'
    assert [f['properties']['kod'] for f in data['features']] == [1001, 1002, 1003]
    first = data['features'][0]
    assert first['properties']['kraj'] == 'Jihočeský kraj'
    assert first['geometry']['type'] == 'Polygon'


def test_list_regions_filtered(client, seeded_regions):
    by_okres = client.get('/api/orp', query_string={'okres': 'Okres B'}).get_json()
    assert [f['properties']['nazev'] for f in by_okres['features']] == ['Beta']
    by_kraj = client.get('/api/orp', query_string={'kraj': 'Jihočeský kraj'}).get_json()
    assert {f['properties']['kod'] for f in by_kraj['features']} == {1001, 1002}


def test_random_region(client, seeded_regions):
    res = client.get('/api/orp/random', query_string={'kraj': 'Moravskoslezský kraj'})
    assert res.status_code == 200
    assert res.get_json()['properties']['kod'] == 1003
    assert client.get('/api/orp/random', query_string={'okres': 'Nowhere'}).status_code == 404


def test_region_by_code(client, seeded_regions):
    assert client.get('/api/orp/1002').get_json()['properties']['nazev'] == 'Beta'
    assert client.get('/api/orp/abc').status_code == 400
    assert client.get('/api/orp/9999').status_code == 404


def test_region_lists_and_db_stats(client, seeded_regions):
    assert client.get('/api/orp/regions/list').get_json()['regions'] == ['Okres A', 'Okres B', 'Okres C']
    kraje = client.get('/api/orp/kraje/list').get_json()['kraje']
    assert len(kraje) == 14
    stats = client.get('/api/orp/stats').get_json()
    assert stats['pocet_orp'] == 3
    assert stats['celkovy_pocet_obyvatel'] == 60000
    assert stats['prumerny_pocet_obyvatel'] == pytest.approx(20000)


def test_guess_requires_session(client, seeded_regions):
    res = _guess(client, 1001, 1001, 49.0, 14.5)
    assert res.status_code == 409
    assert 'error' in res.get_json()


def test_guess_validation(client, seeded_regions):
    client.post('/api/game/start', json={})
    assert client.post('/api/game/guess', json={'lat': 1, 'lng': 2}).status_code == 400
    assert _guess(client, 1001, 1001, 'north', 14.5).status_code == 400
    assert _guess(client, 1001, 7777, 49.0, 14.5).status_code == 404


def test_correct_guess_at_centroid(client, seeded_regions):
    res = client.post('/api/game/start', json={'filter_type': 'kraj', 'filter_value': 'Jihočeský kraj'})
    assert res.status_code == 201
    assert res.get_json()['session']['filter_value'] == 'Jihočeský kraj'

    res = _guess(client, 1001, 1001, 49.0, 14.5)
    assert res.status_code == 200
    data = res.get_json()
    assert data['correct'] is True
    assert data['coefficient'] == 1.0
    assert data['border_color'] == 'rgb(0, 65, 0)'
    assert data['session']['attempts'] == 1
    assert data['session']['correct'] == 1
    assert data['persistence_warning'] is False


def test_correct_guess_25_km_off(client, seeded_regions):
    client.post('/api/game/start', json={})
    lat = 49.0 + math.degrees(25.0 / 6371.0)
    data = _guess(client, 1001, 1001, lat, 14.5).get_json()
    assert data['coefficient'] == pytest.approx(0.75, abs=1e-9)
    assert data['distance_km'] == pytest.approx(25.0, rel=1e-9)


def test_wrong_guess(client, seeded_regions):
    client.post('/api/game/start', json={})
    data = _guess(client, 1001, 1002, 49.0, 15.5).get_json()
    assert data['correct'] is False
    assert 'coefficient' not in data
    assert data['error_distance_km'] > 0
    assert 0 < data['error_severity'] < 1
    assert data['color'].startswith('rgb(')
    assert data['border_color'].startswith('rgb(')


def test_full_session_flow_updates_stats(client, seeded_regions):
    client.post('/api/game/start', json={})
    for _ in range(5):
        _guess(client, 1001, 1001, 49.0, 14.5)
    _guess(client, 1003, 1001, 49.0, 14.5)
    ended = client.post('/api/game/end').get_json()
    assert ended['session']['attempts'] == 6
    assert ended['session']['accuracy'] == pytest.approx(500 / 6)

    overall = client.get('/api/stats/overall').get_json()['overall']
    assert overall['total_attempts'] == 6
    assert overall['total_correct'] == 5
    assert overall['total_score'] == pytest.approx(5.0)

    kraje = client.get('/api/stats/regions/kraj').get_json()['regions']
    assert [k['name'] for k in kraje] == ['Jihočeský kraj', 'Moravskoslezský kraj']
    assert kraje[1]['accuracy'] == 0.0

    okres = client.get('/api/stats/regions/okres', query_string={'name': 'Okres A'}).get_json()
    assert okres['attempts'] == 5
    assert client.get('/api/stats/regions/okres', query_string={'name': 'Okres Z'}).status_code == 404
    assert client.get('/api/stats/regions/planet').status_code == 400

    sessions = client.get('/api/stats/sessions?limit=5').get_json()['sessions']
    assert len(sessions) == 1
    assert client.get('/api/stats/sessions?limit=x').status_code == 400

    achievements = client.get('/api/stats/achievements').get_json()
    assert achievements['high_precision'] == 5
    assert achievements['perfect_score'] == 0

    assert client.get('/api/stats/playtime').get_json()['total_sessions'] == 1
    assert client.post('/api/game/end').status_code == 409


def test_restart_archives_played_session(client, seeded_regions):
    client.post('/api/game/start', json={})
    _guess(client, 1001, 1001, 49.0, 14.5)
    res = client.post('/api/game/restart', json={'filter_type': 'okres', 'filter_value': 'Okres B'})
    assert res.status_code == 201
    assert res.get_json()['session']['attempts'] == 0
    assert client.get('/api/game/session').get_json()['session']['filter_value'] == 'Okres B'
    assert len(client.get('/api/stats/sessions').get_json()['sessions']) == 1


def test_start_rejects_bad_filter(client, seeded_regions):
    assert client.post('/api/game/start', json={'filter_type': 'planet', 'filter_value': 'Mars'}).status_code == 400
    assert client.post('/api/game/start', json={'filter_type': 'okres'}).status_code == 400


def test_stats_survive_service_reload(flask_app, client, seeded_regions):
    from orpquiz import get_stats_service
    client.post('/api/game/start', json={})
    _guess(client, 1001, 1001, 49.0, 14.5)
    service = get_stats_service(flask_app)
    before = service.snapshot()
    service.reload()
    assert service.snapshot() == before


def test_export_download(client, seeded_regions):
    client.post('/api/game/start', json={})
    _guess(client, 1001, 1001, 49.0, 14.5)
    res = client.get('/api/stats/export')
    assert res.status_code == 200
    assert res.mimetype == 'application/json'
    assert 'attachment; filename="geo-quiz-stats-' in res.headers['Content-Disposition']
    assert json.loads(res.get_data(as_text=True))['overall']['total_attempts'] == 1


def test_reset_two_step(client, seeded_regions):
    client.post('/api/game/start', json={})
    _guess(client, 1001, 1001, 49.0, 14.5)
    assert client.post('/api/stats/reset/confirm', json={'token': 'guess'}).status_code == 400
    assert client.get('/api/stats/overall').get_json()['overall']['total_attempts'] == 1

    token = client.post('/api/stats/reset/request').get_json()['token']
    res = client.post('/api/stats/reset/confirm', json={'token': token})
    assert res.status_code == 200
    overall = client.get('/api/stats/overall').get_json()['overall']
    assert all(value == 0 for value in overall.values())
    assert client.get('/api/stats/sessions').get_json()['sessions'] == []


@pytest.mark.parametrize('lat, lng', [('nan', 14.5), ('inf', 14.5), (49.0, '-inf'), (91.0, 14.5), (49.0, 180.5)])
def test_guess_rejects_invalid_coordinates(client, seeded_regions, lat, lng):
    client.post('/api/game/start', json={})
    res = _guess(client, 1001, 1001, lat, lng)
    assert res.status_code == 400
    assert client.get('/api/stats/overall').get_json()['overall']['total_attempts'] == 0
    assert client.get('/api/game/session').get_json()['session']['attempts'] == 0
