import pytest

from schoolvote.app import app as flask_app

STUDENT = {'adm': '1001', 'name': 'Jane Doe', 'class': 'F1', 'dorm': 'A'}


def admin_login(client, password='admin123'):
    return client.post('/admin/login', json={'password': password})


@pytest.fixture
def setup_school(client):
    assert admin_login(client).status_code == 200
    client.post('/admin/classes', json={'name': 'F1'})
    client.post('/admin/dorms', json={'name': 'A'})
    client.post('/admin/posts', json={'name': 'President'})
    client.post('/admin/posts', json={'name': 'Class Prefect', 'category': 'per_class'})
    client.post('/admin/candidates', json={'name': 'Alice', 'post': 'President', 'class': 'F1', 'dorm': 'A'})
    client.post('/admin/candidates', json={'name': 'Bob', 'post': 'President', 'class': 'F1', 'dorm': 'A'})
    client.get('/admin/logout')
    return client


def register_and_login(client, student=STUDENT):
    client.post('/register', json=student)
    return client.post('/login', json=student)


def test_admin_routes_need_login(client):
    resp = client.post('/admin/classes', json={'name': 'F1'})
    assert resp.status_code == 403
    assert resp.get_json()['type'] == 'AuthorizationError'

    assert admin_login(client, 'wrong').status_code == 403
    assert admin_login(client).status_code == 200
    assert client.post('/admin/classes', json={'name': 'F1'}).status_code == 201
    assert client.post('/admin/classes', json={'name': 'F1'}).status_code == 409


def test_student_routes_need_login(client):
    assert client.get('/ballot').status_code == 401
    assert client.post('/ballot', json={'selections': {}}).status_code == 401
    assert client.post('/nominations', json={}).status_code == 401


def test_register_and_login(setup_school):
    client = setup_school
    resp = client.post('/register', json=STUDENT)
    assert resp.status_code == 201
    assert client.post('/register', json=STUDENT).status_code == 409

    bad = dict(STUDENT, dorm='Z')
    assert client.post('/login', json=bad).status_code == 403

    resp = client.post('/login', json=dict(STUDENT, name='JANE DOE'))
    assert resp.status_code == 200
    assert client.get('/me').get_json()['student']['adm'] == '1001'


def test_register_accepts_form_data(setup_school):
    resp = setup_school.post('/register', data=STUDENT)
    assert resp.status_code == 201


def test_full_election_flow(setup_school):
    client = setup_school
    assert register_and_login(client).status_code == 200

    ballot = client.get('/ballot').get_json()['posts']
    assert [p['post'] for p in ballot] == ['President']

    resp = client.post('/ballot', json={'selections': {'President': 'Alice'}})
    assert resp.get_json()['recorded'] == 1

    resp = client.post('/ballot', json={'selections': {'President': 'Bob'}})
    assert resp.status_code == 200
    assert resp.get_json()['recorded'] == 0
    assert client.get('/ballot').get_json()['posts'] == []

    resp = client.post('/vote', json={'post': 'President', 'candidate': 'Bob'})
    assert resp.status_code == 409

    resp = client.get('/results').get_json()
    assert resp['available'] is False

    admin_login(client)
    client.post('/admin/results/publish')
    results = client.get('/results').get_json()
    assert results['available'] is True
    [president] = results['results']
    assert [(c['name'], c['votes'], c['leader']) for c in president['candidates']] == [
        ('Alice', 1, True),
        ('Bob', 0, False),
    ]

    resp = client.get('/export/votes.csv', query_string={'type': 'post', 'value': 'President'})
    assert resp.status_code == 200
    assert resp.mimetype == 'text/csv'
    assert 'Admission,Name,Position,VotedFor,Time' in resp.get_data(as_text=True)

    resp = client.get('/export/votes.html', query_string={'type': 'class', 'value': 'f1'})
    assert resp.status_code == 200
    assert 'Alice' in resp.get_data(as_text=True)

    assert client.get('/export/votes.csv', query_string={'type': 'dorm', 'value': 'Z'}).status_code == 404


def test_nomination_approval_flow(setup_school):
    client = setup_school
    register_and_login(client)
    resp = client.post('/nominations', json={
        'name': 'Jane Doe', 'post': 'Class Prefect', 'class': 'F1', 'dorm': 'A', 'manifesto': 'Clean classrooms',
    })
    assert resp.status_code == 201
    nomination_id = resp.get_json()['nomination']['id']

    assert client.post('/nominations', json={'name': 'Jane Doe'}).status_code == 400

    admin_login(client)
    pending = client.get('/admin/nominations').get_json()
    assert [n['id'] for n in pending] == [nomination_id]

    resp = client.post(f'/admin/nominations/approve/{nomination_id}')
    assert resp.get_json()['approved'] is True
    resp = client.post(f'/admin/nominations/approve/{nomination_id}')
    assert resp.status_code == 200
    assert resp.get_json()['approved'] is False

    ballot = client.get('/ballot').get_json()['posts']
    assert [p['post'] for p in ballot] == ['President', 'Class Prefect']


def test_deadline_closes_voting(setup_school):
    client = setup_school
    admin_login(client)
    resp = client.post('/admin/deadline', json={'deadline': '2000-01-01T00:00'})
    assert resp.get_json()['closed'] is True
    assert client.get('/deadline').get_json()['closed'] is True

    register_and_login(client)
    resp = client.post('/ballot', json={'selections': {'President': 'Alice'}})
    assert resp.status_code == 403
    assert resp.get_json()['type'] == 'VotingClosedError'
    resp = client.post('/ballot', json={'selections': {}})
    assert resp.status_code == 200
    assert resp.get_json()['recorded'] == 0

    client.post('/admin/deadline/clear')
    resp = client.post('/ballot', json={'selections': {'President': 'Alice'}})
    assert resp.get_json()['recorded'] == 1


def test_malformed_ballot_values_are_rejected(setup_school):
    client = setup_school
    register_and_login(client)

    for path, body in [
        ('/ballot', {'selections': {'President': 5}}),
        ('/ballot', {'selections': ['Alice']}),
        ('/vote', {'post': 'President', 'candidate': 5}),
    ]:
        resp = client.post(path, json=body)
        assert resp.status_code == 400, (path, body)
        assert resp.get_json()['type'] == 'ValidationError'

    assert client.get('/me').status_code == 200
    assert len(client.get('/ballot').get_json()['posts']) == 1


def test_delete_post_over_http(setup_school):
    client = setup_school
    register_and_login(client)
    client.post('/ballot', json={'selections': {'President': 'Alice'}})

    admin_login(client)
    resp = client.post('/admin/posts/delete/President')
    assert resp.get_json() == {'deleted': True, 'removed': {'candidates': 2, 'nominations': 0, 'votes': 1}}
    assert client.get('/admin/votes').get_json() == []
    assert client.get('/candidates').get_json() == []


def test_change_password_over_http(client):
    admin_login(client)
    resp = client.post('/admin/change_password', json={'current_password': 'admin123', 'new_password': 'abc'})
    assert resp.status_code == 400
    resp = client.post('/admin/change_password', json={'current_password': 'admin123', 'new_password': 'secret1'})
    assert resp.status_code == 200

    client.get('/admin/logout')
    assert admin_login(client).status_code == 403
    assert admin_login(client, 'secret1').status_code == 200


def test_admin_session_expires(client):
    admin_login(client)
    flask_app.config['SESSION_TIMEOUT_SECONDS'] = -1
    try:
        assert client.get('/admin').status_code == 403
    finally:
        flask_app.config['SESSION_TIMEOUT_SECONDS'] = 1800


def test_logs_and_overview(setup_school):
    client = setup_school
    admin_login(client)
    overview = client.get('/admin').get_json()
    assert overview['counts']['candidates'] == 2
    logs = client.get('/admin/logs', query_string={'limit': 2}).get_json()
    assert len(logs) == 2
    assert logs[0]['message'] == 'Admin logged in'
