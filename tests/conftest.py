import pytest

from schoolvote.admin import AdminConsole
from schoolvote.app import app as flask_app
from schoolvote.models import PER_CLASS, PER_DORM
from schoolvote.storage import DirectoryStore
from schoolvote.students import Registrar


@pytest.fixture
def storage_path(tmp_path):
    return tmp_path / 'storage.json'


@pytest.fixture
def store(storage_path):
    return DirectoryStore(storage_path)


@pytest.fixture
def console(store):
    return AdminConsole(store)


@pytest.fixture
def school(store, console):
    """Two classes, two dorms, one post of each category and three students."""
    for name in ('F1', 'F2'):
        console.add_class(name)
    for name in ('A', 'B'):
        console.add_dorm(name)
    console.add_post('President')
    console.add_post('Class Prefect', PER_CLASS)
    console.add_post('Dorm Captain', PER_DORM)

    registrar = Registrar(store)
    registrar.register('1', 'Jane Doe', 'F1', 'A')
    registrar.register('2', 'John Roe', 'F2', 'B')
    registrar.register('3', 'Mary Poe', 'F1', 'B')
    return store


@pytest.fixture
def students(school):
    return {s['adm']: s for s in Registrar(school).all()}


@pytest.fixture
def candidates(school, console):
    console.add_candidate('Alice', 'President', 'F1', 'A')
    console.add_candidate('Bob', 'President', 'F2', 'B')
    console.add_candidate('Carol', 'Class Prefect', 'F1', 'A')
    console.add_candidate('Dan', 'Class Prefect', 'F2', 'B')
    console.add_candidate('Eve', 'Dorm Captain', 'F1', 'B')
    console.add_candidate('Finn', 'Dorm Captain', 'F2', 'A')
    return {c['name']: c for c in school.get('candidates')}


@pytest.fixture
def client(storage_path):
    flask_app.config.update(
        TESTING=True,
        STORAGE_PATH=str(storage_path),
        ADMIN_PASSWORD='admin123',
    )
    with flask_app.test_client() as client:
        yield client
