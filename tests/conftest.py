import pytest

from app import create_app
from app.extensions import db
from app.services import prayer_service, user_service
from app.services.auth_service import seed_permissions

PASSWORD = 'correct-horse'


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        seed_permissions()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(username, role='member', password=PASSWORD, **extra):
        form = {'username': username, 'password': password, 'role': role}
        form.update(extra)
        return user_service.create_user(form, created_by=None)
    return _make_user


@pytest.fixture
def make_prayer(app):
    def _make_prayer(title='Healing', submitter_id=None, **extra):
        form = {
            'title': title,
            'content': 'Please pray for recovery',
            'requester_name': 'Alice',
            'category': 'Healing',
        }
        form.update(extra)
        return prayer_service.create_prayer_request(form, submitter_id=submitter_id)
    return _make_prayer


@pytest.fixture
def login(client):
    def _login(username, password=PASSWORD):
        return client.post('/login', data={'username': username, 'password': password})
    return _login
