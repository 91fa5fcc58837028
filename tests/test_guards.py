import pytest

from app.models import role_at_least, role_rank
from app.routes.auth import RequestIdentity, require_admin, require_super_admin, require_permission
from app.services import auth_service
from app.services.auth_service import AuthenticatedUser


def identity_for(role, user_id=1):
    return RequestIdentity(user=AuthenticatedUser(id=user_id, username=role, role=role, status='active'))


def guarded(decorator):
    @decorator
    def view(identity):
        return 'ok'
    return view


def test_role_rank_orders_tiers():
    assert role_rank('member') < role_rank('moderator') < role_rank('admin') < role_rank('super_admin')
    assert role_rank('pastor') == -1
    assert not role_at_least('pastor', 'member')
    assert not role_at_least('super_admin', 'pastor')


@pytest.mark.parametrize('role, allowed', [
    ('member', False),
    ('moderator', False),
    ('admin', True),
    ('super_admin', True),
])
def test_require_admin(app, role, allowed):
    with app.test_request_context():
        result = guarded(require_admin)(identity=identity_for(role))
        if allowed:
            assert result == 'ok'
        else:
            assert result[1] == 403


@pytest.mark.parametrize('role, allowed', [
    ('member', False),
    ('admin', False),
    ('super_admin', True),
])
def test_require_super_admin(app, role, allowed):
    with app.test_request_context():
        result = guarded(require_super_admin)(identity=identity_for(role))
        assert (result == 'ok') is allowed


def test_guards_deny_without_identity(app):
    with app.test_request_context():
        assert guarded(require_admin)()[1] == 403
        assert guarded(require_permission('create_prayer'))()[1] == 403


def test_permissions_are_inherited_up_the_hierarchy(app):
    member = auth_service.role_permissions('member')
    moderator = auth_service.role_permissions('moderator')
    admin = auth_service.role_permissions('admin')
    super_admin = auth_service.role_permissions('super_admin')

    assert member == {'create_prayer', 'suggest_updates'}
    assert member < moderator < admin < super_admin
    assert 'approve_updates' in moderator
    assert 'manage_users' in super_admin and 'manage_users' not in admin
    assert auth_service.role_permissions('pastor') == set()


def test_user_has_permission_checks_the_stored_role(make_user):
    member = make_user('alice')
    admin = make_user('carol', role='admin')

    assert auth_service.user_has_permission(member.id, 'suggest_updates')
    assert not auth_service.user_has_permission(member.id, 'approve_updates')
    assert auth_service.user_has_permission(admin.id, 'approve_updates')
    assert not auth_service.user_has_permission(9999, 'create_prayer')


def test_seed_permissions_is_idempotent(app):
    before = len(auth_service.get_all_permissions())
    auth_service.seed_permissions()
    assert len(auth_service.get_all_permissions()) == before == len(auth_service.DEFAULT_PERMISSIONS)


def test_anonymous_is_redirected_to_login(client):
    resp = client.get('/admin')
    assert resp.status_code == 302
    assert '/login' in resp.headers['Location']
    assert 'next=' in resp.headers['Location']


def test_member_is_denied_admin_pages(client, make_user, login):
    make_user('alice')
    login('alice')

    resp = client.get('/admin')

    assert resp.status_code == 403
    assert b'approve_updates' not in resp.data
    assert client.get('/admin/updates').status_code == 403
    assert client.get('/admin/users').status_code == 403


def test_moderator_can_review_but_not_manage(client, make_user, login):
    make_user('mo', role='moderator')
    login('mo')

    assert client.get('/admin/updates').status_code == 200
    assert client.get('/admin/reports').status_code == 403
    assert client.get('/admin/import').status_code == 403


def test_admin_reaches_admin_pages_but_not_users(client, make_user, login):
    make_user('carol', role='admin')
    login('carol')

    assert client.get('/admin').status_code == 200
    assert client.get('/admin/reports').status_code == 200
    assert client.get('/admin/import').status_code == 200
    assert client.get('/admin/export/print').status_code == 200
    assert client.get('/admin/users').status_code == 403


def test_super_admin_passes_every_guard(client, make_user, login):
    make_user('root', role='super_admin')
    login('root')

    assert client.get('/admin').status_code == 200
    assert client.get('/admin/updates').status_code == 200
    assert client.get('/admin/users').status_code == 200
