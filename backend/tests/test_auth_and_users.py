from conftest import login, png_bytes
from wala import models, repositories, services
from wala.auth import COOKIE_NAME


def test_register_form_then_login_sets_cookie(client):
    r = client.post('/auth/register', data={
        'email': 'Maria@Email.com', 'password': 'maria123', 'name': 'María', 'surname': 'García López',
    }, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers['location'].startswith('/auth/login')

    r2 = login(client, 'maria@email.com', 'maria123')
    assert COOKIE_NAME in r2.cookies or COOKIE_NAME in client.cookies
    r3 = client.get('/app/profile')
    assert r3.status_code == 200
    assert 'María García López' in r3.text


def test_register_duplicate_email_rerenders_form(client, make_user):
    make_user(email='dup@example.com')
    r = client.post('/auth/register', data={
        'email': 'DUP@example.com', 'password': 'secret', 'name': 'Dup',
    })
    assert r.status_code == 400
    assert 'email already registered' in r.text


def test_register_invalid_email_and_short_password(client):
    r = client.post('/auth/register', data={'email': 'nope', 'password': 'x', 'name': 'A'})
    assert r.status_code == 400
    assert 'invalid email address' in r.text


def test_register_with_avatar_upload(client, db):
    files = {'avatar': ('me.png', png_bytes(), 'image/png')}
    r = client.post('/auth/register', data={
        'email': 'avatar@example.com', 'password': 'secret', 'name': 'Ava',
    }, files=files, follow_redirects=False)
    assert r.status_code == 303
    user = repositories.UserRepository(db).get_by_email('avatar@example.com')
    assert user.avatar.startswith('/files/')
    assert user.avatar.endswith('_me.png')


def test_login_with_wrong_password(client, make_user):
    make_user(email='a@example.com')
    r = client.post('/auth/login', data={'email': 'a@example.com', 'password': 'bad'})
    assert r.status_code == 400
    assert 'Invalid email or password' in r.text


def test_api_token_and_bearer_access(client, make_user):
    make_user(email='api@example.com')
    r = client.post('/api/auth/token', json={'email': 'api@example.com', 'password': 'secret'})
    assert r.status_code == 200
    token = r.json()['access_token']
    payload = __import__('jwt').decode(token, services.JWT_SECRET, algorithms=[services.JWT_ALGORITHM])
    assert payload['email'] == 'api@example.com'
    assert payload['role'] == 'USER'
    r2 = client.get('/app/products', headers={'Authorization': f'Bearer {token}'})
    assert r2.status_code == 200

    bad = client.post('/api/auth/token', json={'email': 'api@example.com', 'password': 'nope'})
    assert bad.status_code == 401


def test_api_register(client):
    r = client.post('/api/auth/register', json={'email': 'json@example.com', 'password': 'secret', 'name': 'Json'})
    assert r.status_code == 200
    assert r.json()['email'] == 'json@example.com'
    again = client.post('/api/auth/register', json={'email': 'json@example.com', 'password': 'secret', 'name': 'Json'})
    assert again.status_code == 400


def test_anonymous_page_redirects_to_login_and_api_returns_401(client):
    r = client.get('/app/products', follow_redirects=False)
    assert r.status_code == 303
    assert r.headers['location'].startswith('/auth/login')
    r2 = client.get('/api/favorites/1')
    assert r2.status_code == 401


def test_invalid_token_is_rejected(client):
    r = client.get('/api/favorites/1', headers={'Authorization': 'Bearer not-a-token'})
    assert r.status_code == 401


def test_deleted_user_cannot_login(db, make_user):
    user = make_user(email='gone@example.com')
    user.deleted = True
    repositories.UserRepository(db).save(user)
    assert services.AuthService(db).authenticate('gone@example.com', 'secret') is None


def test_non_admin_gets_forbidden_page(client, make_user):
    make_user(email='plain@example.com')
    login(client, 'plain@example.com')
    r = client.get('/admin/dashboard')
    assert r.status_code == 403
    assert 'administrator role required' in r.text


def test_profile_edit_replaces_uploaded_avatar(client, db, make_user):
    from wala.main import storage
    make_user(email='pro@example.com')
    login(client, 'pro@example.com')
    r = client.post('/app/profile/edit', data={'name': 'Pro', 'surname': 'Filer'},
                    files={'avatar': ('a.png', png_bytes(), 'image/png')}, follow_redirects=False)
    assert r.status_code == 303
    first = repositories.UserRepository(db).get_by_email('pro@example.com').avatar
    assert storage.exists(first.rsplit('/', 1)[-1])

    client.post('/app/profile/edit', data={'name': 'Pro', 'surname': 'Filer'},
                files={'avatar': ('b.png', png_bytes(color=(0, 0, 255)), 'image/png')})
    db.expire_all()
    user = repositories.UserRepository(db).get_by_email('pro@example.com')
    assert user.avatar != first
    assert user.full_name == 'Pro Filer'
    assert not storage.exists(first.rsplit('/', 1)[-1])


def test_logout_clears_cookie_and_releases_cart(client, db, make_user, make_product):
    seller = make_user(email='seller@example.com')
    make_user(email='buyer@example.com')
    p = make_product(seller, name='Switch')
    login(client, 'buyer@example.com')
    client.post(f'/app/cart/add/{p.id}')
    db.refresh(p)
    assert p.reserved

    r = client.post('/auth/logout', follow_redirects=False)
    assert r.status_code == 303
    db.refresh(p)
    assert not p.reserved
    assert client.get('/app/cart', follow_redirects=False).status_code == 303


def test_roles_are_stored(make_user):
    admin = make_user(email='boss@example.com', role=models.Role.ADMIN)
    assert admin.is_admin
    assert admin.role == models.Role.ADMIN
