from conftest import login
from wala import repositories
from wala.utils.seed import DEMO_PRODUCTS, DEMO_USERS, seed_demo_data


def test_seed_is_idempotent(db):
    assert seed_demo_data(db) is True
    assert repositories.UserRepository(db).count() == len(DEMO_USERS)
    assert seed_demo_data(db) is False
    assert repositories.UserRepository(db).count() == len(DEMO_USERS)


def test_seeded_accounts_can_sign_in(client, db):
    seed_demo_data(db)
    login(client, "admin@waladaw.com", "admin")
    assert client.get("/admin/dashboard").status_code == 200


def test_seeded_catalogue_is_public(client, db):
    seed_demo_data(db)
    r = client.get("/public", params={"q": DEMO_PRODUCTS[0][0]})
    assert r.status_code == 200
    assert DEMO_PRODUCTS[0][0] in r.text
