from datetime import timedelta

from conftest import login
from wala import models, repositories, services


def _admin(make_user, email='admin@waladaw.com'):
    return make_user(email=email, password='admin', name='Admin', role=models.Role.ADMIN)


def _buy(db, buyer, product):
    services.ProductService(db).reserve(product.id, buyer.id)
    return services.PurchaseService(db).checkout(buyer, [product.id])


def test_dashboard_counts(client, db, make_user, make_product):
    _admin(make_user)
    seller = make_user(name='Carlos')
    buyer = make_user()
    make_product(seller, name='One')
    two = make_product(seller, name='Two')
    make_product(seller, name='Hidden', deleted=True)
    _buy(db, buyer, two)

    stats = services.AdminService(db).dashboard()
    assert stats['total_products'] == 2
    assert stats['total_users'] == 3
    assert stats['total_purchases'] == 1
    assert [p['name'] for p in stats['recent_products']] == ['Two', 'One']

    login(client, 'admin@waladaw.com', 'admin')
    r = client.get('/admin/dashboard')
    assert r.status_code == 200
    assert 'Carlos' in r.text


def test_users_filter_by_text_and_role(client, db, make_user):
    _admin(make_user)
    make_user(email='maria@email.com', name='María')
    make_user(email='mod@waladaw.com', name='Moderador', role=models.Role.MODERATOR)
    svc = services.AdminService(db)
    assert [u.email for u in svc.users_page('marí').items] == ['maria@email.com']
    assert [u.email for u in svc.users_page(role='moderator').items] == ['mod@waladaw.com']
    assert svc.users_page('waladaw', 'ADMIN').total == 1
    assert svc.users_page(role='nonsense').total == 3

    login(client, 'admin@waladaw.com', 'admin')
    r = client.get('/admin/users?q=maria')
    assert r.status_code == 200
    assert 'maria@email.com' in r.text


def test_main_admin_cannot_be_deleted(client, make_user):
    admin = _admin(make_user)
    login(client, 'admin@waladaw.com', 'admin')
    r = client.post(f'/admin/users/{admin.id}/delete', follow_redirects=False)
    assert 'error=' in r.headers['location']
    assert 'main+administrator' in r.headers['location']


def test_user_with_active_products_cannot_be_deleted(db, make_user, make_product):
    admin = _admin(make_user)
    seller = make_user()
    make_product(seller)
    try:
        services.AdminService(db).delete_user(seller.id, admin)
    except ValueError as e:
        assert 'active product' in str(e)
    else:
        raise AssertionError('deleting a user with products must fail')


def test_user_with_purchases_is_soft_deleted_with_warning(client, db, make_user, make_product):
    _admin(make_user)
    seller = make_user()
    buyer = make_user(email='buyer@example.com')
    _buy(db, buyer, make_product(seller))

    login(client, 'admin@waladaw.com', 'admin')
    r = client.post(f'/admin/users/{buyer.id}/delete', follow_redirects=False)
    assert 'warning=' in r.headers['location']
    db.refresh(buyer)
    assert buyer.deleted and buyer.deleted_by == 'admin@waladaw.com'
    assert services.AuthService(db).authenticate('buyer@example.com', 'secret') is None
    # history survives
    assert repositories.PurchaseRepository(db).count_by_owner(buyer.id) == 1


def test_plain_user_delete(client, db, make_user):
    _admin(make_user)
    victim = make_user()
    login(client, 'admin@waladaw.com', 'admin')
    r = client.post(f'/admin/users/{victim.id}/delete', follow_redirects=False)
    assert 'success=' in r.headers['location']
    db.refresh(victim)
    assert victim.deleted


def test_user_detail(client, db, make_user, make_product):
    _admin(make_user)
    seller = make_user(name='Ana')
    make_product(seller, name='Kindle')
    login(client, 'admin@waladaw.com', 'admin')
    detail = services.AdminService(db).user_detail(seller.id)
    assert detail['product_count'] == 1 and detail['purchase_count'] == 0
    r = client.get(f'/admin/users/{seller.id}')
    assert 'Kindle' in r.text
    assert client.get('/admin/users/999', follow_redirects=False).status_code == 303


def test_admin_products_filters_are_combined(client, db, make_user, make_product):
    _admin(make_user)
    a = make_user()
    b = make_user()
    make_product(a, name='Gaming mouse', category=models.ProductCategory.GAMING)
    make_product(a, name='Office mouse', category=models.ProductCategory.ACCESSORIES)
    make_product(b, name='Gaming chair', category=models.ProductCategory.GAMING)
    svc = services.ProductService(db)
    names = lambda page: sorted(p['name'] for p in page.items)  # noqa: E731
    assert names(svc.page_admin(query='mouse')) == ['Gaming mouse', 'Office mouse']
    assert names(svc.page_admin(query='mouse', category='GAMING')) == ['Gaming mouse']
    assert names(svc.page_admin(category='GAMING', owner_id=b.id)) == ['Gaming chair']

    login(client, 'admin@waladaw.com', 'admin')
    r = client.get(f'/admin/products?category=GAMING&owner_id={a.id}')
    assert 'Gaming mouse' in r.text and 'Gaming chair' not in r.text


def test_admin_product_delete_follows_sold_rule(client, db, make_user, make_product):
    _admin(make_user)
    seller = make_user()
    buyer = make_user()
    sold = make_product(seller, name='Sold')
    _buy(db, buyer, sold)
    unsold = make_product(seller, name='Unsold')
    login(client, 'admin@waladaw.com', 'admin')

    detail = client.get(f'/admin/products/{sold.id}')
    assert detail.status_code == 200 and 'Sold' in detail.text
    assert 'warning=' in client.post(f'/admin/products/{sold.id}/delete', follow_redirects=False).headers['location']
    assert 'success=' in client.post(f'/admin/products/{unsold.id}/delete', follow_redirects=False).headers['location']


def test_sales_filters_and_stats(client, db, make_user, make_product):
    _admin(make_user)
    seller = make_user()
    ana = make_user(name='Ana')
    david = make_user(name='David')
    old = _buy(db, ana, make_product(seller, price=100.0))
    _buy(db, david, make_product(seller, price=50.0))
    # move the first purchase to last week
    purchase = repositories.PurchaseRepository(db).get(old['id'])
    purchase.created_at = purchase.created_at - timedelta(days=7)
    db.add(purchase)
    db.commit()

    svc = services.PurchaseService(db)
    today = models.utcnow().date()
    page, stats = svc.sales()
    assert page.total == 2
    assert stats == {'total_sales': 150.0, 'transactions': 2, 'average': 75.0}
    recent, _ = svc.sales(date_from=today, date_to=today)
    assert [s['buyer']['id'] for s in recent.items] == [david.id]
    by_buyer, _ = svc.sales(buyer_id=ana.id)
    assert [s['id'] for s in by_buyer.items] == [old['id']]

    login(client, 'admin@waladaw.com', 'admin')
    r = client.get(f'/admin/sales?desde={today.isoformat()}&hasta={today.isoformat()}')
    assert r.status_code == 200
    assert '150.00 €' in r.text
    assert client.get('/admin/sales?desde=not-a-date').status_code == 200


def test_sales_stats_without_purchases(db):
    _, stats = services.PurchaseService(db).sales()
    assert stats == {'total_sales': 0.0, 'transactions': 0, 'average': 0.0}
