import pytest

from costcalc import create_app, change_feed
from costcalc.models import db


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'UPLOAD_FOLDER': str(tmp_path / 'images'),
    })

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


@pytest.fixture
def feed_events():
    """Collect every change published while the test runs"""
    events = []
    callback = change_feed.subscribe(None, events.append)
    yield events
    change_feed.unsubscribe(None, callback)


def add_material(client, name='Pork', price=1000, quantity=500, unit='g', **extra):
    payload = {'name': name, 'purchase_price': price, 'purchase_quantity': quantity, 'purchase_unit': unit}
    payload.update(extra)
    response = client.post('/materials/add', json=payload)
    assert response.status_code == 201
    return response.get_json()


def add_menu(client, name='Ginger pork', sales_price=1000):
    response = client.post('/menus/add', json={'name': name, 'sales_price': sales_price})
    assert response.status_code == 201
    return response.get_json()


def add_recipe(client, menu_id, material_id, **fields):
    payload = {'material_id': material_id}
    payload.update(fields)
    response = client.post(f'/menus/{menu_id}/recipes/add', json=payload)
    assert response.status_code == 201
    return response.get_json()
