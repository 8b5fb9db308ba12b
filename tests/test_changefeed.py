from costcalc import change_feed
from costcalc.changefeed import ChangeFeed
from costcalc.models import db, Material

from conftest import add_material, add_menu, add_recipe


def test_publish_reaches_table_and_global_subscribers():
    feed = ChangeFeed()
    materials, everything = [], []
    feed.subscribe('material', materials.append)
    feed.subscribe(None, everything.append)

    feed.publish('material', 'insert', 1)
    feed.publish('menu', 'delete', 2)

    assert materials == [{'table': 'material', 'action': 'insert', 'id': 1}]
    assert len(everything) == 2


def test_failing_subscriber_does_not_stop_others():
    feed = ChangeFeed()
    received = []

    def broken(change):
        raise ValueError("subscriber bug")

    feed.subscribe('menu', broken)
    feed.subscribe('menu', received.append)
    feed.publish('menu', 'update', 3)

    assert received == [{'table': 'menu', 'action': 'update', 'id': 3}]


def test_unsubscribe():
    feed = ChangeFeed()
    received = []
    feed.subscribe('menu', received.append)
    feed.unsubscribe('menu', received.append)
    feed.publish('menu', 'update', 3)
    assert received == []


def test_committed_writes_are_published(client, feed_events):
    material = add_material(client, name='Pork')
    menu = add_menu(client)
    add_recipe(client, menu['id'], material['id'], usage_amount=10)

    assert {'table': 'material', 'action': 'insert', 'id': material['id']} in feed_events
    assert {'table': 'menu', 'action': 'insert', 'id': menu['id']} in feed_events
    assert any(e['table'] == 'recipe' and e['action'] == 'insert' for e in feed_events)

    feed_events.clear()
    client.post(f"/materials/delete/{material['id']}")

    assert {'table': 'material', 'action': 'delete', 'id': material['id']} in feed_events
    assert any(e['table'] == 'recipe' and e['action'] == 'delete' for e in feed_events)


def test_rolled_back_writes_are_not_published(ctx, feed_events):
    db.session.add(Material(name='Draft', purchase_price=10, purchase_quantity=10))
    db.session.flush()
    db.session.rollback()

    assert feed_events == []


def test_subscription_on_table(ctx):
    received = []
    change_feed.subscribe('material', received.append)
    try:
        db.session.add(Material(name='Rice', purchase_price=2400, purchase_quantity=5000))
        db.session.commit()
    finally:
        change_feed.unsubscribe('material', received.append)

    assert [change['action'] for change in received] == ['insert']
