import logging
from collections import defaultdict

from flask import current_app, has_app_context
from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

PENDING_KEY = 'costcalc_pending_changes'


class ChangeFeed:
    """
    Publishes committed table writes to subscribers.

    Writes are collected per session when they are flushed and only published
    once the transaction commits. A rollback discards them.
    """

    def __init__(self, app=None):
        self._subscribers = defaultdict(list)
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        app.extensions['change_feed'] = self

    def subscribe(self, table, callback):
        """Subscribe to changes of one table, or of every table when table is None"""
        self._subscribers[table].append(callback)
        return callback

    def unsubscribe(self, table, callback):
        if callback in self._subscribers[table]:
            self._subscribers[table].remove(callback)

    def publish(self, table, action, entity_id):
        change = {'table': table, 'action': action, 'id': entity_id}
        for callback in list(self._subscribers[table]) + list(self._subscribers[None]):
            try:
                callback(change)
            except Exception:
                logger.exception("Change feed subscriber failed for %s %s %s", action, table, entity_id)


def _entity_id(obj):
    # Pending objects have no identity key yet, read the flushed primary key columns
    key = inspect(obj).mapper.primary_key_from_instance(obj)
    return key[0] if len(key) == 1 else tuple(key)


@event.listens_for(Session, 'after_flush')
def _collect_changes(session, flush_context):
    pending = session.info.setdefault(PENDING_KEY, [])
    for action, objects in (('insert', session.new), ('update', session.dirty), ('delete', session.deleted)):
        for obj in objects:
            if action == 'update' and not session.is_modified(obj):
                continue
            table = getattr(obj, '__tablename__', None)
            if table:
                pending.append((table, action, _entity_id(obj)))


@event.listens_for(Session, 'after_commit')
def _publish_changes(session):
    pending = session.info.pop(PENDING_KEY, [])
    if not pending or not has_app_context():
        return

    feed = current_app.extensions.get('change_feed')
    if feed is None:
        return

    for table, action, entity_id in pending:
        feed.publish(table, action, entity_id)


@event.listens_for(Session, 'after_rollback')
def _discard_changes(session):
    session.info.pop(PENDING_KEY, None)
