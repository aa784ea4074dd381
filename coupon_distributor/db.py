import os
import sqlite3

import click
from flask import current_app, g
from flask.cli import with_appcontext

from .engine import AllocationEngine
from .store import CouponStore

SCHEMA_PATH = os.path.join(os.path.dirname(__file__), 'schema.sql')


def connect(database, timeout=10.0):
    # IMMEDIATE takes the write lock when a write transaction opens, so
    # concurrent claimants queue on the busy timeout instead of deadlocking
    conn = sqlite3.connect(database, timeout=timeout, isolation_level='IMMEDIATE')
    conn.row_factory = sqlite3.Row
    conn.execute('PRAGMA foreign_keys = ON')
    return conn


def init_schema(conn):
    with open(SCHEMA_PATH, encoding='utf-8') as f:
        conn.executescript(f.read())


def get_db():
    db = getattr(g, '_database', None)
    if db is None:
        db = g._database = connect(current_app.config['DATABASE'])
    return db


def get_store():
    return CouponStore(get_db())


def get_engine():
    return AllocationEngine(get_store())


def close_connection(exception=None):
    db = g.pop('_database', None)
    if db is not None:
        db.close()


def init_db():
    init_schema(get_db())


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create the coupon tables if they do not exist."""
    init_db()
    click.echo('Initialized the database.')


def init_app(app):
    app.teardown_appcontext(close_connection)
    app.cli.add_command(init_db_command)
