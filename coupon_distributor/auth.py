"""
Admin accounts and the token that guards the admin endpoints.

Tokens are itsdangerous timed signatures over the admin id, handed out in an
httponly `token` cookie. An `Authorization: Bearer` header works too, for API
clients that do not keep cookies.
"""
import functools
import logging
import sqlite3

import click
from flask import Blueprint, current_app, g, jsonify, request
from flask.cli import with_appcontext
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from .db import get_db
from .errors import AuthError, Forbidden, ValidationError
from .models import to_millis, utcnow

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__, url_prefix='/auth')

TOKEN_COOKIE = 'token'


def _serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt='admin-auth')


def issue_token(admin_id):
    return _serializer().dumps({'id': admin_id})


def verify_token(token):
    try:
        data = _serializer().loads(token, max_age=current_app.config['ADMIN_TOKEN_MAX_AGE'])
    except (SignatureExpired, BadSignature):
        raise AuthError('Invalid token')
    return data['id']


def _request_token():
    token = request.cookies.get(TOKEN_COOKIE)
    if token:
        return token
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        return header[len('Bearer '):].strip()
    return None


def admin_required(view):
    @functools.wraps(view)
    def wrapped(*args, **kwargs):
        token = _request_token()
        if not token:
            raise AuthError()
        g.admin_id = verify_token(token)
        return view(*args, **kwargs)
    return wrapped


def create_admin(conn, username, email, password):
    if conn.execute('SELECT 1 FROM admins WHERE username = ?', (username,)).fetchone():
        raise ValidationError('Username already exists', details={'username': 'Username already exists'})
    if conn.execute('SELECT 1 FROM admins WHERE email = ?', (email,)).fetchone():
        raise ValidationError('Email already exists', details={'email': 'Email already exists'})
    try:
        with conn:
            cursor = conn.execute(
                'INSERT INTO admins (username, email, password_hash, created_at) VALUES (?, ?, ?, ?)',
                (username, email, generate_password_hash(password), to_millis(utcnow())),
            )
    except sqlite3.IntegrityError:
        raise ValidationError('Admin already exists')
    return cursor.lastrowid


def authenticate(conn, username, password):
    row = conn.execute('SELECT id, password_hash FROM admins WHERE username = ?', (username,)).fetchone()
    if row is None or not check_password_hash(row['password_hash'], password):
        raise AuthError('Invalid credentials')
    return row['id']


def _with_token_cookie(response, token):
    secure = current_app.config['ENVIRONMENT'] == 'production'
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=current_app.config['ADMIN_TOKEN_MAX_AGE'],
        httponly=True,
        secure=secure,
        samesite='None' if secure else 'Lax',
        path='/',
    )
    return response


@bp.route('/signup', methods=['POST'])
def signup():
    if not current_app.config['ALLOW_ADMIN_SIGNUP']:
        raise Forbidden('Admin signup is disabled')

    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    if not username or not email or not password:
        raise ValidationError('All fields are required')

    admin_id = create_admin(get_db(), username, email, password)
    logger.info('Admin %s signed up', username)
    response = jsonify({'message': 'Admin created successfully'})
    response.status_code = 201
    return _with_token_cookie(response, issue_token(admin_id))


@bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    admin_id = authenticate(get_db(), (data.get('username') or '').strip(), data.get('password') or '')
    return _with_token_cookie(jsonify({'message': 'Login successful'}), issue_token(admin_id))


@bp.route('/logout', methods=['POST'])
def logout():
    response = jsonify({'message': 'Logged out successfully'})
    response.delete_cookie(TOKEN_COOKIE, path='/')
    return response


@bp.route('/verify', methods=['GET'])
@admin_required
def verify():
    row = get_db().execute('SELECT username FROM admins WHERE id = ?', (g.admin_id,)).fetchone()
    if row is None:
        raise AuthError('Invalid token')
    return jsonify({'authenticated': True, 'username': row['username']})


@click.command('create-admin')
@click.option('--username', default='admin', show_default=True)
@click.option('--email', default='admin@example.com', show_default=True)
@click.password_option()
@with_appcontext
def create_admin_command(username, email, password):
    """Create an admin account unless the username is taken."""
    try:
        create_admin(get_db(), username, email, password)
    except ValidationError as exc:
        raise click.ClickException(exc.message)
    click.echo('Admin user {} created.'.format(username))
