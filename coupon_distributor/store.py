"""
SQLite backed coupon store.

The one write that matters for correctness is `conditional_mark_used`: the
flip of `is_used` and the claim record land in a single transaction, and only
when the coupon is still unused. Everything else is plain CRUD.
"""
import functools
import sqlite3
from collections import defaultdict

from .errors import StoreUnavailable, ValidationError
from .models import ClaimRecord, Coupon, from_millis, to_millis, utcnow

# columns an admin may change after creation
_PATCHABLE = ('is_active', 'description', 'expiry_date')


def _store_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except sqlite3.DatabaseError as exc:
            raise StoreUnavailable() from exc
    return wrapper


class CouponStore:

    def __init__(self, conn):
        self.conn = conn

    def _load(self, rows):
        rows = list(rows)
        if not rows:
            return []
        claims = self._claims_for([row['id'] for row in rows])
        return [Coupon.from_row(row, claims.get(row['id'])) for row in rows]

    def _claims_for(self, coupon_ids):
        placeholders = ','.join('?' * len(coupon_ids))
        cursor = self.conn.execute(
            'SELECT coupon_id, ip, session_id, claimed_at FROM claims '
            'WHERE coupon_id IN ({}) ORDER BY claimed_at, id'.format(placeholders),
            coupon_ids,
        )
        claims = defaultdict(list)
        for row in cursor:
            claims[row['coupon_id']].append(
                ClaimRecord(ip=row['ip'], session_id=row['session_id'], claimed_at=from_millis(row['claimed_at']))
            )
        return claims

    @_store_errors
    def get(self, coupon_id):
        row = self.conn.execute('SELECT * FROM coupons WHERE id = ?', (coupon_id,)).fetchone()
        if row is None:
            return None
        return self._load([row])[0]

    @_store_errors
    def insert(self, coupon, now=None):
        now = to_millis(now or utcnow())
        try:
            with self.conn:
                cursor = self.conn.execute(
                    'INSERT INTO coupons (code, description, is_active, is_used, expiry_date, '
                    'last_claim_at, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)',
                    (
                        coupon.code.strip().upper(),
                        coupon.description,
                        int(coupon.is_active),
                        int(coupon.is_used),
                        to_millis(coupon.expiry_date),
                        to_millis(coupon.last_claim_at),
                        to_millis(coupon.created_at) or now,
                        now,
                    ),
                )
        except sqlite3.IntegrityError:
            raise ValidationError('Coupon code already exists', details={'code': 'Coupon code already exists'})
        return self.get(cursor.lastrowid)

    @_store_errors
    def update(self, coupon_id, patch, now=None):
        changes = {key: value for key, value in patch.items() if key in _PATCHABLE}
        if 'expiry_date' in changes:
            changes['expiry_date'] = to_millis(changes['expiry_date'])
        if 'is_active' in changes:
            changes['is_active'] = int(changes['is_active'])
        changes['updated_at'] = to_millis(now or utcnow())

        assignments = ', '.join('{} = ?'.format(column) for column in changes)
        with self.conn:
            cursor = self.conn.execute(
                'UPDATE coupons SET {} WHERE id = ?'.format(assignments),
                list(changes.values()) + [coupon_id],
            )
        if cursor.rowcount == 0:
            return None
        return self.get(coupon_id)

    @_store_errors
    def list_all(self, ordering='newest'):
        if ordering == 'allocation':
            order_by = 'last_claim_at IS NOT NULL, last_claim_at, created_at, id'
        else:
            order_by = 'created_at DESC, id DESC'
        return self._load(self.conn.execute('SELECT * FROM coupons ORDER BY {}'.format(order_by)))

    @_store_errors
    def get_by_code(self, code):
        row = self.conn.execute('SELECT * FROM coupons WHERE code = ?', (code.strip(),)).fetchone()
        if row is None:
            return None
        return self._load([row])[0]

    @_store_errors
    def find_eligible_candidate(self, predicate, ordering, now=None):
        """Return the first coupon under `ordering` that satisfies `predicate`.

        Passing `now` also drops expired coupons before they are loaded.
        """
        sql = 'SELECT * FROM coupons WHERE is_active = 1 AND is_used = 0'
        params = ()
        if now is not None:
            sql += ' AND expiry_date > ?'
            params = (to_millis(now),)
        rows = self.conn.execute(sql, params)
        candidates = [coupon for coupon in self._load(rows) if predicate(coupon)]
        if not candidates:
            return None
        return min(candidates, key=ordering)

    @_store_errors
    def conditional_mark_used(self, coupon_id, identity, now):
        """Mark the coupon used for `identity` if it is still unused.

        Returns the updated coupon, or None when another claim got there first.
        """
        claimed_at = to_millis(now)
        with self.conn:
            cursor = self.conn.execute(
                'UPDATE coupons SET is_used = 1, last_claim_at = ?, updated_at = ? '
                'WHERE id = ? AND is_used = 0',
                (claimed_at, claimed_at, coupon_id),
            )
            if cursor.rowcount != 1:
                return None
            self.conn.execute(
                'INSERT INTO claims (coupon_id, ip, session_id, claimed_at) VALUES (?, ?, ?, ?)',
                (coupon_id, identity.ip, identity.session_id, claimed_at),
            )
        return self.get(coupon_id)

    @_store_errors
    def last_claim_at(self, ip):
        row = self.conn.execute('SELECT MAX(claimed_at) AS latest FROM claims WHERE ip = ?', (ip,)).fetchone()
        return from_millis(row['latest'])

    @_store_errors
    def count_available(self, now):
        row = self.conn.execute(
            'SELECT COUNT(*) AS available FROM coupons '
            'WHERE is_active = 1 AND is_used = 0 AND expiry_date > ?',
            (to_millis(now),),
        ).fetchone()
        return row['available']

    @_store_errors
    def claim_history(self):
        rows = self.conn.execute(
            'SELECT coupons.* FROM coupons '
            'JOIN (SELECT coupon_id, MAX(claimed_at) AS latest FROM claims GROUP BY coupon_id) history '
            'ON history.coupon_id = coupons.id '
            'ORDER BY history.latest DESC, coupons.id DESC'
        )
        return self._load(rows)
