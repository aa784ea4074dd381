import sqlite3
from datetime import timedelta

import pytest

from coupon_distributor.errors import StoreUnavailable, ValidationError
from coupon_distributor.models import Identity
from coupon_distributor.store import CouponStore

from conftest import NOW, make_coupon

ALICE = Identity(ip='10.0.0.1', session_id='alice')
BOB = Identity(ip='10.0.0.2', session_id='bob')


def test_insert_normalizes_code_and_stamps_times(store):
    coupon = make_coupon(store, '  save10 ')

    assert coupon.id is not None
    assert coupon.code == 'SAVE10'
    assert coupon.is_active and not coupon.is_used
    assert coupon.created_at == NOW
    assert coupon.claimed_by == []


def test_duplicate_code_is_rejected_case_insensitively(store):
    make_coupon(store, 'SAVE10')

    with pytest.raises(ValidationError) as excinfo:
        make_coupon(store, 'save10')

    assert excinfo.value.details == {'code': 'Coupon code already exists'}
    assert len(store.list_all()) == 1


def test_conditional_mark_used_appends_claim_and_flips_flag(store):
    coupon = make_coupon(store, 'SAVE10')

    updated = store.conditional_mark_used(coupon.id, ALICE, NOW)

    assert updated.is_used
    assert updated.last_claim_at == NOW
    assert [(c.ip, c.session_id, c.claimed_at) for c in updated.claimed_by] == [('10.0.0.1', 'alice', NOW)]


def test_conditional_mark_used_fails_once_used(store):
    coupon = make_coupon(store, 'SAVE10')
    store.conditional_mark_used(coupon.id, ALICE, NOW)

    assert store.conditional_mark_used(coupon.id, BOB, NOW + timedelta(seconds=1)) is None

    reloaded = store.get(coupon.id)
    assert reloaded.is_used
    assert [c.ip for c in reloaded.claimed_by] == ['10.0.0.1']


def test_update_only_touches_patchable_fields(store):
    coupon = make_coupon(store, 'SAVE10')
    new_expiry = NOW + timedelta(days=10)

    updated = store.update(
        coupon.id,
        {'is_active': False, 'description': 'Changed', 'expiry_date': new_expiry, 'is_used': True, 'code': 'X'},
        now=NOW,
    )

    assert not updated.is_active
    assert updated.description == 'Changed'
    assert updated.expiry_date == new_expiry
    assert not updated.is_used
    assert updated.code == 'SAVE10'


def test_update_unknown_coupon_returns_none(store):
    assert store.update(999, {'is_active': False}) is None


def test_find_eligible_candidate_applies_predicate_and_ordering(store):
    make_coupon(store, 'FIRST', created_at=NOW - timedelta(days=2))
    make_coupon(store, 'SECOND', created_at=NOW - timedelta(days=1))
    make_coupon(store, 'OFF', is_active=False, created_at=NOW - timedelta(days=3))

    by_age = store.find_eligible_candidate(lambda c: True, lambda c: c.created_at)
    not_first = store.find_eligible_candidate(lambda c: c.code != 'FIRST', lambda c: c.created_at)
    nothing = store.find_eligible_candidate(lambda c: False, lambda c: c.created_at)

    assert by_age.code == 'FIRST'
    assert not_first.code == 'SECOND'
    assert nothing is None



def test_find_eligible_candidate_drops_expired_rows_when_given_now(store):
    make_coupon(store, 'STALE', expires_in=timedelta(0), created_at=NOW - timedelta(days=2))
    make_coupon(store, 'FRESH', created_at=NOW - timedelta(days=1))
    seen = []

    def predicate(coupon):
        seen.append(coupon.code)
        return True

    candidate = store.find_eligible_candidate(predicate, lambda c: c.created_at, now=NOW)

    assert candidate.code == 'FRESH'
    assert seen == ['FRESH']


def test_get_by_code_ignores_case(store):
    coupon = make_coupon(store, 'SPRING25')

    assert store.get_by_code('spring25').id == coupon.id
    assert store.get_by_code(' Spring25 ').id == coupon.id
    assert store.get_by_code('SUMMER') is None

def test_last_claim_at_tracks_most_recent_claim_for_ip(store):
    first = make_coupon(store, 'ONE')
    second = make_coupon(store, 'TWO')
    store.conditional_mark_used(first.id, ALICE, NOW - timedelta(days=2))
    store.conditional_mark_used(second.id, ALICE, NOW)

    assert store.last_claim_at('10.0.0.1') == NOW
    assert store.last_claim_at('10.0.0.9') is None


def test_count_available(store):
    make_coupon(store, 'OPEN')
    make_coupon(store, 'OFF', is_active=False)
    make_coupon(store, 'EDGE', expires_in=timedelta(0))
    used = make_coupon(store, 'USED')
    store.conditional_mark_used(used.id, ALICE, NOW)

    assert store.count_available(NOW) == 1
    assert store.count_available(NOW) == 1


def test_claim_history_lists_only_claimed_coupons_newest_first(store):
    make_coupon(store, 'UNCLAIMED')
    older = make_coupon(store, 'OLDER')
    newer = make_coupon(store, 'NEWER')
    store.conditional_mark_used(older.id, ALICE, NOW - timedelta(days=2))
    store.conditional_mark_used(newer.id, BOB, NOW)

    assert [c.code for c in store.claim_history()] == ['NEWER', 'OLDER']


def test_list_all_newest_first(store):
    make_coupon(store, 'OLD', created_at=NOW - timedelta(days=1))
    make_coupon(store, 'NEW', created_at=NOW)

    assert [c.code for c in store.list_all()] == ['NEW', 'OLD']
    assert [c.code for c in store.list_all(ordering='allocation')] == ['OLD', 'NEW']


def test_database_errors_surface_as_store_unavailable(conn):
    conn.execute('DROP TABLE claims')
    store = CouponStore(conn)

    with pytest.raises(StoreUnavailable) as excinfo:
        store.last_claim_at('10.0.0.1')

    assert isinstance(excinfo.value.__cause__, sqlite3.OperationalError)
