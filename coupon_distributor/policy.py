"""
Eligibility rules for claiming coupons.

Pure functions only: callers pass in everything they need, including `now`.
Both the cooldown and the per-coupon exclusion are keyed on the claimant IP;
the session token is recorded with a claim but never decides eligibility.
"""
import math
from datetime import datetime, timedelta, timezone

CLAIM_COOLDOWN = timedelta(hours=24)

_NEVER = datetime.min.replace(tzinfo=timezone.utc)


def is_in_cooldown(last_claim_at, now):
    if last_claim_at is None:
        return False
    return last_claim_at > now - CLAIM_COOLDOWN


def time_remaining(last_claim_at, now):
    if last_claim_at is None:
        return timedelta(0)
    return max(CLAIM_COOLDOWN - (now - last_claim_at), timedelta(0))


def hours_left(last_claim_at, now):
    return math.ceil(time_remaining(last_claim_at, now).total_seconds() / 3600)


def is_available(coupon, now):
    """Active, unused and unexpired, whoever is asking."""
    if coupon.expiry_date is None:
        return False
    return coupon.is_active and not coupon.is_used and coupon.expiry_date > now


def is_eligible(coupon, identity, now):
    if not is_available(coupon, now):
        return False
    return all(claim.ip != identity.ip for claim in coupon.claimed_by)


def allocation_order(coupon):
    # never claimed first, then least recently claimed, then oldest
    return (
        coupon.last_claim_at is not None,
        coupon.last_claim_at or _NEVER,
        coupon.created_at or _NEVER,
        coupon.id or 0,
    )
