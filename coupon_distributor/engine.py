import logging

from . import policy
from .errors import Conflict, CooldownActive, NoCouponsAvailable
from .models import utcnow

logger = logging.getLogger(__name__)


class AllocationEngine:
    """Hands out one coupon per claimant per cooldown window.

    Selection and the write are separate steps, so the write is conditional:
    if another request marks the chosen coupon used in between, the claim
    fails with Conflict instead of handing the same coupon out twice.
    """

    def __init__(self, store):
        self.store = store

    def check_cooldown(self, identity, now):
        last_claim_at = self.store.last_claim_at(identity.ip)
        if policy.is_in_cooldown(last_claim_at, now):
            hours_left = policy.hours_left(last_claim_at, now)
            logger.info('Cooldown active for IP %s, %s hours left', identity.ip, hours_left)
            raise CooldownActive(hours_left)

    def _next_candidate(self, identity, now):
        candidate = self.store.find_eligible_candidate(
            lambda coupon: policy.is_eligible(coupon, identity, now),
            policy.allocation_order,
            now=now,
        )
        if candidate is None:
            logger.info('No coupons available for IP %s', identity.ip)
            raise NoCouponsAvailable()
        return candidate

    def _mark_used(self, candidate, identity, now):
        coupon = self.store.conditional_mark_used(candidate.id, identity, now)
        if coupon is None:
            logger.info('Lost claim race on coupon %s for IP %s', candidate.code, identity.ip)
            raise Conflict()
        logger.info('Coupon %s claimed by IP %s', coupon.code, identity.ip)
        return coupon

    def peek(self, identity, now=None):
        """The coupon `claim` would hand out right now, without claiming it."""
        now = now or utcnow()
        self.check_cooldown(identity, now)
        return self._next_candidate(identity, now)

    def claim(self, identity, now=None):
        now = now or utcnow()
        self.check_cooldown(identity, now)
        return self._mark_used(self._next_candidate(identity, now), identity, now)

    def claim_code(self, code, identity, now=None):
        """Claim one specific coupon by code, under the same cooldown and eligibility rules."""
        now = now or utcnow()
        self.check_cooldown(identity, now)
        coupon = self.store.get_by_code(code)
        if coupon is None or not policy.is_eligible(coupon, identity, now):
            raise NoCouponsAvailable('Coupon not available')
        return self._mark_used(coupon, identity, now)

    def claim_with_retry(self, identity, now=None, attempts=0):
        """Claim, re-running the whole selection up to `attempts` more times on Conflict."""
        for attempt in range(attempts + 1):
            try:
                return self.claim(identity, now)
            except Conflict:
                if attempt == attempts:
                    raise
                logger.debug('Retrying claim for IP %s after conflict', identity.ip)

    def available_count(self, now=None):
        return self.store.count_available(now or utcnow())
