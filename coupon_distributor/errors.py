"""
Error types for the coupon distributor.

Every failure path in the allocation core ends in one of these. The expected
outcomes of a claim (cooldown, empty pool, lost race) are ordinary results for
the caller; only StoreUnavailable means something is actually broken.

    CouponError (base)
    ├── ValidationError
    ├── CooldownActive
    ├── NoCouponsAvailable
    ├── Conflict
    ├── RateLimited
    ├── NotFound
    ├── AuthError
    ├── Forbidden
    └── StoreUnavailable
"""


class CouponError(Exception):
    """Base error carrying a machine readable kind and an HTTP status."""

    kind = 'server_error'
    status_code = 500
    default_message = 'Something went wrong'

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        body = {'error': self.kind, 'message': self.message}
        if self.details:
            body['details'] = self.details
        return body


class ValidationError(CouponError):
    """Malformed or missing input. `details` maps field names to messages."""

    kind = 'validation_error'
    status_code = 400
    default_message = 'Validation error'


class CooldownActive(CouponError):
    kind = 'cooldown_active'
    status_code = 429

    def __init__(self, hours_left, message=None):
        self.hours_left = hours_left
        super().__init__(
            message or 'Please wait {} hours before claiming another coupon.'.format(hours_left)
        )

    def to_dict(self):
        body = super().to_dict()
        body['retryAfterHours'] = self.hours_left
        return body


class NoCouponsAvailable(CouponError):
    kind = 'no_coupons_available'
    status_code = 404
    default_message = 'No available coupons'


class Conflict(CouponError):
    """Another claimant won the coupon first; a fresh selection may succeed."""

    kind = 'conflict'
    status_code = 409
    default_message = 'Coupon was claimed by another request, please retry'


class RateLimited(CouponError):
    kind = 'rate_limited'
    status_code = 429
    default_message = 'Too many coupon claims from this IP, please try again later'


class NotFound(CouponError):
    kind = 'not_found'
    status_code = 404
    default_message = 'Not found'


class AuthError(CouponError):
    kind = 'unauthorized'
    status_code = 401
    default_message = 'Unauthorized'


class Forbidden(CouponError):
    kind = 'forbidden'
    status_code = 403
    default_message = 'Forbidden'


class StoreUnavailable(CouponError):
    kind = 'store_unavailable'
    status_code = 500
    default_message = 'Coupon store is unavailable'
