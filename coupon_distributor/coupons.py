from flask import Blueprint, current_app, jsonify, request

from .db import get_engine
from .errors import RateLimited
from .identity import SESSION_COOKIE, client_identity

bp = Blueprint('coupons', __name__, url_prefix='/coupons')

SESSION_MAX_AGE = 30 * 24 * 60 * 60


@bp.route('/claim', methods=['POST'])
def claim_coupon():
    identity = client_identity(request, trust_proxy=current_app.config['TRUST_PROXY'])

    limiter = current_app.extensions['rate_limiter']
    if not limiter.hit(identity.ip):
        raise RateLimited()

    coupon = get_engine().claim_with_retry(identity, attempts=current_app.config['CLAIM_CONFLICT_RETRIES'])

    response = jsonify({'message': 'Coupon claimed successfully', 'coupon': coupon.to_public()})
    if identity.is_new_session:
        secure = current_app.config['ENVIRONMENT'] == 'production'
        response.set_cookie(
            SESSION_COOKIE,
            identity.session_id,
            max_age=SESSION_MAX_AGE,
            httponly=True,
            secure=secure,
            samesite='None' if secure else 'Lax',
        )
    return response


@bp.route('/available', methods=['GET'])
def available_coupons():
    return jsonify({'availableCoupons': get_engine().available_count()})
