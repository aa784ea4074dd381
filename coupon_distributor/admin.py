import logging

from flask import Blueprint, current_app, jsonify, request

from .auth import admin_required
from .db import get_engine, get_store
from .errors import NotFound
from .identity import client_identity
from .models import utcnow
from .schemas import CouponCreate, CouponUpdate, parse_body

logger = logging.getLogger(__name__)

bp = Blueprint('admin', __name__, url_prefix='/admin')


@bp.route('/coupons', methods=['GET'])
@admin_required
def list_coupons():
    return jsonify([coupon.to_dict() for coupon in get_store().list_all()])


@bp.route('/coupons', methods=['POST'])
@admin_required
def create_coupon():
    now = utcnow()
    coupon = parse_body(CouponCreate, request.get_json(silent=True), now).to_coupon()
    coupon = get_store().insert(coupon, now=now)
    logger.info('Coupon %s created', coupon.code)
    return jsonify(coupon.to_dict()), 201


@bp.route('/coupons/<int:coupon_id>', methods=['PUT'])
@admin_required
def update_coupon(coupon_id):
    now = utcnow()
    patch = parse_body(CouponUpdate, request.get_json(silent=True), now).to_patch()
    coupon = get_store().update(coupon_id, patch, now=now)
    if coupon is None:
        raise NotFound('Coupon not found')
    logger.info('Coupon %s updated: %s', coupon.code, ', '.join(sorted(patch)) or 'no changes')
    return jsonify(coupon.to_dict())


@bp.route('/coupons/next', methods=['GET'])
@admin_required
def next_coupon():
    """Preview the coupon the requesting client would be handed next."""
    identity = client_identity(request, trust_proxy=current_app.config['TRUST_PROXY'])
    coupon = get_engine().peek(identity)
    return jsonify(coupon.to_public())


@bp.route('/coupons/<code>/claim', methods=['POST'])
@admin_required
def claim_coupon(code):
    identity = client_identity(request, trust_proxy=current_app.config['TRUST_PROXY'])
    coupon = get_engine().claim_code(code, identity)
    return jsonify({'message': 'Coupon claimed successfully', 'coupon': coupon.to_public()})


@bp.route('/claims', methods=['GET'])
@admin_required
def claim_history():
    return jsonify([coupon.to_history() for coupon in get_store().claim_history()])
