import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from . import admin, auth, coupons, db
from .config import Config
from .errors import CouponError, StoreUnavailable
from .logging_config import configure_logging
from .ratelimit import WindowRateLimiter

logger = logging.getLogger(__name__)


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config is not None:
        app.config.update(test_config)

    configure_logging(app.config['LOG_LEVEL'])

    app.extensions['rate_limiter'] = WindowRateLimiter(
        app.config['RATE_LIMIT_MAX'], app.config['RATE_LIMIT_WINDOW']
    )

    db.init_app(app)
    app.cli.add_command(auth.create_admin_command)
    app.register_blueprint(auth.bp)
    app.register_blueprint(coupons.bp)
    app.register_blueprint(admin.bp)

    @app.route('/')
    def index():
        return jsonify({'status': 'ok', 'service': 'coupon-distributor'})

    @app.errorhandler(CouponError)
    def handle_coupon_error(error):
        if isinstance(error, StoreUnavailable):
            logger.exception('Coupon store unavailable')
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'error': error.name.lower().replace(' ', '_'), 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception('Unhandled error')
        return jsonify({'error': 'server_error', 'message': 'Something went wrong!'}), 500

    return app
