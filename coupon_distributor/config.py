import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name, default):
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    DATABASE = os.getenv('DATABASE', 'coupons.db')
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-me')
    ENVIRONMENT = os.getenv('ENVIRONMENT', 'development')

    # Behind a reverse proxy the client address comes from X-Forwarded-For
    TRUST_PROXY = _flag('TRUST_PROXY', 'true')

    # 3 claim requests per IP per day
    RATE_LIMIT_MAX = int(os.getenv('RATE_LIMIT_MAX', '3'))
    RATE_LIMIT_WINDOW = int(os.getenv('RATE_LIMIT_WINDOW', str(24 * 60 * 60)))

    CLAIM_CONFLICT_RETRIES = int(os.getenv('CLAIM_CONFLICT_RETRIES', '0'))

    ADMIN_TOKEN_MAX_AGE = int(os.getenv('ADMIN_TOKEN_MAX_AGE', str(24 * 60 * 60)))
    ALLOW_ADMIN_SIGNUP = _flag('ALLOW_ADMIN_SIGNUP', 'true')

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
