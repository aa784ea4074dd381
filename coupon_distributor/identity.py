import secrets

from .models import Identity

LOOPBACK_ALIASES = {'::1', '::ffff:127.0.0.1'}
SESSION_COOKIE = 'sessionId'
SESSION_HEADER = 'X-Session-ID'


def normalize_ip(ip):
    ip = (ip or '').strip()
    if not ip:
        return 'unknown'
    if ip in LOOPBACK_ALIASES:
        return '127.0.0.1'
    return ip


def client_ip(request, trust_proxy=True):
    """Real client address, honouring the first X-Forwarded-For hop behind a proxy."""
    if trust_proxy:
        forwarded = request.headers.get('X-Forwarded-For', '')
        first_hop = forwarded.split(',')[0].strip()
        if first_hop:
            return normalize_ip(first_hop)
    return normalize_ip(request.remote_addr)


def client_identity(request, trust_proxy=True):
    session_id = request.cookies.get(SESSION_COOKIE) or request.headers.get(SESSION_HEADER)
    is_new = not session_id
    if is_new:
        session_id = secrets.token_urlsafe(24)
    return Identity(ip=client_ip(request, trust_proxy), session_id=session_id, is_new_session=is_new)
