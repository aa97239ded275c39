# Security
from staybook.security.context import RequestContext
from staybook.security.auth import (
    get_password_hash, verify_password, create_access_token, decode_token,
    get_current_user, get_request_context, require_admin
)

__all__ = [
    'RequestContext',
    'get_password_hash', 'verify_password', 'create_access_token', 'decode_token',
    'get_current_user', 'get_request_context', 'require_admin'
]
