"""Authentication: session tokens, password hashing and request identity.

Note: ``require_permissions`` lives in ``auth.pipeline`` and is NOT
re-exported here to avoid a circular import (auth -> pipeline -> api.deps
-> auth). Import directly:
``from dancing_pony.auth.pipeline import require_permissions``.
"""

from dancing_pony.auth.context import Permission, RequestIdentity
from dancing_pony.auth.passwords import hash_password, verify_password
from dancing_pony.auth.tokens import TokenService

__all__ = [
    "Permission",
    "RequestIdentity",
    "TokenService",
    "hash_password",
    "verify_password",
]
