"""
Memo Bridge Backend — Bearer Token Authenticator
=================================================

What:  Checks the inbound `Authorization` header against the shared secret.
How:   Exact match against `Bearer <token>`, compared in constant time.
"""

import secrets
from typing import Mapping


def authenticate(headers: Mapping[str, str], expected_token: str) -> bool:
    """
    Return True only for `Authorization: Bearer <expected_token>`.

    Missing header, another scheme, a wrong token, or an unconfigured
    (empty) expected token all return False.
    """
    if not expected_token:
        return False
    presented = next(
        (value for name, value in headers.items() if name.lower() == "authorization"),
        None,
    )
    if presented is None:
        return False
    return secrets.compare_digest(
        presented.encode("utf-8"),
        f"Bearer {expected_token}".encode("utf-8"),
    )
