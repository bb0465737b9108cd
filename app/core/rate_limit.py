from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

# Shared by the app (exception handler) and the endpoint decorators
limiter = Limiter(key_func=get_remote_address)
