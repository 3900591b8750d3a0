from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

# Rate-limit keyed on remote address, in memory only.
limiter = Limiter(key_func=get_remote_address)
