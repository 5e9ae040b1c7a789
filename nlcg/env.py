"""Settings read from the environment."""

from __future__ import annotations

import os
from functools import lru_cache


@lru_cache(maxsize=None)
def get_skip_newton_efermi() -> bool:
    """True if NLCGLIB_DISABLE_NEWTON_EFERMI is set to anything but "0".

    The variable is read once; call ``get_skip_newton_efermi.cache_clear()`` to read it again.
    """
    value = os.environ.get("NLCGLIB_DISABLE_NEWTON_EFERMI")
    if value is None:
        return False
    return value != "0"