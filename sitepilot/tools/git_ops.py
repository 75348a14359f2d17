"""Branch naming helpers."""

import time
from typing import Optional

PREVIEW_BRANCH_PREFIX = "preview-"


def preview_branch_name(now_ms: Optional[int] = None) -> str:
    """Derive a preview branch name from the current time in milliseconds.

    Args:
        now_ms: Epoch milliseconds (defaults to now)

    Returns:
        Branch name like ``preview-1718000000000``
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{PREVIEW_BRANCH_PREFIX}{now_ms}"
