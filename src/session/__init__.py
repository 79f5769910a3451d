"""mmdesk session package.

Holds the session snapshot store (`store`) and the refresh orchestration that
rebuilds it from backend commands (`refresh`).
"""

from __future__ import annotations

__all__: list[str] = [
    "refresh",
    "store",
]
