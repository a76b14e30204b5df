"""
Resume points for address histories that only page newest first.

Solana signatures and the Terra FCD index both list an address's history
from the tip backwards. Walking from the tip on every cycle makes a cycle
cost grow with the distance between cursor and head. Instead, the first
walk records one resume point per page, later cycles only page the new
entries above the newest known one, and a window is read starting from
the lowest resume point above it.
"""

import bisect
from typing import Any, List, Optional, Tuple


class PageAnchors:
    """
    Sorted (height, token) resume points for one address.

    Paging from `token` yields only entries at or below `height`, so the
    walk for a window ending at `to_height` can start from the lowest
    anchor strictly above it.

    Example:
        ```python
        anchors = PageAnchors()
        anchors.record(1080, "sig-1080")
        anchors.start_above(1050)   # "sig-1080"
        anchors.start_above(1100)   # None, page from the tip
        ```
    """

    def __init__(self):
        self._heights: List[int] = []
        self._tokens: List[Any] = []
        # (height, id) of the newest entry seen so far
        self.newest: Optional[Tuple[int, str]] = None

    def __len__(self) -> int:
        return len(self._heights)

    def record(self, height: int, token: Any):
        index = bisect.bisect_right(self._heights, height)
        self._heights.insert(index, height)
        self._tokens.insert(index, token)

    def start_above(self, height: int) -> Optional[Any]:
        """Token of the lowest anchor above `height`, None to start at the tip"""
        index = bisect.bisect_right(self._heights, height)
        return self._tokens[index] if index < len(self._tokens) else None

    def prune_below(self, height: int):
        """Drop anchors no future window can start from"""
        index = bisect.bisect_left(self._heights, height)
        del self._heights[:index]
        del self._tokens[:index]
