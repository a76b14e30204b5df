"""
Unit Tests for PageAnchors
"""

from contract_watcher.services.watchers.paging import PageAnchors


class TestPageAnchors:

    def anchors(self) -> PageAnchors:
        anchors = PageAnchors()
        for height in (1201, 1001, 1101, 1101):
            anchors.record(height, f"token-{height}")
        return anchors

    def test_start_strictly_above_window(self):
        anchors = self.anchors()

        assert anchors.start_above(1100) == "token-1101"
        assert anchors.start_above(1101) == "token-1201"
        assert anchors.start_above(1201) is None

    def test_prune_below(self):
        anchors = self.anchors()

        anchors.prune_below(1101)

        assert len(anchors) == 3
        assert anchors.start_above(0) == "token-1101"

    def test_empty(self):
        anchors = PageAnchors()

        assert anchors.start_above(10) is None
        assert anchors.newest is None
