"""
render_queue.py — Serialises page render requests.

Only one render runs at a time. A request arriving while busy replaces any
earlier pending one, so a burst of page flips ends with a single render of
the last requested page.
"""

from __future__ import annotations

from typing import Callable, Optional


class RenderQueue:

    def __init__(self, dispatch: Callable[[int], None]):
        self._dispatch = dispatch
        self.busy: bool = False
        self.pending: Optional[int] = None

    def request(self, page_number: int):
        if self.busy:
            self.pending = page_number
            return
        self.busy = True
        self._dispatch(page_number)

    def complete(self):
        """Call when the active render finishes; starts the pending one if any."""
        if self.pending is None:
            self.busy = False
            return
        page_number = self.pending
        self.pending = None
        self._dispatch(page_number)

    def drop_pending(self):
        """Forget the waiting request. A render already running stays counted
        until its completion arrives."""
        self.pending = None

    def reset(self):
        self.busy = False
        self.pending = None
