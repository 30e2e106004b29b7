"""Latest-request tracking for interactive searches.

An interactive client firing searches as the user types only wants the
results of its most recent query. Each search for a session takes a token
from the gate; when the search finishes, the caller asks whether its token is
still the latest and drops the results otherwise.
"""

import itertools
from collections import OrderedDict


class RequestGate:
    """Latest request token per session, drawn from one gate-wide counter."""

    def __init__(self, max_sessions: int = 1024):
        self.max_sessions = max_sessions
        self._latest: OrderedDict[str, int] = OrderedDict()
        # tokens never repeat, even for a session that was evicted and came back
        self._tokens = itertools.count(1)

    def begin(self, session_id: str) -> int:
        """Issue a new token for a session, superseding any earlier one."""
        token = next(self._tokens)
        self._latest.pop(session_id, None)
        self._latest[session_id] = token

        while len(self._latest) > self.max_sessions:
            self._latest.popitem(last=False)
        return token

    def is_latest(self, session_id: str, token: int) -> bool:
        """True when no newer request has started for the session."""
        return self._latest.get(session_id) == token


search_gate = RequestGate()
