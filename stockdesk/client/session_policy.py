"""
Inactivity timer - ACTIVE -> WARNED -> EXPIRED

Interaction returns the timer to ACTIVE from any state before expiry.
Expiry is terminal until start() is called for a new session, and the
logout callback fires exactly once per session.
"""
import enum
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

INACTIVITY_LIMIT_SECONDS = 15 * 60
WARNING_WINDOW_SECONDS = 60


class SessionState(str, enum.Enum):
    ACTIVE = "active"
    WARNED = "warned"
    EXPIRED = "expired"


class InactivityTimer:
    """Clock-driven state machine; call tick() periodically and touch() on user input"""

    def __init__(
        self,
        on_expire: Callable[[str], None],
        on_warn: Optional[Callable[[float], None]] = None,
        inactivity_limit: float = INACTIVITY_LIMIT_SECONDS,
        warning_window: float = WARNING_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not 0 < warning_window < inactivity_limit:
            raise ValueError("warning_window must be positive and shorter than inactivity_limit")
        self.on_expire = on_expire
        self.on_warn = on_warn
        self.inactivity_limit = inactivity_limit
        self.warning_window = warning_window
        self.clock = clock
        self.state = SessionState.ACTIVE
        self.last_activity = clock()

    @property
    def warn_at(self) -> float:
        return self.last_activity + self.inactivity_limit - self.warning_window

    @property
    def expire_at(self) -> float:
        return self.last_activity + self.inactivity_limit

    def start(self) -> None:
        """Begin a fresh session"""
        self.state = SessionState.ACTIVE
        self.last_activity = self.clock()

    def touch(self) -> SessionState:
        """User interaction; ignored once expired"""
        if self.state is SessionState.EXPIRED:
            return self.state
        # A late tick may not have run yet; expiry still wins
        if self.clock() >= self.expire_at:
            return self.tick()
        self.state = SessionState.ACTIVE
        self.last_activity = self.clock()
        return self.state

    def tick(self) -> SessionState:
        now = self.clock()
        if self.state is SessionState.ACTIVE and now >= self.warn_at:
            self.state = SessionState.WARNED
            if self.on_warn:
                self.on_warn(max(self.expire_at - now, 0))
        if self.state is SessionState.WARNED and now >= self.expire_at:
            self.state = SessionState.EXPIRED
            logger.info("Session expired after inactivity")
            self.on_expire("inactivity")
        return self.state

    def seconds_until_expiry(self) -> float:
        if self.state is SessionState.EXPIRED:
            return 0.0
        return max(self.expire_at - self.clock(), 0.0)
