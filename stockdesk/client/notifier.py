"""
Error notifier - the global listener for failed requests

Locally handled errors are skipped, auth errors log the user out, and
everything else is shown at most once per throttle interval.
"""
import logging
import time
from typing import Callable, Optional

from stockdesk.core.errors import AppError

logger = logging.getLogger(__name__)

NOTIFY_THROTTLE_SECONDS = 0.5

_HANDLED_ATTR = "handled_locally"


def mark_error_handled(error: BaseException) -> BaseException:
    """Flag an error so the global notifier does not report it again"""
    setattr(error, _HANDLED_ATTR, True)
    return error


def is_error_handled(error: BaseException) -> bool:
    return bool(getattr(error, _HANDLED_ATTR, False))


def as_app_error(error: BaseException) -> AppError:
    if isinstance(error, AppError):
        return error
    return AppError("UNKNOWN_ERROR", details=str(error) or None)


class ErrorNotifier:
    """
    Usage:
        notifier = ErrorNotifier(show=toast, logout=state.logout)
        try:
            client.create_product(data)
        except AppError as e:
            notifier.notify(e)
    """

    def __init__(
        self,
        show: Callable[[AppError], None],
        logout: Optional[Callable[[str], None]] = None,
        throttle: float = NOTIFY_THROTTLE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.show = show
        self.logout = logout
        self.throttle = throttle
        self.clock = clock
        self._last_shown: Optional[float] = None

    def notify(self, error: BaseException) -> bool:
        """Returns True when the error was shown to the user"""
        if is_error_handled(error):
            return False

        app_error = as_app_error(error)

        if app_error.is_auth_error:
            if self.logout:
                self.logout("session-expired")
            return False

        # Field errors belong to the form that raised them
        if app_error.code == "VALIDATION_ERROR":
            logger.debug(f"Unhandled validation error: {app_error.details}")
            return False

        # Time based, not content based
        now = self.clock()
        if self._last_shown is not None and now - self._last_shown < self.throttle:
            return False
        self._last_shown = now

        self.show(app_error)
        return True
