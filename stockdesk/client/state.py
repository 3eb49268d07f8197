"""
Client application state

Auth status, the exchange-rate cache and the pending confirm dialog live on
one AppState object created at start-up and torn down on logout.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from stockdesk.core.errors import AppError
from stockdesk.lib.money import FALLBACK_RATES, convert_minor_units
from .api_client import StockDeskClient
from .notifier import ErrorNotifier
from .session_policy import InactivityTimer

logger = logging.getLogger(__name__)

RATES_MAX_AGE_SECONDS = 24 * 60 * 60


@dataclass
class AuthState:
    user: Optional[dict] = None
    logout_reason: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


@dataclass
class ExchangeRateCache:
    rates: Dict[Tuple[str, str], float] = field(default_factory=lambda: dict(FALLBACK_RATES))
    fetched_at: Optional[float] = None

    def is_stale(self, now: float) -> bool:
        return self.fetched_at is None or now - self.fetched_at >= RATES_MAX_AGE_SECONDS

    def update(self, payload: Dict[str, float], now: float) -> None:
        """Payload keys look like "USD/TRY" """
        rates = {}
        for key, value in payload.items():
            source, _, target = key.partition("/")
            if source and target:
                rates[(source, target)] = float(value)
        if rates:
            self.rates = rates
            self.fetched_at = now

    def convert(self, minor_units: int, from_currency: str, to_currency: str) -> int:
        return convert_minor_units(minor_units, from_currency, to_currency, self.rates)


@dataclass
class ConfirmDialogState:
    prompt: Optional[str] = None
    on_confirm: Optional[Callable[[], Any]] = None

    @property
    def is_open(self) -> bool:
        return self.on_confirm is not None

    def open(self, prompt: str, on_confirm: Callable[[], Any]) -> None:
        self.prompt = prompt
        self.on_confirm = on_confirm

    def resolve(self, confirmed: bool) -> Any:
        action, self.prompt, self.on_confirm = self.on_confirm, None, None
        if confirmed and action:
            return action()
        return None


class AppState:
    """
    Usage:
        state = AppState(client, show=print)
        state.login("admin", "secret")
        ...
        state.timer.tick()
    """

    def __init__(
        self,
        client: StockDeskClient,
        show: Callable[[AppError], None],
        clock: Callable[[], float] = time.monotonic,
        inactivity_limit: Optional[float] = None,
        warning_window: Optional[float] = None,
        on_warn: Optional[Callable[[float], None]] = None,
    ):
        self.client = client
        self.clock = clock
        self.auth = AuthState()
        self.rates = ExchangeRateCache()
        self.confirm = ConfirmDialogState()
        self.notifier = ErrorNotifier(show=show, logout=self.logout, clock=clock)
        timer_kwargs = {}
        if inactivity_limit is not None:
            timer_kwargs["inactivity_limit"] = inactivity_limit
        if warning_window is not None:
            timer_kwargs["warning_window"] = warning_window
        self.timer = InactivityTimer(on_expire=self.logout, on_warn=on_warn, clock=clock, **timer_kwargs)

    def login(self, username: str, password: str) -> dict:
        data = self.client.login(username, password)
        self.auth = AuthState(user=data["user"])
        self.timer.start()
        self.refresh_rates()
        return data["user"]

    def refresh_rates(self, force: bool = False) -> None:
        now = self.clock()
        if not force and not self.rates.is_stale(now):
            return
        try:
            self.rates.update(self.client.exchange_rates(), now)
        except AppError as e:
            logger.warning(f"Keeping cached exchange rates: {e.code}")
            self.notifier.notify(e)

    def logout(self, reason: str = "user") -> None:
        """Teardown: drop the token, the user, cached rates and any open dialog"""
        if not self.auth.is_authenticated and self.client.token is None:
            return
        try:
            self.client.logout()
        except AppError as e:
            # Server session is already gone
            logger.info(f"Logout request failed: {e.code}")
        self.auth = AuthState(logout_reason=reason)
        self.rates = ExchangeRateCache()
        self.confirm = ConfirmDialogState()
        logger.info(f"Logged out ({reason})")
