# Client Package - API client and client-side session/error policies
from .api_client import StockDeskClient
from .forms import FormMutation, ConfirmAction
from .notifier import ErrorNotifier, mark_error_handled
from .session_policy import InactivityTimer, SessionState
from .state import AppState

__all__ = [
    "StockDeskClient",
    "FormMutation",
    "ConfirmAction",
    "ErrorNotifier",
    "mark_error_handled",
    "InactivityTimer",
    "SessionState",
    "AppState",
]
