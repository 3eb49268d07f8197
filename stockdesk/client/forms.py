"""
Form helpers - pending state, field-level errors and confirm-before-delete
"""
import logging
from typing import Any, Callable, Dict, Iterable, Optional

from stockdesk.core.errors import AppError
from .notifier import ErrorNotifier, mark_error_handled

logger = logging.getLogger(__name__)

FORM_ERROR_KEY = "_form"


class FormMutation:
    """
    Wrap a submit function. While a submit is in flight `pending` is True and
    further submits are ignored. VALIDATION_ERROR fills `field_errors`; codes
    listed in `form_error_codes` become a form-level error. Both are marked
    handled so the global notifier stays quiet about them.
    """

    def __init__(
        self,
        mutation_fn: Callable[[Any], Any],
        on_success: Optional[Callable[[Any], None]] = None,
        on_field_error: Optional[Callable[[Dict[str, str]], None]] = None,
        form_error_codes: Iterable[str] = (),
        on_optimistic: Optional[Callable[[], None]] = None,
        on_rollback: Optional[Callable[[], None]] = None,
        notifier: Optional[ErrorNotifier] = None,
    ):
        self.mutation_fn = mutation_fn
        self.on_success = on_success
        self.on_field_error = on_field_error
        self.form_error_codes = set(form_error_codes)
        self.on_optimistic = on_optimistic
        self.on_rollback = on_rollback
        self.notifier = notifier
        self.pending = False
        self.field_errors: Dict[str, str] = {}

    @property
    def can_submit(self) -> bool:
        return not self.pending

    def submit(self, data: Any) -> Any:
        if self.pending:
            return None

        self.pending = True
        self.field_errors = {}
        if self.on_optimistic:
            self.on_optimistic()
        try:
            result = self.mutation_fn(data)
        except Exception as e:
            if self.on_rollback:
                self.on_rollback()
            self._handle_error(e)
            if self.notifier:
                self.notifier.notify(e)
                return None
            raise
        finally:
            self.pending = False

        if self.on_success:
            self.on_success(result)
        return result

    def _handle_error(self, error: Exception) -> None:
        if not isinstance(error, AppError):
            return
        if error.code == "VALIDATION_ERROR" and error.field_errors:
            self.field_errors = error.field_errors
        elif error.code in self.form_error_codes:
            self.field_errors = {FORM_ERROR_KEY: error.code}
        else:
            return
        mark_error_handled(error)
        if self.on_field_error:
            self.on_field_error(self.field_errors)


class ConfirmAction:
    """Destructive action that only runs after an explicit yes"""

    def __init__(self, action: Callable[..., Any], confirm: Callable[[str], bool], prompt: str = "Are you sure?"):
        self.action = action
        self.confirm = confirm
        self.prompt = prompt

    def run(self, *args, **kwargs) -> Any:
        if not self.confirm(self.prompt):
            logger.debug("Destructive action cancelled")
            return None
        return self.action(*args, **kwargs)
