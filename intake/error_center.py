"""
Intake - Error Center

Single ingestion point for failures. Every collaborator that can fail funnels
its error through ``ErrorCenter.report`` with a category tag. The center asks
the recovery planner for an action, records the error, marks the owning
operation failed, writes a structured log entry and announces the error.

Reporting never raises: an unknown category tag is reported as general and
a classifier failure degrades to a generic USER_ACTION plan.
"""

import functools
import logging
import traceback
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ParamSpec, TypeVar

from intake.config import IntakeConfig
from intake.logging import ErrorLogEntry, error_logger, now_iso
from intake.notifications import Notification, NotificationKind, NotificationQueue
from intake.operations import OperationTracker, new_id
from intake.recovery import (
    ErrorCategory,
    RecoveryAction,
    RecoveryKind,
    classify,
    error_message,
    error_name,
    error_subtype,
    is_recoverable,
)

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

FALLBACK_MESSAGE = "An unexpected error occurred"

Classifier = Callable[[Any, ErrorCategory], RecoveryAction]

# (notification kind, title) announced when resolving each action kind
_RESOLUTION_NOTICES: dict[RecoveryKind, tuple[NotificationKind, str]] = {
    RecoveryKind.RETRY: (NotificationKind.INFO, "Retrying..."),
    RecoveryKind.SKIP: (NotificationKind.WARNING, "Skipped"),
    RecoveryKind.FALLBACK: (NotificationKind.INFO, "Using Fallback"),
}


@dataclass(frozen=True)
class AppError:
    """A reported failure with its recovery plan. Never mutated."""

    id: str
    category: ErrorCategory
    error: Any  # exception or {"type": ..., "message": ...} mapping
    is_recoverable: bool
    timestamp: datetime = field(default_factory=datetime.now)
    context: str | None = None
    recovery_action: RecoveryAction | None = None
    operation_id: str | None = None

    @property
    def message(self) -> str:
        return error_message(self.error)

    @property
    def subtype(self) -> str | None:
        return error_subtype(self.error)


def _stack_of(error: Any) -> str | None:
    if isinstance(error, BaseException) and error.__traceback__ is not None:
        return "".join(traceback.format_exception(type(error), error, error.__traceback__))
    if isinstance(error, Mapping) and error.get("stack"):
        return str(error["stack"])
    return None


class ErrorCenter:
    """
    Owns the reported errors and the notification queue.

    Lives for the application session alongside the OperationTracker.
    """

    def __init__(
        self,
        tracker: OperationTracker | None = None,
        notifications: NotificationQueue | None = None,
        config: IntakeConfig | None = None,
        classifier: Classifier = classify,
    ):
        self.config = config or IntakeConfig()
        self.tracker = tracker
        self.notifications = notifications or NotificationQueue(
            default_duration=self.config.warning_duration
        )
        self._classifier = classifier
        self._errors: dict[str, AppError] = {}
        self.loading = False

    # -- errors ----------------------------------------------------------

    @property
    def errors(self) -> tuple[AppError, ...]:
        """Reported errors still on record, in report order."""
        return tuple(self._errors.values())

    def get_error(self, error_id: str) -> AppError | None:
        return self._errors.get(error_id)

    def report(
        self,
        error: Any,
        category: ErrorCategory | str = ErrorCategory.GENERAL,
        context: str | None = None,
        operation_id: str | None = None,
    ) -> AppError:
        """
        Record a failure and announce it.

        Args:
            error: Exception or mapping with a ``type`` subtype tag
            category: file, git, parsing, ai or general; any other tag is
                treated as general
            context: Free text describing what was being attempted
            operation_id: Operation to mark failed, if any

        Returns:
            The recorded AppError
        """
        try:
            category = ErrorCategory(category)
        except ValueError:
            logger.warning("Unknown error category %r, reporting as general", category)
            category = ErrorCategory.GENERAL

        try:
            action = self._classifier(error, category)
        except Exception:
            logger.exception("Recovery classification failed for %s error", category.value)
            action = RecoveryAction(RecoveryKind.USER_ACTION, FALLBACK_MESSAGE)

        recoverable = is_recoverable(error)
        app_error = AppError(
            id=new_id(),
            category=category,
            error=error,
            is_recoverable=recoverable,
            context=context,
            recovery_action=action,
            operation_id=operation_id,
        )
        self._errors[app_error.id] = app_error
        self._log(app_error)

        if operation_id is not None and self.tracker is not None:
            self.tracker.fail_operation(operation_id, app_error.message)

        # Recoverable errors stay up so the user can act on the retry
        self.notifications.push(
            NotificationKind.ERROR,
            "Error Occurred",
            action.message,
            auto_hide=not recoverable,
            duration=None if recoverable else self.config.error_duration,
        )
        return app_error

    def resolve(self, error_id: str) -> RecoveryAction | None:
        """
        Apply the bookkeeping side of an error's recovery plan.

        RETRY, SKIP and FALLBACK announce the action and drop the error; the
        caller performs the actual retry. USER_ACTION keeps the error and
        raises a persistent warning.

        Returns:
            The error's RecoveryAction, or None if there is nothing to resolve
        """
        app_error = self._errors.get(error_id)
        if app_error is None or app_error.recovery_action is None:
            return None

        action = app_error.recovery_action
        if action.kind == RecoveryKind.USER_ACTION:
            self.notifications.push(
                NotificationKind.WARNING,
                "Action Required",
                action.message,
                auto_hide=False,
            )
        else:
            kind, title = _RESOLUTION_NOTICES[action.kind]
            self.notifications.push(
                kind,
                title,
                action.message,
                auto_hide=True,
                duration=self.config.resolution_duration,
            )
            self.remove_error(error_id)

        logger.info("Resolved error %s with %s", error_id, action.kind.value)
        return action

    def remove_error(self, error_id: str) -> None:
        self._errors.pop(error_id, None)

    def clear_errors(self) -> None:
        self._errors.clear()

    def clear_notifications(self) -> None:
        self.notifications.clear()

    def clear(self) -> None:
        """Reset both the error list and the notification list."""
        self.clear_errors()
        self.clear_notifications()

    def set_loading(self, loading: bool) -> None:
        self.loading = loading

    # -- notifications ---------------------------------------------------

    def show_success(self, title: str, message: str) -> Notification:
        return self.notifications.push(
            NotificationKind.SUCCESS, title, message, duration=self.config.success_duration
        )

    def show_warning(self, title: str, message: str) -> Notification:
        return self.notifications.push(
            NotificationKind.WARNING, title, message, duration=self.config.warning_duration
        )

    def show_info(self, title: str, message: str) -> Notification:
        return self.notifications.push(
            NotificationKind.INFO, title, message, duration=self.config.info_duration
        )

    # -- wrappers --------------------------------------------------------

    def with_error_handling(
        self,
        category: ErrorCategory | str = ErrorCategory.GENERAL,
        context: str | None = None,
    ) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R | None]]]:
        """
        Decorate a coroutine so failures are reported instead of raised.

        The wrapped coroutine returns None when it fails.
        """

        def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R | None]]:
            @functools.wraps(func)
            async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R | None:
                self.set_loading(True)
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    self.report(e, category, context)
                    return None
                finally:
                    self.set_loading(False)

            return wrapper

        return decorator

    # -- logging ---------------------------------------------------------

    def _log(self, app_error: AppError) -> None:
        action = app_error.recovery_action
        entry = ErrorLogEntry(
            timestamp=now_iso(),
            error_id=app_error.id,
            category=app_error.category.value,
            error_name=error_name(app_error.error),
            message=app_error.message,
            stack=_stack_of(app_error.error),
            subtype=app_error.subtype,
            context=app_error.context,
            operation_id=app_error.operation_id,
            recovery=action.kind.value if action else None,
            recoverable=app_error.is_recoverable,
        )
        error_logger.error(entry)
        logger.warning(
            "%s error reported (%s): %s",
            app_error.category.value, app_error.subtype or "unclassified", app_error.message,
        )
