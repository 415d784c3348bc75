"""
User-facing error descriptions for the trading dashboard.

Actions that fail are blocked with an explanation rather than a traceback.
This module turns the exceptions raised by the job layer into a short message
and a list of things the user can do about it.

Usage:
    try:
        await dashboard.analyze_ticker("RELIANCE.NS")
    except DashboardError as e:
        info = describe_error(e, ErrorContext(ticker="RELIANCE.NS"))
        print(info.user_message)
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .config.logging_config import get_logger
from .exceptions import (
    CacheError,
    ConfigurationError,
    EmptySelectionError,
    JobCancelled,
    JobFailed,
    SlotBusyError,
    TransportError,
)

logger = get_logger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels for categorization."""
    HIGH = "high"            # Action could not be performed
    MEDIUM = "medium"        # Degraded, e.g. a stale list is shown
    LOW = "low"              # Blocked by user input, nothing broke
    INFO = "info"


class ErrorCategory(Enum):
    """Error categories for better organization."""
    USER_INPUT = "user_input"
    EXTERNAL_SERVICE = "external_service"
    ANALYSIS = "analysis"
    STORAGE = "storage"
    CONFIGURATION = "configuration"
    SYSTEM = "system"


@dataclass
class ErrorContext:
    """Where the error happened."""
    ticker: Optional[str] = None
    slot: Optional[str] = None
    action: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ErrorInfo:
    """Description of an error for the user and for the logs."""
    exception: Exception
    severity: ErrorSeverity
    category: ErrorCategory
    user_message: str
    suggested_actions: List[str]
    context: ErrorContext
    retry_possible: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/reporting."""
        return {
            "exception_type": type(self.exception).__name__,
            "exception_message": str(self.exception),
            "severity": self.severity.value,
            "category": self.category.value,
            "user_message": self.user_message,
            "suggested_actions": self.suggested_actions,
            "retry_possible": self.retry_possible,
            "context": {
                "ticker": self.context.ticker,
                "slot": self.context.slot,
                "action": self.context.action,
                "timestamp": self.context.timestamp.isoformat(),
            },
        }


def describe_error(exception: Exception, context: Optional[ErrorContext] = None) -> ErrorInfo:
    """
    Describe exception for the user.

    Args:
        exception: The exception that blocked the action
        context: Where it happened, used to make the message specific

    Returns:
        ErrorInfo with a user message and suggested actions
    """
    context = context or ErrorContext()
    severity, category = _classify(exception)

    info = ErrorInfo(
        exception=exception,
        severity=severity,
        category=category,
        user_message=_user_message(exception, context),
        suggested_actions=_suggested_actions(exception),
        context=context,
        retry_possible=isinstance(exception, TransportError),
    )
    _log(info)
    return info


def _classify(exception: Exception) -> tuple:
    if isinstance(exception, (SlotBusyError, EmptySelectionError)):
        return ErrorSeverity.LOW, ErrorCategory.USER_INPUT
    if isinstance(exception, TransportError):
        return ErrorSeverity.HIGH, ErrorCategory.EXTERNAL_SERVICE
    if isinstance(exception, JobFailed):
        return ErrorSeverity.HIGH, ErrorCategory.ANALYSIS
    if isinstance(exception, JobCancelled):
        return ErrorSeverity.INFO, ErrorCategory.ANALYSIS
    if isinstance(exception, CacheError):
        return ErrorSeverity.MEDIUM, ErrorCategory.STORAGE
    if isinstance(exception, ConfigurationError):
        return ErrorSeverity.HIGH, ErrorCategory.CONFIGURATION
    return ErrorSeverity.MEDIUM, ErrorCategory.SYSTEM


def _user_message(exception: Exception, context: ErrorContext) -> str:
    if isinstance(exception, SlotBusyError):
        return "An analysis is already running here. Wait for it to finish or cancel it first."

    elif isinstance(exception, EmptySelectionError):
        return "Please select at least one stock to analyze."

    elif isinstance(exception, TransportError):
        if exception.not_found and context.ticker:
            return f"No data found for {context.ticker} on the analysis server."
        if exception.status_code is None:
            return "Could not reach the analysis server. Please check that it is running."
        return f"The analysis server returned an error (HTTP {exception.status_code}). Please try again."

    elif isinstance(exception, JobFailed):
        return "Analysis failed. Please check the logs."

    elif isinstance(exception, JobCancelled):
        return "Analysis was cancelled."

    elif isinstance(exception, CacheError):
        return "The stock list could not be saved locally. Showing the last saved list."

    elif isinstance(exception, ConfigurationError):
        return f"Invalid dashboard configuration: {exception}"

    else:
        return f"An unexpected error occurred. Error details: {str(exception)[:100]}"


def _suggested_actions(exception: Exception) -> List[str]:
    if isinstance(exception, SlotBusyError):
        return [
            "Wait for the running analysis to complete",
            "Cancel the running analysis before starting a new one",
        ]

    elif isinstance(exception, EmptySelectionError):
        return ["Select one or more stocks from the list"]

    elif isinstance(exception, TransportError):
        return [
            "Check that the analysis server is running",
            "Verify the API URL in the configuration or TRADING_DASHBOARD_API_URL",
            "Try again in a few moments",
        ]

    elif isinstance(exception, JobFailed):
        return [
            "Check the analysis server logs",
            "Retry the analysis with fewer stocks",
        ]

    elif isinstance(exception, CacheError):
        return ["Check that the cache directory is writable and has free space"]

    elif isinstance(exception, ConfigurationError):
        return ["Fix the configuration file and run again"]

    return []


def _log(info: ErrorInfo) -> None:
    extra = info.to_dict()
    if info.severity == ErrorSeverity.HIGH:
        logger.error(info.user_message, extra=extra)
    elif info.severity == ErrorSeverity.MEDIUM:
        logger.warning(info.user_message, extra=extra)
    else:
        logger.info(info.user_message, extra=extra)
