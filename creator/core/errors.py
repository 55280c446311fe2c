# Copyright 2025 Creator Contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Centralized error handling for Creator.

This module provides:
- Custom exception types for each failure class of the orchestration loop
- Structured error payloads with recovery suggestions
- Correlation IDs so a terminal error can be matched to its log lines

Failure taxonomy of the orchestration loop:

=====================  ==================================  =====================
Failure                Exception                           Loop outcome
=====================  ==================================  =====================
TransportFailure       ProviderError and subclasses        terminal ``error``
MalformedContent       MalformedContentError               degraded ``complete``
ExecutionFailure       none (failed ``ExecutionResult``)   retry policy decides
EngineUnreachable      ExecutionError                      terminal ``error``
SecurityViolation      SecurityViolationError              terminal ``error``
LoopExhaustion         LoopExhaustedError                  terminal ``error``
=====================  ==================================  =====================
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Error Categories
# =============================================================================


class ErrorCategory(Enum):
    """Categories of errors for classification and handling."""

    # Provider (AI backend) errors
    PROVIDER_CONNECTION = "provider_connection"
    PROVIDER_AUTH = "provider_auth"
    PROVIDER_INVALID_RESPONSE = "provider_invalid_response"

    # Protocol errors
    MALFORMED_CONTENT = "malformed_content"

    # Execution errors
    EXECUTION_FAILED = "execution_failed"
    SECURITY_VIOLATION = "security_violation"

    # Loop errors
    LOOP_EXHAUSTED = "loop_exhausted"

    # Configuration and storage
    CONFIG_INVALID = "config_invalid"
    PERSISTENCE = "persistence"

    # System errors
    INTERNAL_ERROR = "internal_error"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# =============================================================================
# Custom Exception Types
# =============================================================================


class CreatorError(Exception):
    """Base exception for all Creator errors.

    Provides structured error information including:
    - Error category and severity
    - Correlation ID for tracking
    - Recovery suggestions
    - Original exception chain
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
        correlation_id: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.details = details or {}
        self.recovery_hint = recovery_hint
        self.correlation_id = correlation_id or str(uuid.uuid4())[:8]
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "correlation_id": self.correlation_id,
            "recovery_hint": self.recovery_hint,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        result = f"[{self.correlation_id}] {self.message}"
        if self.recovery_hint:
            result += f"\nRecovery hint: {self.recovery_hint}"
        return result


class ProviderError(CreatorError):
    """Errors talking to the AI backend (TransportFailure)."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs: Any,
    ):
        kwargs.setdefault("category", ErrorCategory.PROVIDER_CONNECTION)
        super().__init__(message, **kwargs)
        self.provider = provider
        self.status_code = status_code
        self.details["provider"] = provider
        if status_code is not None:
            self.details["status_code"] = status_code


class ProviderConnectionError(ProviderError):
    """Backend unreachable or the request timed out."""

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs: Any):
        super().__init__(
            message,
            provider=provider,
            category=ErrorCategory.PROVIDER_CONNECTION,
            recovery_hint="Check network connection and proxy URL. Verify the proxy service is running.",
            **kwargs,
        )


class ProviderAuthError(ProviderError):
    """Backend rejected the site token."""

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs: Any):
        super().__init__(
            message,
            provider=provider,
            category=ErrorCategory.PROVIDER_AUTH,
            recovery_hint="Check the site token. Set CREATOR_SITE_TOKEN or add site_token to the config file.",
            **kwargs,
        )


class ProviderInvalidResponseError(ProviderError):
    """Backend answered with something that is not a valid transport envelope."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        response_data: Optional[Any] = None,
        **kwargs: Any,
    ):
        super().__init__(
            message,
            provider=provider,
            category=ErrorCategory.PROVIDER_INVALID_RESPONSE,
            recovery_hint="The proxy returned an unexpected response format. Try again later.",
            **kwargs,
        )
        self.response_data = response_data
        if isinstance(response_data, dict):
            self.details["response_keys"] = list(response_data.keys())[:10]


class MalformedContentError(CreatorError):
    """Backend reply arrived but does not follow the step protocol."""

    def __init__(self, message: str, raw_content: str = "", **kwargs: Any):
        super().__init__(
            message,
            category=ErrorCategory.MALFORMED_CONTENT,
            severity=ErrorSeverity.WARNING,
            **kwargs,
        )
        self.raw_content = raw_content
        self.details["content_chars"] = len(raw_content)


class ExecutionError(CreatorError):
    """The execution engine could not run a payload or answered garbage.

    A payload that ran and failed is not an exception; it comes back as an
    unsuccessful ``ExecutionResult`` and goes through the retry policy.
    """

    def __init__(self, message: str, payload: str = "", **kwargs: Any):
        kwargs.setdefault("category", ErrorCategory.EXECUTION_FAILED)
        super().__init__(message, **kwargs)
        self.payload = payload


class SecurityViolationError(ExecutionError):
    """The sandbox rejected a payload for a forbidden pattern."""

    def __init__(self, message: str, payload: str = "", pattern: Optional[str] = None, **kwargs: Any):
        super().__init__(
            message,
            payload=payload,
            category=ErrorCategory.SECURITY_VIOLATION,
            recovery_hint="The generated code uses a construct the sandbox never allows. Rephrase the request.",
            **kwargs,
        )
        self.pattern = pattern
        self.details["pattern"] = pattern


class LoopExhaustedError(CreatorError):
    """The iteration cap was reached without a terminal step."""

    def __init__(self, iterations: int, **kwargs: Any):
        super().__init__(
            "Maximum loop iterations reached. Task may be too complex.",
            category=ErrorCategory.LOOP_EXHAUSTED,
            recovery_hint="Split the request into smaller tasks.",
            **kwargs,
        )
        self.iterations = iterations
        self.details["iterations"] = iterations


class ConfigurationError(CreatorError):
    """Configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(
            message,
            category=ErrorCategory.CONFIG_INVALID,
            **kwargs,
        )
        self.config_key = config_key
        self.details["config_key"] = config_key


class PersistenceError(CreatorError):
    """Conversation store failures."""

    def __init__(self, message: str, session_id: Optional[str] = None, **kwargs: Any):
        super().__init__(message, category=ErrorCategory.PERSISTENCE, **kwargs)
        self.session_id = session_id
        self.details["session_id"] = session_id
