"""
Mandat-specific exceptions.

Exception Hierarchy:
    MandatError (base)
    ├── MandatAlreadyActive - A second mandat cannot start
    ├── NoActiveMandat - No mandat to preview or finalize
    └── MandatFinalized - Completed mandats are immutable
"""

from __future__ import annotations

from core.exceptions import BaseApplicationError, ConflictError, NotFoundError


class MandatError(BaseApplicationError):
    default_error_code: str = "MANDAT_ERROR"


class MandatAlreadyActive(MandatError, ConflictError):
    default_error_code: str = "MANDAT_ALREADY_ACTIVE"


class NoActiveMandat(MandatError, NotFoundError):
    default_error_code: str = "NO_ACTIVE_MANDAT"


class MandatFinalized(MandatError, ConflictError):
    default_error_code: str = "MANDAT_FINALIZED"
