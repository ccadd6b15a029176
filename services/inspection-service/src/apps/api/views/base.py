# services/inspection-service/src/apps/api/views/base.py
"""
Base Views and Mixins

Common functionality for Inspection Service API views.
"""

import logging

from rest_framework import viewsets

from apps.core.services import (
    Caller,
    ConflictError,
    InspectionServiceError,
    InspectionValidationError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
)
from shared.common.exceptions import (
    BaseAPIException,
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from shared.common.permissions import CanMutateOrReadOnly, IsAuthenticated

logger = logging.getLogger(__name__)


def to_api_exception(exc: InspectionServiceError) -> BaseAPIException:
    """Map a service error onto the shared HTTP exception with the same code."""
    if isinstance(exc, InspectionValidationError):
        return ValidationException(errors=exc.errors, detail=exc.message)
    if isinstance(exc, PermissionDeniedError):
        return ForbiddenException(detail=exc.message, extra_data=exc.details)
    if isinstance(exc, InvalidTransitionError):
        return InvalidTransitionException(detail=exc.message, extra_data=exc.details)
    if isinstance(exc, NotFoundError):
        return NotFoundException(detail=exc.message, extra_data=exc.details)
    if isinstance(exc, ConflictError):
        return ConflictException(detail=exc.message, extra_data=exc.details)
    return BaseAPIException(detail=exc.message, error_code=exc.error_code, extra_data=exc.details)


class CallerMixin:
    """Builds the engine caller from the authenticated token user."""

    def get_caller(self) -> Caller:
        return Caller.from_user(self.request.user)


class ExceptionHandlerMixin:
    """Mixin for handling service layer exceptions."""

    def handle_exception(self, exc):
        if isinstance(exc, InspectionServiceError):
            logger.info(f"{exc.error_code} on {self.request.method} {self.request.path}: {exc.message}")
            exc = to_api_exception(exc)
        return super().handle_exception(exc)


class BaseInspectionViewSet(CallerMixin, ExceptionHandlerMixin, viewsets.GenericViewSet):
    """
    Base ViewSet for Inspection Service.

    Reads are open to every authenticated role; writes are refused to
    auditors before reaching the services, which check again.
    """

    permission_classes = [IsAuthenticated, CanMutateOrReadOnly]
    lookup_value_regex = '[0-9a-fA-F-]{36}'
