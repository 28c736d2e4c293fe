"""
Exceptions for BookTender

Error taxonomy shared by the clients, the store and the pipeline:
- External service failures (vision, catalog)
- Missing credentials
- Unknown resources
"""

from typing import Optional


class BookTenderException(Exception):
    """Base exception for BookTender errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        detail: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.detail = detail
        super().__init__(message)


class NotFoundError(BookTenderException):
    """Resource not found."""

    def __init__(self, resource: str, identifier):
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            detail=f"No {resource} with identifier '{identifier}' exists",
        )
        self.resource = resource
        self.identifier = identifier


class MissingCredentialError(BookTenderException):
    """A required API credential is not configured."""

    def __init__(self, name: str):
        super().__init__(
            message=f"{name} API key not configured",
            code="MISSING_CREDENTIAL",
        )
        self.name = name


class IdentificationError(BookTenderException):
    """Vision identification failed or returned unusable data."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            message=message,
            code="IDENTIFICATION_ERROR",
            detail=detail,
        )


class CatalogError(BookTenderException):
    """Bibliographic catalog lookup failed."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            message=message,
            code="CATALOG_ERROR",
            detail=detail,
        )


class PhotoImportError(BookTenderException):
    """A source photo could not be brought into managed storage."""

    def __init__(self, path, reason: str):
        super().__init__(
            message=f"Could not import {path}: {reason}",
            code="PHOTO_IMPORT_ERROR",
        )
        self.path = path
