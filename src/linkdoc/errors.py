"""
linkdoc exception hierarchy.

All errors raised by linkdoc itself derive from :class:`LinkdocError`.
Errors coming from the storage driver (``sqlite3.Error``) are passed through
unchanged, and the driver's not-found signal never leaves the ODM layer.
"""

from __future__ import annotations


class LinkdocError(Exception):
    """Base class for linkdoc errors."""


class RegistrationError(LinkdocError):
    """A model could not be registered (bad schema, duplicate, bad name)."""


class MalformedIdentifierError(LinkdocError, ValueError):
    """A document identifier could not be parsed."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Malformed document identifier: {value!r}")


class HookError(LinkdocError):
    """
    A lifecycle hook failed.

    Attributes:
        hook: Name of the hook that failed (e.g. ``"pre_save"``)
        original: Exception raised by the hook, if it was not a HookError
    """

    def __init__(self, hook: str, message: str = "", original: BaseException | None = None):
        self.hook = hook
        self.original = original
        if not message:
            message = f"Hook '{hook}' failed"
            if original is not None:
                message = f"{message}: {original}"
        super().__init__(message)


class PopulateError(LinkdocError):
    """A relation could not be populated or read back."""


class VirtualTypeError(LinkdocError, TypeError):
    """A virtual value does not have the type requested by the accessor."""
