r"""backend\spectragrow\core\errors.py

Exceptions raised by the analysis services."""

from __future__ import annotations


class InvalidInputError(ValueError):
    """Raised when engine input is structurally invalid.

    Subclasses ``ValueError`` so route handlers that already translate
    ``ValueError`` into a 400 response keep working unchanged.
    """
