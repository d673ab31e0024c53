"""
err_utils.py - Error Types

Errors raised by the record store and the family-graph engine.
Pages catch GenealogyError and show the message to the admin.
"""


class GenealogyError(Exception):
    """Base class of every error raised by the family register."""


class ValidationError(GenealogyError):
    """
    A required field is missing or a value is malformed.
    Raised before anything is written.
    """


class CircularRelationshipError(GenealogyError):
    """
    The requested parent or child assignment would make a person
    their own ancestor. Raised before anything is written.
    """


class StoreError(GenealogyError):
    """The backing database rejected or failed a read or a write."""


class NotFoundError(GenealogyError):
    """A referenced person or family handle does not exist."""

    def __init__(self, table: str, handle: str):
        self.table = table
        self.handle = handle
        super().__init__(f"No record '{handle}' in table '{table}'")
