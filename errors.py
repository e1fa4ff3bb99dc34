"""
Error taxonomy for the catalog.

Validation failures and referential blocks are handled by the views and
re-rendered; not-found and store failures travel up to the Flask error handlers.
"""


class CatalogError(Exception):
    """Base class for every catalog failure."""


class ValidationError(CatalogError):
    """
    Aggregated field errors for one form submission.

    Args:
        errors: mapping of field name to its messages, in the order found.
        form: the reconciled form state needed to re-render the submission.
    """

    def __init__(self, errors, form=None):
        self.errors = {field: list(messages) for field, messages in errors.items()}
        self.form = form
        super().__init__("; ".join(f"{field}: {', '.join(messages)}"
                                   for field, messages in self.errors.items()))

    @property
    def messages(self) -> list[str]:
        return [message for messages in self.errors.values() for message in messages]


class NotFoundError(CatalogError):
    """An identifier that does not resolve to a record."""

    status = 404


class ReferentialBlockError(CatalogError):
    """Delete refused while other records still reference the target."""

    def __init__(self, record, dependents):
        self.record = record
        self.dependents = list(dependents)
        super().__init__(f"{type(record).__name__} {record.id} still has "
                         f"{len(self.dependents)} dependent record(s)")


class StoreError(CatalogError):
    """Any failure of the underlying database."""
