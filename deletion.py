"""
Deletion guard: a record is removed only while nothing references it.

The dependent check and the delete are separate store calls, so a dependent
inserted in between is not seen.
"""

import enum
from dataclasses import dataclass, field

from data_models import Author, Book, BookInstance, Genre
from errors import ReferentialBlockError
from fanout import run_parallel
from log import get_logger

logger = get_logger("deletion")

# model -> (dependent model, attribute on the dependent referencing it)
DEPENDENTS = {
    Author: (Book, "author_id"),
    Genre: (Book, "genre"),
    Book: (BookInstance, "book_id"),
}

# Relationships loaded on the record shown on the confirmation page.
EXPANSIONS = {
    Book: ("author", "genre"),
    BookInstance: ("book",),
}


class DeleteOutcome(enum.Enum):
    GONE = "gone"
    DELETED = "deleted"


@dataclass
class DeletionReview:
    """The record about to be deleted together with whatever still references it."""
    record: object
    dependents: list = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return bool(self.dependents)


class DeletionGuard:
    def __init__(self, store):
        self.store = store

    def review(self, model, record_id) -> DeletionReview | None:
        """
        Fetch the record and its dependents concurrently.

        Returns:
            None when the record does not exist.
        """
        store = self.store
        branches = {
            "record": lambda: store.find_by_id(model, record_id, expand=EXPANSIONS.get(model, ())),
        }
        if model in DEPENDENTS:
            dependent_model, attribute = DEPENDENTS[model]
            branches["dependents"] = lambda: store.find(dependent_model, {attribute: record_id})

        results = run_parallel(**branches)
        if results["record"] is None:
            return None
        return DeletionReview(results["record"], results.get("dependents", []))

    def delete(self, model, record_id) -> DeleteOutcome:
        """
        Delete unless dependents exist.

        Raises:
            ReferentialBlockError: with the dependent list, nothing is changed.
        """
        review = self.review(model, record_id)
        if review is None:
            logger.info("%s %s already absent", model.__name__, record_id)
            return DeleteOutcome.GONE
        if review.blocked:
            logger.info("%s %s blocked by %d dependent(s)",
                        model.__name__, record_id, len(review.dependents))
            raise ReferentialBlockError(review.record, review.dependents)

        if not self.store.delete_by_id(model, record_id):
            logger.info("%s %s vanished before delete", model.__name__, record_id)
            return DeleteOutcome.GONE
        logger.info("%s %s deleted", model.__name__, record_id)
        return DeleteOutcome.DELETED
