import pytest

from data_models import Author, Book, BookInstance, Genre
from deletion import DeleteOutcome
from errors import ReferentialBlockError


def test_delete_book_without_copies(services, store, seeded):
    emma = seeded["emma"]
    assert services.guard.delete(Book, emma.id) is DeleteOutcome.DELETED
    assert store.find_by_id(Book, emma.id) is None
    # Genres survive their book.
    assert store.count(Genre) == 3


def test_delete_book_with_copies_is_blocked(services, store, seeded, copy_of):
    emma = seeded["emma"]
    copies = [copy_of(emma), copy_of(emma, status="Loaned")]

    with pytest.raises(ReferentialBlockError) as exc:
        services.guard.delete(Book, emma.id)

    assert sorted(copy.id for copy in exc.value.dependents) == sorted(copy.id for copy in copies)
    assert exc.value.record.id == emma.id
    stored = store.find_by_id(Book, emma.id)
    assert (stored.title, stored.isbn) == (emma.title, emma.isbn)


def test_delete_missing_records_is_gone(services, seeded):
    assert services.guard.delete(Book, 999) is DeleteOutcome.GONE
    assert services.guard.delete(BookInstance, 999) is DeleteOutcome.GONE


def test_delete_book_instance(services, store, seeded, copy_of):
    copy = copy_of(seeded["emma"])
    assert services.guard.delete(BookInstance, copy.id) is DeleteOutcome.DELETED
    assert store.count(BookInstance) == 0
    assert services.guard.delete(BookInstance, copy.id) is DeleteOutcome.GONE


def test_author_with_books_is_blocked(services, store, seeded):
    with pytest.raises(ReferentialBlockError) as exc:
        services.guard.delete(Author, seeded["austen"].id)
    assert [book.id for book in exc.value.dependents] == [seeded["emma"].id]

    assert services.guard.delete(Author, seeded["asimov"].id) is DeleteOutcome.DELETED
    assert store.count(Author) == 1


def test_genre_with_books_is_blocked(services, seeded):
    with pytest.raises(ReferentialBlockError):
        services.guard.delete(Genre, seeded["romance"].id)
    assert services.guard.delete(Genre, seeded["science"].id) is DeleteOutcome.DELETED


def test_review_lists_dependents(services, seeded, copy_of):
    copy = copy_of(seeded["emma"])
    review = services.guard.review(Book, seeded["emma"].id)
    assert review.blocked
    assert [dependent.id for dependent in review.dependents] == [copy.id]
    assert review.record.author.family_name == "Austen"

    instance_review = services.guard.review(BookInstance, copy.id)
    assert not instance_review.blocked
    assert services.guard.review(Book, 999) is None
