import threading

import pytest

from data_models import Author, BookInstance, author_name
from errors import NotFoundError, StoreError
from fanout import run_parallel


def test_statistics_counts_each_entity(services, seeded, copy_of):
    copy_of(seeded["emma"], status="Available")
    copy_of(seeded["emma"], status="Loaned")
    copy_of(seeded["emma"], status="Available")

    stats = services.catalog.statistics()
    assert stats.book_count == 1
    assert stats.book_instance_count == 3
    assert stats.book_instance_available_count == 2
    assert stats.author_count == 2
    assert stats.genre_count == 3


def test_statistics_fails_when_one_count_fails(services, store, seeded, monkeypatch):
    original = store.count

    def count(model, filters=None):
        if model is BookInstance and filters:
            raise StoreError("count BookInstance failed")
        return original(model, filters)

    monkeypatch.setattr(store, "count", count)
    with pytest.raises(StoreError):
        services.catalog.statistics()


def test_book_detail_expands_author_and_genres(services, seeded, copy_of):
    copy = copy_of(seeded["emma"])
    detail = services.catalog.book_detail(seeded["emma"].id)

    assert author_name(detail.book.author) == "Austen, Jane"
    assert [genre.name for genre in detail.book.genre] == ["Romance", "Satire"]
    assert [instance.id for instance in detail.book_instances] == [copy.id]


def test_book_detail_of_missing_book(services, seeded):
    with pytest.raises(NotFoundError):
        services.catalog.book_detail(999)


def test_book_list_carries_title_and_author(services, seeded):
    [book] = services.catalog.book_list()
    assert book.title == "Emma"
    assert book.author.family_name == "Austen"


def test_empty_lists_are_not_errors(services):
    assert services.catalog.book_list() == []
    assert services.catalog.book_instance_list() == []
    assert services.catalog.author_list() == []
    assert services.catalog.genre_list() == []


def test_book_instance_views(services, seeded, copy_of):
    copy = copy_of(seeded["emma"])
    [listed] = services.catalog.book_instance_list()
    assert listed.book.title == "Emma"

    detail = services.catalog.book_instance_detail(copy.id)
    assert detail.book.author.first_name == "Jane"
    with pytest.raises(NotFoundError):
        services.catalog.book_instance_detail(999)


def test_author_views(services, seeded):
    assert [author_name(a) for a in services.catalog.author_list()] == ["Asimov, Isaac", "Austen, Jane"]

    detail = services.catalog.author_detail(seeded["austen"].id)
    assert [book.title for book in detail.books] == ["Emma"]
    assert services.catalog.author_detail(seeded["asimov"].id).books == []
    with pytest.raises(NotFoundError):
        services.catalog.author_detail(999)


def test_genre_views(services, seeded):
    assert [g.name for g in services.catalog.genre_list()] == ["Romance", "Satire", "Science Fiction"]

    assert [b.title for b in services.catalog.genre_detail(seeded["satire"].id).books] == ["Emma"]
    assert services.catalog.genre_detail(seeded["science"].id).books == []
    with pytest.raises(NotFoundError):
        services.catalog.genre_detail(999)


# --- Fan-out ---

def test_run_parallel_merges_results():
    assert run_parallel(a=lambda: 1, b=lambda: "two") == {"a": 1, "b": "two"}
    assert run_parallel() == {}


def test_run_parallel_waits_for_every_branch_before_failing():
    finished = threading.Event()
    started = threading.Event()

    def slow():
        started.wait(timeout=5)
        finished.set()
        return "done"

    def failing():
        started.set()
        raise StoreError("boom")

    with pytest.raises(StoreError):
        run_parallel(slow=slow, failing=failing)
    assert finished.is_set()


def test_store_reads_survive_concurrent_fan_out(store, seeded):
    results = run_parallel(**{f"read{i}": (lambda: store.find(Author)) for i in range(6)})
    assert all(len(authors) == 2 for authors in results.values())
