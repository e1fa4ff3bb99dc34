"""
Read side of the catalog: list and detail views with their expansions, and
the home page counts.

Detail reads fan out their independent sub-reads and join them; a missing
primary record is a NotFoundError, never an empty result.
"""

from dataclasses import dataclass

from data_models import Author, Book, BookInstance, Genre
from errors import NotFoundError
from fanout import run_parallel


@dataclass
class CatalogStats:
    book_count: int
    book_instance_count: int
    book_instance_available_count: int
    author_count: int
    genre_count: int


@dataclass
class BookDetail:
    book: Book
    book_instances: list


@dataclass
class AuthorDetail:
    author: Author
    books: list


@dataclass
class GenreDetail:
    genre: Genre
    books: list


class Catalog:
    def __init__(self, store):
        self.store = store

    # --- Counts ---

    def statistics(self) -> CatalogStats:
        """Independent counts; any failing count fails the whole result."""
        store = self.store
        results = run_parallel(
            book_count=lambda: store.count(Book),
            book_instance_count=lambda: store.count(BookInstance),
            book_instance_available_count=lambda: store.count(BookInstance, {"status": "Available"}),
            author_count=lambda: store.count(Author),
            genre_count=lambda: store.count(Genre),
        )
        return CatalogStats(**results)

    # --- Books ---

    def book_list(self):
        """Titles with their author; genres are not expanded here."""
        return self.store.find(Book, expand=("author",), only=("title",), order_by=("title",))

    def book_detail(self, book_id) -> BookDetail:
        store = self.store
        results = run_parallel(
            book=lambda: store.find_by_id(Book, book_id, expand=("author", "genre")),
            book_instances=lambda: store.find(BookInstance, {"book_id": book_id}),
        )
        if results["book"] is None:
            raise NotFoundError("Book not found")
        return BookDetail(**results)

    # --- Book instances ---

    def book_instance_list(self):
        return self.store.find(BookInstance, expand=("book",))

    def book_instance_detail(self, instance_id) -> BookInstance:
        instance = self.store.find_by_id(BookInstance, instance_id, expand=("book.author",))
        if instance is None:
            raise NotFoundError("Book copy not found")
        return instance

    # --- Authors ---

    def author_list(self):
        return self.store.find(Author, order_by=("family_name", "first_name"))

    def author_detail(self, author_id) -> AuthorDetail:
        store = self.store
        results = run_parallel(
            author=lambda: store.find_by_id(Author, author_id),
            books=lambda: store.find(Book, {"author_id": author_id}, only=("title", "summary")),
        )
        if results["author"] is None:
            raise NotFoundError("Author not found")
        return AuthorDetail(**results)

    # --- Genres ---

    def genre_list(self):
        return self.store.find(Genre, order_by=("name",))

    def genre_detail(self, genre_id) -> GenreDetail:
        store = self.store
        results = run_parallel(
            genre=lambda: store.find_by_id(Genre, genre_id),
            books=lambda: store.find(Book, {"genre": genre_id}, only=("title", "summary")),
        )
        if results["genre"] is None:
            raise NotFoundError("Genre not found")
        return GenreDetail(**results)
