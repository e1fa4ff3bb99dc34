"""
Form reconciliation: turn submitted form fields into records, or into the
exact state a rejected form needs to be shown again.

All field rules run in one pass and every failure is collected. Free text is
trimmed and HTML-escaped before it is echoed back or stored.
"""

from dataclasses import dataclass, field
from datetime import date, datetime

from markupsafe import escape

from data_models import DEFAULT_STATUS, Author, Book, BookInstance, Genre, iso_date
from errors import NotFoundError, ValidationError
from fanout import run_parallel


def parse_date(date_str: str):
    """
    Parse an ISO-8601 date ('YYYY-MM-DD') or timestamp into a datetime.date.

    Raises:
        ValueError: for anything that is not a calendar date.
    """
    return datetime.fromisoformat(date_str).date()


def parse_id(value) -> int | None:
    """Integer identifier from a form value, None if it cannot be one."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_selection(form, name: str) -> list[str]:
    """
    Values of a multi-select field, always as a list of strings.

    Nothing submitted gives [], a single value gives a one-element list.
    """
    values = form.getlist(name) if hasattr(form, "getlist") else form.get(name)
    if values is None:
        return []
    if isinstance(values, str):
        return [values]
    return [str(value) for value in values]


@dataclass(frozen=True)
class FieldRule:
    name: str
    message: str = ""
    required: bool = True
    min_length: int | None = None
    max_length: int | None = None
    parse: object = None


BOOK_FIELDS = (
    FieldRule("title", "Title must not be empty."),
    FieldRule("author", "Author must not be empty."),
    FieldRule("summary", "Summary must not be empty."),
    FieldRule("isbn", "ISBN must not be empty."),
)

BOOK_INSTANCE_FIELDS = (
    FieldRule("book", "Book must be specified."),
    FieldRule("imprint", "Imprint must be specified."),
    FieldRule("status", required=False),
    FieldRule("due_back", "Invalid date.", required=False, parse=parse_date),
)

AUTHOR_FIELDS = (
    FieldRule("first_name", "First name must be specified.", max_length=100),
    FieldRule("family_name", "Family name must be specified.", max_length=100),
    FieldRule("date_of_birth", "Invalid date of birth.", required=False, parse=parse_date),
    FieldRule("date_of_death", "Invalid date of death.", required=False, parse=parse_date),
)

GENRE_FIELDS = (
    FieldRule("name", "Genre name must be specified.", min_length=3, max_length=100),
)


def clean(form, rules):
    """
    Apply ``rules`` to ``form``.

    Returns:
        (values, parsed, errors): escaped values to echo or store, parsed
        values of fields with a ``parse`` step, and field -> messages.
    """
    values, parsed, errors = {}, {}, {}
    for rule in rules:
        raw = (form.get(rule.name) or "").strip()
        values[rule.name] = str(escape(raw))

        if not raw:
            if rule.required:
                errors.setdefault(rule.name, []).append(rule.message)
            continue
        label = rule.name.replace("_", " ").capitalize()
        if rule.min_length is not None and len(raw) < rule.min_length:
            errors.setdefault(rule.name, []).append(
                f"{label} must be at least {rule.min_length} characters.")
        # The stored value is the escaped one.
        if rule.max_length is not None and len(values[rule.name]) > rule.max_length:
            errors.setdefault(rule.name, []).append(
                f"{label} must be at most {rule.max_length} characters.")
        if rule.parse is not None:
            try:
                parsed[rule.name] = rule.parse(raw)
            except ValueError:
                errors.setdefault(rule.name, []).append(rule.message)
    return values, parsed, errors


@dataclass
class Choice:
    record: object
    checked: bool = False


def reconcile_genres(genres, selected) -> list[Choice]:
    """Every catalog genre, checked iff its id is among ``selected``."""
    selected = {str(genre_id) for genre_id in selected}
    return [Choice(genre, str(genre.id) in selected) for genre in genres]


@dataclass
class FormState:
    """Everything a form view needs: echoed values, errors and selection options."""
    values: dict
    errors: list = field(default_factory=list)
    authors: list = field(default_factory=list)
    genres: list = field(default_factory=list)
    books: list = field(default_factory=list)
    statuses: tuple = ()
    record_id: int | None = None


def rejected(errors, **state) -> ValidationError:
    """A ValidationError carrying the form state to render again."""
    error = ValidationError(errors)
    error.form = FormState(errors=error.messages, **state)
    return error


class FormEngine:
    def __init__(self, store, statuses):
        self.store = store
        self.statuses = tuple(statuses)

    # --- Books ---

    def book_form(self, book_id=None, values=None) -> FormState:
        """Blank (or pre-filled) create form, or the update form of ``book_id``."""
        store = self.store
        branches = {
            "authors": self._authors,
            "genres": self._genres,
        }
        if book_id is not None:
            branches["book"] = lambda: store.find_by_id(Book, book_id, expand=("genre",))
        results = run_parallel(**branches)

        if book_id is not None:
            book = results["book"]
            if book is None:
                raise NotFoundError("Book not found")
            values = {
                "title": book.title,
                "author": str(book.author_id),
                "summary": book.summary,
                "isbn": book.isbn,
                "genre": [str(genre.id) for genre in book.genre],
            }
        values = {"genre": [], **(values or {})}
        return FormState(
            values=values,
            authors=results["authors"],
            genres=reconcile_genres(results["genres"], values["genre"]),
            record_id=book_id,
        )

    def submit_book(self, form, book_id=None) -> Book:
        """
        Validate and save a book.

        Raises:
            ValidationError: carrying the form state to re-render.
            NotFoundError: when updating a book that does not exist.
        """
        values, _, errors = clean(form, BOOK_FIELDS)
        genre_ids = [str(escape(value.strip())) for value in normalize_selection(form, "genre")]
        values["genre"] = genre_ids

        store = self.store
        author_id = parse_id(values["author"])
        wanted = [parse_id(value) for value in genre_ids]
        branches = {
            "author": lambda: store.find_by_id(Author, author_id) if author_id is not None else None,
            "genres": lambda: store.find(Genre, {"id": [i for i in wanted if i is not None]}),
        }
        if book_id is not None:
            branches["existing"] = lambda: store.find_by_id(Book, book_id)
        results = run_parallel(**branches)

        if book_id is not None and results["existing"] is None:
            raise NotFoundError("Book not found")
        if "author" not in errors and results["author"] is None:
            errors.setdefault("author", []).append("Author not found.")
        found = {str(genre.id): genre for genre in results["genres"]}
        if any(genre_id not in found for genre_id in genre_ids):
            errors.setdefault("genre", []).append("Genre not found.")

        if errors:
            side = run_parallel(authors=self._authors, genres=self._genres)
            raise rejected(
                errors,
                values=values,
                authors=side["authors"],
                genres=reconcile_genres(side["genres"], values["genre"]),
                record_id=book_id,
            )

        book = Book(
            id=book_id,
            title=values["title"],
            author_id=results["author"].id,
            summary=values["summary"],
            isbn=values["isbn"],
            genre=[found[genre_id] for genre_id in dict.fromkeys(genre_ids)],
        )
        return store.save(book)

    # --- Book instances ---

    def book_instance_form(self, instance_id=None) -> FormState:
        store = self.store
        branches = {"books": self._book_titles}
        if instance_id is not None:
            branches["instance"] = lambda: store.find_by_id(BookInstance, instance_id)
        results = run_parallel(**branches)

        values = {"book": "", "imprint": "", "status": DEFAULT_STATUS, "due_back": ""}
        if instance_id is not None:
            instance = results["instance"]
            if instance is None:
                raise NotFoundError("Book copy not found")
            values = {
                "book": str(instance.book_id),
                "imprint": instance.imprint,
                "status": instance.status,
                "due_back": iso_date(instance.due_back),
            }
        return FormState(values=values, books=results["books"], statuses=self.statuses,
                         record_id=instance_id)

    def submit_book_instance(self, form, instance_id=None) -> BookInstance:
        """
        Validate and save a book copy. A missing due date means today.

        Raises:
            ValidationError: carrying the form state (with the book list) to re-render.
            NotFoundError: when updating a copy that does not exist.
        """
        values, parsed, errors = clean(form, BOOK_INSTANCE_FIELDS)
        if not values["status"]:
            values["status"] = DEFAULT_STATUS
        elif values["status"] not in self.statuses:
            errors.setdefault("status", []).append("Invalid status.")

        store = self.store
        book_id = parse_id(values["book"])
        branches = {
            "book": lambda: store.find_by_id(Book, book_id) if book_id is not None else None,
        }
        if instance_id is not None:
            branches["existing"] = lambda: store.find_by_id(BookInstance, instance_id)
        results = run_parallel(**branches)

        if instance_id is not None and results["existing"] is None:
            raise NotFoundError("Book copy not found")
        if "book" not in errors and results["book"] is None:
            errors.setdefault("book", []).append("Book not found.")

        if errors:
            raise rejected(
                errors,
                values=values,
                books=self._book_titles(),
                statuses=self.statuses,
                record_id=instance_id,
            )

        instance = BookInstance(
            id=instance_id,
            book_id=results["book"].id,
            imprint=values["imprint"],
            status=values["status"],
            due_back=parsed.get("due_back") or date.today(),
        )
        return store.save(instance)

    # --- Authors ---

    def author_form(self, author_id=None) -> FormState:
        values = {"first_name": "", "family_name": "", "date_of_birth": "", "date_of_death": ""}
        if author_id is not None:
            author = self.store.find_by_id(Author, author_id)
            if author is None:
                raise NotFoundError("Author not found")
            values = {
                "first_name": author.first_name,
                "family_name": author.family_name,
                "date_of_birth": iso_date(author.date_of_birth),
                "date_of_death": iso_date(author.date_of_death),
            }
        return FormState(values=values, record_id=author_id)

    def submit_author(self, form, author_id=None) -> Author:
        values, parsed, errors = clean(form, AUTHOR_FIELDS)
        self._require_existing(Author, author_id, "Author not found")
        if errors:
            raise rejected(errors, values=values, record_id=author_id)

        author = Author(
            id=author_id,
            first_name=values["first_name"],
            family_name=values["family_name"],
            date_of_birth=parsed.get("date_of_birth"),
            date_of_death=parsed.get("date_of_death"),
        )
        return self.store.save(author)

    # --- Genres ---

    def genre_form(self, genre_id=None) -> FormState:
        values = {"name": ""}
        if genre_id is not None:
            genre = self.store.find_by_id(Genre, genre_id)
            if genre is None:
                raise NotFoundError("Genre not found")
            values = {"name": genre.name}
        return FormState(values=values, record_id=genre_id)

    def submit_genre(self, form, genre_id=None) -> Genre:
        values, _, errors = clean(form, GENRE_FIELDS)
        self._require_existing(Genre, genre_id, "Genre not found")
        if errors:
            raise rejected(errors, values=values, record_id=genre_id)
        return self.store.save(Genre(id=genre_id, name=values["name"]))

    # --- Side data ---

    def _authors(self):
        return self.store.find(Author, order_by=("family_name", "first_name"))

    def _genres(self):
        return self.store.find(Genre, order_by=("name",))

    def _book_titles(self):
        return self.store.find(Book, only=("title",), order_by=("title",))

    def _require_existing(self, model, record_id, message):
        if record_id is not None and self.store.find_by_id(model, record_id) is None:
            raise NotFoundError(message)
