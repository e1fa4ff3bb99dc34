"""
Local Library - catalog of books, authors, genres and book copies built with
Flask and SQLAlchemy.

Features:
- List, detail, create, update and delete for all four record types
- Forms re-rendered with every error at once and the user's input kept
- Deletes refused while other records still reference the target
- Home page counts
- Book summary prefill from Open Library by ISBN
"""

import os
from dataclasses import dataclass

from flask import Blueprint, Flask, current_app, redirect, render_template, request, url_for
from markupsafe import Markup, escape
from sqlalchemy.engine import make_url

from catalog import Catalog
from config import Settings
from data_models import (
    STATUS_CHOICES,
    Author,
    Book,
    BookInstance,
    Genre,
    author_lifespan,
    author_name,
    db,
    due_back_formatted,
    format_date,
    record_url,
)
from deletion import DeletionGuard
from errors import NotFoundError, ReferentialBlockError, StoreError, ValidationError
from forms import FormEngine
from log import bind_request_id, configure_logging, get_logger
from openlibrary import fetch_summary_by_isbn
from store import EntityStore

logger = get_logger("app")

bp = Blueprint("catalog", __name__, url_prefix="/catalog")


@dataclass
class Services:
    catalog: Catalog
    forms: FormEngine
    guard: DeletionGuard


def create_app(overrides: dict | None = None) -> Flask:
    """
    Application factory.

    Args:
        overrides: Flask config keys replacing the environment settings.
    """
    app = Flask(__name__)
    app.config.from_mapping(Settings().to_flask())
    app.config["STATUS_CHOICES"] = STATUS_CHOICES
    app.config.update(overrides or {})

    configure_logging(app.config["LOG_LEVEL"])
    _ensure_sqlite_dir(app.config["SQLALCHEMY_DATABASE_URI"])
    db.init_app(app)

    with app.app_context():
        db.create_all()
        store = EntityStore(db.engine)

    app.extensions["local_library"] = Services(
        catalog=Catalog(store),
        forms=FormEngine(store, app.config["STATUS_CHOICES"]),
        guard=DeletionGuard(store),
    )

    app.register_blueprint(bp)
    app.add_url_rule("/", "home", lambda: redirect(url_for("catalog.index")))

    app.before_request(bind_request_header)
    app.register_error_handler(NotFoundError, handle_not_found)
    app.register_error_handler(StoreError, handle_store_error)

    app.add_template_global(author_name)
    app.add_template_global(author_lifespan)
    app.add_template_global(due_back_formatted)
    app.add_template_global(format_date)
    app.add_template_global(record_url)
    # Text fields are escaped when submitted, so stored values are already safe.
    app.add_template_filter(Markup, "sanitized")
    return app


def _ensure_sqlite_dir(uri: str) -> None:
    url = make_url(uri)
    if url.drivername.startswith("sqlite") and url.database and url.database != ":memory:":
        directory = os.path.dirname(url.database)
        if directory:
            os.makedirs(directory, exist_ok=True)


def services() -> Services:
    return current_app.extensions["local_library"]


def render_view(view: str, status: int = 200, **data):
    """Hand a named view and its data to the template renderer."""
    return render_template(f"{view}.html", **data), status


def bind_request_header():
    bind_request_id(request.headers.get("X-Request-ID"))


# --- Error channel ---

def handle_not_found(exc: NotFoundError):
    logger.info("not found: %s (%s)", exc, request.path)
    return render_view("error", status=exc.status, title="Not found", message=str(exc))


def handle_store_error(exc: StoreError):
    logger.exception("store failure on %s", request.path)
    return render_view("error", status=500, title="Error", message=str(exc))


# --- Shared view helpers ---

def form_view(view: str, title: str, show, submit):
    """
    GET renders ``show()``; POST runs ``submit(form)`` and redirects to the
    saved record, or re-renders the rejected form.
    """
    if request.method == "POST":
        try:
            record = submit(request.form)
        except ValidationError as exc:
            return render_view(view, title=title, form=exc.form)
        return redirect(record_url(record))
    return render_view(view, title=title, form=show())


def delete_view(model, record_id, view: str, title: str, list_endpoint: str):
    """
    GET shows the record and its dependents; POST deletes unless blocked.
    A record that is already gone redirects to the list.
    """
    guard = services().guard
    if request.method == "POST":
        try:
            guard.delete(model, record_id)
        except ReferentialBlockError as exc:
            return render_view(view, title=title, record=exc.record, dependents=exc.dependents)
        return redirect(url_for(list_endpoint))

    review = guard.review(model, record_id)
    if review is None:
        return redirect(url_for(list_endpoint))
    return render_view(view, title=title, record=review.record, dependents=review.dependents)


# --- Home ---

@bp.route("/")
def index():
    """
    Catalog home page with the record counts.
    """
    return render_view("index", title="Local Library Home", data=services().catalog.statistics())


# --- Books ---

@bp.route("/books")
def book_list():
    return render_view("book_list", title="Book List", book_list=services().catalog.book_list())


@bp.route("/book/<int:book_id>")
def book_detail(book_id):
    detail = services().catalog.book_detail(book_id)
    return render_view("book_detail", title=detail.book.title, book=detail.book,
                       book_instances=detail.book_instances)


@bp.route("/book/create", methods=["GET", "POST"])
def book_create():
    """
    Create a book. ``?isbn=`` pre-fills the summary from Open Library.
    """
    forms = services().forms

    def show():
        isbn = request.args.get("isbn", "").strip()
        if not isbn:
            return forms.book_form()
        summary = ""
        if current_app.config["FETCH_SUMMARIES"]:
            summary = fetch_summary_by_isbn(isbn, current_app.config["OPENLIBRARY_TIMEOUT"]) or ""
        return forms.book_form(values={"isbn": str(escape(isbn)), "summary": str(escape(summary))})

    return form_view("book_form", "Create Book", show, forms.submit_book)


@bp.route("/book/<int:book_id>/update", methods=["GET", "POST"])
def book_update(book_id):
    forms = services().forms
    return form_view("book_form", "Update Book",
                     lambda: forms.book_form(book_id),
                     lambda form: forms.submit_book(form, book_id))


@bp.route("/book/<int:book_id>/delete", methods=["GET", "POST"])
def book_delete(book_id):
    return delete_view(Book, book_id, "book_delete", "Delete Book", "catalog.book_list")


# --- Book instances ---

@bp.route("/bookinstances")
def bookinstance_list():
    return render_view("bookinstance_list", title="Book Instance List",
                       bookinstance_list=services().catalog.book_instance_list())


@bp.route("/bookinstance/<int:instance_id>")
def bookinstance_detail(instance_id):
    instance = services().catalog.book_instance_detail(instance_id)
    return render_view("bookinstance_detail", title=f"Copy: {instance.book.title}",
                       bookinstance=instance)


@bp.route("/bookinstance/create", methods=["GET", "POST"])
def bookinstance_create():
    forms = services().forms
    return form_view("bookinstance_form", "Create BookInstance",
                     forms.book_instance_form, forms.submit_book_instance)


@bp.route("/bookinstance/<int:instance_id>/update", methods=["GET", "POST"])
def bookinstance_update(instance_id):
    forms = services().forms
    return form_view("bookinstance_form", "Update BookInstance",
                     lambda: forms.book_instance_form(instance_id),
                     lambda form: forms.submit_book_instance(form, instance_id))


@bp.route("/bookinstance/<int:instance_id>/delete", methods=["GET", "POST"])
def bookinstance_delete(instance_id):
    return delete_view(BookInstance, instance_id, "bookinstance_delete", "Delete BookInstance",
                       "catalog.bookinstance_list")


# --- Authors ---

@bp.route("/authors")
def author_list():
    return render_view("author_list", title="Author List", author_list=services().catalog.author_list())


@bp.route("/author/<int:author_id>")
def author_detail(author_id):
    detail = services().catalog.author_detail(author_id)
    return render_view("author_detail", title="Author Detail", author=detail.author,
                       author_books=detail.books)


@bp.route("/author/create", methods=["GET", "POST"])
def author_create():
    forms = services().forms
    return form_view("author_form", "Create Author", forms.author_form, forms.submit_author)


@bp.route("/author/<int:author_id>/update", methods=["GET", "POST"])
def author_update(author_id):
    forms = services().forms
    return form_view("author_form", "Update Author",
                     lambda: forms.author_form(author_id),
                     lambda form: forms.submit_author(form, author_id))


@bp.route("/author/<int:author_id>/delete", methods=["GET", "POST"])
def author_delete(author_id):
    return delete_view(Author, author_id, "author_delete", "Delete Author", "catalog.author_list")


# --- Genres ---

@bp.route("/genres")
def genre_list():
    return render_view("genre_list", title="Genre List", genre_list=services().catalog.genre_list())


@bp.route("/genre/<int:genre_id>")
def genre_detail(genre_id):
    detail = services().catalog.genre_detail(genre_id)
    return render_view("genre_detail", title="Genre Detail", genre=detail.genre,
                       genre_books=detail.books)


@bp.route("/genre/create", methods=["GET", "POST"])
def genre_create():
    forms = services().forms
    return form_view("genre_form", "Create Genre", forms.genre_form, forms.submit_genre)


@bp.route("/genre/<int:genre_id>/update", methods=["GET", "POST"])
def genre_update(genre_id):
    forms = services().forms
    return form_view("genre_form", "Update Genre",
                     lambda: forms.genre_form(genre_id),
                     lambda form: forms.submit_genre(form, genre_id))


@bp.route("/genre/<int:genre_id>/delete", methods=["GET", "POST"])
def genre_delete(genre_id):
    return delete_view(Genre, genre_id, "genre_delete", "Delete Genre", "catalog.genre_list")


if __name__ == "__main__":
    create_app().run(debug=True)
