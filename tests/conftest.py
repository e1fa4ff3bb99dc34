from datetime import date

import pytest

from app import create_app
from data_models import Author, Book, BookInstance, Genre, db


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'library.sqlite'}",
        "FETCH_SUMMARIES": False,
    })
    yield app
    with app.app_context():
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions["local_library"]


@pytest.fixture
def store(services):
    return services.catalog.store


@pytest.fixture
def seeded(store):
    """Two authors, three genres and one book by the first author (no copies)."""
    austen = store.save(Author(first_name="Jane", family_name="Austen",
                               date_of_birth=date(1775, 12, 16), date_of_death=date(1817, 7, 18)))
    asimov = store.save(Author(first_name="Isaac", family_name="Asimov",
                               date_of_birth=date(1920, 1, 2)))
    romance = store.save(Genre(name="Romance"))
    satire = store.save(Genre(name="Satire"))
    science = store.save(Genre(name="Science Fiction"))
    emma = store.save(Book(title="Emma", author_id=austen.id, summary="A comedy of manners.",
                           isbn="9780141439587", genre=[romance, satire]))
    return {
        "austen": austen,
        "asimov": asimov,
        "romance": romance,
        "satire": satire,
        "science": science,
        "emma": emma,
    }


@pytest.fixture
def copy_of(store):
    def make(book, status="Available", imprint="Penguin, 2003"):
        return store.save(BookInstance(book_id=book.id, imprint=imprint, status=status,
                                       due_back=date(2026, 1, 1)))
    return make
