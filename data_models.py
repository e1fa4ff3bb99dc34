from datetime import date

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import validates

db = SQLAlchemy()

# Order in which the status options are offered on forms.
STATUS_CHOICES = ("Maintenance", "Available", "Loaned", "Reserved")
DEFAULT_STATUS = "Maintenance"


# Genre membership; the row id keeps the order genres were attached in.
book_genre = db.Table(
    "book_genre",
    db.Column("id", db.Integer, primary_key=True, autoincrement=True),
    db.Column("book_id", db.Integer, db.ForeignKey("books.id"), nullable=False),
    db.Column("genre_id", db.Integer, db.ForeignKey("genres.id"), nullable=False),
)


class Author(db.Model):
    """
    Author with optional life dates.
    """
    __tablename__ = 'authors'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    first_name = db.Column(db.String(100), nullable=False)
    family_name = db.Column(db.String(100), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=True)
    date_of_death = db.Column(db.Date, nullable=True)

    books = db.relationship("Book", back_populates="author")

    def __repr__(self):
        return f"Author(id = {self.id}, name = {self.family_name}, {self.first_name})"


class Genre(db.Model):
    __tablename__ = 'genres'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(100), nullable=False)

    def __repr__(self):
        return f"Genre(id = {self.id}, name = {self.name})"

    def __str__(self):
        return self.name


class Book(db.Model):
    """
    Book with one author and any number of genres.
    """
    __tablename__ = 'books'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    title = db.Column(db.String(200), nullable=False)
    summary = db.Column(db.Text, nullable=False)
    isbn = db.Column(db.String(20), nullable=False)

    author_id = db.Column(db.Integer, db.ForeignKey("authors.id"), nullable=False)
    author = db.relationship("Author", back_populates="books")
    genre = db.relationship("Genre", secondary=book_genre, order_by=book_genre.c.id)

    def __repr__(self):
        return f"<Book id={self.id} title='{self.title}'>"

    def __str__(self):
        return self.title


class BookInstance(db.Model):
    """
    A physical copy of a book.
    """
    __tablename__ = 'book_instances'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False)
    imprint = db.Column(db.String(200), nullable=False)
    status = db.Column(
        db.Enum(*STATUS_CHOICES, name="book_instance_status", validate_strings=True),
        nullable=False,
        default=DEFAULT_STATUS,
    )
    due_back = db.Column(db.Date, nullable=True, default=date.today)

    book = db.relationship("Book")

    @validates("status")
    def validate_status(self, key, value):
        if value not in STATUS_CHOICES:
            raise ValueError(f"Invalid status {value!r}")
        return value

    def __repr__(self):
        return f"<BookInstance id={self.id} book_id={self.book_id} status={self.status}>"


# --- Derived projections ---

def format_date(value: date | None) -> str:
    """Medium date format, e.g. 'Oct 14, 1983'."""
    if value is None:
        return ""
    return f"{value:%b} {value.day}, {value.year}"


def iso_date(value: date | None) -> str:
    """'YYYY-MM-DD' for <input type="date">, '' when unset."""
    return value.isoformat() if value else ""


def author_name(author: Author) -> str:
    return f"{author.family_name}, {author.first_name}"


def author_lifespan(author: Author) -> str:
    """
    '(birth - death)' with either side blank when unknown; '' without any dates.
    """
    if not author.date_of_birth and not author.date_of_death:
        return ""
    return f"({format_date(author.date_of_birth)} - {format_date(author.date_of_death)})"


def due_back_formatted(instance: BookInstance) -> str:
    return format_date(instance.due_back)


URL_SEGMENTS = {
    Author: "author",
    Genre: "genre",
    Book: "book",
    BookInstance: "bookinstance",
}


def record_url(record) -> str:
    return f"/catalog/{URL_SEGMENTS[type(record)]}/{record.id}"
