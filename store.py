"""
Entity store backed by SQLAlchemy.

Every call opens its own short session, so concurrent callers never share one.
Records come back detached: only columns and the relationships named in
``expand`` are loaded, anything else must be asked for explicitly.
"""

from contextlib import contextmanager

from sqlalchemy import func, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import RelationshipProperty, joinedload, load_only, selectinload, sessionmaker

from errors import StoreError
from log import get_logger

logger = get_logger("store")


class EntityStore:
    def __init__(self, engine):
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    # --- Reads ---

    def find(self, model, filters=None, *, expand=(), only=(), order_by=("id",)):
        """
        Records of ``model`` matching ``filters``.

        Args:
            filters: mapping of attribute name to value. Columns compare by
                equality (membership for a list), relationships by the
                referenced record's id.
            expand: relationship paths to load with the records ("book.author").
            only: restrict the loaded columns to these names (plus the key).
            order_by: attribute names to sort by.
        """
        stmt = (
            select(model)
            .where(*_criteria(model, filters))
            .options(*_options(model, expand, only))
            .order_by(*(getattr(model, name) for name in order_by))
        )
        with self._operation("find", model), self._sessions() as session:
            return list(session.scalars(stmt).unique())

    def find_by_id(self, model, record_id, *, expand=()):
        """The record with ``record_id`` or None when there is none."""
        with self._operation("find_by_id", model, record_id), self._sessions() as session:
            return session.get(model, record_id, options=_options(model, expand, ()))

    def count(self, model, filters=None) -> int:
        stmt = select(func.count()).select_from(model).where(*_criteria(model, filters))
        with self._operation("count", model), self._sessions() as session:
            return session.scalar(stmt)

    # --- Writes ---

    def save(self, record):
        """
        Insert ``record``, or overwrite the stored row when it carries an id.

        Collections set on ``record`` replace the stored ones outright, so
        their rows are rewritten in the order given. Concurrent saves of the
        same row are last-write-wins.
        """
        model = type(record)
        with self._operation("save", model, record.id), self._sessions() as session:
            if record.id is not None:
                current = session.get(model, record.id)
                if current is not None and _clear_collections(current, record):
                    session.flush()
            saved = session.merge(record)
            session.commit()
            return saved

    def delete_by_id(self, model, record_id) -> bool:
        """Delete the row; False when it was already gone."""
        with self._operation("delete", model, record_id), self._sessions() as session:
            record = session.get(model, record_id)
            if record is None:
                return False
            session.delete(record)
            session.commit()
            return True

    @contextmanager
    def _operation(self, name, model, record_id=None):
        logger.debug("%s %s id=%s", name, model.__name__, record_id)
        try:
            yield
        except SQLAlchemyError as exc:
            logger.error("%s %s id=%s failed: %s", name, model.__name__, record_id, exc)
            raise StoreError(f"{name} {model.__name__} failed") from exc


def _clear_collections(current, record) -> bool:
    """Empty every collection of ``current`` that ``record`` carries a value for."""
    given = inspect(record).dict
    cleared = False
    for relationship in inspect(type(record)).relationships:
        if relationship.uselist and relationship.key in given:
            getattr(current, relationship.key).clear()
            cleared = True
    return cleared


def _criteria(model, filters):
    criteria = []
    for name, value in (filters or {}).items():
        attr = getattr(model, name)
        if isinstance(attr.property, RelationshipProperty):
            criteria.append(attr.any(id=value) if attr.property.uselist else attr.has(id=value))
        elif isinstance(value, (list, tuple, set)):
            criteria.append(attr.in_(value))
        else:
            criteria.append(attr == value)
    return criteria


def _options(model, expand, only):
    options = []
    for path in expand:
        loader = None
        current = model
        for name in path.split("."):
            attr = getattr(current, name)
            if attr.property.uselist:
                loader = selectinload(attr) if loader is None else loader.selectinload(attr)
            else:
                loader = joinedload(attr) if loader is None else loader.joinedload(attr)
            current = attr.property.mapper.class_
        options.append(loader)
    if only:
        options.append(load_only(*(getattr(model, name) for name in only)))
    return options
