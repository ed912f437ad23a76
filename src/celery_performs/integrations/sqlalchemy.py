"""SQLAlchemy models that can be passed to, and act through, jobs.

``Record`` is mixed into declarative models. It makes them locatable by
global id through a configured session and declares ``touch``, ``update``
and ``destroy`` as performable, so every model gets ``touch_later``,
``update_later`` and ``destroy_later``.

Usage:
    ```python
    from sqlalchemy.orm import DeclarativeBase, sessionmaker

    from celery_performs import performs
    from celery_performs.integrations.sqlalchemy import Record

    class Base(DeclarativeBase):
        pass

    class Invoice(Record, Base):
        __tablename__ = "invoices"
        ...

        @performs
        def deliver_reminder(self):
            self.touch("reminded_at")

    Record.configure_session(sessionmaker(bind=engine))

    invoice.update_later(reminded_at=None)
    Invoice.deliver_reminder_later_bulk()  # every invoice
    ```
"""

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from ..exceptions import PerformsError, RecordNotFound
from ..identification import Identification
from ..performs import Performs

logger = logging.getLogger(__name__)


def _coerce_identity(model: type, value: Any) -> Any:
    """Convert an id taken from a global id string to the primary key's type."""
    column = sa_inspect(model).primary_key[0]
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    if isinstance(value, python_type):
        return value
    return python_type(value)


class Record(Performs, Identification):
    """Mixin for declarative models handled by jobs."""

    _session_registry = None

    @classmethod
    def configure_session(cls, session_factory: sessionmaker) -> scoped_session:
        """Use ``session_factory`` for every Record model (thread-scoped sessions)."""
        Record._session_registry = scoped_session(session_factory)
        logger.debug("Configured Record session factory")
        return Record._session_registry

    @classmethod
    def get_session(cls) -> Session:
        if Record._session_registry is None:
            raise PerformsError("No session configured; call Record.configure_session() first")
        return Record._session_registry()

    @classmethod
    def remove_session(cls) -> None:
        if Record._session_registry is not None:
            Record._session_registry.remove()

    @classmethod
    def find(cls, id: Any) -> "Record":
        record = cls.get_session().get(cls, _coerce_identity(cls, id))
        if record is None:
            raise RecordNotFound(cls.__qualname__, str(id))
        return record

    @classmethod
    def all(cls) -> list["Record"]:
        return list(cls.get_session().scalars(select(cls)))

    def save(self) -> None:
        session = self.get_session()
        session.add(self)
        session.commit()

    def touch(self, *names: str, time: datetime | None = None) -> None:
        """Set ``updated_at`` (when the model has one) and ``names`` to ``time``."""
        time = time or datetime.now(timezone.utc)
        columns = list(names)
        if hasattr(type(self), "updated_at"):
            columns.append("updated_at")
        for column in columns:
            setattr(self, column, time)
        self.save()

    def update(self, **values: Any) -> None:
        for column, value in values.items():
            setattr(self, column, value)
        self.save()

    def destroy(self) -> None:
        session = self.get_session()
        session.delete(self)
        session.commit()
        logger.info(f"Destroyed {type(self).__qualname__} {self.id}", extra={"record_id": str(self.id)})


Record.performs("touch", queue="record.touch")
Record.performs("update", queue="record.update")
Record.performs("destroy", queue="record.destroy")
