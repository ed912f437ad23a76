"""Global identifiers for domain objects crossing the job boundary.

Jobs are serialized to JSON, so a domain object cannot travel as itself. It is
replaced by a global id (``gid://<app>/<module>:<qualname>/<id>``) when the
job is enqueued and located again right before the job performs.

Usage:
    ```python
    from celery_performs.identification import GlobalID, Identification, Locator

    class Post(Identification):
        def __init__(self, id):
            self.id = id

        @classmethod
        def find(cls, id):
            return cls(int(id))

    gid = Post(1).to_global_id()   # gid://performs/blog:Post/1
    gid.locate()                   # Post(1)

    # Custom lookup for one app
    Locator.use("performs", lambda gid: gid.model_class.find(int(gid.model_id)))
    ```
"""

import logging
import pkgutil
from typing import Any, Callable
from urllib.parse import quote, unquote

from .config import get_settings
from .exceptions import DeserializationError, RecordNotFound, SerializationError

logger = logging.getLogger(__name__)

GLOBALID_KEY = "_aj_globalid"
SCHEME = "gid://"


class GlobalID:
    """A URI naming one domain object of one application."""

    def __init__(self, app: str, model_name: str, model_id: Any) -> None:
        self.app = app
        self.model_name = model_name
        self.model_id = str(model_id)

    @classmethod
    def create(cls, record: Any, app: str | None = None) -> "GlobalID":
        model_id = getattr(record, "id", None)
        if model_id is None:
            raise SerializationError(
                f"Unable to create a global id for {type(record).__name__} without an id"
            )
        model = type(record)
        return cls(app or get_settings().GLOBAL_ID_APP, f"{model.__module__}:{model.__qualname__}", model_id)

    @classmethod
    def parse(cls, gid: "str | GlobalID") -> "GlobalID":
        """Parse ``gid://app/module:Model/id``.

        Raises:
            ValueError: If the string is not a well-formed global id.
        """
        if isinstance(gid, GlobalID):
            return gid
        if not isinstance(gid, str) or not gid.startswith(SCHEME):
            raise ValueError(f"Not a global id: {gid!r}")

        parts = gid[len(SCHEME):].split("/")
        if len(parts) != 3 or not all(parts):
            raise ValueError(f"Not a global id: {gid!r}")

        app, model_name, model_id = parts
        return cls(app, model_name, unquote(model_id))

    @property
    def model_class(self) -> type:
        return pkgutil.resolve_name(self.model_name)

    def locate(self) -> Any:
        return Locator.locate(self)

    def __str__(self) -> str:
        return f"{SCHEME}{self.app}/{self.model_name}/{quote(self.model_id, safe='')}"

    def __repr__(self) -> str:
        return f"GlobalID({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, GlobalID) and str(self) == str(other)

    def __hash__(self) -> int:
        return hash(str(self))


def _default_locator(gid: GlobalID) -> Any:
    return gid.model_class.find(gid.model_id)


class Locator:
    """Resolves global ids back to objects, with per-app overrides."""

    _locators: dict[str, Callable[[GlobalID], Any]] = {}

    @classmethod
    def use(cls, app: str, locator: Callable[[GlobalID], Any]) -> None:
        cls._locators[app] = locator
        logger.debug(f"Registered global id locator for app {app}")

    @classmethod
    def reset(cls) -> None:
        cls._locators.clear()

    @classmethod
    def locate(cls, gid: "str | GlobalID") -> Any:
        gid = GlobalID.parse(gid)
        locator = cls._locators.get(gid.app, _default_locator)
        record = locator(gid)
        if record is None:
            raise RecordNotFound(gid.model_name, gid.model_id)
        return record


class Identification:
    """Mixin for domain objects that can be passed to jobs by reference.

    Subclasses provide an ``id`` attribute and a ``find(id)`` classmethod (or a
    custom locator registered with ``Locator.use``).
    """

    def to_global_id(self, app: str | None = None) -> GlobalID:
        return GlobalID.create(self, app=app)


def is_identifiable(value: Any) -> bool:
    return callable(getattr(value, "to_global_id", None)) and not isinstance(value, type)


def serialize_argument(value: Any) -> Any:
    if is_identifiable(value):
        return {GLOBALID_KEY: str(value.to_global_id())}
    if isinstance(value, (list, tuple)):
        return [serialize_argument(item) for item in value]
    if isinstance(value, dict):
        if GLOBALID_KEY in value:
            raise SerializationError(f"Can't serialize a hash with reserved key {GLOBALID_KEY!r}")
        return {key: serialize_argument(item) for key, item in value.items()}
    # Everything else is left to the task serializer (kombu json handles
    # datetime, Decimal and UUID).
    return value


def deserialize_argument(value: Any) -> Any:
    if isinstance(value, dict):
        if len(value) == 1 and GLOBALID_KEY in value:
            return _locate_argument(value[GLOBALID_KEY])
        return {key: deserialize_argument(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [deserialize_argument(item) for item in value]
    return value


def _locate_argument(gid: str) -> Any:
    try:
        return Locator.locate(gid)
    except DeserializationError:
        raise
    except Exception as exc:
        raise DeserializationError(f"Error while trying to deserialize {gid}: {exc}") from exc


def serialize_arguments(args: tuple | list, kwargs: dict[str, Any]) -> tuple[list, dict[str, Any]]:
    """Prepare positional and keyword job arguments for the task serializer."""
    return [serialize_argument(arg) for arg in args], serialize_argument(dict(kwargs))


def deserialize_arguments(args: tuple | list, kwargs: dict[str, Any]) -> tuple[list, dict[str, Any]]:
    """Reverse ``serialize_arguments``, locating every referenced object."""
    return [deserialize_argument(arg) for arg in args], deserialize_argument(dict(kwargs))
