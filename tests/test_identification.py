"""Tests for global ids and job argument serialization."""

from datetime import datetime

import pytest

from blog import Publisher
from celery_performs.exceptions import DeserializationError, RecordNotFound, SerializationError
from celery_performs.identification import (
    GLOBALID_KEY,
    GlobalID,
    Locator,
    deserialize_arguments,
    is_identifiable,
    serialize_arguments,
)


class TestGlobalID:
    """Creating and parsing global ids."""

    def test_create(self, publisher):
        gid = publisher.to_global_id()

        assert str(gid) == "gid://performs/blog:Publisher/1"
        assert gid.model_class is Publisher
        assert gid.model_id == "1"

    def test_create_with_app(self, publisher):
        assert str(publisher.to_global_id(app="blog")) == "gid://blog/blog:Publisher/1"

    def test_create_requires_id(self):
        with pytest.raises(SerializationError):
            Publisher(None).to_global_id()

    def test_parse(self):
        gid = GlobalID.parse("gid://performs/blog:Publisher/42")

        assert gid.app == "performs"
        assert gid.model_name == "blog:Publisher"
        assert gid.model_id == "42"
        assert GlobalID.parse(gid) is gid

    def test_ids_are_quoted(self):
        gid = GlobalID("performs", "blog:Publisher", "a/b c")

        assert str(gid) == "gid://performs/blog:Publisher/a%2Fb%20c"
        assert GlobalID.parse(str(gid)) == gid

    @pytest.mark.parametrize(
        "value",
        ["", "performs/blog:Publisher/1", "gid://performs/blog:Publisher", "gid://performs//1", 42],
    )
    def test_parse_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            GlobalID.parse(value)

    def test_equality_and_hash(self):
        first = GlobalID("performs", "blog:Publisher", 1)
        second = GlobalID.parse("gid://performs/blog:Publisher/1")

        assert first == second
        assert len({first, second}) == 1


class TestLocator:
    """Resolving global ids back to objects."""

    def test_default_locator_uses_find(self, publisher):
        assert publisher.to_global_id().locate() is publisher

    def test_custom_locator_per_app(self, publisher):
        other = Publisher(7)
        Locator.use("archive", lambda gid: other)

        assert Locator.locate("gid://archive/blog:Publisher/1") is other
        assert Locator.locate("gid://performs/blog:Publisher/1") is publisher

    def test_missing_record(self):
        Locator.use("archive", lambda gid: None)

        with pytest.raises(RecordNotFound) as excinfo:
            Locator.locate("gid://archive/blog:Publisher/9")

        assert isinstance(excinfo.value, DeserializationError)
        assert excinfo.value.model_id == "9"


class TestArguments:
    """Serializing job arguments."""

    def test_identifiable_objects_become_markers(self, publisher):
        args, kwargs = serialize_arguments((publisher, 3), {"other": publisher})

        marker = {GLOBALID_KEY: "gid://performs/blog:Publisher/1"}
        assert args == [marker, 3]
        assert kwargs == {"other": marker}

    def test_nested_values(self, publisher):
        when = datetime(2026, 1, 1)
        args, _ = serialize_arguments([[publisher], {"at": when, "items": (publisher,)}], {})

        marker = {GLOBALID_KEY: "gid://performs/blog:Publisher/1"}
        assert args == [[marker], {"at": when, "items": [marker]}]

    def test_round_trip_locates_objects(self, publisher):
        args, kwargs = deserialize_arguments(*serialize_arguments((publisher, "x"), {"who": [publisher]}))

        assert args == [publisher, "x"]
        assert kwargs == {"who": [publisher]}

    def test_reserved_key_is_rejected(self):
        with pytest.raises(SerializationError):
            serialize_arguments(({GLOBALID_KEY: "gid://performs/blog:Publisher/1"},), {})

    def test_classes_are_not_identifiable(self, publisher):
        assert is_identifiable(publisher)
        assert not is_identifiable(Publisher)
        assert not is_identifiable("gid://performs/blog:Publisher/1")

    def test_lookup_errors_become_deserialization_errors(self):
        with pytest.raises(DeserializationError, match="gid://performs/blog:Publisher/5"):
            deserialize_arguments([{GLOBALID_KEY: "gid://performs/blog:Publisher/5"}], {})

    def test_unknown_model(self):
        with pytest.raises(DeserializationError):
            deserialize_arguments([{GLOBALID_KEY: "gid://performs/blog:Nothing/1"}], {})
