"""
Tests for SqlMessageStore against an in-memory SQLite database.

Tests cover:
- Point and title lookups scoped by organization
- Stable listing order
- Insert/update/delete return values
- The active-title unique index as the final word on duplicates
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.domain import DuplicateIdError, DuplicateTitleError, Message, MessageDraft, ResultKind
from app.logic import MessageLogic
from app.models import MessageRecord  # noqa: F401  registers the table
from app.storage import Base, SqlMessageStore


ORG = "org-a"
OTHER_ORG = "org-b"
T0 = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


def make_message(message_id="m1", title="Title", org=ORG, created_at=T0, active=True) -> Message:
    return Message(
        id=message_id,
        organization_id=org,
        title=title,
        content="x" * 20,
        is_active=active,
        created_at=created_at,
        updated_at=created_at,
    )


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def sql_store(session_factory):
    db = session_factory()
    try:
        yield SqlMessageStore(db)
    finally:
        db.close()


class TestLookups:
    """Test get_by_id and find_by_title."""

    def test_round_trip_keeps_timezone(self, sql_store):
        sql_store.insert(make_message())

        stored = sql_store.get_by_id(ORG, "m1")

        assert stored == make_message()
        assert stored.created_at.tzinfo is not None

    def test_get_by_id_is_organization_scoped(self, sql_store):
        sql_store.insert(make_message())

        assert sql_store.get_by_id(OTHER_ORG, "m1") is None
        assert sql_store.get_by_id(ORG, "missing") is None

    def test_find_by_title(self, sql_store):
        sql_store.insert(make_message(title="Hello"))

        assert sql_store.find_by_title(ORG, "Hello").id == "m1"
        assert sql_store.find_by_title(OTHER_ORG, "Hello") is None
        assert sql_store.find_by_title(ORG, "hello") is None

    def test_find_by_title_ignores_inactive(self, sql_store):
        sql_store.insert(make_message(title="Hello", active=False))

        assert sql_store.find_by_title(ORG, "Hello") is None


class TestListing:
    """Test list_by_organization."""

    def test_empty(self, sql_store):
        assert sql_store.list_by_organization(ORG) == []

    def test_ordered_by_creation_then_id(self, sql_store):
        sql_store.insert(make_message("m3", title="C", created_at=T0 + timedelta(seconds=5)))
        sql_store.insert(make_message("m2", title="B", created_at=T0))
        sql_store.insert(make_message("m1", title="A", created_at=T0))
        sql_store.insert(make_message("o1", title="A", org=OTHER_ORG))

        ids = [m.id for m in sql_store.list_by_organization(ORG)]

        assert ids == ["m1", "m2", "m3"]
        assert ids == [m.id for m in sql_store.list_by_organization(ORG)]

    def test_ordered_chronologically_across_utc_offsets(self, sql_store):
        """12:00+05:00 is 07:00 UTC, so it sorts before 08:00 UTC."""
        plus_five = timezone(timedelta(hours=5))
        times = iter([
            datetime(2025, 1, 15, 12, 0, tzinfo=plus_five),
            datetime(2025, 1, 15, 8, 0, tzinfo=timezone.utc),
        ])
        ids = iter(["first", "second"])
        logic = MessageLogic(sql_store, clock=lambda: next(times), id_factory=lambda: next(ids))

        assert logic.create(ORG, MessageDraft(title="First", content="x" * 20)).ok
        assert logic.create(ORG, MessageDraft(title="Second", content="x" * 20)).ok

        listed = logic.list(ORG).value
        assert [m.id for m in listed] == ["first", "second"]
        assert listed[0].created_at == datetime(2025, 1, 15, 7, 0, tzinfo=timezone.utc)
        assert listed[0].created_at.utcoffset() == timedelta(0)

    def test_update_stores_utc(self, sql_store):
        sql_store.insert(make_message())
        changed = make_message()
        changed.updated_at = datetime(2025, 1, 15, 15, 30, tzinfo=timezone(timedelta(hours=5)))

        sql_store.update(changed)

        stored = sql_store.get_by_id(ORG, "m1")
        assert stored.updated_at == datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert stored.updated_at.utcoffset() == timedelta(0)


class TestWrites:
    """Test insert, update and delete."""

    def test_insert_duplicate_id(self, sql_store):
        sql_store.insert(make_message("m1", title="First"))

        with pytest.raises(DuplicateIdError):
            sql_store.insert(make_message("m1", title="Second"))

    def test_insert_duplicate_active_title(self, sql_store):
        sql_store.insert(make_message("m1", title="Same"))

        with pytest.raises(DuplicateTitleError):
            sql_store.insert(make_message("m2", title="Same"))

    def test_inactive_title_does_not_block(self, sql_store):
        sql_store.insert(make_message("m1", title="Same", active=False))
        sql_store.insert(make_message("m2", title="Same"))

        assert sql_store.find_by_title(ORG, "Same").id == "m2"

    def test_update(self, sql_store):
        sql_store.insert(make_message())
        changed = make_message(title="Renamed")
        changed.content = "y" * 30
        changed.updated_at = T0 + timedelta(minutes=1)

        updated = sql_store.update(changed)

        assert updated == changed
        assert sql_store.get_by_id(ORG, "m1") == changed

    def test_update_missing_record(self, sql_store):
        assert sql_store.update(make_message()) is None

    def test_update_into_taken_title(self, sql_store):
        sql_store.insert(make_message("m1", title="Taken"))
        sql_store.insert(make_message("m2", title="Mine"))

        with pytest.raises(DuplicateTitleError):
            sql_store.update(make_message("m2", title="Taken"))

        assert sql_store.get_by_id(ORG, "m2").title == "Mine"

    def test_delete(self, sql_store):
        sql_store.insert(make_message())

        assert sql_store.delete(OTHER_ORG, "m1") is False
        assert sql_store.delete(ORG, "m1") is True
        assert sql_store.delete(ORG, "m1") is False


class BlindTitleCheckStore(SqlMessageStore):
    """Simulates a concurrent creator whose title check ran before the other insert."""

    def find_by_title(self, organization_id, title):
        return None


class TestStoreEnforcedUniqueness:
    """With the unique index, a missed title check still ends in a conflict."""

    def test_racing_create_reported_as_conflict(self, session_factory):
        db = session_factory()
        try:
            logic = MessageLogic(BlindTitleCheckStore(db))
            draft = MessageDraft(title="Racy", content="x" * 20)

            first = logic.create(ORG, draft)
            second = logic.create(ORG, draft)

            assert first.kind is ResultKind.SUCCESS
            assert second.kind is ResultKind.CONFLICT
            assert len(SqlMessageStore(db).list_by_organization(ORG)) == 1
        finally:
            db.close()
