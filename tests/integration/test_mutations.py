"""
Integration tests for create, update and delete.

Tests cover:
- Create and read back
- Validation before persistence
- Bulk create atomicity
- Uniqueness enforcement
- Partial updates
- Deletes and not-found handling
- Predicate-based update and delete
"""

import pytest

from comfyent.errors import (
    NotFoundError,
    StoreError,
    StoreErrorKind,
    UnknownFieldError,
    ValidationError,
)
from comfyent.predicates import eq, gt, lt

ALICE = {"name": "Alice", "age": 30, "email": "alice@example.com"}
SEED_USERS = [
    ALICE,
    {"name": "Bob", "age": 32, "email": "bob@example.com"},
    {"name": "Charlie", "age": 35, "email": "charlie@example.com"},
]


class TestCreate:
    """Tests for create."""

    def test_create_round_trip(self, client):
        """A created user reads back with the same values."""
        created = client.user.create(name="Alice", age=30, email="alice@example.com")
        fetched = client.user.get(created.id)

        assert created.id > 0
        assert fetched == created
        assert fetched.name == "Alice"
        assert fetched.age == 30
        assert fetched.email == "alice@example.com"

    def test_create_from_mapping(self, client):
        """Values can be passed as a mapping."""
        created = client.user.create(ALICE)

        assert created.to_dict() == {"id": created.id, **ALICE}

    def test_identities_are_distinct(self, client):
        a = client.user.create(ALICE)
        b = client.user.create(name="Bob", age=32, email="bob@example.com")

        assert a.id != b.id

    @pytest.mark.parametrize(
        "overrides, field_name",
        [
            ({"name": ""}, "name"),
            ({"age": 0}, "age"),
            ({"age": -5}, "age"),
            ({"email": ""}, "email"),
        ],
    )
    def test_invalid_values_not_persisted(self, client, overrides, field_name):
        """Constraint violations are rejected and nothing is written."""
        with pytest.raises(ValidationError) as exc_info:
            client.user.create({**ALICE, **overrides})

        assert exc_info.value.field_name == field_name
        assert client.user.query().count() == 0

    @pytest.mark.parametrize(
        "overrides",
        [{"age": 2**70}, {"name": "\ud800"}, {"email": "al\udfffce@example.com"}],
    )
    def test_unstorable_values_rejected(self, client, overrides):
        """Values SQLite cannot bind fail validation and write nothing."""
        with pytest.raises(ValidationError) as exc_info:
            client.user.create({**ALICE, **overrides})

        assert exc_info.value.constraint == "type"
        assert client.user.query().count() == 0

    def test_update_with_oversized_age(self, client):
        alice = client.user.create(ALICE)

        with pytest.raises(ValidationError):
            client.user.update(alice.id, age=2**70)

        assert client.user.get(alice.id).age == 30

    def test_unknown_field(self, client):
        with pytest.raises(UnknownFieldError):
            client.user.create(**ALICE, nickname="Al")

    def test_duplicate_email(self, client):
        """A second user with the same email is rejected, the first kept."""
        first = client.user.create(ALICE)

        with pytest.raises(StoreError) as exc_info:
            client.user.create(name="Alicia", age=40, email="alice@example.com")

        assert exc_info.value.kind == StoreErrorKind.UNIQUE_VIOLATION
        assert client.user.query().ids() == [first.id]


class TestCreateBulk:
    """Tests for create_bulk."""

    def test_bulk_in_input_order(self, client):
        """All users are created with ids, in input order."""
        users = client.user.create_bulk(SEED_USERS)

        assert [u.name for u in users] == ["Alice", "Bob", "Charlie"]
        assert len({u.id for u in users}) == 3
        assert client.user.query().count() == 3

    def test_empty_bulk(self, client):
        assert client.user.create_bulk([]) == []

    def test_invalid_element_persists_nothing(self, client):
        """One invalid element rejects the whole batch before any insert."""
        items = [dict(u) for u in SEED_USERS]
        items[1]["age"] = 0

        with pytest.raises(ValidationError) as exc_info:
            client.user.create_bulk(items)

        assert exc_info.value.field_name == "age"
        assert exc_info.value.details["index"] == 1
        assert client.user.query().count() == 0

    def test_duplicate_within_batch(self, client):
        """A store failure on a later element rolls back earlier ones."""
        items = [dict(u) for u in SEED_USERS]
        items[2]["email"] = items[0]["email"]

        with pytest.raises(StoreError) as exc_info:
            client.user.create_bulk(items)

        assert exc_info.value.kind == StoreErrorKind.UNIQUE_VIOLATION
        assert client.user.query().count() == 0

    def test_duplicate_of_existing_user(self, client):
        client.user.create(ALICE)

        with pytest.raises(StoreError):
            client.user.create_bulk(SEED_USERS)

        assert client.user.query().count() == 1


class TestUpdate:
    """Tests for update."""

    def test_update_changes_only_supplied_fields(self, seeded):
        """Updating Alice's age leaves name and email alone."""
        alice = seeded.user.query().where(eq("name", "Alice")).one()

        updated = seeded.user.update(alice.id, age=31)

        assert updated.age == 31
        assert updated.name == "Alice"
        assert updated.email == "alice@example.com"
        assert seeded.user.get(alice.id) == updated

    def test_update_several_fields(self, seeded):
        alice = seeded.user.query().where(eq("name", "Alice")).one()

        updated = seeded.user.update(alice.id, {"age": 31, "email": "alice_new@example.com"})

        assert (updated.age, updated.email) == (31, "alice_new@example.com")

    def test_snapshot_not_live(self, seeded):
        """Entities read earlier keep their old values."""
        before = seeded.user.query().where(eq("name", "Alice")).one()

        seeded.user.update(before.id, age=31)

        assert before.age == 30

    def test_update_missing(self, seeded):
        with pytest.raises(NotFoundError) as exc_info:
            seeded.user.update(9999, age=31)

        assert exc_info.value.identity == 9999

    def test_invalid_update_not_applied(self, seeded):
        alice = seeded.user.query().where(eq("name", "Alice")).one()

        with pytest.raises(ValidationError):
            seeded.user.update(alice.id, age=-5)

        assert seeded.user.get(alice.id).age == 30

    def test_update_to_taken_email(self, seeded):
        """Uniqueness is enforced on update too."""
        alice = seeded.user.query().where(eq("name", "Alice")).one()

        with pytest.raises(StoreError) as exc_info:
            seeded.user.update(alice.id, email="bob@example.com")

        assert exc_info.value.kind == StoreErrorKind.UNIQUE_VIOLATION
        assert seeded.user.get(alice.id).email == "alice@example.com"

    def test_empty_update_returns_current(self, seeded):
        alice = seeded.user.query().where(eq("name", "Alice")).one()

        assert seeded.user.update(alice.id) == alice


class TestDelete:
    """Tests for delete."""

    def test_delete(self, seeded):
        """Deleting Charlie leaves Alice and Bob."""
        charlie = seeded.user.query().where(eq("name", "Charlie")).one()

        seeded.user.delete(charlie.id)

        names = {u.name for u in seeded.user.query().all()}
        assert names == {"Alice", "Bob"}

    def test_delete_twice(self, seeded):
        """A second delete of the same id is NotFound."""
        charlie = seeded.user.query().where(eq("name", "Charlie")).one()
        seeded.user.delete(charlie.id)

        with pytest.raises(NotFoundError):
            seeded.user.delete(charlie.id)

        with pytest.raises(NotFoundError):
            seeded.user.get(charlie.id)

    def test_delete_where(self, seeded):
        """delete_where removes matching users and reports how many."""
        assert seeded.user.delete_where(gt("age", 31)) == 2
        assert [u.name for u in seeded.user.query().all()] == ["Alice"]

    def test_delete_where_without_predicates(self, seeded):
        assert seeded.user.delete_where() == 3
        assert not seeded.user.query().exist()

    def test_update_where(self, seeded):
        """update_where changes every matching user."""
        changed = seeded.user.update_where([lt("age", 33)], age=40)

        assert changed == 2
        assert sorted(u.age for u in seeded.user.query().all()) == [35, 40, 40]

    def test_update_where_validates(self, seeded):
        with pytest.raises(ValidationError):
            seeded.user.update_where([lt("age", 33)], age=0)

        assert seeded.user.query().where(eq("age", 0)).count() == 0
