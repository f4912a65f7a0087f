"""
Unit tests for predicates and query building.

Tests cover:
- Predicate validation against entity definitions
- SQL rendering of predicates
- Query immutability
- Builder argument checks (no store involved)
"""

import pytest

from comfyent.errors import QueryError, QueryErrorKind
from comfyent.predicates import (
    and_,
    contains,
    contains_fold,
    eq,
    gt,
    has_prefix,
    has_suffix,
    in_,
    is_null,
    lt,
    not_,
    not_in,
    or_,
)
from comfyent.query import AggFunc, Aggregate, Direction, OrderTerm, Query
from comfyent.schema import User


@pytest.fixture
def query():
    """Query over User with no executor; building never touches it."""
    return Query(User, executor=None)


class TestPredicateCheck:
    """Tests for predicate validation."""

    def test_unknown_field(self):
        """Undeclared fields are rejected."""
        with pytest.raises(QueryError) as exc_info:
            gt("agee", 30).check(User)

        assert exc_info.value.kind == QueryErrorKind.UNKNOWN_FIELD
        assert exc_info.value.field_name == "agee"

    def test_id_is_queryable(self):
        """id can be filtered on."""
        eq("id", 1).check(User)

    def test_ordered_op_on_string(self):
        """gt/lt need a numeric field."""
        with pytest.raises(QueryError) as exc_info:
            gt("name", "A").check(User)

        assert exc_info.value.kind == QueryErrorKind.INVALID_ARGUMENT

    def test_string_op_on_integer(self):
        """contains needs a string field."""
        with pytest.raises(QueryError) as exc_info:
            contains("age", "3").check(User)

        assert exc_info.value.kind == QueryErrorKind.INVALID_ARGUMENT

    def test_string_op_needs_string_operand(self):
        with pytest.raises(QueryError):
            has_prefix("name", 3).check(User)

    def test_compare_with_none(self):
        """Comparisons with None point at is_null."""
        with pytest.raises(QueryError, match="is_null"):
            eq("name", None).check(User)

    def test_compound_checks_children(self):
        """Nested predicates are validated too."""
        with pytest.raises(QueryError):
            or_(eq("name", "Bob"), not_(eq("nmae", "Alice"))).check(User)


class TestPredicateSql:
    """Tests for predicate SQL rendering."""

    def test_comparison(self):
        assert gt("age", 30).to_sql() == ('"age" > ?', [30])

    def test_contains_is_case_sensitive(self):
        """contains uses instr, which is case-sensitive."""
        assert contains("name", "a").to_sql() == ('instr("name", ?) > 0', ["a"])

    def test_contains_fold(self):
        sql, params = contains_fold("name", "A").to_sql()

        assert "lower" in sql
        assert params == ["A"]

    def test_prefix_and_suffix(self):
        """Operands are bound, never interpolated."""
        prefix_sql, prefix_params = has_prefix("name", "Al").to_sql()
        suffix_sql, suffix_params = has_suffix("name", "ce").to_sql()

        assert "Al" not in prefix_sql
        assert prefix_params == ["Al", "Al"]
        assert suffix_params == ["ce", "ce", "ce"]

    def test_in_lists(self):
        """Empty IN matches nothing, empty NOT IN matches everything."""
        assert in_("age", [30, 32]).to_sql() == ('"age" IN (?, ?)', [30, 32])
        assert not_in("age", [30]).to_sql() == ('"age" NOT IN (?)', [30])
        assert in_("age", []).to_sql() == ("0", [])
        assert not_in("age", []).to_sql() == ("1", [])

    def test_null_tests(self):
        assert is_null("name").to_sql() == ('"name" IS NULL', [])

    def test_compound(self):
        """Compounds parenthesize and keep parameter order."""
        sql, params = and_(gt("age", 30), or_(eq("name", "Bob"), lt("age", 40))).to_sql()

        assert sql == '("age" > ? AND ("name" = ? OR "age" < ?))'
        assert params == [30, "Bob", 40]

    def test_empty_compounds(self):
        assert and_().to_sql() == ("1", [])
        assert or_().to_sql() == ("0", [])

    def test_negation(self):
        assert not_(eq("name", "Bob")).to_sql() == ('NOT ("name" = ?)', ["Bob"])


class TestQueryBuilder:
    """Tests for Query building."""

    def test_builder_returns_new_query(self, query):
        """Every builder call leaves the original untouched."""
        filtered = query.where(gt("age", 30))
        ordered = filtered.order_by("age", Direction.DESC)
        paged = ordered.limit(2).offset(4)

        assert query.predicates == ()
        assert filtered.ordering == ()
        assert ordered.row_limit is None
        assert paged.row_limit == 2
        assert paged.row_offset == 4
        assert paged.ordering == (OrderTerm("age", Direction.DESC),)

    def test_branches_are_independent(self, query):
        """Two extensions of one query do not see each other."""
        base = query.where(gt("age", 30))
        a = base.where(contains("name", "a"))
        b = base.order_by("name")

        assert len(a.predicates) == 2
        assert len(b.predicates) == 1
        assert a.ordering == ()

    def test_where_checks_at_build_time(self, query):
        """Unknown fields fail when the query is built."""
        with pytest.raises(QueryError) as exc_info:
            query.where(gt("agee", 30))

        assert exc_info.value.kind == QueryErrorKind.UNKNOWN_FIELD

    def test_order_by_unknown_field(self, query):
        with pytest.raises(QueryError) as exc_info:
            query.order_by("height")

        assert exc_info.value.kind == QueryErrorKind.UNKNOWN_FIELD

    def test_order_by_string_direction(self, query):
        """Directions can be given as strings."""
        assert query.order_by("age", "desc").ordering[0].direction == Direction.DESC

        with pytest.raises(QueryError):
            query.order_by("age", "sideways")

    @pytest.mark.parametrize("n", [-1, 1.5, "2", True])
    def test_invalid_limit_and_offset(self, query, n):
        """limit/offset take non-negative integers only."""
        with pytest.raises(QueryError) as exc_info:
            query.limit(n)
        assert exc_info.value.kind == QueryErrorKind.INVALID_ARGUMENT

        with pytest.raises(QueryError):
            query.offset(n)

    def test_zero_limit_allowed(self, query):
        assert query.limit(0).row_limit == 0

    def test_select_sql(self, query):
        """Filters, ordering and paging render in SQL order."""
        sql, params = (
            query.where(gt("age", 30)).order_by("age", Direction.DESC).offset(2)._select_sql()
        )

        assert sql == (
            'SELECT * FROM "users" WHERE ("age" > ?) ORDER BY "age" DESC LIMIT ? OFFSET ?'
        )
        assert params == [30, -1, 2]


class TestAggregateCheck:
    """Tests for aggregate validation."""

    def test_avg_needs_numeric(self):
        with pytest.raises(QueryError) as exc_info:
            Aggregate.avg("name").check(User)

        assert exc_info.value.kind == QueryErrorKind.INVALID_ARGUMENT

    def test_unknown_field(self):
        with pytest.raises(QueryError) as exc_info:
            Aggregate.max("height").check(User)

        assert exc_info.value.kind == QueryErrorKind.UNKNOWN_FIELD

    def test_count_without_field(self):
        """Only count may omit the field."""
        Aggregate.count().check(User)

        with pytest.raises(QueryError):
            Aggregate(AggFunc.AVG).check(User)

    def test_min_max_on_strings(self):
        """min/max work on any field."""
        Aggregate.min("name").check(User)
        Aggregate.max("email").check(User)
