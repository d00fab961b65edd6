import pytest

from content_plugins.collection.collection_index import (
    CollectionHandle,
    CollectionIndex,
    FilterPredicate,
    Operator,
    UnknownCollectionError,
)
from content_plugins.content_build.diagnostics import DiagnosticKind
from content_plugins.document_parser.document_parser import DocumentParser


def make_doc(path, front_matter="", body="Body text.\n", source=None):
    text = f"---\npath: {path}\n{front_matter}---\n{body}"
    return DocumentParser().parse(text, source or f"{path.strip('/') or 'index'}.md")


class TestCollectionIndex:
    def setup_method(self):
        self.index = CollectionIndex()
        self.docs = [
            make_doc("/getting-started/intro", "title: Intro\norder: 1\ntags: [basics, setup]\n"),
            make_doc("/guide/intro", "title: Guide\norder: 3\ndraft: true\nnavigation:\n  title: Guide Home\n"),
            make_doc("/getting-started", "title: Getting Started\norder: '2'\n"),
        ]
        self.handle = self.index.ingest(self.docs, name="docs")

    def paths(self, docs):
        return [d.path for d in docs]

    def test_like_prefix_in_ingestion_order(self):
        """Test: LIKE prefix matches come back in ingestion order."""
        result = self.index.query(
            self.handle, [FilterPredicate("path", Operator.LIKE, "/getting-started%")]
        )
        assert self.paths(result) == ["/getting-started/intro", "/getting-started"]

    def test_no_filters_returns_everything_in_order(self):
        """Test: A query without filters returns the whole collection."""
        assert self.paths(self.index.query(self.handle)) == [
            "/getting-started/intro",
            "/guide/intro",
            "/getting-started",
        ]

    def test_predicates_are_anded(self):
        """Test: Every predicate must hold for a document to match."""
        result = self.index.query(
            self.handle,
            [
                FilterPredicate("path", Operator.LIKE, "%intro"),
                FilterPredicate("title", Operator.EQ, "Guide"),
            ],
        )
        assert self.paths(result) == ["/guide/intro"]

    def test_like_underscore_and_case(self):
        """Test: LIKE supports "_" and follows the case sensitivity option."""
        assert self.index.query(self.handle, [FilterPredicate("title", Operator.LIKE, "gu_de")])
        sensitive = CollectionIndex(like_case_sensitive=True)
        handle = sensitive.ingest(self.docs)
        assert sensitive.query(handle, [FilterPredicate("title", Operator.LIKE, "gu_de")]) == []
        assert sensitive.query(handle, [FilterPredicate("title", Operator.LIKE, "Gu_de")])

    def test_numeric_operator_on_non_numeric_field_excludes(self):
        """Test: Numeric comparisons exclude non-numeric values instead of raising."""
        # order '2' is a string on the third document
        result = self.index.query(self.handle, [FilterPredicate("order", Operator.GT, 0)])
        assert self.paths(result) == ["/getting-started/intro", "/guide/intro"]
        result = self.index.query(self.handle, [FilterPredicate("order", Operator.LT, 3)])
        assert self.paths(result) == ["/getting-started/intro"]
        assert self.index.query(self.handle, [FilterPredicate("title", Operator.GT, 1)]) == []

    def test_bool_is_not_numeric(self):
        """Test: Booleans never compare as numbers."""
        assert self.index.query(self.handle, [FilterPredicate("draft", Operator.GT, 0)]) == []
        result = self.index.query(self.handle, [FilterPredicate("draft", Operator.EQ, True)])
        assert self.paths(result) == ["/guide/intro"]
        assert self.index.query(self.handle, [FilterPredicate("order", Operator.EQ, True)]) == []

    def test_in_operator(self):
        """Test: IN matches scalars and any element of list fields."""
        result = self.index.query(
            self.handle, [FilterPredicate("title", Operator.IN, ["Intro", "Getting Started"])]
        )
        assert self.paths(result) == ["/getting-started/intro", "/getting-started"]
        # list-valued field matches on any element
        result = self.index.query(self.handle, [FilterPredicate("tags", Operator.IN, ["setup"])])
        assert self.paths(result) == ["/getting-started/intro"]
        # non-collection value is a mismatch, not an error
        assert self.index.query(self.handle, [FilterPredicate("title", Operator.IN, "Intro")]) == []

    def test_unknown_field_is_empty(self):
        """Test: An unknown field matches nothing except IS NULL."""
        assert self.index.query(self.handle, [FilterPredicate("nope", Operator.EQ, 1)]) == []
        result = self.index.query(self.handle, [FilterPredicate("nope", Operator.IS_NULL)])
        assert len(result) == 3

    def test_dotted_front_matter_lookup(self):
        """Test: Dotted field names reach into nested front matter."""
        result = self.index.query(
            self.handle, [FilterPredicate("navigation.title", Operator.EQ, "Guide Home")]
        )
        assert self.paths(result) == ["/guide/intro"]

    def test_between_and_negations(self):
        """Test: BETWEEN and NOT LIKE filter as expected."""
        result = self.index.query(self.handle, [FilterPredicate("order", Operator.BETWEEN, [1, 2])])
        assert self.paths(result) == ["/getting-started/intro"]
        result = self.index.query(
            self.handle, [FilterPredicate("path", Operator.NOT_LIKE, "/getting-started%")]
        )
        assert self.paths(result) == ["/guide/intro"]

    def test_order_by(self):
        """Test: order_by sorts numbers before strings and DESC reverses ASC."""
        ascending = self.paths(self.index.query(self.handle, order_by=("order", "ASC")))
        # numbers sort before strings
        assert ascending == ["/getting-started/intro", "/guide/intro", "/getting-started"]
        descending = self.paths(self.index.query(self.handle, order_by=("order", "DESC")))
        assert descending == list(reversed(ascending))

    def test_order_by_missing_values_last(self):
        """Test: Documents without the field sort last in both directions."""
        extra = make_doc("/no-order", "title: Unordered\n")
        index = CollectionIndex()
        handle = index.ingest([extra] + self.docs)
        for direction in ("ASC", "DESC"):
            result = index.query(handle, order_by=("order", direction))
            assert result[-1].path == "/no-order"

    def test_duplicate_paths_last_write_wins(self):
        """Test: The later document wins a path collision and a diagnostic is recorded."""
        first = make_doc("/a", "title: First\n", source="one/a.md")
        second = make_doc("/a", "title: Second\n", source="two/a.md")
        index = CollectionIndex()
        handle = index.ingest([first, second])
        result = index.query(handle, [FilterPredicate("path", Operator.EQ, "/a")])
        assert len(result) == 1
        assert result[0].title == "Second"
        collisions = index.diagnostics.of_kind(DiagnosticKind.PATH_COLLISION)
        assert len(collisions) == 1
        assert collisions[0].subject == "/a"

    def test_deterministic_across_fresh_indices(self):
        """Test: The same input gives the same query result on a fresh index."""
        query = [FilterPredicate("path", Operator.LIKE, "%intro%")]
        first = CollectionIndex()
        second = CollectionIndex()
        a = first.query(first.ingest(self.docs), query)
        b = second.query(second.ingest(self.docs), query)
        assert self.paths(a) == self.paths(b)

    def test_unknown_collection(self):
        """Test: An unknown collection name raises."""
        with pytest.raises(UnknownCollectionError):
            self.index.query(CollectionHandle("missing"))
        with pytest.raises(KeyError):
            self.index.handle("missing")

    def test_get(self):
        """Test: Documents can be fetched by path."""
        assert self.index.get(self.handle, "/guide/intro").title == "Guide"
        assert self.index.get(self.handle, "/nowhere") is None


class TestOperatorParsing:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("LIKE", Operator.LIKE),
            ("like", Operator.LIKE),
            ("=", Operator.EQ),
            ("EQ", Operator.EQ),
            ("!=", Operator.NE),
            ("NOT_IN", Operator.NOT_IN),
            ("is not null", Operator.IS_NOT_NULL),
            (">=", Operator.GTE),
        ],
    )
    def test_parse(self, raw, expected):
        """Test: Operators parse from symbols and names."""
        assert Operator.parse(raw) is expected

    def test_unknown_operator(self):
        """Test: An unknown operator raises ValueError."""
        with pytest.raises(ValueError):
            Operator.parse("SOUNDS LIKE")

    def test_predicate_from_dict(self):
        """Test: Predicates build from config mappings."""
        predicate = FilterPredicate.from_dict({"field": "path", "operator": "LIKE", "value": "/x%"})
        assert predicate == FilterPredicate("path", Operator.LIKE, "/x%")
        with pytest.raises(ValueError):
            FilterPredicate.from_dict({"field": "path"})
