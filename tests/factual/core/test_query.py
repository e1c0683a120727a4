# Tests for the query module.

import json
import unittest
from urllib.parse import parse_qs

from factual.core import Table, QueryBuilder, Row, ApiError, encode_read_query
from factual.core.query import DEFAULT_LIMIT
from tests.factual.core.base import TABLE_KEY, ROWS, FakeBinding, envelope, table_binding


def decode(query):
    """Decode an encoded read query into a dict of single values, JSON params parsed."""
    params = {k: v[0] for k, v in parse_qs(query, keep_blank_values=True).items()}
    for k in ('filters', 'sort'):
        if k in params:
            params[k] = json.loads(params[k])
    return params


class EncodeReadQueryTests(unittest.TestCase):

    def test_defaults(self):
        self.assertEqual(encode_read_query(), "limit=%d&offset=0" % DEFAULT_LIMIT)

    def test_paging(self):
        self.assertEqual(encode_read_query(page_size=10, page=2), "limit=10&offset=10")
        self.assertEqual(encode_read_query(page_size=10, page=1), "limit=10&offset=0")
        self.assertEqual(encode_read_query(page_size="5", page="3"), "limit=5&offset=10")

    def test_non_positive_page_size_falls_back(self):
        for size in [0, -3, None, "x"]:
            self.assertEqual(encode_read_query(page_size=size, page=2), "limit=20&offset=20", f"{size=}")

    def test_offset_never_negative(self):
        for page in [0, -1, None]:
            self.assertEqual(encode_read_query(page_size=10, page=page), "limit=10&offset=0", f"{page=}")

    def test_filters_are_json_and_percent_encoded(self):
        query = encode_read_query(filters={"state": {"$has": "A"}})
        self.assertIn("&filters=%7B%22state%22%3A%7B%22%24has%22%3A%22A%22%7D%7D", query)
        self.assertEqual(decode(query)['filters'], {"state": {"$has": "A"}})

    def test_no_filter_param_without_filters(self):
        self.assertNotIn("filters", decode(encode_read_query()))

    def test_searches_merge_into_filters(self):
        filters = {"state": "CA"}
        params = decode(encode_read_query(filters=filters, searches=["starbucks", "burger king"]))
        self.assertEqual(params['filters'], {"state": "CA", "$search": ["starbucks", "burger king"]})
        self.assertEqual(filters, {"state": "CA"})

    def test_searches_without_filters(self):
        params = decode(encode_read_query(searches=["starbucks"]))
        self.assertEqual(params['filters'], {"$search": ["starbucks"]})

    def test_no_sort(self):
        self.assertNotIn("sort", decode(encode_read_query(sorts=None)))
        self.assertNotIn("sort", decode(encode_read_query(sorts=[])))

    def test_single_sort_is_an_object(self):
        params = decode(encode_read_query(sorts=[{"state": 1}]))
        self.assertEqual(params['sort'], {"state": 1})

    def test_two_sorts_are_an_array(self):
        params = decode(encode_read_query(sorts=[{"state": 1}, {"abbr": -1}]))
        self.assertEqual(params['sort'], [{"state": 1}, {"abbr": -1}])

    def test_only_two_sorts_are_encoded(self):
        params = decode(encode_read_query(sorts=[{"state": 1}, {"abbr": -1}, {"population": 1}]))
        self.assertEqual(params['sort'], [{"state": 1}, {"abbr": -1}])


class QueryBuilderTests(unittest.TestCase):

    def setUp(self):
        self.binding = table_binding()
        self.table = Table(TABLE_KEY, self.binding)
        self.query = self.table.query()

    def _read_params(self):
        read_paths = [p for p in self.binding.paths if "/read.jsaml?" in p]
        self.assertTrue(read_paths)
        return decode(read_paths[-1].split("?", 1)[1])

    def test_defaults(self):
        self.assertIsInstance(self.query, QueryBuilder)
        self.assertEqual(self.query.page_number, 1)
        self.assertEqual(self.query.page_size, DEFAULT_LIMIT)
        self.assertIsNone(self.query.filters)
        self.assertIsNone(self.query.sorts)
        self.assertIsNone(self.query.searches)

    def test_chaining_returns_builder(self):
        q = self.query
        self.assertIs(q.filter({"state": "CA"}), q)
        self.assertIs(q.sort({"state": 1}), q)
        self.assertIs(q.search("x"), q)
        self.assertIs(q.page(2), q)

    def test_building_issues_no_requests(self):
        before = list(self.binding.paths)
        self.query.filter({"state": "CA"}).sort({"state": 1}).search("x").page(3, size=5)
        self.assertEqual(self.binding.paths, before)

    def test_filter_replaces(self):
        self.query.filter({"state": "CA"}).filter({"abbr": "NE"})
        self.assertEqual(self.query.filters, {"abbr": "NE"})

    def test_sort_replaces(self):
        self.query.sort({"state": 1}, {"abbr": -1}).sort({"population": -1})
        self.assertEqual(self.query.sorts, [{"population": -1}])
        self.query.sort()
        self.assertIsNone(self.query.sorts)

    def test_search_replaces(self):
        self.query.search("a", "b").search("c")
        self.assertEqual(self.query.searches, ["c"])

    def test_blank_search_clears(self):
        self.query.search("a")
        self.query.search()
        self.assertIsNone(self.query.searches)
        self.query.search("a").search(None, "  ", "")
        self.assertIsNone(self.query.searches)
        self.query.search(None, "b")
        self.assertEqual(self.query.searches, ["b"])

    def test_page_zero_leaves_page_unchanged(self):
        self.query.page(3)
        self.query.page(0)
        self.assertEqual(self.query.page_number, 3)
        self.query.page(-2)
        self.query.page(None)
        self.query.page("abc")
        self.assertEqual(self.query.page_number, 3)

    def test_page_coerces_to_int(self):
        self.query.page("4")
        self.assertEqual(self.query.page_number, 4)

    def test_page_size(self):
        self.query.page(2, size=10)
        self.assertEqual(self.query.page_size, 10)
        self.query.page(3)
        self.assertEqual(self.query.page_size, 10)

    def test_each_row_paging(self):
        list(self.query.page(2, size=10).each_row())
        params = self._read_params()
        self.assertEqual(params['limit'], '10')
        self.assertEqual(params['offset'], '10')

    def test_each_row(self):
        rows = list(self.query.each_row())
        self.assertEqual(len(rows), len(ROWS))
        self.assertTrue(all(isinstance(r, Row) for r in rows))
        self.assertEqual(rows[0].subject_key, "S1")
        self.assertEqual(rows[0].subject, ("California",))
        self.assertEqual(rows[0]["abbr"].value, "CA")
        self.assertEqual(rows[1]["population"].value, 1826341)

    def test_each_row_records_total_rows(self):
        binding = table_binding(total_rows=1234)
        query = Table(TABLE_KEY, binding).query()
        self.assertIsNone(query.total_rows)
        query.each_row()
        self.assertEqual(query.total_rows, 1234)

    def test_each_row_fetches_when_called(self):
        self.query.each_row()
        self.assertEqual(len([p for p in self.binding.paths if "/read.jsaml?" in p]), 1)

    def test_each_row_restarts(self):
        first = list(self.query.each_row())
        second = list(self.query)
        self.assertEqual([r.subject_key for r in first], [r.subject_key for r in second])
        self.assertEqual(len([p for p in self.binding.paths if "/read.jsaml?" in p]), 2)

    def test_each_row_does_not_change_state(self):
        self.query.filter({"state": "CA"}).search("x").sort({"state": 1}).page(2, size=7)
        list(self.query.each_row())
        self.assertEqual(self.query.filters, {"state": "CA"})
        self.assertEqual(self.query.searches, ["x"])
        self.assertEqual(self.query.sorts, [{"state": 1}])
        self.assertEqual((self.query.page_number, self.query.page_size), (2, 7))

    def test_each_row_query_params(self):
        list(self.query.filter({"state": "CA"}).search("x").sort({"state": 1}, {"abbr": -1}).each_row())
        params = self._read_params()
        self.assertEqual(params['filters'], {"state": "CA", "$search": ["x"]})
        self.assertEqual(params['sort'], [{"state": 1}, {"abbr": -1}])

    def test_find_one_forces_single_row(self):
        row = self.query.page(3, size=50).find_one()
        params = self._read_params()
        self.assertEqual(params['limit'], '1')
        self.assertEqual(params['offset'], '0')
        self.assertEqual(row.subject_key, "S1")
        self.assertEqual(self.query.page_size, 50)

    def test_find_one_no_rows(self):
        query = Table(TABLE_KEY, table_binding(rows=[])).query()
        self.assertIsNone(query.find_one())

    def test_missing_row_data(self):
        binding = table_binding()
        binding.add_route("/tables/%s/read.jsaml" % TABLE_KEY, envelope("response", {"total_rows": 0}))
        query = Table(TABLE_KEY, binding).query()
        with self.assertRaises(ApiError):
            query.find_one()
        with self.assertRaises(ApiError):
            query.each_row()

    def test_error_envelope(self):
        binding = table_binding()
        binding.add_route("/tables/%s/read.jsaml" % TABLE_KEY, {"status": "error", "error": "bad query"})
        query = Table(TABLE_KEY, binding).filter({"nope": 1})
        with self.assertRaises(ApiError) as cm:
            query.each_row()
        self.assertEqual(cm.exception.message, "bad query")

    def test_table_shortcuts_start_fresh_queries(self):
        q1 = self.table.filter({"state": "CA"})
        q2 = self.table.page(2)
        self.assertIsNot(q1, q2)
        self.assertIsNone(q2.filters)
        self.assertEqual(self.table.sort({"state": 1}).sorts, [{"state": 1}])
        self.assertEqual(self.table.search("x").searches, ["x"])
        self.assertEqual(self.table.find_one().subject_key, "S1")
        self.assertEqual(len(list(self.table.each_row())), len(ROWS))


if __name__ == '__main__':
    unittest.main()
