"""Read query construction for table rows.

A QueryBuilder accumulates filter, sort, search and paging state through chained
calls and serializes it into the query string of the table read endpoint when a
read is executed::

    table.filter({'state': 'CA'}).search('starbucks').sort({'city': 1}).find_one()
    for row in table.page(2, size=10).each_row():
        ...
"""

import logging
from . import urlquote, to_json
from .factual_binding import ApiError
from .rows import Row

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
"""Default page size"""

MAX_SORTS = 2
"""Number of sort specifications honored by the server"""


def _to_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def encode_read_query(filters=None, searches=None, sorts=None, page_size=None, page=None):
    """Encode read state as the query string of the table read endpoint.

    :param filters: filter expression mapping field refs to values or operator mappings
    :param searches: list of full-text search terms, merged into the filters as '$search'
    :param sorts: list of single-key sort mappings; only the first two are encoded
    :param page_size: rows per page, defaults to DEFAULT_LIMIT when not positive
    :param page: 1-based page number
    :return: 'limit=<n>&offset=<n>[&filters=<json>][&sort=<json>]'
    """
    limit = _to_int(page_size)
    if limit <= 0:
        limit = DEFAULT_LIMIT
    offset = max(0, (_to_int(page) - 1) * limit)

    if searches:
        filters = dict(filters or {})
        filters['$search'] = list(searches)

    query = "limit=%d&offset=%d" % (limit, offset)
    if filters is not None:
        query += "&filters=" + urlquote(to_json(filters))
    if sorts:
        sorts = list(sorts[:MAX_SORTS])
        # a lone sort goes over the wire as an object, not a one-element array
        query += "&sort=" + urlquote(to_json(sorts[0] if len(sorts) == 1 else sorts))
    return query


def _row_data(response):
    data = response['data']
    if not isinstance(data, list):
        raise ApiError("Unexpected API response: no row data (%s)" % data)
    return data


class QueryBuilder (object):
    """Filter, sort, search and paging state of a read query on a table.

    Every building method replaces the corresponding state and returns the builder
    itself. Nothing is sent to the server until `find_one` or `each_row` is called.
    The builder is not synchronized; do not share one between threads.
    """
    def __init__(self, table, page_size=DEFAULT_LIMIT, page=1):
        self._table = table
        self.filters = None
        self.searches = None
        self.sorts = None
        self.page_size = page_size
        self.page_number = page
        self.total_rows = None

    def page(self, page_num, size=None):
        """Set the page, and optionally the page size.

        Page numbers that are not positive integers leave the current page unchanged.

        :param page_num: 1-based page number
        :param size: rows per page (optional)
        :return: self
        """
        if size is not None:
            self.page_size = size
        page_num = _to_int(page_num)
        if page_num > 0:
            self.page_number = page_num
        return self

    def search(self, *terms):
        """Set the full-text search terms. No (non-blank) terms clears the search.

        :return: self
        """
        terms = [t for t in terms if t is not None and str(t).strip()]
        self.searches = terms or None
        return self

    def filter(self, filters):
        """Set the filter expression, replacing any previous one.

        Samples::

            filter({'state': 'CA'})
            filter({'state': 'CA', 'city': 'LA'})
            filter({'state': {'$has': 'A'}, 'city': {'$ew': 'A'}})

        :return: self
        """
        self.filters = filters
        return self

    def sort(self, *sorts):
        """Set the sorts, e.g. ``sort({'state': 1}, {'abbr': -1})``.

        Only the first two sorts are sent to the server.

        :return: self
        """
        self.sorts = list(sorts) or None
        return self

    def encode(self, page_size=None, page=None):
        """Encode the current state as a read query string, with optional paging overrides."""
        return encode_read_query(
            filters=self.filters,
            searches=self.searches,
            sorts=self.sorts,
            page_size=self.page_size if page_size is None else page_size,
            page=self.page_number if page is None else page,
        )

    def find_one(self):
        """Return the first matching Row, or None if no row matches."""
        response = self._table.read(self.encode(page_size=1, page=1))
        data = _row_data(response)
        if not data:
            return None
        return Row.from_table_data(self._table, data[0])

    def each_row(self):
        """Read the current page and return an iterator over its Rows.

        The page is fetched when this method is called; iterating performs no further
        requests. Each call reads the page again.
        """
        response = self._table.read(self.encode())
        self.total_rows = response.get('total_rows')
        data = _row_data(response)
        logger.debug("Read %d row(s) of %s total." % (len(data), self.total_rows))
        return (Row.from_table_data(self._table, raw_row) for raw_row in data)

    def __iter__(self):
        return self.each_row()
