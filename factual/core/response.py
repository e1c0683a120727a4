"""Tolerant, read-only traversal of parsed JSON response documents.

Indexing a :class:`ResponseView` never raises on a missing path. Each step of a
traversal yields either the next value or a :class:`ResponseError`, and the first
error short-circuits the remaining keys. Callers check ``is_error`` (or simply the
truthiness of the result, since errors are falsy) before using a value.
"""

import logging
from collections.abc import Mapping

logger = logging.getLogger(__name__)


class ResponseError (object):
    """Value returned in place of a result when a response path cannot be followed.

    This is a value, not a raised exception.
    """
    is_error = True

    def __init__(self, message, path=()):
        self.message = message
        self.path = tuple(path)

    def __bool__(self):
        return False

    def __str__(self):
        return self.message

    def __repr__(self):
        return "%s(%r, path=%r)" % (type(self).__name__, self.message, self.path)


def _step(value, key):
    """Descend one level into a parsed JSON value.

    :return: the child value, or a ResponseError describing why it is unreachable
    """
    if isinstance(value, Mapping):
        try:
            if key in value:
                return value[key]
        except TypeError:
            return ResponseError("Unexpected API response: invalid key %r" % (key,))
        return ResponseError("Unexpected API response: missing key %r" % (key,))
    if isinstance(value, list):
        if not isinstance(key, int) or isinstance(key, bool):
            return ResponseError("Unexpected API response: list index must be an integer, not %r" % (key,))
        if -len(value) <= key < len(value):
            return value[key]
        return ResponseError("Unexpected API response: index %d out of range" % key)
    return ResponseError("Unexpected API response: cannot index %s with %r" % (type(value).__name__, key))


class ResponseView (object):
    """Chainable view over a parsed JSON object.

       view['response', 'data', 0]

    descends one level per key. Mappings come back wrapped in a new ResponseView,
    everything else (scalars and lists) is returned as is.
    """
    is_error = False

    def __init__(self, obj):
        self._obj = obj

    def __getitem__(self, keys):
        if not isinstance(keys, tuple):
            keys = (keys,)
        value = self._obj
        for depth, key in enumerate(keys):
            value = _step(value, key)
            if isinstance(value, ResponseError):
                value.path = keys[:depth + 1]
                logger.debug("%s (path: %s)" % (value.message, list(value.path)))
                return value
        if isinstance(value, Mapping):
            return ResponseView(value)
        return value

    def __contains__(self, key):
        try:
            return isinstance(self._obj, Mapping) and key in self._obj
        except TypeError:
            return False

    def __repr__(self):
        return "%s(%r)" % (type(self).__name__, self._obj)

    def get(self, *keys, default=None):
        """Like indexing, but substitutes `default` for a ResponseError."""
        value = self[keys]
        return default if isinstance(value, ResponseError) else value

    def unwrap(self):
        """Return the underlying parsed JSON document."""
        return self._obj
