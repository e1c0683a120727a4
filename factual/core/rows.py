"""Rows and facts reconstructed from the positional row arrays of the read endpoint."""

import logging
from collections import OrderedDict

logger = logging.getLogger(__name__)


class ProjectionError (Exception):
    """A raw row does not match the shape declared by its table schema."""
    pass


def project_row(schema, row_data, single_row_mode=False):
    """Split a positional row into its subject tuple and its non-primary values.

    Rows read by subject key carry one extra leading column (the subject key itself),
    which is skipped when `single_row_mode` is set. The row shape is never inspected
    to decide this.

    :param schema: the table Schema; its field order is the column order
    :param row_data: sequence of column values
    :param single_row_mode: whether the row came from a read by subject key
    :return: (subject tuple, OrderedDict of field_ref -> value)
    """
    offset = 1 if single_row_mode else 0
    if row_data is None or len(row_data) < len(schema.fields) + offset:
        raise ProjectionError("Row has %d columns, but the table schema declares %d fields%s." % (
            0 if row_data is None else len(row_data),
            len(schema.fields),
            " plus a leading subject key" if single_row_mode else ""))

    subject = []
    values = OrderedDict()
    for idx, field in enumerate(schema.fields):
        value = row_data[idx + offset]
        if field.is_primary:
            subject.append(value)
        else:
            values[field.field_ref] = value
    return tuple(subject), values


class Row (object):
    """One subject of a table: its subject key, subject tuple and facts.

    Facts are looked up by field reference, e.g. ``row['city_name']``.
    """
    def __init__(self, table, subject_key, row_data, single_row_mode=False):
        self.table = table
        self.subject_key = subject_key
        self.subject, values = project_row(table.schema, row_data, single_row_mode)
        self._facts = OrderedDict(
            (field_ref, Fact(table, subject_key, self.subject, table.schema.field(field_ref), value))
            for field_ref, value in values.items()
        )

    @classmethod
    def from_table_data(cls, table, raw_row):
        """Build a Row from a table read, where the subject key leads each row array."""
        if not isinstance(raw_row, list) or not raw_row:
            raise ProjectionError("Expected a non-empty row array, got %r." % (raw_row,))
        return cls(table, raw_row[0], raw_row[1:])

    def __getitem__(self, field_ref):
        return self._facts.get(field_ref)

    def __iter__(self):
        return iter(self._facts)

    @property
    def facts(self):
        return self._facts

    def __repr__(self):
        return "<%s.%s object %r subject=%r at 0x%x>" % (
            type(self).__module__,
            type(self).__name__,
            self.subject_key,
            self.subject,
            id(self),
        )


class Fact (object):
    """The value of one field for one subject.

    The value is a snapshot taken when the row was read. Suggesting a new value with
    `input` does not change it; re-read the row to see what the server accepted.
    """
    def __init__(self, table, subject_key, subject, field, value):
        self.value = value
        self.field = field
        self.subject_key = subject_key
        self.subject = subject
        self._table = table

    @property
    def field_ref(self):
        return self.field.field_ref

    def input(self, value, **opts):
        """Suggest a new value for this fact.

        :param value: the suggested value; None is a no-op
        :param opts: extra input parameters, e.g. source='http://website.com', comments='...',
            or token=<delegated token> for a shadow account input
        :return: True once the server accepted the request, False if `value` is None
        """
        if value is None:
            return False

        params = dict(opts)
        params.update({
            'subjectKey': self.subject_key,
            'values': [{'fieldId': self.field.id, 'value': value}],
        })
        self._table.send_input(params)
        return True

    def __str__(self):
        return str(self.value)

    def __repr__(self):
        return "<%s.%s object %r=%r at 0x%x>" % (
            type(self).__module__,
            type(self).__name__,
            self.field_ref,
            self.value,
            id(self),
        )
