"""Table schema model: schema documents, field descriptors and the field reference index."""

import json
import logging
import pkgutil
import jsonschema

from .. import core
from .response import ResponseView

logger = logging.getLogger(__name__)

_schema_document_schema = None


def _document_schema():
    global _schema_document_schema
    if _schema_document_schema is None:
        s = pkgutil.get_data(core.__name__, 'schemas/table_schema.schema.json').decode()
        _schema_document_schema = json.loads(s)
    return _schema_document_schema


class SchemaError (Exception):
    """A table schema document cannot be used to address the table."""
    pass


def camelize(name):
    """Derive the camelCase wire key for a snake_case attribute name.

    Each '_' delimited word is capitalized and the words concatenated, then the first
    letter is lower-cased, e.g. 'total_row_count' -> 'totalRowCount'.
    """
    s = "".join(w.capitalize() for w in str(name).split("_"))
    return s[:1].lower() + s[1:]


class Field (object):
    """A column of a table.

    Dictionary-style access reaches the raw field metadata, which also carries the
    resolved 'field_ref'.
    """
    def __init__(self, field_doc, field_ref):
        self.id = field_doc['id']
        self.field_ref = field_ref
        self.is_primary = bool(field_doc.get('isPrimary'))
        self.metadata = dict(field_doc)
        self.metadata['field_ref'] = field_ref

    def __getitem__(self, key):
        return self.metadata[key]

    def get(self, key, default=None):
        return self.metadata.get(key, default)

    def __repr__(self):
        return "<%s.%s object %r id=%r%s at 0x%x>" % (
            type(self).__module__,
            type(self).__name__,
            self.field_ref,
            self.id,
            ' primary' if self.is_primary else '',
            id(self),
        )


class Schema (object):
    """Metadata of a table, loaded once from its schema document and not changed afterwards."""

    attributes = (
        'name',
        'description',
        'rating',
        'source',
        'creator',
        'total_row_count',
        'created_at',
        'updated_at',
        'geo_enabled',
        'downloadable',
    )

    def __init__(self, schema_doc):
        if isinstance(schema_doc, ResponseView):
            schema_doc = schema_doc.unwrap()
        try:
            jsonschema.validate(schema_doc, _document_schema())
        except jsonschema.ValidationError as e:
            raise SchemaError("Malformed schema document: %s" % e.message)

        for attr in self.attributes:
            setattr(self, attr, schema_doc.get(camelize(attr)))

        field_refs = schema_doc['fieldRefs']
        self.fields = []
        self.fields_lookup = dict()
        for field_doc in schema_doc['fields']:
            fid = str(field_doc['id'])
            if fid not in field_refs:
                raise SchemaError("No field reference for field id %s." % fid)
            field_ref = field_refs[fid]
            if field_ref in self.fields_lookup:
                raise SchemaError("Duplicate field reference '%s'." % field_ref)
            field = Field(field_doc, field_ref)
            self.fields.append(field)
            self.fields_lookup[field_ref] = field
        logger.debug("Loaded schema %r with fields: %s" % (self.name, list(self.fields_lookup)))

    @classmethod
    def load(cls, schema_doc):
        """Build a Schema from a parsed schema document (dict or ResponseView)."""
        return cls(schema_doc)

    def __repr__(self):
        return "<%s.%s object %r at 0x%x>" % (
            type(self).__module__,
            type(self).__name__,
            self.name,
            id(self),
        )

    @property
    def primary_fields(self):
        return [f for f in self.fields if f.is_primary]

    def field(self, field_ref):
        """Return the Field for a field reference, or None."""
        return self.fields_lookup.get(field_ref)


load_schema = Schema.load
