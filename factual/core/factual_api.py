import logging
from . import urlquote, to_json, get_credential, read_config, DEFAULT_DOMAIN, DEFAULT_SCHEME, \
    DEFAULT_API_VERSION, DEFAULT_SESSION_CONFIG
from .factual_binding import FactualBinding, ApiError
from .factual_model import Schema, SchemaError
from .response import ResponseError, ResponseView
from .rows import Row, ProjectionError
from .query import QueryBuilder

logger = logging.getLogger(__name__)


class ArgumentError (ValueError):
    """A caller-supplied argument cannot be used, e.g. an unknown field reference."""
    pass


class FactualApi (object):
    """Entry point of the Factual API client.

       api = FactualApi(api_key=MY_API_KEY, debug=True)
       table = api.get_table('g9R1u2')
    """

    def __init__(self, api_key=None, domain=DEFAULT_DOMAIN, debug=False, scheme=DEFAULT_SCHEME,
                 version=DEFAULT_API_VERSION, session_config=None, credential_file=None):
        """Create a Factual API client.

           Arguments:
             api_key: the API key; looked up in the credential file for `domain` when omitted
             domain: API host name (default www.factual.com)
             debug: log the fully-qualified URL of every API call
             scheme: 'http' or 'https'
             version: API version number
             session_config: requests session options, see DEFAULT_SESSION_CONFIG
             credential_file: optional path to a non-default credential file
        """
        if not api_key:
            credential = get_credential(domain, credential_file=credential_file)
            api_key = credential.get('api_key') if credential else None
        if not api_key:
            raise ArgumentError("Missing required argument: an API key must be provided for %s." % domain)

        self.domain = domain
        self.debug = debug
        self.binding = FactualBinding(domain, api_key, version=version, scheme=scheme, debug=debug,
                                      session_config=session_config)

    @classmethod
    def from_config(cls, config_file=None, credential_file=None, api_key=None, debug=False):
        """Create a client from the server and session sections of a configuration file."""
        config = read_config(config_file, create_default=True)
        server = config.get('server', {})
        return cls(api_key=api_key,
                   domain=server.get('domain', DEFAULT_DOMAIN),
                   debug=debug,
                   scheme=server.get('scheme', DEFAULT_SCHEME),
                   version=server.get('version', DEFAULT_API_VERSION),
                   session_config=config.get('session', DEFAULT_SESSION_CONFIG),
                   credential_file=credential_file)

    def get_table(self, table_key):
        """Open a table by its key, fetching its schema."""
        return Table(table_key, self.binding)

    def get_token(self, unique_id):
        """Get the token of a shadow account. This is a partner-only feature."""
        resp = self.binding.get("/sessions/get_token?uniqueId=%s" % urlquote(unique_id))
        token = resp["string"]
        if isinstance(token, ResponseError):
            raise ApiError("%s when getting token for %s" % (token, unique_id))
        return token

    def close(self):
        self.binding.close()


class Table (object):
    """A table of the Factual API with its schema.

    Schema metadata is available as attributes (name, description, rating, source,
    creator, total_row_count, created_at, updated_at, fields, geo_enabled,
    downloadable). The filter, sort, search and page methods start a new QueryBuilder.
    """

    def __init__(self, table_key, binding):
        self.key = table_key
        self.binding = binding
        resp = binding.get("/tables/%s/schema.json" % urlquote(table_key))
        schema_doc = resp["schema"]
        if not isinstance(schema_doc, ResponseView):
            raise SchemaError("No schema document for table %s: %s" % (table_key, schema_doc))
        self.schema = Schema.load(schema_doc)

    def __getattr__(self, a):
        if a in Schema.attributes or a in ('fields', 'fields_lookup'):
            return getattr(self.schema, a)
        raise AttributeError("'%s' object has no attribute '%s'" % (type(self).__name__, a))

    def __repr__(self):
        return "<%s.%s object %r at 0x%x>" % (
            type(self).__module__,
            type(self).__name__,
            self.key,
            id(self),
        )

    def query(self):
        """Start a new read query on this table."""
        return QueryBuilder(self)

    def page(self, page_num, size=None):
        return self.query().page(page_num, size=size)

    def search(self, *terms):
        return self.query().search(*terms)

    def filter(self, filters):
        return self.query().filter(filters)

    def sort(self, *sorts):
        return self.query().sort(*sorts)

    def find_one(self):
        return self.query().find_one()

    def each_row(self):
        return self.query().each_row()

    def read(self, query):
        """Perform a table read with an encoded query string, returning the 'response' payload."""
        resp = self.binding.get("/tables/%s/read.jsaml?%s" % (urlquote(self.key), query))
        response = resp["response"]
        if not isinstance(response, ResponseView):
            raise ApiError("Unexpected API response reading table %s: %s" % (self.key, response))
        return response

    def get_row(self, subject_key):
        """Read a single Row by its subject key, or None if there is no such row."""
        resp = self.binding.get("/tables/%s/read.jsaml?subject_key=%s" % (urlquote(self.key), urlquote(subject_key)))
        data = resp["response", "data"]
        if not isinstance(data, list):
            raise ApiError("Unexpected API response reading subject %s of table %s: %s" % (subject_key, self.key, data))
        row_data = data[0] if data else None
        if not row_data:
            return None
        if not isinstance(row_data, list):
            raise ProjectionError("Expected a row array for subject %s, got %r." % (subject_key, row_data))
        return Row(self, subject_key, row_data, single_row_mode=True)

    def input(self, values, **opts):
        """Suggest values for a row. It can be used to create a row, or edit an existing one.

        :param values: dict of field_ref -> value
        :param opts: extra input parameters, e.g. source='http://website.com', comments='cornhusker!'
        :return: the 'response' payload, e.g. {"subjectKey": <subject_key>, "exists": <true|false>}

        Sample::

            table.input({'two_letter_abbrev': 'NE', 'state': 'Nebraska'}, source='http://website.com')
        """
        values_list = []
        for field_ref, value in values.items():
            field = self.schema.field(field_ref)
            if field is None:
                raise ArgumentError("Wrong field ref: %s" % field_ref)
            values_list.append({'fieldId': field.id, 'value': value})

        params = dict(opts)
        params['values'] = values_list
        return self.send_input(params)

    def input_with_token(self, token, values, **opts):
        """Suggest values for a row on behalf of a shadow account. This is a partner-only feature."""
        opts['token'] = token
        return self.input(values, **opts)

    def send_input(self, params):
        """Send input parameters to the table input endpoint, returning the 'response' payload."""
        params = dict(params)
        token = params.pop('token', None)
        query = "&".join(
            "%s=%s" % (urlquote(k), urlquote(to_json(v) if isinstance(v, (dict, list)) else v))
            for k, v in params.items() if v is not None
        )
        path = "/tables/%s/input.js?%s" % (urlquote(self.key), query)
        if token:
            path += "&token=" + urlquote(token)
        logger.debug("Sending input to table %s: %s" % (self.key, params))
        resp = self.binding.get(path)
        return resp["response"]
