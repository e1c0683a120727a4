import logging
import requests
from . import get_new_requests_session, format_exception, DEFAULT_HEADERS, DEFAULT_SESSION_CONFIG, \
    DEFAULT_API_VERSION, DEFAULT_SCHEME
from .response import ResponseView

logger = logging.getLogger(__name__)


class ApiError (Exception):
    """The remote service reported an error, or the call itself failed."""
    def __init__(self, message, reason=None):
        super(ApiError, self).__init__(message, reason)
        self.message = message
        self.reason = reason

    def __str__(self):
        return str(self.message)


class FactualBinding (object):
    """HTTP binding to the Factual API. Not useful for clients on its own."""

    def __init__(self, domain, api_key, version=DEFAULT_API_VERSION, scheme=DEFAULT_SCHEME, debug=False,
                 session_config=None):
        """Create HTTP(S) API binding.

           Arguments:
             domain: server FQDN string
             api_key: the API key, embedded in every request path
             version: API version number
             scheme: 'http' or 'https'
             debug: log every fully-qualified request URL at INFO level
             session_config: requests session options, see DEFAULT_SESSION_CONFIG

        """
        self.domain = domain
        self.version = version
        self.scheme = scheme
        self.debug = debug
        self._server_uri = "%s://%s" % (scheme, domain)
        self._base = "/api/v%s/%s" % (version, api_key)

        self.session_config = DEFAULT_SESSION_CONFIG if not session_config else session_config
        self._session = None
        self._get_new_session(self.session_config)

    def get_server_uri(self):
        return self._server_uri

    def _get_new_session(self, session_config=None):
        self._close_session()
        self._session = get_new_requests_session(self._server_uri + '/',
                                                 session_config if session_config else self.session_config)

    def api_path(self, path):
        """Prefix a resource path with the versioned, keyed API base path."""
        if not path or not path.startswith("/"):
            raise ValueError("Malformed resource path (not rooted with \"/\"): %s" % path)
        return self._base + path

    def get(self, path, headers=DEFAULT_HEADERS):
        """Perform GET request on a resource path, returning a ResponseView of the JSON envelope.

           Arguments:
             path: the resource path, e.g. '/tables/<key>/schema.json'
             headers: headers to set in request

           Raises ApiError if the request fails, the body is not JSON,
           or the envelope carries status "error".

        """
        api_path = self.api_path(path)
        url = self._server_uri + api_path
        if self.debug:
            logger.info("[Factual API Call] %s" % url)
        else:
            logger.debug("[Factual API Call] %s" % url)

        try:
            r = self._session.get(url, headers=headers)
        except requests.RequestException as e:
            raise ApiError("%s when getting %s" % (format_exception(e), api_path), e)

        try:
            obj = r.json()
        except ValueError as e:
            raise ApiError("Unparseable response (HTTP %s) when getting %s" % (r.status_code, api_path), e)

        return self.check_status(ResponseView(obj))

    @staticmethod
    def check_status(resp):
        """Raise ApiError carrying the server message if the envelope reports an error."""
        if resp["status"] == "error":
            message = resp["error"]
            logger.debug("API error response: %s" % message)
            raise ApiError(message)
        return resp

    def close(self):
        self._close_session()

    def _close_session(self):
        if self._session is not None:
            self._session.close()
            self._session = None

    def __del__(self):
        self._close_session()
