import io
import os
import errno
import json
import logging
import requests
import portalocker
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from collections import OrderedDict
from urllib.parse import quote as _urlquote

logger = logging.getLogger(__name__)

DEFAULT_DOMAIN = 'www.factual.com'
DEFAULT_SCHEME = 'http'
DEFAULT_API_VERSION = 2
DEFAULT_HEADERS = {}
DEFAULT_CONFIG_PATH = os.path.join(os.path.expanduser('~'), '.factual')
DEFAULT_CREDENTIAL_FILE = os.path.join(DEFAULT_CONFIG_PATH, 'credential.json')
DEFAULT_CONFIG_FILE = os.path.join(DEFAULT_CONFIG_PATH, 'config.json')
DEFAULT_REQUESTS_TIMEOUT = (30, 60)  # (connect, read) seconds
DEFAULT_SESSION_CONFIG = {
    "timeout": DEFAULT_REQUESTS_TIMEOUT,
    "retry_connect": 2,
    "retry_read": 4,
    "retry_backoff_factor": 1.0,
    "retry_status_forcelist": [500, 502, 503, 504],
    "allow_retry_on_all_methods": False
}
DEFAULT_CONFIG = {
    "server": {
        "scheme": DEFAULT_SCHEME,
        "domain": DEFAULT_DOMAIN,
        "version": DEFAULT_API_VERSION
    },
    "session": DEFAULT_SESSION_CONFIG
}
DEFAULT_CREDENTIAL = {}
DEFAULT_LOGGER_OVERRIDES = {
    "urllib3": logging.WARNING,
    "requests": logging.WARNING,
}


def urlquote(s, safe=''):
    """Percent-encode a path segment or query value of a Factual API URL.

    Non-string values are stringified first. Nothing is considered safe by default,
    so '/', '&' and '=' inside table keys, tokens or JSON parameters are always encoded.
    """
    return _urlquote(str(s).encode('utf-8'), safe=safe)


def to_json(obj):
    """Serialize to compact JSON text, as embedded in query parameters."""
    return json.dumps(obj, indent=None, separators=(',', ':'))


def format_exception(e):
    """Render an exception for a log line, including the server's reply to a failed HTTP request."""
    if not isinstance(e, Exception):
        return str(e)
    text = "[%s] %s" % (type(e).__name__, e)
    if isinstance(e, requests.HTTPError) and e.response is not None and e.response.text:
        text += " - Server responded: %s" % e.response.text.strip().replace('\n', ': ')
    return text


def init_logging(level=logging.INFO,
                 log_format=None,
                 file_path=None,
                 file_mode='w',
                 capture_warnings=True,
                 logger_config=DEFAULT_LOGGER_OVERRIDES):
    """Configure root logging for the command-line tools.

    The HTTP libraries listed in `logger_config` keep their own levels, so that
    `--debug` shows the API call URLs without urllib3 connection chatter.
    """
    logging.captureWarnings(capture_warnings)
    if log_format is None:
        if level <= logging.DEBUG:
            log_format = "[%(asctime)s - %(levelname)s - %(name)s:%(lineno)s:%(funcName)s()] %(message)s"
        else:
            log_format = "%(asctime)s - %(levelname)s - %(message)s"
    for name, logger_level in logger_config.items():
        logging.getLogger(name).setLevel(logger_level)
    if file_path:
        logging.basicConfig(filename=file_path, filemode=file_mode, level=level, format=log_format)
    else:
        logging.basicConfig(level=level, format=log_format)


class TimeoutHTTPAdapter(HTTPAdapter):
    """HTTPAdapter applying a default (connect, read) timeout to requests that set none."""

    def __init__(self, *args, timeout=DEFAULT_REQUESTS_TIMEOUT, **kwargs):
        # JSON config files hold the timeout as a list
        self.timeout = tuple(timeout) if isinstance(timeout, list) else timeout
        super().__init__(*args, **kwargs)

    def send(self, request, **kwargs):
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = self.timeout
        return super().send(request, **kwargs)


def get_new_requests_session(url=None, session_config=DEFAULT_SESSION_CONFIG):
    """Create a requests session that retries failed connections and reads of the Factual API.

    :param url: URL prefix to mount the retrying adapter on; all http(s) URLs when omitted
    :param session_config: timeout and retry options, see DEFAULT_SESSION_CONFIG
    """
    if session_config.get("allow_retry_on_all_methods", False):
        allowed_methods = False  # urllib3 reads False as "any method"
    else:
        allowed_methods = Retry.DEFAULT_ALLOWED_METHODS
    retries = Retry(connect=session_config['retry_connect'],
                    read=session_config['retry_read'],
                    backoff_factor=session_config['retry_backoff_factor'],
                    status_forcelist=session_config['retry_status_forcelist'],
                    allowed_methods=allowed_methods,
                    raise_on_status=True)
    adapter = TimeoutHTTPAdapter(timeout=session_config.get("timeout", DEFAULT_REQUESTS_TIMEOUT),
                                 max_retries=retries)

    session = requests.session()
    for prefix in ([url] if url else ['http://', 'https://']):
        session.mount(prefix, adapter)
    return session


def make_dirs(path, mode=0o777):
    if not path or os.path.isdir(path):
        return
    try:
        os.makedirs(path, mode=mode)
    except OSError as error:
        if error.errno != errno.EEXIST:
            raise


def write_config(config_file=DEFAULT_CONFIG_FILE, config=DEFAULT_CONFIG):
    """Write the client configuration (server and session sections) as JSON."""
    make_dirs(os.path.dirname(config_file), mode=0o750)
    with io.open(config_file, 'w', newline='\n', encoding='utf-8') as cf:
        cf.write(json.dumps(config, ensure_ascii=False, indent=2))


def read_config(config_file=DEFAULT_CONFIG_FILE, create_default=False, default=DEFAULT_CONFIG):
    """Read the client configuration, by default from ~/.factual/config.json.

    With `create_default`, a missing file is first written with `default`; if that
    fails the defaults are returned without touching the filesystem.
    """
    config_file = config_file or DEFAULT_CONFIG_FILE
    if create_default and not os.path.isfile(config_file):
        logger.info("No configuration file found, creating one at: %s" % config_file)
        try:
            write_config(config_file, default)
        except Exception as e:
            logger.warning("Unable to create configuration file %s, using built-in defaults. %s" %
                           (config_file, format_exception(e)))
            return json.loads(json.dumps(default), object_pairs_hook=OrderedDict)

    with io.open(config_file, encoding='utf-8') as cf:
        return json.load(cf, object_pairs_hook=OrderedDict)


def lock_file(file_path, mode, exclusive=True, timeout=60):
    flags = portalocker.LOCK_EX if exclusive else portalocker.LOCK_SH
    return portalocker.Lock(file_path, mode=mode, timeout=timeout, fail_when_locked=True,
                            flags=flags | portalocker.LOCK_NB)


def write_credential(credential_file=DEFAULT_CREDENTIAL_FILE, credential=DEFAULT_CREDENTIAL):
    """Write API keys by domain, e.g. {"www.factual.com": {"api_key": ...}}, readable by the owner only."""
    make_dirs(os.path.dirname(credential_file), mode=0o750)
    with lock_file(credential_file, mode='w', exclusive=True) as cf:
        os.chmod(credential_file, 0o600)
        cf.write(json.dumps(credential, ensure_ascii=False, indent=2))
        cf.flush()
        os.fsync(cf.fileno())


def read_credential(credential_file=DEFAULT_CREDENTIAL_FILE, create_default=False, default=DEFAULT_CREDENTIAL):
    """Read the API keys stored by domain, by default from ~/.factual/credential.json."""
    credential_file = credential_file or DEFAULT_CREDENTIAL_FILE
    if create_default and not os.path.isfile(credential_file):
        logger.info("No credential file found, creating one at: %s" % credential_file)
        try:
            write_credential(credential_file, default)
        except Exception as e:
            logger.warning("Unable to create credential file %s, using built-in defaults. %s" %
                           (credential_file, format_exception(e)))
            return json.loads(json.dumps(default), object_pairs_hook=OrderedDict)

    with lock_file(credential_file, mode='r', exclusive=False) as cf:
        return json.loads(cf.read(), object_pairs_hook=OrderedDict)


def get_credential(domain, credential_file=DEFAULT_CREDENTIAL_FILE):
    """Return the stored credential dict for a domain, or None if there is none.

    :param domain: The API domain to retrieve the credential for, e.g. 'www.factual.com'.
    :param credential_file: Optional path to a non-default credential file.
    :return: A dict of the form {"api_key": <key>}, or None
    """
    credentials = read_credential(credential_file or DEFAULT_CREDENTIAL_FILE, create_default=True)
    return credentials.get(domain) or credentials.get(domain.lower()) or None
