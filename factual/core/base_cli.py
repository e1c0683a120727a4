import argparse
import logging

from . import init_logging, __version__, DEFAULT_SCHEME
from .utils.version_utils import get_installed_version


class BaseCLI(object):
    """Common options of the Factual command-line tools.

    Subclasses add their sub-commands to `self.parser`. The API key and host given here
    take precedence over the credential and configuration files.
    """

    def __init__(self, description, epilog, version=__version__):

        self.version = get_installed_version(version)

        self.parser = argparse.ArgumentParser(description=description, epilog=epilog)

        self.parser.add_argument(
            '--version', action='version', version=self.version, help="Print version and exit.")

        verbosity = self.parser.add_mutually_exclusive_group()

        verbosity.add_argument(
            '--quiet', action="store_true", help="Suppress logging output.")

        verbosity.add_argument(
            '--debug', action="store_true", help="Log at DEBUG level, including the URL of every API call.")

        self.parser.add_argument(
            '--api-key', metavar='<api-key>',
            help="Factual API key. Defaults to the key stored for the host in the credential file.")

        self.parser.add_argument(
            '--credential-file', metavar='<file>', help="Path to a non-default credential file.")

        self.parser.add_argument(
            '--host', metavar='<host>', help="API host name, e.g. www.factual.com. Overrides the configuration file.")

        self.parser.add_argument(
            '-p', '--protocol', choices=['http', 'https'], default=None,
            help="Transport protocol used with --host (default: %s)." % DEFAULT_SCHEME)

        self.parser.add_argument(
            '--config-file', metavar='<config file>', help="Path to a non-default configuration file.")

    def parse_cli(self, argv=None):
        args = self.parser.parse_args(argv)
        init_logging(level=logging.CRITICAL if args.quiet else (logging.DEBUG if args.debug else logging.INFO))

        return args


class KeyValuePairArgs(argparse.Action):
    """Collects `name=value` arguments into a dict; a value may itself contain '='."""

    def __call__(self, parser, namespace, values, option_string=None):
        pairs = dict()
        for kv in values:
            name, sep, value = kv.partition("=")
            if not sep or not name:
                parser.error("invalid argument %r: expected <name>=<value>" % kv)
            pairs[name] = value
        setattr(namespace, self.dest, pairs)
