import json
import logging
import sys
import traceback
from pprint import pp
from factual.core import __version__ as VERSION, BaseCLI, KeyValuePairArgs, FactualApi, ApiError, SchemaError, \
    ProjectionError, ArgumentError, Schema, format_exception, DEFAULT_SCHEME
from factual.core.utils import eprint


class FactualTableCLIException (Exception):
    """Base exception class for FactualTableCLI.
    """
    def __init__(self, message):
        """Initializes the exception.
        """
        super(FactualTableCLIException, self).__init__(message)


class UsageException (FactualTableCLIException):
    """Usage exception.
    """
    def __init__(self, message):
        """Initializes the exception.
        """
        super(UsageException, self).__init__(message)


def _parse_json_arg(name, value):
    try:
        return json.loads(value)
    except ValueError as e:
        raise UsageException("Invalid JSON for %s: %s (%s)" % (name, value, e))


def row_to_dict(row):
    return {
        "subject_key": row.subject_key,
        "subject": list(row.subject),
        "facts": {ref: fact.value for ref, fact in row.facts.items()},
    }


class FactualTableCLI (BaseCLI):
    """Factual Table Command-line Interface.
    """
    def __init__(self, description, epilog):
        """Initializes the CLI.
        """
        super(FactualTableCLI, self).__init__(description, epilog, VERSION)

        # initialized after argument parsing
        self.args = None
        self.api = None

        subparsers = self.parser.add_subparsers(title='sub-commands', dest='subcmd')

        # schema parser
        schema_parser = subparsers.add_parser('schema', help="Show the schema of a table.")
        schema_parser.add_argument("table", metavar="<table-key>", type=str, help="Table key")
        schema_parser.set_defaults(func=self.table_schema)

        # read parser
        read_parser = subparsers.add_parser('read', help="Read a page of table rows.")
        read_parser.add_argument("table", metavar="<table-key>", type=str, help="Table key")
        read_parser.add_argument("--filter", metavar="<json>",
                                 help="Filter expression as JSON, e.g. '{\"state\": \"CA\"}'")
        read_parser.add_argument("--sort", metavar="<json>", nargs="+",
                                 help="One or two sorts as JSON objects, e.g. '{\"city\": 1}'")
        read_parser.add_argument("--search", metavar="<term>", nargs="+", help="Full-text search terms.")
        read_parser.add_argument("--page", metavar="<n>", type=int, default=1, help="Page number, starting at 1.")
        read_parser.add_argument("--size", metavar="<n>", type=int, help="Page size.")
        read_parser.add_argument("--one", action="store_true", help="Only return the first matching row.")
        read_parser.set_defaults(func=self.table_read)

        # row parser
        row_parser = subparsers.add_parser('row', help="Read a single row by subject key.")
        row_parser.add_argument("table", metavar="<table-key>", type=str, help="Table key")
        row_parser.add_argument("subject_key", metavar="<subject-key>", type=str, help="Subject key")
        row_parser.set_defaults(func=self.table_row)

        # token parser
        token_parser = subparsers.add_parser('token', help="Get a shadow account token (partner-only).")
        token_parser.add_argument("unique_id", metavar="<unique-id>", type=str, help="Unique id of the account")
        token_parser.set_defaults(func=self.get_token)

        # input parser
        input_parser = subparsers.add_parser('input', help="Suggest values for a row.")
        input_parser.add_argument("table", metavar="<table-key>", type=str, help="Table key")
        input_parser.add_argument("values", metavar="field_ref=value", nargs='+', action=KeyValuePairArgs,
                                  help="Whitespace-delimited field_ref=value pairs.")
        input_parser.add_argument("--source", metavar="<source>", help="Source of the input, e.g. a URL.")
        input_parser.add_argument("--comments", metavar="<comments>", help="Comments on the input.")
        input_parser.add_argument("--token", metavar="<token>", help="Shadow account token (partner-only).")
        input_parser.set_defaults(func=self.table_input)

    def _post_parser_init(self, args):
        """Shared initialization for all sub-commands.
        """
        self.args = args
        if args.host:
            self.api = FactualApi(api_key=args.api_key,
                                  domain=args.host,
                                  debug=args.debug,
                                  scheme=args.protocol or DEFAULT_SCHEME,
                                  credential_file=args.credential_file)
        else:
            self.api = FactualApi.from_config(config_file=args.config_file,
                                              credential_file=args.credential_file,
                                              api_key=args.api_key,
                                              debug=args.debug)

    def table_schema(self, args):
        """Implements the schema sub-command.
        """
        table = self.api.get_table(args.table)
        schema = {attr: getattr(table, attr) for attr in Schema.attributes}
        schema["fields"] = [field.metadata for field in table.fields]
        pp(schema)

    def table_read(self, args):
        """Implements the read sub-command.
        """
        query = self.api.get_table(args.table).query()
        if args.filter:
            query.filter(_parse_json_arg("--filter", args.filter))
        if args.sort:
            query.sort(*[_parse_json_arg("--sort", s) for s in args.sort])
        if args.search:
            query.search(*args.search)
        query.page(args.page, size=args.size)
        if args.one:
            row = query.find_one()
            pp(row_to_dict(row) if row else None)
            return
        for row in query.each_row():
            pp(row_to_dict(row))
        logging.info("Total rows: %s" % query.total_rows)

    def table_row(self, args):
        """Implements the row sub-command.
        """
        row = self.api.get_table(args.table).get_row(args.subject_key)
        if row is None:
            raise UsageException("No row with subject key %s" % args.subject_key)
        pp(row_to_dict(row))

    def get_token(self, args):
        """Implements the token sub-command.
        """
        print(self.api.get_token(args.unique_id))

    def table_input(self, args):
        """Implements the input sub-command.
        """
        table = self.api.get_table(args.table)
        opts = {k: v for k, v in (("source", args.source), ("comments", args.comments)) if v is not None}
        if args.token:
            resp = table.input_with_token(args.token, args.values, **opts)
        else:
            resp = table.input(args.values, **opts)
        pp(resp.unwrap() if hasattr(resp, "unwrap") else resp)

    def main(self, argv=None):
        """Main routine of the CLI.
        """
        args = self.parse_cli(argv)

        try:
            if not hasattr(args, 'func'):
                self.parser.print_usage()
                return 1

            self._post_parser_init(args)
            args.func(args)
            return 0
        except UsageException as e:
            eprint("{prog} {subcmd}: {msg}".format(prog=self.parser.prog, subcmd=args.subcmd, msg=e))
        except ArgumentError as e:
            eprint("{prog} {subcmd}: {msg}".format(prog=self.parser.prog, subcmd=args.subcmd, msg=e))
        except ApiError as e:
            logging.debug(format_exception(e.reason) if e.reason else format_exception(e))
            eprint("{prog} {subcmd}: API error: {msg}".format(prog=self.parser.prog, subcmd=args.subcmd, msg=e))
        except (SchemaError, ProjectionError) as e:
            eprint("{prog} {subcmd}: {msg}".format(prog=self.parser.prog, subcmd=args.subcmd, msg=e))
        except Exception:
            eprint('Unexpected error occurred')
            traceback.print_exc()
        finally:
            if self.api is not None:
                self.api.close()
        return 1


def main():
    DESC = "Factual Table Command-Line Interface"
    INFO = "For more information see: http://www.factual.com/devtools"
    return FactualTableCLI(DESC, INFO).main()


if __name__ == '__main__':
    sys.exit(main())
