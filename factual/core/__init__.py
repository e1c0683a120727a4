__version__ = "0.3.0"

from factual.core.utils.core_utils import *
from factual.core.base_cli import BaseCLI, KeyValuePairArgs
from factual.core.response import ResponseView, ResponseError
from factual.core.factual_binding import FactualBinding, ApiError
from factual.core.factual_model import Schema, Field, SchemaError, camelize, load_schema
from factual.core.rows import Row, Fact, ProjectionError, project_row
from factual.core.query import QueryBuilder, encode_read_query
from factual.core.factual_api import FactualApi, Table, ArgumentError
