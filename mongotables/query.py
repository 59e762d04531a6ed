import logging
from copy import copy
from typing import List, Mapping, Optional, Union

from . import handlers
from .config import SearchConfiguration
from .handlers.base import PreparedColumn
from .input import TableRequest
from .schema import EntitySchema
from .stages import Stage, render_pipeline

logger = logging.getLogger(__name__)


class TableQuery(object):
    """ Compiles table requests into MongoDB aggregation pipelines

        The object holds no per-request state: it can be reused, and shared between threads.
    """

    def __init__(self, schema_or_model: Union[EntitySchema, type],
                 search_configuration: SearchConfiguration = None,
                 count_field: str = 'filtered_count',
                 reference_separator: str = '_'):
        """ Init a table query

        :param schema_or_model: EntitySchema, or a pydantic model to generate one from
        :param search_configuration: Server-side configuration of columns. `None` means no configuration at all.
        :param count_field: Name of the field that the $count stage puts its result into
        :param reference_separator: The character that names of resolved references are made up with
        """
        if isinstance(schema_or_model, EntitySchema):
            self.schema = schema_or_model
        else:
            self.schema = EntitySchema.for_model(schema_or_model)

        self.search_configuration = search_configuration or SearchConfiguration()
        self.count_field = count_field
        self.reference_separator = reference_separator

        # Handlers: prototypes, copied for every request
        self._init_handlers()

    def __repr__(self):
        return 'TableQuery({})'.format(self.schema.name)

    # region Handlers

    # This section initializes every handler.
    # Doing it this way enables you to override the way they are initialized, and use a custom query class.

    _HANDLER_REFERENCE = handlers.MongoReferenceResolver
    _HANDLER_PROJECT = handlers.MongoProject
    _HANDLER_SEARCH = handlers.MongoSearch
    _HANDLER_SORT = handlers.MongoSort
    _HANDLER_LIMIT = handlers.MongoLimit
    _HANDLER_COUNT = handlers.MongoCount

    # for IDE completion
    handler_reference = None  # type: handlers.MongoReferenceResolver
    handler_project = None  # type: handlers.MongoProject
    handler_search = None  # type: handlers.MongoSearch
    handler_sort = None  # type: handlers.MongoSort
    handler_limit = None  # type: handlers.MongoLimit
    handler_count = None  # type: handlers.MongoCount

    def _init_handlers(self):
        args = (self.schema, self.search_configuration)
        self.handler_reference = self._HANDLER_REFERENCE(*args, separator=self.reference_separator)
        self.handler_project = self._HANDLER_PROJECT(*args)
        self.handler_search = self._HANDLER_SEARCH(*args)
        self.handler_sort = self._HANDLER_SORT(*args)
        self.handler_limit = self._HANDLER_LIMIT(*args)
        self.handler_count = self._HANDLER_COUNT(*args, count_field=self.count_field)

    def _handler(self, prototype):
        """ Get a fresh copy of a handler, bound to this query """
        return copy(prototype).with_tablequery(self)

    # endregion

    def prepare_columns(self, request: TableRequest) -> List[PreparedColumn]:
        """ Prepare the columns of a request for compilation

        Excluded columns are dropped, and the identifier field gets its physical name.
        Columns that dig into a reference (e.g. `product.label`) are dropped as well: the reference isn't a document.
        Columns keep their index, because that's how the ordering refers to them.
        """
        excluded = self.search_configuration.excluded_columns
        prepared = []
        for index, column in enumerate(request.columns):
            if self.schema.is_excluded(column.data, excluded) or self.schema.is_excluded(column.root, excluded):
                continue
            if column.data != column.root and self.search_configuration.get(column.root).reference:
                continue
            prepared.append(PreparedColumn(
                column=column,
                index=index,
                path=self.schema.store_name(column.data),
                config=self.search_configuration.get(column.data),
            ))
        return prepared

    def check_criteria(self, additional_criteria: Mapping = None, pre_filtering_criteria: Mapping = None):
        """ Make sure that external criteria do not use reference columns

        :raises UnsupportedReferenceUsageError: they do
        """
        resolver = self._handler(self.handler_reference)
        resolver.validate_criteria(pre_filtering_criteria, 'Pre-filtering criteria')
        resolver.validate_criteria(additional_criteria, 'Additional criteria')

    def compile(self, request: TableRequest,
                additional_criteria: Mapping = None,
                pre_filtering_criteria: Mapping = None) -> 'CompiledTableQuery':
        """ Compile a table request into pipelines

        :param request: The table request
        :param additional_criteria: MongoDB criteria applied on top of the request; affect `recordsFiltered`
        :param pre_filtering_criteria: MongoDB criteria that limit the rows at all times; affect `recordsTotal`
        :raises UnsupportedReferenceUsageError: the criteria use a reference column
        """
        self.check_criteria(additional_criteria, pre_filtering_criteria)

        columns = self.prepare_columns(request)
        prefix = []  # type: List[Stage]

        # Criteria
        if pre_filtering_criteria:
            prefix.append(Stage.match(pre_filtering_criteria))
        if additional_criteria:
            prefix.append(Stage.match(additional_criteria))

        # References
        reference = self._handler(self.handler_reference).input(columns)
        reference_stages = reference.compile_stages()
        prefix.extend(reference_stages)
        references = reference.resolved

        # Exclusions: reference stages take care of them, if there are any
        if not reference_stages:
            prefix.extend(self._handler(self.handler_project).input(columns).compile_stages())

        # Search
        search = self._handler(self.handler_search).input(request.search).with_columns(columns, references)
        prefix.extend(search.compile_global_stages())
        prefix.extend(search.compile_column_stages())

        # Count
        count_stages = self._handler(self.handler_count).compile_stages()

        # Data
        sort = self._handler(self.handler_sort).input(request.order).with_columns(columns, references)
        limit = self._handler(self.handler_limit).input((request.start, request.length))
        data_stages = sort.compile_stages() + limit.compile_stages()

        for order, reason in sort.skipped:
            logger.debug('Ordering by column #%s skipped: %s', order.column, reason)

        compiled = CompiledTableQuery(
            prefix, count_stages, data_stages,
            columns=[column.data for column in columns],
            references=references,
            count_field=self.count_field,
            loads_nothing=limit.loads_nothing,
        )
        logger.debug('Compiled %r: count=%r data=%r', self, compiled.count_pipeline(), compiled.data_pipeline())
        return compiled


class CompiledTableQuery(object):
    """ A compiled table request: two pipelines with a common prefix """

    def __init__(self, stages: List[Stage], count_stages: List[Stage], data_stages: List[Stage],
                 columns: List[str] = (),
                 references: Mapping[str, str] = None,
                 count_field: str = 'filtered_count',
                 loads_nothing: bool = False):
        #: The common prefix: filtering stages
        self.stages = list(stages)
        #: Stages that count the filtered rows
        self.count_stages = list(count_stages)
        #: Stages that order and paginate the filtered rows
        self.data_stages = list(data_stages)

        #: Logical names of the columns that made it into the query
        self.columns = list(columns)
        #: Resolved references: {column data: synthetic field name}
        self.references = dict(references or {})
        #: The field that the count pipeline puts its result into
        self.count_field = count_field
        #: Does the data pipeline load nothing at all? (length=0)
        self.loads_nothing = loads_nothing

    def count_pipeline(self) -> List[dict]:
        """ Get the pipeline that counts the filtered rows """
        return render_pipeline(self.stages + self.count_stages)

    def data_pipeline(self) -> List[dict]:
        """ Get the pipeline that loads one page of rows """
        return render_pipeline(self.stages + self.data_stages)

    def get_count(self, result: Optional[Mapping]) -> int:
        """ Get the number of filtered rows from the result of the count pipeline """
        if not result:
            return 0
        return int(result.get(self.count_field, 0))

    def __eq__(self, other):
        return isinstance(other, CompiledTableQuery) and \
               self.count_pipeline() == other.count_pipeline() and \
               self.data_pipeline() == other.data_pipeline()

    def __repr__(self):
        return 'CompiledTableQuery(stages={!r}, count={!r}, data={!r})'.format(
            self.stages, self.count_stages, self.data_stages)
