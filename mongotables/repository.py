"""
### Tables Repository

The repository runs compiled table requests against a MongoDB collection:

```python
from pymongo import MongoClient

orders = TablesRepository(MongoClient().shop.order, Order, search_configuration)

@app.route('/api/orders', methods=['POST'])
def list_orders():
    response = orders.find_all(request.get_json())
    return response.model_dump(by_alias=True)
```

It makes up to four round-trips:

1. `count_documents()` with the pre-filtering criteria: `recordsTotal`
2. The count pipeline: `recordsFiltered`
3. The data pipeline: `data`

and stops as soon as a count comes out as zero.

The repository never raises while serving a request: any error ends up in `TableResponse.error`,
and is logged. The counts computed before the error are kept, and `data` remains empty.
"""

import logging
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from pydantic import ValidationError
from pymongo.collection import Collection

from .config import SearchConfiguration
from .exc import ExecutionFailure, InvalidTableRequestError
from .input import TableRequest
from .output import TableResponse
from .query import TableQuery, CompiledTableQuery
from .schema import EntitySchema

logger = logging.getLogger(__name__)


class TablesRepository(object):
    """ Serves table requests from a MongoDB collection """

    #: The class that compiles table requests
    _TABLE_QUERY_CLS = TableQuery

    def __init__(self, collection: Collection,
                 schema_or_model: Union[EntitySchema, type],
                 search_configuration: SearchConfiguration = None,
                 **query_settings):
        """ Init the repository

        :param collection: The collection to load the documents from
        :param schema_or_model: EntitySchema, or a pydantic model to generate one from
        :param search_configuration: Default server-side configuration of columns
        :param query_settings: Settings for TableQuery: `count_field`, `reference_separator`
        """
        self.collection = collection
        self.query_settings = query_settings
        self.tablequery = self._TABLE_QUERY_CLS(schema_or_model, search_configuration, **query_settings)

    @property
    def schema(self) -> EntitySchema:
        return self.tablequery.schema

    @property
    def search_configuration(self) -> SearchConfiguration:
        return self.tablequery.search_configuration

    def _tablequery_for(self, search_configuration: Optional[SearchConfiguration]) -> TableQuery:
        """ Get a TableQuery for a configuration: the default one, or an override """
        if search_configuration is None:
            return self.tablequery
        return self._TABLE_QUERY_CLS(self.schema, search_configuration, **self.query_settings)

    def check_criteria(self, additional_criteria: Mapping = None,
                       pre_filtering_criteria: Mapping = None,
                       search_configuration: SearchConfiguration = None):
        """ Make sure that external criteria do not use reference columns

        :raises UnsupportedReferenceUsageError: they do
        """
        self._tablequery_for(search_configuration).check_criteria(additional_criteria, pre_filtering_criteria)

    @staticmethod
    def parse_request(request: Union[TableRequest, Mapping]) -> TableRequest:
        """ Get a TableRequest from its wire form

        :raises InvalidTableRequestError: the request is malformed
        """
        if isinstance(request, TableRequest):
            return request
        try:
            return TableRequest.model_validate(request)
        except ValidationError as e:
            raise InvalidTableRequestError(str(e)) from e

    def find_all(self, request: Union[TableRequest, Mapping],
                 additional_criteria: Mapping = None,
                 pre_filtering_criteria: Mapping = None,
                 converter: Callable[[Any], Any] = None,
                 search_configuration: SearchConfiguration = None) -> TableResponse:
        """ Serve a table request

        :param request: The table request: a TableRequest, or its wire form
        :param additional_criteria: MongoDB criteria that the rows must match. Affect `recordsFiltered`.
        :param pre_filtering_criteria: MongoDB criteria that limit the rows at all times. Affect `recordsTotal`.
        :param converter: A function to apply to every loaded entity
        :param search_configuration: A configuration to use instead of the default one
        :raises InvalidTableRequestError: the request is malformed
        """
        request = self.parse_request(request)
        response = TableResponse(draw=request.draw)

        # Nothing to display
        if request.length == 0:
            return response

        try:
            compiled = self._tablequery_for(search_configuration).compile(
                request,
                additional_criteria=additional_criteria,
                pre_filtering_criteria=pre_filtering_criteria)

            response.records_total = self._execute('Total count', self._count_total, pre_filtering_criteria)
            logger.debug('recordsTotal=%s', response.records_total)
            if not response.records_total:
                return response

            response.records_filtered = self._execute('Filtered count', self._count_filtered, compiled)
            logger.debug('recordsFiltered=%s', response.records_filtered)
            if not response.records_filtered:
                return response

            documents = self._execute('Data pipeline', self._load, compiled)
            response.data = self._execute('Decoding', self._decode, documents, converter)
        except Exception as e:
            logger.exception('Table request for %s failed', self.schema.name)
            response.error = '{}: {}'.format(type(e).__name__, e)
        return response

    def _execute(self, step: str, f: Callable, *args):
        """ Run a step, wrapping its errors into ExecutionFailure """
        try:
            return f(*args)
        except Exception as e:
            raise ExecutionFailure(e, step) from e

    def _count_total(self, pre_filtering_criteria: Optional[Mapping]) -> int:
        return self.collection.count_documents(dict(pre_filtering_criteria or {}))

    def _count_filtered(self, compiled: CompiledTableQuery) -> int:
        result = next(iter(self.collection.aggregate(compiled.count_pipeline())), None)
        return compiled.get_count(result)

    def _load(self, compiled: CompiledTableQuery) -> list:
        return list(self.collection.aggregate(compiled.data_pipeline()))

    def _decode(self, documents: Iterable[Mapping], converter: Optional[Callable]) -> list:
        entities = [self.schema.decode(document) for document in documents]
        if converter is not None:
            entities = [converter(entity) for entity in entities]
        return entities

    def __repr__(self):
        return 'TablesRepository({}, {!r})'.format(self.collection.name, self.schema.name)
