from typing import Dict, List, Mapping, NamedTuple, Optional

from ..config import SearchConfiguration, ColumnSearchConfiguration
from ..input import Column
from ..schema import EntitySchema
from ..stages import Stage


class PreparedColumn(NamedTuple):
    """ A column of the table request, ready to be compiled

        Excluded columns never become PreparedColumn()s
    """

    #: The column, as submitted by the client
    column: Column

    #: Position of the column in the submitted list: this is how Order()s address it
    index: int

    #: Physical path of the column's data: e.g. `id` becomes `_id`
    path: str

    #: Search configuration of the column
    config: ColumnSearchConfiguration

    @property
    def data(self) -> str:
        return self.column.data

    @property
    def root(self) -> str:
        """ The top-level physical field of the column """
        return self.path.split('.', 1)[0]


class TableHandlerBase:
    """ An implementation of a handler for TableQuery

        Every subclass handles one part of the table request and compiles it into pipeline stages
    """

    #: Name of the part of the request that this handler is responsible for
    handler_name = None

    def __init__(self, schema: EntitySchema, search_configuration: SearchConfiguration):
        """ Initialize the handler

        This method does *not* receive any input data just yet:
        input() has to be called for every request.

        :param schema: The schema of the entity being queried
        :param search_configuration: Server-side configuration of columns
        """
        self.schema = schema
        self.search_configuration = search_configuration

        # Has the input() method been called already?
        self.input_received = False
        self.input_value = None

        #: TableQuery bound to this object. It may remain uninitialized.
        self.tablequery = None

        #: Prepared columns of the request
        self.columns = []  # type: List[PreparedColumn]

        #: Resolved reference columns: {column data: synthetic field name}
        self.references = {}  # type: Dict[str, str]

    def with_tablequery(self, tablequery):
        """ Bind this object with a TableQuery

            :type tablequery: mongotables.query.TableQuery
        """
        self.tablequery = tablequery
        return self

    def with_columns(self, columns: List[PreparedColumn], references: Mapping[str, str] = None):
        """ Give the handler the columns of the request, and the references resolved for them

        :param columns: Prepared columns, in the order they were submitted
        :param references: {column data: synthetic field name}, as produced by MongoReferenceResolver
        """
        self.columns = list(columns)
        self.references = dict(references or {})
        return self

    def __copy__(self):
        """ Handlers are reusable in their state before input() is called """
        cls = self.__class__
        result = cls.__new__(cls)
        result.__dict__.update(self.__dict__)
        return result

    def input(self, value):
        """ Receive a part of the table request

        :rtype: TableHandlerBase
        """
        self.input_value = value
        self.input_received = True

        # Make sure that input() can only be used once
        self.input = self.__raise_input_not_reusable
        return self

    def is_input_empty(self) -> bool:
        """ Test whether the input value was empty """
        return not self.input_value

    def __raise_input_not_reusable(self, *args, **kwargs):
        raise RuntimeError("You can't use the {}.input() method twice. "
                           "copy() the handler instead!"
                           .format(self.__class__.__name__))

    def compile_stages(self) -> List[Stage]:
        """ Compile the input into a list of pipeline stages """
        raise NotImplementedError()


def column_by_index(columns: List[PreparedColumn], index: int) -> Optional[PreparedColumn]:
    """ Find a prepared column by its position in the submitted column list """
    for column in columns:
        if column.index == index:
            return column
    return None
