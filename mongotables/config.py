"""
### Search Configuration

The server-side part of a table request: how every column should be searched, which columns are references
into other collections, and which fields must never leave the database.

This configuration is declared by the server, once, and is never round-tripped to the client:

```python
search_configuration = SearchConfiguration(default_timezone='Europe/Berlin')
search_configuration.set_search_type('id', SearchType.Integer)
search_configuration.set_search_type('isEnabled', SearchType.Boolean)
search_configuration.set_search_type('lastModified', SearchType.Date)
search_configuration.add_ref_configuration('product', 'product', ['label', 'isEnabled'], 'createdAt')
search_configuration.exclude('password')
```

Columns that have no configuration are searched as strings.
"""

from enum import Enum
from typing import NamedTuple, Optional, Tuple, Iterable, Mapping, Dict

from .exc import InvalidTableRequestError


#: The timezone used for date columns when nothing else is configured
UTC = 'UTC'

#: The format a date is rendered with before it is searched as text
DEFAULT_DATE_FORMAT = '%Y-%m-%dT%H:%M:%S.%L'


class SearchType(Enum):
    """ How the search value of a column is interpreted """
    String = 'String'
    Boolean = 'Boolean'
    Integer = 'Integer'
    Date = 'Date'

    @classmethod
    def coerce(cls, value):
        """ Get a SearchType from its name """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidTableRequestError('Unknown search type: {!r}'.format(value))


class ColumnSearchConfiguration(NamedTuple):
    """ Search configuration of a single column

        It is immutable: SearchConfiguration replaces it whenever something changes.
    """

    #: How to interpret the search value
    search_type: SearchType = SearchType.String

    #: Timezone to render dates with: an Olson identifier ("Europe/Berlin"), an UTC offset ("+04:45"), or "Z"/"UTC"/"GMT".
    #: `None` falls back to SearchConfiguration.default_timezone
    timezone: Optional[str] = None

    #: Format to render dates with
    date_format: str = DEFAULT_DATE_FORMAT

    #: Is this column a reference to a document in another collection?
    reference: bool = False

    #: The collection that references point to
    reference_collection: Optional[str] = None

    #: Fields of the referenced document that are searched
    reference_columns: Tuple[str, ...] = ()

    #: The field of the referenced document that the column is ordered by.
    #: `None` makes the column unorderable.
    reference_order_column: Optional[str] = None


#: Configuration used for columns that have none
ColumnSearchConfiguration.DEFAULT = ColumnSearchConfiguration()


class SearchConfiguration:
    """ Server-side configuration for table requests

        Every column is addressed by its `data` path, as sent by the client.
    """

    __slots__ = ('excluded_columns', 'column_search_configuration', 'default_timezone')

    def __init__(self,
                 excluded_columns: Iterable[str] = (),
                 column_search_configuration: Mapping[str, ColumnSearchConfiguration] = None,
                 default_timezone: str = UTC):
        """ Init the configuration

        :param excluded_columns: Fields that are never loaded, searched, nor sorted by
        :param column_search_configuration: {column-data: ColumnSearchConfiguration}
        :param default_timezone: Timezone for date columns that have none configured. `None` means UTC.
        """
        #: Excluded fields. A list, because the order of stages must not depend on set ordering
        self.excluded_columns = []
        #: Column configurations
        self.column_search_configuration = dict(column_search_configuration or {})  # type: Dict[str, ColumnSearchConfiguration]
        #: Timezone for Date columns
        self.default_timezone = default_timezone or UTC

        for name in excluded_columns:
            self.exclude(name)

    def get(self, data: str) -> ColumnSearchConfiguration:
        """ Get the configuration for a column, or the default one """
        return self.column_search_configuration.get(data, ColumnSearchConfiguration.DEFAULT)

    def __contains__(self, data):
        return data in self.column_search_configuration

    def exclude(self, *names: str) -> 'SearchConfiguration':
        """ Exclude fields from being loaded and searched """
        for name in names:
            if name not in self.excluded_columns:
                self.excluded_columns.append(name)
        return self

    def set_search_type(self, data: str, search_type, timezone: str = None, date_format: str = None) -> 'SearchConfiguration':
        """ Set how a column is searched

        :param data: Column data path
        :param search_type: SearchType, or its name
        :param timezone: Timezone for SearchType.Date columns
        :param date_format: Format for SearchType.Date columns
        """
        changes = dict(search_type=SearchType.coerce(search_type))
        if timezone is not None:
            changes['timezone'] = timezone
        if date_format is not None:
            changes['date_format'] = date_format

        self.column_search_configuration[data] = self.get(data)._replace(**changes)
        return self

    def add_ref_configuration(self, data: str,
                              reference_collection: str,
                              reference_columns: Iterable[str],
                              reference_order_column: str = None) -> 'SearchConfiguration':
        """ Declare a column as a reference into another collection

        :param data: Column data path
        :param reference_collection: The exact name of the collection references point to
        :param reference_columns: Fields of the referenced documents to search in
        :param reference_order_column: The field of the referenced documents to order by
        """
        if not reference_collection:
            raise InvalidTableRequestError('Reference column `{}` has no collection'.format(data))

        self.column_search_configuration[data] = self.get(data)._replace(
            reference=True,
            reference_collection=reference_collection,
            reference_columns=tuple(reference_columns or ()),
            reference_order_column=reference_order_column or None,
        )
        return self

    def reference_columns(self) -> Dict[str, ColumnSearchConfiguration]:
        """ Get the configuration of all reference columns """
        return {data: config
                for data, config in self.column_search_configuration.items()
                if config.reference}

    def timezone_for(self, config: ColumnSearchConfiguration) -> str:
        """ Get the effective timezone for a column """
        return config.timezone or self.default_timezone or UTC

    def copy(self) -> 'SearchConfiguration':
        """ Make an independent copy """
        return self.__class__(
            excluded_columns=self.excluded_columns,
            column_search_configuration=self.column_search_configuration,
            default_timezone=self.default_timezone,
        )

    def __repr__(self):
        return '{}(excluded_columns={!r}, columns={!r}, default_timezone={!r})'.format(
            self.__class__.__name__,
            self.excluded_columns,
            sorted(self.column_search_configuration),
            self.default_timezone)
