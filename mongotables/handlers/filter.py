"""
### Search

A table has two kinds of searches:

* The global search: DataTables' search box. It looks for the text in every searchable column,
  and a row matches when *any* column does.
* Per-column searches: every column can have a search value of its own, and a row has to match *all* of them.

How a search value is interpreted depends on the `SearchType` of the column:

* `String`: case-insensitive regular expression. Leading and trailing whitespace is ignored.

    NOTE: the value is *not escaped*: a user can send any regular expression they like.
    This is what DataTables users expect, but be aware that an expensive expression is expensive for your database.

* `Boolean`: `"true"` or `"false"`, case-insensitive and not trimmed. Any other value matches nothing, and is ignored.
* `Integer`: an integer number, compared exactly. Any other value is ignored.
* `Date`: the date is rendered as text with `$dateToString`, in the column's timezone, and searched as a string.
  For instance, `"2021-03"` finds every date in March 2021.
* References: the value is looked up in every `reference_columns` field of the referenced document.
  `"true"` and `"false"` are compared as booleans.

When the client sends `regex: true`, the value is used as is: not trimmed, and case-sensitive.
"""

import re
from typing import List, Optional

from .base import TableHandlerBase, PreparedColumn
from ..config import ColumnSearchConfiguration, SearchType
from ..input import Search
from ..stages import Stage


#: An integer, as the Integer search type accepts it
_INTEGER_RX = re.compile(r'^[+-]?\d+$')

#: Boolean values, as the Boolean search type accepts them
_BOOLEANS = {'true': True, 'false': False}


def parse_boolean(value: str) -> Optional[bool]:
    """ Parse "true" or "false", case-insensitive. Anything else gives `None` """
    return _BOOLEANS.get(value.lower())


def parse_integer(value: str) -> Optional[int]:
    """ Parse an integer. Anything else gives `None` """
    value = value.strip()
    if not _INTEGER_RX.match(value):
        return None
    return int(value)


def string_predicate(path: str, search: Search) -> dict:
    """ Search a field with a regular expression """
    if search.regex:
        return {path: {'$regex': search.value}}
    else:
        return {path: {'$regex': search.value.strip(), '$options': 'i'}}


def date_predicate(path: str, search: Search, date_format: str, timezone: str) -> dict:
    """ Search a date field, rendered as text, with a regular expression """
    match = {
        'input': {'$dateToString': {'date': '$' + path, 'format': date_format, 'timezone': timezone}},
    }
    if search.regex:
        match['regex'] = search.value
    else:
        match['regex'] = search.value.strip()
        match['options'] = 'i'
    return {'$expr': {'$regexMatch': match}}


class MongoSearch(TableHandlerBase):
    """ Builds search predicates

        Input: the global search value.
        Columns, and their resolved references, come with with_columns()
    """

    handler_name = 'search'

    def input(self, search: Optional[Search]):
        return super(MongoSearch, self).input(search or Search())

    def is_input_empty(self) -> bool:
        return not self.input_value.has_text()

    def predicates(self, column: PreparedColumn, search: Search) -> List[dict]:
        """ Build predicates for a column

        :param column: The column to search in
        :param search: The search value
        :return: A list of predicates. More than one has to be OR-ed.
        """
        config = column.config  # type: ColumnSearchConfiguration

        if config.reference:
            return self._reference_predicates(column, search)

        if config.search_type is SearchType.Boolean:
            value = parse_boolean(search.value)
            return [] if value is None else [{column.path: value}]
        elif config.search_type is SearchType.Integer:
            value = parse_integer(search.value)
            return [] if value is None else [{column.path: value}]
        elif config.search_type is SearchType.Date:
            return [date_predicate(column.path, search,
                                   config.date_format,
                                   self.search_configuration.timezone_for(config))]
        else:
            return [string_predicate(column.path, search)]

    def _reference_predicates(self, column: PreparedColumn, search: Search) -> List[dict]:
        name = self.references.get(column.data)
        if name is None:
            return []  # not resolved: nothing to search in

        paths = ['{}.{}'.format(name, field) for field in column.config.reference_columns]

        value = parse_boolean(search.value)
        if value is not None:
            return [{path: value} for path in paths]
        return [string_predicate(path, search) for path in paths]

    @staticmethod
    def _match(predicates: List[dict]) -> Stage:
        if len(predicates) == 1:
            return Stage.match(predicates[0])
        return Stage.match({'$or': predicates})

    def compile_global_stages(self) -> List[Stage]:
        """ Compile the global search: one $match that ORs every searchable column """
        if self.is_input_empty():
            return []

        predicates = []
        for column in self.columns:
            if column.column.searchable:
                predicates.extend(self.predicates(column, self.input_value))

        if not predicates:
            return []
        return [self._match(predicates)]

    def compile_column_stages(self) -> List[Stage]:
        """ Compile per-column searches: one $match per column """
        stages = []
        for column in self.columns:
            search = column.column.search
            if not column.column.searchable or not search.has_text():
                continue

            predicates = self.predicates(column, search)
            if predicates:
                stages.append(self._match(predicates))
        return stages

    def compile_stages(self) -> List[Stage]:
        return self.compile_global_stages() + self.compile_column_stages()
