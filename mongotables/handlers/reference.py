"""
### Reference Columns

A reference column holds a pointer to a document in another collection, stored the DBRef way:

```javascript
{ _id: 1, label: 'order1', product: { $ref: 'product', $id: 1 } }
```

Searching or sorting by such a column means searching or sorting by the fields of the *referenced* document.
For this to work, the referenced document is loaded into every row with a `$lookup`.

`$lookup` can't join on `product.$id`: MongoDB won't let anyone use `$`-prefixed field names in a path.
So, the `$id` is dug out with a series of projections:

1. `product_ref_pairs`: `$objectToArray` turns the reference into `[{k: '$ref', v: ...}, {k: '$id', v: ...}]`.
   If the column holds an array of references, the first one is used.
2. `product_ref_entry`: the entry #1 of that array: `{k: '$id', v: 1}`
3. `product_ref_key`: its value: `1`
4. `$lookup` from the `product` collection, where `_id == product_ref_key`, as `product_`.

All the fields that the row has are carried through these projections.

The name `product_` is made up so that it does not collide with any existing field:
underscores are appended until no field of the entity, column, or another made-up field begins with it.
Searches and sorts then target `product_.label`, `product_.createdAt`, and so on.

Note that `$lookup` produces an array: `product_: [{...}]`.
Querying an array with a dotted path just works in MongoDB, and sorting uses its first (and only) element.

#### Criteria

The additional criteria and the pre-filtering criteria are applied *before* any reference is resolved,
and those fields just aren't there at that point.
Criteria that mention a reference column are therefore rejected with `UnsupportedReferenceUsageError`.
"""

from collections import OrderedDict
from typing import Dict, Iterable, List, Mapping, Optional, Set

from .base import TableHandlerBase, PreparedColumn
from .project import carried_projection
from ..exc import UnsupportedReferenceUsageError
from ..schema import ID_FIELD
from ..stages import Stage


#: Boolean logic operators, whose arguments are lists of criteria
_LOGIC_LIST_OPERATORS = frozenset(('$and', '$or', '$nor'))


class MongoReferenceResolver(TableHandlerBase):
    """ Resolves reference columns with a series of $project stages and a $lookup

        Input: the list of prepared columns
        Output: stages, and the `resolved` mapping {column data: synthetic field name}
    """

    handler_name = 'reference'

    def __init__(self, schema, search_configuration, separator='_'):
        """ Init the resolver

        :param separator: The character to append to synthetic field names until they're unique
        """
        super(MongoReferenceResolver, self).__init__(schema, search_configuration)
        assert separator, 'The separator must be a non-empty string'
        self.separator = separator

        # On input
        #: {column data: synthetic field name}, in the order of resolution
        self.resolved = OrderedDict()  # type: Dict[str, str]

    def __copy__(self):
        result = super(MongoReferenceResolver, self).__copy__()
        result.resolved = OrderedDict()
        return result

    def input(self, columns: List[PreparedColumn]):
        super(MongoReferenceResolver, self).input(columns)
        self.columns = list(columns or ())

        known_names = self._known_names()
        for column in self.columns:
            if self._needs_resolution(column):
                name = self._synthetic_name(column.path, known_names)
                self.resolved[column.data] = name
                known_names.add(name)
        return self

    def is_input_empty(self) -> bool:
        return not self.resolved

    @staticmethod
    def _needs_resolution(column: PreparedColumn) -> bool:
        return column.config.reference and (column.column.searchable or column.column.orderable)

    def _known_names(self) -> Set[str]:
        """ Names that a synthetic field must not collide with """
        names = set()
        for field in self.schema:
            names.add(field.name)
            names.add(field.store_name)
        for column in self.columns:
            names.add(column.root)
            names.add(column.column.root)
        return names

    def _synthetic_name(self, path: str, known_names: Iterable[str]) -> str:
        """ Make up a field name for a reference that doesn't clash with any known name

        Dots are replaced, because the lookup result has to be a top-level field.
        """
        name = path.replace('.', self.separator) + self.separator
        while any(known.startswith(name) for known in known_names):
            name += self.separator
        return name

    def compile_stages(self) -> List[Stage]:
        stages = []
        excluded = self.search_configuration.excluded_columns
        resolved_so_far = []
        for column in self.columns:
            name = self.resolved.get(column.data)
            if name is None:
                continue

            pairs, entry, key = self.intermediate_names(name)
            path = '$' + column.path

            # A reference, or an array of references: the first one then
            first_reference = {'$cond': [{'$isArray': path}, {'$arrayElemAt': [path, 0]}, path]}

            def project(field, expression):
                projection = carried_projection(self.schema, excluded, self.columns, resolved_so_far)
                projection[field] = expression
                return Stage.project(projection)

            stages.extend([
                project(pairs, {'$objectToArray': first_reference}),
                project(entry, {'$arrayElemAt': ['$' + pairs, 1]}),
                project(key, '$' + entry + '.v'),
                Stage.lookup(column.config.reference_collection, key, ID_FIELD, name),
            ])
            resolved_so_far.append(name)
        return stages

    @staticmethod
    def intermediate_names(name: str):
        """ Get the names of fields that the reference key is dug out with

        :return: (pairs, entry, key)
        """
        return name + '_ref_pairs', name + '_ref_entry', name + '_ref_key'

    def synthetic_name_for(self, data: str) -> Optional[str]:
        """ Get the synthetic field that a reference column was resolved into """
        return self.resolved.get(data)

    # region Criteria validation

    def reference_field_names(self) -> Set[str]:
        """ Get the names that criteria must not use: both logical and physical, of every reference column """
        excluded = self.search_configuration.excluded_columns
        names = set()
        for data in self.search_configuration.reference_columns():
            if self.schema.is_excluded(data, excluded):
                continue
            names.add(data)
            names.add(self.schema.store_name(data))
        return names

    def validate_criteria(self, criteria: Optional[Mapping], where: str):
        """ Make sure that criteria do not use any reference columns

        :param criteria: MongoDB criteria
        :param where: The name of the criteria, for the error message
        :raises UnsupportedReferenceUsageError: a reference column is used
        """
        if not criteria:
            return
        names = self.reference_field_names()
        touched = set(_fields_touched(criteria, names))
        if touched:
            raise UnsupportedReferenceUsageError(touched, where)

    # endregion


def _is_on_field(path: str, names: Iterable[str]) -> Optional[str]:
    """ Find the name that a path is on: the name itself, or something within it """
    for name in names:
        if path == name or path.startswith(name + '.'):
            return name
    return None


def _fields_touched(criteria, names):
    """ Generate the names that MongoDB criteria use

    Recurses into boolean logic operators and expressions
    """
    if isinstance(criteria, Mapping):
        for key, value in criteria.items():
            if key in _LOGIC_LIST_OPERATORS:
                for sub_criteria in value:
                    yield from _fields_touched(sub_criteria, names)
            elif key == '$not':
                yield from _fields_touched(value, names)
            elif key == '$expr':
                yield from _fields_in_expression(value, names)
            elif key.startswith('$'):
                continue  # some other operator: e.g. $text, $comment
            else:
                name = _is_on_field(key, names)
                if name is not None:
                    yield name
    elif isinstance(criteria, (list, tuple)):
        for sub_criteria in criteria:
            yield from _fields_touched(sub_criteria, names)


def _fields_in_expression(expression, names):
    """ Generate the names that an aggregation expression refers to as '$field' """
    if isinstance(expression, str):
        if expression.startswith('$') and not expression.startswith('$$'):
            name = _is_on_field(expression[1:], names)
            if name is not None:
                yield name
    elif isinstance(expression, Mapping):
        for value in expression.values():
            yield from _fields_in_expression(value, names)
    elif isinstance(expression, (list, tuple)):
        for value in expression:
            yield from _fields_in_expression(value, names)
