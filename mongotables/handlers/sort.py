"""
### Ordering

DataTables sends the ordering as a list of `{column, dir}` objects,
where `column` is the *index* of a column in the `columns` list:

```javascript
order: [{column: 3, dir: 'desc'}, {column: 0, dir: 'asc'}]
```

These become a single multi-key `$sort` stage, in the same order.

Entries that can't be used are silently skipped:

* the index is out of range, or points to an excluded column
* the column is not `orderable`
* the column is a reference that has no `reference_order_column`

When the same field is mentioned twice, the first entry wins.

A reference column is sorted by the `reference_order_column` of the referenced document.
"""

from collections import OrderedDict
from typing import List, Optional, Tuple

from .base import TableHandlerBase, column_by_index
from ..input import Direction, Order
from ..stages import Stage


class MongoSort(TableHandlerBase):
    """ Compiles the ordering into a $sort stage

        Input: list of Order()s.
        Columns, and their resolved references, come with with_columns()
    """

    handler_name = 'sort'

    def __init__(self, schema, search_configuration):
        super(MongoSort, self).__init__(schema, search_configuration)

        # On input
        #: OrderedDict() of a sort spec: {field: +1|-1}
        self.sort_spec = OrderedDict()

        #: Order entries that were skipped: [(Order, reason)]
        self.skipped = []  # type: List[Tuple[Order, str]]

    def __copy__(self):
        result = super(MongoSort, self).__copy__()
        result.sort_spec = OrderedDict()
        result.skipped = []
        return result

    def input(self, order: List[Order]):
        super(MongoSort, self).input(list(order or ()))
        return self

    def _resolve(self, order: Order) -> Tuple[Optional[str], Optional[str]]:
        """ Resolve an Order into a field name

        :return: (field, None), or (None, reason)
        """
        column = column_by_index(self.columns, order.column)
        if column is None:
            return None, 'no such column, or it is excluded'
        if not column.column.orderable:
            return None, 'column `{}` is not orderable'.format(column.data)

        if not column.config.reference:
            return column.path, None

        name = self.references.get(column.data)
        if not column.config.reference_order_column or name is None:
            return None, 'reference column `{}` has no order column'.format(column.data)
        return '{}.{}'.format(name, column.config.reference_order_column), None

    def _input_process(self):
        self.sort_spec = OrderedDict()
        self.skipped = []
        for order in self.input_value:
            field, reason = self._resolve(order)
            if field is None:
                self.skipped.append((order, reason))
            elif field in self.sort_spec:
                self.skipped.append((order, 'field `{}` is already sorted by'.format(field)))
            else:
                self.sort_spec[field] = -1 if order.dir == Direction.desc else +1

    def compile_stages(self) -> List[Stage]:
        # Columns only become known after input(), so the input is processed here
        self._input_process()

        if not self.sort_spec:
            return []
        return [Stage.sort(self.sort_spec.items())]
