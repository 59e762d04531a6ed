"""
### Pagination

Pagination corresponds to the `start` and `length` fields of a table request:

* `start` would shift the "window" a number of rows: it's always there, even when it's `0`
* `length` would limit the number of rows returned. `-1` means "everything": no limit at all.
  `0` means "nothing": MongoDB won't take `$limit: 0`, so a `$match` that never matches is used instead.

Example:

```javascript
{ start: 20, length: 10 }  // we're on the third page
```
"""

from typing import List, Tuple

from .base import TableHandlerBase
from ..stages import Stage


#: Criteria that no document matches
MATCH_NOTHING = {'$expr': False}


class MongoLimit(TableHandlerBase):
    """ Skips and limits

        Input: (start, length)
    """

    handler_name = 'limit'

    def __init__(self, schema, search_configuration):
        super(MongoLimit, self).__init__(schema, search_configuration)

        # On input
        self.skip = 0
        self.limit = None

    def input(self, start_length: Tuple[int, int]):
        super(MongoLimit, self).input(start_length)
        start, length = start_length

        self.skip = max(start or 0, 0)
        # Negative: no limit. Zero: see `loads_nothing`
        self.limit = length if length and length > 0 else None
        return self

    @property
    def loads_nothing(self) -> bool:
        """ Does this page contain no rows at all? """
        return self.input_value is not None and self.input_value[1] == 0

    def compile_stages(self) -> List[Stage]:
        stages = [Stage.skip(self.skip)]
        if self.loads_nothing:
            stages.append(Stage.match(MATCH_NOTHING))
        elif self.limit is not None:
            stages.append(Stage.limit(self.limit))
        return stages
