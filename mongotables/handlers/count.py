"""
### Count

`recordsFiltered` is the number of rows that match all the searches.
It is computed by the same pipeline that loads the data, but without ordering and pagination:
these stages are replaced with a single `$count`:

```javascript
[ ...filtering stages..., {$count: 'filtered_count'} ]
```

This produces one document, `{filtered_count: 42}`, or no document at all when nothing matches.
"""

from typing import List

from .base import TableHandlerBase
from ..stages import Stage


class MongoCount(TableHandlerBase):
    """ Counts the filtered rows """

    handler_name = 'count'

    def __init__(self, schema, search_configuration, count_field: str = 'filtered_count'):
        """ Init a count

        :param count_field: Name of the field that $count puts its result into
        """
        super(MongoCount, self).__init__(schema, search_configuration)
        assert count_field and not count_field.startswith('$') and '.' not in count_field, \
            'Invalid count field name: {!r}'.format(count_field)
        self.count_field = count_field

    def compile_stages(self) -> List[Stage]:
        return [Stage.count_as(self.count_field)]

