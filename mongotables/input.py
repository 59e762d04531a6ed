"""
### Table Request

This is what a DataTables widget sends when it works in server-side processing mode:

```javascript
{
    draw: 2,  // sequence number: echoed back
    start: 20, length: 10,  // pagination. length=-1 loads everything
    search: {value: 'john', regex: false},  // global search
    columns: [
        {data: 'name', name: '', searchable: true, orderable: true, search: {value: '', regex: false}},
        {data: 'age', name: '', searchable: true, orderable: true, search: {value: '', regex: false}},
    ],
    order: [{column: 1, dir: 'desc'}],  // sort by `age` DESC
}
```

Note that `order` references columns by their *position* in the `columns` list, not by name.
"""

from enum import Enum
from typing import List, Optional, Dict

from pydantic import BaseModel, ConfigDict, Field


class Search(BaseModel):
    """ A search value: global, or per-column """
    model_config = ConfigDict(frozen=True)

    #: The text to search for
    value: str = ''

    #: Treat `value` as a regular expression?
    regex: bool = False

    def has_text(self) -> bool:
        """ Is there anything to search for? Whitespace doesn't count """
        return bool(self.value and self.value.strip())


class Column(BaseModel):
    """ A column of the table """
    model_config = ConfigDict(frozen=True)

    #: Column's data source: a field name, or a dotted path into a sub-document
    data: str = Field(min_length=1)

    #: Column's display name
    name: str = ''

    #: Can this column be searched?
    searchable: bool = True

    #: Can this column be ordered by?
    orderable: bool = True

    #: Search value for this specific column
    search: Search = Search()

    @property
    def root(self) -> str:
        """ The top-level field that this column's data lives in """
        return self.data.split('.', 1)[0]


class Direction(str, Enum):
    """ Sorting direction """
    asc = 'asc'
    desc = 'desc'


class Order(BaseModel):
    """ Ordering by a column """
    model_config = ConfigDict(frozen=True)

    #: Index of the column in TableRequest.columns
    column: int = Field(ge=0)

    #: Sorting direction
    dir: Direction = Direction.asc


class TableRequest(BaseModel):
    """ A DataTables server-side processing request """
    model_config = ConfigDict(frozen=True)

    #: Draw counter: DataTables uses it to put asynchronous responses in sequence
    draw: int = Field(1, ge=0)

    #: Paging first record indicator (0-based)
    start: int = Field(0, ge=0)

    #: Number of records to display. -1 means "all records"
    length: int = Field(10, ge=-1)

    #: Global search, applied to every searchable column
    search: Search = Search()

    #: Ordering: references columns by index
    order: List[Order] = []

    #: Columns of the table
    columns: List[Column] = []

    @property
    def column_map(self) -> Dict[str, Column]:
        """ Columns by their data path """
        return {column.data: column for column in self.columns}

    def get_column(self, data: str) -> Optional[Column]:
        """ Get a column by its data path """
        return self.column_map.get(data)
