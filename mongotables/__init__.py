"""
MongoTables is a server-side processing backend for [DataTables](https://datatables.net/)
that loads its rows from a [MongoDB](https://www.mongodb.com/) collection.

A DataTables widget in server-side mode sends a Table Request every time the user pages, sorts, or searches:

```javascript
{
    draw: 3, start: 0, length: 10,
    search: {value: 'order2', regex: false},
    columns: [{data: 'label', searchable: true, orderable: true, search: {value: '', regex: false}}, ...],
    order: [{column: 0, dir: 'asc'}],
}
```

MongoTables compiles it into MongoDB aggregation pipelines, runs them, and responds with a page of rows:

```javascript
{ draw: 3, recordsTotal: 57, recordsFiltered: 1, data: [...], error: null }
```

Columns that point to documents in other collections (DBRefs) can be searched and sorted, too:
the referenced documents are loaded with a `$lookup`.
"""

# Exceptions that are used here and there
from .exc import *

# What the client sends, and what it gets back
from .input import TableRequest, Column, Search, Order, Direction
from .output import TableResponse

# What the server declares: searchable fields, their types, references, excluded fields
from .config import SearchConfiguration, ColumnSearchConfiguration, SearchType
from .schema import EntitySchema, EntityField

# The heart of MongoTables are the handlers:
# that's where table requests are converted to pipeline stages
from . import handlers
from .stages import Stage, StageKind, render_pipeline

# TableQuery compiles table requests into pipelines
from .query import TableQuery, CompiledTableQuery

# TablesRepository runs them
from .repository import TablesRepository
