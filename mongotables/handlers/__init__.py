"""

A DataTables widget in server-side processing mode doesn't load all the rows at once.
Every time the user pages, sorts, or types into the search box, the widget sends a Table Request,
and the server has to respond with just one page of rows.

MongoTables compiles a Table Request into MongoDB aggregation pipelines.
Every part of the request is handled by its own handler:

* `columns` with a reference: [Reference Columns](#reference-columns) load the referenced documents
* excluded fields: [Exclusion Projection](#exclusion-projection) makes sure they never leave the database
* `search`, `columns[].search`: [Search](#search) filters the rows
* `order`: [Ordering](#ordering) sorts the rows
* `start`, `length`: [Pagination](#pagination) cuts one page out
* `recordsFiltered`: [Count](#count) counts the rows that match

The result is two pipelines that share a common prefix:

```javascript
count: [ ...pre-filter, criteria, references, projection, search..., {$count: 'filtered_count'} ]
data:  [ ...pre-filter, criteria, references, projection, search..., {$sort}, {$skip}, {$limit} ]
```
"""

from .base import TableHandlerBase, PreparedColumn
from .reference import MongoReferenceResolver
from .project import MongoProject
from .filter import MongoSearch
from .sort import MongoSort
from .limit import MongoLimit
from .count import MongoCount
