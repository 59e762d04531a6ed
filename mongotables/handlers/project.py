"""
### Exclusion Projection

Some fields must never leave the database: password hashes, internal tokens, and so on.
Those are listed in `SearchConfiguration.excluded_columns`, and are cut off with a `$project` stage.

MongoDB does not let a projection mix inclusions with computed fields and exclusions,
so the stage is always an *inclusion* projection: it lists every field that survives.
These are:

* every field of the entity, except the excluded ones
* the top-level field of every column of the table

When the document identifier itself is excluded, it gets an explicit `_id: 0`.

The same list of fields is carried through every `$project` stage
that resolves references (see [Reference Columns](#reference-columns)),
which is why there's no separate exclusion stage when references are resolved.
"""

from collections import OrderedDict
from typing import Iterable, List

from .base import TableHandlerBase, PreparedColumn
from ..schema import ID_FIELD, EntitySchema
from ..stages import Stage


def carried_projection(schema: EntitySchema,
                       excluded: Iterable[str],
                       columns: Iterable[PreparedColumn],
                       extra_fields: Iterable[str] = ()) -> OrderedDict:
    """ Build an inclusion projection that carries all visible fields through a stage

    :param schema: The entity schema
    :param excluded: Excluded field names
    :param columns: Prepared columns: their top-level fields are always carried
    :param extra_fields: Additional fields to carry: e.g. references resolved so far
    :return: {field: 1}, and maybe `_id: 0`
    """
    excluded = list(excluded)
    excludes_id = schema.excludes_id(excluded)

    projection = OrderedDict()
    for name in schema.enumerate(excluded):
        projection[name] = 1
    for column in columns:
        if column.root == ID_FIELD:
            continue  # always there, unless excluded
        projection.setdefault(column.root, 1)
    for name in extra_fields:
        projection.setdefault(name, 1)

    if excludes_id:
        projection[ID_FIELD] = 0
    return projection


class MongoProject(TableHandlerBase):
    """ Cuts the excluded fields off the documents

        Input: the list of prepared columns
    """

    handler_name = 'project'

    @property
    def excluded(self) -> List[str]:
        return self.search_configuration.excluded_columns

    def input(self, columns: List[PreparedColumn]):
        super(MongoProject, self).input(columns)
        self.columns = list(columns or ())
        return self

    def is_input_empty(self) -> bool:
        # The projection depends on the configuration, not on the input
        return not self.excluded

    def projection(self, extra_fields: Iterable[str] = ()) -> OrderedDict:
        """ Get the projection that carries the visible fields """
        return carried_projection(self.schema, self.excluded, self.columns, extra_fields)

    def compile_stages(self) -> List[Stage]:
        if self.is_input_empty():
            return []
        return [Stage.project(self.projection())]
