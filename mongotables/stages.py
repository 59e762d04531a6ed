"""
### Pipeline Stages

Compiled table queries are lists of aggregation pipeline stages.
Only a fixed vocabulary of stages is used:

* `$match`: filtering
* `$project`: field inclusion, and computed fields for reference resolution
* `$lookup`: loading referenced documents
* `$sort`, `$skip`, `$limit`: ordering and pagination
* `$count`: counting the filtered documents

Every stage is a `Stage(kind, body)` tuple: a closed set of kinds, each with its own body.
Rendering into MongoDB syntax is done by a single table that covers every kind.
"""

from collections import OrderedDict
from enum import Enum
from typing import Any, List, Mapping, NamedTuple, Iterable


class StageKind(Enum):
    """ Kinds of aggregation pipeline stages """
    MATCH = '$match'
    PROJECT = '$project'
    LOOKUP = '$lookup'
    SORT = '$sort'
    SKIP = '$skip'
    LIMIT = '$limit'
    COUNT = '$count'


class Stage(NamedTuple):
    """ A stage of an aggregation pipeline

        Body, per kind:

        * MATCH: criteria dict
        * PROJECT: projection dict
        * LOOKUP: dict(from, localField, foreignField, as)
        * SORT: OrderedDict {field: +1|-1}
        * SKIP, LIMIT: int
        * COUNT: str, the name of the output field
    """
    kind: StageKind
    body: Any

    @classmethod
    def match(cls, criteria: Mapping) -> 'Stage':
        return cls(StageKind.MATCH, dict(criteria))

    @classmethod
    def project(cls, projection: Mapping) -> 'Stage':
        return cls(StageKind.PROJECT, dict(projection))

    @classmethod
    def lookup(cls, from_collection: str, local_field: str, foreign_field: str, as_field: str) -> 'Stage':
        return cls(StageKind.LOOKUP, {
            'from': from_collection,
            'localField': local_field,
            'foreignField': foreign_field,
            'as': as_field,
        })

    @classmethod
    def sort(cls, sort_spec: Iterable) -> 'Stage':
        return cls(StageKind.SORT, OrderedDict(sort_spec))

    @classmethod
    def skip(cls, n: int) -> 'Stage':
        return cls(StageKind.SKIP, int(n))

    @classmethod
    def limit(cls, n: int) -> 'Stage':
        return cls(StageKind.LIMIT, int(n))

    @classmethod
    def count_as(cls, field_name: str) -> 'Stage':
        return cls(StageKind.COUNT, field_name)

    def to_mongo(self) -> dict:
        """ Render the stage in MongoDB syntax """
        return {self.kind.value: _RENDERERS[self.kind](self.body)}

    def __repr__(self):
        return '{}({!r})'.format(self.kind.name, self.body)


def _copy_document(body):
    return dict(body)


def _copy_sort(body):
    # MongoDB respects key order for $sort
    return OrderedDict(body)


def _as_is(body):
    return body


#: Stage kind => renderer of its body. Must cover every StageKind.
_RENDERERS = {
    StageKind.MATCH: _copy_document,
    StageKind.PROJECT: _copy_document,
    StageKind.LOOKUP: _copy_document,
    StageKind.SORT: _copy_sort,
    StageKind.SKIP: _as_is,
    StageKind.LIMIT: _as_is,
    StageKind.COUNT: _as_is,
}
assert set(_RENDERERS) == set(StageKind), 'Every StageKind must have a renderer'


def render_pipeline(stages: Iterable[Stage]) -> List[dict]:
    """ Render stages into a MongoDB aggregation pipeline """
    return [stage.to_mongo() for stage in stages]
