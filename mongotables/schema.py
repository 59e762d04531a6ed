"""
### Entity Schema

MongoTables needs to know the fields of the documents it's loading: to build projections that exclude some fields,
to avoid name collisions for the fields it generates, and to tell which field is the document identifier.

All this information is described by an EntitySchema. It can be declared by hand:

```python
schema = EntitySchema('order', ['id', 'label', 'createdAt', 'product'], id_field='id')
```

or generated once from a pydantic model, where the identity field is the one aliased to `_id`:

```python
class Order(BaseModel):
    id: int = Field(None, alias='_id')
    label: str = None

schema = EntitySchema.for_model(Order)
```
"""

from typing import Any, Iterable, List, Mapping, NamedTuple, Optional, Union, Dict

from pydantic import BaseModel

#: The name of the identifier field in every MongoDB document
ID_FIELD = '_id'


class EntityField(NamedTuple):
    """ A field of an entity """

    #: Logical name: the one used by the application and the table columns
    name: str

    #: Physical name: the one the document is stored with
    store_name: str

    #: Python type of the field, if known
    type: Any = None


class EntitySchema:
    """ Describes the fields of an entity

        Field order is preserved: projections list fields in this order.
    """
    __schema_per_model_cache = {}

    @classmethod
    def for_model(cls, model: type) -> 'EntitySchema':
        """ Get a schema for a pydantic model

        Please use this method over __init__(), because it only inspects the model once
        """
        try:
            return cls.__schema_per_model_cache[model]
        except KeyError:
            cls.__schema_per_model_cache[model] = schema = cls.from_model(model)
            return schema

    @classmethod
    def from_model(cls, model: type) -> 'EntitySchema':
        """ Generate a schema from a pydantic model """
        if not (isinstance(model, type) and issubclass(model, BaseModel)):
            raise TypeError('EntitySchema can only be generated from a pydantic model; {!r} given'.format(model))

        fields = []
        id_field = None
        for name, info in model.model_fields.items():
            store_name = info.alias or name
            if store_name == ID_FIELD:
                id_field = name
            fields.append(EntityField(name, store_name, info.annotation))

        return cls(model.__name__, fields, id_field=id_field, model=model)

    def __init__(self, name: str,
                 fields: Iterable[Union[EntityField, str]],
                 id_field: Optional[str] = None,
                 model: Optional[type] = None):
        """ Init a schema

        :param name: Entity name, for error messages
        :param fields: EntityField()s, or just field names
        :param id_field: Name of the field that is stored as `_id`
        :param model: pydantic model to decode documents into. When `None`, documents are returned as dicts.
        """
        self.name = name
        self.model = model

        self.fields = {}  # type: Dict[str, EntityField]
        for field in fields:
            if isinstance(field, str):
                field = EntityField(field, ID_FIELD if field == id_field else field)
            self.fields[field.name] = field

        #: The logical identity field name, if it differs from `_id`
        self.id_field = id_field if id_field != ID_FIELD else None
        if self.id_field and self.id_field not in self.fields:
            self.fields[self.id_field] = EntityField(self.id_field, ID_FIELD)

    @property
    def names(self) -> List[str]:
        """ Logical names of all fields """
        return list(self.fields)

    def __contains__(self, name):
        return name in self.fields

    def __iter__(self):
        return iter(self.fields.values())

    def store_name(self, name: str) -> str:
        """ Get the physical name of a field, or a dotted path

        Unknown names are returned as is.
        """
        head, dot, tail = name.partition('.')
        field = self.fields.get(head)
        if field is None:
            return name
        return field.store_name + dot + tail

    def logical_name(self, store_name: str) -> str:
        """ Get the logical name of a field, or a dotted path, by its physical name """
        head, dot, tail = store_name.partition('.')
        for field in self.fields.values():
            if field.store_name == head:
                return field.name + dot + tail
        return store_name

    def is_excluded(self, name: str, excluded: Iterable[str]) -> bool:
        """ Test whether a field is excluded, by either of its names """
        field = self.fields.get(name)
        return name in excluded or (field is not None and field.store_name in excluded)

    def enumerate(self, excluded: Iterable[str] = ()) -> List[str]:
        """ List physical names of all fields, except the excluded ones

        This list is used for inclusion projections, so `_id` never makes it here:
        MongoDB includes it anyway. Use `excludes_id()` to find out whether it has to be projected out.

        :param excluded: Names of excluded fields
        """
        excluded = frozenset(excluded)
        return [field.store_name
                for field in self.fields.values()
                if field.store_name != ID_FIELD
                and not self.is_excluded(field.name, excluded)]

    def excludes_id(self, excluded: Iterable[str]) -> bool:
        """ Test whether the document identifier is one of the excluded fields """
        excluded = frozenset(excluded)
        if ID_FIELD in excluded:
            return True
        return self.id_field is not None and self.id_field in excluded

    def decode(self, document: Mapping):
        """ Convert a document loaded from the database into an entity

        Without a model, the document is returned as a dict with the declared fields only:
        whatever else the pipeline has put there (resolved references) is dropped.
        """
        if self.model is None:
            store_names = {field.store_name for field in self.fields.values()}
            store_names.add(ID_FIELD)
            return {name: value
                    for name, value in document.items()
                    if name in store_names}
        return self.model.model_validate(document)

    def __repr__(self):
        return '{}({!r}, {!r}, id_field={!r})'.format(
            self.__class__.__name__, self.name, self.names, self.id_field)
