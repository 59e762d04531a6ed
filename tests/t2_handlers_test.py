import unittest
from collections import OrderedDict
from copy import copy

from mongotables import EntitySchema, SearchConfiguration, SearchType, Column, Search, Order, TableQuery
from mongotables.handlers import *
from mongotables.handlers.filter import parse_boolean, parse_integer
from mongotables.exc import UnsupportedReferenceUsageError
from mongotables.stages import Stage
from .models import Order as OrderModel, order_search_configuration, order_table_request


def prepare(request, search_configuration=None):
    """ Prepare the columns of a request for the Order table """
    return TableQuery(OrderModel, search_configuration).prepare_columns(request)


class HandlersTest(unittest.TestCase):
    """ Test individual handlers """

    longMessage = True
    maxDiff = None

    def setUp(self):
        self.schema = EntitySchema.for_model(OrderModel)

    def test_prepare_columns(self):
        sc = order_search_configuration()
        columns = prepare(order_table_request(), sc)

        self.assertEqual([c.data for c in columns], ['id', 'label', 'isEnabled', 'createdAt',
                                                     'characteristics.key', 'characteristics.value',
                                                     'product', 'user', 'lastModified', 'lastProcessed'])
        self.assertEqual([c.index for c in columns], list(range(10)))
        self.assertEqual(columns[0].path, '_id')
        self.assertEqual(columns[0].config.search_type, SearchType.Integer)
        self.assertEqual(columns[4].root, 'characteristics')
        self.assertTrue(columns[6].config.reference)

        # Excluded: by name, and by root. Indexes are kept.
        sc.exclude('label', 'characteristics')
        columns = prepare(order_table_request(), sc)
        self.assertEqual([c.data for c in columns], ['id', 'isEnabled', 'createdAt', 'product', 'user',
                                                     'lastModified', 'lastProcessed'])
        self.assertEqual([c.index for c in columns], [0, 2, 3, 6, 7, 8, 9])

        # Columns inside a reference are dropped
        request = order_table_request(columns=[Column(data='product.isEnabled'), Column(data='label')])
        self.assertEqual([c.data for c in prepare(request, sc)], [])
        self.assertEqual([c.data for c in prepare(request, order_search_configuration())], ['label'])

    def test_input_once(self):
        handler = MongoLimit(self.schema, SearchConfiguration())
        prototype = copy(handler)

        handler.input((0, 10))
        with self.assertRaises(RuntimeError):
            handler.input((0, 10))

        # Copies are still usable
        copy(prototype).input((0, 10))

    def test_reference(self):
        sc = order_search_configuration()
        columns = prepare(order_table_request(), sc)

        resolver = MongoReferenceResolver(self.schema, sc).input(columns)
        self.assertEqual(resolver.resolved, OrderedDict([('product', 'product_'), ('user', 'user_')]))
        self.assertEqual(resolver.synthetic_name_for('user'), 'user_')
        self.assertEqual(resolver.intermediate_names('product_'),
                         ('product__ref_pairs', 'product__ref_entry', 'product__ref_key'))

        stages = resolver.compile_stages()
        self.assertEqual(len(stages), 8)

        carried = {'label': 1, 'isEnabled': 1, 'createdAt': 1, 'characteristics': 1,
                   'product': 1, 'user': 1, 'lastModified': 1, 'lastProcessed': 1}
        self.assertEqual([s.to_mongo() for s in stages[:4]], [
            {'$project': dict(carried, product__ref_pairs={'$objectToArray': {'$cond': [
                {'$isArray': '$product'},
                {'$arrayElemAt': ['$product', 0]},
                '$product',
            ]}})},
            {'$project': dict(carried, product__ref_entry={'$arrayElemAt': ['$product__ref_pairs', 1]})},
            {'$project': dict(carried, product__ref_key='$product__ref_entry.v')},
            {'$lookup': {'from': 'product', 'localField': 'product__ref_key', 'foreignField': '_id', 'as': 'product_'}},
        ])

        # The second reference carries the first one
        self.assertEqual(stages[4].to_mongo()['$project']['product_'], 1)
        self.assertEqual(stages[7].to_mongo(),
                         {'$lookup': {'from': 'user', 'localField': 'user__ref_key', 'foreignField': '_id', 'as': 'user_'}})

    def test_reference_names(self):
        sc = SearchConfiguration()
        sc.add_ref_configuration('product', 'product', ['label'])
        schema = EntitySchema('order', ['id', 'product', 'product_label'], id_field='id')

        # A field starts with `product_`: another underscore
        columns = TableQuery(schema, sc).prepare_columns(
            order_table_request(columns=[Column(data='product'), Column(data='product__x')]))
        resolver = MongoReferenceResolver(schema, sc).input(columns)
        self.assertEqual(resolver.resolved, {'product': 'product___'})

        # Custom separator
        columns = TableQuery(schema, sc).prepare_columns(order_table_request(columns=[Column(data='product')]))
        resolver = MongoReferenceResolver(schema, sc, separator='~').input(columns)
        self.assertEqual(resolver.resolved, {'product': 'product~'})

        # Neither searchable nor orderable: not resolved
        columns = TableQuery(schema, sc).prepare_columns(order_table_request(
            columns=[Column(data='product', searchable=False, orderable=False)]))
        resolver = MongoReferenceResolver(schema, sc).input(columns)
        self.assertEqual(resolver.resolved, {})
        self.assertEqual(resolver.compile_stages(), [])

    def test_reference_criteria(self):
        sc = order_search_configuration()
        resolver = MongoReferenceResolver(self.schema, sc)

        # Fine
        for criteria in (None,
                         {},
                         {'label': 'order1'},
                         {'productLabel': 1},
                         {'$or': [{'label': 'a'}, {'isEnabled': True}]},
                         {'$expr': {'$eq': ['$label', '$$product']}},
                         {'$text': {'$search': 'product'}}):
            resolver.validate_criteria(criteria, 'Additional criteria')

        # Reference columns
        for criteria in ({'product': {'$in': ['product1', 'product2']}},
                         {'product.$id': 1},
                         {'$and': [{'label': 'a'}, {'$or': [{'user': None}]}]},
                         {'$nor': [{'product': 1}]},
                         {'$not': {'user.$id': 2}},
                         {'$expr': {'$eq': ['$product.$id', 1]}}):
            with self.assertRaises(UnsupportedReferenceUsageError, msg=repr(criteria)):
                resolver.validate_criteria(criteria, 'Additional criteria')

        # Error message
        with self.assertRaises(UnsupportedReferenceUsageError) as e:
            resolver.validate_criteria({'user': 1, 'product': 2}, 'Pre-filtering criteria')
        self.assertEqual(e.exception.column_names, ['product', 'user'])
        self.assertEqual(e.exception.where, 'Pre-filtering criteria')
        self.assertIn('Pre-filtering criteria cannot use a reference column: product, user', str(e.exception))

        # Excluded references are not references anymore
        sc.exclude('product')
        MongoReferenceResolver(self.schema, sc).validate_criteria({'product': 1}, 'Additional criteria')

    def test_projection(self):
        sc = SearchConfiguration()
        columns = prepare(order_table_request(), sc)

        # Nothing excluded: no stage
        self.assertEqual(MongoProject(self.schema, sc).input(columns).compile_stages(), [])

        # Excluded
        sc.exclude('createdAt', 'product')
        columns = prepare(order_table_request(), sc)
        stages = MongoProject(self.schema, sc).input(columns).compile_stages()
        self.assertEqual(stages, [Stage.project({
            'label': 1, 'isEnabled': 1, 'characteristics': 1, 'user': 1, 'lastModified': 1, 'lastProcessed': 1,
        })])

        # Excluded id
        sc = SearchConfiguration(excluded_columns=['id'])
        columns = prepare(order_table_request(columns=[Column(data='label'), Column(data='extra.field')]), sc)
        projection = MongoProject(self.schema, sc).input(columns).projection()
        self.assertEqual(projection['_id'], 0)
        self.assertEqual(projection['extra'], 1)
        self.assertEqual(list(projection)[-1], '_id')

    def test_search_predicates(self):
        sc = order_search_configuration()
        sc.set_search_type('lastProcessed', SearchType.Date, timezone='Europe/Berlin', date_format='%Y')
        columns = {c.data: c for c in prepare(order_table_request(), sc)}
        search = MongoSearch(self.schema, sc).input(None).with_columns(list(columns.values()),
                                                                        {'product': 'product_', 'user': 'user_'})
        predicates = lambda data, value, regex=False: search.predicates(columns[data], Search(value=value, regex=regex))

        # String
        self.assertEqual(predicates('label', ' ORDer2 '), [{'label': {'$regex': 'ORDer2', '$options': 'i'}}])
        self.assertEqual(predicates('label', '^o\\w+der2$', True), [{'label': {'$regex': '^o\\w+der2$'}}])
        self.assertEqual(predicates('characteristics.key', 'key1'),
                         [{'characteristics.key': {'$regex': 'key1', '$options': 'i'}}])

        # Integer: the identifier is `_id`
        self.assertEqual(predicates('id', ' 2 '), [{'_id': 2}])
        self.assertEqual(predicates('id', '-2'), [{'_id': -2}])
        self.assertEqual(predicates('id', '2a'), [])
        self.assertEqual(predicates('id', '2.5'), [])

        # Boolean
        self.assertEqual(predicates('isEnabled', ' TRUE '), [{'isEnabled': True}])
        self.assertEqual(predicates('isEnabled', 'false'), [{'isEnabled': False}])
        self.assertEqual(predicates('isEnabled', 'yes'), [])

        # Date
        self.assertEqual(predicates('lastModified', ' 1970 '), [{'$expr': {'$regexMatch': {
            'input': {'$dateToString': {'date': '$lastModified', 'format': '%Y-%m-%dT%H:%M:%S.%L', 'timezone': 'UTC'}},
            'regex': '1970',
            'options': 'i',
        }}}])
        self.assertEqual(predicates('lastProcessed', '^198', True), [{'$expr': {'$regexMatch': {
            'input': {'$dateToString': {'date': '$lastProcessed', 'format': '%Y', 'timezone': 'Europe/Berlin'}},
            'regex': '^198',
        }}}])

        # Reference
        self.assertEqual(predicates('product', ' PROduct3 '), [
            {'product_.label': {'$regex': 'PROduct3', '$options': 'i'}},
            {'product_.isEnabled': {'$regex': 'PROduct3', '$options': 'i'}},
            {'product_.createdAt': {'$regex': 'PROduct3', '$options': 'i'}},
        ])
        self.assertEqual(predicates('user', 'True'), [{'user_.firstName': True}, {'user_.lastName': True}])

    def test_search_stages(self):
        sc = order_search_configuration()
        columns = prepare(order_table_request(columns=[
            Column(data='id'),
            Column(data='label', search=Search(value='order')),
            Column(data='isEnabled', search=Search(value='maybe')),
            Column(data='createdAt', searchable=False, search=Search(value='2020')),
            Column(data='characteristics.key', search=Search(value='  ')),
        ]), sc)

        # Global search: ORed
        search = MongoSearch(self.schema, sc).input(Search(value='1')).with_columns(columns)
        self.assertEqual(search.compile_global_stages(), [Stage.match({'$or': [
            {'_id': 1},
            {'label': {'$regex': '1', '$options': 'i'}},
            {'characteristics.key': {'$regex': '1', '$options': 'i'}},
        ]})])

        # Column search: one stage per column
        self.assertEqual(search.compile_column_stages(), [
            Stage.match({'label': {'$regex': 'order', '$options': 'i'}}),
        ])

        # A single predicate is not ORed
        search = MongoSearch(self.schema, sc).input(Search(value='abc')).with_columns(columns)
        self.assertEqual(search.compile_global_stages(), [Stage.match({'$or': [
            {'label': {'$regex': 'abc', '$options': 'i'}},
            {'characteristics.key': {'$regex': 'abc', '$options': 'i'}},
        ]})])
        search = MongoSearch(self.schema, sc).input(Search(value='true')).with_columns(columns[2:3])
        self.assertEqual(search.compile_global_stages(), [Stage.match({'isEnabled': True})])

        # No predicates: no stage
        search = MongoSearch(self.schema, sc).input(Search(value='maybe')).with_columns(columns[2:3])
        self.assertEqual(search.compile_global_stages(), [])

        # Blank
        search = MongoSearch(self.schema, sc).input(Search(value='   ')).with_columns(columns)
        self.assertTrue(search.is_input_empty())
        self.assertEqual(search.compile_global_stages(), [])

    def test_sort(self):
        sc = order_search_configuration()
        sc.add_ref_configuration('user', 'user', ['firstName'])  # no order column
        sc.exclude('label')
        request = order_table_request()
        columns = prepare(request, sc)
        references = {'product': 'product_', 'user': 'user_'}

        def sort(*orders):
            handler = MongoSort(self.schema, sc).input([Order(column=c, dir=d) for c, d in orders])
            handler.with_columns(columns, references)
            return handler, handler.compile_stages()

        # Simple
        handler, stages = sort((3, 'asc'), (0, 'desc'))
        self.assertEqual(stages, [Stage.sort([('createdAt', 1), ('_id', -1)])])
        self.assertEqual(list(stages[0].to_mongo()['$sort'].items()), [('createdAt', 1), ('_id', -1)])
        self.assertEqual(handler.skipped, [])

        # Reference
        handler, stages = sort((6, 'desc'))
        self.assertEqual(stages, [Stage.sort([('product_.createdAt', -1)])])

        # Skipped: out of range, excluded, reference without an order column, duplicate
        handler, stages = sort((99, 'asc'), (1, 'asc'), (7, 'asc'), (3, 'desc'), (3, 'asc'))
        self.assertEqual(stages, [Stage.sort([('createdAt', -1)])])
        self.assertEqual([o.column for o, reason in handler.skipped], [99, 1, 7, 3])

        # Nothing left
        handler, stages = sort((99, 'asc'))
        self.assertEqual(stages, [])

        # Not orderable
        columns = prepare(request.model_copy(update=dict(columns=[
            c.model_copy(update=dict(orderable=False)) for c in request.columns])), sc)
        handler, stages = sort((3, 'asc'))
        self.assertEqual(stages, [])
        self.assertEqual(handler.skipped[0][1], 'column `createdAt` is not orderable')

        # Reference that was not resolved
        handler = MongoSort(self.schema, sc).input([Order(column=6)]).with_columns(prepare(request, sc), {})
        self.assertEqual(handler.compile_stages(), [])

    def test_limit(self):
        sc = SearchConfiguration()
        limit = lambda start, length: MongoLimit(self.schema, sc).input((start, length))

        self.assertEqual(limit(0, 10).compile_stages(), [Stage.skip(0), Stage.limit(10)])
        self.assertEqual(limit(20, 10).compile_stages(), [Stage.skip(20), Stage.limit(10)])
        self.assertEqual(limit(5, -1).compile_stages(), [Stage.skip(5)])

        self.assertFalse(limit(0, 10).loads_nothing)
        self.assertTrue(limit(0, 0).loads_nothing)
        self.assertEqual(limit(0, 0).compile_stages(), [Stage.skip(0), Stage.match({'$expr': False})])
        self.assertEqual(limit(10, 0).compile_stages()[-1].to_mongo(), {'$match': {'$expr': False}})

    def test_count(self):
        sc = SearchConfiguration()
        self.assertEqual(MongoCount(self.schema, sc).compile_stages(), [Stage.count_as('filtered_count')])
        self.assertEqual(MongoCount(self.schema, sc, count_field='n').compile_stages()[0].to_mongo(), {'$count': 'n'})

        with self.assertRaises(AssertionError):
            MongoCount(self.schema, sc, count_field='$n')

    def test_parsers(self):
        self.assertIs(parse_boolean('TrUe'), True)
        self.assertIs(parse_boolean('FALSE'), False)
        self.assertIsNone(parse_boolean(' false '))
        self.assertIsNone(parse_boolean('1'))
        self.assertEqual(parse_integer('+15'), 15)
        self.assertIsNone(parse_integer(''))
        self.assertIsNone(parse_integer('1e3'))
