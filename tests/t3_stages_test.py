import unittest
from collections import OrderedDict

from mongotables.stages import Stage, StageKind, render_pipeline


class StagesTest(unittest.TestCase):
    """ Test pipeline stages """

    def test_to_mongo(self):
        self.assertEqual(Stage.match({'a': 1}).to_mongo(), {'$match': {'a': 1}})
        self.assertEqual(Stage.project({'a': 1, 'b': '$c'}).to_mongo(), {'$project': {'a': 1, 'b': '$c'}})
        self.assertEqual(Stage.lookup('product', 'product_key', '_id', 'product_').to_mongo(),
                         {'$lookup': {'from': 'product', 'localField': 'product_key',
                                      'foreignField': '_id', 'as': 'product_'}})
        self.assertEqual(Stage.skip(10).to_mongo(), {'$skip': 10})
        self.assertEqual(Stage.limit(5).to_mongo(), {'$limit': 5})
        self.assertEqual(Stage.count_as('filtered_count').to_mongo(), {'$count': 'filtered_count'})

    def test_sort_keeps_order(self):
        stage = Stage.sort([('b', -1), ('a', 1), ('c', 1)])
        self.assertIs(stage.kind, StageKind.SORT)

        rendered = stage.to_mongo()['$sort']
        self.assertIsInstance(rendered, OrderedDict)
        self.assertEqual(list(rendered.items()), [('b', -1), ('a', 1), ('c', 1)])

    def test_every_kind_renders(self):
        bodies = {
            StageKind.MATCH: {},
            StageKind.PROJECT: {'a': 1},
            StageKind.LOOKUP: {'from': 'a', 'localField': 'b', 'foreignField': 'c', 'as': 'd'},
            StageKind.SORT: [('a', 1)],
            StageKind.SKIP: 0,
            StageKind.LIMIT: 1,
            StageKind.COUNT: 'n',
        }
        self.assertEqual(set(bodies), set(StageKind))

        for kind, body in bodies.items():
            stage = Stage(kind, body)
            self.assertEqual(list(stage.to_mongo()), [kind.value])

    def test_rendering_copies(self):
        criteria = {'a': 1}
        stage = Stage.match(criteria)
        criteria['b'] = 2
        rendered = stage.to_mongo()
        rendered['$match']['c'] = 3

        self.assertEqual(stage.body, {'a': 1})

    def test_render_pipeline(self):
        self.assertEqual(render_pipeline([]), [])
        self.assertEqual(render_pipeline([Stage.match({'a': 1}), Stage.skip(0), Stage.limit(10)]),
                         [{'$match': {'a': 1}}, {'$skip': 0}, {'$limit': 10}])

    def test_repr(self):
        self.assertEqual(repr(Stage.skip(10)), 'SKIP(10)')
        self.assertEqual(repr(Stage.match({'a': 1})), "MATCH({'a': 1})")
