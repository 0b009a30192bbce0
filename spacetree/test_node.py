# spacetree -- a mount-bounded disk usage tree builder
# Copyright (C) 2019,2021  Walter Doekes, OSSO B.V.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.
#
from collections import Counter
from errno import EACCES
from unittest import TestCase, main

from spacetree.node import (
    NodeView, SpaceTree, TreeNode, absolute_path, aggregate,
    sort_children_descending)


def make_dir(name, *children):
    node = TreeNode(name)
    node.children = list(children)
    return node


def make_file(name, area):
    node = TreeNode(name)
    node.area = area
    return node


class AggregateTest(TestCase):
    def test_single_leaf(self):
        root = make_dir('/srv', make_file('a', 7))
        self.assertEqual(aggregate(root), 7)
        self.assertEqual(root.area, 7)

    def test_leaf_keeps_area(self):
        leaf = make_file('a', 12)
        self.assertEqual(aggregate(leaf), 12)
        self.assertEqual(aggregate(TreeNode('never-stat-ed')), 0)

    def test_nested(self):
        dir_a = make_dir('A', make_file('a', 10), make_file('b', 20))
        file_b = make_file('B', 5)
        root = make_dir('', dir_a, file_b)

        self.assertEqual(aggregate(root), 35)
        self.assertEqual(dir_a.area, 30)
        self.assertEqual(file_b.area, 5)

    def test_unreadable_and_empty_dirs(self):
        unreadable = TreeNode('C')  # children stays None
        empty = make_dir('E')
        dir_a = make_dir(
            'A', make_file('a', 10), make_file('b', 20), unreadable, empty)
        root = make_dir('', dir_a)

        self.assertEqual(aggregate(root), 30)
        self.assertEqual(unreadable.area, 0)
        self.assertIsNone(unreadable.children)
        self.assertEqual(empty.area, 0)
        self.assertEqual(empty.children, [])

    def test_overwrites_stale_directory_area(self):
        dir_a = make_dir('A', make_file('a', 10))
        dir_a.area = 999
        self.assertEqual(aggregate(make_dir('', dir_a)), 10)
        self.assertEqual(dir_a.area, 10)

    def test_deep_tree(self):
        root = node = make_dir('')
        for _ in range(5000):
            child = make_dir('d')
            node.children.append(child)
            node = child
        node.children.append(make_file('f', 3))

        self.assertEqual(aggregate(root), 3)
        self.assertEqual(NodeView(root).count(), 5002)


class SortChildrenTest(TestCase):
    def make(self, *areas):
        return make_dir('', *[
            make_file(str(i), area) for i, area in enumerate(areas)])

    def areas(self, node):
        return [child.area for child in node.children]

    def test_descending(self):
        node = self.make(5, 20, 5, 40)
        sort_children_descending(node)
        self.assertEqual(self.areas(node), [40, 20, 5, 5])
        self.assertEqual(
            set(child.name for child in node.children[2:]), {'0', '2'})

    def test_idempotent(self):
        node = self.make(3, 1, 4, 1, 5, 9, 2, 6)
        sort_children_descending(node)
        once = list(node.children)
        sort_children_descending(node)
        self.assertEqual(node.children, once)

    def test_no_children(self):
        leaf = make_file('a', 4)
        sort_children_descending(leaf)
        self.assertIsNone(leaf.children)

        empty = make_dir('E')
        sort_children_descending(empty)
        self.assertEqual(empty.children, [])

    def test_only_one_level(self):
        inner = self.make(1, 2)
        root = make_dir('', make_file('x', 1), inner)
        aggregate(root)
        sort_children_descending(root)
        self.assertIs(root.children[0], inner)
        self.assertEqual(self.areas(inner), [1, 2])


class NodeViewTest(TestCase):
    def setUp(self):
        self.dir_a = make_dir('A', make_file('a', 10), make_file('b', 20))
        self.root = make_dir('/srv', make_file('B', 5), self.dir_a)
        aggregate(self.root)
        self.view = NodeView(self.root)

    def test_getters(self):
        self.assertEqual(self.view.name(), '/srv')
        self.assertEqual(self.view.area(), 35)
        self.assertTrue(self.view.is_expanded())
        self.assertEqual(self.view.num_children(), 2)
        self.assertEqual(self.view.child_at(1).name(), 'A')
        self.assertEqual(
            [child.name() for child in self.view.children()], ['B', 'A'])
        self.assertEqual(self.view.count(), 5)

    def test_leaf(self):
        leaf = self.view.child_at(0)
        self.assertFalse(leaf.is_expanded())
        self.assertEqual(leaf.num_children(), 0)
        self.assertEqual(leaf.children(), ())
        with self.assertRaises(IndexError):
            leaf.child_at(0)

    def test_read_only(self):
        with self.assertRaises(AttributeError):
            self.view.area = 3
        with self.assertRaises(AttributeError):
            self.view.name = 'x'
        children = self.view.children()
        self.assertIsInstance(children, tuple)

    def test_sort_children_by_area(self):
        self.view.sort_children_by_area()
        self.assertEqual(
            [child.name() for child in self.view.children()], ['A', 'B'])
        # Below the root nothing was touched.
        self.assertEqual(
            [child.name() for child in self.view.child_at(0).children()],
            ['a', 'b'])

    def test_as_tree(self):
        def as_list(it):
            if isinstance(it, list):
                return [as_list(i) for i in it]
            return (it.name(), it.area())

        self.assertEqual(as_list(self.view.as_tree()), [
            ('/srv', 35),
            [('B', 5)],
            [('A', 30), [('a', 10)], [('b', 20)]],
        ])

    def test_equality(self):
        self.assertEqual(self.view.child_at(1), NodeView(self.dir_a))
        self.assertNotEqual(self.view.child_at(0), NodeView(self.dir_a))
        self.assertEqual(len({self.view, NodeView(self.root)}), 1)


class AbsolutePathTest(TestCase):
    def test_paths(self):
        root = NodeView(make_dir(''))
        srv = NodeView(make_dir('/srv'))
        child = NodeView(make_dir('data'))
        leaf = NodeView(make_file('x.txt', 1))

        self.assertEqual(absolute_path([root]), '/')
        self.assertEqual(absolute_path([root, child]), '/data')
        self.assertEqual(absolute_path([root, child, leaf]), '/data/x.txt')
        self.assertEqual(absolute_path([srv]), '/srv')
        self.assertEqual(absolute_path([srv, child, leaf]), '/srv/data/x.txt')

    def test_empty(self):
        with self.assertRaises(ValueError):
            absolute_path([])


class SpaceTreeTest(TestCase):
    def test_root_and_errors(self):
        root = make_dir('', make_file('a', 1))
        aggregate(root)
        tree = SpaceTree(root, Counter({EACCES: 2}))

        self.assertEqual(tree.path(), '/')
        self.assertEqual(tree.root(), NodeView(root))
        self.assertEqual(tree.root().area(), 1)

        errors = tree.errors()
        self.assertEqual(errors, {EACCES: 2})
        errors[EACCES] += 1
        self.assertEqual(tree.errors(), {EACCES: 2})

    def test_path(self):
        self.assertEqual(SpaceTree(TreeNode('/srv'), {}).path(), '/srv')


if __name__ == '__main__':
    main()
