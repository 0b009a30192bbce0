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
#
# There are two ways to look at a tree. The TreeBuilder and aggregate()
# get the TreeNode itself and poke at its attributes. Everyone else gets
# a NodeView, which only has getters, and the one exception: the
# children may be reordered by size, whenever the consumer gets around
# to looking at them.
#
from collections import Counter
from operator import attrgetter


class TreeNode:
    "Space usage tree node"

    __slots__ = ('name', 'area', 'children')

    def __init__(self, name):
        self.name = name
        self.area = 0
        # None: a file, or a directory we could not (or did not) read.
        # []: an empty directory.
        self.children = None

    def __repr__(self):
        name = self.name
        if self.children is not None:
            name += '/'
        return '  {:12d}  {}'.format(self.area, name)


def aggregate(node):
    """
    Set the area of every directory to the sum of its children.

    Nodes without children keep the area they have. Returns the new area
    of node.
    """
    stack = [(node, False)]
    while stack:
        current, children_done = stack.pop()
        if current.children is None:
            continue
        if children_done:
            current.area = sum(child.area for child in current.children)
        else:
            stack.append((current, True))
            stack.extend((child, False) for child in current.children)
    return node.area


_by_area = attrgetter('area')


def sort_children_descending(node):
    "Order the children of node from large to small, in place."
    if node.children:
        node.children.sort(key=_by_area, reverse=True)


class NodeView:
    "Read-only view of a TreeNode"

    __slots__ = ('_node',)

    def __init__(self, node):
        self._node = node

    def name(self):
        return self._node.name

    def area(self):
        "Return the total size in bytes, including children."
        return self._node.area

    def is_expanded(self):
        "Return whether this is a directory we managed to read."
        return self._node.children is not None

    def num_children(self):
        if self._node.children is None:
            return 0
        return len(self._node.children)

    def child_at(self, index):
        if self._node.children is None:
            raise IndexError('{!r} has no children'.format(self._node.name))
        return NodeView(self._node.children[index])

    def children(self):
        "Return the children in their current order."
        if self._node.children is None:
            return ()
        return tuple(NodeView(child) for child in self._node.children)

    def sort_children_by_area(self):
        "Put the largest child first. Cheap if already sorted."
        sort_children_descending(self._node)

    def count(self):
        "Return how many nodes this contains, including self."
        total = 0
        stack = [self._node]
        while stack:
            node = stack.pop()
            total += 1
            if node.children:
                stack.extend(node.children)
        return total

    def as_tree(self):
        "Return the nodes as a list of lists."
        if self._node.children is None:
            return [self]
        ret = [self]
        for child in self.children():
            ret.append(child.as_tree())
        return ret

    def __eq__(self, other):
        return isinstance(other, NodeView) and self._node is other._node

    def __hash__(self):
        return id(self._node)

    def __repr__(self):
        return repr(self._node)


def absolute_path(views):
    """
    Return the filesystem path of the last node in views.

    views is the list of nodes from the root down to the node of
    interest, as kept by whoever navigates the tree (nodes don't know
    their parents).
    """
    names = [view.name() for view in views]
    if not names:
        raise ValueError('Need at least the root node')
    if len(names) == 1:
        return names[0] or '/'
    return '/'.join(names)


class SpaceTree:
    "The outcome of one analysis: the tree and what went wrong"

    def __init__(self, root, errors):
        self._root = root
        self._errors = Counter(errors)

    def root(self):
        return NodeView(self._root)

    def path(self):
        "Return the path the analysis started at."
        return self._root.name or '/'

    def errors(self):
        "Return a {errno: count} copy of the errors encountered."
        return Counter(self._errors)
