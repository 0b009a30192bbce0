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
# spacetree builds an in-memory tree of the space used below a path,
# without wandering onto other filesystems. What you do with it (draw a
# treemap, list the biggest offenders) is up to you.
#
#
# Library usage::
#
#     >>> from spacetree import Scanner
#     >>> scanner = Scanner('/srv')
#     >>> tree = scanner.scan()
#     >>> root = tree.root()
#     >>> root.area()
#     86558511658
#
#     >>> root.sort_children_by_area()
#     >>> biggest = root.child_at(0)
#     >>> biggest.name(), biggest.area()
#     ('data', 86558511626)
#
#     >>> tree.errors()
#     Counter({13: 2})
#
#     >>> from spacetree import format_errors
#     >>> format_errors(tree.errors())
#     'Some directories were not analyzed: Permission denied (2 times)'
#
from .mounts import MountInfo, MountTable
from .node import (
    NodeView, SpaceTree, TreeNode, absolute_path, aggregate,
    sort_children_descending)
from .spacetree import (
    OsWarning, SpaceScan as Scanner, TreeBuilder, format_errors, human)

__all__ = (
    'MountInfo', 'MountTable', 'NodeView', 'OsWarning', 'Scanner',
    'SpaceTree', 'TreeBuilder', 'TreeNode', 'absolute_path', 'aggregate',
    'format_errors', 'human', 'sort_children_descending')
