#!/usr/bin/env python3
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
# *spacetree* builds a tree of every directory and file below a path,
# with the number of bytes each of them takes up. It stays on the
# filesystem the path lives on: other mounts are skipped, unless they
# are bind mounts of that same filesystem.
#
# The tree is meant to be handed to something that draws it (a treemap,
# for instance). The command line version just prints the top levels::
#
#     $ spacetree --depth=2 /srv
#      80.6 G  /srv/
#      80.6 G    data/
#      34.4 G      twinfield_invoices/
#      17.5 G      playlists/
#      ...
#       -----
#      80.6 G  TOTAL (86558511658)
#     Some directories were not analyzed: Permission denied (2 times)
#
# **NOTE**: Sizes are apparent sizes (st_size). Directories do not count
# the size of themselves, only of their contents. Symlinks count as the
# size of the link, never as what they point to.
#
import sys
import warnings

from collections import Counter, deque
from errno import ENOENT
from os import (
    O_DIRECTORY, O_NOFOLLOW, O_RDONLY, close, fstat, listdir, open as os_open,
    path, stat, strerror)
from stat import S_ISDIR

from .mounts import MOUNTS_FILE, MountTable
from .node import SpaceTree, TreeNode, aggregate, sort_children_descending


class OsWarning(UserWarning):
    pass


class TreeBuilder:
    "Mount-bounded breadth-first filesystem tree builder"

    def __init__(self, mounts):
        self._mounts = mounts

    def build(self, root):
        """
        Fill in the children of root, and the sizes of all files below.

        Directory sizes are left alone; run aggregate() afterwards. Returns
        a {errno: count} Counter of everything that could not be read.
        """
        assert not root.name.endswith('/'), root.name
        errors = Counter()

        root_mount = self._mounts.find_mount_for(root.name + '/')
        if root_mount is None:
            return errors

        # A queue instead of recursion: no stack depth trouble with
        # deeply nested trees, and we visit (and fail) level by level.
        queue = deque([(root.name, root, None)])
        while queue:
            pathname, node, identity = queue.popleft()

            mount = self._mounts.find_mount_for(pathname + '/')
            if mount is None or (
                    mount is not root_mount and
                    mount.source != root_mount.source):
                continue

            self._expand(pathname, node, identity, queue, errors)

        return errors

    def _expand(self, pathname, node, identity, queue, errors):
        try:
            fd = os_open(pathname or '/', O_RDONLY | O_DIRECTORY | O_NOFOLLOW)
        except OSError as e:
            # PermissionError: [Errno 13] Permission denied:
            #   '/sys/fs/fuse/connections/85'
            self._fail(errors, e)
            return

        try:
            try:
                if identity is not None:
                    self._check_identity(pathname, fd, identity)
                names = listdir(fd)
            except OSError as e:
                self._fail(errors, e)
                return

            node.children = [TreeNode(name) for name in names]
            for child in node.children:
                try:
                    st = stat(child.name, dir_fd=fd, follow_symlinks=False)
                except OSError as e:
                    # Could be deleted:
                    #   [Errno 2] No such file or directory: '3'
                    self._fail(errors, e)
                    continue

                if S_ISDIR(st.st_mode):
                    queue.append((
                        pathname + '/' + child.name, child,
                        (st.st_dev, st.st_ino)))
                else:
                    child.area = st.st_size
        finally:
            close(fd)

    @staticmethod
    def _check_identity(pathname, fd, identity):
        # Swapped for something else (a symlink?) since we stat'ed it.
        st = fstat(fd)
        if (st.st_dev, st.st_ino) != identity:
            raise FileNotFoundError(
                ENOENT, 'Directory was replaced while scanning', pathname)

    @staticmethod
    def _fail(errors, exc):
        errors[exc.errno] += 1
        warnings.warn(str(exc), OsWarning)


class SpaceScan:
    "Disk usage tree analysis"

    def __init__(self, pathname, mounts=None):
        self._path = self._normpath(pathname)
        self._mounts = mounts

    def _normpath(self, pathname):
        "Return path normalized for tree usage: resolved, no trailing slash."
        # The mount table has resolved paths, so we need one too.
        pathname = path.realpath(pathname)
        if pathname == '/':
            pathname = ''
        assert not pathname.endswith('/'), pathname
        return pathname

    def scan(self):
        """
        Build, total and return a fresh SpaceTree.

        Raises OSError if the mount table cannot be read. Anything going
        wrong below the root is recorded in the SpaceTree errors instead.
        """
        mounts = self._mounts
        if mounts is None:
            mounts = MountTable.from_file()

        root = TreeNode(self._path)
        errors = TreeBuilder(mounts).build(root)
        aggregate(root)
        return SpaceTree(root, errors)


def format_errors(errors):
    "Return a one-line summary of a {errno: count} mapping."
    if not errors:
        return 'No errors'

    reasons = []
    for errno, count in errors.items():
        reasons.append('{} ({} {})'.format(
            _strerror(errno), count, 'time' if count == 1 else 'times'))
    return 'Some directories were not analyzed: {}'.format(', '.join(reasons))


def _strerror(errno):
    if errno is None:
        return 'Unknown error'
    return strerror(errno)


def human(value):
    "If val>=1000 return val/1024+KiB, etc."
    if value >= 1073741824000:
        return '{:.1f} T'.format(value / 1099511627776.0)
    if value >= 1048576000:
        return '{:.1f} G'.format(value / 1073741824.0)
    if value >= 1024000:
        return '{:.1f} M'.format(value / 1048576.0)
    if value >= 1000:
        return '{:.1f} K'.format(value / 1024.0)
    return '{}   B'.format(value)


USAGE = 'Usage: spacetree [--depth=N] [--mounts=FILE] PATH\n'


def main():
    pathname = None
    depth = 1
    mounts_file = MOUNTS_FILE

    for arg in sys.argv[1:]:
        if arg.startswith('--depth='):
            try:
                depth = int(arg[8:])
            except ValueError:
                pathname = None
                break
        elif arg.startswith('--mounts='):
            mounts_file = arg[9:]
        elif arg.startswith('--') or pathname is not None:
            pathname = None
            break
        else:
            pathname = arg

    if pathname is None or depth < 0:
        sys.stderr.write(USAGE)
        sys.exit(1)

    try:
        mounts = MountTable.from_file(mounts_file)
    except (OSError, ValueError) as e:
        sys.stderr.write('spacetree: cannot read mount table: {}\n'.format(e))
        sys.exit(1)

    run(pathname, depth, mounts)


def run(pathname, depth, mounts, out=None):
    out = out or sys.stdout
    scanner = SpaceScan(pathname, mounts)
    tree = scanner.scan()
    root = tree.root()

    out.write(' {0:>7s}  {1}\n'.format(
        human(root.area()), _display_name(tree.path(), root)))

    # Sort only what we show: the rest of the tree stays as listed.
    stack = [(root, 0)]
    while stack:
        view, level = stack.pop()
        if level:
            out.write(' {0:>7s}  {1}{2}\n'.format(
                human(view.area()), '  ' * level,
                _display_name(view.name(), view)))
        if level < depth and view.is_expanded():
            view.sort_children_by_area()
            stack.extend(
                (child, level + 1) for child in reversed(view.children()))

    out.write('   -----\n')
    size = root.area()
    out.write(' {0:>7s}  TOTAL ({1})\n'.format(human(size), size))
    out.write(format_errors(tree.errors()) + '\n')
    return tree


def _display_name(name, view):
    if view.is_expanded() and not name.endswith('/'):
        return name + '/'
    return name


def formatwarning(message, category, filename, lineno, line=None):
    """
    Override default Warning layout, from:

        /PATH/TO/spacetree.py:95: OsWarning:
            [Errno 13] Permission denied: '/root/'
          self._fail(errors, e)

    To:

        spacetree.py:95: OsWarning: [Errno 13] Permission denied: '/root/'
    """
    return '{basename}:{lineno}: {category}: {message}\n'.format(
        basename=path.basename(filename), lineno=lineno,
        category=category.__name__, message=message)
warnings.formatwarning = formatwarning  # noqa


if __name__ == '__main__':
    main()
