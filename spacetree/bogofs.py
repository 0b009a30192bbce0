# spacetree -- a mount-bounded disk usage tree builder
# Copyright (C) 2018,2021  Walter Doekes, OSSO B.V.
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
# The BogoFilesystem contained herein is used by the spacetree test
# cases. It stands in for the open/listdir/stat/fstat/close calls
# the TreeBuilder makes, so the builder can be tested on a consistent
# filesystem, including unreadable directories and files that vanish
# between listing and stat.
#
# The GeneratedFilesystem pseudo-randomly fills one of those with dirs
# and files.
#
from errno import EACCES, EBADF, ELOOP, ENOENT, ENOTDIR
from itertools import count
from os import O_NOFOLLOW
from random import Random

_inodes = count(2)


class Node:
    st_mode = 0
    st_dev = 1

    def __init__(self, name, size):
        self.name = name
        self.size = size
        self.st_ino = next(_inodes)

    @property
    def st_size(self):  # for stat
        return self.size


class DirNode(Node):
    st_mode = 0o40000  # S_IFDIR

    def __init__(self, name):
        size = 4096  # bogus obviously, but most common
        super().__init__(name, size)
        self.children = []

    def generate(self, fs, maxdepth):
        # With the current FS generation parameters, maxdepth of 5 is
        # more than enough.
        assert 0 <= maxdepth < 6, 'invalid maxdepth value'

        if maxdepth > 0:
            dirs = fs.create_dirs()
            for dir_ in dirs:
                dir_.generate(fs, maxdepth - 1)
            self.children.extend(dirs)

        self.children.extend(fs.create_files())

    def __str__(self):
        return '[{:12d}] {}/'.format(self.size, self.name)


class RegularFileNode(Node):
    st_mode = 0o100000  # S_IFREG

    def __str__(self):
        return '[{:12d}] {}'.format(self.size, self.name)


class SymlinkNode(Node):
    st_mode = 0o120000  # S_IFLNK

    def __init__(self, name, target):
        super().__init__(name, len(target))
        self.target = target


class BogoFilesystem:
    def __init__(self):
        self._root = DirNode('')
        self._nodes = {'/': self._root}
        self._denied = set()
        self._hidden = set()
        self._swapped = {}
        self._fds = {}
        self._next_fd = 100
        self.opened = 0

    @staticmethod
    def _normpath(path):
        assert path.startswith('/'), path
        if path != '/':
            path = path.rstrip('/')
        return path

    def _parent(self, path):
        path = self._normpath(path)
        head, name = path.rsplit('/', 1)
        parent = self._nodes[head or '/']
        assert isinstance(parent, DirNode), parent
        return path, parent, name

    def _add(self, path, node_factory):
        path, parent, name = self._parent(path)
        node = node_factory(name)
        parent.children.append(node)
        self._nodes[path] = node
        return node

    def add_dir(self, path):
        return self._add(path, DirNode)

    def add_file(self, path, size):
        return self._add(path, lambda name: RegularFileNode(name, size))

    def add_symlink(self, path, target):
        return self._add(path, lambda name: SymlinkNode(name, target))

    def deny(self, path):
        "Make a directory fail to open with EACCES."
        self._denied.add(self._normpath(path))

    def hide_from_stat(self, path):
        """'Delete' a file, so it will turn up in the listdir, but fail
        on stat.

        This is used so check that we cope with listdir/stat races.
        """
        self._hidden.add(self._normpath(path))

    def swap_on_open(self, path, other):
        """Make opening path yield the directory at other.

        This mimics a directory being replaced (by a symlink, say) after
        it was stat'ed but before it was opened.
        """
        self._swapped[self._normpath(path)] = self._normpath(other)

    def get_content_size(self, path):
        "Return the sum of the file sizes below path."
        return self._get_content_size(self._nodes[self._normpath(path)])

    def _get_content_size(self, node):
        if not isinstance(node, DirNode):
            return node.size
        return sum(self._get_content_size(i) for i in node.children)

    def open_fds(self):
        return len(self._fds)

    # The calls below replace those in spacetree.spacetree.

    def open(self, path, flags):
        path = self._normpath(path)
        path = self._swapped.get(path, path)
        node = self._nodes.get(path)
        if node is None or path in self._hidden:
            raise OSError(ENOENT, 'No such file or directory', path)
        if path in self._denied:
            raise PermissionError(EACCES, 'Permission denied', path)
        if isinstance(node, SymlinkNode):
            if flags & O_NOFOLLOW:
                raise OSError(ELOOP, 'Too many levels of symbolic links', path)
            return self.open(node.target, flags)
        if not isinstance(node, DirNode):
            raise NotADirectoryError(ENOTDIR, 'Not a directory', path)

        fd = self._next_fd
        self._next_fd += 1
        self._fds[fd] = path
        self.opened += 1
        return fd

    def listdir(self, fd):
        path = self._fd_path(fd)
        return [i.name for i in self._nodes[path].children]

    def stat(self, name, dir_fd=None, follow_symlinks=True):
        assert dir_fd is not None and not follow_symlinks
        parent = self._fd_path(dir_fd)
        path = (parent.rstrip('/') + '/' + name)
        if path in self._hidden:
            raise FileNotFoundError(ENOENT, 'No such file or directory', name)
        return self._nodes[path]

    def fstat(self, fd):
        return self._nodes[self._fd_path(fd)]

    def close(self, fd):
        self._fd_path(fd)
        del self._fds[fd]

    def _fd_path(self, fd):
        try:
            return self._fds[fd]
        except KeyError:
            raise OSError(EBADF, 'Bad file descriptor')


class GeneratedFilesystem(BogoFilesystem):
    def __init__(self, seed=3, maxdepth=4):
        super().__init__()
        self._rand = Random(seed)
        self.randint = self._rand.randint

        self._root.generate(self, maxdepth)
        self._index('', self._root)

    def _index(self, prefix, node):
        for child in node.children:
            path = prefix + '/' + child.name
            self._nodes[path] = child
            if isinstance(child, DirNode):
                self._index(path, child)

    def create_unique(self, n):
        fmt = '{{:0{0}d}}'.format(len(str(n)))
        return [fmt.format(i) for i in range(n)]

    def create_dirs(self):
        n = self.how_many_dirs()
        return [DirNode('{}.d'.format(i)) for i in self.create_unique(n)]

    def create_files(self):
        n = self.how_many_files()
        return [RegularFileNode('{}.txt'.format(i), self.how_large_file())
                for i in self.create_unique(n)]

    def how_many_dirs(self):
        return self.randint(0, 6)

    def how_many_files(self):
        return self.randint(0, 12)

    def how_large_file(self):
        if self.randint(0, 80):
            return self.randint(1, 2 ** 16)  # not so large
        return self.randint(1, 2 ** 31)      # large

    def dirs(self):
        "Return all directory paths."
        return sorted(
            path for path, node in self._nodes.items()
            if isinstance(node, DirNode))
