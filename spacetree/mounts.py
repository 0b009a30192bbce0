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
# The mount table tells the scanner where one filesystem ends and the
# next one begins. We read it once, at the start of a scan, and never
# look at it again: if someone mounts something halfway through, we
# won't notice.
#
# Two formats are understood. The Linux one::
#
#     /dev/sda1 / ext4 rw,relatime 0 0
#     /dev/sdb1 /mnt/my\040disk ext4 rw,relatime 0 0
#
# And a JSON list, like /proc/df on some other systems::
#
#     [{"mount_point": "/", "source": "/dev/hda0"}, ...]
#
import json
import re

from collections import namedtuple

MOUNTS_FILE = '/proc/self/mounts'

_OCTAL_ESCAPE = re.compile(r'\\([0-7]{3})')


class MountInfo(namedtuple('MountInfo', 'mount_point source')):
    "A mounted filesystem: where it is attached and what backs it"
    __slots__ = ()


def _unescape(value):
    # getmntent(3) escapes space, tab, newline and backslash as \ooo.
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), value)


def parse_mounts(content):
    "Parse fstab-style lines, as found in /proc/self/mounts."
    ret = []
    for lineno, line in enumerate(content.splitlines(), 1):
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        fields = line.split()
        if len(fields) < 2:
            raise ValueError(
                'Bad mount line {}: {!r}'.format(lineno, line))
        ret.append(MountInfo(
            mount_point=_unescape(fields[1]), source=_unescape(fields[0])))
    return ret


def parse_df_json(content):
    "Parse a JSON list of {mount_point, source} objects."
    try:
        data = json.loads(content)
    except ValueError as e:
        raise ValueError('Bad mount table JSON: {}'.format(e))
    if not isinstance(data, list):
        raise ValueError('Bad mount table JSON: expected a list')

    ret = []
    for item in data:
        try:
            mount_point = item['mount_point']
        except (KeyError, TypeError):
            raise ValueError(
                'Bad mount table JSON: no mount_point in {!r}'.format(item))
        source = item.get('source')
        if source is None:
            source = 'none'
        ret.append(MountInfo(mount_point=str(mount_point), source=str(source)))
    return ret


def find_mount_for(path, mounts):
    """
    Return the MountInfo with the longest mount_point covering path.

    Call this with a trailing slash on path. A mount point only covers
    path on a component boundary, so /mnt/x does not cover /mnt/xy/.
    This is deliberately stricter than a bare string prefix match, which
    would put /mnt/xy on the /mnt/x filesystem.
    When two mount points are equally long (a broken mount table), the
    first one wins.
    """
    result = None
    length = 0
    for mount_info in mounts:
        mount_point = mount_info.mount_point
        if not path.startswith(mount_point):
            continue
        if not (mount_point.endswith('/') or
                path[len(mount_point):len(mount_point) + 1] == '/'):
            continue
        if result is None or len(mount_point) > length:
            result = mount_info
            length = len(mount_point)
    return result


class MountTable(tuple):
    "Frozen snapshot of the mounted filesystems"

    @classmethod
    def from_file(cls, filename=MOUNTS_FILE):
        """
        Read the mount table from filename.

        Raises OSError if the file cannot be read and ValueError if it
        makes no sense.
        """
        with open(filename) as file_:
            content = file_.read()
        return cls.from_string(content)

    @classmethod
    def from_string(cls, content):
        if content.lstrip().startswith('['):
            return cls(parse_df_json(content))
        return cls(parse_mounts(content))

    def find_mount_for(self, path):
        return find_mount_for(path, self)

    def __repr__(self):
        return 'MountTable({})'.format(list(self))
