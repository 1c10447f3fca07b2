# stackdump_index/idsets.py
from __future__ import annotations
from typing import Iterable

from pyroaring import BitMap

# roaring bitmaps hold uint32; dump ids are positive, placeholders such as -1 are not
_MAX_ID = (1 << 32) - 1

def id_set(ids: Iterable[int] = ()) -> BitMap:
    return BitMap(int(x) for x in ids if valid_id(x))

def valid_id(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= _MAX_ID

def has(ids, value) -> bool:
    """Membership test that is False (not an error) for missing or out-of-range ids."""
    return valid_id(value) and value in ids
