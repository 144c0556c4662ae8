"""Choosing the kind of last-write-wins map to create."""

from __future__ import annotations

import os
from typing import Union

from emitterkit.crdt.durable import Durable
from emitterkit.crdt.volatile import Volatile


def new_map(durable: bool, path: Union[str, "os.PathLike[str]"] = "") -> Union[Durable, Volatile]:
    """Create a durable map at ``path`` (in memory if empty) or a volatile one."""
    if durable:
        return Durable(path)
    return Volatile()