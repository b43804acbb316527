"""Fragment directory layout.

Shard files live side by side in one directory, named
``<stripe_index>_<shard_index>``. Each file is owned by exactly one
(stripe, shard) pair and is written once.
"""

from __future__ import annotations

import re
from pathlib import Path

_SHARD_NAME = re.compile(r"^(\d+)_(\d+)$")


class FragmentStore:
    """Maps (stripe, shard) pairs to files under a fragments directory."""

    def __init__(self, fragments_dir: str | Path):
        self.root = Path(fragments_dir)

    def shard_path(self, stripe_index: int, shard_index: int) -> Path:
        return self.root / f"{stripe_index}_{shard_index}"

    def ensure(self) -> None:
        """Create the fragments directory if needed."""
        self.root.mkdir(parents=True, exist_ok=True)

    def exists(self, stripe_index: int, shard_index: int) -> bool:
        return self.shard_path(stripe_index, shard_index).is_file()

    def list_shards(self) -> list[tuple[int, int]]:
        """Sorted (stripe, shard) pairs with a file present."""
        if not self.root.is_dir():
            return []
        found = []
        for entry in self.root.iterdir():
            match = _SHARD_NAME.match(entry.name)
            if match and entry.is_file():
                found.append((int(match.group(1)), int(match.group(2))))
        return sorted(found)

    def __repr__(self) -> str:
        return f"FragmentStore({str(self.root)!r})"
