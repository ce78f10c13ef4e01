"""Deterministic, seed-derived RNG streams that never touch global random state."""

from __future__ import annotations

import hashlib
import random
from dataclasses import dataclass, field


@dataclass
class DeterministicRNG:
    """Owns named deterministic streams derived from one experiment seed."""

    seed: int
    _streams: dict[str, random.Random] = field(default_factory=dict, init=False, repr=False)

    @staticmethod
    def derive_seed(seed: int, name: str) -> int:
        # Stable across processes, unlike built-in hash().
        digest = hashlib.sha256(f"{seed}:{name}".encode("utf-8")).digest()
        return int.from_bytes(digest[:8], byteorder="big", signed=False)

    def stream(self, name: str) -> random.Random:
        """Return the independent stream called ``name``, creating it once."""
        if name not in self._streams:
            self._streams[name] = random.Random(self.derive_seed(self.seed, name))
        return self._streams[name]

    def personality_stream(self, agent_id: str) -> random.Random:
        return self.stream(f"{agent_id}:personality")

    def search_stream(self, agent_id: str) -> random.Random:
        return self.stream(f"{agent_id}:search")
