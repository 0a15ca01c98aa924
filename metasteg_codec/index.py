import logging
from typing import List, Optional

import torch

from .errors import ByteNotFound, IncompleteReference

logger = logging.getLogger(__name__)

BYTE_VALUES = 256


def _check_value(value: int) -> int:
    value = int(value)
    if value < 0 or value >= BYTE_VALUES:
        raise ValueError(f"byte value {value} out of range 0..255")
    return value


def reference_tensor(reference: bytes) -> torch.Tensor:
    """View a byte buffer as a flat uint8 tensor (copied, never aliased)."""
    if len(reference) == 0:
        return torch.empty(0, dtype=torch.uint8)
    return torch.frombuffer(bytearray(reference), dtype=torch.uint8)


class OffsetIndex:
    """Positions of every byte value inside a reference buffer.

    ``order`` holds all reference positions grouped by byte value, each
    group in ascending position order. ``starts[v]`` and ``counts[v]``
    delimit the group for value ``v``.
    """

    def __init__(self, order: torch.Tensor, counts: torch.Tensor):
        self.order = order
        self.counts = counts
        self.starts = torch.cumsum(counts, dim=0) - counts

    @classmethod
    def build(cls, reference: bytes) -> "OffsetIndex":
        values = reference_tensor(reference).to(torch.long)
        counts = torch.bincount(values, minlength=BYTE_VALUES)
        # Stable sort keeps equal values in position order
        order = torch.argsort(values, stable=True)
        index = cls(order, counts)
        missing = len(index.missing_values())
        logger.debug(
            "Built offset index over %d bytes (%d distinct values, %d missing)",
            len(index),
            BYTE_VALUES - missing,
            missing,
        )
        return index

    def __len__(self) -> int:
        return int(self.order.shape[0])

    def __contains__(self, value: int) -> bool:
        return self.count(value) > 0

    def __eq__(self, other) -> bool:
        if not isinstance(other, OffsetIndex):
            return NotImplemented
        return torch.equal(self.counts, other.counts) and torch.equal(
            self.order, other.order
        )

    def count(self, value: int) -> int:
        return int(self.counts[_check_value(value)])

    def positions_for(self, value: int) -> List[int]:
        value = _check_value(value)
        start = int(self.starts[value])
        return self.order[start : start + int(self.counts[value])].tolist()

    def pick_position(
        self, value: int, policy: Optional["SelectionPolicy"] = None
    ) -> int:
        value = _check_value(value)
        if self.counts[value] == 0:
            raise ByteNotFound(value)
        policy = policy or FirstOccurrence()
        picked = policy.choose(self, torch.tensor([value], dtype=torch.long))
        return int(picked[0])

    def missing_values(self) -> List[int]:
        return (self.counts == 0).nonzero(as_tuple=True)[0].tolist()

    @property
    def is_complete(self) -> bool:
        return not self.missing_values()

    def require_complete(self) -> None:
        missing = self.missing_values()
        if missing:
            raise IncompleteReference(missing)

    def first_positions(self) -> List[int]:
        """First occurrence of every byte value, ``-1`` where absent."""
        if len(self) == 0:
            return [-1] * BYTE_VALUES
        firsts = self.order[self.starts.clamp(max=len(self) - 1)]
        return torch.where(self.counts > 0, firsts, -1).tolist()


class SelectionPolicy:
    """Chooses one reference position per requested byte value.

    ``values`` is a 1-D long tensor of byte values that all occur in the
    index; the result is a long tensor of positions of the same length.
    """

    name = "abstract"

    def choose(self, index: OffsetIndex, values: torch.Tensor) -> torch.Tensor:
        raise NotImplementedError


class FirstOccurrence(SelectionPolicy):
    name = "first"

    def choose(self, index: OffsetIndex, values: torch.Tensor) -> torch.Tensor:
        return index.order[index.starts[values]]


class LastOccurrence(SelectionPolicy):
    name = "last"

    def choose(self, index: OffsetIndex, values: torch.Tensor) -> torch.Tensor:
        return index.order[index.starts[values] + index.counts[values] - 1]


class UniformRandom(SelectionPolicy):
    name = "random"

    def __init__(
        self, seed: Optional[int] = None, generator: Optional[torch.Generator] = None
    ):
        if generator is None and seed is not None:
            generator = torch.Generator()
            generator.manual_seed(seed)
        self.generator = generator

    def choose(self, index: OffsetIndex, values: torch.Tensor) -> torch.Tensor:
        counts = index.counts[values]
        draws = torch.rand(
            values.shape[0], generator=self.generator, dtype=torch.float64
        )
        picks = torch.minimum((draws * counts).to(torch.long), counts - 1)
        return index.order[index.starts[values] + picks]


_POLICIES = {
    FirstOccurrence.name: FirstOccurrence,
    LastOccurrence.name: LastOccurrence,
    UniformRandom.name: UniformRandom,
}


def get_policy(name: str, seed: Optional[int] = None) -> SelectionPolicy:
    lowered = name.lower()
    if lowered not in _POLICIES:
        raise ValueError(
            f"Unknown selection policy {name!r}; expected one of: "
            + ", ".join(sorted(_POLICIES))
        )
    if lowered == UniformRandom.name:
        return UniformRandom(seed=seed)
    return _POLICIES[lowered]()


__all__ = [
    "BYTE_VALUES",
    "OffsetIndex",
    "SelectionPolicy",
    "FirstOccurrence",
    "LastOccurrence",
    "UniformRandom",
    "get_policy",
    "reference_tensor",
]
