"""Packing of variable-length sequences into fixed-length model inputs."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

_Strategy = tuple[int, list[int]]
_Lookup = dict[int, list[_Strategy]]


def _add_pack(
    lengths: list[int],
    count: int,
    pending: _Lookup,
    complete: _Lookup,
    limit: int,
    offset: int,
) -> None:
    target = complete if len(lengths) == limit or offset == 0 else pending
    target.setdefault(offset, []).append((count, lengths))


def pack(
    samples: Iterable[Sequence[Any]], max_seq_len: int, max_seq_per_pack: int
) -> list[list[Sequence[Any]]]:
    """Group samples so that each group's total length fits ``max_seq_len``.

    Each sample is a pair whose second element is its sequence length.
    A group holds at most ``max_seq_per_pack`` samples. Every sample ends up
    in exactly one group.
    """
    histogram: list[list[Sequence[Any]]] = [[] for _ in range(max_seq_len)]
    for sample in samples:
        length = sample[1]
        if not 1 <= length <= max_seq_len:
            raise ValueError(
                f"sequence length {length} outside 1..{max_seq_len}"
            )
        histogram[length - 1].append(sample)

    complete: _Lookup = {}
    pending: _Lookup = {}

    for i in range(max_seq_len):
        length = max_seq_len - i
        remaining = len(histogram[length - 1])
        offset = i + 1
        while remaining > 0:
            key = length + offset
            candidates = pending.get(key)
            if candidates:
                to_pack, base = candidates.pop()
                count = min(to_pack, remaining)
                if to_pack > remaining:
                    candidates.append((to_pack - remaining, base))
                    remaining = 0
                else:
                    remaining -= to_pack
                _add_pack(
                    base + [length], count, pending, complete, max_seq_per_pack, offset
                )
                if not candidates:
                    del pending[key]
            else:
                offset -= 1

            if offset < 0:
                _add_pack([length], remaining, pending, complete, max_seq_per_pack, i)
                remaining = 0

    for key, entries in pending.items():
        complete.setdefault(key, []).extend(entries)

    packed: list[list[Sequence[Any]]] = []
    for key in sorted(complete):
        for count, lengths in complete[key]:
            for _ in range(count):
                packed.append([histogram[size - 1].pop() for size in lengths])
    return packed