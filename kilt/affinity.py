"""CPU affinity of accelerator cards on known server layouts."""

from __future__ import annotations

from enum import Enum


class Layout(Enum):
    """Server layouts with distinct card-to-CPU wiring."""

    DEFAULT = "default"
    R282 = "r282"
    G292_CONFA = "g292_confa"
    G292_CONFB = "g292_confb"


def affinity_card(index: int, layout: Layout = Layout.DEFAULT) -> int:
    """Return the first CPU core associated with card ``index``."""
    if layout is Layout.G292_CONFB:
        if index == 0:
            return 4
        if index == 1:
            return 68
        if index < 10:
            return 64 + (index - 2) * 8
        return (index - 10) * 8
    if layout is Layout.G292_CONFA:
        return (-128 if index > 7 else 0) + 64 + 8 * index
    if layout is Layout.R282:
        return 4 * index if index < 8 else 0
    return 4 * index