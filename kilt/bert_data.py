"""Tokenized SQuAD samples held in memory for the BERT client."""

from __future__ import annotations

from array import array
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from kilt.interfaces import DataSource
from kilt.model_config import Config
from kilt.squad_config import SquadDataSourceConfig


def read_uint64_file(path: str | Path) -> array:
    """Read a file of native-endian unsigned 64-bit integers.

    Trailing bytes that do not make up a whole value are ignored.
    """
    data = Path(path).read_bytes()
    values = array("Q")
    usable = len(data) - len(data) % values.itemsize
    values.frombytes(data[:usable])
    return values


class BertDataSource(DataSource):
    """Input ids, input masks and segment ids of a tokenized dataset."""

    def __init__(self, config: Config, affinities: Iterable[int] = ()) -> None:
        super().__init__(affinities)
        self._config = config
        self._buffers: tuple[array, array, array] = (array("Q"), array("Q"), array("Q"))

    @property
    def _datasource_cfg(self) -> SquadDataSourceConfig:
        return self._config.datasource_cfg

    def load_samples_impl(self, user: Any) -> None:
        """Load the whole dataset; ``user`` is ignored."""
        cfg = self._datasource_cfg
        self._buffers = (
            read_uint64_file(cfg.input_ids),
            read_uint64_file(cfg.input_mask),
            read_uint64_file(cfg.segment_ids),
        )

    def unload_samples(self, user: Any) -> None:
        """Keep the dataset in memory; nothing to release."""

    def sample(self, sample_index: int, buffer_index: int) -> memoryview:
        """Return one sequence: buffer 0 is input ids, 1 the mask, 2 segment ids."""
        if buffer_index not in (0, 1, 2):
            raise IndexError(f"Invalid input pointer index {buffer_index}.")
        seq_len = self._datasource_cfg.sequence_length
        offset = sample_index * seq_len
        return memoryview(self._buffers[buffer_index])[offset:offset + seq_len]

    def available_sample_count(self) -> int:
        return self._datasource_cfg.dataset_size

    def max_samples_in_memory(self) -> int:
        return self._datasource_cfg.buffer_size