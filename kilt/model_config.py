"""Model input/output description and the aggregate configuration."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from kilt.envconfig import EnvConfig

_log = logging.getLogger(__name__)

_STOI_RE = re.compile(r"\s*([+-]?[0-9]+)")


class IOType(Enum):
    """Element types of model inputs and outputs."""

    FLOAT16 = "FLOAT16"
    FLOAT32 = "FLOAT32"
    INT8 = "INT8"
    INT16 = "INT16"
    INT32 = "INT32"
    INT64 = "INT64"
    UINT8 = "UINT8"
    UINT16 = "UINT16"
    UINT32 = "UINT32"
    UINT64 = "UINT64"
    HALF = "HALF"

    @property
    def size(self) -> int:
        """Size of one element in bytes."""
        try:
            return _TYPE_SIZES[self]
        except KeyError:
            _log.error("type not handled: %s", self.name)
            return 8


_TYPE_SIZES = {
    IOType.INT8: 1,
    IOType.UINT8: 1,
    IOType.FLOAT16: 2,
    IOType.INT16: 2,
    IOType.UINT16: 2,
    IOType.FLOAT32: 4,
    IOType.INT32: 4,
    IOType.UINT32: 4,
    IOType.INT64: 8,
    IOType.UINT64: 8,
}


def io_type_from_str(text: str) -> IOType:
    """Return the type named ``text``; unknown names give FLOAT32."""
    try:
        return IOType[text]
    except KeyError:
        _log.error("string doesn't correspond to type: %r", text)
        return IOType.FLOAT32


def _stoi(text: str) -> int:
    match = _STOI_RE.match(text)
    if match is None:
        raise ValueError(f"invalid dimension {text!r}")
    return int(match.group(1))


def parse_format(text: str, batch_size: int) -> list[tuple[IOType, list[int]]]:
    """Parse ``TYPE,d0,d1,...:TYPE,...`` into types and dimensions.

    A leading dimension of -1 is replaced with ``batch_size``; any other
    leading dimension is kept as fixed by the model.
    """
    buffers: list[tuple[IOType, list[int]]] = []
    for part in text.split(":"):
        type_name, *fields = part.split(",")
        io_type = io_type_from_str(type_name)
        dims = [_stoi(value) for value in fields]
        if not dims:
            raise ValueError(f"Ill formatted format string {text!r}")
        if dims[0] != -1 and dims[0] != batch_size:
            _log.info(
                "Model dimension is fixed, failed to set batch size to %d", batch_size
            )
        else:
            _log.info("Setting batch size to %d", batch_size)
            dims[0] = batch_size
        buffers.append((io_type, dims))
    return buffers


class ModelConfig:
    """Types, shapes and buffer sizes of a model's inputs and outputs."""

    def __init__(self, batch_size: int, input_format: str, output_format: str) -> None:
        if batch_size < 1:
            _log.error("Batch size set to invalid size %d", batch_size)
        if input_format is None or output_format is None:
            raise ValueError("No input/output format string found")
        self.batch_size = batch_size

        inputs = parse_format(input_format, batch_size)
        outputs = parse_format(output_format, batch_size)

        self._input_types = [io_type for io_type, _ in inputs]
        self._input_dims = [dims for _, dims in inputs]
        self._output_types = [io_type for io_type, _ in outputs]
        self._output_dims = [dims for _, dims in outputs]

        self._input_sizes = [math.prod(dims) for dims in self._input_dims]
        self._output_sizes = [math.prod(dims) for dims in self._output_dims]
        self._input_byte_sizes = [
            size * io_type.size for size, io_type in zip(self._input_sizes, self._input_types)
        ]
        self._output_byte_sizes = [
            size * io_type.size
            for size, io_type in zip(self._output_sizes, self._output_types)
        ]

    @classmethod
    def from_env(cls, env: EnvConfig) -> ModelConfig:
        """Build the configuration from the environment."""
        return cls(
            env.get_int("KILT_MODEL_BATCH_SIZE"),
            env.get_str("KILT_MODEL_INPUT_FORMAT"),
            env.get_str("KILT_MODEL_OUTPUT_FORMAT"),
        )

    @property
    def input_count(self) -> int:
        return len(self._input_dims)

    @property
    def output_count(self) -> int:
        return len(self._output_dims)

    def input_datatype(self, index: int) -> IOType:
        return self._input_types[index]

    def output_datatype(self, index: int) -> IOType:
        return self._output_types[index]

    def input_dimensions(self, index: int) -> list[int]:
        return list(self._input_dims[index])

    def output_dimensions(self, index: int) -> list[int]:
        return list(self._output_dims[index])

    def input_size(self, index: int) -> int:
        """Number of elements in input ``index``."""
        return self._input_sizes[index]

    def output_size(self, index: int) -> int:
        """Number of elements in output ``index``."""
        return self._output_sizes[index]

    def input_byte_size(self, index: int) -> int:
        return self._input_byte_sizes[index]

    def output_byte_size(self, index: int) -> int:
        return self._output_byte_sizes[index]


@dataclass
class ServerConfig:
    """Server-wide settings: devices, data sources and timing."""

    max_wait: int = 0
    verbosity: int = 0
    verbosity_server: int = 0
    batch_size: int = 1
    device_ids: list[int] = field(default_factory=list)
    device_affinities: dict[int, list[int]] = field(default_factory=dict)
    data_source_for_device: dict[int, int] = field(default_factory=dict)
    data_source_affinities: list[list[int]] = field(default_factory=list)
    unique_server_id: str = ""
    scheduler_yield_time: int = 0
    dispatch_yield_time: int = 0

    @property
    def device_count(self) -> int:
        return len(self.device_ids)

    def device_id(self, index: int) -> int:
        return self.device_ids[index]

    def device_affinity(self, device_id: int) -> list[int]:
        return list(self.device_affinities[device_id])

    def data_source_id_for_device(self, device: int) -> int:
        return self.data_source_for_device[device]

    @property
    def data_source_count(self) -> int:
        return len(self.data_source_affinities)

    def data_source_affinity(self, data_source_id: int) -> list[int]:
        return list(self.data_source_affinities[data_source_id])


@dataclass
class Config:
    """The server, device, model and data source configurations together."""

    server_cfg: ServerConfig | None = None
    device_cfg: Any = None
    model_cfg: ModelConfig | None = None
    datasource_cfg: Any = None