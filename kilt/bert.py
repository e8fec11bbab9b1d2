"""BERT question-answering model over padded or packed sequences."""

from __future__ import annotations

import threading
from array import array
from collections.abc import Callable, Iterable, MutableSequence, Sequence
from enum import Enum
from typing import Any, NamedTuple

from kilt.bert_data import BertDataSource
from kilt.interfaces import DataSource, Model
from kilt.model_config import Config, IOType
from kilt.pack import pack

ORIG_SEQUENCE_LENGTH = 384
PACKED_LENGTHS_SIZE = 8
MAX_SEQUENCES_PER_PACK = 3
PADDING_LOGIT = -10000.0

_SUPPORTED_INPUT_TYPES = frozenset(
    {IOType.UINT64, IOType.INT64, IOType.UINT32, IOType.INT32}
)

Response = tuple[int, list[float]]
CompleteCallback = Callable[[list[Response]], None]


class BertVariant(Enum):
    """How samples are laid out in the model inputs."""

    ORIG = "orig"
    PACKED = "packed"
    DISTILBERT_PACKED = "distilbert_packed"


class SizedSample(NamedTuple):
    """A query sample with its sequence length second, as packing expects."""

    index: int
    length: int = 0
    id: int = 0


def _assign(buffer: MutableSequence[Any], start: int, values: Iterable[Any]) -> None:
    """Overwrite ``buffer`` from ``start`` with ``values`` without resizing it."""
    items = list(values)
    stop = start + len(items)
    if stop > len(buffer):
        raise IndexError(
            f"writing {len(items)} values at {start} overruns buffer of {len(buffer)}"
        )
    if isinstance(buffer, array):
        buffer[start:stop] = array(buffer.typecode, items)
    else:
        buffer[start:stop] = items


def apply_mask(
    mask: MutableSequence[Any], seq_len: int, offset: int, packed_seq_len: int
) -> None:
    """Set the ``seq_len`` square block at (``offset``, ``offset``) of a mask to 1.

    ``mask`` is a row-major ``packed_seq_len`` x ``packed_seq_len`` matrix.
    """
    ones = [1] * seq_len
    for row in range(offset, offset + seq_len):
        _assign(mask, row * packed_seq_len + offset, ones)


class BertModel(Model):
    """Moves SQuAD samples into BERT inputs and BERT logits into responses."""

    def __init__(
        self,
        config: Config,
        variant: BertVariant = BertVariant.PACKED,
        complete: CompleteCallback | None = None,
    ) -> None:
        self._config = config
        self.variant = variant
        self._complete = complete
        self.completed: list[Response] = []
        self.distilbert = config.model_cfg.input_count == 3
        self._lock = threading.Lock()
        self._sample_count = 0
        self._sample_delta = 0

    @property
    def sample_count(self) -> int:
        """Samples configured but not yet post-processed."""
        return self._sample_count

    @property
    def sample_delta(self) -> int:
        """Samples configured in total."""
        return self._sample_delta

    @property
    def _packed_seq_len(self) -> int:
        return self._config.model_cfg.sequence_length

    @property
    def _dataset_seq_len(self) -> int:
        return self._config.datasource_cfg.sequence_length

    def preprocess_samples(
        self,
        data_source: DataSource,
        samples: Iterable[SizedSample],
        callback: Callable[[list[SizedSample]], None],
    ) -> None:
        """Measure each sample from its input mask, pack them and hand on each pack."""
        seq_len = self._dataset_seq_len
        sized = [
            sample._replace(length=int(sum(data_source.sample(sample.index, 1)[:seq_len])))
            for sample in samples
        ]
        for group in pack(sized, self._packed_seq_len, MAX_SEQUENCES_PER_PACK):
            callback(group)

    def configure_workload(
        self,
        data_source: DataSource,
        samples: Sequence[SizedSample],
        inputs: list[MutableSequence[Any]],
    ) -> None:
        """Fill the model inputs for ``samples`` according to the variant."""
        with self._lock:
            self._sample_count += len(samples)
            self._sample_delta += len(samples)
        if self.variant is BertVariant.ORIG:
            self._configure_orig(data_source, samples, inputs)
        elif self.variant is BertVariant.PACKED:
            self._configure_packed(data_source, samples, inputs)
        else:
            self._configure_distilbert_packed(data_source, samples, inputs)

    def _configure_orig(
        self,
        data_source: DataSource,
        samples: Sequence[SizedSample],
        inputs: list[MutableSequence[Any]],
    ) -> None:
        for buffer in inputs[:3]:
            _assign(buffer, 0, [0] * ORIG_SEQUENCE_LENGTH)
        first = samples[0]
        for buffer_index, buffer in enumerate(inputs[:3]):
            source = data_source.sample(first.index, buffer_index)
            _assign(buffer, 0, source[:first.length])

    def _configure_packed(
        self,
        data_source: DataSource,
        samples: Sequence[SizedSample],
        inputs: list[MutableSequence[Any]],
    ) -> None:
        seq = self._packed_seq_len
        ids, lengths, segments, positions = inputs[:4]
        _assign(ids, 0, [0] * seq)
        _assign(lengths, 0, [0] * PACKED_LENGTHS_SIZE)
        _assign(segments, 0, [0] * seq)
        _assign(positions, 0, [0] * seq)

        offset = 0
        for slot, sample in enumerate(samples):
            n = sample.length
            _assign(ids, offset, data_source.sample(sample.index, 0)[:n])
            _assign(segments, offset, data_source.sample(sample.index, 2)[:n])
            _assign(positions, offset, range(n))
            _assign(lengths, slot, [n])
            offset += n

    def _configure_distilbert_packed(
        self,
        data_source: DataSource,
        samples: Sequence[SizedSample],
        inputs: list[MutableSequence[Any]],
    ) -> None:
        seq = self._packed_seq_len
        ids, mask, positions = inputs[:3]
        _assign(ids, 0, [0] * seq)
        _assign(mask, 0, [0] * (seq * seq))
        _assign(positions, 0, [0] * seq)

        offset = 0
        for sample in samples:
            n = sample.length
            apply_mask(mask, n, offset, seq)
            _assign(ids, offset, data_source.sample(sample.index, 0)[:n])
            _assign(positions, offset, range(n))
            offset += n

    def postprocess_results(
        self, samples: Sequence[SizedSample], outputs: list[Sequence[Any]]
    ) -> None:
        """Interleave start and end logits per sample and report the responses."""
        with self._lock:
            self._sample_count -= len(samples)
        seq_len = self._dataset_seq_len
        starts, ends = outputs[0], outputs[1]
        responses: list[Response] = []
        offset = 0
        for sample in samples:
            n = sample.length
            result = [PADDING_LOGIT] * (seq_len * 2)
            result[0:2 * n:2] = [float(v) for v in starts[offset:offset + n]]
            result[1:2 * n:2] = [float(v) for v in ends[offset:offset + n]]
            offset += n
            responses.append((sample.id, result))

        if self._complete is None:
            self.completed.extend(responses)
        else:
            self._complete(responses)


def _check_input_type(config: Config, what: str) -> None:
    if config.model_cfg.input_datatype(0) not in _SUPPORTED_INPUT_TYPES:
        raise ValueError(f"Invalid data type for {what}")


def model_construct(
    config: Config,
    variant: BertVariant = BertVariant.PACKED,
    complete: CompleteCallback | None = None,
) -> BertModel:
    """Build a BERT model for a configuration with integer inputs."""
    _check_input_type(config, "model construct")
    return BertModel(config, variant, complete)


def data_source_construct(config: Config, affinities: Iterable[int] = ()) -> BertDataSource:
    """Build the SQuAD data source for a configuration with integer inputs."""
    _check_input_type(config, "datasource construct")
    return BertDataSource(config, affinities)