"""Object-detection model and image data source."""

from __future__ import annotations

import logging
import threading
from array import array
from collections.abc import Callable, Iterable, MutableSequence, Sequence
from pathlib import Path
from typing import Any, NamedTuple

from kilt.interfaces import DataSource, Model
from kilt.model_config import Config, IOType
from kilt.nms import NUM_COORDINATES, NmsAbp

_log = logging.getLogger(__name__)

RESULT_WIDTH = 7
TENSORRT = "tensorrt"

Response = tuple[int, list[float]]
CompleteCallback = Callable[[list[Response]], None]


class QuerySample(NamedTuple):
    """A query: the caller's response id and the dataset index of the image."""

    id: int
    index: int


def uint8_to_int8(
    value: int,
    scale: float = 0.0186584499,
    offset: float = 114.0,
    max_abs: float = 2.64064,
) -> int:
    """Requantise an unsigned 8-bit pixel to the signed 8-bit range."""
    converted = (float(value) - offset) * scale
    converted = min(max(converted, -max_abs), max_abs)
    return int(converted * 127.0 / max_abs)


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


class WorkingBuffers:
    """Per-batch scratch space for detections and flattened results."""

    def __init__(self, batch_size: int) -> None:
        self.batch_size = batch_size
        self.nms_results: list[list[list[float]]] = [[] for _ in range(batch_size)]
        self.reformatted_results: list[list[float]] = [[] for _ in range(batch_size)]

    def reset(self) -> None:
        """Forget the detections of the previous batch."""
        for detections in self.nms_results:
            detections.clear()


class ObjectDetectionModel(Model):
    """Copies images into the network input and turns its outputs into detections."""

    boxes_index = 0
    classes_index = 1

    def __init__(
        self,
        config: Config,
        nms: NmsAbp | None,
        complete: CompleteCallback | None = None,
    ) -> None:
        self._config = config
        self.nms = nms
        self._complete = complete
        self.completed: list[Response] = []
        self._pool: list[WorkingBuffers] = []
        self._pool_lock = threading.Lock()

    @property
    def _model_cfg(self) -> Any:
        return self._config.model_cfg

    @property
    def _datasource_cfg(self) -> Any:
        return self._config.datasource_cfg

    @property
    def device_name(self) -> str:
        return getattr(self._model_cfg, "device_name", "") or ""

    def _image_elements(self) -> int:
        cfg = self._datasource_cfg
        return cfg.image_size * cfg.image_size * cfg.num_channels

    def configure_workload(
        self,
        data_source: DataSource,
        samples: Sequence[QuerySample],
        inputs: list[MutableSequence[Any]],
    ) -> None:
        """Copy each sample's image into its slot of the first input buffer."""
        buf_size = self._image_elements()
        dest = inputs[0]
        convert = self.device_name == TENSORRT
        for slot, sample in enumerate(samples):
            source = list(data_source.sample(sample.index, 0))[:buf_size]
            if convert:
                source = [uint8_to_int8(v) for v in source]
            _assign(dest, slot * buf_size, source)

    def postprocess_results(
        self, samples: Sequence[QuerySample], outputs: list[Sequence[Any]]
    ) -> None:
        """Report ``[index, y1, x1, y2, x2, score, class]`` rows for each sample."""
        if self.device_name == TENSORRT:
            responses = self._postprocess_tensorrt(samples, outputs)
        else:
            responses = self._postprocess_nms(samples, outputs)
        if self._complete is None:
            self.completed.extend(responses)
        else:
            self._complete(responses)

    def _postprocess_tensorrt(
        self, samples: Sequence[QuerySample], outputs: list[Sequence[Any]]
    ) -> list[Response]:
        detections = outputs[0]
        last_index = self._model_cfg.output_size(0) - 1
        responses: list[Response] = []
        for sample in samples:
            count = int(detections[last_index])
            for n in range(count):
                detections[n * RESULT_WIDTH] = float(sample.index)
            responses.append(
                (sample.id, [float(v) for v in detections[:count * RESULT_WIDTH]])
            )
        return responses

    def _postprocess_nms(
        self, samples: Sequence[QuerySample], outputs: list[Sequence[Any]]
    ) -> list[Response]:
        model_cfg = self._model_cfg
        buffers = self._pop_working_buffers()
        responses: list[Response] = []
        try:
            for slot, sample in enumerate(samples):
                if model_cfg.disable_nms:
                    result = [float(sample.index)] + [0.0] * (RESULT_WIDTH - 1)
                else:
                    result = self._detect(slot, sample, outputs, buffers)
                buffers.reformatted_results[slot] = result
                responses.append((sample.id, list(result)))
        finally:
            self._push_working_buffers(buffers)
        return responses

    def _detect(
        self,
        slot: int,
        sample: QuerySample,
        outputs: list[Sequence[Any]],
        buffers: WorkingBuffers,
    ) -> list[float]:
        if self.nms is None:
            raise RuntimeError("NMS is enabled but no NMS processor was given")
        params = self.nms.params
        loc_size = params.total_num_boxes * NUM_COORDINATES
        conf_size = params.total_num_boxes * params.num_classes
        boxes = outputs[self.boxes_index]
        classes = outputs[self.classes_index]
        loc = boxes[slot * loc_size:(slot + 1) * loc_size]
        conf = classes[slot * conf_size:(slot + 1) * conf_size]

        detections = buffers.nms_results[slot]
        detections.extend(
            self.nms.anchor_box_processing(loc, conf, float(sample.index))
        )
        limit = self._model_cfg.max_detections + 1
        return [
            float(value)
            for row in detections[:limit]
            for value in row[:RESULT_WIDTH]
        ]

    def _pop_working_buffers(self) -> WorkingBuffers:
        with self._pool_lock:
            if self._pool:
                return self._pool.pop()
        return WorkingBuffers(self._model_cfg.batch_size)

    def _push_working_buffers(self, buffers: WorkingBuffers) -> None:
        buffers.reset()
        with self._pool_lock:
            self._pool.append(buffers)


class ObjectDetectionDataSource(DataSource):
    """Preprocessed images loaded from a directory on demand."""

    def __init__(
        self,
        config: Config,
        filenames: Sequence[str],
        dataset_dir: str,
        affinities: Iterable[int] = (),
    ) -> None:
        super().__init__(affinities)
        self._config = config
        self.filenames = list(filenames)
        self.dataset_dir = dataset_dir
        self.idx2loc: dict[int, int] = {}
        self._loaded_names: list[str] = []
        self._images: list[array] = []

    @property
    def _datasource_cfg(self) -> Any:
        return self._config.datasource_cfg

    def _typecode(self) -> str:
        if self._config.model_cfg.input_datatype(0) is IOType.FLOAT32:
            return "f"
        return "B"

    def load_filenames(self, indices: Iterable[int]) -> list[str]:
        """Select the files of ``indices`` and remember where each one goes."""
        available = len(self.filenames)
        names: list[str] = []
        self.idx2loc = {}
        for index in indices:
            if not 0 <= index < available:
                raise IndexError(
                    f"Trying to load filename[{index}] when only "
                    f"{available} images are available"
                )
            self.idx2loc[index] = len(names)
            names.append(self.filenames[index])
        self._loaded_names = names
        return list(names)

    def load_samples_impl(self, user: Iterable[int]) -> None:
        """Load the images whose dataset indices are listed in ``user``."""
        self.load_filenames(user)
        cfg = self._datasource_cfg
        elements = cfg.image_size * cfg.image_size * cfg.num_channels
        typecode = self._typecode()
        images: list[array] = []
        for name in self._loaded_names:
            path = Path(self.dataset_dir) / name
            try:
                data = path.read_bytes()
            except OSError as exc:
                raise OSError(f"Failed to open image data {path}") from exc
            image = array(typecode)
            wanted = elements * image.itemsize
            data = data[:wanted].ljust(wanted, b"\0")
            image.frombytes(data)
            images.append(image)
            _log.debug("Loaded file: %s", path)
        self._images = images

    def unload_samples(self, user: Any) -> None:
        """Release every loaded image."""
        self._images = []

    def sample(self, sample_index: int, buffer_index: int = 0) -> array:
        """Return the pixels of the loaded image with dataset index ``sample_index``."""
        try:
            return self._images[self.idx2loc[sample_index]]
        except (KeyError, IndexError):
            raise KeyError(f"image {sample_index} is not loaded") from None

    def available_sample_count(self) -> int:
        return len(self.filenames)

    def max_samples_in_memory(self) -> int:
        return self._datasource_cfg.max_images_in_memory