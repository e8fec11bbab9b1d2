"""Abstract data sources and models."""

from __future__ import annotations

import os
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Any


class DataSource(ABC):
    """Holds the samples a benchmark feeds to a model."""

    def __init__(self, affinities: Iterable[int] = ()) -> None:
        self._affinities = frozenset(affinities)
        self._load_lock = threading.Lock()

    @property
    def affinities(self) -> frozenset[int]:
        """CPU cores the loading thread is pinned to."""
        return self._affinities

    @abstractmethod
    def sample(self, sample_index: int, buffer_index: int) -> Any:
        """Return the data of one buffer of one sample."""

    @abstractmethod
    def available_sample_count(self) -> int:
        """Return the number of samples in the dataset."""

    @abstractmethod
    def max_samples_in_memory(self) -> int:
        """Return how many samples may be held in memory at once."""

    @abstractmethod
    def load_samples_impl(self, user: Any) -> None:
        """Load the samples described by ``user``."""

    @abstractmethod
    def unload_samples(self, user: Any) -> None:
        """Release the samples described by ``user``."""

    def load_samples(self, user: Any) -> None:
        """Load samples on a separate thread pinned to the configured CPUs."""
        errors: list[BaseException] = []

        def run() -> None:
            self._pin_current_thread()
            try:
                with self._load_lock:
                    self.load_samples_impl(user)
            except BaseException as exc:  # re-raised in the caller
                errors.append(exc)

        thread = threading.Thread(target=run, name="kilt-load-samples")
        thread.start()
        thread.join()
        if errors:
            raise errors[0]

    def _pin_current_thread(self) -> None:
        setaffinity = getattr(os, "sched_setaffinity", None)
        if setaffinity is None or not self._affinities:
            return
        try:
            setaffinity(0, self._affinities)
        except OSError:
            pass


class Model(ABC):
    """Moves samples into device inputs and device outputs into results."""

    def preprocess_samples(
        self,
        data_source: DataSource,
        samples: Any,
        callback: Callable[[Any], None],
    ) -> None:
        """Pass ``samples`` to ``callback``, possibly regrouped."""
        callback(samples)

    @abstractmethod
    def configure_workload(
        self, data_source: DataSource, samples: Any, inputs: list[Any]
    ) -> None:
        """Fill the device input buffers for ``samples``."""

    @abstractmethod
    def postprocess_results(self, samples: Any, outputs: list[Any]) -> None:
        """Turn the device output buffers into results for ``samples``."""