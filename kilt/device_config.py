"""Configuration of the supported inference devices."""

from __future__ import annotations

from dataclasses import dataclass

from kilt.envconfig import EnvConfig, alter_int, alter_str


@dataclass(frozen=True)
class QAicDeviceConfig:
    """Settings of a QAic accelerator card."""

    model_root: str | None = None
    activation_count: int = 1
    set_size: int = 4
    threads_per_queue: int = 4
    skip_stage: str = ""
    input_select: int = 0
    samples_queue_depth: int = 8
    ringfence_driver: bool = True
    scheduler_yield_time: int = -1
    enqueue_yield_time: int = -1
    loopback: bool = False

    @classmethod
    def from_env(cls, env: EnvConfig) -> QAicDeviceConfig:
        """Read the settings from the environment, with defaults."""
        raw = env.get_raw
        return cls(
            model_root=raw("KILT_MODEL_ROOT"),
            activation_count=alter_int(raw("KILT_DEVICE_QAIC_ACTIVATION_COUNT"), 1),
            set_size=alter_int(raw("KILT_DEVICE_QAIC_QUEUE_LENGTH"), 4),
            threads_per_queue=alter_int(raw("KILT_DEVICE_QAIC_THREADS_PER_QUEUE"), 4),
            skip_stage=alter_str(raw("KILT_DEVICE_QAIC_SKIP_STAGE"), ""),
            input_select=alter_int(raw("KILT_DEVICE_QAIC_INPUT_SELECT"), 0),
            samples_queue_depth=alter_int(
                raw("KILT_DEVICE_QAIC_SAMPLES_QUEUE_DEPTH"), 8
            ),
            ringfence_driver=env.get_opt_bool("KILT_DEVICE_QAIC_RINGFENCE_DRIVER", True),
            scheduler_yield_time=alter_int(
                raw("KILT_DEVICE_QAIC_SCHEDULER_YIELD_TIME"), -1
            ),
            enqueue_yield_time=alter_int(raw("KILT_DEVICE_QAIC_ENQUEUE_YIELD_TIME"), -1),
            loopback=env.get_opt_bool("KILT_DEVICE_QAIC_LOOPBACK", False),
        )


@dataclass(frozen=True)
class SnpeDeviceConfig:
    """Settings of an SNPE runtime device."""

    model_root: str
    backend_type: str
    performance_profile: str

    @classmethod
    def from_env(cls, env: EnvConfig) -> SnpeDeviceConfig:
        """Read the settings from the environment; all are required."""
        return cls(
            model_root=env.get_str("KILT_MODEL_ROOT"),
            backend_type=env.get_str("KILT_BACKEND_TYPE"),
            performance_profile=env.get_str("SNPE_PERFORMANCE_PROFILE"),
        )