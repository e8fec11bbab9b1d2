"""Configuration of the object-detection data source, model and network server."""

from __future__ import annotations

from dataclasses import dataclass

from kilt.envconfig import EnvConfig, alter_int, alter_str
from kilt.model_config import ModelConfig

DEFAULT_NUM_CHANNELS = 3
DEFAULT_SERVER_PORT = 8080


@dataclass(frozen=True)
class ObjectDetectionDataSourceConfig:
    """Shape and location of preprocessed detection images."""

    image_size: int
    images_dir: str
    available_images_file: str
    max_images_in_memory: int
    num_channels: int = DEFAULT_NUM_CHANNELS

    @classmethod
    def from_env(cls, env: EnvConfig) -> ObjectDetectionDataSourceConfig:
        """Read the settings; images must be square."""
        height = env.get_int("KILT_DATASET_OBJECT_DETECTION_IMAGE_HEIGHT")
        width = env.get_int("KILT_DATASET_OBJECT_DETECTION_IMAGE_WIDTH")
        if height != width:
            raise ValueError(f"images must be square, got {height}x{width}")
        return cls(
            image_size=height,
            num_channels=alter_int(
                env.get_raw("KILT_DATASET_OBJECT_DETECTION_IMAGE_CHANNELS"),
                DEFAULT_NUM_CHANNELS,
            ),
            images_dir=env.get_str("KILT_DATASET_OBJECT_DETECTION_PREPROCESSED_DIR"),
            available_images_file=env.get_str(
                "KILT_DATASET_OBJECT_DETECTION_PREPROCESSED_SUBSET_FOF"
            ),
            max_images_in_memory=env.get_int("LOADGEN_BUFFER_SIZE"),
        )


class DetectionModelConfig(ModelConfig):
    """Model configuration of an object-detection network."""

    def __init__(
        self,
        batch_size: int,
        input_format: str,
        output_format: str,
        priors_bin_path: str,
        max_detections: int,
        disable_nms: bool = False,
        skip_stage: str = "",
    ) -> None:
        super().__init__(batch_size, input_format, output_format)
        self.priors_bin_path = priors_bin_path
        self.max_detections = max_detections
        self.disable_nms = disable_nms
        self.skip_stage = skip_stage

    @classmethod
    def from_env(cls, env: EnvConfig) -> DetectionModelConfig:
        """Build the configuration; NMS is disabled if its variable is set at all."""
        return cls(
            env.get_int("KILT_MODEL_BATCH_SIZE"),
            env.get_str("KILT_MODEL_INPUT_FORMAT"),
            env.get_str("KILT_MODEL_OUTPUT_FORMAT"),
            priors_bin_path=env.get_str("KILT_MODEL_NMS_PRIOR_BIN_PATH"),
            max_detections=env.get_int("KILT_MODEL_NMS_MAX_DETECTIONS"),
            disable_nms=env.get_raw("KILT_MODEL_NMS_DISABLE") is not None,
            skip_stage=alter_str(env.get_raw("KILT_DEVICE_QAIC_SKIP_STAGE"), ""),
        )


@dataclass(frozen=True)
class NetworkServerConfig:
    """Port, socket count and verbosity of the network server."""

    verbosity_level: int
    num_sockets: int
    port: int = DEFAULT_SERVER_PORT

    @classmethod
    def from_env(cls, env: EnvConfig) -> NetworkServerConfig:
        """Read the server settings; the port defaults to 8080."""
        return cls(
            verbosity_level=env.get_int("KILT_VERBOSE"),
            num_sockets=env.get_int("KILT_NETWORK_NUM_SOCKETS"),
            port=alter_int(env.get_raw("KILT_NETWORK_SERVER_PORT"), DEFAULT_SERVER_PORT),
        )