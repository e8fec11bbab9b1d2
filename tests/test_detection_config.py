import pytest

from kilt.detection_config import (
    DetectionModelConfig,
    NetworkServerConfig,
    ObjectDetectionDataSourceConfig,
)
from kilt.envconfig import ConfigError, EnvConfig

DATA_ENV = {
    "KILT_DATASET_OBJECT_DETECTION_IMAGE_HEIGHT": "300",
    "KILT_DATASET_OBJECT_DETECTION_IMAGE_WIDTH": "300",
    "KILT_DATASET_OBJECT_DETECTION_PREPROCESSED_DIR": "/images",
    "KILT_DATASET_OBJECT_DETECTION_PREPROCESSED_SUBSET_FOF": "files.txt",
    "LOADGEN_BUFFER_SIZE": "32",
}

MODEL_ENV = {
    "KILT_MODEL_BATCH_SIZE": "2",
    "KILT_MODEL_INPUT_FORMAT": "UINT8,-1,300,300,3",
    "KILT_MODEL_OUTPUT_FORMAT": "FLOAT32,-1,1917,4:FLOAT32,-1,1917,91",
    "KILT_MODEL_NMS_PRIOR_BIN_PATH": "/priors",
    "KILT_MODEL_NMS_MAX_DETECTIONS": "100",
}


def test_data_source_from_env():
    cfg = ObjectDetectionDataSourceConfig.from_env(EnvConfig(environ=DATA_ENV))
    assert cfg.image_size == 300
    assert cfg.num_channels == 3
    assert cfg.images_dir == "/images"
    assert cfg.available_images_file == "files.txt"
    assert cfg.max_images_in_memory == 32


def test_data_source_channels_override():
    environ = dict(DATA_ENV, KILT_DATASET_OBJECT_DETECTION_IMAGE_CHANNELS="1")
    cfg = ObjectDetectionDataSourceConfig.from_env(EnvConfig(environ=environ))
    assert cfg.num_channels == 1


def test_data_source_rejects_non_square():
    environ = dict(DATA_ENV, KILT_DATASET_OBJECT_DETECTION_IMAGE_WIDTH="200")
    with pytest.raises(ValueError):
        ObjectDetectionDataSourceConfig.from_env(EnvConfig(environ=environ))


def test_data_source_missing_dir():
    environ = {
        k: v
        for k, v in DATA_ENV.items()
        if k != "KILT_DATASET_OBJECT_DETECTION_PREPROCESSED_DIR"
    }
    with pytest.raises(ConfigError):
        ObjectDetectionDataSourceConfig.from_env(EnvConfig(environ=environ))


def test_model_from_env():
    cfg = DetectionModelConfig.from_env(EnvConfig(environ=MODEL_ENV))
    assert cfg.priors_bin_path == "/priors"
    assert cfg.max_detections == 100
    assert cfg.disable_nms is False
    assert cfg.batch_size == 2
    assert cfg.output_count == 2


@pytest.mark.parametrize("value", ["", "0", "yes"])
def test_model_nms_disabled_when_variable_present(value):
    environ = dict(MODEL_ENV, KILT_MODEL_NMS_DISABLE=value)
    cfg = DetectionModelConfig.from_env(EnvConfig(environ=environ))
    assert cfg.disable_nms is True


def test_model_requires_max_detections():
    environ = {k: v for k, v in MODEL_ENV.items() if k != "KILT_MODEL_NMS_MAX_DETECTIONS"}
    with pytest.raises(ConfigError):
        DetectionModelConfig.from_env(EnvConfig(environ=environ))


def test_network_server_default_port():
    environ = {"KILT_VERBOSE": "1", "KILT_NETWORK_NUM_SOCKETS": "4"}
    cfg = NetworkServerConfig.from_env(EnvConfig(environ=environ))
    assert cfg.port == 8080
    assert cfg.num_sockets == 4
    assert cfg.verbosity_level == 1


def test_network_server_port_override():
    environ = {
        "KILT_VERBOSE": "0",
        "KILT_NETWORK_NUM_SOCKETS": "1",
        "KILT_NETWORK_SERVER_PORT": "9999",
    }
    cfg = NetworkServerConfig.from_env(EnvConfig(environ=environ))
    assert cfg.port == 9999


def test_network_server_requires_socket_count():
    with pytest.raises(ConfigError):
        NetworkServerConfig.from_env(EnvConfig(environ={"KILT_VERBOSE": "0"}))