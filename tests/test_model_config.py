import math

import pytest

from kilt.envconfig import ConfigError, EnvConfig
from kilt.model_config import (
    Config,
    IOType,
    ModelConfig,
    ServerConfig,
    io_type_from_str,
    parse_format,
)


@pytest.mark.parametrize(
    "name, size",
    [("INT8", 1), ("UINT16", 2), ("FLOAT32", 4), ("UINT64", 8), ("HALF", 8)],
)
def test_type_sizes_fixed_by_source(name, size):
    assert io_type_from_str(name).size == size


@pytest.mark.parametrize("io_type", list(IOType))
def test_type_name_round_trip(io_type):
    assert io_type_from_str(io_type.name) is io_type


def test_unknown_type_is_float32():
    assert io_type_from_str("BFLOAT") is IOType.FLOAT32


def test_parse_format_replaces_dynamic_batch():
    result = parse_format("INT64,-1,384", 7)
    assert result == [(IOType.INT64, [7, 384])]


def test_parse_format_keeps_fixed_batch():
    result = parse_format("UINT8,1,10:FLOAT16,-1,5", 4)
    assert result == [(IOType.UINT8, [1, 10]), (IOType.FLOAT16, [4, 5])]


def test_parse_format_batch_equal_to_fixed():
    assert parse_format("INT32,4,2", 4) == [(IOType.INT32, [4, 2])]


@pytest.mark.parametrize("text", ["", "FLOAT32", "FLOAT32,1,2:", "FLOAT32,1,", "INT8,abc"])
def test_parse_format_errors(text):
    with pytest.raises(ValueError):
        parse_format(text, 1)


def test_model_config_sizes_consistent():
    cfg = ModelConfig(2, "INT64,-1,384:INT64,-1,384:INT32,-1,384", "FLOAT32,-1,384,2")
    assert cfg.input_count == 3
    assert cfg.output_count == 1
    for i in range(cfg.input_count):
        dims = cfg.input_dimensions(i)
        assert dims[0] == 2
        assert cfg.input_size(i) == math.prod(dims)
        assert cfg.input_byte_size(i) == cfg.input_size(i) * cfg.input_datatype(i).size
    assert cfg.output_size(0) == math.prod(cfg.output_dimensions(0))
    assert cfg.output_byte_size(0) == cfg.output_size(0) * 4
    assert cfg.input_datatype(2) is IOType.INT32
    assert cfg.output_datatype(0) is IOType.FLOAT32


def test_dimensions_are_copies():
    cfg = ModelConfig(1, "UINT8,-1,3", "FLOAT32,-1,3")
    cfg.input_dimensions(0).append(99)
    assert cfg.input_dimensions(0) == [1, 3]


def test_index_out_of_range():
    cfg = ModelConfig(1, "UINT8,-1,3", "FLOAT32,-1,3")
    with pytest.raises(IndexError):
        cfg.input_size(1)


def test_from_env():
    env = EnvConfig(
        environ={
            "KILT_MODEL_BATCH_SIZE": "3",
            "KILT_MODEL_INPUT_FORMAT": "UINT8,-1,300,300,3",
            "KILT_MODEL_OUTPUT_FORMAT": "FLOAT32,-1,100:INT64,-1,1",
        }
    )
    cfg = ModelConfig.from_env(env)
    assert cfg.batch_size == 3
    assert cfg.input_dimensions(0) == [3, 300, 300, 3]
    assert cfg.output_datatype(1) is IOType.INT64


def test_from_env_missing_format():
    env = EnvConfig(environ={"KILT_MODEL_BATCH_SIZE": "1"})
    with pytest.raises(ConfigError):
        ModelConfig.from_env(env)


def test_server_config_lookups():
    server = ServerConfig(
        device_ids=[5, 6],
        device_affinities={5: [0, 1], 6: [2, 3]},
        data_source_for_device={5: 0, 6: 0},
        data_source_affinities=[[4]],
    )
    assert server.device_count == 2
    assert server.device_id(1) == 6
    assert server.device_affinity(6) == [2, 3]
    assert server.data_source_id_for_device(5) == 0
    assert server.data_source_count == 1
    with pytest.raises(KeyError):
        server.device_affinity(9)


def test_config_holds_parts():
    model = ModelConfig(1, "UINT8,-1,3", "FLOAT32,-1,3")
    config = Config(model_cfg=model)
    assert config.model_cfg is model
    assert config.server_cfg is None