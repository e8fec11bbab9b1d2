"""Configuration of the SQuAD data source, the BERT model and the network client."""

from __future__ import annotations

from dataclasses import dataclass

from kilt.envconfig import EnvConfig, alter_int, alter_str
from kilt.model_config import IOType, ModelConfig

DEFAULT_SEQUENCE_LENGTH = 384
DEFAULT_SERVER_ADDRESS = "127.0.0.1"
DEFAULT_SERVER_PORT = 8080


@dataclass(frozen=True)
class SquadDataSourceConfig:
    """Locations and sizes of a tokenized SQuAD dataset."""

    input_ids: str
    input_mask: str
    segment_ids: str
    sequence_length: int
    buffer_size: int
    dataset_size: int

    @classmethod
    def from_env(cls, env: EnvConfig) -> SquadDataSourceConfig:
        """Read the dataset settings from the environment; all are required."""
        root = env.get_str("KILT_DATASET_SQUAD_TOKENIZED_ROOT")
        return cls(
            input_ids=root + "/" + env.get_str("KILT_DATASET_SQUAD_TOKENIZED_INPUT_IDS"),
            input_mask=root
            + "/"
            + env.get_str("KILT_DATASET_SQUAD_TOKENIZED_INPUT_MASK"),
            segment_ids=root
            + "/"
            + env.get_str("KILT_DATASET_SQUAD_TOKENIZED_SEGMENT_IDS"),
            sequence_length=env.get_int("KILT_DATASET_SQUAD_TOKENIZED_MAX_SEQ_LENGTH"),
            buffer_size=env.get_int("LOADGEN_BUFFER_SIZE"),
            dataset_size=env.get_int("LOADGEN_DATASET_SIZE"),
        )


class BertModelConfig(ModelConfig):
    """Model configuration of a BERT network."""

    def __init__(
        self,
        batch_size: int,
        input_format: str,
        output_format: str,
        skip_stage: str = "",
        sequence_length: int = DEFAULT_SEQUENCE_LENGTH,
    ) -> None:
        super().__init__(batch_size, input_format, output_format)
        self.skip_stage = skip_stage
        self.sequence_length = sequence_length

    @classmethod
    def from_env(cls, env: EnvConfig) -> BertModelConfig:
        """Build the configuration from the environment."""
        raw = env.get_raw
        return cls(
            env.get_int("KILT_MODEL_BATCH_SIZE"),
            env.get_str("KILT_MODEL_INPUT_FORMAT"),
            env.get_str("KILT_MODEL_OUTPUT_FORMAT"),
            skip_stage=alter_str(raw("KILT_DEVICE_QAIC_SKIP_STAGE"), ""),
            sequence_length=alter_int(
                raw("KILT_MODEL_BERT_SEQ_LENGTH"), DEFAULT_SEQUENCE_LENGTH
            ),
        )

    def input_datatype(self, index: int) -> IOType:
        """UINT32 when the conversion stage is skipped, otherwise UINT64."""
        return IOType.UINT32 if self.skip_stage == "convert" else IOType.UINT64

    def output_datatype(self, index: int) -> IOType:
        return IOType.INT32


@dataclass(frozen=True)
class NetworkClientConfig:
    """Where the network client connects and how much it reports."""

    verbosity_level: int
    server_ip_address: str = DEFAULT_SERVER_ADDRESS
    server_port: int = DEFAULT_SERVER_PORT

    @classmethod
    def from_env(cls, env: EnvConfig) -> NetworkClientConfig:
        """Read the client settings; verbosity is required, the rest default."""
        raw = env.get_raw
        return cls(
            verbosity_level=env.get_int("KILT_VERBOSE"),
            server_ip_address=alter_str(
                raw("KILT_NETWORK_SERVER_IP_ADDRESS"), DEFAULT_SERVER_ADDRESS
            ),
            server_port=alter_int(raw("KILT_NETWORK_SERVER_PORT"), DEFAULT_SERVER_PORT),
        )