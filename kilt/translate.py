"""Translation of generic configuration keys to environment variable names."""

from __future__ import annotations

import logging
from collections.abc import Iterable

_log = logging.getLogger(__name__)

_CK_ENTRIES: tuple[tuple[str, str], ...] = (
    # model base
    ("KILT_MODEL_NAME", "ML_MODEL_MODEL_NAME"),
    ("KILT_MODEL_INPUT_COUNT", "CK_ENV_QAIC_INPUT_COUNT"),
    ("KILT_MODEL_OUTPUT_COUNT", "CK_ENV_QAIC_OUTPUT_COUNT"),
    ("KILT_MODEL_INPUT_FORMAT", "KILT_MODEL_INPUT_FORMAT"),
    ("KILT_MODEL_OUTPUT_FORMAT", "KILT_MODEL_OUTPUT_FORMAT"),
    ("KILT_MODEL_BATCH_SIZE", "CK_ENV_QAIC_MODEL_BATCH_SIZE"),
    ("KILT_MODEL_ROOT", "CK_ENV_QAIC_MODEL_ROOT"),
    # model BERT
    ("KILT_MODEL_BERT_SEQ_LENGTH", "ML_MODEL_SEQ_LENGTH"),
    ("KILT_MODEL_BERT_VARIANT", "KILT_MODEL_BERT_VARIANT"),
    # model object detection
    ("KILT_MODEL_NMS_PRIOR_BIN_PATH", "PRIOR_BIN_PATH"),
    ("KILT_MODEL_NMS_MAX_DETECTIONS", "CK_ENV_QAIC_MODEL_MAX_DETECTIONS"),
    ("KILT_MODEL_NMS_DISABLE", "CK_ENV_DISABLE_NMS"),
    # dataset SQUAD
    ("KILT_DATASET_SQUAD_TOKENIZED_MAX_SEQ_LENGTH",
     "CK_ENV_DATASET_SQUAD_TOKENIZED_MAX_SEQ_LENGTH"),
    ("KILT_DATASET_SQUAD_TOKENIZED_ROOT", "CK_ENV_DATASET_SQUAD_TOKENIZED_ROOT"),
    ("KILT_DATASET_SQUAD_TOKENIZED_INPUT_IDS",
     "CK_ENV_DATASET_SQUAD_TOKENIZED_INPUT_IDS"),
    ("KILT_DATASET_SQUAD_TOKENIZED_INPUT_MASK",
     "CK_ENV_DATASET_SQUAD_TOKENIZED_INPUT_MASK"),
    ("KILT_DATASET_SQUAD_TOKENIZED_SEGMENT_IDS",
     "CK_ENV_DATASET_SQUAD_TOKENIZED_SEGMENT_IDS"),
    ("KILT_DATASET_SQUAD_TOKENIZED_MAX_SEQ_LENGTH",
     "CK_ENV_DATASET_SQUAD_TOKENIZED_MAX_SEQ_LENGTH"),
    # dataset IMAGENET
    ("KILT_DATASET_IMAGENET_PREPROCESSED_INPUT_SQUARE_SIDE",
     "CK_ENV_DATASET_IMAGENET_PREPROCESSED_INPUT_SQUARE_SIDE"),
    ("KILT_DATASET_IMAGENET_HAS_BACKGROUND_CLASS", "ML_MODEL_HAS_BACKGROUND_CLASS"),
    ("KILT_DATASET_IMAGENET_PREPROCESSED_SUBSET_FOF",
     "CK_ENV_DATASET_IMAGENET_PREPROCESSED_SUBSET_FOF"),
    ("KILT_DATASET_IMAGENET_PREPROCESSED_DIR",
     "CK_ENV_DATASET_IMAGENET_PREPROCESSED_DIR"),
    # dataset COCO / OPENIMAGES
    ("KILT_DATASET_OBJECT_DETECTION_IMAGE_HEIGHT", "ML_MODEL_IMAGE_HEIGHT"),
    ("KILT_DATASET_OBJECT_DETECTION_IMAGE_WIDTH", "ML_MODEL_IMAGE_WIDTH"),
    ("KILT_DATASET_OBJECT_DETECTION_IMAGE_CHANNELS", "ML_MODEL_IMAGE_CHANNELS"),
    ("KILT_DATASET_OBJECT_DETECTION_PREPROCESSED_DIR",
     "CK_ENV_DATASET_OBJ_DETECTION_PREPROCESSED_DIR"),
    ("KILT_DATASET_OBJECT_DETECTION_PREPROCESSED_SUBSET_FOF",
     "CK_ENV_DATASET_OBJ_DETECTION_PREPROCESSED_SUBSET_FOF"),
    # device qaic
    ("KILT_DEVICE_QAIC_SKIP_STAGE", "CK_ENV_QAIC_SKIP_STAGE"),
    ("KILT_DEVICE_QAIC_QUEUE_LENGTH", "CK_ENV_QAIC_QUEUE_LENGTH"),
    ("KILT_DEVICE_QAIC_THREADS_PER_QUEUE", "CK_ENV_QAIC_THREADS_PER_QUEUE"),
    ("KILT_DEVICE_QAIC_ACTIVATION_COUNT", "CK_ENV_QAIC_ACTIVATION_COUNT"),
    ("KILT_DEVICE_QAIC_INPUT_SELECT", "CK_ENV_QAIC_INPUT_SELECT"),
    ("KILT_DEVICE_QAIC_SAMPLES_QUEUE_DEPTH", "KILT_DEVICE_QAIC_SAMPLES_QUEUE_DEPTH"),
    ("KILT_DEVICE_QAIC_RINGFENCE_DRIVER", "KILT_DEVICE_QAIC_RINGFENCE_DRIVER"),
    ("KILT_DEVICE_QAIC_SCHEDULER_YIELD_TIME", "KILT_DEVICE_SCHEDULER_YIELD_TIME"),
    ("KILT_DEVICE_QAIC_ENQUEUE_YIELD_TIME", "KILT_DEVICE_ENQUEUE_YIELD_TIME"),
    # network
    ("KILT_NETWORK_SERVER_PORT", "NETWORK_SERVER_PORT"),
    ("KILT_NETWORK_SERVER_IP_ADDRESS", "NETWORK_SERVER_IP_ADDRESS"),
    ("KILT_NETWORK_NUM_SOCKETS", "NETWORK_NUM_SOCKETS"),
    # kilt base
    ("KILT_VERBOSE", "CK_VERBOSE"),
    ("KILT_VERBOSE_SERVER", "CK_VERBOSE_SERVER"),
    ("KILT_JSON_CONFIG", "KILT_JSON_CONFIG"),
    ("KILT_MAX_WAIT_ABS", "CK_ENV_QAIC_MAX_WAIT_ABS"),
    ("KILT_SCHEDULER_YIELD_TIME", "KILT_SCHEDULER_YIELD_TIME"),
    ("KILT_DISPATCH_YIELD_TIME", "KILT_DISPATCH_YIELD_TIME"),
    ("KILT_DEVICE_IDS", "CK_ENV_QAIC_DEVICE_IDS"),
    ("KILT_DEVICE_CONFIG", "CK_ENV_QAIC_DEVICE_CONFIG"),
    ("KILT_DATASOURCE_CONFIG", "CK_ENV_QAIC_DATASOURCE_CONFIG"),
    ("KILT_NETWORK_UNIQUE_SERVER_ID", "CK_ENV_UNIQUE_SERVER_ID"),
    ("KILT_DEVICE_QAIC_LOOPBACK", "KILT_DEVICE_QAIC_LOOPBACK"),
    # loadgen
    ("LOADGEN_BUFFER_SIZE", "CK_LOADGEN_BUFFER_SIZE"),
    ("LOADGEN_DATASET_SIZE", "CK_LOADGEN_DATASET_SIZE"),
    ("LOADGEN_TRIGGER_COLD_RUN", "CK_LOADGEN_TRIGGER_COLD_RUN"),
    ("LOADGEN_MLPERF_CONF", "CK_ENV_MLPERF_INFERENCE_MLPERF_CONF"),
    ("LOADGEN_USER_CONF", "CK_LOADGEN_USER_CONF"),
    ("LOADGEN_SCENARIO", "CK_LOADGEN_SCENARIO"),
    ("LOADGEN_MODE", "CK_LOADGEN_MODE"),
)

_X_ENTRIES: tuple[tuple[str, str], ...] = (
    # model base
    ("KILT_MODEL_NAME", "kilt_model_name"),
    ("KILT_MODEL_INPUT_COUNT", "kilt_input_count"),
    ("KILT_MODEL_OUTPUT_COUNT", "kilt_output_count"),
    ("KILT_MODEL_INPUT_FORMAT", "kilt_input_format"),
    ("KILT_MODEL_OUTPUT_FORMAT", "kilt_output_format"),
    ("KILT_MODEL_BATCH_SIZE", "kilt_model_batch_size"),
    ("KILT_MODEL_ROOT", "kilt_model_root"),
    # model BERT
    ("KILT_MODEL_BERT_SEQ_LENGTH", "kilt_model_seq_length"),
    ("KILT_MODEL_BERT_VARIANT", "kilt_model_bert_variant"),
    # model object detection
    ("KILT_MODEL_NMS_PRIOR_BIN_PATH", "kilt_prior_bin_path"),
    ("KILT_MODEL_NMS_MAX_DETECTIONS", "kilt_model_max_detections"),
    ("KILT_MODEL_NMS_DISABLE", "kilt_model_disable_nms"),
    # dataset SQUAD
    ("KILT_DATASET_SQUAD_TOKENIZED_MAX_SEQ_LENGTH",
     "dataset_squad_tokenized_max_seq_length"),
    ("KILT_DATASET_SQUAD_TOKENIZED_ROOT", "dataset_squad_tokenized_root"),
    ("KILT_DATASET_SQUAD_TOKENIZED_INPUT_IDS", "dataset_squad_tokenized_input_ids"),
    ("KILT_DATASET_SQUAD_TOKENIZED_INPUT_MASK", "dataset_squad_tokenized_input_mask"),
    ("KILT_DATASET_SQUAD_TOKENIZED_SEGMENT_IDS",
     "dataset_squad_tokenized_segment_ids"),
    ("KILT_DATASET_SQUAD_TOKENIZED_MAX_SEQ_LENGTH",
     "dataset_squad_tokenized_max_seq_length"),
    # dataset IMAGENET
    ("KILT_DATASET_IMAGENET_PREPROCESSED_INPUT_SQUARE_SIDE",
     "dataset_imagenet_preprocessed_input_square_side"),
    ("KILT_DATASET_IMAGENET_HAS_BACKGROUND_CLASS", "ml_model_has_background_class"),
    ("KILT_DATASET_IMAGENET_PREPROCESSED_SUBSET_FOF",
     "dataset_imagenet_preprocessed_subset_fof"),
    ("KILT_DATASET_IMAGENET_PREPROCESSED_DIR", "dataset_imagenet_preprocessed_dir"),
    # dataset COCO / OPENIMAGES
    ("KILT_DATASET_OBJECT_DETECTION_IMAGE_HEIGHT", "ml_model_image_height"),
    ("KILT_DATASET_OBJECT_DETECTION_IMAGE_WIDTH", "ml_model_image_width"),
    ("KILT_DATASET_OBJECT_DETECTION_IMAGE_CHANNELS", "ml_model_image_channels"),
    ("KILT_DATASET_OBJECT_DETECTION_PREPROCESSED_DIR",
     "kilt_object_detection_preprocessed_dir"),
    ("KILT_DATASET_OBJECT_DETECTION_PREPROCESSED_SUBSET_FOF",
     "kilt_object_detection_preprocessed_subset_fof"),
    # device qaic
    ("KILT_DEVICE_QAIC_SKIP_STAGE", "kilt_device_qaic_skip_stage"),
    ("KILT_DEVICE_QAIC_QUEUE_LENGTH", "qaic_queue_length"),
    ("KILT_DEVICE_QAIC_THREADS_PER_QUEUE", "qaic_threads_per_queue"),
    ("KILT_DEVICE_QAIC_ACTIVATION_COUNT", "qaic_activation_count"),
    ("KILT_DEVICE_QAIC_INPUT_SELECT", "qaic_input_select"),
    ("KILT_DEVICE_QAIC_SAMPLES_QUEUE_DEPTH", "kilt_device_samples_queue_depth"),
    ("KILT_DEVICE_QAIC_RINGFENCE_DRIVER", "kilt_device_ringfence_driver"),
    ("KILT_DEVICE_QAIC_SCHEDULER_YIELD_TIME", "kilt_device_scheduler_yield_time"),
    ("KILT_DEVICE_QAIC_ENQUEUE_YIELD_TIME", "kilt_device_enqueue_yield_time"),
    # device tensorrt
    ("KILT_DEVICE_TENSORRT_NUMBER_OF_STREAMS", "tensorrt_number_of_stream"),
    ("KILT_DEVICE_TENSORRT_BATCH_SIZE", "tensorrt_batch_size"),
    ("KILT_DEVICE_TENSORRT_INPUT_MEMORY_MANAGEMENT_STRATEGY",
     "tensorrt_input_memory_management_strategy"),
    ("KILT_DEVICE_TENSORRT_OUTPUT_MEMORY_MANAGEMENT_STRATEGY",
     "tensorrt_ouput_memory_management_strategy"),
    ("KILT_DEVICE_TENSORRT_ENGINE_SOURCE", "engine_source"),
    ("KILT_DEVICE_TENSORRT_PLUGINS_PATH", "plugins_path"),
    # device snpe and onnxrt
    ("KILT_BACKEND_TYPE", "kilt_backend_type"),
    # device snpe
    ("SNPE_PERFORMANCE_PROFILE", "snpe_performance_profile"),
    # network
    ("KILT_NETWORK_SERVER_PORT", "network_server_port"),
    ("KILT_NETWORK_SERVER_IP_ADDRESS", "network_server_ip_address"),
    ("KILT_NETWORK_NUM_SOCKETS", "network_num_sockets"),
    # kilt base
    ("KILT_VERBOSE", "verbosity"),
    ("KILT_VERBOSE_SERVER", "CK_VERBOSE_SERVER"),
    ("KILT_JSON_CONFIG", "KILT_JSON_CONFIG"),
    ("KILT_MAX_WAIT_ABS", "kilt_max_wait_abs"),
    ("KILT_SCHEDULER_YIELD_TIME", "kilt_scheduler_yield_time"),
    ("KILT_DISPATCH_YIELD_TIME", "kilt_dispatch_yield_time"),
    ("KILT_DEVICE_IDS", "kilt_device_ids"),
    ("KILT_DEVICE_CONFIG", "kilt_device_config"),
    ("KILT_DATASOURCE_CONFIG", "kilt_datasource_config"),
    ("KILT_NETWORK_UNIQUE_SERVER_ID", "kilt_unique_server_id"),
    ("KILT_DEVICE_NAME", "device"),
    # loadgen
    ("LOADGEN_BUFFER_SIZE", "loadgen_buffer_size"),
    ("LOADGEN_DATASET_SIZE", "loadgen_dataset_size"),
    ("LOADGEN_TRIGGER_COLD_RUN", "loadgen_trigger_cold_run"),
    ("LOADGEN_MLPERF_CONF", "loadgen_mlperf_conf_path"),
    ("LOADGEN_USER_CONF", "loadgen_user_conf_path"),
    ("LOADGEN_SCENARIO", "loadgen_scenario"),
    ("LOADGEN_MODE", "loadgen_mode"),
)

_VARIANTS: dict[str, tuple[tuple[str, str], ...]] = {
    "ck": _CK_ENTRIES,
    "x": _X_ENTRIES,
}


class TranslationTable:
    """Maps generic configuration keys to concrete environment variable names."""

    def __init__(self, entries: Iterable[tuple[str, str]]) -> None:
        self._map: dict[str, str] = {}
        for key, value in entries:
            _log.debug("Mapping %s to %s", value, key)
            self._map[key] = value

    def translate(self, key: str) -> str:
        """Return the variable name for ``key``, or an empty string if unknown."""
        return self._map.get(key, "")

    def keys(self) -> list[str]:
        """Return the known keys in sorted order."""
        return sorted(self._map)

    def __contains__(self, key: object) -> bool:
        return key in self._map

    def __len__(self) -> int:
        return len(self._map)


def get_translation_table(variant: str) -> TranslationTable:
    """Return the built-in translation table named ``variant`` ("ck" or "x")."""
    try:
        entries = _VARIANTS[variant]
    except KeyError:
        raise ValueError(f"Config translation table not defined: {variant!r}") from None
    return TranslationTable(entries)