# kilt

Building blocks for an inference benchmark harness. It uses only the
standard library.

## What is in the package

- `kilt.translate`: `get_translation_table("ck")` and
  `get_translation_table("x")` return a `TranslationTable`. The table maps
  logical setting names such as `KILT_MODEL_BATCH_SIZE` to the environment
  variable names of that naming scheme. Any other variant raises `ValueError`.
- `kilt.envconfig`: `EnvConfig(table, environ)` reads values through a table.
  It reads from `os.environ` when `environ` is not given. Its methods are
  `get_raw`, `get_str`, `get_opt_str`, `get_int`, `get_float`, `get_bool` and
  `get_opt_bool`. A missing required value raises `ConfigError`.
  - `atoi` and `atof` parse a leading number and give 0 when there is none,
    as C's functions of the same names do.
  - `parse_bool` accepts `YES`, `yes`, `ON`, `on` and `1` as true.
  - `alter_str`, `alter_int` and `alter_float` fall back to a default when a
    value is unset.
- `kilt.affinity`: `affinity_card(index, layout)` returns the first CPU core of
  accelerator card `index` for a `Layout`. The layouts are `DEFAULT`, `R282`,
  `G292_CONFA` and `G292_CONFB`.
- `kilt.model_config`:
  - `ModelConfig(batch_size, input_format, output_format)` parses format strings
    such as `INT64,-1,384:INT64,-1,384` into `IOType`s, dimensions, element
    counts and byte sizes. A leading `-1` becomes the batch size.
  - `ModelConfig.from_env(env)` builds one from the environment.
  - `ServerConfig` and `Config` are plain containers.
- `kilt.device_config`: `QAicDeviceConfig.from_env` reads its settings and
  falls back to defaults. `SnpeDeviceConfig.from_env` requires all of its
  settings.
- `kilt.squad_config` and `kilt.detection_config` hold the benchmark settings:
  - dataset paths and sizes;
  - BERT sequence length;
  - detection priors path, maximum detections and NMS switch;
  - client address and port, which default to `127.0.0.1:8080`;
  - server socket count.
- `kilt.interfaces`: the abstract `DataSource` and `Model` classes.
  `DataSource.load_samples` runs `load_samples_impl` on a separate thread. Where
  `os.sched_setaffinity` is available, that thread is pinned to the data
  source's CPU affinities.
- `kilt.pack`: `pack(samples, max_seq_len, max_seq_per_pack)` groups samples by
  sequence length, where each sample is a pair-like sequence whose second item
  is its length.
  - The lengths in a group sum to at most `max_seq_len`.
  - A group holds at most `max_seq_per_pack` samples.
  - Every sample lands in exactly one group.
  - A length outside `1..max_seq_len` raises `ValueError`.
- `kilt.bert_data`: `BertDataSource` loads input ids, input masks and segment
  ids from files of unsigned 64-bit integers. `read_uint64_file` reads one such
  file.
- `kilt.bert`: `BertModel` works on `SizedSample(index, length, id)` values.
  - `preprocess_samples` measures each sample from its input mask and packs the
    samples.
  - `configure_workload` fills the input buffers for the `BertVariant` in use:
    `ORIG`, `PACKED` or `DISTILBERT_PACKED`.
  - `postprocess_results` interleaves start and end logits into `(id, values)`
    responses. Padding positions are filled with `-10000.0`.
  - `model_construct` and `data_source_construct` reject non-integer input types.
- `kilt.bitcasts`: `fp32_from_bits`, `fp32_to_bits`, `fp64_from_bits`,
  `fp64_to_bits` and `fp16_to_fp32`.
- `kilt.nms`: `NmsAbp(params, priors)` or `NmsAbp.from_file(params, directory)`.
  - It decodes anchor boxes against the priors.
  - It runs per-class non-maximum suppression.
  - It returns `[image_index, y1, x1, y2, x2, score, class]` rows ordered by
    descending score.
  - `ModelParams` describes the network layout (`ModelKind`), the quantisation
    (`DataKind`) and the thresholds.
  - `compute_iou` gives the intersection over union of two such rows.
- `kilt.detection`: `ObjectDetectionModel` and `ObjectDetectionDataSource`.
  - The model copies images into the input buffer and turns the network outputs
    into detection responses through `NmsAbp`.
  - The data source loads preprocessed images by dataset index.
- `kilt.client`: `KiltClient(data_source, complete, host, port, verbose)`.
  - `connect()` connects to the server, retrying until it succeeds.
  - `inference(samples)` sends each sample's id and 384 input ids. A background
    thread then reads the responses and passes them to `complete`.
  - `unique_server_id()` asks the server for its identifier.
  - `close()` tells the server to detach. The client also works as a context
    manager.

Where a model is given no `complete` callback, its responses are appended to
its `completed` list.

## Installation

```
pip install .
```

## Example

```python
from kilt.translate import get_translation_table
from kilt.envconfig import EnvConfig
from kilt.model_config import ModelConfig

env = EnvConfig(get_translation_table("x"), {
    "kilt_model_batch_size": "1",
    "kilt_input_format": "INT64,-1,384:INT64,-1,384:INT64,-1,384",
    "kilt_output_format": "FLOAT32,-1,384:FLOAT32,-1,384",
})
model = ModelConfig.from_env(env)
print(model.input_dimensions(0), model.input_byte_size(0))  # [1, 384] 3072
```

Packing samples by length:

```python
from kilt.bert import SizedSample
from kilt.pack import pack

samples = [SizedSample(index=i, length=n) for i, n in enumerate([300, 80, 200, 150])]
packs = pack(samples, max_seq_len=384, max_seq_per_pack=3)
```

## What the package does not do

- It runs no inference itself. The device input and output buffers are filled
  and read by the caller.
- It has no load generator, no command-line program and no inference server.
  `KiltClient` only talks to a server that already exists.

## Running the tests

```
pip install .[test]
pytest
```