"""
Package Tests

- test_processing.py: letterbox, tensor packing, image decoding, preprocessor
- test_postprocess.py: NMS-row decoding and result summaries
- test_model.py: class registry, ONNX Runtime engine, file resolution
- test_pipeline.py: detect() lifecycle against a stub engine
- test_config.py: model contract, settings, DetectorConfig
- test_logger.py: JSON log formatting
- test_main.py: command line entry point
"""
