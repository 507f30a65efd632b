"""
yolo_detect - Test Suite

- tests/yolo_detect/: unit tests per module (processing, model, pipeline,
  configuration, logging, command line)
"""
