"""
Logging setup unit tests
"""

import logging
import os

from utils import logger as log_module


class TestLogger:

    def test_setup_is_idempotent(self):
        first = log_module.setup_logging()
        assert log_module.setup_logging(base_name="other") == first
        assert os.path.dirname(first) == os.environ["STRATOPT_LOG_DIR"]

    def test_get_logger_uses_caller_module(self):
        assert log_module.get_logger().name == __name__
        assert log_module.get_logger("stratopt.x").name == "stratopt.x"

    def test_env_level_override(self, monkeypatch):
        monkeypatch.setenv("STRATOPT_LOG_LEVEL", "debug")
        assert log_module._env_level(logging.INFO) == logging.DEBUG

        monkeypatch.setenv("STRATOPT_LOG_LEVEL", "chatty")
        assert log_module._env_level(logging.INFO) == logging.INFO
