import os
import sys
import tempfile
import unittest
from unittest import mock

from utils import logger


class LogFileTestCase(unittest.TestCase):
    def setUp(self):
        fd, self.path = tempfile.mkstemp(suffix=".log")
        os.close(fd)
        self.addCleanup(os.remove, self.path)

        saved = (logger._console, logger._log_file)

        def restore():
            logger.close_log_file()
            logger._console, logger._log_file = saved

        self.addCleanup(restore)
        logger._console, logger._log_file = None, None

    def test_close_log_file(self):
        with mock.patch.dict(os.environ, {"STOREFRONT_LOG_FILE": self.path}):
            console = logger._get_console()
        handle = logger._log_file
        self.assertIs(console.file, handle)

        console.print("before close")
        logger.close_log_file()

        self.assertTrue(handle.closed)
        self.assertIsNone(logger._log_file)
        self.assertIs(console.file, sys.stderr)
        with open(self.path, encoding="utf-8") as f:
            self.assertIn("before close", f.read())

    def test_close_without_log_file(self):
        with mock.patch.dict(os.environ, {}, clear=False):
            os.environ.pop("STOREFRONT_LOG_FILE", None)
            logger._get_console()
        logger.close_log_file()
        self.assertIsNone(logger._log_file)


if __name__ == "__main__":
    unittest.main()
