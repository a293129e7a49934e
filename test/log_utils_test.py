import logging
import multiprocessing
import os
import tempfile
import unittest

from wikirevs.utils.log_utils import LOG_FORMAT, setup_logger


class TestSetupLogger(unittest.TestCase):
    def setUp(self):
        self.logger = multiprocessing.get_logger()
        self.saved_handlers = list(self.logger.handlers)
        self.saved_level = self.logger.level
        self.logger.handlers = []

    def tearDown(self):
        for handler in self.logger.handlers:
            handler.close()
        self.logger.handlers = self.saved_handlers
        self.logger.setLevel(self.saved_level)

    def test_handlers_are_added_once(self):
        logger = setup_logger(logging.DEBUG)
        setup_logger(logging.DEBUG)

        self.assertIs(logger, self.logger)
        self.assertEqual(len(logger.handlers), 1)
        self.assertEqual(logger.level, logging.DEBUG)
        self.assertEqual(logger.handlers[0].formatter._fmt, LOG_FORMAT)

    def test_file_handler(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            filename = os.path.join(tmp_dir, 'wikirevs.log')
            logger = setup_logger(logging.INFO, filename, use_file_handler=True, use_stdout_handler=False)

            logger.info('Created Foo: revision 1 by 127.0.0.1')
            for handler in logger.handlers:
                handler.flush()
                handler.close()
            logger.handlers = []

            with open(filename, encoding='utf-8') as f:
                line = f.read()
        self.assertIn('[INFO] Created Foo: revision 1 by 127.0.0.1', line)


if __name__ == '__main__':
    unittest.main()
