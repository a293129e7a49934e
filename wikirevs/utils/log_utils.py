import logging
import multiprocessing

LOG_FORMAT = '%(asctime)s [%(process)d|%(levelname)s] %(message)s'


def setup_logger(log_level=logging.INFO, filename='wikirevs.log', use_file_handler=False, use_stdout_handler=True):
    """Configure the shared wikirevs logger

    All modules log through ``multiprocessing.get_logger()``, so configuring it once here
    is enough for the store, the page handles and the dump importer.

    Args:
        log_level: logging level for the logger and its handlers
        filename: log file used when ``use_file_handler`` is set
        use_file_handler: append log records to ``filename``
        use_stdout_handler: write log records to stderr
    """
    logger = multiprocessing.get_logger()
    logger.setLevel(log_level)

    formatter = logging.Formatter(LOG_FORMAT)

    # configuring twice must not duplicate the output
    if not len(logger.handlers):
        if use_stdout_handler:
            stream_handler = logging.StreamHandler()
            stream_handler.setLevel(log_level)
            stream_handler.setFormatter(formatter)
            logger.addHandler(stream_handler)

        if use_file_handler:
            file_handler = logging.FileHandler(filename, encoding='utf-8')
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger
