import os
import sys
import logging

# --- Configuration Constants ---
DEFAULT_SEED = 2020 # Seed threaded through every training call
NUM_CLUSTERS = 3 # One cluster per file type
MIN_STRING_LENGTH = 8 # Shortest printable run kept as a string token
STRING_ENCODING = "cp1252" # Windows executables embed strings in this code page
FEATURE_LENGTH = 600 # Fixed input width of the pretrained text network

FILE_TYPE_MODEL_FILENAME = "file_type_model.pkl"
MALICIOUS_MODEL_FILENAME = "malicious_model.pkl"
LOG_FILENAME = "file_classifier.log"

# --- Environment Keys ---
FILE_TYPE_MODEL_ENV = "FILE_TYPE_MODEL_PATH"
MALICIOUS_MODEL_ENV = "MALICIOUS_MODEL_PATH"
LOG_LEVEL_ENV = "CLASSIFIER_LOG_LEVEL"

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'


def get_env_or_default(arg, env_key, fallback=None):
    """Gets value from args, environment variable, or fallback."""
    return arg if arg is not None else os.environ.get(env_key, fallback)


def setup_logging(log_filename=LOG_FILENAME, level=None):
    """
    Configures the root logger with a file handler and a stderr handler.

    Existing root handlers are removed first so repeated calls (tests,
    interactive sessions) do not duplicate output.
    """
    if level is None:
        level_name = get_env_or_default(None, LOG_LEVEL_ENV, "INFO")
        level = getattr(logging, str(level_name).upper(), logging.INFO)

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr) # Log to stderr
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    logger = logging.getLogger()
    logger.setLevel(level)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    if log_filename:
        file_handler = logging.FileHandler(log_filename)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    return logger
