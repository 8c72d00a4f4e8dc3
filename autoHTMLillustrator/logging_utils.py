import logging
import sys

# Third-party loggers that are chatty at INFO
NOISY_LOGGERS = ("litellm", "LiteLLM", "httpx", "httpcore", "urllib3", "openai", "PIL")


def configure_logging(level, fmt, datefmt, stream=None):
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
    logging.basicConfig(level=level, handlers=[handler], force=True)
    # Only let them through when debugging
    quiet_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
    return handler
