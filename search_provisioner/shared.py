import logging
from dotenv import load_dotenv

from .errors import ConfigurationError
from .models import RunSettings


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATEFMT = "%H:%M:%S"

VERBOSITY_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def load_base_env():
    """Load environment variables from .env file."""
    load_dotenv()


def validate_config(config, required_fields):
    """Validate that required fields are present in the config."""
    missing_fields = [field for field in required_fields if not config.get(field)]
    if missing_fields:
        raise ConfigurationError(f"Missing required configuration: {', '.join(missing_fields)}")


def make_run_settings(verbosity="info", artifact_dir=None, timeout=None, logger_name="search_provisioner"):
    """
    Build RunSettings with a logger filtered to the requested verbosity.

    Only the named logger's level is touched; handlers are left to the caller.
    """
    if verbosity not in VERBOSITY_LEVELS:
        raise ConfigurationError(
            f"Unknown verbosity '{verbosity}' (choose from: {', '.join(VERBOSITY_LEVELS)})"
        )
    logger = logging.getLogger(logger_name)
    logger.setLevel(VERBOSITY_LEVELS[verbosity])
    return RunSettings(
        verbosity=verbosity,
        logger=logger,
        artifact_dir=artifact_dir,
        timeout=timeout,
    )


def configure_console_logging():
    """Console output for the command line entry point."""
    # Third-party loggers stay at WARNING; ours is filtered by RunSettings
    logging.basicConfig(
        level=logging.WARNING,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )
