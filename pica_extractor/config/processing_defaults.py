"""
Centralized configuration defaults for PICA+ processing.

This module defines operational configuration constants used throughout the system.
CLI arguments and environment variables can override these defaults at runtime.
"""


class ProcessingDefaults:
    """
    Centralized operational configuration for PICA+ processing.

    All values are defaults that can be overridden via CLI arguments:
    - pica-extractor records.pp --limit 100 --to xml
    - pica-extractor --sru https://sru.k10plus.de/opac-de-627 --query "pica.tit=python" --log-level DEBUG
    """

    # Parsing
    LIMIT = 10  # Records emitted when a limit <= 0 is requested
    CHUNK_SIZE = 65536  # Bytes read per chunk from files and streams
    INPUT_FORMAT = "normalized"
    OUTPUT_FORMAT = "normalized"
    ENCODING = "utf-8"

    # SRU retrieval
    SRU_PAGE_SIZE = 10  # maximumRecords per searchRetrieve request
    SRU_RECORD_SCHEMA = "picaxml"
    SRU_VERSION = "1.1"

    # Remote services
    REQUEST_TIMEOUT = 30  # Seconds per HTTP request

    # Logging
    LOG_LEVEL = "WARNING"  # Default logging level (CRITICAL, ERROR, WARNING, INFO, DEBUG)

    @classmethod
    def to_dict(cls) -> dict:
        """
        Export all defaults as a dictionary.

        Returns:
            Dictionary of all ProcessingDefaults class attributes.
        """
        return {
            key: getattr(cls, key)
            for key in dir(cls)
            if not key.startswith('_') and key.isupper()
        }

    @classmethod
    def log_summary(cls, logger=None):
        """
        Log a summary of all operational defaults.

        Args:
            logger: Optional logger instance. If None, prints to stdout.
        """
        config_dict = cls.to_dict()
        summary = "\n".join([f"  {key}: {value}" for key, value in sorted(config_dict.items())])
        message = f"Processing Configuration Defaults:\n{summary}"

        if logger:
            logger.info(message)
        else:
            print(message)
