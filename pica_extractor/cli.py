"""
Command-line interface for the PICA+ extraction system.

Reads PICA+ records from files, standard input or an SRU endpoint, optionally
reduces them to selected fields, and writes them in the requested format.
A summary of records read and written goes to standard error.
"""

import sys
import logging
import argparse

from typing import List, Optional

from .clients.sru_client import SRUClient
from .config.config_manager import get_config_manager
from .config.processing_defaults import ProcessingDefaults
from .exceptions import ConfigurationError, PicaExtractionError
from .parsing import FORMATS
from .processing import FieldSelector, PicaParser, PicaWriter


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(log_level: str, log_file: Optional[str] = None) -> None:
    """Configure the root logger once; quiet noisy third-party loggers."""
    level = getattr(logging, log_level.upper())
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    root_logger.setLevel(level)

    logging.getLogger('lxml').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def build_argument_parser() -> argparse.ArgumentParser:
    formats = sorted(FORMATS)
    parser = argparse.ArgumentParser(prog="pica-extractor", description="Parse, convert and analyse PICA+ records")

    parser.add_argument("files", nargs="*", metavar="FILE",
                        help="Input files, gzip allowed ('-' or none for standard input)")
    parser.add_argument("--from", dest="from_format", choices=formats,
                        help=f"Input format (default: {ProcessingDefaults.INPUT_FORMAT})")
    parser.add_argument("--to", dest="to_format", choices=formats,
                        help=f"Output format (default: {ProcessingDefaults.OUTPUT_FORMAT})")
    parser.add_argument("--pretty", action="store_true", default=None,
                        help="Pretty-print XML output")
    parser.add_argument("--select", metavar="TAG[$c]",
                        help="Only output fields with this tag, reduced to subfield c if given")
    parser.add_argument("--limit", type=int,
                        help=f"Maximum number of records (values <= 0 mean {ProcessingDefaults.LIMIT})")
    parser.add_argument("--offset", type=int,
                        help="Number of records to skip")
    parser.add_argument("--stats", action="store_true",
                        help="Print per-tag field and record statistics")
    parser.add_argument("--null", action="store_true",
                        help="Do not write records (useful with --stats)")
    parser.add_argument("--output", metavar="PATH",
                        help="Output file (default: standard output)")

    parser.add_argument("--sru", metavar="URL",
                        help="Retrieve records from this SRU endpoint instead of files")
    parser.add_argument("--query", metavar="CQL",
                        help="CQL query for --sru")

    parser.add_argument("--config", metavar="PATH",
                        help="JSON or YAML configuration file")
    parser.add_argument("--log-level", choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
                        help=f"Logging level (default: {ProcessingDefaults.LOG_LEVEL})")
    parser.add_argument("--log-file", metavar="PATH",
                        help="Also write log messages to this file")
    return parser


def print_summary(reader: PicaParser, writer: PicaWriter, statistics: bool, stream=None) -> None:
    """Print the input/output summary and, if requested, per-tag statistics."""
    stream = stream or sys.stderr
    summary = reader.summary
    print(f"records read:      {summary.records_processed}", file=stream)
    print(f"records malformed: {summary.records_malformed}", file=stream)
    print(f"fields malformed:  {summary.fields_malformed}", file=stream)
    print(f"records written:   {writer.counter}", file=stream)
    print(f"fields written:    {writer.fields}", file=stream)
    print(f"records rejected:  {writer.summary.records_rejected}", file=stream)
    print(f"fields rejected:   {writer.summary.fields_rejected}", file=stream)
    print(f"fields skipped:    {writer.summary.fields_skipped}", file=stream)

    if statistics:
        print(f"{'tag':<8}{'fields':>10}{'records':>10}", file=stream)
        for tag in sorted(writer.field_statistics):
            print(f"{tag:<8}{writer.field_statistics[tag]:>10}{writer.record_statistics[tag]:>10}", file=stream)


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI application.

    Args:
        args: Optional command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, 1 if any source failed or the setup is invalid)
    """
    parser = build_argument_parser()
    options = parser.parse_args(args)

    try:
        config_manager = get_config_manager(options.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    params = config_manager.processing_params

    setup_logging(options.log_level or params.log_level, options.log_file)
    logger = logging.getLogger(__name__)

    if not config_manager.validate_configuration():
        logger.error("Invalid configuration")
        return 1

    selector = None
    if options.select:
        try:
            selector = FieldSelector.parse(options.select)
        except ValueError as e:
            logger.error(str(e))
            return 1

    sru_url = options.sru or (config_manager.sru_config.base_url if options.query else None)
    if sru_url and not options.query:
        logger.error("--sru needs a --query")
        return 1

    output = None if options.null else (options.output or "-")
    pretty = options.pretty if options.pretty is not None else params.pretty
    try:
        writer = PicaWriter(output, format=options.to_format or params.output_format,
                            pretty=pretty, statistics=options.stats, skip_invalid=True)
    except PicaExtractionError as e:
        logger.error(f"Cannot set up output: {e}")
        return 1

    if selector is not None:
        def write_selected(pica_field):
            selected = selector(pica_field)
            if selected is not None:
                writer.write_field(selected)
            return None
        field_handler, record_handler = write_selected, None
    else:
        field_handler, record_handler = None, writer.write_record

    reader = PicaParser(field_handler=field_handler,
                        record_handler=record_handler,
                        limit=options.limit if options.limit is not None else params.limit,
                        offset=options.offset if options.offset is not None else params.offset,
                        chunk_size=params.chunk_size)

    failed = False
    try:
        if sru_url:
            sru_config = config_manager.sru_config
            client = SRUClient(sru_url, sru_config.record_schema, sru_config.version,
                               sru_config.page_size, sru_config.timeout)
            logger.info(f"Searching {sru_url} for {options.query!r}")
            try:
                # skipped records are fetched too
                fetch = None if reader.limit is None else reader.limit + reader.offset
                reader.parse(client.search(options.query, limit=fetch))
            except PicaExtractionError as e:
                logger.error(f"SRU retrieval failed: {e}")
                failed = True
        else:
            input_format = options.from_format or params.input_format
            for source in options.files or ["-"]:
                if reader.limit_reached:
                    break
                logger.info(f"Reading {source}")
                try:
                    reader.parse(source, input_format)
                except PicaExtractionError as e:
                    logger.error(f"Failed to process {source}: {e}")
                    failed = True
    except KeyboardInterrupt:
        logger.warning("Processing interrupted by user")
        failed = True
    finally:
        writer.close()

    print_summary(reader, writer, options.stats)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
