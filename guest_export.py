"""Command-line entry point for exporting a Luma event guest list."""
import argparse
import json
import logging
import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from exporter.guest_exporter import COLUMN_LABELS, render_table
from processor.fetch_session import GuestListSession
from processor.models import SessionState
from scraper.event_reference import EventReferenceResolver
from scraper.guest_list_client import GuestListClient
from storage.export_writer import ExportWriter


# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(
    logging.LogRecord('', logging.INFO, '', 0, '', (), None).__dict__
) | {'message', 'asctime'}


class JsonFormatter(logging.Formatter):
    """JSON log lines carrying the fields passed via ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter on stderr.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


@dataclass
class RuntimeConfig:
    """Settings for one process, read from the environment."""
    session_cookie: Optional[str] = None
    log_level: str = 'INFO'
    timeout_seconds: int = 30
    max_pages: int = 1000
    locale: str = 'ko'
    output_dir: str = '.'


def load_config(environ: Optional[Dict[str, str]] = None) -> RuntimeConfig:
    """
    Read configuration from environment variables.

    Args:
        environ: Mapping to read from (default: os.environ)

    Returns:
        RuntimeConfig populated from the environment
    """
    environ = os.environ if environ is None else environ
    return RuntimeConfig(
        session_cookie=environ.get('LUMA_SESSION_COOKIE') or None,
        log_level=environ.get('LOG_LEVEL', 'INFO'),
        timeout_seconds=int(environ.get('TIMEOUT_SECONDS', '30')),
        max_pages=int(environ.get('MAX_PAGES', '1000')),
        locale=environ.get('EXPORT_LOCALE', 'ko'),
        output_dir=environ.get('OUTPUT_DIR', '.')
    )


@dataclass
class Runtime:
    """Process-wide objects shared by every fetch session."""
    config: RuntimeConfig
    http_session: requests.Session
    guest_session: GuestListSession


_runtime: Optional[Runtime] = None


def init_runtime(config: RuntimeConfig) -> Runtime:
    """
    Set up logging and the shared HTTP session once per process.

    Calling this again before ``teardown_runtime`` returns the existing
    runtime unchanged.

    Args:
        config: Runtime configuration

    Returns:
        The process-wide Runtime
    """
    global _runtime
    if _runtime is not None:
        return _runtime

    setup_logging(config.log_level)

    http_session = requests.Session()
    if config.session_cookie:
        http_session.headers['Cookie'] = config.session_cookie

    resolver = EventReferenceResolver(
        session=http_session,
        timeout=config.timeout_seconds
    )
    client = GuestListClient(
        session=http_session,
        timeout=config.timeout_seconds,
        max_pages=config.max_pages
    )
    _runtime = Runtime(
        config=config,
        http_session=http_session,
        guest_session=GuestListSession(resolver, client)
    )
    return _runtime


def teardown_runtime() -> None:
    """Close the shared HTTP session and forget the process-wide runtime."""
    global _runtime
    if _runtime is None:
        return
    _runtime.http_session.close()
    _runtime = None


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='luma-guest-export',
        description='Export the guest list of a Luma event to CSV.'
    )
    parser.add_argument('page_url', help='Event page URL (lu.ma or luma.com)')
    parser.add_argument(
        '--html-file',
        type=Path,
        help='Saved event page HTML to read instead of downloading the page'
    )
    parser.add_argument('--output-dir', help='Directory for exported files')
    parser.add_argument(
        '--locale',
        choices=sorted(COLUMN_LABELS),
        help='Header label language'
    )
    parser.add_argument(
        '--clipboard',
        action='store_true',
        help='Also write the tab-separated clipboard text (.tsv)'
    )
    parser.add_argument(
        '--no-csv',
        action='store_true',
        help='Do not write the CSV file'
    )
    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Do not print the guest table'
    )
    parser.add_argument('--log-level', help='DEBUG, INFO, WARNING or ERROR')
    return parser.parse_args(argv)


def export_guests(
    runtime: Runtime,
    page_url: str,
    html: Optional[str] = None,
    write_csv: bool = True,
    write_clipboard: bool = False
) -> Dict[str, Any]:
    """
    Run one fetch session and persist the requested artifacts.

    Args:
        runtime: Initialized runtime
        page_url: Event page URL
        html: Page HTML if already available
        write_csv: Write the BOM-prefixed CSV file
        write_clipboard: Write the tab-separated clipboard text

    Returns:
        Summary dict with status, counts, file paths and any error message
    """
    logger = logging.getLogger(__name__)
    start_time = time.time()

    result = runtime.guest_session.run(page_url, html)
    duration = round(time.time() - start_time, 2)

    if result.state != SessionState.READY:
        return {
            'status': 'failed',
            'message': result.message,
            'error_type': type(result.error).__name__ if result.error else None,
            'failure_kind': result.failure_kind.value if result.failure_kind else None,
            'duration_seconds': duration
        }

    summary = {
        'status': 'ready',
        'event_id': result.event_ref.event_id,
        'guest_count': len(result.guests),
        'files': [],
        'duration_seconds': duration
    }
    if result.is_empty:
        summary['message'] = 'No guests'
        return summary

    writer = ExportWriter(runtime.config.output_dir, runtime.config.locale)
    try:
        if write_csv:
            summary['files'].append(
                str(writer.write_csv(result.guests, result.event_ref.event_id))
            )
        if write_clipboard:
            summary['files'].append(
                str(writer.write_clipboard(result.guests, result.event_ref.event_id))
            )
    except OSError as e:
        logger.error(
            f"Failed to write export files: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        summary['status'] = 'failed'
        summary['message'] = f"Failed to write export files: {e}"
        return summary

    summary['guests'] = result.guests
    logger.info(
        f"Export completed: {summary['guest_count']} guests",
        extra={'duration_seconds': duration}
    )
    return summary


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point for the ``luma-guest-export`` command.

    Returns:
        Process exit code (0 on success, 1 on failure)
    """
    args = parse_args(argv)
    config = load_config()
    if args.output_dir:
        config.output_dir = args.output_dir
    if args.locale:
        config.locale = args.locale
    if args.log_level:
        config.log_level = args.log_level

    runtime = init_runtime(config)
    try:
        html = None
        if args.html_file:
            html = args.html_file.read_text(encoding='utf-8')

        summary = export_guests(
            runtime,
            args.page_url,
            html=html,
            write_csv=not args.no_csv,
            write_clipboard=args.clipboard
        )
        if summary['status'] != 'ready':
            print(summary['message'], file=sys.stderr)
            return 1

        if summary['guest_count'] == 0:
            print(summary['message'])
            return 0

        if not args.quiet:
            print(render_table(summary['guests'], config.locale))
        for path in summary['files']:
            print(f"Saved {path}")
        return 0
    finally:
        teardown_runtime()


if __name__ == '__main__':
    sys.exit(main())
