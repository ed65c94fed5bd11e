import argparse
import logging
import sys
import textwrap
from pathlib import Path

from . import Auditor, AuditSettings, AuditConfigurationError, AuditSetupError
from .auditor import create_processor
from .report.sink import ReportFormat
from .utils.profiling import profile_main
from .utils.progress import LoggingProgress

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='backup-auditor',
        description='Audit a target directory tree (e.g. a backup) against its source tree. Reports entries missing '
                    'on either side, entries whose types differ and regular files whose content differs.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent('''
            Examples:
              backup-auditor -s /data -t /mnt/backup/data -o audit.txt
              backup-auditor -s /data -t /mnt/backup/data -o audit.msgpack --format msgpack -j 4

            Nothing is reported for entries that match. Symlinks are compared by type only.
            ''').strip()
    )
    parser.add_argument(
        '-s', '--source',
        metavar='SOURCE',
        help='Set the source directory (required)')
    parser.add_argument(
        '-t', '--target',
        metavar='TARGET',
        help='Set the target directory (required)')
    parser.add_argument(
        '-o', '--output',
        metavar='OUTPUT',
        help='Output filename for the report (required)')
    parser.add_argument(
        '--config',
        metavar='PATH',
        help='Path to a TOML settings file')
    parser.add_argument(
        '-j', '--concurrency',
        type=int,
        metavar='N',
        help='Number of comparisons running in parallel (default: number of CPUs)')
    parser.add_argument(
        '--digest',
        metavar='ALGORITHM',
        help='hashlib algorithm used to compare file contents (default: sha256)')
    parser.add_argument(
        '--format',
        choices=[f.value for f in ReportFormat],
        help='Report format (default: text)')
    parser.add_argument(
        '--no-summary',
        action='store_true',
        help='Do not append a summary block to a text report')
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Log progress to standard error')
    parser.add_argument(
        '--log-file',
        metavar='PATH',
        help='Path to log file for operation logging. If not provided, uses logging.path from the settings or no '
             'logging.')
    parser.add_argument(
        '--log-level',
        metavar='LEVEL',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL). Defaults to INFO when --log-file is provided.')
    return parser


@profile_main
def backup_auditor_main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.source is None or args.target is None or args.output is None:
        parser.print_usage()
        return 0

    if args.log_file:
        logging.basicConfig(
            filename=args.log_file,
            level=getattr(logging, args.log_level or 'INFO'),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    try:
        settings = AuditSettings(Path(args.config) if args.config else None)
    except (AuditConfigurationError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        with create_processor(settings, concurrency=args.concurrency, algorithm=args.digest) as processor:
            auditor = Auditor(processor, args.source, args.target, settings)
            if not args.log_file:
                auditor.configure_logging_from_settings()

            progress = None
            if args.verbose:
                handler = logging.StreamHandler(sys.stderr)
                handler.setFormatter(logging.Formatter('%(message)s'))
                logging.getLogger('backup_auditor').addHandler(handler)
                logging.getLogger('backup_auditor').setLevel(logging.INFO)
                progress = LoggingProgress()

            print(f"Source directory: {auditor.source_root}\n"
                  f"Target directory: {auditor.target_root}\n"
                  f"Output filename: {args.output}")

            summary = auditor.audit(
                args.output,
                report_format=args.format,
                summary=False if args.no_summary else None,
                progress=progress)
    except AuditConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except AuditSetupError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Compared {summary.compared} entries, found {summary.total_findings} differences")
    return 0


def main():
    sys.exit(backup_auditor_main())


if __name__ == '__main__':
    main()
