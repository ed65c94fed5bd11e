import logging
from asyncio import TaskGroup
from pathlib import Path
from typing import NamedTuple

from .classifier import Classification, EntryClassifier, ResolvedPair, resolve_entry, resolve_pair
from ..report.record import DiagnosticRecord, EntryCategory, EntryType
from ..report.sink import ReportSink
from ..utils.processor import Processor
from ..utils.progress import ProgressObserver
from ..utils.throttler import Throttler, WorkerSlot
from ..utils.walker import FileContext, WalkPolicy, walk_with_policy

logger = logging.getLogger(__name__)


class AuditArgs(NamedTuple):
    """Arguments for an audit run."""
    processor: Processor  # Digest backend; its concurrency bounds the comparisons in flight
    source_root: Path
    target_root: Path
    excluded_paths: frozenset[Path] = frozenset()  # Relative paths skipped under both roots
    progress: ProgressObserver | None = None


class AuditSummary(NamedTuple):
    compared: int  # Pairs classified, matches included
    findings: dict[EntryCategory, int]  # Records written, per category

    @property
    def total_findings(self) -> int:
        return sum(self.findings.values())


class AuditProcessor:
    """Coordinator walking both roots and dispatching every relative path to a worker slot.

    The source walk compares each entry it yields against the target. The target
    walk only dispatches entries that do not exist under the source root, which
    is how entries missing in the source are found without comparing any relative
    path twice.
    """

    def __init__(self, sink: ReportSink, args: AuditArgs):
        self._sink = sink
        self._processor = args.processor
        self._source_root = args.source_root
        self._target_root = args.target_root
        self._excluded_paths = args.excluded_paths
        self._progress = args.progress if args.progress is not None else ProgressObserver()
        self._classifier = EntryClassifier(args.processor)
        self._compared = 0

    async def run(self) -> AuditSummary:
        """Execute the audit; returns once every dispatched comparison has finished."""
        async with TaskGroup() as tg:
            throttler = Throttler(tg, self._processor.concurrency)

            source_policy = WalkPolicy(self._excluded_paths, self._on_source_listing_error)
            for _, context in walk_with_policy(self._source_root, source_policy):
                await throttler.schedule(
                    lambda slot, relative_path=context.relative_path: self._compare_entry(slot, relative_path))

            target_policy = WalkPolicy(self._excluded_paths, self._on_target_listing_error)
            for _, context in walk_with_policy(self._target_root, target_policy):
                await throttler.schedule(
                    lambda slot, relative_path=context.relative_path: self._compare_target_entry(slot, relative_path))

        return AuditSummary(self._compared, self._sink.counts())

    async def _compare_entry(self, slot: WorkerSlot, relative_path: Path):
        """Compare an entry found by the source walk."""
        pair = resolve_pair(self._source_root, self._target_root, relative_path)
        self._finish(slot, pair, await self._classifier.classify(pair))

    async def _compare_target_entry(self, slot: WorkerSlot, relative_path: Path):
        """Compare an entry found by the target walk unless the source walk owns it."""
        source = resolve_entry(self._source_root, relative_path)
        if not source.absent:
            return

        pair = ResolvedPair(relative_path, source, resolve_entry(self._target_root, relative_path))
        self._finish(slot, pair, await self._classifier.classify(pair))

    def _finish(self, slot: WorkerSlot, pair: ResolvedPair, classification: Classification):
        if classification.record is not None:
            self._sink.record(classification.record)

        self._compared += 1
        logger.debug(f"Classified {pair.relative_path} as {classification.category}")

        try:
            self._progress.advance(slot.index, str(pair.target.path))
        except Exception:
            logger.exception(f"Progress observer failed for {pair.relative_path}")

    def _on_source_listing_error(self, path: Path, context: FileContext, error: OSError):
        self._report_listing_error(context, error, in_source=True)

    def _on_target_listing_error(self, path: Path, context: FileContext, error: OSError):
        self._report_listing_error(context, error, in_source=False)

    def _report_listing_error(self, context: FileContext, error: OSError, *, in_source: bool):
        relative_path = context.relative_path if context.relative_path is not None else Path('.')
        side = "source" if in_source else "target"
        logger.warning(f"Cannot list {side} directory {relative_path}: {error}")

        self._sink.record(DiagnosticRecord(
            EntryCategory.LISTING_FAILED,
            relative_path.as_posix(),
            str(self._source_root / relative_path),
            str(self._target_root / relative_path),
            source_type=EntryType.DIRECTORY if in_source else None,
            target_type=None if in_source else EntryType.DIRECTORY,
            source_error=str(error) if in_source else None,
            target_error=None if in_source else str(error),
        ))


async def do_audit(sink: ReportSink, args: AuditArgs) -> AuditSummary:
    """Audit args.target_root against args.source_root, writing findings to sink."""
    logger.info(f"Auditing {args.target_root} against {args.source_root} "
                f"with {args.processor.concurrency} workers")
    summary = await AuditProcessor(sink, args).run()
    sink.write_summary(summary.compared)
    logger.info(f"Audit finished: compared {summary.compared} entries, found {summary.total_findings} differences")
    return summary
