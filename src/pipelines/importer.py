"""
Import pipeline moving Gladly conversations into Enterpret as feedback records.
Supports incremental runs (since the last successful import), full imports, or custom date ranges.
"""

from typing import Callable, List, Optional, Sequence, Tuple, Type, TypeVar
from datetime import datetime, timedelta, timezone
import argparse
import logging
import time

from src.config.logging_config import setup_logging
from src.config.settings import DEFAULT_LOG_DIR, Settings, load_settings
from src.data_access.enterpret_client import EnterpretClient
from src.data_access.gladly_client import GladlyClient
from src.data_access.state_store import StateStore
from src.models.exceptions import (
    ConfigurationError,
    DeliveryError,
    FeedbackValidationError,
    FetchError,
    PipelineError,
)
from src.models.schemas import Conversation, RunMetrics, parse_iso8601
from src.transform.transformer import transform_conversation

FULL_IMPORT_START = datetime(2010, 1, 1, tzinfo=timezone.utc)
DEFAULT_LOOKBACK_DAYS = 30
PAGE_DELAY_SECONDS = 0.3

T = TypeVar("T")


class ImportPipeline:
    """Pipeline for importing Gladly conversations into Enterpret over a time window."""

    def __init__(self, config: Settings, logger: Optional[logging.Logger] = None):
        """
        Initialize the import pipeline.

        Args:
            config: Application settings
            logger: Logger for this run. Each component gets a child of it.
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.gladly_client = GladlyClient(config, logger=self.logger.getChild("gladly"))
        self.enterpret_client = EnterpretClient(config, logger=self.logger.getChild("enterpret"))
        self.state_store = StateStore(config.state_file_path, logger=self.logger.getChild("state"))

    def run(
        self,
        is_full_import: bool = False,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> RunMetrics:
        """
        Execute the import pipeline.

        Args:
            is_full_import: Start from the full-import epoch instead of the last import time
            start_date: Explicit window start; wins over every other source
            end_date: Window end (default: now)
            limit: Maximum number of conversations to import (None = all)

        Returns:
            RunMetrics for the run

        Raises:
            ApiConnectionError: If either platform fails the pre-flight check
            FetchError: If conversations cannot be listed
        """
        metrics = RunMetrics()

        self._validate_connections()

        window_start = self._determine_start_date(is_full_import, start_date)
        window_end = end_date or datetime.now(timezone.utc)
        metrics.window_start = window_start
        metrics.window_end = window_end

        self.logger.info(
            f"Starting {'full' if is_full_import else 'incremental'} import "
            f"from {window_start.isoformat()} to {window_end.isoformat()}"
        )

        conversations = self._fetch_conversations(window_start, window_end, limit)
        metrics.conversations_count = len(conversations)
        self.logger.info(f"Found {len(conversations)} conversations to import")

        for conversation in conversations:
            try:
                self._process_conversation(conversation, metrics)
                metrics.imported_count += 1
            except Exception as e:
                metrics.errors_count += 1
                self.logger.error(f"Error processing conversation {conversation.id}: {e}")

        if metrics.errors_count == 0:
            metrics.state_updated = self.state_store.update_last_import_time(window_end)
            if metrics.state_updated:
                self.logger.info(f"Updated last import time to {window_end.isoformat()}")
            else:
                self.logger.warning("Import succeeded but the last import time could not be saved")
        else:
            self.logger.warning(
                f"Import completed with {metrics.errors_count} errors. Last import time not updated."
            )

        metrics.end_time = datetime.now(timezone.utc)
        return metrics

    def _validate_connections(self) -> None:
        self.logger.debug("Validating connection to Gladly API...")
        self.gladly_client.validate_connection()

        self.logger.debug("Validating connection to Enterpret API...")
        self.enterpret_client.validate_connection()

        self.logger.info("API connections validated successfully")

    def _determine_start_date(self, is_full_import: bool, start_date: Optional[datetime]) -> datetime:
        if start_date:
            return start_date

        if is_full_import:
            return FULL_IMPORT_START

        last_import_time = self.state_store.get_last_import_time()
        if last_import_time:
            return last_import_time

        default_start = datetime.now(timezone.utc) - timedelta(days=DEFAULT_LOOKBACK_DAYS)
        self.logger.info(f"No previous import found. Using default start date: {default_start.isoformat()}")
        return default_start

    def _fetch_conversations(
        self,
        start_date: datetime,
        end_date: datetime,
        limit: Optional[int]
    ) -> List[Conversation]:
        """Page through the listing until it runs dry or the limit is reached."""
        all_conversations: List[Conversation] = []
        page = 1
        has_more = True

        while has_more:
            self.logger.debug(f"Fetching conversations page {page}...")
            result = self._with_retries(
                lambda: self.gladly_client.fetch_conversations(
                    start_date, end_date, page=page, page_size=self.config.batch_size
                ),
                f"Fetching conversations page {page}",
                (FetchError,)
            )
            all_conversations.extend(result.conversations)

            if limit is not None and len(all_conversations) >= limit:
                self.logger.info(f"Reached limit of {limit} conversations")
                del all_conversations[limit:]
                break

            has_more = result.has_more
            page += 1

            if has_more:
                time.sleep(PAGE_DELAY_SECONDS)

        return all_conversations

    def _process_conversation(self, conversation: Conversation, metrics: RunMetrics) -> None:
        """Fetch, enrich, transform and deliver one conversation."""
        self.logger.debug(f"Fetching items for conversation {conversation.id}...")
        items = self.gladly_client.fetch_conversation_items(conversation.id)
        metrics.items_count += len(items)

        customer = None
        if conversation.customer_id:
            self.logger.debug(f"Fetching customer {conversation.customer_id}...")
            customer = self.gladly_client.fetch_customer(conversation.customer_id)
            if customer is not None:
                metrics.customers_count += 1

        record = transform_conversation(conversation, items, customer)

        self._with_retries(
            lambda: self.enterpret_client.import_feedback(record),
            f"Delivery of {record.id}",
            (DeliveryError,)
        )
        self.logger.debug(f"Imported conversation {conversation.id} with {len(items)} items")

    def _with_retries(
        self,
        operation: Callable[[], T],
        description: str,
        retry_on: Tuple[Type[Exception], ...]
    ) -> T:
        """
        Run an operation, retrying transient failures up to config.max_retries times.

        Local payload validation failures are never retried.
        """
        max_retries = self.config.max_retries
        delay = self.config.retry_delay / 1000

        attempt = 0
        while True:
            try:
                return operation()
            except retry_on as e:
                if isinstance(e, FeedbackValidationError) or attempt >= max_retries:
                    raise
                attempt += 1
                self.logger.warning(
                    f"{description} failed: {e}. Retrying in {delay:g}s... "
                    f"(attempt {attempt}/{max_retries})"
                )
                time.sleep(delay)


def _iso_datetime(value: str) -> datetime:
    try:
        return parse_iso8601(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date: {value}. Use ISO 8601, e.g. 2024-01-31T00:00:00Z")


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid number: {value}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"Must be at least 1: {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gladly-enterpret-import",
        description="Import conversation data from Gladly into Enterpret."
    )
    parser.add_argument(
        '-i', '--incremental',
        action='store_true',
        default=True,
        help='Only import new data since last import (default)'
    )
    parser.add_argument(
        '-f', '--full',
        action='store_true',
        help='Perform a full import of all available data'
    )
    parser.add_argument(
        '-s', '--start-date',
        type=_iso_datetime,
        help='Start date for import (ISO 8601 format)'
    )
    parser.add_argument(
        '-e', '--end-date',
        type=_iso_datetime,
        help='End date for import (ISO 8601 format)'
    )
    parser.add_argument(
        '-l', '--limit',
        type=_positive_int,
        help='Maximum number of conversations to import'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '-c', '--config',
        default='./config.json',
        help='Path to config file'
    )
    parser.add_argument(
        '--reset-state',
        action='store_true',
        help='Forget the last import time before running'
    )
    return parser


def print_summary(metrics: RunMetrics) -> None:
    print("\n" + "=" * 60)
    print("GLADLY TO ENTERPRET IMPORT RESULTS")
    print("=" * 60)
    if metrics.window_start and metrics.window_end:
        print(f"Date range: {metrics.window_start.isoformat()} to {metrics.window_end.isoformat()}")
    print(f"Conversations found: {metrics.conversations_count}")
    print(f"Conversations imported: {metrics.imported_count}")
    print(f"Items processed: {metrics.items_count}")
    print(f"Customers enriched: {metrics.customers_count}")
    print(f"Errors: {metrics.errors_count}")
    if metrics.duration_seconds is not None:
        print(f"Duration: {metrics.duration_seconds:.1f}s")
    print(f"Last import time advanced: {'yes' if metrics.state_updated else 'no'}")
    print("=" * 60)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for running the import with CLI arguments. Returns the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.start_date and args.end_date and args.start_date >= args.end_date:
        parser.error("--start-date must be before --end-date")

    # Config loading notices go to the default log directory until the configured one is known
    run_logger = setup_logging(level="DEBUG" if args.verbose else "INFO", log_dir=DEFAULT_LOG_DIR)
    run_logger.info("Starting Gladly to Enterpret import")

    try:
        config = load_settings(
            args.config,
            overrides={
                "start_date": args.start_date,
                "end_date": args.end_date,
                "limit": args.limit,
                "log_level": "DEBUG" if args.verbose else None,
            },
            logger=run_logger
        )
    except ConfigurationError as e:
        run_logger.error(f"Import failed: {e}")
        return 1

    run_logger = setup_logging(level=config.log_level, log_dir=config.log_dir)

    try:
        pipeline = ImportPipeline(config, logger=run_logger)
        if args.reset_state:
            pipeline.state_store.reset_state()

        metrics = pipeline.run(
            is_full_import=args.full,
            start_date=config.start_date,
            end_date=config.end_date,
            limit=config.limit
        )
    except PipelineError as e:
        run_logger.error(f"Import failed: {e}")
        return 1
    except Exception as e:
        run_logger.error(f"Import failed: {e}", exc_info=args.verbose)
        return 1

    print_summary(metrics)

    if metrics.errors_count:
        run_logger.warning(
            f"Import finished with {metrics.errors_count} failed conversations; "
            f"they will be retried on the next run."
        )
    else:
        run_logger.info(
            f"Import completed successfully. Imported {metrics.imported_count} conversations "
            f"with {metrics.items_count} items."
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
