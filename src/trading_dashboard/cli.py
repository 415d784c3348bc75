"""
Command line front end for the trading dashboard.

Examples:
    trading-dashboard analyze RELIANCE.NS
    trading-dashboard analyze TCS.NS INFY.NS --no-wait
    trading-dashboard recover
    trading-dashboard analyze-all
    trading-dashboard stocks --query bank
    trading-dashboard watchlist add HDFCBANK.NS --name "HDFC Bank"
    trading-dashboard report RELIANCE.NS --download reports/
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from .config.loader import load_default_config
from .config.logging_config import get_logger, setup_logging
from .config.schema import DashboardConfig
from .dashboard import Dashboard
from .error_handling import ErrorContext, describe_error
from .exceptions import DashboardError, JobCancelled, JobFailed, TransportError
from .jobs.models import Job, JobSlot, PollState
from .jobs.polling import JobHandle, JobObserver
from .jobs.progress import ProgressReport, aggregate, completion_message, summarize
from .jobs.selection import filter_stocks

logger = get_logger(__name__)


class ConsoleObserver(JobObserver):
    """Prints job progress and outcomes to stdout."""

    def on_progress(self, job: Job, report: ProgressReport) -> None:
        print(f"[{job.slot.value}] {summarize(report)}")

    def on_completed(self, job: Job) -> None:
        print(f"[{job.slot.value}] {completion_message(job)}")

    def on_failed(self, job: Job, error: JobFailed) -> None:
        print(f"[{job.slot.value}] {completion_message(job)}")
        for message in error.errors:
            print(f"  - {message}")

    def on_cancelled(self, job: Job, error: JobCancelled) -> None:
        print(f"[{job.slot.value}] {completion_message(job)}")

    def on_errored(self, job: Job, error: TransportError) -> None:
        print(f"[{job.slot.value}] Lost track of job {job.job_id}: {error}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='trading-dashboard',
                                     description='Run and follow stock analysis jobs')
    parser.add_argument('--config', help='Path to a dashboard YAML config')
    parser.add_argument('--api-url', help='Analysis server URL, overrides the config')
    parser.add_argument('--log-level', help='Logging level, overrides the config')

    subparsers = parser.add_subparsers(dest='command', required=True)

    analyze = subparsers.add_parser('analyze', help='Analyze one or more tickers')
    analyze.add_argument('tickers', nargs='+', help='Tickers to analyze')
    analyze.add_argument('--indicators', nargs='+', help='Indicators to compute')
    analyze.add_argument('--no-wait', action='store_true', help='Return once the job is submitted')

    analyze_all = subparsers.add_parser('analyze-all', help='Analyze all stocks, or the given symbols')
    analyze_all.add_argument('--symbols', nargs='+', default=[], help='Limit the run to these symbols')
    analyze_all.add_argument('--no-wait', action='store_true', help='Return once the job is submitted')

    subparsers.add_parser('status', help='Show the status of jobs recorded in the session')

    cancel = subparsers.add_parser('cancel', help='Cancel the job running in a slot')
    cancel.add_argument('slot', choices=[slot.value for slot in JobSlot])

    recover = subparsers.add_parser('recover', help='Resume following jobs recorded in the session')
    recover.add_argument('--no-wait', action='store_true', help='Only report what was recovered')

    stocks = subparsers.add_parser('stocks', help='List all stocks')
    stocks.add_argument('--query', default='', help='Filter by symbol or name')

    watchlist = subparsers.add_parser('watchlist', help='Show or edit the watchlist')
    watchlist.add_argument('action', nargs='?', choices=['list', 'add', 'remove'], default='list')
    watchlist.add_argument('symbol', nargs='?')
    watchlist.add_argument('--name', default='', help='Company name when adding')

    history = subparsers.add_parser('history', help='Show stored analyses of a stock')
    history.add_argument('symbol')

    report = subparsers.add_parser('report', help='Show or download the report for a ticker')
    report.add_argument('ticker')
    report.add_argument('--download', metavar='DIR', help='Save the report workbook to DIR')

    return parser


def load_config(args: argparse.Namespace) -> DashboardConfig:
    config = load_default_config(args.config)
    if args.api_url:
        config.api.base_url = args.api_url
    if args.log_level:
        config.logging.level = args.log_level.upper()
    return config


async def wait_for(handles: List[JobHandle]) -> int:
    """Wait for jobs to end. Returns a non-zero exit code if any did not complete."""
    outcomes = await asyncio.gather(*(handle.wait() for handle in handles))
    return 0 if all(outcome is PollState.COMPLETED for outcome in outcomes) else 1


async def run_command(dashboard: Dashboard, args: argparse.Namespace) -> int:
    command = args.command

    if command == 'analyze':
        if len(args.tickers) == 1:
            handle = await dashboard.analyze_ticker(args.tickers[0], args.indicators)
        else:
            handle = await dashboard.analyze_watchlist(args.tickers, args.indicators)
        print(f"Submitted job {handle.job_id} ({handle.slot.value})")
        return 0 if args.no_wait else await wait_for([handle])

    if command == 'analyze-all':
        if args.symbols:
            dashboard.selection(JobSlot.ALL_STOCKS).select_all(args.symbols)
            handle = await dashboard.analyze_selected_stocks()
        else:
            handle = await dashboard.analyze_all()
        print(f"Submitted job {handle.job_id} ({handle.slot.value})")
        return 0 if args.no_wait else await wait_for([handle])

    if command == 'recover':
        handles = await dashboard.start()
        if not handles:
            print("No running jobs recorded in this session")
            return 0
        for handle in handles:
            print(f"Following job {handle.job_id} ({handle.slot.value})")
        return 0 if args.no_wait else await wait_for([h for h in handles if not h.done])

    if command == 'status':
        found = False
        for slot in JobSlot:
            job_id = dashboard.markers.get(slot.value)
            if not job_id:
                continue
            found = True
            snapshot = await dashboard.engines[slot].source.fetch(job_id)
            print(f"[{slot.value}] {job_id}: {snapshot.status.value}. {summarize(aggregate(snapshot))}")
        if not found:
            print("No running jobs recorded in this session")
        return 0

    if command == 'cancel':
        slot = JobSlot(args.slot)
        await dashboard.start()
        job = await dashboard.cancel(slot)
        if job is None:
            print(f"No running job in slot {slot.value}")
        return 0

    if command == 'stocks':
        stocks = await dashboard.load_all_stocks()
        visible = filter_stocks(stocks, args.query)
        for stock in visible:
            score = f"{stock.score:.1f}" if stock.score is not None else "-"
            print(f"{stock.yahoo_symbol:<16} {stock.name[:32]:<32} {stock.status.value:<10} "
                  f"{score:>6} {stock.verdict or '-'}")
        print(f"{len(visible)} of {len(stocks)} stocks")
        return 0

    if command == 'watchlist':
        if args.action in ('add', 'remove') and not args.symbol:
            print(f"watchlist {args.action} needs a symbol", file=sys.stderr)
            return 2
        if args.action == 'add':
            entries = await dashboard.add_to_watchlist(args.symbol, args.name)
        elif args.action == 'remove':
            entries = await dashboard.remove_from_watchlist(args.symbol)
        else:
            entries = await dashboard.load_watchlist()
        for entry in entries:
            print(f"{entry.symbol:<16} {entry.name[:32]:<32} {entry.verdict:<24} {entry.confidence:.0%}")
        return 0

    if command == 'history':
        for snapshot in await dashboard.stock_history(args.symbol):
            score = f"{snapshot.score:.1f}" if snapshot.score is not None else "-"
            print(f"{snapshot.analyzed_at or '-':<28} {score:>6} {snapshot.verdict or '-'}")
        return 0

    if command == 'report':
        if args.download:
            path = await dashboard.download_report(args.ticker, args.download)
            print(f"Report saved to {path}")
        else:
            report = await dashboard.get_report(args.ticker)
            for key, value in report.items():
                print(f"{key}: {value}")
        return 0

    raise ValueError(f"Unknown command: {command}")


async def _main(args: argparse.Namespace, config: DashboardConfig) -> int:
    dashboard = Dashboard.from_config(config)
    dashboard.subscribe(ConsoleObserver())
    try:
        return await run_command(dashboard, args)
    finally:
        dashboard.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
        setup_logging(
            level=config.logging.level,
            log_to_file=config.logging.log_to_file,
            log_file_path=config.logging.log_file_path,
            enable_structured_logging=config.logging.enable_structured_logging,
        )
        return asyncio.run(_main(args, config))
    except DashboardError as e:
        info = describe_error(e, ErrorContext(
            ticker=getattr(args, 'ticker', None) or getattr(args, 'symbol', None),
            action=args.command,
        ))
        print(info.user_message, file=sys.stderr)
        for action in info.suggested_actions:
            print(f"  - {action}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user, session markers kept")
        print("Interrupted. Running jobs keep going on the server; use 'recover' to follow them.",
              file=sys.stderr)
        return 130


if __name__ == '__main__':
    sys.exit(main())
