"""Command line entry point: work a queue, or scaffold its table migration."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import click

from dbqueue.common.payload import CommandPayload, Payload
from dbqueue.config import get_configured_settings
from dbqueue.generators.migration import MigrationGenerator
from dbqueue.queue import connect
from dbqueue.server.reporter import WorkerReporter
from dbqueue.server.worker import QUEUE_EMPTY, Worker
from dbqueue.storage.sql_storage import DEFAULT_TABLE


class ConsoleReporter(WorkerReporter):
    def working(self, queue: str) -> None:
        click.secho(f"Working Queue: {queue}", fg="yellow")

    def executing(self, payload: Payload) -> None:
        if isinstance(payload, CommandPayload):
            click.echo(f"Executing Command: {payload.command}")
        else:
            click.echo(f"Executing Job: {payload.job}")

    def succeeded(self, payload: Payload) -> None:
        click.secho("Success", fg="green")

    def failed(self, exc: BaseException) -> None:
        click.secho("Failed", fg="bright_red", err=True)
        click.secho(f"Exception: {type(exc).__name__} - {exc}", fg="red", err=True)

    def stopped(self, reason: str) -> None:
        if reason != QUEUE_EMPTY:
            click.secho(f"Exiting Worker: {reason}", fg="yellow")


def work(args: argparse.Namespace) -> int:
    settings = get_configured_settings()
    engine = connect(settings, connection=args.connection or None)
    worker = Worker.from_settings(
        engine,
        queue=args.queue or settings.default_queue,
        reporter=ConsoleReporter(),
        wait=args.wait,
    )
    worker.run()
    click.secho("Completed Working Queue", fg="green")
    return 0


def make_queue(args: argparse.Namespace) -> int:
    generator = MigrationGenerator(
        table=args.table,
        db_group=args.dbgroup,
        namespace=args.namespace,
    )
    if args.stdout:
        click.echo(generator.render(), nl=False)
        return 0
    try:
        path = generator.write(Path(args.root))
    except FileExistsError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        return 1
    click.secho(f"Created file: {path}", fg="green")
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dbqueue", description="Database backed job queue")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (env: DBQUEUE_LOG_LEVEL).",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    work_parser = commands.add_parser("work", help="Works the queue.")
    work_parser.add_argument(
        "--queue",
        default=None,
        help="The name of the queue to work, if not specified it will work the default queue",
    )
    work_parser.add_argument(
        "--connection",
        default=None,
        help="Queue connection group to use, defaults to the configured default connection.",
    )
    work_parser.add_argument(
        "--wait",
        action="store_true",
        help="Keep polling an empty queue instead of exiting.",
    )
    work_parser.set_defaults(handler=work)

    make_parser = commands.add_parser(
        "make:queue",
        aliases=["make-queue"],
        help="Generates a new queue table migration file.",
    )
    make_parser.add_argument(
        "--table",
        default=DEFAULT_TABLE,
        help=f'Table name to use for the queue. Default: "{DEFAULT_TABLE}".',
    )
    make_parser.add_argument(
        "--dbgroup",
        default="default",
        help='Database group the queue table lives in. Default: "default".',
    )
    make_parser.add_argument(
        "--namespace",
        default="migrations",
        help='Dotted package holding the Alembic environment. Default: "migrations".',
    )
    make_parser.add_argument(
        "--root",
        default=".",
        help="Directory the namespace is resolved against.",
    )
    make_parser.add_argument(
        "--stdout",
        action="store_true",
        help="Print the migration instead of writing it.",
    )
    make_parser.set_defaults(handler=make_queue)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    level = args.log_level or get_configured_settings().log_level
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
