"""
Command-line entry point.

Usage:
    broker-launcher HEAP_SIZE BROKER_COUNT PORTS CONFIG [options]

    # 4 GB heap, 5 brokers, broker port 9092 and JMX port 9999
    broker-launcher 4096 5 9092,9999 cluster.yml

Exit statuses:
    1  unexpected error
    3  no broker id available (all registered)
    4  could not win the election for the chosen broker id
    5  broker exited too soon (flapping)
    6  invalid configuration
    7  ZooKeeper unreachable
    130, 143  stopped by SIGINT or SIGTERM (after stopping the broker)
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from collections.abc import Sequence
from types import FrameType

from brokerlauncher.allocation import create_rng
from brokerlauncher.config import LaunchSettings, load_cluster_config
from brokerlauncher.exceptions import BrokerLauncherError, ExitCode, TerminationRequested
from brokerlauncher.launcher import BrokerLauncher
from brokerlauncher.worker import DEFAULT_ARCHIVE, DEFAULT_COMMAND

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [broker-launcher] %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> None:
    """
    Send log records to stdout, and warnings and errors to stderr as well.

    Fatal conditions and uncaught tracebacks therefore show up on both streams.
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    stderr_handler.setLevel(logging.WARNING)

    root = logging.getLogger()
    root.handlers[:] = [stdout_handler, stderr_handler]
    root.setLevel(level.upper())

    # kazoo is chatty at INFO about connection state changes
    logging.getLogger("kazoo").setLevel(logging.WARNING)


def _raise_termination(signum: int, frame: FrameType | None) -> None:
    # A second signal must not interrupt the cleanup started by the first
    signal.signal(signum, signal.SIG_IGN)
    raise TerminationRequested(signum)


def install_signal_handlers() -> None:
    """
    Turn SIGTERM and SIGINT into TerminationRequested.

    The exception unwinds through the launcher context, so the broker is
    stopped and the broker id released before the process exits.
    """
    for signum in (signal.SIGTERM, signal.SIGINT):
        signal.signal(signum, _raise_termination)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="broker-launcher",
        description="Claim a free Kafka broker id through ZooKeeper and supervise the broker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("heap_size", help="Broker heap size in megabytes")
    parser.add_argument("broker_count", help="Total number of brokers in the cluster")
    parser.add_argument("ports", help="Comma separated ports; the second one is the JMX port")
    parser.add_argument("config", help="Cluster YAML file with 'zk_hosts' and 'cluster'")
    parser.add_argument(
        "--template",
        default=None,
        help="Jinja2 template for server.properties (default: packaged template)",
    )
    parser.add_argument(
        "--properties",
        default="server.properties",
        help="Where to write the rendered broker config (default: %(default)s)",
    )
    parser.add_argument(
        "--archive",
        default=DEFAULT_ARCHIVE,
        help="Broker distribution archive to unpack (default: %(default)s)",
    )
    parser.add_argument(
        "--command",
        default=DEFAULT_COMMAND,
        help="Broker command line (default: %(default)s)",
    )
    parser.add_argument("--workdir", default=None, help="Working directory for the broker")
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the random generator (default: wall clock)",
    )
    parser.add_argument(
        "--no-tracing",
        action="store_true",
        help="Disable OpenTelemetry tracing",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: %(default)s)",
    )
    return parser


def run(args: argparse.Namespace) -> int:
    """
    Run the launcher for parsed arguments.

    Returns:
        Process exit status
    """
    try:
        settings = LaunchSettings.from_arguments(
            args.heap_size,
            args.broker_count,
            args.ports,
            args.config,
        )
        cluster = load_cluster_config(settings.config_path)

        launcher = BrokerLauncher(
            settings,
            cluster,
            rng=create_rng(args.seed),
            command=args.command,
            template_path=args.template,
            properties_path=args.properties,
            archive=args.archive,
            workdir=args.workdir,
            enable_tracing=not args.no_tracing,
        )
        with launcher:
            launcher.run()
    except BrokerLauncherError as e:
        logger.error("%s. Exiting.", e)
        return int(e.exit_code)
    except Exception:
        logger.exception("Unexpected error")
        return int(ExitCode.UNEXPECTED_ERROR)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    install_signal_handlers()
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
