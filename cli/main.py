"""Storage plumbing benchmark CLI - Command line interface."""

import argparse
import logging
import sys
from typing import Optional

from pydantic import ValidationError

from agent.config import init_load_settings
from agent.connectors.nfs import NfsConnector
from agent.connectors.s3 import S3Connector
from common.exceptions import PlumbingError
from common.models.results import Protocol
from common.utils import load_yaml, save_yaml
from manager.config import Settings, init_settings
from manager.core.results import ResultAggregator
from manager.core.runner import BenchmarkRunner
from manager.provisioner import ResourceProvisioner
from manager.session import ManagementSession

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Measure NFS and S3 throughput of a storage array",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "The management endpoint and API token are read from FB_MGMT_VIP and FB_TOKEN.\n"
            "Pass --target to test an existing export or bucket without provisioning."
        ),
    )
    parser.add_argument("--skip-nfs", action="store_true", default=None, help="Skip NFS tests")
    parser.add_argument("--skip-s3", action="store_true", default=None, help="Skip S3 tests")
    parser.add_argument("-d", "--duration", type=float, help="Seconds per write and read phase")
    parser.add_argument("--nfs-concurrency", type=int, help="NFS worker threads")
    parser.add_argument("--s3-concurrency", type=int, help="S3 worker threads")
    parser.add_argument("-c", "--config", help="YAML file with 'run' and 'load' settings")
    parser.add_argument("-o", "--output", help="Also write the report to this YAML file")
    parser.add_argument("--log-level", help="Logging level (default: INFO)")

    explicit = parser.add_argument_group("explicit target (no provisioning)")
    explicit.add_argument("--target", help="Data endpoint address")
    explicit.add_argument("--export", help="NFS export path on the target")
    explicit.add_argument("--bucket", help="Existing S3 bucket on the target")
    explicit.add_argument("--access-key", help="S3 access key id")
    explicit.add_argument("--secret-key", help="S3 secret access key")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    """Merge the YAML config file and command line flags into settings."""
    run_config: dict = {}
    load_config: dict = {}
    if args.config:
        data = load_yaml(args.config)
        run_config = dict(data.get("run") or {})
        load_config = dict(data.get("load") or {})

    flags = {
        "skip_nfs": args.skip_nfs,
        "skip_s3": args.skip_s3,
        "test_duration": args.duration,
        "nfs_concurrency": args.nfs_concurrency,
        "s3_concurrency": args.s3_concurrency,
        "log_level": args.log_level,
    }
    run_config.update({k: v for k, v in flags.items() if v is not None})

    init_load_settings(**load_config)
    return init_settings(**run_config)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format=settings.log_format,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def print_report(results: ResultAggregator) -> None:
    print()
    for row in results.rows():
        print(row)

    failures = results.teardown_failures
    if failures:
        print()
        print("Teardown failures (resources may have leaked):")
        for failure in failures:
            print(f"  {failure.resource}: {failure.error}")


def run_explicit(args: argparse.Namespace, runner: BenchmarkRunner) -> None:
    if args.export:
        connector = NfsConnector(args.target, args.export)
        runner.run_explicit(Protocol.NFS, args.target, connector)
    if args.bucket:
        connector = S3Connector(args.target, args.access_key, args.secret_key, args.bucket)
        runner.run_explicit(Protocol.S3, args.target, connector)


def run_provisioned(settings: Settings, runner: BenchmarkRunner) -> None:
    with ManagementSession.connect(
        settings.mgmt_vip,
        settings.token,
        verify_ssl=settings.verify_ssl,
        timeout=settings.request_timeout,
    ) as session:
        runner.provisioner = ResourceProvisioner(session)
        runner.run()


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.target:
        if not args.export and not args.bucket:
            parser.error("--target needs --export and/or --bucket")
        if args.bucket and not (args.access_key and args.secret_key):
            parser.error("--bucket needs --access-key and --secret-key")

    try:
        settings = load_settings(args)
    except ValidationError as e:
        logger.error(f"Invalid settings: {e}")
        return 1
    configure_logging(settings)

    if not args.target and not settings.can_provision:
        logger.error(
            "Must set FB_MGMT_VIP to the management address and FB_TOKEN to the "
            "REST API token, or pass --target"
        )
        return 1

    runner = BenchmarkRunner(settings)
    exit_code = 0
    try:
        if args.target:
            run_explicit(args, runner)
        else:
            run_provisioned(settings, runner)
    except PlumbingError as e:
        logger.error(f"Run aborted: {e}")
        exit_code = 1

    print_report(runner.results)
    if args.output:
        save_yaml(args.output, runner.results.to_dict())
        logger.info(f"Report written to {args.output}")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
