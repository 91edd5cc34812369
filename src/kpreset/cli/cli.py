from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from argparse import Namespace

import loguru

from ..errors import ConfigurationError, KPresetError
from ..options import (
    Option,
    preset,
    with_kraft,
    with_messages_file,
    with_schema_registry,
    with_topic_configs,
    with_topics,
    with_version,
)
from ..orchestrator import start
from ..types import BROKER_PORT, SCHEMA_REGISTRY_PORT, Configuration, TopicConfig

logger = loguru.logger.bind(name="kpreset.cli")


def parse_topic_config(value: str) -> TopicConfig:
    name, sep, partitions = value.rpartition(":")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME:PARTITIONS, got {value!r}")
    try:
        return TopicConfig(name, int(partitions))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid partition count in {value!r}") from exc
    except ConfigurationError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kpreset",
        description="kpreset - disposable kafka broker with topics and seed data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  kpreset --topic events --topic alerts
  kpreset --topic-config orders:3 --messages-file seed.json
  kpreset --version 7.5.3 --schema-registry --timeout 300
        """,
    )

    parser.add_argument("--topic", "-t", action="append", default=[], help="topic with one partition (repeatable)")

    parser.add_argument(
        "--topic-config",
        "-p",
        action="append",
        default=[],
        type=parse_topic_config,
        help="topic with explicit partition count, as NAME:PARTITIONS (repeatable)",
    )

    parser.add_argument("--messages-file", "-m", default=None, help="json file with seed messages")

    parser.add_argument("--version", "-v", default=None, help="broker image tag (default: 7.6.1)")

    parser.add_argument("--schema-registry", "-s", action="store_true", help="also start a schema registry")

    parser.add_argument(
        "--mode",
        choices=["auto", "kraft", "zookeeper"],
        default="auto",
        help="broker consensus mode: auto (by version), kraft or zookeeper. default: auto",
    )

    parser.add_argument("--name", "-n", default=None, help="container name (default: generated)")

    parser.add_argument(
        "--timeout", type=float, default=600.0, help="overall provisioning timeout in seconds (default: 600)"
    )

    parser.add_argument("--debug", action="store_true", help="log container output when provisioning fails")

    parser.add_argument("--log-level", "-l", choices=["debug", "info", "warning"], default="info", help="log level")

    return parser


def build_config(args: Namespace) -> Configuration:
    options: list[Option] = []

    if args.topic:
        options.append(with_topics(*args.topic))
    if args.topic_config:
        options.append(with_topic_configs(*args.topic_config))
    if args.messages_file:
        options.append(with_messages_file(args.messages_file))
    if args.version:
        options.append(with_version(args.version))
    if args.schema_registry:
        options.append(with_schema_registry())
    if args.mode != "auto":
        options.append(with_kraft(args.mode == "kraft"))

    return preset(*options)


async def run_instance(config: Configuration, name: str | None, timeout: float, debug: bool) -> None:
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("rcvd signal {}, tearing down...", sig.name)
        shutdown_event.set()

    for _sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(_sig, handle_signal, _sig)

    instance = await start(config, name=name, timeout=timeout, debug=debug)

    print(f"{BROKER_PORT}={instance.address}", flush=True)
    if instance.registry_address is not None:
        print(f"{SCHEMA_REGISTRY_PORT}=http://{instance.registry_address}", flush=True)

    logger.info("instance {} ready; ctrl+c to stop", instance.name)

    try:
        await shutdown_event.wait()
    finally:
        await instance.stop()
        logger.info("instance {} stopped", instance.name)


def cli() -> None:
    parser = build_parser()
    args: Namespace = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level=args.log_level.upper())

    try:
        config = build_config(args)
    except ConfigurationError as e:
        logger.error("invalid configuration: {}", e)
        sys.exit(2)

    logger.info("topics: {}", ", ".join(f"{t.topic}:{t.num_partitions}" for t in config.resolved_topics) or "-")
    logger.info("seed messages: {}", len(config.all_messages))
    logger.info("version: {}", config.version)
    logger.info("schema registry: {}", config.schema_registry)

    try:
        asyncio.run(run_instance(config, args.name, args.timeout, args.debug))
    except KeyboardInterrupt:
        logger.info("interrupted by user")
    except KPresetError as e:
        logger.error("provisioning failed: {}", e)
        sys.exit(1)
    except Exception as e:
        logger.exception("unexpected failure: {}", e)
        sys.exit(1)
