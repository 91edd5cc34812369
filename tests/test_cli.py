from __future__ import annotations

import argparse

import pytest

from kpreset.cli import cli as cli_module
from kpreset.cli.cli import build_config, build_parser, parse_topic_config
from kpreset.errors import StartupError
from kpreset.types import TopicConfig


def test_parse_topic_config():
	assert parse_topic_config("orders:3") == TopicConfig("orders", 3)
	# only the last colon separates the count
	assert parse_topic_config("ns:orders:2") == TopicConfig("ns:orders", 2)


@pytest.mark.parametrize("value", ["orders", ":3", "orders:x", "orders:0"])
def test_parse_topic_config_invalid(value):
	with pytest.raises(argparse.ArgumentTypeError):
		parse_topic_config(value)


def test_build_config(messages_file):
	args = build_parser().parse_args(
		[
			"-t",
			"events",
			"--topic",
			"alerts",
			"--topic-config",
			"orders:3",
			"--messages-file",
			str(messages_file),
			"--version",
			"7.5.3",
			"--schema-registry",
			"--mode",
			"zookeeper",
		]
	)
	config = build_config(args)

	assert config.partitions == {"events": 1, "alerts": 1, "orders": 3}
	assert len(config.file_messages) == 3
	assert config.version == "7.5.3"
	assert config.schema_registry is True
	assert config.kraft is False


def test_build_config_defaults():
	config = build_config(build_parser().parse_args([]))
	assert config.topics == ()
	assert config.kraft is None
	assert config.schema_registry is False


def test_bad_messages_file_exits_2(monkeypatch, tmp_path):
	monkeypatch.setattr("sys.argv", ["kpreset", "--messages-file", str(tmp_path / "missing.json")])

	with pytest.raises(SystemExit) as excinfo:
		cli_module.cli()

	assert excinfo.value.code == 2


def test_provisioning_failure_exits_1(monkeypatch):
	calls = []

	async def failing_start(config, **kwargs):
		calls.append(kwargs)
		raise StartupError("no docker")

	monkeypatch.setattr(cli_module, "start", failing_start)
	monkeypatch.setattr("sys.argv", ["kpreset", "-t", "events", "--name", "ci", "--timeout", "30"])

	with pytest.raises(SystemExit) as excinfo:
		cli_module.cli()

	assert excinfo.value.code == 1
	assert calls == [{"name": "ci", "timeout": 30.0, "debug": False}]
