from __future__ import annotations

import pytest

from kpreset.errors import ConfigurationError
from kpreset.seedfile import load_messages_file
from kpreset.types import Message


def test_load_in_file_order(messages_file):
	messages = load_messages_file(messages_file)

	assert messages == [
		Message("events", "order", "2", 1700000000000000000),
		Message("alerts", "MEM", "71", 1700000001000000000),
		Message("events", "order", "3", 1700000002000000000),
	]
	assert messages[0].timestamp_ms == 1700000000000


def test_accepts_str_path(messages_file):
	assert len(load_messages_file(str(messages_file))) == 3


def test_empty_array(tmp_path):
	path = tmp_path / "empty.json"
	path.write_text("[]")
	assert load_messages_file(path) == []


def test_missing_file(tmp_path):
	with pytest.raises(ConfigurationError, match="cannot read"):
		load_messages_file(tmp_path / "nope.json")


@pytest.mark.parametrize(
	"content",
	[
		"{not json",
		'{"topic": "a", "key": "k", "value": "v", "time": 1}',
		'[{"topic": "a", "key": "k", "value": "v"}]',
		'[{"topic": "a", "key": "k", "value": 1, "time": 1}]',
	],
	ids=["syntax", "not-an-array", "missing-time", "wrong-type"],
)
def test_malformed(tmp_path, content):
	path = tmp_path / "bad.json"
	path.write_text(content)

	with pytest.raises(ConfigurationError, match="malformed"):
		load_messages_file(path)


def test_zero_time_lets_producer_choose():
	assert Message("t", "k", "v").timestamp_ms is None
	assert Message("t", "k", "v", 0).timestamp_ms is None
	assert Message("t", "k", "v", 2_500_000).timestamp_ms == 2
