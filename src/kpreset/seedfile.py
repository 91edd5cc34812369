"""Seed-message file loading."""

from __future__ import annotations

from pathlib import Path

import msgspec
from loguru import logger

from .errors import ConfigurationError
from .types import Message


class SeedRecord(msgspec.Struct, frozen=True):
    topic: str
    key: str
    value: str
    time: int

    def to_message(self) -> Message:
        return Message(topic=self.topic, key=self.key, value=self.value, timestamp=self.time)


_decoder = msgspec.json.Decoder(list[SeedRecord])


def load_messages_file(path: str | Path) -> list[Message]:
    """
    load seed messages from a json array of `{topic, key, value, time}` objects

    :param path: path to the seed file
    :raises ConfigurationError: if the file is missing, unreadable or malformed
    :returns messages in file order
    """
    path = Path(path)

    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ConfigurationError(f"cannot read messages file {str(path)!r}: {exc}") from exc

    try:
        records = _decoder.decode(data)
    except msgspec.DecodeError as exc:
        raise ConfigurationError(f"malformed messages file {str(path)!r}: {exc}") from exc

    logger.debug("loaded {} seed messages from {}", len(records), path)
    return [record.to_message() for record in records]
