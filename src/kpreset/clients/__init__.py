from .kafka import AIOKafkaBrokerClient
from .memory import InMemoryBrokerClient, Record

__all__ = ["AIOKafkaBrokerClient", "InMemoryBrokerClient", "Record"]
