from .client import BrokerClientProtocol
from .runtime import ContainerHandle, ContainerRuntimeProtocol

__all__ = ["BrokerClientProtocol", "ContainerHandle", "ContainerRuntimeProtocol"]
