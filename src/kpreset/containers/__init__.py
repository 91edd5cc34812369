from .confluent import TestcontainersRuntime, use_kraft
from .launcher import ContainerLauncher

__all__ = ["ContainerLauncher", "TestcontainersRuntime", "use_kraft"]
