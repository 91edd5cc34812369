from __future__ import annotations

from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from tests.fakes import FakeRuntime, FlakyBrokerClient

TESTDATA = Path(__file__).parent / "testdata"


class RegistryStub:
	def __init__(self, server: TestServer) -> None:
		self.server = server
		self.status = 200
		self.hits = 0

	@property
	def address(self) -> str:
		return f"{self.server.host}:{self.server.port}"


@pytest.fixture
def messages_file() -> Path:
	return TESTDATA / "messages.json"


@pytest.fixture
def runtime() -> FakeRuntime:
	return FakeRuntime()


@pytest.fixture
def client() -> FlakyBrokerClient:
	return FlakyBrokerClient()


@pytest.fixture
def client_factory(client):
	return lambda address: client


@pytest.fixture
async def registry() -> AsyncGenerator[RegistryStub]:
	stub: RegistryStub

	async def root(request: web.Request) -> web.Response:
		stub.hits += 1
		return web.json_response({}, status=stub.status)

	app = web.Application()
	app.router.add_get("/", root)

	server = TestServer(app)
	await server.start_server()
	stub = RegistryStub(server)
	yield stub
	await server.close()


@pytest.fixture(scope="session")
def docker_available() -> Generator[bool]:
	try:
		import docker

		docker.from_env().ping()
	except Exception:
		yield False
	else:
		yield True
