"""
Pytest configuration and fixtures for testing.

This module provides shared fixtures for the presence registry, the
connection manager, the broadcaster and mock WebSocket connections.
"""

import os
import tempfile

import pytest

# Keep the JSON error log out of the working tree during tests
os.environ.setdefault(
    "LOG_FILE_PATH", os.path.join(tempfile.gettempdir(), "halotalk-test.log")
)
# Serve the bundled client regardless of the working directory
os.environ.setdefault(
    "PUBLIC_DIR",
    os.path.join(os.path.dirname(os.path.dirname(__file__)), "public"),
)


@pytest.fixture
def registry():
    """
    Provides a fresh, open ConnectionRegistry.

    Yields:
        ConnectionRegistry: Empty registry, closed after the test
    """
    from halotalk.connection_registry import ConnectionRegistry

    registry = ConnectionRegistry()
    yield registry
    registry.close()


@pytest.fixture
def connection_manager():
    """
    Provides an empty ConnectionManager.

    Returns:
        ConnectionManager: Manager with no live connections
    """
    from halotalk.managers.websocket_connection_manager import ConnectionManager

    return ConnectionManager()


@pytest.fixture
def broadcaster(registry, connection_manager):
    """
    Provides a ChatBroadcaster wired to the fresh registry and manager.

    Args:
        registry: Fixture providing ConnectionRegistry
        connection_manager: Fixture providing ConnectionManager

    Returns:
        ChatBroadcaster: Broadcaster under test
    """
    from halotalk.managers.chat_broadcaster import ChatBroadcaster

    return ChatBroadcaster(registry, connection_manager)


@pytest.fixture
def mock_websocket():
    """
    Provides a mock WebSocket connection for testing.

    Returns:
        MagicMock: Mocked WebSocket instance
    """
    from tests.mocks.websocket_mocks import create_mock_websocket

    return create_mock_websocket()


@pytest.fixture
def connect_client(broadcaster):
    """
    Factory connecting a mock WebSocket to the broadcaster.

    Args:
        broadcaster: Fixture providing ChatBroadcaster

    Returns:
        Callable[[str], MagicMock]: Creates and connects a mock socket for
        the given connection id
    """
    from tests.mocks.websocket_mocks import create_mock_websocket

    def _connect(connection_id: str, send_error: Exception | None = None):
        ws = create_mock_websocket(send_error=send_error)
        broadcaster.connect(connection_id, ws)
        return ws

    return _connect


@pytest.fixture
def app():
    """
    Provides a freshly built FastAPI application.

    Returns:
        FastAPI: Application from the factory (lifespan not started)
    """
    from halotalk import application

    return application()


@pytest.fixture
def client(app):
    """
    Provides a TestClient with the application lifespan running.

    Args:
        app: FastAPI application fixture

    Yields:
        TestClient: Client sharing one event loop across WebSocket sessions
    """
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client
