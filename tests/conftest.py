import pytest
from starlette.testclient import TestClient

from nginx_echo.app import create_app
from nginx_echo.config import EchoConfig

PROXY_HEADERS = {
    "X-Nginx-Echo-Host": "example.com",
    "X-Nginx-Echo-Ip": "203.0.113.7",
    "X-Nginx-Echo-Scheme": "https",
}


@pytest.fixture
def client():
    with TestClient(create_app(EchoConfig())) as c:
        yield c


@pytest.fixture
def proxied(client):
    client.headers.update(PROXY_HEADERS)
    return client
