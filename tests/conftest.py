"""
Pytest configuration and shared fixtures for EC2 Portal tests.
"""

import json
import tempfile
from pathlib import Path
from typing import Any, Dict, List

import httpx
import pytest

from ec2_portal.auth.identity import StaticTokenIdentityProvider
from ec2_portal.services.command_client import CommandServiceClient


API_URL = "https://api.example.com/api"
TEST_TOKEN = "test-bearer-token"


class FakeCommandService:
    """In-memory Command Service reachable through httpx.MockTransport."""

    def __init__(self, instances: List[Dict[str, Any]]):
        self.instances = instances
        self.requests: List[Dict[str, Any]] = []
        self.headers: List[httpx.Headers] = []
        self.list_status = 200
        self.action_status = 200
        self.rejected_ids = set()

    @property
    def list_calls(self) -> int:
        return sum(1 for body in self.requests if body['action'] == 'listInstances')

    @property
    def action_calls(self) -> List[Dict[str, Any]]:
        return [body for body in self.requests if body['action'] != 'listInstances']

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        self.headers.append(request.headers)

        if body['action'] == 'listInstances':
            if self.list_status != 200:
                return httpx.Response(self.list_status, json={'message': 'boom'})
            return httpx.Response(200, json=self.instances)

        if self.action_status != 200 or body.get('instanceId') in self.rejected_ids:
            status = self.action_status if self.action_status != 200 else 500
            return httpx.Response(status, json={'message': 'rejected'})
        return httpx.Response(200, text="OK")

    def client(self) -> CommandServiceClient:
        transport = httpx.MockTransport(self.handler)
        return CommandServiceClient(API_URL, httpx.AsyncClient(transport=transport))


@pytest.fixture
def temp_config_dir():
    """Create a temporary directory for config files during tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def sample_config():
    """Sample configuration for testing."""
    return {
        "api_url": API_URL,
        "authority": "https://cognito-idp.us-east-1.amazonaws.com/us-east-1_AbCdEf123",
        "client_id": "4dvl10ougak8vdakaj9e2cn3t3",
        "redirect_uri": "https://portal.example.com",
        "created_at": "2024-01-05T14:30:22Z",
        "version": "1.0.0"
    }


@pytest.fixture
def sample_instances():
    """listInstances payload, deliberately unsorted."""
    return [
        {
            "accountId": "222222222222",
            "accountName": "prod",
            "instanceId": "i-0b",
            "instanceType": "t3.large",
            "region": "eu-west-1",
            "state": "running",
            "name": "zeta",
            "env": "prod"
        },
        {
            "accountId": "111111111111",
            "accountName": "dev",
            "instanceId": "i-0a",
            "instanceType": "t3.micro",
            "region": "us-east-1",
            "state": "stopped",
            "name": "alpha",
            "env": "dev"
        },
        {
            "accountId": "111111111111",
            "accountName": "dev",
            "instanceId": "i-0c",
            "instanceType": "t3.small",
            "region": "us-east-1",
            "state": "pending",
            "name": "Mid",
            "env": "dev"
        }
    ]


@pytest.fixture
def command_service(sample_instances):
    return FakeCommandService(sample_instances)


@pytest.fixture
def identity():
    """Signed-in identity provider with a fixed token."""
    provider = StaticTokenIdentityProvider(TEST_TOKEN, email="user@example.com")
    provider.sign_in()
    return provider


@pytest.fixture
def signed_out_identity():
    return StaticTokenIdentityProvider(TEST_TOKEN, email="user@example.com")
