"""Shared pytest fixtures.

S3 calls go to moto's in-process backend; the app is built through
``create_app`` with an injected storage service so no real endpoint is used.
"""

import boto3
import pytest
from fastapi.testclient import TestClient
from moto import mock_aws

from file_gateway.core.config import Settings
from file_gateway.services.storage import StorageService
from main import create_app
from tests.consts import TEST_REGION
from tests.fakes import make_settings


@pytest.fixture
def aws_credentials(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", TEST_REGION)


@pytest.fixture
def mocked_aws(aws_credentials):
    with mock_aws():
        yield


@pytest.fixture
def s3_client(mocked_aws):
    return boto3.client("s3", region_name=TEST_REGION)


@pytest.fixture
def storage(s3_client) -> StorageService:
    return StorageService(s3_client, region=TEST_REGION)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def client(storage, settings):
    app = create_app(settings=settings, storage=storage)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def embedded_client(storage):
    app = create_app(settings=make_settings(ADDRESSING_SCHEME="embedded"), storage=storage)
    with TestClient(app) as test_client:
        yield test_client
