"""Shared pytest fixtures for ecs_agent_status tests."""

import logging
import os
import sys
from pathlib import Path

import boto3
import pytest
from botocore.stub import Stubber

# Make the top-level script importable without installing it
root_path = Path(__file__).parent.parent
if str(root_path) not in sys.path:
    sys.path.insert(0, str(root_path))

ACCOUNT = '123456789012'
REGION = 'us-east-1'


@pytest.fixture(scope="session", autouse=True)
def configure_test_environment():
    """Prevent actual AWS API calls during testing."""
    test_env = {
        "AWS_DEFAULT_REGION": REGION,
        "AWS_ACCESS_KEY_ID": "testing",
        "AWS_SECRET_ACCESS_KEY": "testing",
        "AWS_SESSION_TOKEN": "testing",
    }
    for key, value in test_env.items():
        os.environ.setdefault(key, value)


@pytest.fixture
def ecs_client():
    return boto3.client(
        'ecs',
        region_name=REGION,
        aws_access_key_id='testing',
        aws_secret_access_key='testing',
    )


@pytest.fixture
def stubber(ecs_client):
    with Stubber(ecs_client) as stub:
        yield stub
        stub.assert_no_pending_responses()


@pytest.fixture
def logger():
    log = logging.getLogger('tests.ecs_agent_status')
    log.setLevel(logging.DEBUG)
    return log


def cluster_arn(name):
    return f"arn:aws:ecs:{REGION}:{ACCOUNT}:cluster/{name}"


def instance_arn(cluster, instance_id):
    return f"arn:aws:ecs:{REGION}:{ACCOUNT}:container-instance/{cluster}/{instance_id}"
