import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'infrastructure'))

import ami_info_handler
import endpoint_azs_handler
import random_string_handler


RESPONSE_URL = 'https://cloudformation-custom-resource-response.s3.amazonaws.com/presigned'


@pytest.fixture(autouse=True)
def aws_env(monkeypatch):
    """Dummy credentials so boto3 clients never reach a real account."""
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    yield


@pytest.fixture(autouse=True)
def reset_lazy_clients():
    """Drop clients and handlers cached by a previous test."""
    for module in (ami_info_handler, endpoint_azs_handler):
        module.ec2_client = None
    for module in (ami_info_handler, endpoint_azs_handler, random_string_handler):
        module._handler = None
    yield


class RecordingSender:
    """Stands in for send_response and keeps every delivered body."""

    def __init__(self):
        self.calls = []

    def __call__(self, response_url, response_body):
        self.calls.append((response_url, response_body))
        return True

    @property
    def last(self):
        return self.calls[-1][1]


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def make_event():
    def _make(request_type='Create', properties=None, physical_resource_id=None):
        event = {
            'RequestType': request_type,
            'ResponseURL': RESPONSE_URL,
            'StackId': 'arn:aws:cloudformation:us-east-1:123456789012:stack/smdemo/1a2b3c4d',
            'RequestId': 'f3c1c8a2-5d2e-4b8e-9a61-2c7d0b5e9f10',
            'LogicalResourceId': 'TestResource',
            'ResourceType': 'Custom::Test',
            'ResourceProperties': dict(properties or {})
        }
        if physical_resource_id:
            event['PhysicalResourceId'] = physical_resource_id
        return event
    return _make
