"""
Tests for the AMI Info custom resource handler
"""

from unittest.mock import MagicMock, Mock, patch

import pytest
from moto import mock_aws

import ami_info_handler
from ami_info_handler import AmiInfoHandler, newest_image


def _image(image_id, created, name='amzn2-ami-hvm-2.0-x86_64-gp2'):
    return {'ImageId': image_id, 'CreationDate': created, 'Name': name}


def _ec2_with(images):
    ec2 = MagicMock()
    ec2.describe_images.return_value = {'Images': images}
    return ec2


class TestAmiInfoHandler:

    def test_newest_image_selected(self, sender, make_event):
        """Test the image with the latest CreationDate is returned"""
        ec2 = _ec2_with([
            _image('ami-0002', '2023-06-01T00:00:00.000Z'),
            _image('ami-0003', '2024-02-15T00:00:00.000Z', name='amzn2-ami-hvm-newest-gp2'),
            _image('ami-0001', '2022-11-20T00:00:00.000Z'),
        ])
        handler = AmiInfoHandler(client_factory=lambda: ec2, sender=sender)

        body = handler.handle(make_event('Create', {'NameFilter': 'amzn2-ami-hvm*gp2'}))

        assert body['Status'] == 'SUCCESS'
        assert body['Data']['Id'] == 'ami-0003'
        assert body['Data']['Name'] == 'amzn2-ami-hvm-newest-gp2'
        assert body['Data']['CreationDate'] == '2024-02-15T00:00:00.000Z'
        assert body['PhysicalResourceId'].startswith('AMIInfo')
        assert sender.last == body

    def test_query_uses_fixed_owner_and_name_filter(self, sender, make_event):
        ec2 = _ec2_with([_image('ami-0001', '2024-01-01T00:00:00.000Z')])
        handler = AmiInfoHandler(client_factory=lambda: ec2, sender=sender)

        handler.handle(make_event('Update', {'NameFilter': 'amzn2-ami-hvm*gp2'}, physical_resource_id='AMIInfo-1'))

        ec2.describe_images.assert_called_once_with(
            Owners=['amazon'],
            Filters=[{'Name': 'name', 'Values': ['amzn2-ami-hvm*gp2']}]
        )

    def test_owner_override(self, sender, make_event):
        ec2 = _ec2_with([_image('ami-0001', '2024-01-01T00:00:00.000Z')])
        handler = AmiInfoHandler(client_factory=lambda: ec2, sender=sender, owner='137112412989')

        handler.handle(make_event('Create', {'NameFilter': 'amzn2-*'}))

        assert ec2.describe_images.call_args[1]['Owners'] == ['137112412989']

    def test_no_matching_images(self, sender, make_event):
        handler = AmiInfoHandler(client_factory=lambda: _ec2_with([]), sender=sender)

        body = handler.handle(make_event('Create', {'NameFilter': 'does-not-exist-*'}))

        assert body['Status'] == 'FAILED'
        assert 'found: 0' in body['Reason']
        assert body['Data'] == {}

    @pytest.mark.parametrize('properties', [{}, {'NameFilter': ''}, {'NameFilter': '   '}, {'NameFilter': 42}])
    def test_missing_name_filter(self, sender, make_event, properties):
        factory = Mock()
        handler = AmiInfoHandler(client_factory=factory, sender=sender)

        body = handler.handle(make_event('Create', properties))

        assert body['Status'] == 'FAILED'
        assert 'NameFilter' in body['Reason']
        factory.assert_not_called()

    def test_catalog_unreachable(self, sender, make_event):
        ec2 = MagicMock()
        ec2.describe_images.side_effect = Exception('EndpointConnectionError')
        handler = AmiInfoHandler(client_factory=lambda: ec2, sender=sender)

        body = handler.handle(make_event('Create', {'NameFilter': 'amzn2-*'}))

        assert body['Status'] == 'FAILED'
        assert body['Reason'] == 'unable to retrieve image info'

    def test_client_setup_failure(self, sender, make_event):
        handler = AmiInfoHandler(client_factory=Mock(side_effect=Exception('no region')), sender=sender)

        body = handler.handle(make_event('Create', {'NameFilter': 'amzn2-*'}))

        assert body['Status'] == 'FAILED'
        assert body['Reason'] == 'unable to set up ec2 client'

    def test_delete_is_idempotent(self, sender, make_event):
        factory = Mock()
        handler = AmiInfoHandler(client_factory=factory, sender=sender)
        event = make_event('Delete', {'NameFilter': 'anything'}, physical_resource_id='AMIInfo-1')

        first = handler.handle(event)
        second = handler.handle(event)

        for body in (first, second):
            assert body['Status'] == 'SUCCESS'
            assert body['Data'] == {}
            assert body['PhysicalResourceId'] == 'AMIInfo-1'
        assert len(sender.calls) == 2
        factory.assert_not_called()


def test_newest_image_ties_keep_catalog_order():
    images = [
        _image('ami-first', '2024-01-01T00:00:00.000Z'),
        _image('ami-second', '2024-01-01T00:00:00.000Z'),
        _image('ami-older', '2023-01-01T00:00:00.000Z'),
    ]
    assert newest_image(images)['ImageId'] == 'ami-first'


@patch('cfn_response.requests.put')
def test_lambda_handler_no_match_against_ec2(mock_put, make_event):
    """Test the module entry point with an emulated EC2 catalog"""
    mock_put.return_value = Mock(status_code=200)
    event = make_event('Create', {'NameFilter': 'no-such-image-name-*'})

    with mock_aws():
        body = ami_info_handler.lambda_handler(event, {})

    assert body['Status'] == 'FAILED'
    assert 'found: 0' in body['Reason']
    assert body['StackId'] == event['StackId']
    mock_put.assert_called_once()
    assert mock_put.call_args[0][0] == event['ResponseURL']


@mock_aws
def test_ec2_client_is_cached():
    assert ami_info_handler.get_ec2_client() is ami_info_handler.get_ec2_client()
