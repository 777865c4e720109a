"""
AMI Info Custom Resource Handler
Looks up the newest Amazon EC2 image whose name matches a filter.
"""

import os
import logging
import boto3
from botocore.config import Config
from typing import Dict, Any, List

from cfn_response import CustomResourceHandler, InvalidPropertiesError, ResourceResult


# Configure logging
logger = logging.getLogger(__name__)
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO'))

# Images are only taken from this owner
AMI_OWNER = os.environ.get('AMI_OWNER', 'amazon')

# AWS clients - lazy loaded
ec2_client = None


def get_ec2_client():
    """Lazy load the EC2 client."""
    global ec2_client
    if ec2_client is None:
        ec2_client = boto3.client(
            'ec2',
            config=Config(connect_timeout=5, read_timeout=10, retries={'max_attempts': 2})
        )
    return ec2_client


def newest_image(images: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Return the most recently created image; ties keep catalog order."""
    return sorted(images, key=lambda image: image.get('CreationDate', ''), reverse=True)[0]


class AmiInfoHandler(CustomResourceHandler):
    """
    Resolves the AMI id for the bastion host.

    NameFilter uses the EC2 name filter syntax, e.g. 'amzn2-ami-hvm*gp2'.
    """

    resource_type = 'AMIInfo'
    connect_failure_reason = 'unable to set up ec2 client'
    query_failure_reason = 'unable to retrieve image info'

    def __init__(self, client_factory=get_ec2_client, sender=None, owner: str = None):
        super().__init__(client_factory=client_factory, sender=sender)
        self.owner = owner or AMI_OWNER

    def validate(self, properties: Dict[str, Any]) -> str:
        name_filter = properties.get('NameFilter')
        if not isinstance(name_filter, str) or not name_filter.strip():
            raise InvalidPropertiesError('NameFilter is required and must be a non-empty string')
        return name_filter

    def query(self, ec2, name_filter: str) -> ResourceResult:
        response = ec2.describe_images(
            Owners=[self.owner],
            Filters=[
                {'Name': 'name', 'Values': [name_filter]}
            ]
        )

        images = response.get('Images', [])
        logger.info(f"Found {len(images)} images for filter {name_filter}")

        if not images:
            return ResourceResult.failure(
                f'no images owned by {self.owner} match {name_filter} - found: {len(images)}'
            )

        image = newest_image(images)
        return ResourceResult.success({
            'Id': image['ImageId'],
            'Name': image.get('Name', ''),
            'CreationDate': image.get('CreationDate', '')
        })


_handler = None


def lambda_handler(event, context):
    """
    AMI Info Lambda function - returns the newest matching image as attribute Id
    """
    global _handler
    if _handler is None:
        _handler = AmiInfoHandler()
    return _handler.handle(event, context)
