"""
VPC Endpoint Service AZs Custom Resource Handler
Finds the Availability Zones that offer an interface endpoint for a service.

Resource properties:
- ServiceName: e.g. 'com.amazonaws.us-east-1.secretsmanager'
- DesiredNumAzs: minimum number of AZs that must offer the service, a whole number

Attributes returned via GetAtt:
- NumAzs: number of AZs offering the endpoint, as a string
- Azs: comma-separated list of the AZs in the order EC2 returns them
"""

import os
import json
import logging
import boto3
from botocore.config import Config
from typing import Dict, Any, Tuple

from cfn_response import CustomResourceHandler, InvalidPropertiesError, ResourceResult, parse_whole_number


# Configure logging
logger = logging.getLogger(__name__)
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO'))

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


class EndpointAzsHandler(CustomResourceHandler):
    """Checks that enough AZs offer a VPC interface endpoint and returns them."""

    resource_type = 'VpcEndpointServiceAZs'
    connect_failure_reason = 'unable to set up ec2 client'
    query_failure_reason = 'unable to retrieve endpoint service info'

    def __init__(self, client_factory=get_ec2_client, sender=None):
        super().__init__(client_factory=client_factory, sender=sender)

    def validate(self, properties: Dict[str, Any]) -> Tuple[str, int]:
        desired_num_azs = parse_whole_number(
            properties.get('DesiredNumAzs'),
            'DesiredNumAzs',
            minimum=0,
            message='DesiredNumAzs is required and must be a whole number'
        )

        service_name = properties.get('ServiceName')
        if not isinstance(service_name, str) or not service_name.strip():
            raise InvalidPropertiesError('ServiceName is required')

        return service_name, desired_num_azs

    def query(self, ec2, params: Tuple[str, int]) -> ResourceResult:
        service_name, desired_num_azs = params

        response = ec2.describe_vpc_endpoint_services(ServiceNames=[service_name])
        logger.debug(json.dumps(response, default=str))

        services = response.get('ServiceDetails', [])
        if len(services) != 1:
            return ResourceResult.failure(
                f'number of services should be 1 but is: {len(services)}'
            )

        azs = services[0].get('AvailabilityZones', [])
        if len(azs) < desired_num_azs:
            return ResourceResult.failure(
                f'insufficient number of availability zones - found: {len(azs)}'
            )

        logger.info(f"{service_name} is offered in {len(azs)} AZs: {azs}")
        return ResourceResult.success({
            'NumAzs': str(len(azs)),
            'Azs': ','.join(azs)
        })


_handler = None


def lambda_handler(event, context):
    """
    Endpoint AZs Lambda function - returns NumAzs and Azs for a VPC endpoint service
    """
    global _handler
    if _handler is None:
        _handler = EndpointAzsHandler()
    return _handler.handle(event, context)
