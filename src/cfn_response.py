"""
CloudFormation Custom Resource Response Helpers
Builds and delivers custom resource responses and provides the shared handler flow.
"""

import json
import os
import logging
import uuid
import requests
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Callable


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO'))

SUCCESS = 'SUCCESS'
FAILED = 'FAILED'

CREATE = 'Create'
UPDATE = 'Update'
DELETE = 'Delete'

# Seconds to wait on the presigned callback URL
RESPONSE_TIMEOUT = float(os.environ.get('CFN_RESPONSE_TIMEOUT', '10'))


class InvalidPropertiesError(ValueError):
    """Raised when a resource property is missing or malformed."""


@dataclass
class ResourceResult:
    """Outcome of a single custom resource request."""

    status: str
    data: Dict[str, str] = field(default_factory=dict)
    reason: Optional[str] = None
    no_echo: bool = False

    @classmethod
    def success(cls, data: Optional[Dict[str, str]] = None, no_echo: bool = False) -> 'ResourceResult':
        return cls(status=SUCCESS, data=dict(data or {}), no_echo=no_echo)

    @classmethod
    def failure(cls, reason: str) -> 'ResourceResult':
        return cls(status=FAILED, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS


def parse_whole_number(value: Any, name: str, minimum: int = 0, maximum: Optional[int] = None,
                       message: Optional[str] = None) -> int:
    """
    Parse a resource property holding an integer.

    CloudFormation passes every property as a string, but templates written
    in JSON may also send plain numbers.

    Args:
        value: Raw property value
        name: Property name used in the error message
        minimum: Smallest accepted value
        maximum: Largest accepted value, if any
        message: Error message overriding the default

    Returns:
        int: The parsed value

    Raises:
        InvalidPropertiesError: If the value is missing, not an integer or out of range
    """
    error = message or f'{name} is required and must be an integer of at least {minimum}'

    if value is None or isinstance(value, bool):
        raise InvalidPropertiesError(error)

    try:
        number = int(str(value).strip())
    except ValueError:
        raise InvalidPropertiesError(error)

    if number < minimum:
        raise InvalidPropertiesError(error)
    if maximum is not None and number > maximum:
        raise InvalidPropertiesError(f'{name} must not exceed {maximum}')

    return number


def build_response(
    event: Dict[str, Any],
    result: ResourceResult,
    physical_resource_id: str,
    context: Any = None
) -> Dict[str, Any]:
    """
    Build the response body CloudFormation expects on the callback URL.

    The correlation identifiers are copied from the request unchanged.
    """
    reason = result.reason
    if not reason:
        log_stream = getattr(context, 'log_stream_name', None)
        if log_stream:
            reason = f'See the details in CloudWatch Log Stream: {log_stream}'
        elif not result.ok:
            reason = 'Custom resource request failed'
        else:
            reason = ''

    return {
        'Status': result.status,
        'Reason': reason,
        'PhysicalResourceId': physical_resource_id,
        'StackId': event.get('StackId'),
        'RequestId': event.get('RequestId'),
        'LogicalResourceId': event.get('LogicalResourceId'),
        'NoEcho': result.no_echo,
        'Data': result.data
    }


def send_response(response_url: Optional[str], response_body: Dict[str, Any],
                  timeout: float = RESPONSE_TIMEOUT) -> bool:
    """
    Deliver a response body to the presigned CloudFormation callback URL.

    Delivery is attempted once. A failure here cannot be reported to
    CloudFormation, so it is logged and the stack falls back to its own timeout.

    Args:
        response_url: Presigned S3 URL from the request event
        response_body: Body produced by build_response
        timeout: Request timeout in seconds

    Returns:
        bool: True if the callback accepted the response
    """
    if not response_url:
        logger.error("No ResponseURL in request, unable to deliver response")
        return False

    json_body = json.dumps(response_body)
    # The presigned URL is signed with an empty content type
    headers = {
        'content-type': '',
        'content-length': str(len(json_body))
    }

    try:
        response = requests.put(response_url, data=json_body, headers=headers, timeout=timeout)
        logger.info(f"Response delivered, status code: {response.status_code}")
        return response.status_code in [200, 201, 204]

    except requests.exceptions.Timeout:
        logger.error("Timed out delivering response to CloudFormation")
    except requests.exceptions.ConnectionError:
        logger.error("Cannot connect to CloudFormation response URL")
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to deliver response: {str(e)}")

    return False


class CustomResourceHandler:
    """
    Base flow shared by the custom resource Lambda functions.

    Every request goes through the same steps:
    - Delete is answered with SUCCESS without touching any external service
    - Create and Update validate the properties, build the client once and run one query
    - Whatever happens, exactly one response is delivered through the sender

    Subclasses implement validate() and query() and may override delete().
    """

    resource_type = 'CustomResource'
    connect_failure_reason = 'unable to set up client'
    query_failure_reason = 'unable to complete request'

    def __init__(
        self,
        client_factory: Optional[Callable[[], Any]] = None,
        sender: Optional[Callable[[Optional[str], Dict[str, Any]], bool]] = None
    ):
        self.client_factory = client_factory
        self.sender = sender or send_response

    def new_physical_resource_id(self) -> str:
        return f"{self.resource_type}{uuid.uuid4()}"

    def validate(self, properties: Dict[str, Any]) -> Any:
        """Return the parsed parameters or raise InvalidPropertiesError."""
        return properties

    def connect(self) -> Any:
        if self.client_factory is None:
            return None
        return self.client_factory()

    def query(self, client: Any, params: Any) -> ResourceResult:
        raise NotImplementedError

    def delete(self, properties: Dict[str, Any]) -> ResourceResult:
        return ResourceResult.success()

    def create_or_update(self, properties: Dict[str, Any]) -> ResourceResult:
        """Run validation, client setup and the query, mapping any failure to a result."""
        try:
            params = self.validate(properties)
        except InvalidPropertiesError as e:
            logger.error(f"Invalid resource properties: {str(e)}")
            return ResourceResult.failure(str(e))

        try:
            client = self.connect()
        except Exception:
            logger.exception(self.connect_failure_reason)
            return ResourceResult.failure(self.connect_failure_reason)

        try:
            return self.query(client, params)
        except Exception:
            logger.exception(self.query_failure_reason)
            return ResourceResult.failure(self.query_failure_reason)

    def handle(self, event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
        """
        Process one lifecycle event and deliver its response.

        Args:
            event: CloudFormation custom resource request
            context: Lambda context object

        Returns:
            Dict containing the response body that was delivered
        """
        request_type = event.get('RequestType')
        properties = event.get('ResourceProperties') or {}
        existing_id = event.get('PhysicalResourceId')

        logger.info(f"Received {request_type} request for {event.get('LogicalResourceId')}")

        try:
            if request_type == DELETE:
                physical_resource_id = existing_id or self.new_physical_resource_id()
                result = self.delete(properties)
            elif request_type in [CREATE, UPDATE]:
                physical_resource_id = self.new_physical_resource_id()
                result = self.create_or_update(properties)
            else:
                physical_resource_id = existing_id or self.new_physical_resource_id()
                result = ResourceResult.failure(f'Unsupported request type: {request_type}')
        except Exception as e:
            logger.exception(f"Unexpected error handling {request_type} request")
            physical_resource_id = existing_id or self.new_physical_resource_id()
            result = ResourceResult.failure(f'Unexpected error: {str(e)}')

        if result.ok:
            logger.info(f"{request_type} succeeded for {physical_resource_id}")
        else:
            logger.error(f"{request_type} failed: {result.reason}")

        response_body = build_response(event, result, physical_resource_id, context)
        self.sender(event.get('ResponseURL'), response_body)
        return response_body
