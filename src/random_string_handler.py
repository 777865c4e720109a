"""
Random String Custom Resource Handler
Generates random letter strings used for the database master user and password.
"""

import os
import logging
import secrets
import string
from typing import Dict, Any, Tuple

from cfn_response import CustomResourceHandler, InvalidPropertiesError, ResourceResult, parse_whole_number


# Configure logging
logger = logging.getLogger(__name__)
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO'))

ALPHABET = string.ascii_letters

# CloudFormation rejects response bodies above 4096 bytes
MAX_STRING_LENGTH = int(os.environ.get('MAX_STRING_LENGTH', '1024'))


def random_string(length: int, alphabet: str = ALPHABET) -> str:
    return ''.join(secrets.choice(alphabet) for _ in range(length))


class RandomStringHandler(CustomResourceHandler):
    """Returns a fresh random string as attribute RandomString on Create and Update."""

    resource_type = 'RandomString'

    def __init__(self, sender=None, max_length: int = None):
        super().__init__(client_factory=None, sender=sender)
        self.max_length = max_length or MAX_STRING_LENGTH

    def validate(self, properties: Dict[str, Any]) -> Tuple[int, bool]:
        length = parse_whole_number(
            properties.get('StringLength'),
            'StringLength',
            minimum=1,
            maximum=self.max_length,
            message='StringLength is required and must be a positive integer'
        )

        no_echo = properties.get('NoEcho', 'false')
        if isinstance(no_echo, str):
            no_echo = no_echo.strip().lower() == 'true'
        elif not isinstance(no_echo, bool):
            raise InvalidPropertiesError('NoEcho must be true or false')

        return length, no_echo

    def query(self, client, params: Tuple[int, bool]) -> ResourceResult:
        length, no_echo = params
        logger.info(f"Generating random string of length {length}")
        return ResourceResult.success({'RandomString': random_string(length)}, no_echo=no_echo)


_handler = None


def lambda_handler(event, context):
    """
    Random String Lambda function - returns StringLength random letters
    """
    global _handler
    if _handler is None:
        _handler = RandomStringHandler()
    return _handler.handle(event, context)
