"""
Organizers API Lambda Function - Entry point for the organizer profile API.

This module serves as the Lambda function entry point and delegates to
eventhub.handlers.organizers_handler.
"""

import os
import sys
from typing import Any, Dict

# Add the eventhub package to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from aws_lambda_powertools.utilities.typing import LambdaContext
from eventhub.handlers.organizers_handler import lambda_handler as organizers_handler_lambda_handler


def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda function entry point for the organizer profile API.

    Args:
        event: API Gateway HTTP API event
        context: Lambda context object

    Returns:
        Handler response dictionary
    """
    return organizers_handler_lambda_handler(event, context)
