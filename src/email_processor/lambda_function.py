"""
Email Processor Lambda Function - Entry point for the notification email worker.

This module serves as the Lambda function entry point and delegates to
eventhub.handlers.email_processor.
"""

import os
import sys
from typing import Any, Dict

# Add the eventhub package to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from aws_lambda_powertools.utilities.typing import LambdaContext
from eventhub.handlers.email_processor import lambda_handler as email_processor_lambda_handler


def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda function entry point for the notification email worker.

    Args:
        event: SQS event with notification records
        context: Lambda context object

    Returns:
        Handler response dictionary
    """
    return email_processor_lambda_handler(event, context)
