"""
Environment variable models for type-safe configuration.

Handlers read these models at call time through the helper functions below,
never at import time. The modeler caches the parsed model; tests set
``LAMBDA_ENV_MODELER_DISABLE_CACHE`` so each call re-reads the environment.
A failed parse surfaces as ``ValueError``.
"""

from typing import Annotated, Optional

from aws_lambda_env_modeler import BaseModel, get_environment_variables
from pydantic import Field


class ApiEnvVars(BaseModel):
    """Environment variables for the HTTP API handlers."""

    # Single DynamoDB table holding events, organizers, registrations and participants
    TABLE_NAME: Annotated[str, Field(
        description='DynamoDB table name for all entities',
        min_length=1
    )]

    AWS_REGION: Annotated[str, Field(
        default='us-east-1',
        description='AWS region for service deployment'
    )] = 'us-east-1'

    ENVIRONMENT: Annotated[str, Field(
        default='dev',
        description='Deployment environment name',
        pattern=r'^(dev|staging|prod|test)$'
    )] = 'dev'

    POWERTOOLS_SERVICE_NAME: Annotated[str, Field(
        default='eventhub-api',
        description='Service name for AWS Powertools'
    )] = 'eventhub-api'

    LOG_LEVEL: Annotated[str, Field(
        default='INFO',
        description='Log level for application logging',
        pattern=r'^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$'
    )] = 'INFO'

    # Local DynamoDB endpoint, only set for local testing
    DYNAMODB_ENDPOINT: Annotated[Optional[str], Field(
        default=None,
        description='DynamoDB endpoint URL override'
    )] = None

    CORS_ALLOW_ORIGIN: Annotated[str, Field(
        default='*',
        description='CORS allowed origin for API responses'
    )] = '*'

    # Queue consumed by the email processor
    EMAIL_QUEUE_URL: Annotated[Optional[str], Field(
        default=None,
        description='SQS queue URL for email notifications'
    )] = None

    BANK_ACCOUNT: Annotated[str, Field(
        default='TBD',
        description='Bank account shown in registration emails'
    )] = 'TBD'

    # Session token validation
    AUTH_JWT_SECRET: Annotated[Optional[str], Field(
        default=None,
        description='Shared secret for HS256 session tokens'
    )] = None

    AUTH_JWKS_URL: Annotated[Optional[str], Field(
        default=None,
        description='JWKS endpoint used to verify RS256 session tokens'
    )] = None

    AUTH_ISSUER: Annotated[Optional[str], Field(
        default=None,
        description='Expected session token issuer'
    )] = None

    AUTH_AUDIENCE: Annotated[Optional[str], Field(
        default=None,
        description='Expected session token audience'
    )] = None

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == 'prod'

    @property
    def notifications_enabled(self) -> bool:
        """Check if registration emails should be queued."""
        return bool(self.EMAIL_QUEUE_URL)


class EmailProcessorEnvVars(BaseModel):
    """Environment variables for the email notification worker."""

    EMAIL_API_KEY: Annotated[str, Field(
        description='API key for the templated email provider',
        min_length=1
    )]

    EMAIL_API_URL: Annotated[str, Field(
        default='https://smtp.maileroo.com/api/v2/emails/template',
        description='Templated email endpoint'
    )] = 'https://smtp.maileroo.com/api/v2/emails/template'

    FROM_EMAIL: Annotated[str, Field(
        description='Sender email address',
        min_length=3
    )]

    FROM_NAME: Annotated[str, Field(
        default='Event Registrations',
        description='Sender display name'
    )] = 'Event Registrations'

    INDIVIDUAL_TEMPLATE_ID: Annotated[str, Field(
        description='Template for individual registration emails',
        min_length=1
    )]

    TEAM_TEMPLATE_ID: Annotated[str, Field(
        description='Template for team registration emails',
        min_length=1
    )]

    CONFIRMATION_TEMPLATE_ID: Annotated[str, Field(
        description='Template for payment confirmation emails',
        min_length=1
    )]

    EMAIL_TIMEOUT_SECONDS: Annotated[float, Field(
        default=10.0,
        description='HTTP timeout for email API calls',
        gt=0,
        le=60
    )] = 10.0

    MAX_CONCURRENCY: Annotated[int, Field(
        default=10,
        description='Maximum records processed concurrently per batch',
        ge=1,
        le=50
    )] = 10


def get_api_env_vars() -> ApiEnvVars:
    """
    Get typed environment variables for the API handlers.

    Returns:
        Validated environment variables model instance
    """
    return get_environment_variables(model=ApiEnvVars)


def get_email_env_vars() -> EmailProcessorEnvVars:
    """Get typed environment variables for the email worker."""
    return get_environment_variables(model=EmailProcessorEnvVars)
