"""
Service wiring for the HTTP handlers.

Services are built lazily from the environment on first use and reused across
warm invocations. A change in the relevant settings (as tests do between
cases) builds a fresh set.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from eventhub.dal import get_dal_handler
from eventhub.dal.dynamodb_handler import DynamoDBHandler
from eventhub.dal.event_repository import EventRepository
from eventhub.dal.organizer_repository import OrganizerRepository
from eventhub.dal.registration_repository import ParticipantRepository, RegistrationRepository
from eventhub.dal.unit_of_work import RegistrationUnitOfWork
from eventhub.handlers.models.env_vars import get_api_env_vars
from eventhub.handlers.utils.observability import logger
from eventhub.logic.event_service import EventService
from eventhub.logic.individual_registration import IndividualRegistrationService
from eventhub.logic.organizer_service import OrganizerService
from eventhub.logic.participant_query import ParticipantQueryService
from eventhub.logic.payment_status import PaymentStatusService
from eventhub.logic.registration_admin import RegistrationAdminService
from eventhub.logic.team_registration import TeamRegistrationService
from eventhub.notifications.publisher import get_notification_publisher


@dataclass
class Services:
    events: EventService
    organizers: OrganizerService
    individual_registrations: IndividualRegistrationService
    team_registrations: TeamRegistrationService
    payments: PaymentStatusService
    participants: ParticipantQueryService
    registration_admin: RegistrationAdminService


_services_cache: Dict[tuple, Services] = {}


def build_services(db: DynamoDBHandler, bank_account: str = 'TBD', publisher=None) -> Services:
    """Wire every service on top of one table handler."""
    event_repository = EventRepository(db)
    organizer_repository = OrganizerRepository(db)
    registration_repository = RegistrationRepository(db)
    participant_repository = ParticipantRepository(db)
    unit_of_work = RegistrationUnitOfWork(db)

    organizer_service = OrganizerService(organizer_repository, event_repository)
    registration_args = dict(
        events=event_repository,
        participants=participant_repository,
        unit_of_work=unit_of_work,
        publisher=publisher,
        bank_account=bank_account,
    )

    return Services(
        events=EventService(event_repository, registration_repository, organizer_service),
        organizers=organizer_service,
        individual_registrations=IndividualRegistrationService(**registration_args),
        team_registrations=TeamRegistrationService(**registration_args),
        payments=PaymentStatusService(registration_repository, participant_repository, event_repository, publisher),
        participants=ParticipantQueryService(event_repository, registration_repository, participant_repository),
        registration_admin=RegistrationAdminService(
            event_repository, registration_repository, participant_repository, unit_of_work
        ),
    )


def get_services() -> Services:
    """Services for the current environment, reused while the settings stay the same."""
    env = get_api_env_vars()
    settings = (env.TABLE_NAME, env.AWS_REGION, env.DYNAMODB_ENDPOINT, env.EMAIL_QUEUE_URL, env.BANK_ACCOUNT)
    services: Optional[Services] = _services_cache.get(settings)
    if services is None:
        logger.debug('Building services', extra={'table_name': env.TABLE_NAME, 'notifications_enabled': env.notifications_enabled})
        db = get_dal_handler(env.TABLE_NAME, region_name=env.AWS_REGION, endpoint_url=env.DYNAMODB_ENDPOINT)
        services = build_services(db, bank_account=env.BANK_ACCOUNT, publisher=get_notification_publisher())
        _services_cache.clear()
        _services_cache[settings] = services
    return services


def reset_services() -> None:
    _services_cache.clear()
