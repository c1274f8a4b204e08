"""Registration of a single participant."""

from typing import Any, Dict, Mapping

from eventhub.handlers.utils.errors import ValidationError
from eventhub.handlers.utils.observability import logger, tracer
from eventhub.logic.base_registration import (
    BaseRegistrationService,
    RegistrationStep,
    is_valid_email,
    missing_required_fields,
    validate_event_id_format,
)
from eventhub.models.event import Event


class IndividualRegistrationService(BaseRegistrationService):
    """Registers one participant for an individual event."""

    registration_type = 'individual'

    def _validate_input(self, event_id: str, data: Mapping[str, Any]) -> None:
        self._step(RegistrationStep.VALIDATE_INPUT, event_id)
        validate_event_id_format(event_id)
        if not isinstance(data, Mapping):
            raise ValidationError('Registration data must be an object')

        missing = missing_required_fields(data)
        if missing:
            raise ValidationError(f'Missing required fields: {", ".join(missing)}', details={'missingFields': missing})

        if not is_valid_email(data['email']):
            raise ValidationError('Invalid email format', details={'email': data['email']})

        if data['waiver'] is not True:
            raise ValidationError('Waiver must be accepted to complete registration', details={'waiver': data['waiver']})

        emergency_email = data.get('emergencyEmail')
        if emergency_email and not is_valid_email(emergency_email):
            raise ValidationError('Invalid emergency contact email format', details={'emergencyEmail': emergency_email})

    def _run_checks(self, event_id: str, data: Mapping[str, Any]) -> Event:
        self._validate_input(event_id, data)

        self._step(RegistrationStep.LOAD_EVENT, event_id)
        event = self.validate_event_availability(event_id, self.registration_type)

        self._step(RegistrationStep.VALIDATE_EMAILS, event_id)
        self.emails.validate_single_email(event_id, data['email'])

        self._step(RegistrationStep.VALIDATE_CAPACITY, event_id)
        self.capacity.validate_individual_registration(event_id, event)
        return event

    @tracer.capture_method
    def register_individual(self, event_id: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Register one participant.

        Args:
            event_id: Event ULID
            data: Participant fields in camelCase

        Returns:
            Registration result with the created reservation and participant

        Raises:
            BadRequestError: Malformed event id
            ValidationError: Missing or invalid participant fields
            NotFoundError: Unknown event
            ConflictError: Event closed, wrong type, email taken or event full
        """
        logger.debug('Starting individual registration', extra={'event_id': event_id})
        event = self._run_checks(event_id, data)
        return self.commit(event, [data])

    @tracer.capture_method
    def validate_individual_registration(self, event_id: str, data: Mapping[str, Any]) -> bool:
        """Run every check of ``register_individual`` without writing anything."""
        self._run_checks(event_id, data)
        return True
