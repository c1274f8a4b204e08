"""
AWS Lambda Handlers Module.

Each handler module owns one powertools resolver (or, for the email
processor, one SQS batch consumer) and a ``lambda_handler`` entry point:

- events_handler: event catalogue
- organizers_handler: organizer profiles
- registrations_handler: registrations, participants and payments
- email_processor: notification email worker
"""
