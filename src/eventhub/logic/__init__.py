"""
Business Logic Layer Module.

Services here enforce the registration rules: event availability, capacity,
duplicate emails and ownership. They raise the HTTP error taxonomy and leave
persistence to the data access layer.
"""
