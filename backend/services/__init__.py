"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP/WebSocket layer.

Modules:
    - booking_lifecycle: Booking state machine and admin overrides
    - settlement: Commission, fare split, payouts and refunds
    - identity_verification: Attempt / lockout machine and admin review
    - disputes: Dispute workflow and escalation
    - gateways: Payment processor and identity provider adapters

Import from the subpackages directly.
"""
