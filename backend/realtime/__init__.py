"""
Realtime app: change feed and notifier over Django Channels.

Key Components:
    - notifications.py: change-feed publishing and fire-and-forget user notifications
    - consumers/: WebSocket consumers (driver presence, booking subscriptions)
    - middleware.py: JWT authentication for WebSocket connections

Events carry identifiers and statuses only; subscribers refetch the resource
over HTTP, so delivery order never matters.
"""
