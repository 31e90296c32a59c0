"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from core.config import Settings
from services.connection_state import ConnectionState
from services.messaging import MessagingService
from services.relay import MessageRelay
from services.session_client import SessionClient
from services.session_events import SessionEventHandler


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Process-wide connection state (ready flag + pairing image)
    connection_state = providers.Singleton(
        ConnectionState,
    )

    # Single shared connection to the WhatsApp session bridge
    session_client = providers.Singleton(
        SessionClient,
        settings=settings
    )

    relay = providers.Singleton(
        MessageRelay,
        settings=settings,
        session=session_client
    )

    session_event_handler = providers.Singleton(
        SessionEventHandler,
        state=connection_state,
        relay=relay
    )

    messaging_service = providers.Factory(
        MessagingService,
        settings=settings,
        session=session_client,
        state=connection_state
    )


# Global container instance
container = Container()
