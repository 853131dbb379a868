from chat_relay.relay.errors import (
    AuthenticationError,
    DeliveryError,
    GenerationError,
    InvalidTokenError,
    KeyResolutionError,
    MalformedRequestError,
    MalformedTokenError,
    PersistenceError,
    RelayError,
    StaleConnectionError,
)
from chat_relay.relay.models import (
    Ack,
    AskEvent,
    AuthResult,
    ConnectEvent,
    DisconnectEvent,
    FrameFormat,
    GenerationResult,
    Session,
    TransportEvent,
    UnknownEvent,
    parse_event,
)
from chat_relay.relay.session import DynamoDBSessionStore, InMemorySessionStore, SessionStore
from chat_relay.relay.generation import (
    BedrockGenerationInvoker,
    DemoGenerationInvoker,
    GenerationInvoker,
    MockGenerationInvoker,
    OpenAIGenerationInvoker,
)
from chat_relay.relay.pusher import END_MARKER, ApiGatewayPusher, ConnectionPusher, FrameCodec, RecordingPusher
from chat_relay.relay.router import MessageRouter

__all__ = [
    "END_MARKER",
    "Ack",
    "ApiGatewayPusher",
    "AskEvent",
    "AuthResult",
    "AuthenticationError",
    "BedrockGenerationInvoker",
    "ConnectEvent",
    "ConnectionPusher",
    "DeliveryError",
    "DemoGenerationInvoker",
    "DisconnectEvent",
    "DynamoDBSessionStore",
    "FrameCodec",
    "FrameFormat",
    "GenerationError",
    "GenerationInvoker",
    "GenerationResult",
    "InMemorySessionStore",
    "InvalidTokenError",
    "KeyResolutionError",
    "MalformedRequestError",
    "MalformedTokenError",
    "MessageRouter",
    "MockGenerationInvoker",
    "OpenAIGenerationInvoker",
    "PersistenceError",
    "RecordingPusher",
    "RelayError",
    "Session",
    "SessionStore",
    "StaleConnectionError",
    "TransportEvent",
    "UnknownEvent",
    "parse_event",
]
