from botgate.schemas.integration import (
    SendMessageRequest,
    TelegramSetupRequest,
    WhatsAppSetupRequest,
)
from botgate.schemas.jsonapi import (
    JSONAPIListResponse,
    JSONAPIRequest,
    JSONAPIRequestData,
    JSONAPIResource,
    JSONAPISingleResponse,
)
from botgate.schemas.pagination import PaginationLinks, PaginationMeta, decode_cursor, encode_cursor

__all__ = [
    "JSONAPIListResponse",
    "JSONAPIRequest",
    "JSONAPIRequestData",
    "JSONAPIResource",
    "JSONAPISingleResponse",
    "PaginationLinks",
    "PaginationMeta",
    "SendMessageRequest",
    "TelegramSetupRequest",
    "WhatsAppSetupRequest",
    "decode_cursor",
    "encode_cursor",
]
