from assistant.services.persistence.base import GatewayError, PersistenceGateway, sanitize_filename
from assistant.services.persistence.json_store import JsonMeetingStore
from assistant.services.persistence.supabase_gateway import SupabaseGateway

__all__ = [
    "GatewayError",
    "PersistenceGateway",
    "JsonMeetingStore",
    "SupabaseGateway",
    "sanitize_filename",
]
