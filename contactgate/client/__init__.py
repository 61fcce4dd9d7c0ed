"""Client-side helpers: advisory pre-gate and endpoint client."""

from contactgate.client.form_client import ContactFormClient
from contactgate.client.pregate import ClientPreGate
from contactgate.client.storage import JsonFileStorage, KeyValueStorage, MemoryStorage

__all__ = [
    "ClientPreGate",
    "ContactFormClient",
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
]
