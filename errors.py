# --- Errors and Exceptions ---
class BotError(Exception):
    """Base exception for bot-related errors"""
    pass


class DeliveryError(BotError):
    """Raised when a message or document cannot be delivered to the chat"""
    pass


class NarrativeGenerationError(BotError):
    """Raised when the narrative generator fails or returns unusable output"""
    pass


class StorageError(BotError):
    """Raised when the report store is asked for something it does not hold"""
    pass
