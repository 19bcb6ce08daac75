"""RPC module for invoking remote procedures on the hosted database platform"""
import logging
from typing import Any, Dict, Optional

from postgrest.exceptions import APIError

logger = logging.getLogger(__name__)

class RPCError(Exception):
    """Base exception for RPC errors"""
    def __init__(self, message: str, code: Optional[str] = None, method: Optional[str] = None):
        self.code = code
        self.method = method
        super().__init__(f"RPC Error [{code}] in {method}: {message}" if code else message)

class ProcedureNotFoundError(RPCError):
    """Raised when the platform has no procedure with the requested name"""
    pass

class PlatformError(RPCError):
    """Platform-specific error codes and messages

    Common error codes:
    PGRST202 - Procedure not found in the schema cache
    PGRST203 - Ambiguous overloaded procedure
    42501    - Insufficient privilege (row-level security)
    P0001    - Exception raised inside the procedure
    22P02    - Invalid text representation (bad uuid, bad number)
    """
    # Map of known platform error codes to human-readable messages
    ERROR_MESSAGES = {
        'PGRST202': "Procedure not found",
        'PGRST203': "Ambiguous procedure call",
        '42501': "Insufficient privilege",
        'P0001': "Procedure raised an exception",
        '22P02': "Invalid parameter",
    }

    def __init__(self, message: str, code: Optional[str], method: str):
        # Get standard message for known error codes
        standard_msg = self.ERROR_MESSAGES.get(code, "Unknown error")
        # Combine standard message with specific message if different
        full_msg = f"{standard_msg} - {message}" if message != standard_msg else message
        super().__init__(full_msg, code, method)

class RPCMethod:
    """Descriptor class for remote procedures"""
    def __init__(self, method_name: str):
        self.method_name = method_name

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self

        async def caller(**params) -> Any:
            return await obj._call_method(self.method_name, **params)

        return caller

class PlatformRPC:
    """Remote procedure client bound to one platform client"""

    def __init__(self, client):
        """Initialize RPC client.

        Args:
            client: Platform client; its session decides which rows the procedure sees
        """
        self.client = client

    async def _call_method(self, method: str, **params) -> Any:
        """Invoke a remote procedure

        Args:
            method: Procedure name
            **params: Named procedure arguments

        Returns:
            Data returned by the procedure

        Raises:
            ProcedureNotFoundError: No procedure with that name
            PlatformError: The platform returned an error
        """
        try:
            response = await self.client.rpc(method, params or {}).execute()
            return response.data
        except APIError as e:
            if e.code == 'PGRST202':
                raise ProcedureNotFoundError(e.message or "Procedure not found", e.code, method) from e
            raise PlatformError(e.message or "Unknown error", e.code, method) from e

    # Listing lifecycle
    handle_expired_listings = RPCMethod('handle_expired_listings')
    increment_listing_views = RPCMethod('increment_listing_views')

    # Search
    get_filtered_listings = RPCMethod('get_filtered_listings')
    get_listings_within_radius = RPCMethod('get_listings_within_radius')

    # Notifications
    create_notification = RPCMethod('create_notification')

# Export all error types
__all__ = [
    'RPCError',
    'ProcedureNotFoundError',
    'PlatformError',
    'PlatformRPC',
]
