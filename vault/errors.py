"""Exception types raised by the vault services.

Route handlers map these to HTTP responses; anything else reaching the
route boundary becomes a generic 500.
"""


class VaultError(Exception):
    """Base exception for vault operations."""
    pass


class ValidationError(VaultError):
    """Caller supplied something the vault cannot accept (HTTP 400)."""
    pass


class IdentityError(VaultError):
    """Sign-up / sign-in rejected by the identity provider."""
    pass


class StorageError(VaultError):
    """Object store upload/download/delete/sign failure."""
    pass


class MetadataError(VaultError):
    """Database write of file metadata failed."""
    pass


class WhatsAppError(VaultError):
    """Graph API call failed or returned an error body."""
    pass
