class ShortenerError(Exception):
    """Base class for errors raised by the shortener core."""

class InvalidArgument(ShortenerError, ValueError):
    pass

class InvalidURL(ShortenerError, ValueError):
    pass

class NotFound(ShortenerError, LookupError):
    pass

class Unauthorized(ShortenerError):
    pass

class ProviderFailure(ShortenerError):
    """Geolocation lookup failed. Never surfaced past the visit recorder."""
