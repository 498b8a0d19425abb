class CnMaestroError(Exception):
    """Base exception for cnMaestro exporter errors."""

    pass


class CnMaestroAuthenticationError(CnMaestroError):
    """Raised when logging in to the cnMaestro controller fails."""

    pass


class CnMaestroAPIError(CnMaestroError):
    """Raised when an API call to the cnMaestro controller fails."""

    pass


class CnMaestroDataError(CnMaestroError):
    """Raised when a controller response does not match the expected schema."""

    pass


class CnMaestroConfigError(CnMaestroError):
    """Raised when the exporter configuration is missing or invalid."""

    pass
