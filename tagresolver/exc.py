class ApplicationError(Exception):
    pass


class ProviderError(ApplicationError):
    pass


class SecretNotFound(ProviderError):
    pass


class WorkloadDecodeError(ApplicationError):
    pass


class CredentialError(ApplicationError):
    pass


class InvalidImage(ApplicationError, ValueError):
    pass


class RegistryError(ApplicationError):
    pass


class PingResponseError(RegistryError):
    """The registry answered the ping but the answer could not be used."""
