class MDQError(Exception):
    pass


class InvalidAlgorithm(MDQError):
    pass


class MetadataUnavailable(MDQError):
    pass


class ProfileDecodeError(MDQError):
    pass


class UnknownEntity(MDQError):
    pass


class ConfigurationError(MDQError):
    pass


class BadRequest(MDQError):
    pass
