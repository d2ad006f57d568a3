class SetupError(RuntimeError):
    pass


class ConfigError(SetupError):
    pass


class InputFileError(SetupError):
    pass


class UnsupportedFormatError(InputFileError):
    pass


class OutputDirError(SetupError):
    pass


class InvalidPayloadError(ValueError):
    pass
