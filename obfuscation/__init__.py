from obfuscation.decoder import (
    PayloadDecoder,
    DecodingMode,
    ShiftMode,
    Base64Mode,
    ReversedBase64Mode,
    DEFAULT_MODE,
    parse_target,
)
