"""Language and direction configuration for the opus-mt ROMANCE models."""

from enum import Enum

from romance_mt.errors import InvalidRequest, UnsupportedDirection

ENGLISH = "en"

# Target languages covered by Helsinki-NLP/opus-mt-en-ROMANCE and source
# languages accepted by Helsinki-NLP/opus-mt-ROMANCE-en
ROMANCE_LANGUAGES = {
    "fr": "French",
    "es": "Spanish",
    "it": "Italian",
    "pt": "Portuguese",
    "ro": "Romanian",
    "ca": "Catalan",
    "gl": "Galician",
    "la": "Latin",
    "oc": "Occitan",
    "wa": "Walloon",
    "an": "Aragonese",
    "co": "Corsican",
    "lad": "Ladino",
    "lij": "Ligurian",
    "lmo": "Lombard",
    "mwl": "Mirandese",
    "nap": "Neapolitan",
    "rm": "Romansh",
    "sc": "Sardinian",
    "scn": "Sicilian",
    "vec": "Venetian",
    "frp": "Arpitan",
    "fur": "Friulian",
    "lld": "Ladin",
}

# Language code aliases (map variants to standard codes)
LANGUAGE_ALIASES = {
    "en-us": "en",
    "en-gb": "en",
    "pt-br": "pt",
    "pt-pt": "pt",
    "es-es": "es",
    "es-mx": "es",
    "fr-fr": "fr",
    "fr-ca": "fr",
    "it-it": "it",
    "ro-ro": "ro",
    "roh": "rm",
    # Names used by the v0 wire format ("fromLanguage": "Italian")
    "english": "en",
    "italian": "it",
    "french": "fr",
    "spanish": "es",
    "portuguese": "pt",
    "romanian": "ro",
    "catalan": "ca",
}


class LanguageDirection(Enum):
    """The two translation directions served by this process."""

    EN_ROMANCE = "en-ROMANCE"
    ROMANCE_EN = "ROMANCE-en"

    @property
    def model_dir(self) -> str:
        """Default model directory name under the model path."""
        return f"opus-mt-{self.value}"

    @property
    def needs_target_token(self) -> bool:
        """Whether inputs must carry a ``>>xx<<`` target language token."""
        return self is LanguageDirection.EN_ROMANCE


def normalize_language_code(code: str) -> str:
    """Normalize a language code.

    Args:
        code: Language code or name (e.g., "pt-BR", "EN", "Italian")

    Returns:
        Normalized language code (e.g., "pt", "en", "it")
    """
    code = code.lower().strip().replace("_", "-")

    if code in LANGUAGE_ALIASES:
        return LANGUAGE_ALIASES[code]

    # Try to extract base language from regional codes (e.g., "fr-BE" -> "fr")
    if "-" in code:
        base = code.split("-")[0]
        return LANGUAGE_ALIASES.get(base, base)

    return code


def validate_language_code(code: str) -> str:
    """Validate the format of a language code and normalize it.

    Any well-formed code is accepted here; whether a model serves it is
    decided by :func:`resolve_direction`.

    Raises:
        InvalidRequest: If the code is empty or malformed
    """
    if not code or not isinstance(code, str):
        raise InvalidRequest("Language code cannot be empty")

    normalized = normalize_language_code(code)
    if not (2 <= len(normalized) <= 3) or not normalized.isalpha():
        raise InvalidRequest(f"Invalid language code format: {code!r}")

    return normalized


def is_romance_language(code: str) -> bool:
    return normalize_language_code(code) in ROMANCE_LANGUAGES


def get_language_name(code: str) -> str:
    """Get the human-readable name for a language code."""
    normalized = normalize_language_code(code)
    if normalized == ENGLISH:
        return "English"
    return ROMANCE_LANGUAGES.get(normalized, f"Unknown ({code})")


def resolve_direction(
    source_lang: str | None,
    target_lang: str | None,
    default_romance_target: str = "it",
) -> tuple[LanguageDirection, str, str]:
    """Map a language pair onto one of the served directions.

    Args:
        source_lang: Source language code, defaults to English
        target_lang: Target language code; when omitted, English for a
            Romance source and ``default_romance_target`` for English
        default_romance_target: Target used for English input without one

    Returns:
        (direction, normalized source, normalized target)

    Raises:
        InvalidRequest: If a code is malformed
        UnsupportedDirection: If no model serves the pair
    """
    source = validate_language_code(source_lang) if source_lang else ENGLISH

    if target_lang:
        target = validate_language_code(target_lang)
    elif source == ENGLISH:
        target = normalize_language_code(default_romance_target)
    else:
        target = ENGLISH

    if source == ENGLISH and is_romance_language(target):
        return LanguageDirection.EN_ROMANCE, source, target
    if is_romance_language(source) and target == ENGLISH:
        return LanguageDirection.ROMANCE_EN, source, target

    raise UnsupportedDirection(source, target)
