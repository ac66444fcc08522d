# ABOUTME: Canonical sort keys for authors and titles, and language-code normalization.
# ABOUTME: Pure functions with no I/O; every input yields a value, nothing raises.

# Suffixes that stay attached to the surname ("King Jr." sorts under King).
_NAME_SUFFIXES = frozenset({"jr", "jr.", "sr", "sr.", "ii", "iii", "iv"})

# Articles moved to the end of a title for the book's `sort` column.
ENGLISH_ARTICLES: tuple[str, ...] = ("the ", "a ", "an ")

# Wider set used by the catalog's title_sort() SQL function.
CATALOG_ARTICLES: tuple[str, ...] = (
    "the ", "a ", "an ", "le ", "la ", "les ", "el ", "los ", "las ",
)

UNDETERMINED_LANGUAGE = "und"

# ISO 639-1 -> ISO 639-2/T.
_TWO_TO_THREE = {
    "af": "afr", "ar": "ara", "az": "aze", "be": "bel", "bg": "bul",
    "bn": "ben", "ca": "cat", "cs": "ces", "cy": "cym", "da": "dan",
    "de": "deu", "el": "ell", "en": "eng", "es": "spa", "et": "est",
    "eu": "eus", "fa": "fas", "fi": "fin", "fr": "fra", "ga": "gle",
    "gl": "glg", "he": "heb", "hi": "hin", "hr": "hrv", "hu": "hun",
    "hy": "hye", "it": "ita", "ja": "jpn", "ka": "kat", "kn": "kan",
    "ko": "kor", "la": "lat", "lt": "lit", "lv": "lav", "mk": "mkd",
    "ml": "mal", "mr": "mar", "nb": "nor", "nl": "nld", "nn": "nor",
    "no": "nor", "pl": "pol", "pt": "por", "ro": "ron", "ru": "rus",
    "sk": "slk", "sl": "slv", "sq": "alb", "sv": "swe", "sw": "swa",
    "ta": "tam", "te": "tel", "th": "tha", "tl": "fil", "tr": "tur",
    "uk": "ukr", "ur": "urd", "vi": "vie", "zh": "zho",
}

_KNOWN_CODES = frozenset(_TWO_TO_THREE.values()) | {"yue", "cmn"}


def author_sort_key(display_name: str) -> str:
    """Compute the author sort key, e.g. 'F. Scott Fitzgerald' -> 'Fitzgerald, F. Scott'.

    A trailing name suffix (Jr., Sr., II, III, IV) stays with the surname:
    'Martin Luther King Jr.' -> 'King, Jr., Martin Luther'. Single-token
    names are returned unchanged.
    """
    parts = display_name.split()
    if len(parts) < 2:
        return display_name.strip()

    suffix = None
    if parts[-1].lower() in _NAME_SUFFIXES:
        suffix = parts.pop()

    surname = parts[-1]
    given = " ".join(parts[:-1])

    pieces = [surname]
    if suffix:
        pieces.append(suffix)
    if given:
        pieces.append(given)
    return ", ".join(pieces)


def title_sort_key(title: str, articles: tuple[str, ...] = ENGLISH_ARTICLES) -> str:
    """Move a leading article to the end: 'The Great Gatsby' -> 'Great Gatsby, The'.

    Matching is case-insensitive; the article keeps its original casing.
    A title that is nothing but an article is left alone.
    """
    stripped = title.strip()
    lowered = stripped.lower()
    for article in articles:
        if lowered.startswith(article) and len(stripped) > len(article):
            size = len(article)
            rest = stripped[size:].lstrip()
            return f"{rest}, {stripped[:size - 1]}"
    return stripped


def normalize_language(raw_tag: str | None) -> str:
    """Normalize a language tag to a three-letter code, or 'und' if unknown.

    Lower-cases, drops region/variant suffixes ('en-US', 'pt_BR'), maps
    two-letter codes through a fixed table, and checks the result against
    an allowlist of known codes.
    """
    if not raw_tag:
        return UNDETERMINED_LANGUAGE

    tag = raw_tag.strip().lower()
    base = tag.replace("_", "-").split("-", 1)[0]

    if len(base) == 2:
        code = _TWO_TO_THREE.get(base, base)
    else:
        code = base

    return code if code in _KNOWN_CODES else UNDETERMINED_LANGUAGE
