"""Join-key normalization between player exports and the reference dataset.

Player exports and the pokedex spell forms differently (``RATTATA_ALOLA``,
``Rattata-Alola``, ``PokemonDisplayProto_Form_RattataAlola``...). Both sides
are reduced to the same compact key here, independent of any dataset.
"""

import re
import unicodedata

NORMAL_FORM_KEY = "NORMAL"

# Values the game uses when no form was ever assigned.
UNSET_FORM_KEYS = {"UNSET", "FORMUNSET"}

KNOWN_FORM_PREFIXES = ["PokemonDisplayProto_Form_", "PokemonDisplayProto.Form."]

_SEPARATORS_RE = re.compile(r"[_\-\s]+")
_NON_ALNUM_RE = re.compile(r"[^A-Z0-9]+")


def strip_accents(value: str) -> str:
    return "".join(
        c for c in unicodedata.normalize("NFKD", value) if not unicodedata.combining(c)
    )


def _strip_known_prefix(value: str, prefixes: list[str]) -> str:
    for p in prefixes:
        if value.startswith(p):
            return value[len(p) :]
    return value


def compact_label(value) -> str:
    """Uppercase, accent-free, with underscores, hyphens and whitespace removed."""
    if not value or not isinstance(value, str):
        return ""
    return _SEPARATORS_RE.sub("", strip_accents(value).upper()).strip()


def compact_species_name(name) -> str:
    # Punctuation in names ("Mr. Mime", "Farfetch'd", "Nidoran♀") never
    # survives into form ids, so only letters and digits are kept.
    if not name or not isinstance(name, str):
        return ""
    return _NON_ALNUM_RE.sub("", strip_accents(name).upper())


def normalize_form_key(form_id, species_name=None) -> str:
    """Reduce a form identifier to the key used for pokedex lookups.

    >>> normalize_form_key("RATTATA_ALOLA", "Rattata")
    'ALOLA'
    >>> normalize_form_key("FORM_UNSET")
    'NORMAL'
    """
    if not form_id or not isinstance(form_id, str):
        return NORMAL_FORM_KEY

    key = compact_label(_strip_known_prefix(form_id.strip(), KNOWN_FORM_PREFIXES))
    name_key = compact_species_name(species_name)
    if name_key and name_key in key:
        key = key.replace(name_key, "", 1)

    if not key or key in UNSET_FORM_KEYS:
        return NORMAL_FORM_KEY
    return key


def normalize_asset_label(label) -> str | None:
    """Sprite asset form/costume labels; an absent label stays ``None``."""
    return compact_label(label) or None
