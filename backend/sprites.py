"""Sprite selection for a Pokémon against a species' ``assetForms`` list.

Candidates are tried in a fixed order; the first asset that exists and
carries an image for the requested variant (regular or shiny) wins. When
nothing matches, a PokeMiners icon URL built from the dex number is used.
"""

from typing import Callable, NamedTuple

from forms import NORMAL_FORM_KEY

POGO_ASSETS_BASE = (
    "https://raw.githubusercontent.com/PokeMiners/pogo_assets/master/Images/Pokemon"
)


class SpriteQuery(NamedTuple):
    dex_nr: int | str | None
    form_key: str | None
    costume_key: str | None
    shiny: bool


def _pad3(n) -> str:
    try:
        return f"{int(n):03d}"
    except (TypeError, ValueError):
        return "000"


def fallback_sprite_url(dex_nr, shiny: bool) -> str:
    suffix = "_shiny" if shiny else ""
    return f"{POGO_ASSETS_BASE}/pokemon_icon_{_pad3(dex_nr)}_00{suffix}.png"


def _exact_form_costume(asset: dict, q: SpriteQuery) -> bool:
    return bool(
        q.costume_key
        and q.form_key
        and asset.get("costume") == q.costume_key
        and asset.get("form") == q.form_key
    )


def _costume_only(asset: dict, q: SpriteQuery) -> bool:
    return bool(
        q.costume_key and asset.get("costume") == q.costume_key and not asset.get("form")
    )


def _form_only(asset: dict, q: SpriteQuery) -> bool:
    return bool(
        q.form_key and asset.get("form") == q.form_key and not asset.get("costume")
    )


def _default(asset: dict, q: SpriteQuery) -> bool:
    return not asset.get("costume") and not asset.get("form")


def _normal_default(asset: dict, q: SpriteQuery) -> bool:
    return asset.get("form") == NORMAL_FORM_KEY and not asset.get("costume")


SPRITE_STRATEGIES: list[tuple[str, Callable[[dict, SpriteQuery], bool]]] = [
    ("exact_form_costume", _exact_form_costume),
    ("costume_only", _costume_only),
    ("form_only", _form_only),
    ("default", _default),
    ("normal_default", _normal_default),
]

HARDCODED_FALLBACK = "hardcoded_fallback"


def select_sprite(assets, query: SpriteQuery) -> tuple[str, str]:
    """Return ``(strategy_name, url)``; never raises and never returns an empty url."""
    image_field = "shinyImage" if query.shiny else "image"
    if isinstance(assets, list):
        usable = [a for a in assets if isinstance(a, dict)]
        for name, matches in SPRITE_STRATEGIES:
            for asset in usable:
                if matches(asset, query) and asset.get(image_field):
                    return name, str(asset[image_field])
    return HARDCODED_FALLBACK, fallback_sprite_url(query.dex_nr, query.shiny)
