"""Display fields, flags and rarity scoring for raw roster records.

Nothing here touches disk or network: every function takes the record plus
an already-loaded ``ReferenceDataCache``.
"""

from pokedex import POKEMON_CLASS_LEGENDARY, POKEMON_CLASS_MYTHIC, ReferenceDataCache

MAX_IV = 15

PERFECT_IV_WEIGHT = 8
PERFECT_IV_CP_WEIGHT = 8
PERFECT_IV_CP_SCALE = 10000
SHINY_WEIGHT = 8
LUCKY_WEIGHT = 4
SHADOW_WEIGHT = 1
PURIFIED_WEIGHT = 1.5
LEGENDARY_WEIGHT = 2

ORIGIN_CASE_RAID = 3


def is_displayable(record) -> bool:
    """Eggs and records without display metadata never reach the pokedex."""
    return (
        isinstance(record, dict)
        and not record.get("isEgg")
        and isinstance(record.get("pokemonDisplay"), dict)
    )


def _display(record: dict) -> dict:
    display = record.get("pokemonDisplay")
    return display if isinstance(display, dict) else {}


def _int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def iv_values(record: dict) -> tuple[int, int, int]:
    return (
        _int(record.get("individualAttack")),
        _int(record.get("individualDefense")),
        _int(record.get("individualStamina")),
    )


def iv_percent(record: dict) -> float:
    return round(sum(iv_values(record)) / (3 * MAX_IV) * 100, 1)


def is_perfect(record: dict) -> bool:
    return iv_values(record) == (MAX_IV, MAX_IV, MAX_IV)


def is_nundo(record: dict) -> bool:
    return iv_values(record) == (0, 0, 0)


def rarity_class(entry) -> str | None:
    if isinstance(entry, dict):
        return entry.get("pokemonClass")
    return None


def pokemon_flags(record: dict, entry=None) -> dict:
    display = _display(record)
    pclass = rarity_class(entry)
    return {
        "isShiny": bool(display.get("shiny")),
        "isLucky": bool(record.get("isLucky")),
        "isPerfect": is_perfect(record),
        "isShadow": bool(display.get("shadow")),
        "isPurified": bool(display.get("purified")),
        "isLegendary": pclass == POKEMON_CLASS_LEGENDARY,
        "isMythical": pclass == POKEMON_CLASS_MYTHIC,
        "isTraded": _int(record.get("tradedTimeMs")) > 0,
        "isMaxLevel": bool(record.get("isMaxLevel")),
    }


def rarity_score(record: dict, entry=None) -> float:
    """Additive score; 0 means the record is not interesting enough to rank."""
    display = _display(record)
    score = 0.0
    if is_perfect(record):
        score += PERFECT_IV_WEIGHT + PERFECT_IV_CP_WEIGHT * (
            _int(record.get("cp")) / PERFECT_IV_CP_SCALE
        )
    if display.get("shiny"):
        score += SHINY_WEIGHT
    if record.get("isLucky"):
        score += LUCKY_WEIGHT
    if display.get("shadow"):
        score += SHADOW_WEIGHT
    if display.get("purified"):
        score += PURIFIED_WEIGHT
    if rarity_class(entry) in (POKEMON_CLASS_LEGENDARY, POKEMON_CLASS_MYTHIC):
        score += LEGENDARY_WEIGHT
    return score


def reference_entry(record: dict, cache: ReferenceDataCache):
    return cache.resolve_entry(record.get("pokemonId"), _display(record).get("formName"))


def display_fields(record: dict, cache: ReferenceDataCache) -> dict:
    entry = reference_entry(record, cache)
    return {
        "name": cache.resolve_display_name(
            record.get("pokemonId"), _display(record).get("formName")
        ),
        "sprite": cache.resolve_sprite(record),
        "typeColors": cache.resolve_type_colors(entry),
    }


def origin_case(record: dict):
    origin = record.get("originDetail")
    if isinstance(origin, dict):
        return origin.get("originDetailCase")
    return None


def enrich_pokemon(record: dict, cache: ReferenceDataCache) -> dict:
    """Full private-dashboard view of one roster record.

    Eggs and records without display metadata are returned unchanged.
    """
    if not is_displayable(record):
        return record

    entry = reference_entry(record, cache)
    pclass = rarity_class(entry)
    enriched = dict(record)
    enriched.update(display_fields(record, cache))
    enriched.update(pokemon_flags(record, entry))
    enriched["pokemonClass"] = pclass
    enriched["ivPercent"] = iv_percent(record)
    enriched["rarityScore"] = rarity_score(record, entry)
    enriched["shinyRate"] = cache.resolve_shiny_rate(
        record.get("pokemonId"),
        origin_case(record),
        pclass,
        record.get("originEvents") or [],
    )
    enriched["fastMoveName"] = cache.move_name(record.get("move1"))
    enriched["chargedMoveName"] = cache.move_name(record.get("move2"))
    return enriched


def acquisition_type(record: dict) -> str:
    if _int(record.get("tradedTimeMs")) > 0:
        return "trade"
    if record.get("hatchedFromEgg"):
        return "hatched"
    if origin_case(record) == ORIGIN_CASE_RAID:
        return "raid"
    return "wild"


def roster_stats(pokemons) -> dict:
    roster = [p for p in (pokemons or []) if is_displayable(p)]
    total = len(roster)
    shiny = sum(1 for p in roster if _display(p).get("shiny"))
    acquisition = {"wild": 0, "hatched": 0, "raid": 0, "trade": 0}
    for p in roster:
        acquisition[acquisition_type(p)] += 1
    return {
        "totalCount": total,
        "shinyCount": shiny,
        "shinyPercent": round(shiny / total * 100) if total else 0,
        "perfectCount": sum(1 for p in roster if is_perfect(p)),
        "nundoCount": sum(1 for p in roster if is_nundo(p)),
        "luckyCount": sum(1 for p in roster if p.get("isLucky")),
        "acquisition": acquisition,
    }


def currency(account: dict, currency_type: str) -> int:
    for balance in account.get("currencyBalance") or []:
        if isinstance(balance, dict) and balance.get("currencyType") == currency_type:
            return _int(balance.get("quantity"))
    return 0
