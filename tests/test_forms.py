import pytest

from forms import (
    NORMAL_FORM_KEY,
    compact_label,
    compact_species_name,
    normalize_asset_label,
    normalize_form_key,
)


@pytest.mark.parametrize(
    "form_id, species, expected",
    [
        ("RATTATA_ALOLA", "Rattata", "ALOLA"),
        ("Rattata-Alola", "Rattata", "ALOLA"),
        ("PokemonDisplayProto_Form_RattataAlola", "Rattata", "ALOLA"),
        ("PokemonDisplayProto.Form.RATTATA_ALOLA", "Rattata", "ALOLA"),
        ("MR_MIME_GALARIAN", "Mr. Mime", "GALARIAN"),
        ("PIKACHU", "Pikachu", NORMAL_FORM_KEY),
        ("PIKACHU_NORMAL", "Pikachu", NORMAL_FORM_KEY),
        ("FORM_UNSET", None, NORMAL_FORM_KEY),
        ("UNSET", "Pikachu", NORMAL_FORM_KEY),
        ("FLABEBE_RED", "Flabébé", "RED"),
    ],
)
def test_normalize_form_key(form_id, species, expected):
    assert normalize_form_key(form_id, species) == expected


@pytest.mark.parametrize("form_id", [None, "", 0, 42, {"form": "ALOLA"}])
def test_missing_or_non_string_form_is_normal(form_id):
    assert normalize_form_key(form_id, "Rattata") == NORMAL_FORM_KEY


def test_species_name_removed_only_once():
    assert normalize_form_key("NIDORAN_NIDORAN", "Nidoran") == "NIDORAN"


def test_form_without_species_name_is_only_compacted():
    assert normalize_form_key("rattata_alola") == "RATTATAALOLA"


def test_compact_label():
    assert compact_label(" Holiday_2016 ") == "HOLIDAY2016"
    assert compact_label("Pokébal-l Hat") == "POKEBALLHAT"
    assert compact_label(None) == ""


def test_compact_species_name_drops_punctuation():
    assert compact_species_name("Farfetch'd") == "FARFETCHD"
    assert compact_species_name("Mr. Mime") == "MRMIME"
    assert compact_species_name("") == ""


def test_normalize_asset_label():
    assert normalize_asset_label("ALOLA") == "ALOLA"
    assert normalize_asset_label("holiday_2016") == "HOLIDAY2016"
    assert normalize_asset_label(None) is None
    assert normalize_asset_label("") is None
