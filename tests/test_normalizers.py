import pytest

from normalizers import (
    collapse_whitespace,
    dedupe,
    is_placeholder_name,
    location_key,
    normalize_title_prefix,
    person_key,
    split_team,
    strip_trailing_punctuation,
    tighten_slashes,
    unwrap_parentheses,
)


def test_individual_steps() -> None:
    assert strip_trailing_punctuation("Sakubva.,; !/") == "Sakubva"
    assert collapse_whitespace("  Br   Tadiwa \n Moyo ") == "Br Tadiwa Moyo"
    assert normalize_title_prefix("brother tadiwa") == "br tadiwa"
    assert normalize_title_prefix("sister grace") == "sr grace"
    assert normalize_title_prefix("mrs. moyo") == "mrs moyo"
    assert normalize_title_prefix("mr moyo") == "mr moyo"
    assert normalize_title_prefix("brenda") == "brenda"
    assert unwrap_parentheses("(sakubva)") == "sakubva"
    assert tighten_slashes("dangamvura / chikanga") == "dangamvura/chikanga"


@pytest.mark.parametrize(
    "names",
    [
        ["Br Tadiwa", "Brother Tadiwa", "br tadiwa."],
        ["Sister Grace", "Sr. Grace", "SISTER GRACE!"],
        ["Mr. Moyo", "mr moyo", "Mr Moyo;"],
        ["Pastor  Chikore", "pastor chikore"],
    ],
)
def test_person_variants_collapse_to_one_entry(names) -> None:
    assert len(dedupe(names, "person")) == 1
    assert len({person_key(name) for name in names}) == 1


def test_first_seen_display_wins_and_output_is_sorted() -> None:
    assert dedupe(["Sakubva.", "sakubva", "Chikanga"], "location") == ["Chikanga", "Sakubva."]
    assert dedupe(["sakubva", "Sakubva."], "location") == ["sakubva"]


def test_location_keys() -> None:
    assert location_key("(Sakubva)") == location_key("sakubva")
    assert location_key("Dangamvura / Chikanga.") == location_key("dangamvura/chikanga")


def test_generic_dedupe_is_case_insensitive() -> None:
    assert dedupe(["Street Evangelism", "street evangelism ", "Door-to-Door"]) == ["Door-to-Door", "Street Evangelism"]


def test_split_team_on_commas_and_the_word_and() -> None:
    assert split_team("Br Tadiwa and Sister Grace, Pastor Moyo") == ["Br Tadiwa", "Sister Grace", "Pastor Moyo"]
    assert split_team("Br Tadiwa AND Sister Grace") == ["Br Tadiwa", "Sister Grace"]
    assert split_team("Alexander Banda") == ["Alexander Banda"]
    assert split_team(None) == []


def test_placeholders_are_rejected() -> None:
    for value in ["Not specified", "UNKNOWN", "n/a", "None", "-", "", "Al"]:
        assert is_placeholder_name(value)
    assert split_team("Not Specified, unknown and N/A") == []
    assert dedupe(["NONE", "Unknown", "-", "n/a"], "person") == []


def test_non_strings_are_ignored() -> None:
    assert dedupe([None, 42, "Sakubva"], "location") == ["Sakubva"]
