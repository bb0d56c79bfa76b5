"""
Tests for the four-stage filter pipeline: allergen, restriction, primary diet,
boolean flags. Covers allow-list vs deny-list policy, fail-closed input
handling, and the subset/idempotence/monotonicity properties.
Run from repo root: python -m pytest backend/tests/test_filter_pipeline.py -v
"""
import logging

import pytest

from safeplate.filtering.pipeline import FilterPipeline
from safeplate.models.content_item import ContentItem
from safeplate.models.profile import DietaryProfile
from safeplate.rules.rule_registry import RuleRegistry


@pytest.fixture(scope="module")
def pipeline():
    return FilterPipeline(RuleRegistry(), mild_override=True)


def make_catalog():
    return [
        {"id": "m1", "name": "Peanut Noodle Salad", "ingredients": ["noodles", "peanut butter", "cucumber"],
         "dietaryTags": ["vegetarian"]},
        {"id": "m2", "name": "Rice and Bean Bowl", "ingredients": ["rice", "black beans", "salsa"],
         "dietaryTags": ["vegan", "gluten-free", "dairy-free", "nut-free"]},
        {"id": "m3", "name": "Grilled Chicken", "ingredients": ["chicken breast", "olive oil", "salt"],
         "dietaryTags": ["gluten-free", "dairy-free"]},
        {"id": "m4", "name": "Cheese Omelette", "ingredients": ["eggs", "cheddar cheese", "chives"],
         "dietaryTags": ["vegetarian", "gluten-free"]},
        {"id": "m5", "name": "Spicy Lentil Curry", "ingredients": ["red lentils", "tomato", "curry powder", "garlic"],
         "dietaryTags": ["vegan", "gluten-free", "spicy"]},
        {"id": "m6", "name": "Garden Salad", "ingredients": ["lettuce", "tomato", "cucumber", "olive oil"],
         "dietaryTags": ["vegan", "gluten-free", "nut-free", "dairy-free", "mild"]},
        {"id": "m7", "name": "Shrimp Scampi", "ingredients": ["shrimp", "linguine pasta", "butter", "garlic"],
         "dietaryTags": []},
        {"id": "m8", "name": "Mild Vegetable Curry", "ingredients": ["potato", "peas", "carrot", "mild curry powder"],
         "dietaryTags": ["vegan", "mild"]},
    ]


@pytest.fixture
def catalog():
    return make_catalog()


def ids(items):
    return [i["id"] for i in items]


def run(pipeline, items, profile):
    return pipeline.filter(items, profile).safe_items


# --- Example scenarios ---

def test_almond_butter_toast_excluded_for_nut_allergy(pipeline):
    item = {"name": "Almond Butter Toast", "tags": ["vegetarian"]}
    assert run(pipeline, [item], {"allergies": ["nuts"]}) == []


def test_tagged_vegan_item_included(pipeline):
    item = {"name": "Veggie Stir Fry", "tags": ["vegan"]}
    assert run(pipeline, [item], {"primaryDiet": "vegan"}) == [item]


def test_untagged_vegan_item_excluded(pipeline):
    """Allow-list: no disallowed keyword, but no vegan tag either."""
    item = {"name": "Veggie Stir Fry", "tags": []}
    assert run(pipeline, [item], {"primaryDiet": "vegan"}) == []


def test_gluten_free_flag_keeps_tagged_item(pipeline):
    item = {"ingredients": ["rice", "water"], "tags": ["gluten-free"]}
    assert run(pipeline, [item], {"isGlutenFree": True}) == [item]


def test_gluten_free_flag_drops_untagged_item(pipeline):
    item = {"ingredients": ["rice", "water"], "tags": []}
    assert run(pipeline, [item], {"isGlutenFree": True}) == []


def test_empty_and_missing_items(pipeline):
    assert run(pipeline, [], {"allergies": ["nuts"]}) == []
    assert run(pipeline, None, {}) == []


# --- Input handling ---

@pytest.mark.parametrize("items", [None, "not-an-array", b"bytes", {"name": "Toast"}, 42])
def test_malformed_items_fail_closed(pipeline, items):
    outcome = pipeline.filter(items, {"allergies": ["nuts"]})
    assert outcome.safe_items == []
    assert outcome.input_count == 0


def test_invalid_input_is_logged(pipeline, caplog):
    with caplog.at_level(logging.WARNING):
        pipeline.filter("not-an-array", {})
    assert "invalid_input" in caplog.text


def test_no_profile_returns_items_unchanged(pipeline, catalog):
    assert run(pipeline, catalog, None) == catalog


def test_empty_profile_keeps_everything(pipeline, catalog):
    assert ids(run(pipeline, catalog, {})) == ids(catalog)


def test_non_item_entries_dropped(pipeline):
    good = {"name": "Garden Salad", "tags": ["vegan"]}
    outcome = pipeline.filter([None, 3, True, good], {"allergies": ["nuts"]})
    assert outcome.safe_items == [good]
    assert outcome.removed_count == 3
    assert {r.stage for r in outcome.removals} == {"input"}


def test_output_is_identity_subset_in_order(pipeline, catalog):
    out = run(pipeline, catalog, {"allergies": ["dairy"]})
    assert all(any(o is c for c in catalog) for o in out)
    assert ids(out) == ["m2", "m3", "m5", "m6", "m8"]


def test_strings_are_filtered_by_text(pipeline):
    out = run(pipeline, ["peanut butter", "bananas", "milk"], {"allergies": ["nuts"]})
    assert out == ["bananas", "milk"]


def test_accepts_profile_object_and_tuple(pipeline, catalog):
    profile = DietaryProfile(allergies=["nuts"])
    assert ids(run(pipeline, tuple(catalog), profile)) == ["m2", "m3", "m4", "m5", "m6", "m7", "m8"]


def test_content_items_returned_as_given(pipeline):
    item = ContentItem(name="Apple Slices", dietary_tags=("vegan",))
    assert run(pipeline, [item], {"primaryDiet": "vegan"})[0] is item


# --- Allergen stage ---

@pytest.mark.parametrize("allergy,expected", [
    ("nuts", ["m2", "m3", "m4", "m5", "m6", "m7", "m8"]),
    ("Peanut allergy", ["m2", "m3", "m4", "m5", "m6", "m7", "m8"]),
    ("dairy", ["m2", "m3", "m5", "m6", "m8"]),
    ("eggs", ["m1", "m2", "m3", "m5", "m6", "m7", "m8"]),
    ("shellfish", ["m1", "m2", "m3", "m4", "m5", "m6", "m8"]),
    ("gluten", ["m2", "m3", "m4", "m5", "m6", "m8"]),
])
def test_allergen_exclusion(pipeline, catalog, allergy, expected):
    assert ids(run(pipeline, catalog, {"allergies": [allergy]})) == expected


def test_disqualifying_tag_excludes_without_keyword(pipeline):
    item = {"name": "House Energy Bar", "tags": ["contains-nuts"]}
    assert run(pipeline, [item], {"allergies": ["nuts"]}) == []


def test_substring_matching_is_fail_closed(pipeline):
    """'coconut' contains 'nut'; excluded even though it is not a tree nut."""
    item = {"name": "Coconut Rice", "tags": ["vegan"]}
    assert run(pipeline, [item], {"allergies": ["nuts"]}) == []


def test_removals_record_stage_and_reason(pipeline, catalog):
    outcome = pipeline.filter(catalog, {"allergies": ["nuts"]})
    assert len(outcome.removals) == 1
    removal = outcome.removals[0]
    assert removal.item_name == "Peanut Noodle Salad"
    assert removal.stage == "allergen"
    assert removal.reason.startswith("nuts:")


# --- Unknown terms ---

def test_unknown_allergy_fails_open_and_is_reported(pipeline, catalog, caplog):
    with caplog.at_level(logging.WARNING):
        outcome = pipeline.filter(catalog, {"allergies": ["kiwi"]})
    assert ids(outcome.safe_items) == ids(catalog)
    assert outcome.unknown_terms == ["kiwi"]
    assert "UNKNOWN_RESTRICTION" in caplog.text


def test_unknown_restriction_and_diet_reported(pipeline, catalog):
    outcome = pipeline.filter(catalog, {"dietaryRestrictions": ["halal"], "primaryDiet": "carnivore"})
    assert outcome.unknown_terms == ["halal", "carnivore"]
    assert len(outcome.safe_items) == len(catalog)


# --- Restriction stage ---

def test_restriction_gluten_free_requires_tag(pipeline, catalog):
    out = run(pipeline, catalog, {"dietaryRestrictions": ["Gluten Free"]})
    assert ids(out) == ["m2", "m3", "m4", "m5", "m6"]


def test_restriction_vegan_checks_disqualifying_tags(pipeline):
    item = {"name": "Creamy Pasta", "tags": ["vegan", "dairy-based"]}
    assert run(pipeline, [item], {"dietaryRestrictions": ["vegan"]}) == []
    # primary diet stage only scans keywords
    assert run(pipeline, [item], {"primaryDiet": "vegan"}) == [item]


def test_restriction_vegetarian(pipeline, catalog):
    out = run(pipeline, catalog, {"dietaryRestrictions": ["vegetarian"]})
    assert "m3" not in ids(out)
    assert "m4" in ids(out)


def test_bland_with_mild_override(pipeline, catalog):
    out = run(pipeline, catalog, {"dietaryRestrictions": ["bland"]})
    assert ids(out) == ["m1", "m2", "m3", "m4", "m6", "m7", "m8"]


def test_bland_without_mild_override(catalog):
    strict = FilterPipeline(RuleRegistry(), mild_override=False)
    out = run(strict, catalog, {"dietaryRestrictions": ["bland"]})
    assert ids(out) == ["m1", "m2", "m3", "m4", "m6", "m7"]


def test_mild_override_reads_environment(monkeypatch):
    monkeypatch.setenv("SAFEPLATE_MILD_OVERRIDE", "false")
    assert FilterPipeline(RuleRegistry()).mild_override is False
    monkeypatch.setenv("SAFEPLATE_MILD_OVERRIDE", "true")
    assert FilterPipeline(RuleRegistry()).mild_override is True


def test_no_spicy_has_no_override(pipeline, catalog):
    out = run(pipeline, catalog, {"dietaryRestrictions": ["no spicy food"]})
    assert ids(out) == ["m1", "m2", "m3", "m4", "m6", "m7"]


def test_spice_tag_excludes(pipeline):
    item = {"name": "Plain Broth", "tags": ["extra-hot"]}
    assert run(pipeline, [item], {"dietaryRestrictions": ["no spicy"]}) == []


@pytest.mark.parametrize("preference,expected", [
    ("none", ["m1", "m2", "m3", "m4", "m6", "m7"]),
    ("bland", ["m1", "m2", "m3", "m4", "m6", "m7", "m8"]),
    ("mild", ["m1", "m2", "m3", "m4", "m5", "m6", "m7", "m8"]),
    ("medium", ["m1", "m2", "m3", "m4", "m5", "m6", "m7", "m8"]),
    ("hot", ["m1", "m2", "m3", "m4", "m5", "m6", "m7", "m8"]),
])
def test_spice_preference(pipeline, catalog, preference, expected):
    assert ids(run(pipeline, catalog, {"spicePreference": preference})) == expected


def test_mild_only_drops_extreme_heat(pipeline):
    items = [{"name": "Ghost Pepper Wings", "tags": []}, {"name": "Tomato Soup", "tags": []}]
    assert run(pipeline, items, {"spicePreference": "mild"}) == [items[1]]


# --- Primary diet stage ---

def test_vegan_primary_diet(pipeline, catalog):
    out = run(pipeline, catalog, {"primaryDiet": "vegan"})
    assert ids(out) == ["m2", "m5", "m6", "m8"]
    assert all("vegan" in i["dietaryTags"] for i in out)


def test_vegan_tag_does_not_excuse_meat_keyword(pipeline):
    item = {"name": "Bacon Salad", "tags": ["vegan"]}
    assert run(pipeline, [item], {"primaryDiet": "vegan"}) == []


def test_keto_primary_diet_is_deny_list(pipeline, catalog):
    assert ids(run(pipeline, catalog, {"primaryDiet": "keto"})) == ["m1", "m3", "m4", "m6"]


@pytest.mark.parametrize("diet", ["omnivore", "Other", "", None])
def test_no_primary_diet(pipeline, catalog, diet):
    assert len(run(pipeline, catalog, {"primaryDiet": diet})) == len(catalog)


# --- Flag stage ---

def test_nut_free_tag_passes_flag(pipeline):
    """The flag trusts an explicit nut-free tag; the allergy stage does not."""
    item = {"name": "Coconut Bar", "tags": ["nut-free"]}
    assert run(pipeline, [item], {"isNutFree": True}) == [item]
    assert run(pipeline, [item], {"allergies": ["nuts"]}) == []


def test_nut_free_flag_scans_keywords(pipeline, catalog):
    assert ids(run(pipeline, catalog, {"isNutFree": True})) == ["m2", "m3", "m4", "m5", "m6", "m7", "m8"]


def test_dairy_free_flag(pipeline, catalog):
    assert ids(run(pipeline, catalog, {"isDairyFree": True})) == ["m2", "m3", "m5", "m6", "m8"]


def test_gluten_free_flag_on_catalog(pipeline, catalog):
    out = run(pipeline, catalog, {"isGlutenFree": True})
    assert ids(out) == ["m2", "m3", "m4", "m5", "m6"]
    assert all("gluten-free" in i["dietaryTags"] for i in out)


def test_flag_without_registry_rule_requires_tag():
    pipeline = FilterPipeline(RuleRegistry(data={"allergens": []}), mild_override=True)
    items = [{"name": "Rice", "tags": []}, {"name": "Rice Cake", "tags": ["nut-free"]}]
    assert run(pipeline, items, {"isNutFree": True}) == [items[1]]


def test_all_flags_together(pipeline, catalog):
    out = run(pipeline, catalog, {"isNutFree": True, "isDairyFree": True, "isGlutenFree": True})
    assert ids(out) == ["m2", "m3", "m5", "m6"]


# --- Properties ---

PROFILES = [
    {"allergies": ["nuts"]},
    {"allergies": ["dairy", "eggs"]},
    {"dietaryRestrictions": ["bland", "gluten free"]},
    {"primaryDiet": "vegan", "isNutFree": True},
    {"primaryDiet": "keto", "spicePreference": "none"},
    {"allergies": ["soy", "fish"], "isGlutenFree": True, "isDairyFree": True},
]


@pytest.mark.parametrize("profile", PROFILES)
def test_idempotent(pipeline, catalog, profile):
    once = run(pipeline, catalog, profile)
    assert run(pipeline, once, profile) == once


@pytest.mark.parametrize("profile", PROFILES)
def test_monotonic(pipeline, catalog, profile):
    base = run(pipeline, catalog, profile)
    stricter = dict(profile)
    stricter["allergies"] = list(profile.get("allergies", [])) + ["shellfish"]
    stricter["dietaryRestrictions"] = list(profile.get("dietaryRestrictions", [])) + ["no spicy"]
    narrowed = run(pipeline, catalog, stricter)
    assert len(narrowed) <= len(base)
    assert all(any(n is b for b in base) for n in narrowed)


@pytest.mark.parametrize("allergy", ["nuts", "dairy", "gluten", "soy", "eggs", "shellfish", "fish", "sesame"])
def test_allergen_exclusion_property(pipeline, catalog, allergy):
    rule = pipeline.registry.get_allergen(allergy)
    for raw in run(pipeline, catalog, {"allergies": [allergy]}):
        norm = ContentItem.from_any(raw).normalize()
        assert not norm.contains_any(rule.keywords)
        assert not norm.tag_containing(rule.disqualifying_tags)


def test_custom_registry_is_used():
    registry = RuleRegistry(data={"allergens": [{"category": "kiwi", "keywords": ["kiwi"]}]})
    pipeline = FilterPipeline(registry, mild_override=True)
    items = [{"name": "Kiwi Smoothie", "tags": []}, {"name": "Peanut Bar", "tags": []}]
    outcome = pipeline.filter(items, {"allergies": ["kiwi", "nuts"]})
    assert outcome.safe_items == [items[1]]
    assert outcome.unknown_terms == ["nuts"]


@pytest.mark.parametrize("restriction", ["no spicy", "bland"])
@pytest.mark.parametrize("name", ["Scotch Bonnet Jerk Sauce", "Carolina Reaper Salsa", "Ghost Pepper Wings"])
def test_strict_spice_levels_cover_extreme_heat(pipeline, restriction, name):
    assert run(pipeline, [{"name": name, "tags": []}], {"dietaryRestrictions": [restriction]}) == []


def test_empty_profile_still_drops_non_items(pipeline):
    good = {"name": "Garden Salad", "tags": []}
    outcome = pipeline.filter([None, good], {})
    assert outcome.safe_items == [good]
    assert outcome.removed_count == 1
