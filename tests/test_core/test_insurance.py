"""Tests for insurance catalog helpers."""

import random
from types import SimpleNamespace

from healthspot.core.insurance import (
    INSURANCE_PROVIDERS,
    check_insurance_acceptance,
    format_insurance,
    generate_placeholder_insurance,
    parse_insurance_filter,
)


def test_parse_insurance_filter():
    assert parse_insurance_filter(None) == []
    assert parse_insurance_filter("") == []
    assert parse_insurance_filter("aetna, cigna,,") == ["aetna", "cigna"]
    assert parse_insurance_filter(["medicare", " ", "kaiser "]) == ["medicare", "kaiser"]


def test_check_insurance_acceptance_without_filter_matches_everything():
    assert check_insurance_acceptance({"insurance_accepted": []}, None)
    assert check_insurance_acceptance(SimpleNamespace(insurance_accepted=None), "")


def test_check_insurance_acceptance_matches_any_requested_plan():
    provider = SimpleNamespace(insurance_accepted=["aetna", "medicare"])

    assert check_insurance_acceptance(provider, "cigna,medicare")
    assert not check_insurance_acceptance(provider, ["cigna"])


def test_check_insurance_acceptance_reads_camel_case_mappings():
    assert check_insurance_acceptance({"insuranceAccepted": ["tricare"]}, "tricare")


def test_check_insurance_acceptance_rejects_providers_without_plans():
    assert not check_insurance_acceptance({"insurance_accepted": None}, "aetna")
    assert not check_insurance_acceptance({"insurance_accepted": "aetna"}, "aetna")


def test_generate_placeholder_insurance_is_a_subset_of_the_catalog():
    ids = {plan.id for plan in INSURANCE_PROVIDERS}

    plans = generate_placeholder_insurance(4, rng=random.Random(7))

    assert len(plans) == 4
    assert len(set(plans)) == 4
    assert set(plans) <= ids


def test_generate_placeholder_insurance_clamps_count():
    assert generate_placeholder_insurance(0) == []
    assert len(generate_placeholder_insurance(50)) == len(INSURANCE_PROVIDERS)


def test_format_insurance_labels_unknown_plans():
    assert format_insurance(["aetna", "acme"]) == [
        {"id": "aetna", "name": "Aetna", "type": "private"},
        {"id": "acme", "name": "acme", "type": "unknown"},
    ]
    assert format_insurance(None) == []
