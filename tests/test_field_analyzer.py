"""
Tests for app/services/field_analyzer.py

Covers:
- name: absent, equal to address, containing the address segment, real name
- contact fields: present values need verification, absent are missing
- amenities: empty list counts as missing
- mapping input (request bodies) and snapshot input give the same result

Called by: pytest tests/test_field_analyzer.py -v
"""

import os

os.environ["TESTING"] = "1"

from app.schemas.enrichment import PropertySnapshot
from app.services.field_analyzer import (
    ENRICHABLE_FIELDS,
    analyze,
    name_is_placeholder,
)


def test_address_only_property_is_missing_everything():
    analysis = analyze(PropertySnapshot(street_address="123 Oak Ridge Dr"))
    assert analysis.missing == list(ENRICHABLE_FIELDS)
    assert analysis.existing == {}
    assert analysis.needs_verification == []


def test_name_equal_to_address_is_placeholder():
    assert name_is_placeholder("123 Oak Ridge Dr", "123 Oak Ridge Dr")


def test_name_containing_address_segment_is_placeholder():
    assert name_is_placeholder("Apartments at 123 Oak Ridge Dr", "123 Oak Ridge Dr, San Antonio, TX")


def test_real_name_is_not_placeholder():
    assert not name_is_placeholder("Oak Ridge Apartments", "123 Oak Ridge Dr")


def test_blank_name_is_placeholder():
    assert name_is_placeholder("   ", "123 Oak Ridge Dr")


def test_present_phone_and_email_need_verification():
    analysis = analyze(PropertySnapshot(
        street_address="123 Oak Ridge Dr",
        name="Oak Ridge Apartments",
        contact_phone="(210) 555-0100",
        contact_email="leasing@oakridge.com",
    ))
    assert analysis.existing["contact_phone"] == "(210) 555-0100"
    assert analysis.needs_verification == ["contact_phone", "contact_email"]
    assert "contact_phone" not in analysis.missing
    assert "name" not in analysis.missing


def test_present_contact_name_is_not_verified():
    analysis = analyze(PropertySnapshot(street_address="1 Main St", contact_name="Dana"))
    assert analysis.existing["contact_name"] == "Dana"
    assert "contact_name" not in analysis.needs_verification


def test_empty_amenities_is_missing():
    analysis = analyze(PropertySnapshot(street_address="1 Main St", amenities=[]))
    assert analysis.is_missing("amenities")


def test_blank_strings_are_missing():
    analysis = analyze(PropertySnapshot(street_address="1 Main St", leasing_link="  ", management_company=""))
    assert analysis.is_missing("leasing_link")
    assert analysis.is_missing("management_company")


def test_mapping_input_uses_address_and_community_name():
    analysis = analyze({
        "address": "123 Oak Ridge Dr",
        "community_name": "Oak Ridge Apartments",
        "contact_phone": "210-555-0100",
    })
    assert analysis.existing["name"] == "Oak Ridge Apartments"
    assert analysis.needs_verification == ["contact_phone"]
