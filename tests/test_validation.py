import pytest

from leadhook.services.validation import validate_lead_payload


def fields(result):
    return [violation.field for violation in result.violations]


def test_valid_lead_with_email():
    result = validate_lead_payload({"name": "Alice", "email": "a@b.com"})
    assert result.is_valid
    assert result.lead.name == "Alice"
    assert result.lead.email == "a@b.com"


def test_valid_lead_with_phone_only():
    result = validate_lead_payload({"name": "Bob Smith", "phone": "+1 512 555 0123"})
    assert result.is_valid
    assert result.lead.phone == "+1 512 555 0123"


def test_missing_contact_channel():
    result = validate_lead_payload({"name": "Alice"})
    assert not result.is_valid
    assert fields(result) == ["email"]
    assert result.violations[0].message == "Either email or phone must be provided"


def test_all_violations_reported_together():
    result = validate_lead_payload({"name": "A"})
    assert not result.is_valid
    assert "name" in fields(result)
    assert "email" in fields(result)
    assert len(result.violations) == 2


@pytest.mark.parametrize(
    "payload, field",
    [
        ({"email": "a@b.com"}, "name"),
        ({"name": "A", "email": "a@b.com"}, "name"),
        ({"name": "Alice", "email": "not-an-email"}, "email"),
        ({"name": "Alice", "phone": "12345"}, "phone"),
        ({"name": "Alice", "email": "a@b.com", "timestamp": "yesterday"}, "timestamp"),
    ],
)
def test_field_violations(payload, field):
    result = validate_lead_payload(payload)
    assert not result.is_valid
    assert field in fields(result)


def test_non_object_body():
    for payload in ([1, 2], "lead", 42, None):
        result = validate_lead_payload(payload)
        assert not result.is_valid
        assert fields(result) == ["body"]


def test_utm_fields_use_camel_case_names():
    result = validate_lead_payload(
        {
            "name": "Alice",
            "email": "a@b.com",
            "utmSource": "google",
            "utmCampaign": "fall",
        }
    )
    assert result.is_valid
    assert result.lead.utm_source == "google"
    assert result.lead.utm_campaign == "fall"
    assert result.lead.utm_medium is None


def test_unknown_fields_are_ignored():
    result = validate_lead_payload({"name": "Alice", "email": "a@b.com", "consent": True})
    assert result.is_valid
    assert not hasattr(result.lead, "consent")


def test_violation_to_dict():
    result = validate_lead_payload({"name": "Alice"})
    assert result.violations[0].to_dict() == {
        "field": "email",
        "message": "Either email or phone must be provided",
    }


def test_long_values_are_accepted():
    result = validate_lead_payload(
        {
            "name": "A" * 250,
            "phone": "+34 600 000 000 ext. 1234 (office line)",
            "message": "x" * 6000,
            "notes": "y" * 6000,
            "street": "s" * 400,
            "utmCampaign": "c" * 300,
        }
    )
    assert result.is_valid
    assert len(result.lead.name) == 250
    assert len(result.lead.message) == 6000


@pytest.mark.parametrize("timestamp", [1_760_000_000_000, 1_760_000_000_000.5])
def test_timestamp_accepts_json_numbers(timestamp):
    result = validate_lead_payload({"name": "Alice", "email": "a@b.com", "timestamp": timestamp})
    assert result.is_valid
    assert result.lead.timestamp == timestamp


@pytest.mark.parametrize("timestamp", ["1760000000000", True])
def test_timestamp_rejects_non_numbers(timestamp):
    result = validate_lead_payload({"name": "Alice", "email": "a@b.com", "timestamp": timestamp})
    assert not result.is_valid
    assert "timestamp" in fields(result)
