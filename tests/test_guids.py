import pytest

from o365_admin.errors import RemoteLookupError
from o365_admin.guids import check_record, classify, normalize_guid
from o365_admin.models import Classification, GuidRecord


@pytest.mark.parametrize("raw", ["{ab-12}", "AB-12", "{AB-12}", "ab-12", "  {Ab-12} "])
def test_normalize_strips_braces_and_uppercases(raw):
    assert normalize_guid(raw) == "AB-12"


def test_normalize_handles_missing_value():
    assert normalize_guid(None) == ""


def test_matching_guid_with_braces_and_case_is_match():
    record = GuidRecord("a@contoso.com", "{aaaa-1111}")
    assert classify(record, lambda upn: "AAAA-1111") is Classification.MATCH


def test_differing_guid_is_change():
    record = GuidRecord("b@contoso.com", "BBBB")
    check = check_record(record, lambda upn: "{cccc}")
    assert check.classification is Classification.CHANGE
    assert check.declared == "BBBB"
    assert check.remote == "CCCC"


@pytest.mark.parametrize("declared", ["", "{}", "AAAA", "{not-a-guid}"])
def test_not_found_is_always_error(declared):
    record = GuidRecord("ghost@contoso.com", declared)
    check = check_record(record, lambda upn: None)
    assert check.classification is Classification.ERROR
    assert "ghost@contoso.com was not found" in check.detail


def test_lookup_failure_is_error():
    def _lookup(upn):
        raise RemoteLookupError("Lookup of x failed: 500")

    check = check_record(GuidRecord("x@contoso.com", "AAAA"), _lookup)
    assert check.classification is Classification.ERROR
    assert "500" in check.detail


def test_classification_is_stable_without_updates():
    record = GuidRecord("b@contoso.com", "BBBB")
    calls = []

    def _lookup(upn):
        calls.append(upn)
        return "CCCC"

    assert classify(record, _lookup) == classify(record, _lookup) == Classification.CHANGE
    # Results are never cached: each call reaches the remote side.
    assert calls == ["b@contoso.com", "b@contoso.com"]


def test_partial_guid_is_not_fuzzy_matched():
    record = GuidRecord("a@contoso.com", "AAAA-11")
    assert classify(record, lambda upn: "AAAA-1111") is Classification.CHANGE
