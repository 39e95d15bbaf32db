from library_manager.domain.identifiers import (
    extract_library_id, format_library_id, next_library_id, parse_exact_int,
)

def test_next_library_id_starts_at_1001():
    assert next_library_id(None) == 1001

def test_next_library_id_follows_max():
    assert next_library_id(1042) == 1043

def test_format_library_id_pads_to_four_digits():
    assert format_library_id(1001) == "MCL1001"
    assert format_library_id(7) == "MCL0007"
    assert format_library_id(12345) == "MCL12345"

def test_extract_library_id_with_prefix():
    assert extract_library_id("MCL1001") == 1001
    assert extract_library_id("mcl1001") == 1001
    assert extract_library_id("  MCL 0042 ") == 42

def test_extract_library_id_bare_number():
    assert extract_library_id("1001") == 1001
    assert extract_library_id(" 1001 ") == 1001

def test_extract_library_id_rejects_non_ids():
    assert extract_library_id("MCL") is None
    assert extract_library_id("abc") is None
    assert extract_library_id("12ab") is None
    assert extract_library_id("") is None
    assert extract_library_id(None) is None

def test_parse_exact_int_requires_canonical_form():
    assert parse_exact_int("1954") == 1954
    assert parse_exact_int(" 1954 ") == 1954
    assert parse_exact_int("01954") is None
    assert parse_exact_int("19.5") is None

def test_numbers_past_integer_range_are_not_ids():
    huge = "99999999999999999999"
    assert parse_exact_int(huge) is None
    assert parse_exact_int("-" + huge) is None
    assert extract_library_id(huge) is None
    assert extract_library_id("MCL" + huge) is None
    assert parse_exact_int(str(2**63 - 1)) == 2**63 - 1
    assert extract_library_id(f"MCL{2**63 - 1}") == 2**63 - 1
