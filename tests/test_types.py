import pytest

from salary_reveal.errors import InvalidBucket
from salary_reveal.types import BucketKey, ExperienceLevel, RoleCategory


def test_role_parses_code_name_and_label():
    assert RoleCategory.parse(2) is RoleCategory.MID
    assert RoleCategory.parse("mid") is RoleCategory.MID
    assert RoleCategory.parse("Mid-level") is RoleCategory.MID
    assert RoleCategory.parse(" 4 ") is RoleCategory.LEAD
    assert RoleCategory.parse(RoleCategory.SENIOR) is RoleCategory.SENIOR


@pytest.mark.parametrize("raw", [0, 5, -1, "Principal", "", None, 2.0, True, "²", "٣x"])
def test_role_rejects_values_outside_enumeration(raw):
    with pytest.raises(InvalidBucket) as ei:
        RoleCategory.parse(raw)
    assert ei.value.code == "SR_INVALID_BUCKET"
    assert ei.value.problem.details["field"] == "role"


def test_experience_rejects_out_of_range_code():
    with pytest.raises(InvalidBucket) as ei:
        ExperienceLevel.parse(6)
    assert ei.value.problem.details["field"] == "experience"


def test_bucket_key_string_form_is_stable():
    k = BucketKey.of("Senior", 4)
    assert str(k) == "3:4"
    assert BucketKey.from_str("3:4") == k
    assert k.to_dict() == {"key": "3:4", "role": "Senior", "experience": "10-15 years"}


def test_bucket_key_from_str_requires_separator():
    with pytest.raises(InvalidBucket):
        BucketKey.from_str("34")
