import pytest

from tagresolver.versions import (
    Constraints,
    InvalidConstraint,
    SemVersionResolver,
    parse_version,
)

NOISE = ["hello", "some_version"]


@pytest.fixture()
def resolver():
    return SemVersionResolver()


@pytest.mark.parametrize(
    "constraint,versions,expected",
    [
        ("^0.5.0", NOISE + ["0.1", "0.1-beta", "0.5-beta"], "^0.5.0"),
        ("^0.5.0", NOISE + ["0.1", "0.1-beta", "0.5-beta", "0.6"], "0.6"),
        ("~0.4.0", NOISE + ["0.4.0", "0.4.0-beta", "0.4.1", "0.5-beta"], "0.4.1"),
        ("0.4.0", NOISE + ["0.4.0", "0.4.0-beta", "0.4.1", "0.5-beta"], "0.4.0"),
        ("@", [], "@"),
        ("latest", ["1.0", "latest"], "latest"),
    ],
)
def test_resolve(resolver, constraint, versions, expected):
    assert resolver.resolve(constraint, versions) == expected


def test_resolve_caret_keeps_major(resolver):
    tags = ["1.2.0", "1.9.3", "2.0.0", "1.10.0"]
    assert resolver.resolve("^1.2.0", tags) == "1.10.0"


def test_resolve_returns_original_tag_text(resolver):
    assert resolver.resolve("~1.4", ["v1.4.2", "1.4.1", "1.5.0"]) == "v1.4.2"


def test_resolve_prerelease_constraint(resolver):
    tags = ["1.0.0-alpha.1", "1.0.0-beta", "0.9.0"]
    assert resolver.resolve(">=1.0.0-alpha", tags) == "1.0.0-beta"


def test_resolve_alternatives(resolver):
    tags = ["1.1.0", "2.3.0", "3.0.0"]
    assert resolver.resolve("~1.1 || ~2.3", tags) == "2.3.0"


def test_resolve_hyphen_range(resolver):
    tags = ["1.1.0", "1.4.5", "1.4.6", "2.0.0"]
    assert resolver.resolve("1.2 - 1.4.5", tags) == "1.4.5"


def test_resolve_wildcard(resolver):
    tags = ["1.2.0", "1.2.9", "1.3.0"]
    assert resolver.resolve("1.2.x", tags) == "1.2.9"
    assert resolver.resolve("*", tags) == "1.3.0"


def test_resolve_comma_separated_terms(resolver):
    tags = ["1.0.0", "1.5.0", "2.0.0"]
    assert resolver.resolve(">= 1.0.0, < 2.0.0", tags) == "1.5.0"
    assert resolver.resolve(">1.0.0 <2 !=1.5.0", tags) == ">1.0.0 <2 !=1.5.0"


def test_resolve_is_deterministic(resolver):
    tags = ["0.6", "0.5.1", "0.7.0-rc1", "0.7.0"]
    results = {resolver.resolve("^0.5.0", tags) for _ in range(5)}
    assert results == {"0.7.0"}


def test_parse_version_lenient():
    assert str(parse_version("0.5-beta")) == "0.5.0-beta"
    assert str(parse_version("v2")) == "2.0.0"
    with pytest.raises(ValueError):
        parse_version("hello")


@pytest.mark.parametrize("constraint", ["@", "latest", "", ">=", "1.2.3.4"])
def test_invalid_constraints(constraint):
    with pytest.raises(InvalidConstraint):
        Constraints(constraint)


def test_resolve_leading_zeros(resolver):
    """Date-style tags keep their original spelling in the result"""
    assert resolver.resolve(">=2021.1.0", ["2021.03.01", "2021.02.15"]) == "2021.03.01"
    assert str(parse_version("v01.02.003")) == "1.2.3"


def test_resolve_ignores_non_string_tags(resolver):
    assert resolver.resolve("^1.0.0", ["1.0.0", 5, None]) == "1.0.0"
