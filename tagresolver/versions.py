"""Pick a tag for a semantic version constraint.

Constraints follow the syntax popularised by the Masterminds semver library:

* ``||`` separates alternatives, ``,`` or whitespace separates terms that must
  all hold;
* operators ``=``, ``!=``, ``>``, ``<``, ``>=``, ``<=``, ``~`` (``~>``) and
  ``^``;
* ``x``, ``X`` or ``*`` (or an omitted component) as a wildcard;
* hyphen ranges such as ``1.2 - 1.4.5``.

``^`` pins the major version only, so ``^0.5.0`` accepts ``0.6``. ``~`` pins
major and minor, or just the major version when the minor is a wildcard.
Pre-release versions only satisfy terms that name a pre-release themselves.
"""

import re

from semver import Version
from typing_extensions import Protocol

_cv = (
    r"v?(?P<major>\d+|[xX*])"
    r"(?:\.(?P<minor>\d+|[xX*]))?"
    r"(?:\.(?P<patch>\d+|[xX*]))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
)
_range_bound = r"v?[\dxX*]+(?:\.[\dxX*]+){0,2}(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?"

TERM_RE = re.compile(rf"^(?P<op>=>|=<|>=|<=|!=|~>|[=<>~^])?{_cv}$")
HYPHEN_RE = re.compile(rf"\s*({_range_bound})\s+-\s+({_range_bound})\s*")
OP_SPACE_RE = re.compile(r"(=>|=<|>=|<=|!=|~>|[=<>~^])\s+")
WILDCARDS = ("x", "X", "*")
VERSION_CORE_RE = re.compile(r"^[^-+]*")
LEADING_ZEROS_RE = re.compile(r"(^|\.)0+(?=\d)")


class InvalidConstraint(ValueError):
    pass


class VersionResolver(Protocol):
    def resolve(self, constraint: str, versions: list[str]) -> str: ...


def parse_version(text: str) -> Version:
    """Parse a tag leniently: a leading ``v``, missing minor or patch
    components and leading zeros are accepted, so ``0.5-beta`` reads as
    ``0.5.0-beta`` and ``2021.03.01`` as ``2021.3.1``."""
    if not isinstance(text, str):
        raise ValueError(f"not a version: {text!r}")
    if text[:1] in ("v", "V"):
        text = text[1:]
    core = VERSION_CORE_RE.match(text).group()
    text = LEADING_ZEROS_RE.sub(r"\1", core) + text[len(core):]
    return Version.parse(text, optional_minor_and_patch=True)


class Term:
    """A single comparison such as ``>=1.2.0`` or ``~1.x``."""

    def __init__(self, text: str):
        m = TERM_RE.match(text)
        if not m:
            raise InvalidConstraint(f"improper constraint: {text}")

        self.original = text
        self.op = m.group("op") or "="
        if self.op == "=>":
            self.op = ">="
        elif self.op == "=<":
            self.op = "<="
        elif self.op == "~>":
            self.op = "~"

        major, minor, patch = m.group("major", "minor", "patch")
        self.major_x = major in WILDCARDS
        self.minor_x = self.major_x or minor is None or minor in WILDCARDS
        self.patch_x = self.minor_x or patch is None or patch in WILDCARDS

        self.version = Version(
            major=0 if self.major_x else int(major),
            minor=0 if self.minor_x else int(minor),
            patch=0 if self.patch_x else int(patch),
            prerelease=m.group("prerelease"),
            build=m.group("build"),
        )

    @property
    def dirty(self) -> bool:
        return self.patch_x

    def _matches_wildcard(self, v: Version) -> bool:
        if self.major_x:
            return True
        if self.minor_x:
            return v.major == self.version.major
        return (v.major, v.minor) == (self.version.major, self.version.minor)

    def _equal(self, v: Version) -> bool:
        if self.dirty:
            return self._matches_wildcard(v)
        return v.compare(self.version) == 0

    def check(self, v: Version) -> bool:
        if self.op == "!=":
            if self.dirty and v.prerelease and not self.version.prerelease:
                return False
            return not self._equal(v)

        if v.prerelease and not self.version.prerelease:
            return False

        base = self.version
        if self.op == "=":
            return self._equal(v)
        if self.op == ">":
            if not self.dirty:
                return v.compare(base) > 0
            if self.major_x:
                return False
            if self.minor_x:
                return v.major > base.major
            return (v.major, v.minor) > (base.major, base.minor)
        if self.op == ">=":
            return v.compare(base) >= 0
        if self.op == "<":
            if self.major_x:
                return False
            return v.compare(base) < 0
        if self.op == "<=":
            if not self.dirty:
                return v.compare(base) <= 0
            if self.major_x:
                return True
            if self.minor_x:
                return v.major <= base.major
            return (v.major, v.minor) <= (base.major, base.minor)
        if self.op == "~":
            if v.compare(base) < 0:
                return False
            if self.major_x:
                return True
            if v.major != base.major:
                return False
            return self.minor_x or v.minor == base.minor
        if self.op == "^":
            if v.compare(base) < 0:
                return False
            return self.major_x or v.major == base.major

        raise InvalidConstraint(f"unknown operator {self.op}")

    def __repr__(self):
        return f"<Term {self.original}>"


class Constraints:
    """A parsed constraint expression: alternatives of conjunctive terms."""

    def __init__(self, text: str):
        self.original = text
        self.groups: list[list[Term]] = []

        for alternative in text.split("||"):
            alternative = HYPHEN_RE.sub(r" >=\1 <=\2 ", alternative)
            alternative = OP_SPACE_RE.sub(r"\1", alternative)
            terms = [Term(t) for t in re.split(r"[,\s]+", alternative.strip()) if t]
            if not terms:
                raise InvalidConstraint(f"empty constraint in {text!r}")
            self.groups.append(terms)

    def check(self, v: Version) -> bool:
        return any(all(term.check(v) for term in group) for group in self.groups)


class SemVersionResolver:
    """Resolves a constraint against candidate tags using semantic versioning."""

    def resolve(self, constraint: str, versions: list[str]) -> str:
        try:
            constraints = Constraints(constraint)
        except InvalidConstraint:
            return constraint

        compatibles = []
        for version in versions:
            try:
                v = parse_version(version)
            except ValueError:
                continue

            if constraints.check(v):
                compatibles.append((v, version))

        if not compatibles:
            # No match: the constraint is handed back verbatim as the tag.
            return constraint

        compatibles.sort(key=lambda pair: pair[0], reverse=True)
        return compatibles[0][1]
