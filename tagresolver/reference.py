"""Container image reference handling.

Normalizes repository names the way the docker tooling does: a name without a
registry host lives on Docker Hub, and a Docker Hub name without a namespace
lives under ``library/``.
"""

import re

from pydantic import BaseModel

from .exc import InvalidImage

DEFAULT_DOMAIN = "docker.io"
LEGACY_DEFAULT_DOMAIN = "index.docker.io"
DEFAULT_API_HOST = "registry-1.docker.io"
OFFICIAL_REPO_PREFIX = "library"
NAME_TOTAL_LENGTH_MAX = 255

_path_component = r"[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*"
_domain_component = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"

PATH_RE = re.compile(rf"^{_path_component}(?:/{_path_component})*$")
DOMAIN_RE = re.compile(rf"^{_domain_component}(?:\.{_domain_component})*(?::[0-9]+)?$")


class ImageName(BaseModel):
    domain: str
    path: str

    @property
    def name(self) -> str:
        return f"{self.domain}/{self.path}"

    def __str__(self):
        return self.name


def split_image(image: str) -> tuple[str, str]:
    """Split an image into repository and tag.

    Only images with exactly one ``:`` are accepted, so references carrying a
    registry port or a digest are rejected.
    """
    if not image:
        raise InvalidImage("image can't be empty")

    parts = image.split(":")
    if len(parts) != 2:
        raise InvalidImage(f"invalid image format: {image}")

    return parts[0], parts[1]


def _split_domain(name: str) -> tuple[str, str]:
    first, sep, rest = name.partition("/")
    if (
        not sep
        or (
            not any(c in first for c in ".:")
            and first != "localhost"
            and first.lower() == first
        )
    ):
        domain, remainder = DEFAULT_DOMAIN, name
    else:
        domain, remainder = first, rest

    if domain == LEGACY_DEFAULT_DOMAIN:
        domain = DEFAULT_DOMAIN
    if domain == DEFAULT_DOMAIN and "/" not in remainder:
        remainder = f"{OFFICIAL_REPO_PREFIX}/{remainder}"

    return domain, remainder


def parse_normalized_named(name: str) -> ImageName:
    """Parse a repository name into its fully qualified form.

    >>> parse_normalized_named("alpine").name
    'docker.io/library/alpine'
    """
    domain, remainder = _split_domain(name)

    if remainder.lower() != remainder:
        raise InvalidImage(
            f"invalid reference format: repository name must be lowercase: {name}"
        )
    if not DOMAIN_RE.match(domain):
        raise InvalidImage(f"invalid reference format: bad domain in {name}")
    if not PATH_RE.match(remainder):
        raise InvalidImage(f"invalid reference format: {name}")

    ref = ImageName(domain=domain, path=remainder)
    if len(ref.name) > NAME_TOTAL_LENGTH_MAX:
        raise InvalidImage(
            f"repository name must not be more than {NAME_TOTAL_LENGTH_MAX} characters"
        )

    return ref


def registry_host(ref: ImageName) -> str:
    """Return the host serving the registry API for a repository."""
    if not ref.domain:
        raise InvalidImage("missing domain from image name")
    if ref.domain == DEFAULT_DOMAIN:
        return DEFAULT_API_HOST
    return ref.domain
