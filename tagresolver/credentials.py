import base64
import logging

from .exc import CredentialError, InvalidImage, SecretNotFound
from .models import (
    Credential,
    LocalObjectReference,
    RegistryAuth,
    RegistryConfig,
    RegistryConfigs,
)
from .providers import SecretProvider
from .reference import DEFAULT_DOMAIN, parse_normalized_named, split_image

LOG = logging.getLogger(__name__)

DOCKER_CONFIG_JSON_KEY = ".dockerconfigjson"
DOCKER_CONFIG_KEY = ".dockercfg"
DEFAULT_NAMESPACE = "default"

DOCKER_HUB_ALIASES = (
    "index.docker.io",
    "registry-1.docker.io",
    "registry.docker.io",
)


def _normalize_registry_key(key: str) -> str:
    """Reduce a docker config key such as "https://index.docker.io/v1/" to a
    bare registry domain."""
    for scheme in ("https://", "http://"):
        if key.startswith(scheme):
            key = key[len(scheme):]
    key = key.split("/", 1)[0]
    if key in DOCKER_HUB_ALIASES:
        key = DEFAULT_DOMAIN
    return key


def load_registry_auths(secret: dict) -> dict[str, RegistryAuth]:
    data = secret.get("data") or {}

    try:
        if DOCKER_CONFIG_JSON_KEY in data:
            raw = base64.b64decode(data[DOCKER_CONFIG_JSON_KEY], validate=True)
            return RegistryConfigs.model_validate_json(raw).auths
        if DOCKER_CONFIG_KEY in data:
            raw = base64.b64decode(data[DOCKER_CONFIG_KEY], validate=True)
            return RegistryConfig.model_validate_json(raw).root
    except ValueError as err:
        raise CredentialError(f"unable to decode docker config: {err}")

    raise CredentialError("no docker config found in secret")


def credential_from_secret(secret: dict, image: str) -> Credential:
    """Build the credential for the registry serving `image` out of an image
    pull secret.

    Raises CredentialError if the secret holds no docker config, has no entry
    for the image's registry, or the entry's auth field is not base64 encoded
    "username:password".
    """
    auths = load_registry_auths(secret)

    try:
        base, _ = split_image(image)
        domain = parse_normalized_named(base).domain
    except InvalidImage as err:
        raise CredentialError(str(err))

    entry = auths.get(domain)
    if entry is None:
        for key, candidate in auths.items():
            if _normalize_registry_key(key) == domain:
                entry = candidate
                break
        else:
            raise CredentialError(f"registry domain: {domain} does not exist")

    try:
        decoded = base64.b64decode(entry.auth, validate=True).decode()
    except ValueError as err:
        raise CredentialError(f"unable to decode auth field: {err}")

    basic_auth = decoded.split(":")
    if len(basic_auth) != 2:
        raise CredentialError("auth field should equal basic auth syntax")

    return Credential(username=basic_auth[0], password=basic_auth[1])


class CredentialResolver:
    """Looks up the image pull secrets referenced by a workload."""

    def __init__(self, provider: SecretProvider, log: logging.Logger | None = None):
        self.provider = provider
        self.log = log or LOG

    def fetch(
        self, pull_secrets: list[LocalObjectReference], namespace: str
    ) -> list[dict]:
        """Return the secrets that could be read, in the order they were
        referenced. Missing secrets and lookup failures are skipped."""
        if not namespace:
            namespace = DEFAULT_NAMESPACE

        secrets = []
        for ref in pull_secrets:
            if not ref.name:
                self.log.debug("skipping image pull secret without a name")
                continue

            try:
                secret = self.provider.get_secret(namespace, ref.name)
            except SecretNotFound:
                self.log.debug("image pull secret %s/%s not found", namespace, ref.name)
                continue
            except Exception as err:
                self.log.error("failed to fetch secret %s/%s: %s", namespace, ref.name, err)
                continue

            secrets.append(secret)

        return secrets
