import logging
from typing import Any

from .credentials import CredentialResolver, credential_from_secret
from .exc import CredentialError, InvalidImage, RegistryError
from .models import Container, PatchAction, PatchOp, PodSpec
from .providers import SecretProvider
from .reference import split_image
from .registry import TagLister
from .versions import VersionResolver
from .workloads import extract

LOG = logging.getLogger(__name__)

CONTAINER_CLASSES = ("initContainers", "containers")


class PatchResolver:
    """Turns a workload into JSON Patch operations that pin each container
    image to the newest tag matching its constraint."""

    def __init__(
        self,
        provider: SecretProvider,
        resolver: VersionResolver,
        registry: TagLister,
        log: logging.Logger | None = None,
    ):
        self.log = log or LOG
        self.credentials = CredentialResolver(provider, log=self.log)
        self.resolver = resolver
        self.registry = registry

    def get_patches(
        self, kind: str, raw_object: dict[str, Any] | None, namespace: str = ""
    ) -> list[PatchAction]:
        """Resolve every container of an admission object.

        `namespace` is used when the object itself does not name one.
        Raises WorkloadDecodeError if an object of a supported kind cannot be
        decoded.
        """
        spec, spec_path, object_namespace = extract(kind, raw_object)
        if spec is None:
            return []

        return self.resolve(spec, spec_path, object_namespace or namespace)

    def resolve(self, spec: PodSpec, spec_path: str, namespace: str) -> list[PatchAction]:
        patches = []

        for container_class in CONTAINER_CLASSES:
            containers: list[Container] = getattr(spec, container_class)
            secrets = None

            for index, container in enumerate(containers):
                try:
                    repository, constraint = split_image(container.image)
                except InvalidImage as err:
                    self.log.error("skipping %s/%d: %s", container_class, index, err)
                    continue

                tags = self._anonymous_tags(repository)
                if tags is None:
                    if secrets is None:
                        secrets = self.credentials.fetch(spec.imagePullSecrets, namespace)
                    tags = self._tags_with_secrets(secrets, container.image, repository)

                if tags is None:
                    self.log.warning("unable to list tags for %s, leaving it as is", repository)
                    continue

                version = self.resolver.resolve(constraint, tags)
                self.log.info("resolved %s to %s:%s", container.image, repository, version)

                patches.append(
                    PatchAction(
                        op=PatchOp.REPLACE,
                        path=f"{spec_path}/{container_class}/{index}/image",
                        value=f"{repository}:{version}",
                    )
                )

        return patches

    def _anonymous_tags(self, repository: str) -> list[str] | None:
        try:
            return self.registry.tags(None, repository)
        except RegistryError as err:
            self.log.info("anonymous tag listing failed for %s: %s", repository, err)
            return None

    def _tags_with_secrets(
        self, secrets: list[dict], image: str, repository: str
    ) -> list[str] | None:
        for secret in secrets:
            name = (secret.get("metadata") or {}).get("name")
            try:
                credential = credential_from_secret(secret, image)
            except CredentialError as err:
                self.log.error("secret %s: %s", name, err)
                continue

            try:
                return self.registry.tags(credential, repository)
            except RegistryError as err:
                self.log.error("listing tags for %s with secret %s: %s", repository, name, err)
                continue

        return None
