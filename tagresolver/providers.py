import logging

from kubernetes import config, client
from kubernetes.dynamic.exceptions import NotFoundError
from openshift.dynamic import DynamicClient
from typing import Any
from typing_extensions import Protocol

from .exc import ProviderError, SecretNotFound

LOG = logging.getLogger(__name__)


class SecretProvider(Protocol):
    def get_secret(self, namespace: str, name: str) -> dict[str, Any]: ...


class KubernetesProvider(SecretProvider):
    def __init__(self):
        """Allocate a Kubernetes dynamic client and Secret API client"""

        super().__init__()

        try:
            config.load_config()
        except config.ConfigException as err:
            LOG.warning("unable to configure Kubernetes client: %s", err)
            raise ProviderError("unable to configure Kubernetes client")

        k8s_client = client.ApiClient()
        dyn_client = DynamicClient(k8s_client)

        self._client = dyn_client
        self._secret_resource = dyn_client.resources.get(api_version="v1", kind="Secret")

    def get_secret(self, namespace, name):
        """Return the secret as a plain mapping; values under "data" are still
        base64 encoded, as the API serves them."""
        try:
            secret_obj = self._secret_resource.get(name=name, namespace=namespace)
        except NotFoundError:
            raise SecretNotFound(f"secret {namespace}/{name} not found")

        return secret_obj.to_dict()
