import base64
import json

import pytest

from tagresolver import mutate
from tagresolver.exc import RegistryError, SecretNotFound

TEST_USER = "testuser"
TEST_PASS = "testpass"
ENCODED_CREDENTIALS = "dGVzdHVzZXI6dGVzdHBhc3M="  # testuser:testpass


def docker_secret(key, domain, auth, name="regcred"):
    if key == ".dockerconfigjson":
        config = {"auths": {domain: {"auth": auth, "email": ""}}}
    else:
        config = {domain: {"auth": auth, "email": ""}}

    return {
        "metadata": {"name": name},
        "type": "kubernetes.io/dockerconfigjson",
        "data": {key: base64.b64encode(json.dumps(config).encode()).decode()},
    }


class FakeProvider:
    def __init__(self, secrets=None, namespace="default", errors=None):
        self.secrets = secrets or {}
        self.namespace = namespace
        self.errors = errors or {}
        self.calls = []

    def get_secret(self, namespace, name):
        self.calls.append((namespace, name))
        if name in self.errors:
            raise self.errors[name]
        if name not in self.secrets or namespace != self.namespace:
            raise SecretNotFound(f"secret {namespace}/{name} not found")
        return self.secrets[name]


class FakeRegistry:
    """Returns queued results in order; an exception in the queue is raised."""

    def __init__(self, results=None, **kwargs):
        self.results = list(results or [])
        self.calls = []

    def tags(self, credential, repository):
        self.calls.append((credential, repository))
        if not self.results:
            raise RegistryError("no more results queued")
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class FakeResolver:
    def __init__(self, resolve="1.0"):
        self.resolve_to = resolve
        self.calls = []

    def resolve(self, constraint, versions):
        self.calls.append((constraint, versions))
        return self.resolve_to


@pytest.fixture()
def fake_provider():
    return FakeProvider()


@pytest.fixture()
def fake_registry():
    return FakeRegistry()


@pytest.fixture()
def app(fake_provider, fake_registry):
    app = mutate.create_app(
        PROVIDER=lambda: fake_provider,
        REGISTRY_CLIENT=lambda **kwargs: fake_registry,
        VERSION_RESOLVER=lambda: FakeResolver("1.0"),
        TESTING=True,
    )
    yield app


@pytest.fixture()
def client(app):
    return app.test_client()
