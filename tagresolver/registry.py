"""List the tags of a repository on a docker registry (v2 API).

The flow mirrors what the docker client does: ping ``/v2/`` anonymously, read
the authentication challenges the registry answers with, obtain a scoped
bearer token (or fall back to basic auth) and page through
``/v2/<name>/tags/list``.
"""

import logging
import time
from collections.abc import Mapping
from urllib.parse import urljoin

import requests
import requests.auth
import requests.utils
import www_authenticate
from typing_extensions import Protocol

from .exc import InvalidImage, PingResponseError, RegistryError
from .models import Credential, TagList, TokenResponse
from .reference import ImageName, parse_normalized_named, registry_host

LOG = logging.getLogger(__name__)

API_VERSION_HEADER = "Docker-Distribution-Api-Version"
V2_API_VERSION = "registry/2.0"
PING_TIMEOUT = 15
LIST_TIMEOUT = 300
USER_AGENT = "tagresolver"
TOKEN_CLIENT_ID = "docker"
READ_CHUNK_SIZE = 4096


class TagLister(Protocol):
    def tags(self, credential: Credential | None, repository: str) -> list[str]: ...


class BearerAuth(requests.auth.AuthBase):
    def __init__(self, token: str):
        self.token = token

    def __call__(self, r):
        r.headers["Authorization"] = f"Bearer {self.token}"
        return r


def parse_challenges(response) -> dict[str, dict[str, str]]:
    """Return the authentication challenges of a 401 response, keyed by
    lower-cased scheme."""
    header = response.headers.get("WWW-Authenticate")
    if not header:
        raise PingResponseError("registry requires authentication but sent no challenge")

    try:
        parsed = www_authenticate.parse(header)
    except (ValueError, TypeError) as err:
        raise PingResponseError(f"unable to parse challenge {header!r}: {err}")

    challenges = {}
    for scheme, params in parsed.items():
        if isinstance(params, Mapping):
            params = {key.lower(): value for key, value in params.items()}
        else:
            params = {}
        challenges[scheme.lower()] = params

    if not challenges:
        raise PingResponseError(f"no usable challenge in {header!r}")
    if "bearer" in challenges and not challenges["bearer"].get("realm"):
        raise PingResponseError(f"bearer challenge without realm: {header!r}")

    return challenges


def supports_v2(response) -> bool:
    versions = response.headers.get(API_VERSION_HEADER, "")
    return V2_API_VERSION in [v.strip() for v in versions.split(",")]


class RegistryClient(TagLister):
    def __init__(
        self,
        session_factory=requests.Session,
        ping_timeout: float = PING_TIMEOUT,
        list_timeout: float = LIST_TIMEOUT,
        user_agent: str = USER_AGENT,
        log: logging.Logger | None = None,
        clock=time.monotonic,
    ):
        self.session_factory = session_factory
        self.ping_timeout = ping_timeout
        self.list_timeout = list_timeout
        self.user_agent = user_agent
        self.log = log or LOG
        self.clock = clock

    def tags(self, credential, repository):
        if credential is None:
            credential = Credential()

        try:
            ref = parse_normalized_named(repository)
            base_url = f"https://{registry_host(ref)}"
        except InvalidImage as err:
            raise RegistryError(str(err))

        with self.session_factory() as session:
            session.headers["User-Agent"] = self.user_agent

            challenges = self.ping(session, base_url)
            deadline = self.clock() + self.list_timeout
            auth = self.authorizer(session, challenges, credential, ref, deadline)
            return self.list_tags(session, base_url, ref, auth, deadline)

    def ping(self, session, base_url: str) -> dict[str, dict[str, str]]:
        """Probe the registry anonymously and return its challenges. An empty
        result means the registry did not ask for authentication."""
        url = f"{base_url.rstrip('/')}/v2/"
        deadline = self.clock() + self.ping_timeout
        try:
            response = session.get(url, stream=True, timeout=self._remaining(deadline))
        except requests.RequestException as err:
            raise RegistryError(f"unable to ping registry {url}: {err}")

        # Only the status and headers matter, the body is never read.
        with response:
            if supports_v2(response):
                self.log.debug("%s confirmed registry api v2", url)
            else:
                self.log.debug("%s did not advertise registry api v2", url)

            if response.status_code == 401:
                return parse_challenges(response)

        return {}

    def authorizer(self, session, challenges, credential, ref: ImageName, deadline):
        if "bearer" in challenges:
            token = self.fetch_token(session, challenges["bearer"], credential, ref, deadline)
            return BearerAuth(token)

        if "basic" in challenges and not credential.anonymous:
            return requests.auth.HTTPBasicAuth(credential.username, credential.password)

        return None

    def fetch_token(self, session, challenge, credential, ref: ImageName, deadline) -> str:
        realm = challenge["realm"]
        params = {
            "scope": f"repository:{ref.path}:pull",
            "client_id": TOKEN_CLIENT_ID,
        }
        if challenge.get("service"):
            params["service"] = challenge["service"]

        auth = None
        if not credential.anonymous:
            params["account"] = credential.username
            auth = requests.auth.HTTPBasicAuth(credential.username, credential.password)

        try:
            response = session.get(
                realm,
                params=params,
                auth=auth,
                stream=True,
                timeout=self._remaining(deadline),
            )
        except requests.RequestException as err:
            raise RegistryError(f"unable to fetch token from {realm}: {err}")

        with response:
            if response.status_code != 200:
                raise RegistryError(
                    f"token auth attempt for registry {realm} failed with status "
                    f"{response.status_code}"
                )

            content = self._read(response, deadline)

        try:
            body = TokenResponse.model_validate_json(content)
        except ValueError as err:
            raise RegistryError(f"invalid token response from {realm}: {err}")

        token = body.token or body.access_token
        if not token:
            raise RegistryError(f"no token in response from {realm}")

        return token

    def list_tags(self, session, base_url: str, ref: ImageName, auth, deadline) -> list[str]:
        url = f"{base_url.rstrip('/')}/v2/{ref.path}/tags/list"
        tags = []

        while url:
            try:
                response = session.get(
                    url, auth=auth, stream=True, timeout=self._remaining(deadline)
                )
            except requests.RequestException as err:
                raise RegistryError(f"unable to list tags at {url}: {err}")

            with response:
                if response.status_code != 200:
                    raise RegistryError(
                        f"listing tags for {ref} failed with status {response.status_code}"
                    )

                content = self._read(response, deadline)

            try:
                body = TagList.model_validate_json(content)
            except ValueError as err:
                raise RegistryError(f"invalid tag list from {url}: {err}")

            tags.extend(body.tags)
            url = self._next_page(url, response)

        return tags

    def _read(self, response, deadline) -> bytes:
        """Read a streamed response body, giving up once the deadline passes
        even if the registry keeps sending data."""
        chunks = []
        try:
            for chunk in response.iter_content(chunk_size=READ_CHUNK_SIZE):
                self._remaining(deadline)
                chunks.append(chunk)
        except requests.RequestException as err:
            raise RegistryError(f"unable to read response from {response.url}: {err}")

        return b"".join(chunks)

    def _next_page(self, url, response):
        link = response.headers.get("Link")
        if not link:
            return None

        for entry in requests.utils.parse_header_links(link):
            if entry.get("rel") == "next" and entry.get("url"):
                return urljoin(url, entry["url"])

        return None

    def _remaining(self, deadline) -> float:
        remaining = deadline - self.clock()
        if remaining <= 0:
            raise RegistryError("timed out talking to registry")
        return remaining
