import base64
from typing import Any, Literal
from pydantic import (
    BaseModel,
    Field,
    RootModel,
    model_validator,
    field_validator,
)
from enum import StrEnum


class ApiVersion(StrEnum):
    V1 = "admission.k8s.io/v1"
    V1BETA1 = "admission.k8s.io/v1beta1"


class PatchType(StrEnum):
    JSONPatch = "JSONPatch"


class PatchOp(StrEnum):
    REPLACE = "replace"


class PatchAction(BaseModel):
    op: PatchOp
    path: str
    value: Any


# https://jsonpatch.com/
Patch = RootModel[list[PatchAction]]


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.30/#status-v1-meta
class AdmissionReviewStatus(BaseModel):
    message: str


# https://kubernetes.io/docs/reference/config-api/apiserver-admission.v1/#admission-k8s-io-v1-AdmissionResponse
class AdmissionResponse(BaseModel):
    allowed: bool
    status: AdmissionReviewStatus | None = None
    uid: str
    patchType: PatchType | None = None
    patch: str | None = None

    @field_validator("patch", mode="before")
    @classmethod
    def validate_patch(cls, val):
        if isinstance(val, Patch):
            val = base64.b64encode(val.model_dump_json().encode())
        elif isinstance(val, (str, bytes)):
            # Make sure the base64 string contains valid data.
            Patch.model_validate_json(base64.b64decode(val))
        if isinstance(val, bytes):
            val = val.decode()
        return val

    @model_validator(mode="after")
    def validate_model(self):
        if self.patch and not self.patchType:
            raise ValueError("missing patchType field")
        if self.patchType and not self.patch:
            raise ValueError(f"patchType is {self.patchType} but there is no patch")

        return self


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.30/#groupversionkind-v1-meta
class GroupVersionKind(BaseModel):
    group: str = ""
    version: str = ""
    kind: str


# https://kubernetes.io/docs/reference/config-api/apiserver-admission.v1/#admission-k8s-io-v1-AdmissionRequest
class AdmissionRequest(BaseModel):
    uid: str
    kind: GroupVersionKind
    name: str | None = None
    namespace: str | None = None
    object: dict[str, Any] | None = None


# https://kubernetes.io/docs/reference/config-api/apiserver-admission.v1/#admission-k8s-io-v1-AdmissionReview
class AdmissionReview(BaseModel):
    apiVersion: ApiVersion = ApiVersion.V1
    kind: Literal["AdmissionReview"] = "AdmissionReview"
    request: AdmissionRequest | None = None
    response: AdmissionResponse | None = None

    @model_validator(mode="after")
    def validate_model(self):
        if not (self.request or self.response):
            raise ValueError("must contain a request or a response")

        return self


class Metadata(BaseModel):
    name: str | None = None
    namespace: str = ""


class Container(BaseModel):
    name: str | None = None
    image: str = ""


class LocalObjectReference(BaseModel):
    name: str = ""


class PodSpec(BaseModel):
    initContainers: list[Container] = []
    containers: list[Container] = []
    imagePullSecrets: list[LocalObjectReference] = []

    @field_validator("initContainers", "containers", "imagePullSecrets", mode="before")
    @classmethod
    def validate_lists(cls, val):
        # Optional lists may be sent as null.
        return [] if val is None else val


class PodTemplateSpec(BaseModel):
    metadata: Metadata = Field(default_factory=Metadata)
    spec: PodSpec = Field(default_factory=PodSpec)


class Pod(BaseModel):
    metadata: Metadata = Field(default_factory=Metadata)
    spec: PodSpec = Field(default_factory=PodSpec)

    @property
    def pod_spec(self) -> PodSpec:
        return self.spec


class TemplateSpec(BaseModel):
    template: PodTemplateSpec = Field(default_factory=PodTemplateSpec)


# Deployment, StatefulSet, DaemonSet, ReplicaSet, ReplicationController and Job
# all carry their pod under spec.template.
class TemplateWorkload(BaseModel):
    metadata: Metadata = Field(default_factory=Metadata)
    spec: TemplateSpec = Field(default_factory=TemplateSpec)

    @property
    def pod_spec(self) -> PodSpec:
        return self.spec.template.spec


class JobTemplateSpec(BaseModel):
    spec: TemplateSpec = Field(default_factory=TemplateSpec)


class CronJobSpec(BaseModel):
    jobTemplate: JobTemplateSpec = Field(default_factory=JobTemplateSpec)


class CronJob(BaseModel):
    metadata: Metadata = Field(default_factory=Metadata)
    spec: CronJobSpec = Field(default_factory=CronJobSpec)

    @property
    def pod_spec(self) -> PodSpec:
        return self.spec.jobTemplate.spec.template.spec


class Credential(BaseModel):
    username: str = ""
    password: str = ""

    @property
    def anonymous(self) -> bool:
        return not (self.username or self.password)


# An entry of a docker config file. Only "auth" is used to build credentials.
class RegistryAuth(BaseModel):
    auth: str = ""
    username: str | None = None
    password: str | None = None
    email: str | None = None


# Legacy ~/.dockercfg format, stored under the ".dockercfg" secret key.
RegistryConfig = RootModel[dict[str, RegistryAuth]]


# ~/.docker/config.json format, stored under the ".dockerconfigjson" secret key.
class RegistryConfigs(BaseModel):
    auths: dict[str, RegistryAuth] = {}


# https://distribution.github.io/distribution/spec/auth/token/#token-response-fields
class TokenResponse(BaseModel):
    token: str | None = None
    access_token: str | None = None


# https://distribution.github.io/distribution/spec/api/#listing-image-tags
class TagList(BaseModel):
    name: str | None = None
    tags: list[str] = []

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, val):
        if val is None:
            return []
        if isinstance(val, list):
            return [tag for tag in val if isinstance(tag, str)]
        return val
