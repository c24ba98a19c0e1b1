import logging
from enum import StrEnum
from typing import Any

import pydantic

from .exc import WorkloadDecodeError
from .models import CronJob, Pod, PodSpec, TemplateWorkload

LOG = logging.getLogger(__name__)

POD_SPEC_PATH = "/spec"
TEMPLATE_SPEC_PATH = "/spec/template/spec"
CRONJOB_SPEC_PATH = "/spec/jobTemplate/spec/template/spec"


class WorkloadKind(StrEnum):
    POD = "Pod"
    REPLICATION_CONTROLLER = "ReplicationController"
    JOB = "Job"
    REPLICA_SET = "ReplicaSet"
    DEPLOYMENT = "Deployment"
    STATEFUL_SET = "StatefulSet"
    DAEMON_SET = "DaemonSet"
    CRON_JOB = "CronJob"
    UNRECOGNIZED = ""

    @classmethod
    def _missing_(cls, value):
        return cls.UNRECOGNIZED

    @property
    def model(self) -> type[pydantic.BaseModel] | None:
        return _SHAPES[self][0]

    @property
    def spec_path(self) -> str:
        return _SHAPES[self][1]


_SHAPES = {
    WorkloadKind.POD: (Pod, POD_SPEC_PATH),
    WorkloadKind.REPLICATION_CONTROLLER: (TemplateWorkload, TEMPLATE_SPEC_PATH),
    WorkloadKind.JOB: (TemplateWorkload, TEMPLATE_SPEC_PATH),
    WorkloadKind.REPLICA_SET: (TemplateWorkload, TEMPLATE_SPEC_PATH),
    WorkloadKind.DEPLOYMENT: (TemplateWorkload, TEMPLATE_SPEC_PATH),
    WorkloadKind.STATEFUL_SET: (TemplateWorkload, TEMPLATE_SPEC_PATH),
    WorkloadKind.DAEMON_SET: (TemplateWorkload, TEMPLATE_SPEC_PATH),
    WorkloadKind.CRON_JOB: (CronJob, CRONJOB_SPEC_PATH),
    WorkloadKind.UNRECOGNIZED: (None, ""),
}


def extract(
    kind: str, raw_object: dict[str, Any] | None
) -> tuple[PodSpec | None, str, str]:
    """Locate the pod spec inside an admission object.

    Returns the pod spec, the JSON Patch path of that spec and the object's
    namespace. Kinds that carry no pod spec give (None, "", "").
    """
    workload_kind = WorkloadKind(kind)
    if workload_kind is WorkloadKind.UNRECOGNIZED:
        LOG.debug("nothing to resolve for kind %r", kind)
        return None, "", ""

    if raw_object is None:
        raise WorkloadDecodeError(f"{kind} request carries no object")

    try:
        workload = workload_kind.model.model_validate(raw_object)
    except pydantic.ValidationError as err:
        raise WorkloadDecodeError(f"unable to decode {kind}: {err}")

    return workload.pod_spec, workload_kind.spec_path, workload.metadata.namespace
