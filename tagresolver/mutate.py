import functools
import logging
import pydantic

from flask import Flask, request, jsonify, current_app
from werkzeug.exceptions import BadRequest, UnsupportedMediaType

from .models import (
    BaseModel,
    AdmissionReview,
    AdmissionResponse,
    AdmissionReviewStatus,
    Patch,
)

from .exc import ApplicationError, WorkloadDecodeError
from .patches import PatchResolver
from .providers import KubernetesProvider
from .registry import RegistryClient, LIST_TIMEOUT, PING_TIMEOUT, USER_AGENT
from .versions import SemVersionResolver

LOG = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


class DEFAULTS:
    PROVIDER = KubernetesProvider
    REGISTRY_CLIENT = RegistryClient
    VERSION_RESOLVER = SemVersionResolver
    PING_TIMEOUT = PING_TIMEOUT
    LIST_TIMEOUT = LIST_TIMEOUT
    USER_AGENT = USER_AGENT


def jsonresponse():
    """Transforms the response from a view function into a JSON object."""

    def _outer(func):
        @functools.wraps(func)
        def _inner(*args, **kwargs):
            res = func(*args, **kwargs)
            if isinstance(res, BaseModel):
                return jsonify(res.model_dump(mode="json", exclude_none=True))
            else:
                return jsonify(res)

        return _inner

    return _outer


@jsonresponse()
def mutate_workload():
    body = AdmissionReview.model_validate(request.get_json())
    if body.request is None:
        raise BadRequest("admission review carries no request")

    try:
        patches = current_app.patch_resolver.get_patches(
            body.request.kind.kind,
            body.request.object,
            body.request.namespace or "",
        )
    except WorkloadDecodeError as err:
        LOG.error("rejecting %s %s: %s", body.request.kind.kind, body.request.uid, err)
        return AdmissionReview(
            apiVersion=body.apiVersion,
            response=AdmissionResponse(
                uid=body.request.uid,
                allowed=False,
                status=AdmissionReviewStatus(message=str(err)),
            ),
        )

    # Nothing to rewrite
    if not patches:
        return AdmissionReview(
            apiVersion=body.apiVersion,
            response=AdmissionResponse(
                allowed=True,
                uid=body.request.uid,
            ),
        )

    return AdmissionReview(
        apiVersion=body.apiVersion,
        response=AdmissionResponse(
            uid=body.request.uid,
            allowed=True,
            patchType="JSONPatch",
            patch=Patch(patches),
        ),
    )


def handle_validationerror(err):
    return str(err), 400, {"content-type": "text/plain"}


def handle_httperror(err):
    return err.description, err.code, {"content-type": "text/plain"}


def handle_applicationerror(err):
    return str(err), 500, {"content-type": "text/plain"}


def health():
    return "OK", 200, {"content-type": "text/plain"}


def create_app(**config) -> Flask:
    """Use an application factory [1] to create the Flask app.

    Settings come from DEFAULTS, then from TAGRESOLVER_* environment variables,
    then from keyword arguments.

    [1]: https://flask.palletsprojects.com/en/3.0.x/patterns/appfactories/
    """

    app = Flask(__name__)
    app.config.from_object(DEFAULTS)
    app.config.from_prefixed_env("TAGRESOLVER")
    if config:
        app.config.update(config)

    registry = app.config["REGISTRY_CLIENT"](
        ping_timeout=float(app.config["PING_TIMEOUT"]),
        list_timeout=float(app.config["LIST_TIMEOUT"]),
        user_agent=app.config["USER_AGENT"],
    )
    app.patch_resolver = PatchResolver(
        provider=app.config["PROVIDER"](),
        resolver=app.config["VERSION_RESOLVER"](),
        registry=registry,
        log=LOG,
    )

    app.errorhandler(pydantic.ValidationError)(handle_validationerror)
    app.errorhandler(ApplicationError)(handle_applicationerror)
    app.errorhandler(BadRequest)(handle_httperror)
    app.errorhandler(UnsupportedMediaType)(handle_httperror)
    app.add_url_rule("/healthz", view_func=health)
    app.add_url_rule("/", view_func=mutate_workload, methods=["POST"])
    app.add_url_rule(
        "/mutate", endpoint="mutate", view_func=mutate_workload, methods=["POST"]
    )

    return app
