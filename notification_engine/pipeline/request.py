"""Request Handler: validate an invocation body and run the pipeline."""

from typing import Any, Dict

from pydantic import ValidationError

from ..logging import get_logger
from .models import RunRequest
from .runner import DispatchPipeline

logger = get_logger(__name__, component="request")


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "body"
        parts.append(f"{location}: {item['msg']}")
    return "Invalid request: " + "; ".join(parts)


def handle_request(body: Any, pipeline: DispatchPipeline) -> Dict[str, Any]:
    """
    Parse an invocation body and run one dispatch.

    A missing body is an empty request. Malformed input is reported in the
    response rather than raised.

    Returns:
        JSON-serialisable summary; ``success`` is False when the body was
        rejected or the run could not fetch its candidates
    """
    if body is None:
        body = {}
    if not isinstance(body, dict):
        logger.warning(
            "Rejected request body",
            extra={"event": "request.rejected", "body_type": type(body).__name__},
        )
        return {"success": False, "error": "Request body must be a JSON object"}

    try:
        request = RunRequest.model_validate(body)
    except ValidationError as e:
        message = _describe_validation_error(e)
        logger.warning(message, extra={"event": "request.rejected"})
        return {"success": False, "error": message}

    return pipeline.run(request).to_dict()
