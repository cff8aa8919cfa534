"""API route for uploading a file and receiving its sanitized copy.

Endpoint
--------
POST /v1/sanitize  (multipart/form-data, field ``file``)
    Detect the file's format from its extension, stream it through a fresh
    sanitizing engine, and return the sanitized bytes.

    Returns:
        ``200 OK`` with the sanitized file, typed with the format's
        ``contentType`` (``application/octet-stream`` when unset), named
        ``<base>.sanitized<ext>``, and the headers:

        * ``X-Extension`` — the detected extension
        * ``X-Was-Malicious`` — ``true`` when any block was replaced
        * ``X-Replaced-Blocks`` — number of replaced blocks
        * ``X-Notes`` — report notes

        ``400 Bad Request`` (``application/problem+json``) when no file was
        uploaded, the format is unsupported, or the file was rejected by the
        engine; for rejections the body carries the engine's error ``code``
        and ``detail``.

        ``500 Internal Server Error`` when the format is misconfigured.  The
        configuration detail is logged, never returned.
"""

from __future__ import annotations

import io
import logging
import os

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import JSONResponse, Response

from blocksafe.core.registry import ProcessorCreationError
from blocksafe.schemas.problem import PROBLEM_MEDIA_TYPE, ProblemDetail
from blocksafe.services.sanitizer import SanitizationService, UnsupportedFormatError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/sanitize", tags=["sanitize"])


def get_sanitization_service(request: Request) -> SanitizationService:
    """Return the service built at startup and stored on ``app.state``."""
    return request.app.state.sanitizer  # type: ignore[no-any-return]


def _problem(status: int, title: str, detail: str, code: str | None = None) -> JSONResponse:
    body = ProblemDetail(title=title, status=status, detail=detail, code=code)
    return JSONResponse(
        body.model_dump(exclude_none=True),
        status_code=status,
        media_type=PROBLEM_MEDIA_TYPE,
    )


def sanitized_filename(filename: str) -> str:
    """Return ``<base>.sanitized<ext>`` for the base name of *filename*."""
    base_name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    stem, ext = os.path.splitext(base_name)
    if not ext and base_name.startswith(".") and base_name.count(".") == 1:
        stem, ext = "", base_name
    return f"{stem}.sanitized{ext}".replace('"', "")


def _header_value(value: str) -> str:
    # Header values must be latin-1 encodable.
    return value.encode("latin-1", errors="replace").decode("latin-1")


@router.post(
    "",
    response_class=Response,
    responses={
        200: {"content": {"application/octet-stream": {}}},
        400: {"model": ProblemDetail},
        500: {"model": ProblemDetail},
    },
)
async def sanitize_file(
    request: Request,
    file: UploadFile | None = File(default=None),
    service: SanitizationService = Depends(get_sanitization_service),
) -> Response:
    """Sanitize an uploaded file and return the result as an attachment."""
    if file is None or not file.filename or file.size == 0:
        return _problem(400, "No file uploaded", "The request did not contain a file.")

    output = io.BytesIO()
    try:
        outcome = await service.sanitize(file.filename, file, output)
    except UnsupportedFormatError as exc:
        return _problem(400, "Unsupported file format", str(exc))
    except ProcessorCreationError:
        return _problem(
            500,
            "Internal server error",
            "Server failed to create processor for the requested format.",
        )

    result = outcome.result
    summary: dict[str, object] = {
        "format": outcome.detected.format_id,
        "extension": outcome.detected.extension,
    }
    request.state.sanitize_summary = summary

    error = result.error
    if error is not None:
        summary["error_code"] = error.code.value
        return _problem(400, "Invalid file", error.detail, error.code.value)

    report = result.report
    summary["replaced_blocks"] = report.replaced_blocks
    out_name = sanitized_filename(file.filename)
    logger.info(
        "Returning sanitized file %s: replaced_blocks=%d",
        out_name,
        report.replaced_blocks,
    )
    return Response(
        content=output.getvalue(),
        media_type=outcome.detected.content_type,
        headers={
            "Content-Disposition": f'attachment; filename="{_header_value(out_name)}"',
            "X-Extension": outcome.detected.extension or "",
            "X-Was-Malicious": str(report.was_malicious).lower(),
            "X-Replaced-Blocks": str(report.replaced_blocks),
            "X-Notes": _header_value(report.notes),
        },
    )
