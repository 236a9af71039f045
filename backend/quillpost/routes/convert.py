"""
Quillpost Backend — Content Conversion Route
=============================================

What:  POST /api/convert — converts editor content between html, json
       (structured document tree) and markdown.
How:   Delegates to format_converter.convert(); word count and reading time
       are computed on the HTML form of the source.
Who:   Import/export actions of the editor.

Conversion is CPU-bound, so the handler is a plain `def` and FastAPI runs it
in its threadpool instead of on the event loop.
"""

import logging

from fastapi import APIRouter

from quillpost.schemas.draft import ConvertRequest, ConvertResponse, ErrorResponse
from quillpost.services import format_converter
from quillpost.services.format_converter import ContentFormat

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Convert"])


@router.post(
    "/convert",
    response_model=ConvertResponse,
    responses={400: {"description": "Unknown format or malformed content", "model": ErrorResponse}},
    summary="Convert content between html, json and markdown",
)
def convert_content(body: ConvertRequest) -> ConvertResponse:
    source = ContentFormat.parse(body.from_format)
    target = ContentFormat.parse(body.to_format)

    converted = format_converter.convert(body.content, source, target)
    if source is ContentFormat.HTML:
        html = body.content if isinstance(body.content, str) else ""
    else:
        html = format_converter.convert(body.content, source, ContentFormat.HTML)

    logger.debug("Converted %s → %s", source.value, target.value)
    return ConvertResponse(
        content=converted,
        format=target,
        word_count=format_converter.word_count(html),
        reading_time=format_converter.reading_time(html),
    )
