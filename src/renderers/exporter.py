"""
Changelog Export Module.

Negotiates the export format of a generated changelog: validates the requested
format and returns the body with its MIME type, extension and download name.
"""

from enum import Enum
from typing import Dict, Tuple, Union

from pydantic import BaseModel, ConfigDict

from config import logger
from analyzers.models import ChangelogDocument
from errors import InvalidFormatError


class ExportFormat(str, Enum):
    """Closed set of export formats."""

    MARKDOWN = "markdown"
    JSON = "json"
    HTML = "html"
    TEXT = "text"


# format -> (mime type, file extension)
FORMAT_TABLE: Dict[ExportFormat, Tuple[str, str]] = {
    ExportFormat.MARKDOWN: ("text/markdown", "md"),
    ExportFormat.JSON: ("application/json", "json"),
    ExportFormat.HTML: ("text/html", "html"),
    ExportFormat.TEXT: ("text/plain", "txt"),
}

SUPPORTED_FORMATS: Tuple[str, ...] = tuple(fmt.value for fmt in ExportFormat)


class ExportResult(BaseModel):
    """A changelog body ready to be written or served."""

    model_config = ConfigDict(frozen=True)

    content: str
    mime_type: str
    extension: str
    filename: str


def parse_format(value: Union[str, ExportFormat]) -> ExportFormat:
    """
    Resolve a requested format.

    Raises:
        InvalidFormatError: If the value is outside the supported set.
    """
    try:
        return ExportFormat(value)
    except ValueError:
        logger.warning({"message": "Invalid export format requested", "format": str(value)})
        raise InvalidFormatError(str(value), SUPPORTED_FORMATS) from None


def get_mime_type(value: Union[str, ExportFormat]) -> str:
    return FORMAT_TABLE[parse_format(value)][0]


def get_file_extension(value: Union[str, ExportFormat]) -> str:
    return FORMAT_TABLE[parse_format(value)][1]


def export_changelog(
    document: ChangelogDocument, value: Union[str, ExportFormat]
) -> ExportResult:
    """
    Export a changelog in the requested format.

    Args:
        document (ChangelogDocument): Generated changelog.
        value (Union[str, ExportFormat]): One of ``markdown``, ``json``,
            ``html`` or ``text``.

    Returns:
        ExportResult: Body, MIME type, extension and suggested filename.

    Raises:
        InvalidFormatError: If the format is not supported.
    """
    fmt = parse_format(value)
    mime_type, extension = FORMAT_TABLE[fmt]

    if fmt is ExportFormat.JSON:
        content = document.json_text
    elif fmt is ExportFormat.HTML:
        content = document.html
    elif fmt is ExportFormat.TEXT:
        content = document.text
    else:
        content = document.markdown

    slug = document.metadata.repository.replace("/", "-")
    timestamp = document.metadata.generated_at.strftime("%Y%m%d%H%M%S")
    filename = f"changelog-{slug}-{timestamp}.{extension}"

    logger.info(
        {
            "message": "Changelog exported",
            "format": fmt.value,
            "size": len(content),
            "filename": filename,
        }
    )
    return ExportResult(
        content=content, mime_type=mime_type, extension=extension, filename=filename
    )
