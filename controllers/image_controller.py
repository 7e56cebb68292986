from fastapi import HTTPException, Request, UploadFile
from typing import Any, Dict

from controllers.analysis_controller import invalid_image
from utils.media_validation import InvalidImageError, validate_upload


async def intake_upload(request: Request, file: UploadFile) -> Dict[str, Any]:
    """Validate an uploaded image and return it as a data URI.

    Args:
        request: FastAPI Request object (used to read the configured size ceiling).
        file: Uploaded image file or captured camera frame.

    Returns:
        A dict containing: mimeType, size, dataUri.

    Raises:
        HTTPException(400) if the file is empty, too large, or not an allowed image.
    """
    try:
        raw = await file.read()
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise HTTPException(status_code=400, detail="Unable to read uploaded image.") from exc

    try:
        image = validate_upload(raw, file.content_type, max_bytes=request.app.state.config.max_image_bytes)
    except InvalidImageError as exc:
        raise invalid_image(exc) from exc

    return {"mimeType": image.mime_type, "size": image.size, "dataUri": image.data_uri}
