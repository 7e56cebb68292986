from fastapi import APIRouter, File, HTTPException, Request, UploadFile

from controllers.image_controller import intake_upload

router = APIRouter(prefix="/api", tags=["images"])


@router.post("/images", summary="Validate an uploaded image and encode it as a data URI")
async def upload_image(request: Request, image: UploadFile = File(...)):
	"""Return the MIME type, size, and data URI for a valid uploaded image."""
	try:
		return await intake_upload(request, image)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
