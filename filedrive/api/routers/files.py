"""
File upload API router.

Stores multipart uploads on a configured disk.
"""

from fastapi import APIRouter, File, Form, UploadFile, status

from filedrive.api.dependencies import AppSettings, Drive
from filedrive.api.uploads import MB, discard_upload, stage_upload
from filedrive.core.logging import disk_context, get_logger
from filedrive.models.files import MovedFile

logger = get_logger(__name__)

router = APIRouter(prefix="/v1", tags=["Files"])


@router.post(
    "/disks/{disk}/files",
    response_model=MovedFile,
    status_code=status.HTTP_201_CREATED,
    summary="Upload file",
    description="Store a multipart upload on a disk under a generated name.",
)
async def upload_file(
    disk: str,
    drive: Drive,
    settings: AppSettings,
    file: UploadFile = File(..., description="File to store"),
    folder: str | None = Form(None, description="Destination folder on the disk"),
) -> MovedFile:
    """
    Upload a file to a disk.

    The stored name is generated and keeps the client file extension.
    """
    driver = drive.use(disk)

    with disk_context(disk, client_name=file.filename):
        staged = await stage_upload(
            file,
            settings.drive_upload_tmp_dir,
            max_size=settings.drive_max_upload_size_mb * MB,
        )
        try:
            moved = await driver.put_file(staged, folder or None)
        finally:
            if staged.state != "moved":
                await discard_upload(staged.tmp_path)

        logger.info("file_uploaded", file_name=moved.file_name, size=staged.size)
    return moved
