import os
import time
import uuid

from fastapi import HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from loguru import logger

MEDIA_DIR = os.environ.get("MEDIA_DIR", "media")
MEDIA_URL = "/media"

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".gif"}
MAX_UPLOAD_BYTES = int(os.environ.get("MAX_UPLOAD_BYTES", 5 * 1024 * 1024))
FOLDERS = ("movies", "concerts", "football")


def poster_name(folder: str, filename: str) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(400, detail=f"unsupported image type {ext!r}")
    if folder not in FOLDERS:
        raise HTTPException(400, detail="invalid upload folder")
    # millis + short random suffix: unique without a DB round-trip
    return f"{folder}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}{ext}"


def _write_file(path: str, data: bytes) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(data)


async def save_poster(upload: UploadFile, folder: str,
                      media_dir: str = MEDIA_DIR) -> str:
    """Store an uploaded poster and return its public URL."""
    name = poster_name(folder, upload.filename)
    data = await upload.read()
    if not data:
        raise HTTPException(400, detail="empty upload")
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(413, detail="poster too large")

    path = os.path.join(media_dir, name)
    await run_in_threadpool(_write_file, path, data)
    logger.info(f"stored poster {name} ({len(data)} bytes)")
    return f"{MEDIA_URL}/{name}"
