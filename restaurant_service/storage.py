import logging
import os
import shutil
import uuid
from typing import Iterable

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from shared.config import STATIC_DIR

logger = logging.getLogger(__name__)

AVATAR_FOLDER = "restaurant-avatars"
BACKGROUND_FOLDER = "restaurant-backgrounds"
CERTIFICATE_FOLDER = "restaurant-certificates"
FOOD_FOLDER = "foods"


class LocalStorage:
    """Lưu file upload vào thư mục static, được mount tại `base_url`."""

    def __init__(self, root: str = STATIC_DIR, base_url: str = "/static"):
        self.root = root
        self.base_url = base_url.rstrip("/")

    async def upload(self, file: UploadFile, folder: str) -> str:
        ext = file.filename.rsplit(".", 1)[-1] if file.filename and "." in file.filename else "bin"
        fname = f"{uuid.uuid4()}.{ext}"
        # Ghi đĩa chạy trong threadpool để không chặn event loop
        await run_in_threadpool(_write_file, file.file, os.path.join(self.root, folder), fname)
        return f"{self.base_url}/{folder}/{fname}"

    async def delete(self, url: str) -> None:
        prefix = f"{self.base_url}/"
        if not url.startswith(prefix):
            raise ValueError(f"URL {url} does not belong to this storage")

        relative = url[len(prefix):]
        path = os.path.normpath(os.path.join(self.root, relative))
        if not path.startswith(os.path.normpath(self.root) + os.sep):
            raise ValueError(f"URL {url} escapes the storage root")
        await run_in_threadpool(os.remove, path)


def _write_file(src, directory: str, fname: str) -> None:
    os.makedirs(directory, exist_ok=True)
    with open(os.path.join(directory, fname), "wb") as buffer:
        shutil.copyfileobj(src, buffer)


async def cleanup_files(storage, urls: Iterable[str]) -> None:
    """Xóa các file cũ sau khi cập nhật thành công. Chạy nền: lỗi chỉ ghi log."""
    for url in urls:
        try:
            await storage.delete(url)
            logger.info("Deleted old file %s", url)
        except Exception as e:
            logger.warning("⚠️ Failed to delete old file %s: %s", url, e)
