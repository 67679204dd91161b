from __future__ import annotations

import os
import uuid
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from supabase import Client

MAX_WIDTH = 1200
MAX_HEIGHT = 1200
JPEG_QUALITY = 80

_SAVE_FORMATS = {"JPEG", "PNG", "WEBP"}


@dataclass
class StorageResult:
    path: str
    url: str
    width: int
    height: int
    content_type: str
    size: int


@dataclass
class CompressedImage:
    data: bytes
    width: int
    height: int
    format: str

    @property
    def content_type(self) -> str:
        return Image.MIME[self.format]

    @property
    def ext(self) -> str:
        return "jpg" if self.format == "JPEG" else self.format.lower()


def compress_image(
    data: bytes,
    max_width: int = MAX_WIDTH,
    max_height: int = MAX_HEIGHT,
    quality: int = JPEG_QUALITY,
) -> CompressedImage:
    """Shrink an uploaded image to fit the bounding box, keeping its aspect ratio.

    Landscape images are bounded by ``max_width``, portrait and square ones
    by ``max_height``. Smaller images are only re-encoded.

    Raises:
        ValueError: If the bytes are not a readable image or exceed Pillow's pixel limit.
    """
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise ValueError(f"Invalid image file: {exc}") from exc

    fmt = (img.format or "JPEG").upper()
    if fmt not in _SAVE_FORMATS:
        fmt = "JPEG"

    width, height = img.size
    if width > height:
        if width > max_width:
            height = max(1, round(height * max_width / width))
            width = max_width
    elif height > max_height:
        width = max(1, round(width * max_height / height))
        height = max_height
    if (width, height) != img.size:
        img = img.resize((width, height), Image.Resampling.LANCZOS)

    if fmt == "JPEG" and img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    buf = BytesIO()
    img.save(buf, format=fmt, quality=quality)
    return CompressedImage(data=buf.getvalue(), width=width, height=height, format=fmt)


class SupabaseStorage:
    """Storage adapter for Supabase Storage with a local fake fallback."""

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.bucket = os.getenv("SUPABASE_STORAGE_BUCKET", "model-images")
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.local_dir = Path(os.getenv("SUPABASE_STORAGE_LOCAL_DIR", ".local_storage"))

    @property
    def is_local(self) -> bool:
        return self.disabled or self.client is None

    def upload_image(self, user_id: str, data: bytes) -> StorageResult:
        """Compress and store an image under ``<user_id>/<uuid>.<ext>``."""
        image = compress_image(data)
        storage_path = f"{user_id}/{uuid.uuid4()}.{image.ext}"
        if self.is_local:
            full_path = self.local_dir / storage_path
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(image.data)
        else:
            try:  # pragma: no cover - network
                self.client.storage.from_(self.bucket).upload(
                    path=storage_path,
                    file=image.data,
                    file_options={"content-type": image.content_type},
                )
            except Exception as exc:  # pragma: no cover - network
                raise RuntimeError(f"Storage upload failed: {exc}") from exc
        return StorageResult(
            path=storage_path,
            url=self.get_public_url(storage_path),
            width=image.width,
            height=image.height,
            content_type=image.content_type,
            size=len(image.data),
        )

    def get_public_url(self, storage_path: str) -> str:
        if self.is_local:
            return f"/local-storage/{storage_path}"
        return self.client.storage.from_(self.bucket).get_public_url(storage_path)  # pragma: no cover - network

    def delete(self, path: str) -> None:
        if self.is_local:
            full_path = self.local_dir / path
            if full_path.exists():
                full_path.unlink()
            return
        try:  # pragma: no cover - network
            self.client.storage.from_(self.bucket).remove([path])
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"Storage delete failed: {exc}") from exc
