"""
Temporary storage for uploaded music files.

Each upload gets a random name inside the configured directory; the request
that saved it is responsible for discarding it exactly once.
"""

import logging
import shutil
import uuid
from pathlib import Path
from typing import BinaryIO, Optional

logger = logging.getLogger(__name__)


class UploadStore:
    """Upload directory manager."""

    def __init__(self, upload_dir: Path):
        self.upload_dir = Path(upload_dir)

    def save(self, source: BinaryIO, filename: Optional[str] = None) -> Path:
        """
        Copy an uploaded file object into the store.

        Args:
            source: Readable binary file object (rewound before copying)
            filename: Client-side filename, only used for its suffix

        Returns:
            Path of the stored file
        """
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        suffix = Path(filename).suffix[:16] if filename else ""
        dest = self.upload_dir / f"{uuid.uuid4().hex}{suffix}"

        source.seek(0)
        with open(dest, "wb") as f:
            shutil.copyfileobj(source, f)

        logger.debug(f"Stored upload {filename!r} at {dest} ({dest.stat().st_size} bytes)")
        return dest

    def discard(self, path: Optional[Path]) -> None:
        """Remove a stored upload. Missing files are ignored."""
        if path is None:
            return
        try:
            Path(path).unlink()
            logger.debug(f"Cleaned up upload: {path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to clean up upload {path}: {e}")
