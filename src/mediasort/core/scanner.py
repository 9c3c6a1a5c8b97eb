"""File scanner for discovering video files."""

import re
from pathlib import Path
from typing import List

from mediasort.models.candidate import Candidate
from mediasort.utils.logger import get_logger

logger = get_logger(__name__)


class FileScanner:
    """Scan paths for video files to identify."""

    VIDEO_EXTENSIONS = {
        "avi", "mpg", "mpe", "mpeg-1", "mpeg-2", "m4v", "mkv", "mov",
        "mp4", "mpeg", "ogm", "wmv", "divx", "ts",
    }
    EXCLUDE_DIRS = [re.compile(r"sample", re.I)]
    EXCLUDE_FILES = [re.compile(r"sample\.", re.I)]

    def scan(self, path: Path) -> List[Path]:
        """Scan a path for video files.

        Args:
            path: File or directory to scan, directories recursively

        Returns:
            List of video file paths, sorted by path

        Raises:
            FileNotFoundError: If path doesn't exist
            ValueError: If path is not a file or directory
        """
        if not path.exists():
            raise FileNotFoundError(f"Path not found: {path}")

        if path.is_file():
            if self._is_video(path):
                logger.debug("Single file matched", file=str(path))
                return [path]
            logger.warning("File is not a supported video", file=str(path), extension=path.suffix)
            return []

        if not path.is_dir():
            raise ValueError(f"Path is neither a file nor a directory: {path}")

        files = []
        for child in sorted(path.iterdir()):
            if child.is_dir():
                if any(reg.search(child.name) for reg in self.EXCLUDE_DIRS):
                    logger.debug("Excluded directory", directory=str(child))
                    continue
                files.extend(self.scan(child))
            elif child.is_file() and self._is_video(child):
                logger.debug("Choosing file", file=str(child))
                files.append(child)

        files = sorted(files)
        logger.debug("Directory scan complete", directory=str(path), total_files=len(files))
        return files

    def _is_video(self, path: Path) -> bool:
        # Trailing dot stands in for the extension, so "foo-sample.avi" is excluded
        if any(reg.search(path.stem + ".") for reg in self.EXCLUDE_FILES):
            return False
        return path.suffix.lstrip(".").lower() in self.VIDEO_EXTENSIONS

    def candidates(self, path: Path) -> List[Candidate]:
        """Scan a path and build a candidate for every video file found."""
        return [Candidate.from_path(p.absolute()) for p in self.scan(path)]
