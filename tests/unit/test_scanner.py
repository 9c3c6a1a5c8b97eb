"""Unit tests for the file scanner."""

import pytest

from mediasort.core.scanner import FileScanner


@pytest.fixture
def library(tmp_path):
    """Small media library on disk."""
    files = [
        "movies/The House on Haunted Hill.mp4",
        "movies/Jungle Book 1942/Jungle Book.avi",
        "movies/Jungle Book 1942/Subs/en.sub",
        "movies/Jungle Book 1942/Jungle Book-sample.avi",
        "movies/Sample/trailer.mkv",
        "tv/The Lucy Show/1x1-lucy-waits-up-for-chris.MP4",
        "tv/notes.txt",
    ]
    for name in files:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch()
    return tmp_path


class TestFileScanner:
    """Test FileScanner class."""

    def test_scan_directory(self, library):
        """Test videos are found recursively, skipping samples."""
        files = FileScanner().scan(library)

        assert [f.relative_to(library).as_posix() for f in files] == [
            "movies/Jungle Book 1942/Jungle Book.avi",
            "movies/The House on Haunted Hill.mp4",
            "tv/The Lucy Show/1x1-lucy-waits-up-for-chris.MP4",
        ]

    def test_scan_single_file(self, library):
        """Test a single video file is returned as is."""
        path = library / "movies" / "The House on Haunted Hill.mp4"

        assert FileScanner().scan(path) == [path]

    def test_scan_non_video_file(self, library):
        """Test a non-video file yields nothing."""
        assert FileScanner().scan(library / "tv" / "notes.txt") == []

    def test_scan_missing(self, tmp_path):
        """Test a missing path raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            FileScanner().scan(tmp_path / "missing")

    def test_candidates(self, library):
        """Test candidates carry path attributes."""
        candidates = FileScanner().candidates(library / "movies" / "Jungle Book 1942")

        assert len(candidates) == 1
        candidate = candidates[0]
        assert candidate.name == "Jungle Book"
        assert candidate.ext == "avi"
        assert candidate.kind == "video"
        assert candidate.dir == (library / "movies" / "Jungle Book 1942").as_posix()
        assert candidate.full.endswith("/Jungle Book 1942/Jungle Book.avi")
