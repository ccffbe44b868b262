"""Shared test fixtures: temporary storage, in-memory database, API client."""

import os
import sys
import tempfile

import pytest

# Point storage at a scratch dir before config/database are imported
os.environ.setdefault("VIDEOSET_STORAGE_DIR", tempfile.mkdtemp(prefix="videoset_test_"))

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from config import get_settings  # noqa: E402
from database import get_db, init_db  # noqa: E402
from models import Dataset, Video  # noqa: E402


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Settings with storage_dir redirected to a per-test directory."""
    s = get_settings()
    monkeypatch.setattr(s, "storage_dir", tmp_path)
    return s


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def client(db_session, settings):
    from fastapi.testclient import TestClient

    from main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_dataset(db_session):
    def _make(name="clips"):
        dataset = Dataset(name=name)
        db_session.add(dataset)
        db_session.commit()
        db_session.refresh(dataset)
        return dataset

    return _make


@pytest.fixture
def make_video(db_session, settings):
    """Create a Video row; with_file=True also writes a placeholder raw file."""

    def _make(dataset, filename="clip.mp4", with_file=True, **overrides):
        rel_path = f"{settings.uploads_subdir}/{dataset.id}/{filename}"
        if with_file:
            path = settings.resolve(rel_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"not really a video")

        fields = dict(
            dataset_id=dataset.id,
            filename=filename,
            filepath=rel_path,
            duration=10.0,
            original_width=1920,
            original_height=1080,
            crop_width=1920,
            crop_height=1080,
        )
        fields.update(overrides)
        video = Video(**fields)
        db_session.add(video)
        db_session.commit()
        db_session.refresh(video)
        return video

    return _make


@pytest.fixture
def synthetic_video(tmp_path):
    """Ten 160x120 frames written as MJPG/AVI with OpenCV; left half bright."""
    import cv2
    import numpy as np

    path = tmp_path / "synthetic.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (160, 120))
    for i in range(10):
        frame = np.zeros((120, 160, 3), dtype=np.uint8)
        frame[:, :80] = (200, 200, 200)
        writer.write(frame)
    writer.release()
    return path


@pytest.fixture
def fake_tool(tmp_path):
    """Write an executable sh script to stand in for ffmpeg/ffprobe."""
    if sys.platform == "win32":
        pytest.skip("needs a POSIX shell")

    def _make(name, body):
        path = tmp_path / name
        path.write_text("#!/bin/sh\n" + body + "\n")
        path.chmod(0o755)
        return str(path)

    return _make
