from datetime import datetime, timezone
from typing import List

from fastapi import FastAPI, Request, UploadFile, File, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from loguru import logger
from sqlalchemy.orm import Session

from config import configure_logging, get_settings
from database import get_db, init_db
from errors import NotFoundError, PreviewError, ValidationError
from preview import render_crop_preview
from process_dataset import process_dataset
from progress import project_progress
from schemas import (
    DatasetCreate,
    DatasetDetail,
    DatasetOut,
    MessageOut,
    ProcessingConfig,
    ProcessingResultOut,
    ProgressOut,
    VideoOut,
    VideoPatch,
)
import video_records

# ---------- DB + FastAPI setup ----------

configure_logging()
settings = get_settings()

settings.uploads_dir.mkdir(parents=True, exist_ok=True)
settings.output_dir.mkdir(parents=True, exist_ok=True)
init_db()

app = FastAPI(title="videoset")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)

app.mount(
    f"/{settings.uploads_subdir}",
    StaticFiles(directory=settings.uploads_dir),
    name="uploads",
)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


# ---------- Routes ----------

@app.get("/api/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/api/datasets", response_model=List[DatasetOut])
def list_datasets(db: Session = Depends(get_db)):
    return video_records.list_datasets(db)


@app.post("/api/datasets", response_model=DatasetDetail)
def create_dataset(payload: DatasetCreate, db: Session = Depends(get_db)):
    dataset = video_records.create_dataset(db, payload.name)
    return DatasetDetail(id=dataset.id, name=dataset.name, created_at=dataset.created_at)


@app.get("/api/datasets/{dataset_id}", response_model=DatasetDetail)
def get_dataset(dataset_id: int, db: Session = Depends(get_db)):
    """
    Dataset with all of its videos and their configured/processed counts.
    Clients poll this while a batch runs.
    """
    dataset = video_records.get_dataset(db, dataset_id)
    videos = video_records.list_videos(db, dataset_id)
    return DatasetDetail(
        id=dataset.id,
        name=dataset.name,
        created_at=dataset.created_at,
        **video_records.dataset_stats(videos),
        videos=[VideoOut.model_validate(v) for v in videos],
    )


@app.delete("/api/datasets/{dataset_id}", response_model=MessageOut)
def delete_dataset(dataset_id: int, db: Session = Depends(get_db)):
    video_records.delete_dataset(db, dataset_id)
    return MessageOut(message="Dataset deleted successfully")


@app.post("/api/datasets/{dataset_id}/videos", response_model=List[VideoOut])
def upload_videos(
    dataset_id: int,
    files: List[UploadFile] = File(default=[]),
    db: Session = Depends(get_db),
):
    """
    Save uploaded videos under uploads/<dataset_id>/ and probe their metadata.
    Runs in the threadpool since ffprobe blocks.
    """
    uploads = []
    for upload in files:
        content = upload.file.read()
        uploads.append((upload.filename or "video.mp4", content))
    return video_records.upload_videos(db, dataset_id, uploads)


@app.post("/api/datasets/{dataset_id}/process", response_model=ProcessingResultOut)
def process(dataset_id: int, payload: ProcessingConfig, db: Session = Depends(get_db)):
    """
    Convert every video in the dataset with ffmpeg. Blocks until all videos
    have been attempted; per-video failures show up as status 'error'.
    """
    return process_dataset(db, dataset_id, payload)


@app.get("/api/datasets/{dataset_id}/progress", response_model=List[ProgressOut])
def progress(dataset_id: int, db: Session = Depends(get_db)):
    videos = video_records.list_videos(db, dataset_id)
    return project_progress(videos)


@app.get("/api/videos/{video_id}", response_model=VideoOut)
def get_video(video_id: int, db: Session = Depends(get_db)):
    return video_records.get_video(db, video_id)


@app.patch("/api/videos/{video_id}", response_model=VideoOut)
def update_video(video_id: int, payload: VideoPatch, db: Session = Depends(get_db)):
    return video_records.update_video(db, video_id, payload)


@app.delete("/api/videos/{video_id}", response_model=MessageOut)
def delete_video(video_id: int, db: Session = Depends(get_db)):
    video_records.delete_video(db, video_id)
    return MessageOut(message="Video deleted successfully")


@app.get("/api/videos/{video_id}/preview")
def video_preview(video_id: int, db: Session = Depends(get_db)):
    """
    Frame at the video's start time with its crop rectangle drawn on it.
    """
    video = video_records.get_video(db, video_id)
    path = settings.resolve(video.filepath)
    try:
        jpeg = render_crop_preview(
            str(path),
            video.start_time,
            (video.crop_x, video.crop_y, video.crop_width, video.crop_height),
        )
    except PreviewError as e:
        logger.warning("Preview for video {} failed: {}", video_id, e)
        return Response(status_code=404)

    return Response(content=jpeg, media_type="image/jpeg")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=3001)
