import logging
import os
import shutil
import tempfile
import threading
import uuid

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

import config
from analyzer import analyze_video, apply_client_scores
from errors import (
    AnalysisError,
    DegenerateMeasurementError,
    NoDataError,
    UnsupportedModelError,
    VideoReadError,
    error_payload,
)
from models import (
    AnalysisRecord,
    AnalysisSubmission,
    CoachingFeedback,
    CoachingRequest,
    JobStatus,
    MetricComparison,
    ReclassifyRequest,
)
from reclassifier import generate_coaching, get_provider, reclassify_poses
from scoring import best_pose_scores, compare_results
from storage import AnalysisStore

logging.basicConfig(level=config.LOG_LEVEL, format="%(levelname)s | %(name)s | %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Physique Posing Analysis API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# In-memory job and analysis stores
jobs: dict[str, dict] = {}
store = AnalysisStore()

_STATUS_CODES = {
    NoDataError: 422,
    DegenerateMeasurementError: 422,
    VideoReadError: 400,
    UnsupportedModelError: 400,
}


@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError):
    status_code = _STATUS_CODES.get(type(exc), 500)
    return JSONResponse(status_code=status_code, content=error_payload(exc))


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.post("/api/analyze")
async def analyze(
    video: UploadFile = File(...),
    category: str = Form("bodybuilding"),
):
    job_id = str(uuid.uuid4())
    jobs[job_id] = {"status": "pending", "message": "Queued", "analysis_id": None}

    # Save upload to a temp file
    tmp_dir = tempfile.mkdtemp()
    video_name = os.path.basename(video.filename or "video.mp4")
    video_path = os.path.join(tmp_dir, video_name)
    with open(video_path, "wb") as f:
        f.write(await video.read())

    # Process in background thread
    thread = threading.Thread(
        target=_process_job, args=(job_id, video_path, video_name, category), daemon=True
    )
    thread.start()

    return {"job_id": job_id}


def _process_job(job_id: str, video_path: str, video_name: str, category: str):
    try:
        jobs[job_id]["status"] = "processing"
        jobs[job_id]["message"] = "Extracting poses from video..."

        result, duration = analyze_video(video_path)
        record = store.create(video_name, duration, result, category=category)

        jobs[job_id]["status"] = "complete"
        jobs[job_id]["message"] = "Done"
        jobs[job_id]["analysis_id"] = record.id
        logger.info("Job %s complete: analysis %s", job_id, record.id)
    except AnalysisError as e:
        logger.warning("Job %s failed: %s", job_id, e.message)
        jobs[job_id]["status"] = "error"
        jobs[job_id]["message"] = e.message
    except Exception as e:
        logger.exception("Job %s failed", job_id)
        jobs[job_id]["status"] = "error"
        jobs[job_id]["message"] = str(e)
    finally:
        # Clean up temp files
        shutil.rmtree(os.path.dirname(video_path), ignore_errors=True)


@app.get("/api/status/{job_id}")
def get_status(job_id: str):
    if job_id not in jobs:
        raise HTTPException(status_code=404, detail="Job not found")
    job = jobs[job_id]
    return JobStatus(
        job_id=job_id, status=job["status"], message=job["message"], analysis_id=job["analysis_id"]
    )


@app.get("/api/results/{job_id}")
def get_results(job_id: str) -> AnalysisRecord:
    if job_id not in jobs:
        raise HTTPException(status_code=404, detail="Job not found")
    job = jobs[job_id]
    if job["status"] != "complete":
        raise HTTPException(status_code=400, detail=f"Job not complete: {job['status']}: {job['message']}")
    return _get_record(job["analysis_id"])


@app.post("/api/analyses", status_code=201)
def create_analysis(submission: AnalysisSubmission) -> AnalysisRecord:
    result = apply_client_scores(submission)
    record = store.create(submission.video_name, submission.duration, result, category=submission.category)
    logger.info("Analysis stored with ID: %s", record.id)
    return record


@app.get("/api/analyses")
def list_analyses() -> list[AnalysisRecord]:
    return store.list_all()


@app.get("/api/analyses/{analysis_id}")
def get_analysis(analysis_id: str) -> AnalysisRecord:
    return _get_record(analysis_id)


@app.delete("/api/analyses/{analysis_id}", status_code=204)
def delete_analysis(analysis_id: str):
    if not store.delete(analysis_id):
        raise HTTPException(status_code=404, detail="Analysis not found")
    return Response(status_code=204)


@app.get("/api/analyses/{analysis_id}/compare/{previous_id}")
def compare_analyses(analysis_id: str, previous_id: str) -> list[MetricComparison]:
    current = _get_record(analysis_id)
    previous = _get_record(previous_id)
    return compare_results(current.result, previous.result)


@app.post("/api/analyses/{analysis_id}/reclassify")
def reclassify_analysis(analysis_id: str, request: ReclassifyRequest) -> AnalysisRecord:
    record = _get_record(analysis_id)
    provider = get_provider(request.model)
    poses = reclassify_poses(record.result.detected_poses, provider)
    result = record.result.model_copy(
        update={"detected_poses": poses, "pose_scores": best_pose_scores(poses)}
    )
    updated = store.update(analysis_id, result=result)
    if updated is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return updated


@app.post("/api/analyses/{analysis_id}/coaching")
def coach_analysis(analysis_id: str, request: CoachingRequest) -> CoachingFeedback:
    record = _get_record(analysis_id)
    provider = get_provider(request.model)
    feedback = generate_coaching(record.result, provider)
    if store.update(analysis_id, coaching_feedback=feedback) is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return feedback


def _get_record(analysis_id: str) -> AnalysisRecord:
    record = store.get(analysis_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return record
