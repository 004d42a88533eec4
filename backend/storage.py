import threading
import uuid
from typing import Optional

from models import AnalysisRecord, AnalysisResult, CoachingFeedback


class AnalysisStore:
    """In-memory analysis records, newest first when listed."""

    def __init__(self):
        self._records: dict[str, AnalysisRecord] = {}
        self._lock = threading.Lock()

    def create(self, video_name: str, duration: float, result: AnalysisResult,
               category: str = "bodybuilding") -> AnalysisRecord:
        record = AnalysisRecord(
            id=str(uuid.uuid4()),
            video_name=video_name,
            category=category,
            duration=duration,
            result=result,
        )
        with self._lock:
            self._records[record.id] = record
        return record

    def get(self, analysis_id: str) -> Optional[AnalysisRecord]:
        with self._lock:
            return self._records.get(analysis_id)

    def list_all(self) -> list[AnalysisRecord]:
        with self._lock:
            records = list(self._records.values())
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def update(self, analysis_id: str, result: Optional[AnalysisResult] = None,
               coaching_feedback: Optional[CoachingFeedback] = None) -> Optional[AnalysisRecord]:
        updates = {}
        if result is not None:
            updates["result"] = result
        if coaching_feedback is not None:
            updates["coaching_feedback"] = coaching_feedback
        with self._lock:
            record = self._records.get(analysis_id)
            if record is None:
                return None
            record = record.model_copy(update=updates)
            self._records[analysis_id] = record
        return record

    def delete(self, analysis_id: str) -> bool:
        with self._lock:
            return self._records.pop(analysis_id, None) is not None
