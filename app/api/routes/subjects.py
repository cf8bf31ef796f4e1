"""Subject ingestion: PUT one extraction pass for a meeting."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_reconciler
from app.core.errors import NotFoundError
from app.subjects.reconciler import SubjectReconciler
from app.subjects.schemas import IncomingSubject

router = APIRouter(prefix="/cities/{city_id}/meetings/{meeting_id}", tags=["subjects"])


@router.put("/subjects", summary="Reconcile an extraction pass into the meeting's subjects")
def put_subjects(
    city_id: str,
    meeting_id: str,
    subjects: list[IncomingSubject],
    reconciler: SubjectReconciler = Depends(get_reconciler),
):
    try:
        ids_by_key = reconciler.reconcile(subjects, city_id, meeting_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))

    return {
        "subject_ids": {str(key): subject_id for key, subject_id in ids_by_key.items()},
        "failures": [{"key": f.key, "error": f.error} for f in reconciler.failures],
    }
