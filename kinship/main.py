import json

import kuzu
from fastapi import FastAPI, Depends, HTTPException
from fastapi.responses import Response

from .db import get_conn
from . import changelog, crud, export, schemas, service
from .plotly_graph.render import build_plotly_figure

app = FastAPI(title="kinship")


def _require_student(conn: kuzu.Connection, school_id: str, student_id: str):
    student = crud.get_student(conn, student_id, school_id=school_id)
    if student is None:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


@app.get("/health")
def health():
    return {"ok": True}


# ── Roster ──

@app.get("/api/schools/{school_id}/students", response_model=list[schemas.StudentOut])
def students(school_id: str, conn: kuzu.Connection = Depends(get_conn)):
    return crud.list_students(conn, school_id)


@app.post("/api/schools/{school_id}/students", response_model=schemas.StudentOut)
def add_student(school_id: str, body: schemas.StudentCreate, conn: kuzu.Connection = Depends(get_conn)):
    try:
        return crud.create_student(conn, school_id, body.name, body.notes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/api/schools/{school_id}/guardians", response_model=schemas.GuardianOut)
def add_guardian(school_id: str, body: schemas.GuardianCreate, conn: kuzu.Connection = Depends(get_conn)):
    _require_student(conn, school_id, body.student_id)
    try:
        return crud.create_guardian(conn, body.student_id, body.name, body.relation,
                                    email=body.email, phone=body.phone)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ── Families ──

@app.get("/api/schools/{school_id}/families")
def families(school_id: str, search: str = "", conn: kuzu.Connection = Depends(get_conn)):
    return service.list_families(conn, school_id, search)


@app.get("/api/schools/{school_id}/families/metrics")
def metrics(school_id: str, conn: kuzu.Connection = Depends(get_conn)):
    result, _families = service.school_metrics(conn, school_id)
    return result


@app.get("/api/schools/{school_id}/families/export")
def export_families(school_id: str, conn: kuzu.Connection = Depends(get_conn)):
    result, fams = service.school_metrics(conn, school_id)
    content = export.export_family_report(result, fams)
    return Response(
        content=content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{export.report_filename()}"'},
    )


# ── Relationship maintenance ──

@app.post("/api/schools/{school_id}/relationships/diagnose")
def diagnose(school_id: str, collapse_pairs: bool = False, conn: kuzu.Connection = Depends(get_conn)):
    return service.run_diagnosis(conn, school_id, collapse_pairs=collapse_pairs)


@app.post("/api/schools/{school_id}/relationships/clean")
def clean(school_id: str, conn: kuzu.Connection = Depends(get_conn)):
    fixes = service.run_cleanup(conn, school_id)
    return {"fixes": fixes, "removed": sum(1 for f in fixes if f.action.startswith("removed"))}


@app.post("/api/schools/{school_id}/relationships/propagate")
def propagate(school_id: str, apply: bool = False, student_id: str | None = None,
              conn: kuzu.Connection = Depends(get_conn)):
    if student_id is not None:
        _require_student(conn, school_id, student_id)
    result, errors = service.run_propagation(conn, school_id, apply=apply, student_id=student_id)
    return {
        "count": result.count,
        "newRelationships": result.new_relationships,
        "details": result.details,
        "skipped": result.skipped,
        "applied": apply,
        "errors": errors,
    }


# ── Family tree ──

@app.get("/api/schools/{school_id}/family-tree")
def family_tree(school_id: str, search: str = "", conn: kuzu.Connection = Depends(get_conn)):
    graph = service.build_school_tree(conn, school_id, search)
    return {**graph.to_dict(), "warnings": graph.warnings}


@app.get("/api/schools/{school_id}/family-tree/figure")
def family_tree_figure(school_id: str, search: str = "", conn: kuzu.Connection = Depends(get_conn)):
    fig = build_plotly_figure(service.build_school_tree(conn, school_id, search))
    return json.loads(fig.to_json())


@app.get("/api/schools/{school_id}/changes")
def changes(school_id: str, limit: int = 50, offset: int = 0, conn: kuzu.Connection = Depends(get_conn)):
    return changelog.list_changes(conn, school_id, limit=limit, offset=offset)
