"""Shared fixtures for the kinship test suite."""
import json

import pytest
import kuzu
from fastapi.testclient import TestClient

from kinship.db import _init_schema, get_conn
from kinship import crud
from kinship.models import Guardian, Student

SCHOOL = "school-1"


def rel(related_id, rel_type, name="", **extra):
    """One familyRelationships entry in stored (camelCase) form."""
    entry = {"relatedStudentId": related_id, "relatedStudentName": name, "relationshipType": rel_type}
    entry.update(extra)
    return entry


def notes_blob(*family, guardian=(), **extra):
    data = {"familyRelationships": list(family)}
    if guardian:
        data["guardianRelationships"] = list(guardian)
    data.update(extra)
    return json.dumps(data)


def student(sid, name=None, *family, guardian=(), **extra):
    """In-memory Student whose notes declare ``family``."""
    blob = notes_blob(*family, guardian=guardian, **extra) if (family or guardian or extra) else None
    return Student(id=sid, name=name or sid.upper(), notes=blob, school_id=SCHOOL)


def guardian(gid, student_id, relation, name="Guardian", email=None, phone=None):
    return Guardian(id=gid, student_id=student_id, name=name, relation=relation,
                    email=email, phone=phone, school_id=SCHOOL)


# ── Database fixtures ──

@pytest.fixture
def db_path(tmp_path):
    """Temp directory for a fresh KuzuDB."""
    return tmp_path / "test_db"


@pytest.fixture
def db(db_path):
    """Initialized KuzuDB with the roster schema."""
    database = kuzu.Database(str(db_path))
    _init_schema(database)
    yield database
    database.close()


@pytest.fixture
def conn(db):
    """KuzuDB connection for unit tests."""
    connection = kuzu.Connection(db)
    yield connection
    connection.close()


# ── Roster fixtures ──

@pytest.fixture
def siblings_roster(conn):
    """Ana and Bruno share mother Maria; Ana declares Bruno a COUSIN, which is wrong.

    Bruno declares Ana SIBLING; Caio is Bruno's COUSIN.
    """
    ana = crud.create_student(conn, SCHOOL, "Ana", notes_blob(rel("s2", "COUSIN", "Bruno")), student_id="s1")
    bruno = crud.create_student(
        conn, SCHOOL, "Bruno",
        notes_blob(rel("s1", "SIBLING", "Ana"), rel("s3", "COUSIN", "Caio")),
        student_id="s2",
    )
    caio = crud.create_student(conn, SCHOOL, "Caio", student_id="s3")
    crud.create_guardian(conn, "s1", "Maria", "MAE", email="maria@example.com")
    crud.create_guardian(conn, "s2", "Maria", "MAE", email="MARIA@example.com ")
    crud.create_guardian(conn, "s3", "Paula", "MAE", email="paula@example.com")
    return {"ana": ana, "bruno": bruno, "caio": caio}


# ── FastAPI app fixtures ──

@pytest.fixture
def app_with_db(db):
    """FastAPI app with dependency override pointing at test DB."""
    from kinship.main import app

    def override_get_conn():
        c = kuzu.Connection(db)
        try:
            yield c
        finally:
            pass

    app.dependency_overrides[get_conn] = override_get_conn
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app_with_db):
    return TestClient(app_with_db, raise_server_exceptions=False)
