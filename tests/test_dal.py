import aiosqlite
import pytest

from dal.analysis_dal import AnalysisDAL
from dal.patient_dal import PatientDAL
from models.analysis_record import AnalysisRecord
from models.classification import ClassificationResult, Finding
from models.patient_record import PatientRecord
from utils.database_init import AsyncDatabaseInitializer


@pytest.fixture
def db(tmp_path):
    return AsyncDatabaseInitializer(tmp_path)


def _patient(patient_id="P-001", user_id="doc-1", **kwargs):
    return PatientRecord(id=None, user_id=user_id, patient_id=patient_id, name="Asha", age=52, **kwargs)


def test_database_dir_is_required(monkeypatch):
    monkeypatch.delenv("DATABASE_DIR", raising=False)
    with pytest.raises(RuntimeError, match="DATABASE_DIR"):
        AsyncDatabaseInitializer()


def test_database_dir_must_not_be_a_file(tmp_path):
    file_path = tmp_path / "not_a_dir"
    file_path.write_text("x")
    with pytest.raises(RuntimeError, match="points to a file"):
        AsyncDatabaseInitializer(file_path)


async def test_patient_crud_is_scoped_per_user(db):
    dal = PatientDAL(db)
    created = await dal.create_patient(_patient(tobacco="Yes"))
    await dal.create_patient(_patient(patient_id="P-002", user_id="doc-2"))

    assert created.id
    assert created.created_at and created.updated_at

    fetched = await dal.get_patient("doc-1", "P-001")
    assert fetched == created
    assert await dal.get_patient("doc-2", "P-001") is None
    assert [p.patient_id for p in await dal.list_patients("doc-1")] == ["P-001"]

    updated = await dal.update_patient("doc-1", "P-001", smoking="No", age=53)
    assert updated.smoking == "No"
    assert updated.age == 53
    assert updated.tobacco == "Yes"

    assert await dal.update_patient("doc-1", "missing", age=1) is None
    assert await dal.delete_patient("doc-1", "P-001") is True
    assert await dal.delete_patient("doc-1", "P-001") is False


async def test_duplicate_patient_id_raises_integrity_error(db):
    dal = PatientDAL(db)
    await dal.create_patient(_patient())
    with pytest.raises(aiosqlite.IntegrityError):
        await dal.create_patient(_patient())


async def test_update_rejects_unknown_columns(db):
    dal = PatientDAL(db)
    await dal.create_patient(_patient())
    with pytest.raises(ValueError):
        await dal.update_patient("doc-1", "P-001", user_id="someone-else")


async def test_analysis_result_round_trips_as_json(db):
    dal = AnalysisDAL(db)
    result = ClassificationResult(
        risk="high",
        confidence=0.99,
        analysis="Irregular red patch",
        findings=[Finding("Observation", "Irregular red patch", "high")],
        recommendations=["Biopsy"],
        scan_id="resp_9",
        raw_analysis="raw text",
    )
    stored = await dal.create_analysis(
        AnalysisRecord(id=None, user_id="doc-1", patient_id="P-001", result=result, thumbnail=b"png")
    )

    assert stored.scan_id == "resp_9"
    fetched = await dal.get_analysis("doc-1", stored.id)
    assert fetched.result == result
    assert fetched.thumbnail == b"png"
    assert (await dal.get_by_scan_id("doc-1", "resp_9")).id == stored.id
    assert await dal.get_analysis("doc-2", stored.id) is None


async def test_list_analyses_filters_by_patient(db):
    dal = AnalysisDAL(db)
    for patient_id in ("P-001", "P-001", "P-002"):
        await dal.create_analysis(
            AnalysisRecord(
                id=None,
                user_id="doc-1",
                patient_id=patient_id,
                result=ClassificationResult(risk="low", confidence=0.95, analysis="ok"),
            )
        )
    assert len(await dal.list_analyses("doc-1")) == 3
    assert len(await dal.list_analyses("doc-1", patient_id="P-001")) == 2


async def test_deleting_patient_removes_their_analyses(db):
    patients, analyses = PatientDAL(db), AnalysisDAL(db)
    await patients.create_patient(_patient())
    await analyses.create_analysis(
        AnalysisRecord(
            id=None,
            user_id="doc-1",
            patient_id="P-001",
            result=ClassificationResult(risk="low", confidence=0.95, analysis="ok"),
        )
    )
    await patients.delete_patient("doc-1", "P-001")
    assert await analyses.list_analyses("doc-1", patient_id="P-001") == []


async def test_renaming_patient_moves_their_analyses(db):
    patients, analyses = PatientDAL(db), AnalysisDAL(db)
    await patients.create_patient(_patient())
    await analyses.create_analysis(
        AnalysisRecord(
            id=None,
            user_id="doc-1",
            patient_id="P-001",
            result=ClassificationResult(risk="low", confidence=0.95, analysis="ok"),
        )
    )

    renamed = await patients.update_patient("doc-1", "P-001", patient_id="P-009")

    assert renamed.patient_id == "P-009"
    assert await patients.get_patient("doc-1", "P-001") is None
    assert await analyses.list_analyses("doc-1", patient_id="P-001") == []
    assert len(await analyses.list_analyses("doc-1", patient_id="P-009")) == 1


async def test_renaming_onto_existing_patient_id_raises_integrity_error(db):
    dal = PatientDAL(db)
    await dal.create_patient(_patient())
    await dal.create_patient(_patient(patient_id="P-002"))
    with pytest.raises(aiosqlite.IntegrityError):
        await dal.update_patient("doc-1", "P-001", patient_id="P-002")
