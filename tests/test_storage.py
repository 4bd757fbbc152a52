import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from job_copilot.models import AgentRun, Base, RunLog, StoredRecord, log_run_event
from job_copilot.profile import AppSettings, UserProfile
from job_copilot.storage import ProfileStore, StorageKey


@pytest.fixture
def session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    db = sessionmaker(bind=engine)()
    try:
        yield db
    finally:
        db.close()


def test_default_profile_when_nothing_stored(session):
    profile = ProfileStore(session).get_profile()
    assert profile.basics.first_name == ""
    assert profile.basics.location.country == "United States"
    assert profile.legal.visa_status.sponsorship.require_future is True
    assert profile.preferences.start_date == "Immediate"


def test_save_profile_round_trip_and_stamps_last_updated(session):
    store = ProfileStore(session)
    profile = UserProfile.model_validate({"meta": {"lastUpdated": 1}, "basics": {"firstName": "Jane"}})

    saved = store.save_profile(profile)
    loaded = store.get_profile()

    assert saved.meta.last_updated > 1
    assert loaded.basics.first_name == "Jane"
    assert loaded.meta.last_updated == saved.meta.last_updated
    raw = session.get(StoredRecord, StorageKey.PROFILE.value).payload
    assert '"firstName": "Jane"' in raw or '"firstName":"Jane"' in raw


def test_unreadable_profile_falls_back_to_default(session):
    session.add(StoredRecord(key=StorageKey.PROFILE.value, payload="{not json"))
    session.commit()
    assert ProfileStore(session).get_profile().basics.first_name == ""


def test_settings_defaults_and_round_trip(session):
    store = ProfileStore(session)
    assert store.get_settings().auto_submit is False

    store.save_settings(AppSettings(auto_submit=True, language="zh"))
    loaded = store.get_settings()
    assert loaded.auto_submit is True
    assert loaded.language == "zh"


def test_clear_all(session):
    store = ProfileStore(session)
    store.save_settings(AppSettings(auto_submit=True))
    store.clear_all()
    assert session.query(StoredRecord).count() == 0
    assert store.get_settings().auto_submit is False


def test_log_run_event_persists(session):
    run = AgentRun(start_url="https://jobs.example.com", status="OBSERVING")
    session.add(run)
    session.commit()

    log_run_event(session, run, "info", "Agent active")

    logs = session.query(RunLog).filter(RunLog.run_id == run.id).all()
    assert [log.message for log in logs] == ["Agent active"]
