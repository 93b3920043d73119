"""Tests for in-memory form sessions."""

import asyncio

import pytest

from app.formfill.models import (
    CostBreakdown,
    FormField,
    FormSchema,
    ProcessingResult,
    TokenUsage,
)
from app.formfill.services.ai import TransportError
from app.formfill.services.pdf_service import ExtractedDocument
from app.formfill.services.session import (
    FieldNotFound,
    FormSession,
    InvalidFieldValue,
    NoDocumentLoaded,
    RunInProgress,
    SessionNotFound,
    SessionStore,
)


def _result(data: dict, filled: int, total: int) -> ProcessingResult:
    return ProcessingResult(
        model_id="test/model",
        data=data,
        filled_count=filled,
        total_fields=total,
        usage=TokenUsage(prompt_tokens=1000, completion_tokens=500),
        cost=CostBreakdown(prompt_cost=0.003, completion_cost=0.0075, total_cost=0.0105),
    )


@pytest.fixture
def session(sample_schema: FormSchema) -> FormSession:
    return FormSession("s1", sample_schema)


@pytest.fixture
def loaded_session(session: FormSession) -> FormSession:
    session.load_document("doc.pdf", ExtractedDocument(text="Company: Acme", page_count=1))
    return session


def _values(session: FormSession) -> dict:
    return {field.name: field.value for field in session.fields}


class TestFormSessionState:
    """Tests for session defaults and schema switching."""

    def test_fields_start_at_defaults(self, session: FormSession):
        values = _values(session)
        assert values["approved"] is False
        assert values["company"] == ""
        assert values["amount"] == ""
        assert session.completed_fields == 0
        assert session.cost is None

    def test_schema_fields_not_mutated(self, session: FormSession, sample_schema: FormSchema):
        session.update_field("company", "Acme")
        assert all(field.value is None for field in sample_schema.fields)

    def test_select_schema_resets_values(self, loaded_session: FormSession):
        loaded_session.update_field("company", "Acme")
        other = FormSchema(
            id="other",
            name="Other",
            fields=[FormField(name="title", type="text", label="Title")],
        )

        loaded_session.select_schema(other)

        assert loaded_session.schema.id == "other"
        assert _values(loaded_session) == {"title": ""}
        assert loaded_session.document_text == "Company: Acme"

    def test_remove_document(self, loaded_session: FormSession):
        loaded_session.remove_document()
        response = loaded_session.to_response()
        assert response.document_loaded is False
        assert response.document_name is None

    def test_to_response(self, loaded_session: FormSession, sample_fields):
        response = loaded_session.to_response()
        assert response.id == "s1"
        assert response.schema_id == "sample"
        assert response.document_name == "doc.pdf"
        assert response.document_characters == len("Company: Acme")
        assert response.total_fields == len(sample_fields)
        assert response.processing is False


class TestUpdateField:
    """Tests for form edits."""

    def test_text_edit(self, session: FormSession):
        updated = session.update_field("company", "Acme")
        assert updated.value == "Acme"
        assert _values(session)["company"] == "Acme"

    def test_none_resets_to_default(self, session: FormSession):
        session.update_field("approved", True)
        session.update_field("approved", None)
        assert _values(session)["approved"] is False

    @pytest.mark.parametrize(
        "name,value",
        [
            ("approved", True),
            ("amount", 12.5),
            ("amount", ""),
            ("province", "Milano"),
            ("procedure", "02"),
            ("issued_on", "2024-01-15"),
        ],
    )
    def test_valid_edits(self, session: FormSession, name, value):
        assert session.update_field(name, value).value == value

    @pytest.mark.parametrize(
        "name,value",
        [
            ("approved", "true"),
            ("amount", "12"),
            ("amount", True),
            ("province", "Torino"),
            ("procedure", "Rilascio"),
            ("company", 5),
        ],
    )
    def test_invalid_edits(self, session: FormSession, name, value):
        with pytest.raises(InvalidFieldValue):
            session.update_field(name, value)

    def test_unknown_field(self, session: FormSession):
        with pytest.raises(FieldNotFound):
            session.update_field("missing", "x")


class TestApplyResult:
    """Tests for merging a run's result."""

    def test_missing_fields_reset_to_defaults(self, session: FormSession, sample_fields):
        session.update_field("city", "Milano")
        session.update_field("approved", True)

        session.apply_result(_result({"company": "Acme", "amount": 42}, 2, len(sample_fields)))

        values = _values(session)
        assert values["company"] == "Acme"
        assert values["amount"] == 42
        assert values["city"] == ""
        assert values["approved"] is False
        assert session.completed_fields == 2
        assert session.model_id == "test/model"
        assert session.cost.total_cost == pytest.approx(0.0105)

    def test_clear_values(self, session: FormSession, sample_fields):
        session.apply_result(_result({"company": "Acme"}, 1, len(sample_fields)))
        session.clear_values()
        assert _values(session)["company"] == ""
        assert session.completed_fields == 0
        assert session.usage is None


class TestRun:
    """Tests for processing runs."""

    @pytest.mark.asyncio
    async def test_run_applies_result(self, loaded_session: FormSession, sample_fields):
        seen = {}

        async def processor(text, fields):
            seen["text"] = text
            seen["fields"] = [f.name for f in fields]
            return _result({"company": "Acme"}, 1, len(fields))

        result = await loaded_session.run(processor)

        assert result.filled_count == 1
        assert seen["text"] == "Company: Acme"
        assert seen["fields"] == [f.name for f in sample_fields]
        assert _values(loaded_session)["company"] == "Acme"
        assert loaded_session.processing is False

    @pytest.mark.asyncio
    async def test_run_requires_document(self, session: FormSession):
        async def processor(text, fields):
            raise AssertionError("processor should not be called")

        with pytest.raises(NoDocumentLoaded):
            await session.run(processor)

    @pytest.mark.asyncio
    async def test_failure_leaves_values_unchanged(self, loaded_session: FormSession):
        loaded_session.update_field("company", "Manual entry")

        async def processor(text, fields):
            raise TransportError("API request failed with status 500", status_code=500)

        with pytest.raises(TransportError):
            await loaded_session.run(processor)

        assert _values(loaded_session)["company"] == "Manual entry"
        assert loaded_session.cost is None
        assert loaded_session.processing is False

    @pytest.mark.asyncio
    async def test_changes_rejected_while_processing(self, loaded_session: FormSession):
        started = asyncio.Event()
        release = asyncio.Event()

        async def processor(text, fields):
            started.set()
            await release.wait()
            return _result({"company": "Acme"}, 1, len(fields))

        task = asyncio.create_task(loaded_session.run(processor))
        await started.wait()

        assert loaded_session.processing is True
        assert loaded_session.to_response().processing is True
        with pytest.raises(RunInProgress):
            loaded_session.update_field("company", "Other")
        with pytest.raises(RunInProgress):
            loaded_session.clear_values()
        with pytest.raises(RunInProgress):
            loaded_session.remove_document()
        with pytest.raises(RunInProgress):
            await loaded_session.run(processor)

        release.set()
        await task

        assert loaded_session.processing is False
        assert _values(loaded_session)["company"] == "Acme"


class TestSessionStore:
    """Tests for the session store."""

    def test_create_and_get(self, sample_schema: FormSchema):
        store = SessionStore()
        session = store.create(sample_schema)
        assert store.get(session.id) is session
        assert len(store) == 1

    def test_unique_ids(self, sample_schema: FormSchema):
        store = SessionStore()
        assert store.create(sample_schema).id != store.create(sample_schema).id

    def test_get_unknown(self):
        with pytest.raises(SessionNotFound):
            SessionStore().get("nope")

    def test_delete(self, sample_schema: FormSchema):
        store = SessionStore()
        session = store.create(sample_schema)
        store.delete(session.id)
        assert len(store) == 0
        with pytest.raises(SessionNotFound):
            store.get(session.id)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestSessionExpiry:
    """Tests for dropping idle sessions."""

    def test_idle_session_expires(self, sample_schema: FormSchema):
        clock = FakeClock()
        store = SessionStore(ttl_seconds=60, clock=clock)
        session = store.create(sample_schema)
        session.load_document("doc.pdf", ExtractedDocument(text="Company: Acme", page_count=1))

        clock.now += 61

        with pytest.raises(SessionNotFound):
            store.get(session.id)
        assert len(store) == 0

    def test_access_keeps_session_alive(self, sample_schema: FormSchema):
        clock = FakeClock()
        store = SessionStore(ttl_seconds=60, clock=clock)
        session = store.create(sample_schema)

        for _ in range(3):
            clock.now += 45
            assert store.get(session.id) is session

    def test_purge_on_create(self, sample_schema: FormSchema):
        clock = FakeClock()
        store = SessionStore(ttl_seconds=60, clock=clock)
        old = store.create(sample_schema)

        clock.now += 120
        new = store.create(sample_schema)

        assert len(store) == 1
        assert store.get(new.id) is new
        with pytest.raises(SessionNotFound):
            store.get(old.id)

    def test_no_ttl_keeps_sessions(self, sample_schema: FormSchema):
        clock = FakeClock()
        store = SessionStore(clock=clock)
        session = store.create(sample_schema)

        clock.now += 10**6

        assert store.purge_expired() == 0
        assert store.get(session.id) is session

    @pytest.mark.asyncio
    async def test_processing_session_not_expired(self, sample_schema: FormSchema):
        clock = FakeClock()
        store = SessionStore(ttl_seconds=60, clock=clock)
        session = store.create(sample_schema)
        session.load_document("doc.pdf", ExtractedDocument(text="Company: Acme", page_count=1))
        started = asyncio.Event()
        release = asyncio.Event()

        async def processor(text, fields):
            started.set()
            await release.wait()
            return _result({}, 0, len(fields))

        task = asyncio.create_task(session.run(processor))
        await started.wait()

        clock.now += 120
        assert store.purge_expired() == 0

        release.set()
        await task
        assert store.purge_expired() == 1
