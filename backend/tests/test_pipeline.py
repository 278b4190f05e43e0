"""End-to-end scan tests: stub mailbox + stub classifier + in-memory SQLite sink."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from jobtrack.config import AppConfig
from jobtrack.errors import AuthorizationRequiredError, MessageFetchError
from jobtrack.extraction import pipeline as pipeline_module
from jobtrack.extraction.llm import LLMCompletion
from jobtrack.extraction.pipeline import FilterStage, MessagePipeline, run_scan, scan_mailbox
from jobtrack.mail.client import build_source_query
from jobtrack.mail.message import MessageRef, RawMessage
from jobtrack.models import ApplicationRecord, Base, ScanRun
from jobtrack.records import SQLRecordSink

_NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

_CONFIRMATION_BODY = (
    "Hi Jane, we received your application for the Software Engineer position "
    "at Acme Corp. Our team will review it and reach out if there is a match."
)


class _StubSource:
    def __init__(self, messages: list[RawMessage], failing: tuple[str, ...] = ()) -> None:
        self._messages = {m.id: m for m in messages}
        self._failing = set(failing)
        self.list_calls: list[tuple[datetime, str]] = []

    def list(self, since: datetime, query: str) -> list[MessageRef]:
        self.list_calls.append((since, query))
        ids = list(self._messages) + sorted(self._failing)
        return [MessageRef(id=mid) for mid in ids]

    def fetch(self, ref: MessageRef) -> RawMessage:
        if ref.id in self._failing:
            raise MessageFetchError(ref.id, "connection reset")
        return self._messages[ref.id]

    def __enter__(self) -> "_StubSource":
        return self

    def __exit__(self, *exc: object) -> None:
        return None


class _UnauthorizedSource(_StubSource):
    def __init__(self) -> None:
        super().__init__([])

    def list(self, since: datetime, query: str) -> list[MessageRef]:
        raise AuthorizationRequiredError("token revoked")


class _StubProvider:
    def __init__(self, text: str = "Status: Applied\nDescription: Application received.", delay: float = 0.0) -> None:
        self._text = text
        self._delay = delay
        self._lock = threading.Lock()
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    def complete(self, prompt: str) -> LLMCompletion:
        with self._lock:
            self.calls += 1
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay:
                time.sleep(self._delay)
            return LLMCompletion(text=self._text, prompt_tokens=50, completion_tokens=10, estimated_cost_usd=0.0001)
        finally:
            with self._lock:
                self.in_flight -= 1


class _FailingProvider:
    def __init__(self) -> None:
        self.calls = 0

    def complete(self, prompt: str) -> LLMCompletion:
        self.calls += 1
        raise ConnectionError("503 service unavailable")


class _BrokenSink:
    def upsert(self, message_id, draft) -> bool:
        raise RuntimeError("disk full")


def _make_config(**overrides) -> AppConfig:
    values = dict(
        imap_host="imap.example.com",
        email_username="candidate@example.com",
        email_password="secret",
        llm_timeout_sec=5,
        scan_concurrency=4,
    )
    values.update(overrides)
    return AppConfig(**values)


def _new_session_factory() -> sessionmaker[Session]:
    # StaticPool shares one in-memory database across worker threads
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)


def _confirmation(message_id: str = "101", sender: str = "careers@acme.com") -> RawMessage:
    return RawMessage(
        id=message_id,
        subject="Thank you for applying to Acme Corp",
        sender=sender,
        sent_at=_NOW - timedelta(days=1),
        body_text=_CONFIRMATION_BODY,
    )


def _indeed_alert(message_id: str = "201") -> RawMessage:
    return RawMessage(
        id=message_id,
        subject="5 new jobs for you this week",
        sender="Indeed <alerts@indeed.com>",
        sent_at=_NOW,
        body_text="Software Engineer at Foo Inc. Data Analyst at Bar Corp.",
    )


def _digest(message_id: str = "301") -> RawMessage:
    return RawMessage(
        id=message_id,
        subject="Update on your application",
        sender="hr@example.org",
        sent_at=_NOW,
        body_text=(
            "Engineer at Foo Inc, Developer at Bar Corp, Analyst at Baz LLC, "
            "Designer at Qux Ltd and Architect openings this week."
        ),
    )


def _records(factory: sessionmaker[Session]) -> list[ApplicationRecord]:
    session = factory()
    try:
        return session.query(ApplicationRecord).order_by(ApplicationRecord.message_id).all()
    finally:
        session.close()


# ── Funnel outcomes ───────────────────────────────────────


def test_confirmation_email_becomes_record() -> None:
    factory = _new_session_factory()
    provider = _StubProvider()

    summary = run_scan(
        _make_config(), _StubSource([_confirmation()]), SQLRecordSink(factory), provider, 7, now=_NOW
    )

    assert (summary.candidates, summary.persisted, summary.filtered_out, summary.failed) == (1, 1, 0, 0)
    records = _records(factory)
    assert len(records) == 1
    record = records[0]
    assert record.message_id == "101"
    assert record.company == "acme"
    assert record.position == "Software Engineer"
    assert record.status_category == "Applied"
    assert record.status_description == "Application received."
    assert record.status_ai_generated is True
    assert record.status_source == "classifier"
    assert record.source == "mailbox"
    assert record.body_excerpt == _CONFIRMATION_BODY


def test_board_alert_never_reaches_classifier() -> None:
    factory = _new_session_factory()
    provider = _StubProvider()

    summary = run_scan(
        _make_config(), _StubSource([_indeed_alert()]), SQLRecordSink(factory), provider, 7, now=_NOW
    )

    assert provider.calls == 0
    assert summary.persisted == 0
    assert summary.filtered_out == 1
    assert _records(factory) == []


def test_density_digest_filtered_before_classifier() -> None:
    factory = _new_session_factory()
    provider = _StubProvider()

    summary = run_scan(_make_config(), _StubSource([_digest()]), SQLRecordSink(factory), provider, 7, now=_NOW)

    assert provider.calls == 0
    assert summary.filtered_out == 1
    assert _records(factory) == []


def test_classifier_reject_writes_nothing() -> None:
    factory = _new_session_factory()
    provider = _StubProvider("Status: SKIP\nDescription: Not an application-related email")

    summary = run_scan(
        _make_config(), _StubSource([_confirmation()]), SQLRecordSink(factory), provider, 7, now=_NOW
    )

    assert provider.calls == 1
    assert (summary.persisted, summary.filtered_out) == (0, 1)
    assert _records(factory) == []


def test_classifier_outage_still_persists_record() -> None:
    factory = _new_session_factory()

    summary = run_scan(
        _make_config(), _StubSource([_confirmation()]), SQLRecordSink(factory), _FailingProvider(), 7, now=_NOW
    )

    assert summary.persisted == 1
    record = _records(factory)[0]
    assert record.status_category == "Applied"
    assert record.status_ai_generated is False
    assert record.status_description == "Status analysis unavailable"


def test_disabled_classifier_still_persists_record() -> None:
    factory = _new_session_factory()

    summary = run_scan(_make_config(), _StubSource([_confirmation()]), SQLRecordSink(factory), None, 7, now=_NOW)

    assert summary.persisted == 1
    assert _records(factory)[0].status_ai_generated is False


def test_message_pipeline_reports_filter_stage() -> None:
    processor = MessagePipeline(_StubProvider("Status: SKIP\nDescription: noise"), _make_config())

    assert processor.process(_indeed_alert()).filtered_at is FilterStage.SUBJECT
    assert processor.process(_digest()).filtered_at is FilterStage.BOARD
    outcome = processor.process(_confirmation())
    assert outcome.filtered_at is FilterStage.CLASSIFIER
    assert outcome.draft is None
    assert not outcome.accepted


def test_body_excerpt_is_truncated() -> None:
    long_message = RawMessage(
        id="102",
        subject="Thank you for applying to Acme Corp",
        sender="careers@acme.com",
        sent_at=None,
        body_text=_CONFIRMATION_BODY + " Thanks." * 100,
    )
    outcome = MessagePipeline(_StubProvider(), _make_config(body_excerpt_chars=500)).process(long_message)

    assert outcome.draft is not None
    assert len(outcome.draft.body_excerpt) == 500
    assert outcome.draft.sent_at is None


# ── Idempotence and conflict policy ───────────────────────


def test_rescan_updates_instead_of_duplicating() -> None:
    factory = _new_session_factory()
    sink = SQLRecordSink(factory)
    source = _StubSource([_confirmation()])

    run_scan(_make_config(), source, sink, _StubProvider(), 7, now=_NOW)
    first = _records(factory)[0]
    summary = run_scan(
        _make_config(),
        source,
        sink,
        _StubProvider("Status: Under Review\nDescription: Team is reviewing."),
        7,
        now=_NOW,
    )

    records = _records(factory)
    assert len(records) == 1
    assert summary.persisted == 1
    assert records[0].status_category == "Under Review"
    assert records[0].created_at == first.created_at


def test_manual_status_survives_rescan() -> None:
    factory = _new_session_factory()
    sink = SQLRecordSink(factory)
    source = _StubSource([_confirmation()])
    run_scan(_make_config(), source, sink, _StubProvider(), 7, now=_NOW)

    session = factory()
    try:
        record = session.get(ApplicationRecord, "101")
        record.status_category = "Interview Scheduled"
        record.status_description = "Onsite on Friday"
        record.status_source = "manual"
        session.commit()
    finally:
        session.close()

    run_scan(
        _make_config(),
        _StubSource([_confirmation(sender="Acme Hiring <careers@acmecorp.com>")]),
        sink,
        _StubProvider("Status: Rejected\nDescription: Position filled."),
        7,
        now=_NOW,
    )

    record = _records(factory)[0]
    assert record.status_category == "Interview Scheduled"
    assert record.status_description == "Onsite on Friday"
    assert record.status_source == "manual"
    # non-status fields are still refreshed
    assert record.company == "acmecorp"


# ── Failure isolation ─────────────────────────────────────


def test_fetch_failure_does_not_affect_other_messages() -> None:
    factory = _new_session_factory()
    messages = [_confirmation("101"), _confirmation("102"), _confirmation("103")]

    summary = run_scan(
        _make_config(),
        _StubSource(messages, failing=("999",)),
        SQLRecordSink(factory),
        _StubProvider(),
        7,
        now=_NOW,
    )

    assert summary.candidates == 4
    assert summary.persisted == 3
    assert summary.failed == 1
    assert [r.message_id for r in _records(factory)] == ["101", "102", "103"]


def test_sink_failure_counted_as_failed() -> None:
    summary = run_scan(
        _make_config(), _StubSource([_confirmation()]), _BrokenSink(), _StubProvider(), 7, now=_NOW
    )
    assert (summary.persisted, summary.failed) == (0, 1)


def test_authorization_error_from_listing_propagates() -> None:
    with pytest.raises(AuthorizationRequiredError):
        run_scan(_make_config(), _UnauthorizedSource(), SQLRecordSink(_new_session_factory()), None, 7)


def test_authorization_error_from_fetch_propagates() -> None:
    class _RevokedMidScan(_StubSource):
        def fetch(self, ref: MessageRef) -> RawMessage:
            raise AuthorizationRequiredError("session expired")

    with pytest.raises(AuthorizationRequiredError):
        run_scan(
            _make_config(),
            _RevokedMidScan([_confirmation()]),
            SQLRecordSink(_new_session_factory()),
            None,
            7,
            now=_NOW,
        )


# ── Scan window and bounds ────────────────────────────────


def test_scan_window_and_source_query() -> None:
    source = _StubSource([])

    summary = run_scan(_make_config(), source, SQLRecordSink(_new_session_factory()), None, 3, now=_NOW)

    assert source.list_calls == [(_NOW - timedelta(days=3), build_source_query())]
    assert (summary.candidates, summary.persisted, summary.filtered_out, summary.days_back) == (0, 0, 0, 3)


def test_candidates_capped_at_max_scan_emails() -> None:
    messages = [_confirmation(str(i)) for i in range(5)]

    summary = run_scan(
        _make_config(max_scan_emails=2),
        _StubSource(messages),
        SQLRecordSink(_new_session_factory()),
        None,
        7,
        now=_NOW,
    )

    assert summary.candidates == 2
    assert summary.persisted == 2


def test_days_back_must_be_positive() -> None:
    with pytest.raises(ValueError):
        run_scan(_make_config(), _StubSource([]), SQLRecordSink(_new_session_factory()), None, 0)


def test_classifier_calls_respect_concurrency_bound() -> None:
    provider = _StubProvider(delay=0.05)
    messages = [_confirmation(str(i)) for i in range(8)]

    summary = run_scan(
        _make_config(scan_concurrency=2),
        _StubSource(messages),
        SQLRecordSink(_new_session_factory()),
        provider,
        7,
        now=_NOW,
    )

    assert summary.persisted == 8
    assert provider.calls == 8
    assert 1 <= provider.max_in_flight <= 2


def test_token_usage_is_summed() -> None:
    messages = [_confirmation(str(i)) for i in range(3)]

    summary = run_scan(
        _make_config(), _StubSource(messages), SQLRecordSink(_new_session_factory()), _StubProvider(), 7, now=_NOW
    )

    assert summary.prompt_tokens == 150
    assert summary.completion_tokens == 30
    assert summary.estimated_cost_usd == pytest.approx(0.0003)


# ── Wiring ────────────────────────────────────────────────


def test_scan_mailbox_records_scan_run(monkeypatch: pytest.MonkeyPatch) -> None:
    factory = _new_session_factory()
    source = _StubSource([_confirmation(), _indeed_alert()])
    monkeypatch.setattr(pipeline_module, "IMAPMessageSource", lambda config: source)
    monkeypatch.setattr(pipeline_module, "resolve_llm_provider", lambda config: _StubProvider())

    summary = scan_mailbox(_make_config(default_days_back=10), factory)

    assert summary.days_back == 10
    assert (summary.persisted, summary.filtered_out) == (1, 1)
    session = factory()
    try:
        runs = session.query(ScanRun).all()
    finally:
        session.close()
    assert len(runs) == 1
    assert (runs[0].days_back, runs[0].candidates, runs[0].persisted, runs[0].filtered_out) == (10, 2, 1, 1)
    assert runs[0].finished_at is not None
