"""Scan pipeline: subject filter → board filter → AI status → extraction → upsert."""

from __future__ import annotations

import contextvars
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

import structlog
from sqlalchemy.orm import Session, sessionmaker

from jobtrack.config import AppConfig
from jobtrack.errors import AuthorizationRequiredError
from jobtrack.extraction.llm import LLMProvider, LLMUsage, resolve_llm_provider
from jobtrack.extraction.rules import extract_company, extract_position
from jobtrack.extraction.status import REJECT, classify_status
from jobtrack.filtering import Verdict, board_noise_reason, classify_subject
from jobtrack.mail.client import IMAPMessageSource, build_source_query
from jobtrack.mail.message import MessageRef, MessageSource, RawMessage
from jobtrack.records import ApplicationDraft, RecordSink, SQLRecordSink, record_scan_run

logger = structlog.get_logger(__name__)


class FilterStage(str, Enum):
    """Stage that dropped a message. Internal logging only."""

    SUBJECT = "subject"
    BOARD = "board"
    CLASSIFIER = "classifier"


@dataclass(frozen=True)
class ProcessOutcome:
    """Either an accepted draft or the stage that filtered the message."""

    draft: Optional[ApplicationDraft] = None
    filtered_at: Optional[FilterStage] = None

    @property
    def accepted(self) -> bool:
        return self.draft is not None


@dataclass
class ScanSummary:
    """Result summary after a scan run."""

    days_back: int
    candidates: int = 0
    persisted: int = 0
    filtered_out: int = 0
    failed: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    estimated_cost_usd: float = 0.0


class MessagePipeline:
    """Runs one fetched message through the classification funnel.

    Each stage can only drop a message; the first drop is terminal and later
    stages never see it. Only messages accepted by the classifier reach
    extraction.
    """

    def __init__(
        self,
        provider: Optional[LLMProvider],
        config: AppConfig,
        usage: Optional[LLMUsage] = None,
    ) -> None:
        self._provider = provider
        self._config = config
        self._usage = usage

    def _filtered(self, message: RawMessage, stage: FilterStage, **extra: object) -> ProcessOutcome:
        logger.info("message_filtered", message_id=message.id, stage=stage.value, **extra)
        return ProcessOutcome(filtered_at=stage)

    def process(self, message: RawMessage) -> ProcessOutcome:
        cfg = self._config

        if classify_subject(message.subject, message.sender) is Verdict.SKIP:
            return self._filtered(message, FilterStage.SUBJECT)

        reason = board_noise_reason(message.subject, message.sender, message.body_text)
        if reason is not None:
            return self._filtered(message, FilterStage.BOARD, reason=reason)

        status = classify_status(
            self._provider,
            message.subject,
            message.sender,
            message.body_text,
            body_chars=cfg.llm_body_chars,
            timeout_sec=cfg.llm_timeout_sec,
            usage=self._usage,
        )
        if status is REJECT:
            return self._filtered(message, FilterStage.CLASSIFIER)

        draft = ApplicationDraft(
            message_id=message.id,
            subject=message.subject,
            sender=message.sender,
            sent_at=message.sent_at,
            company=extract_company(message.sender, message.subject),
            position=extract_position(message.subject, message.body_text),
            status=status,
            body_excerpt=message.body_text[: cfg.body_excerpt_chars],
        )
        logger.info(
            "message_accepted",
            message_id=message.id,
            company=draft.company,
            position=draft.position,
            status=status.category.value,
            ai_generated=status.ai_generated,
        )
        return ProcessOutcome(draft=draft)


def _process_ref(
    pipeline: MessagePipeline,
    source: MessageSource,
    sink: RecordSink,
    ref: MessageRef,
) -> ProcessOutcome:
    """Worker body: fetch, classify and persist one message."""
    structlog.contextvars.bind_contextvars(message_id=ref.id)
    message = source.fetch(ref)
    outcome = pipeline.process(message)
    if outcome.draft is not None:
        sink.upsert(message.id, outcome.draft)
    return outcome


def run_scan(
    config: AppConfig,
    source: MessageSource,
    sink: RecordSink,
    provider: Optional[LLMProvider],
    days_back: int,
    now: Optional[datetime] = None,
) -> ScanSummary:
    """Classify every candidate message from the last *days_back* days.

    Messages are independent and processed on a thread pool of
    ``config.scan_concurrency`` workers, so in-flight fetches and AI calls
    never exceed that bound. A failure on one message is logged and counted
    in ``failed``; it never aborts the batch. :class:`AuthorizationRequiredError`
    is fatal and propagates.
    """
    if days_back < 1:
        raise ValueError("days_back must be >= 1")

    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=days_back)
    summary = ScanSummary(days_back=days_back)
    usage = LLMUsage()
    pipeline = MessagePipeline(provider, config, usage)

    with structlog.contextvars.bound_contextvars(scan_id=uuid.uuid4().hex[:12]):
        logger.info("scan_starting", days_back=days_back, since=since.date().isoformat())

        refs = source.list(since, build_source_query())[: config.max_scan_emails]
        summary.candidates = len(refs)

        if refs:
            with ThreadPoolExecutor(
                max_workers=config.scan_concurrency, thread_name_prefix="scan"
            ) as pool:
                # Each task runs in a copy of the current context so workers
                # inherit the bound scan_id.
                futures = {
                    pool.submit(
                        contextvars.copy_context().run, _process_ref, pipeline, source, sink, ref
                    ): ref
                    for ref in refs
                }
                for future in as_completed(futures):
                    ref = futures[future]
                    try:
                        outcome = future.result()
                    except AuthorizationRequiredError:
                        for pending in futures:
                            pending.cancel()
                        logger.error("scan_authorization_lost", message_id=ref.id)
                        raise
                    except Exception as exc:
                        summary.failed += 1
                        logger.error("message_processing_error", message_id=ref.id, error=str(exc))
                        continue

                    if outcome.accepted:
                        summary.persisted += 1
                    else:
                        summary.filtered_out += 1

        summary.prompt_tokens = usage.prompt_tokens
        summary.completion_tokens = usage.completion_tokens
        summary.estimated_cost_usd = usage.estimated_cost_usd

        logger.info(
            "scan_complete",
            candidates=summary.candidates,
            persisted=summary.persisted,
            filtered_out=summary.filtered_out,
            failed=summary.failed,
            llm_calls=usage.calls,
            cost=f"${summary.estimated_cost_usd:.6f}",
        )
    return summary


def scan_mailbox(
    config: AppConfig,
    session_factory: sessionmaker[Session],
    days_back: Optional[int] = None,
) -> ScanSummary:
    """Scan the configured IMAP mailbox into the database.

    Wires the IMAP source, the configured LLM provider and the SQL sink
    together, then records a ``ScanRun`` row for the finished scan.
    """
    days_back = days_back or config.default_days_back
    started_at = datetime.now(timezone.utc)
    provider = resolve_llm_provider(config)
    sink = SQLRecordSink(session_factory)

    with IMAPMessageSource(config) as source:
        summary = run_scan(config, source, sink, provider, days_back, now=started_at)

    record_scan_run(
        session_factory,
        days_back=summary.days_back,
        candidates=summary.candidates,
        persisted=summary.persisted,
        filtered_out=summary.filtered_out,
        failed=summary.failed,
        started_at=started_at,
    )
    return summary
