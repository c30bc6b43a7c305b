"""
Scan orchestrator for Accord.

Runs assessment phases with partial-failure isolation, optional parallel
execution and progress reporting, then aggregates the phase results into
an Assessment with an overall score, risk profile and executive summary.
"""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timezone

from accord.catalog.cache import CatalogCache
from accord.cloud import InMemoryResourceProvider, ResourceProvider
from accord.config import AccordConfiguration, OrchestratorOptions
from accord.models import (
    Assessment,
    AssessmentStatus,
    ComplianceStatus,
    Finding,
    FindingCollection,
    PhaseResult,
    RiskLevel,
    RiskProfile,
    Scope,
    Severity,
)
from accord.observability.logging import AccordLogger, get_logger
from accord.progress import ProgressSink, ProgressTracker
from accord.remediation import FindingEnricher
from accord.scanners.registry import ControlDispatcher, create_default_registry
from accord.scanning.cancellation import AssessmentCanceledError, CancellationToken
from accord.scanning.phases import Phase, PhaseContext
from accord.storage import EvidenceStore, get_evidence_store

logger = logging.getLogger(__name__)

MAX_TOP_RISKS = 5
SUMMARY_FOCUS_AREAS = 3
HIGH_RISK_THRESHOLD = 5
MEDIUM_RISK_THRESHOLD = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clip(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def is_reportable(finding: Finding) -> bool:
    """Findings counted as issues: violations and unverified controls."""
    return finding.is_violation() or (
        finding.compliance_status == ComplianceStatus.MANUAL_REVIEW_REQUIRED
    )


def calculate_overall_score(phases: list[PhaseResult]) -> float:
    """Unweighted mean of phase scores in [0, 100]; 0 without phases."""
    if not phases:
        return 0.0
    return _clip(sum(p.score for p in phases) / len(phases), 0.0, 100.0)


def determine_risk_level(severity_counts: dict[Severity, int]) -> RiskLevel:
    if severity_counts.get(Severity.CRITICAL, 0) > 0:
        return RiskLevel.CRITICAL
    if severity_counts.get(Severity.HIGH, 0) > HIGH_RISK_THRESHOLD:
        return RiskLevel.HIGH
    if severity_counts.get(Severity.MEDIUM, 0) > MEDIUM_RISK_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def top_risk_categories(findings: list[Finding], limit: int = MAX_TOP_RISKS) -> list[str]:
    """Distinct categories of high and critical findings, first seen first."""
    categories: list[str] = []
    for finding in findings:
        if finding.severity < Severity.HIGH:
            continue
        category = finding.risk_category()
        if category and category not in categories:
            categories.append(category)
            if len(categories) == limit:
                break
    return categories


def build_risk_profile(
    phases: list[PhaseResult],
    findings: list[Finding],
    severity_counts: dict[Severity, int],
    overall_score: float,
) -> RiskProfile:
    return RiskProfile(
        risk_level=determine_risk_level(severity_counts),
        risk_score=_clip(10.0 - overall_score / 10.0, 0.0, 10.0),
        top_risks=tuple(top_risk_categories(findings)),
        risk_categories={p.domain: 10.0 - p.score / 10.0 for p in phases},
    )


def score_bucket(score: float) -> str:
    if score >= 90:
        return "Excellent"
    if score >= 80:
        return "Good"
    if score >= 70:
        return "Fair"
    return "Needs Improvement"


def build_executive_summary(
    overall_score: float,
    total_findings: int,
    severity_counts: dict[Severity, int],
    top_risks: tuple[str, ...],
) -> str:
    summary = (
        f"Security assessment completed with {score_bucket(overall_score)} "
        f"overall score of {overall_score:.1f}%. "
        f"Identified {total_findings} findings including "
        f"{severity_counts.get(Severity.CRITICAL, 0)} critical and "
        f"{severity_counts.get(Severity.HIGH, 0)} high-priority issues."
    )
    if top_risks:
        summary += f" Key focus areas: {', '.join(top_risks[:SUMMARY_FOCUS_AREAS])}."
    return summary


class ScanOrchestrator:
    """
    Orchestrates assessment phases for a scope.

    Every phase runs independently: an exception in one phase yields a
    "Not Available" result with the neutral score and never aborts the run.
    """

    def __init__(
        self,
        dispatcher: ControlDispatcher | None = None,
        catalog: CatalogCache | None = None,
        enricher: FindingEnricher | None = None,
        evidence_store: EvidenceStore | None = None,
        options: OrchestratorOptions | None = None,
        event_logger: AccordLogger | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            dispatcher: Control dispatcher passed to control phases
            catalog: Catalog cache; defaults to the dispatcher's catalog
            enricher: Finding enricher applied to every phase's findings
            evidence_store: Optional store for the final assessment
            options: Orchestrator options
            event_logger: Structured event logger
        """
        self.dispatcher = dispatcher
        self.catalog = catalog or (dispatcher.catalog if dispatcher else None)
        self.enricher = enricher or FindingEnricher()
        self.evidence_store = evidence_store
        self.options = options or OrchestratorOptions()
        self._events = event_logger or get_logger("scanning.orchestrator")
        self._lock = threading.Lock()
        self._running = False

    def is_running(self) -> bool:
        """Check if an assessment is currently running."""
        return self._running

    def run_assessment(
        self,
        scope: Scope,
        phases: list[Phase],
        progress: ProgressSink | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Assessment:
        """
        Run phases against a scope and aggregate the results.

        Args:
            scope: Scope to assess
            phases: Phases to run; domains must be unique
            progress: Optional progress renderer or callback
            cancel_token: Optional cancellation token

        Returns:
            Assessment with one PhaseResult per executed phase

        Raises:
            ValueError: If scope is missing or invalid, or phases are invalid
        """
        self._validate(scope, phases)
        selected = [p for p in phases if self.options.is_phase_enabled(p.domain)]
        skipped = len(phases) - len(selected)
        if skipped:
            logger.info(f"Skipping {skipped} phase(s) not enabled in configuration")

        assessment_id = str(uuid.uuid4())
        started_at = _utcnow()
        context = PhaseContext(
            dispatcher=self.dispatcher,
            catalog=self.catalog,
            cancel_token=cancel_token,
            assessment_id=assessment_id,
        )
        tracker = ProgressTracker(len(selected), progress)

        with self._lock:
            self._running = True
        self._events.assessment_started(
            assessment_id, scope.path, [p.domain for p in selected]
        )

        try:
            if self.options.max_workers > 1 and len(selected) > 1:
                outcomes = self._run_parallel(selected, scope, context, tracker)
            else:
                outcomes = self._run_sequential(selected, scope, context, tracker)
        finally:
            with self._lock:
                self._running = False

        canceled = any(o is None for o in outcomes)
        results = [o for o in outcomes if o is not None]

        assessment = self._aggregate(
            assessment_id, scope, results, canceled, started_at
        )
        assessment = self._store_evidence(assessment)

        tracker.finish(f"Assessment {assessment.status.value}")
        self._events.assessment_completed(
            assessment_id,
            assessment.status.value,
            assessment.overall_score,
            len(assessment.all_findings),
            assessment.duration_seconds,
        )
        return assessment

    def _validate(self, scope: Scope, phases: list[Phase]) -> None:
        if scope is None or not isinstance(scope, Scope) or not scope.is_valid():
            raise ValueError("A scope with a subscription id is required")
        if phases is None:
            raise ValueError("Phases cannot be None")
        domains: set[str] = set()
        for phase in phases:
            if not isinstance(phase, Phase):
                raise ValueError(f"Not a Phase: {phase!r}")
            if phase.domain in domains:
                raise ValueError(f"Duplicate phase domain: {phase.domain}")
            domains.add(phase.domain)

    def _run_sequential(
        self,
        phases: list[Phase],
        scope: Scope,
        context: PhaseContext,
        tracker: ProgressTracker,
    ) -> list[PhaseResult | None]:
        outcomes: list[PhaseResult | None] = []
        for phase in phases:
            outcome = self._run_phase(phase, scope, context, tracker)
            outcomes.append(outcome)
            if outcome is None:
                break
        return outcomes

    def _run_parallel(
        self,
        phases: list[Phase],
        scope: Scope,
        context: PhaseContext,
        tracker: ProgressTracker,
    ) -> list[PhaseResult | None]:
        """Fan phases out on a thread pool and collect them in declared order."""
        with ThreadPoolExecutor(max_workers=self.options.max_workers) as executor:
            futures = [
                executor.submit(self._run_phase, phase, scope, context, tracker)
                for phase in phases
            ]
            outcomes: list[PhaseResult | None] = []
            for phase, future in zip(phases, futures):
                try:
                    outcomes.append(future.result())
                except Exception as e:
                    logger.error(f"Phase {phase.domain} crashed its worker: {e}")
                    outcomes.append(
                        PhaseResult.not_available(phase.domain, f"{type(e).__name__}: {e}")
                    )
        return outcomes

    def _run_phase(
        self,
        phase: Phase,
        scope: Scope,
        context: PhaseContext,
        tracker: ProgressTracker,
    ) -> PhaseResult | None:
        """
        Run one phase behind the isolation boundary.

        Returns:
            PhaseResult, or None when the run was canceled before or during
            the phase
        """
        token = context.cancel_token
        if token is not None and token.is_canceled:
            return None

        tracker.phase_started(phase.domain)
        started_at = _utcnow()
        try:
            result = phase.run(scope, context)
            if not isinstance(result, PhaseResult):
                raise TypeError(
                    f"{phase.domain} returned {type(result).__name__}, expected PhaseResult"
                )
            result = replace(
                result, findings=tuple(self.enricher.enrich_all(result.findings))
            )
        except AssessmentCanceledError:
            logger.info(f"Phase {phase.domain} interrupted by cancellation")
            return None
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            self._events.phase_failed(context.assessment_id, phase.domain, error)
            result = PhaseResult.not_available(phase.domain, error, started_at)
            tracker.phase_finished(phase.domain, f"{phase.domain} not available")
            return result

        duration = (_utcnow() - started_at).total_seconds()
        self._events.phase_completed(
            context.assessment_id,
            phase.domain,
            result.score,
            len(result.findings),
            duration,
        )
        tracker.phase_finished(
            phase.domain, f"{phase.domain} scored {result.score:.1f}"
        )
        return result

    def _aggregate(
        self,
        assessment_id: str,
        scope: Scope,
        results: list[PhaseResult],
        canceled: bool,
        started_at: datetime,
    ) -> Assessment:
        all_findings = [f for r in results for f in r.findings]
        reportable = [f for f in all_findings if is_reportable(f)]
        severity_counts = FindingCollection(reportable).count_by_severity()

        overall = calculate_overall_score(results)
        risk_profile = build_risk_profile(results, reportable, severity_counts, overall)
        summary = build_executive_summary(
            overall, len(reportable), severity_counts, risk_profile.top_risks
        )

        if canceled:
            status = AssessmentStatus.CANCELED
        elif any(not r.is_available for r in results):
            status = AssessmentStatus.COMPLETED_WITH_ERRORS
        else:
            status = AssessmentStatus.COMPLETED

        return Assessment(
            scope=scope,
            phases={r.domain: r for r in results},
            all_findings=tuple(all_findings),
            severity_counts=severity_counts,
            overall_score=overall,
            risk_profile=risk_profile,
            executive_summary=summary,
            status=status,
            started_at=started_at,
            ended_at=_utcnow(),
            assessment_id=assessment_id,
            catalog_version=self._catalog_version(canceled),
        )

    def _catalog_version(self, canceled: bool) -> str:
        if self.catalog is None:
            return "Unknown"
        if canceled:
            return self.catalog.peek_version()
        return self.catalog.get_version()

    def _store_evidence(self, assessment: Assessment) -> Assessment:
        if self.evidence_store is None:
            return assessment
        context = {
            "assessment_id": assessment.assessment_id,
            "scope": assessment.scope.path,
            "status": assessment.status.value,
        }
        try:
            uri = self.evidence_store.store_scan_results(
                "assessment", assessment.to_dict(), context
            )
        except Exception as e:
            logger.warning(f"Failed to store assessment evidence: {e}")
            return assessment
        logger.info(f"Stored assessment evidence at {uri}")
        return replace(assessment, evidence_uri=uri)


def create_orchestrator(
    config: AccordConfiguration | None = None,
    provider: ResourceProvider | None = None,
    catalog: CatalogCache | None = None,
) -> ScanOrchestrator:
    """
    Build an orchestrator wired from a configuration.

    Args:
        config: Configuration; defaults are used when omitted
        provider: Resource provider; an empty in-memory provider when omitted
        catalog: Catalog cache; built from config.catalog when omitted

    Returns:
        ScanOrchestrator with the default checker registry
    """
    config = config or AccordConfiguration()
    catalog = catalog or CatalogCache(config.catalog)
    dispatcher = ControlDispatcher(
        create_default_registry(),
        provider or InMemoryResourceProvider(),
        catalog=catalog,
    )

    evidence = config.evidence
    if evidence.backend == "local":
        store = get_evidence_store("local", db_path=evidence.db_path)
    elif evidence.backend == "azure_blob":
        store = get_evidence_store(
            "azure_blob",
            account_name=evidence.account_name,
            container=evidence.container,
            prefix=evidence.prefix,
        )
    else:
        store = get_evidence_store(evidence.backend)

    return ScanOrchestrator(
        dispatcher=dispatcher,
        catalog=catalog,
        evidence_store=store,
        options=config.orchestrator,
    )
