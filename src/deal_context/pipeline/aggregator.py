"""
Context aggregation: fan out every branch fetch for a deal and merge the
results into one EnhancedDealContext.

Flow:
1. Fetch the deal record (a missing deal is not fatal)
2. Resolve its associations (company, locations, contacts, salespeople)
3. Concurrently build each entity context, every sub-resource of each
   entity, and the deal-level and tenant-level branches
4. Merge into disjoint fields of the context and return it

Fault isolation: each branch runs through ``_BranchRunner.run`` which turns
any failure into the branch's empty default and records a BranchOutcome.
A failure in the orchestration itself returns the context built so far.
The public entry points never raise, except for caller cancellation.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, TypeVar

from ..clients.document_store import DocumentStore
from ..config import config
from ..errors import AggregationError, ContextError, ValidationError
from ..logging import StageTimer, get_logger, logging_context
from ..models.context import (
    AssociationSummary,
    CompanyContext,
    ContactContext,
    ContactPreferences,
    EnhancedDealContext,
    LocationContext,
    SalespersonContext,
)
from ..models.records import LearningData, ToneSettings
from ..repository import DealContextRepository
from ..resolver import AssociationResolver

logger = get_logger(__name__)

T = TypeVar('T')


def _none() -> None:
    return None


def _require_identifiers(deal_id: str, tenant_id: str) -> None:
    missing = [
        name for name, value in (('deal_id', deal_id), ('tenant_id', tenant_id)) if not value
    ]
    if missing:
        raise ValidationError('Missing required identifiers', context={'missing': missing})


def _discard(fetch: Awaitable[Any]) -> None:
    """Close a branch coroutine that never got to run (deadline hit while queued)."""
    if inspect.iscoroutine(fetch):
        fetch.close()


# =============================================================================
# Outcome records
# =============================================================================


@dataclass
class BranchOutcome:
    """Result of one branch fetch: success, or failure with its reason."""

    name: str
    ok: bool
    error: str | None = None
    error_type: str | None = None
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            'name': self.name,
            'ok': self.ok,
            'error': self.error,
            'error_type': self.error_type,
            'duration_ms': round(self.duration_ms, 2),
        }


@dataclass
class AggregationReport:
    """Inspectable record of how a context was assembled."""

    deal_id: str
    tenant_id: str
    user_id: str | None = None

    deal_found: bool = False
    associations: AssociationSummary = field(default_factory=AssociationSummary)
    outcomes: list[BranchOutcome] = field(default_factory=list)

    # Failures outside any single branch
    orchestration_errors: list[str] = field(default_factory=list)

    # Timing
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None
    processing_time_ms: int | None = None
    stage_timings: dict[str, float] = field(default_factory=dict)

    @property
    def failed(self) -> list[BranchOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def failed_branches(self) -> dict[str, str]:
        """Branch name -> failure reason."""
        return {o.name: o.error or '' for o in self.failed}

    def outcomes_by_name(self) -> dict[str, BranchOutcome]:
        return {o.name: o for o in self.outcomes}

    @property
    def branch_count(self) -> int:
        return len(self.outcomes)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def degraded(self) -> bool:
        """True when any branch or the orchestration itself failed."""
        return self.failure_count > 0 or bool(self.orchestration_errors)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'deal_id': self.deal_id,
            'tenant_id': self.tenant_id,
            'user_id': self.user_id,
            'deal_found': self.deal_found,
            'dropped_association_entries': self.associations.dropped_entries,
            'branch_count': self.branch_count,
            'failure_count': self.failure_count,
            'failed_branches': self.failed_branches,
            'orchestration_errors': self.orchestration_errors,
            'degraded': self.degraded,
            'processing_time_ms': self.processing_time_ms,
            'stage_timings': self.stage_timings,
        }


@dataclass
class AggregationResult:
    context: EnhancedDealContext
    report: AggregationReport


# =============================================================================
# Branch runner
# =============================================================================


class _BranchRunner:
    """
    Runs branch coroutines under one shared deadline and a concurrency cap,
    converting every failure into the branch's empty default.
    """

    def __init__(
        self,
        report: AggregationReport,
        deadline: float | None,
        limiter: asyncio.Semaphore,
    ):
        self.report = report
        self.deadline = deadline
        self.limiter = limiter

    async def run(
        self,
        name: str,
        fetch: Awaitable[T],
        default: Callable[[], T],
    ) -> T:
        started = time.perf_counter()
        try:
            async with asyncio.timeout_at(self.deadline):
                async with self.limiter:
                    value = await fetch
        except TimeoutError as e:
            _discard(fetch)
            reason = 'deadline exceeded' if self._deadline_passed() else str(e) or 'timeout'
            return self._fail(name, started, reason, type(e).__name__, default)
        except Exception as e:
            _discard(fetch)
            return self._fail(name, started, str(e), type(e).__name__, default)

        self.report.outcomes.append(
            BranchOutcome(name=name, ok=True, duration_ms=(time.perf_counter() - started) * 1000)
        )
        return value

    def _deadline_passed(self) -> bool:
        return self.deadline is not None and asyncio.get_running_loop().time() >= self.deadline

    def _fail(
        self,
        name: str,
        started: float,
        reason: str,
        error_type: str,
        default: Callable[[], T],
    ) -> T:
        self.report.outcomes.append(
            BranchOutcome(
                name=name,
                ok=False,
                error=reason,
                error_type=error_type,
                duration_ms=(time.perf_counter() - started) * 1000,
            )
        )
        logger.warning(
            'aggregator.branch_failed',
            branch=name,
            error=reason,
            error_type=error_type,
        )
        return default()


# =============================================================================
# ContextAggregator
# =============================================================================


class ContextAggregator:
    """
    Builds an EnhancedDealContext from (deal_id, tenant_id, user_id).

    Orchestrates:
    - DealContextRepository: one typed read per branch
    - AssociationResolver: which related entities to expand

    Usage:
        aggregator = ContextAggregator(store)
        context = await aggregator.get_enhanced_deal_context(deal_id, tenant_id, user_id)
    """

    def __init__(
        self,
        store: DocumentStore,
        timeout_seconds: float | None = None,
        max_concurrency: int | None = None,
        resolver: AssociationResolver | None = None,
    ):
        """
        Args:
            store: Document store client shared by all branches
            timeout_seconds: Deadline for a whole aggregation; None/0 disables it
                             (defaults to config.CONTEXT_TIMEOUT_SECONDS)
            max_concurrency: Cap on in-flight store reads per aggregation
                             (defaults to config.MAX_CONCURRENT_FETCHES)
            resolver: Association resolver (defaults to AssociationResolver())
        """
        if timeout_seconds is None:
            timeout_seconds = config.CONTEXT_TIMEOUT_SECONDS
        self.timeout_seconds = timeout_seconds or None
        self.max_concurrency = max(1, max_concurrency or config.MAX_CONCURRENT_FETCHES)
        self.repository = DealContextRepository(store)
        self.resolver = resolver or AssociationResolver()

    async def get_enhanced_deal_context(
        self,
        deal_id: str,
        tenant_id: str,
        user_id: str | None = None,
    ) -> EnhancedDealContext:
        """Best-effort context for a deal. Never raises."""
        result = await self.aggregate(deal_id, tenant_id, user_id)
        return result.context

    async def aggregate(
        self,
        deal_id: str,
        tenant_id: str,
        user_id: str | None = None,
        timeout_seconds: float | None = None,
    ) -> AggregationResult:
        """
        Aggregate a deal context and report how each branch fared.

        Args:
            deal_id: Deal identifier
            tenant_id: Tenant namespace
            user_id: Requesting user (logged only)
            timeout_seconds: Per-call override of the aggregation deadline

        Returns:
            AggregationResult with the context and its AggregationReport
        """
        timer = StageTimer()
        context = EnhancedDealContext()
        report = AggregationReport(deal_id=deal_id, tenant_id=tenant_id, user_id=user_id)

        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout else None
        run = _BranchRunner(report, deadline, asyncio.Semaphore(self.max_concurrency)).run

        with logging_context(tenant_id=tenant_id, deal_id=deal_id):
            logger.info('aggregator.started', user_id=user_id, timeout_seconds=timeout)

            try:
                _require_identifiers(deal_id, tenant_id)

                with timer.stage('deal'):
                    context.deal = await run(
                        'deal.record', self.repository.get_deal(tenant_id, deal_id), _none
                    )
                report.deal_found = context.deal is not None
                if context.deal is None:
                    logger.warning('aggregator.deal_not_found')

                resolved = self.resolver.resolve(context.deal)
                context.associations = resolved.to_summary()
                report.associations = context.associations

                with timer.stage('fan_out'):
                    await self._fan_out(run, context, report, tenant_id, deal_id)

            except Exception as e:
                error = e if isinstance(e, ContextError) else AggregationError(
                    str(e), context={'cause': type(e).__name__}
                )
                logger.error(
                    'aggregator.orchestration_failed',
                    error=str(error),
                    error_type=type(error).__name__,
                )
                report.orchestration_errors.append(f'{type(error).__name__}: {error}')

            report.completed_at = datetime.now()
            report.processing_time_ms = int(timer.total_ms)
            report.stage_timings = timer.stages.copy()

            logger.info(
                'aggregator.complete',
                deal_found=report.deal_found,
                branches=report.branch_count,
                failed=report.failure_count,
                **context.counts(),
                **timer.summary(),
            )

        return AggregationResult(context=context, report=report)

    # =========================================================================
    # Fan-out
    # =========================================================================

    async def _fan_out(
        self,
        run: Callable[..., Awaitable[Any]],
        context: EnhancedDealContext,
        report: AggregationReport,
        tenant_id: str,
        deal_id: str,
    ) -> None:
        """Run every entity and deal-level branch group concurrently and merge."""
        summary = context.associations

        groups: dict[str, Awaitable[Any]] = {
            'company': self._optional_company(run, tenant_id, summary.company_id),
            'locations': asyncio.gather(
                *(self._location_context(run, tenant_id, lid) for lid in summary.location_ids)
            ),
            'contacts': asyncio.gather(
                *(self._contact_context(run, tenant_id, cid) for cid in summary.contact_ids)
            ),
            'salespeople': asyncio.gather(
                *(self._salesperson_context(run, tenant_id, sid) for sid in summary.salesperson_ids)
            ),
            'deal_branches': self._deal_branches(run, context, tenant_id, deal_id),
        }

        outcomes = await asyncio.gather(*groups.values(), return_exceptions=True)

        for name, outcome in zip(groups.keys(), outcomes):
            if isinstance(outcome, BaseException):
                logger.error(
                    'aggregator.group_failed',
                    group=name,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
                report.orchestration_errors.append(
                    f'{name}: {type(outcome).__name__}: {outcome}'
                )
                continue

            if name == 'company':
                context.company = outcome
            elif name == 'locations':
                context.locations = list(outcome)
            elif name == 'contacts':
                context.contacts = list(outcome)
            elif name == 'salespeople':
                context.salespeople = list(outcome)

    async def _optional_company(
        self,
        run: Callable[..., Awaitable[Any]],
        tenant_id: str,
        company_id: str | None,
    ) -> CompanyContext | None:
        if not company_id:
            return None
        return await self._company_context(run, tenant_id, company_id)

    async def _deal_branches(
        self,
        run: Callable[..., Awaitable[Any]],
        context: EnhancedDealContext,
        tenant_id: str,
        deal_id: str,
    ) -> None:
        """Deal-scoped sub-resources plus the tenant learning data."""
        repo = self.repository
        (
            context.notes,
            context.communications,
            context.activities,
            context.tasks,
            context.tone_settings,
            context.ai_inferences,
            context.learning_data,
        ) = await asyncio.gather(
            run('deal.notes', repo.get_notes(tenant_id, 'deal', deal_id), list),
            run('deal.communications', repo.get_deal_communications(tenant_id, deal_id), list),
            run('deal.activities', repo.get_deal_activities(tenant_id, deal_id), list),
            run('deal.tasks', repo.get_tasks(tenant_id, 'deal', deal_id), list),
            run('deal.tone_settings', repo.get_tone_settings(tenant_id, deal_id), ToneSettings),
            run('deal.ai_inferences', repo.get_ai_inferences(tenant_id, 'deal', deal_id), list),
            run('tenant.learning_data', repo.get_learning_data(tenant_id), LearningData),
        )

    # =========================================================================
    # Entity contexts
    # =========================================================================

    async def _company_context(
        self,
        run: Callable[..., Awaitable[Any]],
        tenant_id: str,
        company_id: str,
    ) -> CompanyContext:
        repo = self.repository
        prefix = f'company[{company_id}]'
        company, notes, communications, tasks, tone, inferences, activity = await asyncio.gather(
            run(f'{prefix}.record', repo.get_company(tenant_id, company_id), _none),
            run(f'{prefix}.notes', repo.get_notes(tenant_id, 'company', company_id), list),
            run(
                f'{prefix}.communications',
                repo.get_communications(tenant_id, 'companyId', company_id),
                list,
            ),
            run(f'{prefix}.tasks', repo.get_tasks(tenant_id, 'company', company_id), list),
            run(f'{prefix}.tone_settings', repo.get_tone_settings(tenant_id, company_id), ToneSettings),
            run(
                f'{prefix}.ai_inferences',
                repo.get_ai_inferences(tenant_id, 'company', company_id),
                list,
            ),
            run(f'{prefix}.recent_activity', repo.get_company_activity(tenant_id, company_id), list),
        )
        return CompanyContext(
            company=company,
            notes=notes,
            communications=communications,
            tasks=tasks,
            tone_settings=tone,
            ai_inferences=inferences,
            recent_activity=activity,
            associations=self.resolver.resolve_entity(company.associations if company else None),
        )

    async def _location_context(
        self,
        run: Callable[..., Awaitable[Any]],
        tenant_id: str,
        location_id: str,
    ) -> LocationContext:
        repo = self.repository
        prefix = f'location[{location_id}]'
        location, notes, tasks, tone, inferences = await asyncio.gather(
            run(f'{prefix}.record', repo.get_location(tenant_id, location_id), _none),
            run(f'{prefix}.notes', repo.get_notes(tenant_id, 'location', location_id), list),
            run(f'{prefix}.tasks', repo.get_tasks(tenant_id, 'location', location_id), list),
            run(f'{prefix}.tone_settings', repo.get_tone_settings(tenant_id, location_id), ToneSettings),
            run(
                f'{prefix}.ai_inferences',
                repo.get_ai_inferences(tenant_id, 'location', location_id),
                list,
            ),
        )
        return LocationContext(
            location=location,
            notes=notes,
            tasks=tasks,
            tone_settings=tone,
            ai_inferences=inferences,
            associations=self.resolver.resolve_entity(location.associations if location else None),
        )

    async def _contact_context(
        self,
        run: Callable[..., Awaitable[Any]],
        tenant_id: str,
        contact_id: str,
    ) -> ContactContext:
        repo = self.repository
        prefix = f'contact[{contact_id}]'
        contact, notes, communications, tasks, tone, inferences = await asyncio.gather(
            run(f'{prefix}.record', repo.get_contact(tenant_id, contact_id), _none),
            run(f'{prefix}.notes', repo.get_notes(tenant_id, 'contact', contact_id), list),
            run(
                f'{prefix}.communications',
                repo.get_communications(tenant_id, 'contactId', contact_id),
                list,
            ),
            run(f'{prefix}.tasks', repo.get_tasks(tenant_id, 'contact', contact_id), list),
            run(f'{prefix}.tone_settings', repo.get_tone_settings(tenant_id, contact_id), ToneSettings),
            run(
                f'{prefix}.ai_inferences',
                repo.get_ai_inferences(tenant_id, 'contact', contact_id),
                list,
            ),
        )

        profile = contact.contact_profile if contact else None
        preferences = ContactPreferences()
        if profile is not None:
            preferences = ContactPreferences(
                contact_method=profile.contact_method,
                communication_style=profile.communication_style,
                preferred_contact_time=profile.preferred_contact_time,
            )

        return ContactContext(
            contact=contact,
            notes=notes,
            communications=communications,
            tasks=tasks,
            tone_settings=tone,
            ai_inferences=inferences,
            deal_role=profile.deal_role if profile else None,
            personality=profile.personality if profile else None,
            preferences=preferences,
            associations=self.resolver.resolve_entity(contact.associations if contact else None),
        )

    async def _salesperson_context(
        self,
        run: Callable[..., Awaitable[Any]],
        tenant_id: str,
        salesperson_id: str,
    ) -> SalespersonContext:
        repo = self.repository
        prefix = f'salesperson[{salesperson_id}]'
        salesperson, notes, tasks, tone, inferences, performance = await asyncio.gather(
            run(f'{prefix}.record', repo.get_salesperson(tenant_id, salesperson_id), _none),
            run(f'{prefix}.notes', repo.get_notes(tenant_id, 'salesperson', salesperson_id), list),
            run(f'{prefix}.tasks', repo.get_assigned_tasks(tenant_id, salesperson_id), list),
            run(
                f'{prefix}.tone_settings',
                repo.get_tone_settings(tenant_id, salesperson_id),
                ToneSettings,
            ),
            run(
                f'{prefix}.ai_inferences',
                repo.get_ai_inferences(tenant_id, 'salesperson', salesperson_id),
                list,
            ),
            run(
                f'{prefix}.performance',
                repo.get_salesperson_performance(tenant_id, salesperson_id),
                _none,
            ),
        )
        return SalespersonContext(
            salesperson=salesperson,
            notes=notes,
            tasks=tasks,
            tone_settings=tone,
            ai_inferences=inferences,
            performance=performance,
            associations=self.resolver.resolve_entity(
                salesperson.associations if salesperson else None
            ),
        )


async def get_enhanced_deal_context(
    store: DocumentStore,
    deal_id: str,
    tenant_id: str,
    user_id: str | None = None,
    timeout_seconds: float | None = None,
) -> EnhancedDealContext:
    """Convenience wrapper: aggregate with a one-off ContextAggregator. Never raises."""
    aggregator = ContextAggregator(store, timeout_seconds=timeout_seconds)
    return await aggregator.get_enhanced_deal_context(deal_id, tenant_id, user_id)
