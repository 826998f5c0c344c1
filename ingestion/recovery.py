"""
Error Classifier & Recovery Engine.

Every pipeline failure goes through ``RecoveryEngine.handle_error``:

1. normalize the raw exception into an ``ETLError`` (phase decides the type)
2. log it to the structured log and the durable error store
3. pick a strategy with ``select_strategy`` (a pure decision table)
4. execute the strategy and report a ``RecoveryOutcome``

A handled retry only means "wait done, try again": the caller re-invokes the
operation. ``execute_with_recovery`` wraps that loop for callers that do not
need finer control.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar, Union
import asyncio
import logging
import traceback

from pydantic import BaseModel

from core.config import settings as default_settings
from core.exceptions import (
    ETLError,
    ETLErrorType,
    ExtractionError,
    TransformationError,
    LoadError,
    ValidationError,
    RecoveryError,
    UnrecoverableError,
    ItemSkippedError,
)
from models.base import ETLPhase, RecoveryStrategy
from schemas.etl import Checkpoint, ErrorStats, JobResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

RecoveryHook = Callable[[ETLError, "RecoveryContext"], Awaitable[Any]]


# ============================================================================
# Options, contexts and outcome
# ============================================================================

@dataclass
class RecoveryOptions:
    """Tuning knobs for the recovery strategies"""
    max_retries: int = 3
    retry_delay_ms: int = 2000
    exponential_backoff: bool = True
    skip_failed_items: bool = True
    notify_on_failure: bool = True
    # attach the current checkpoint to skip records
    use_checkpoint: bool = False

    @classmethod
    def from_settings(cls, settings=None) -> "RecoveryOptions":
        settings = settings or default_settings
        return cls(
            max_retries=settings.MAX_RETRIES,
            retry_delay_ms=settings.RETRY_DELAY_MS,
            exponential_backoff=settings.EXPONENTIAL_BACKOFF,
            skip_failed_items=settings.SKIP_FAILED_ITEMS,
            notify_on_failure=settings.NOTIFY_ON_FAILURE,
        )


@dataclass
class RecoveryContext:
    """
    Call context handed to the engine with a failure.

    Attributes:
        retry_count: Attempts already retried for this operation
        checkpoint: Progress snapshot of the running phase
        partial_result: Progress to report if the job has to be failed
        fallback: Coroutine run by the fallback strategy
        on_skip: Coroutine notified when the item is skipped
    """
    retry_count: int = 0
    checkpoint: Optional[Checkpoint] = None
    partial_result: Optional[JobResult] = None
    fallback: Optional[RecoveryHook] = field(default=None, repr=False)
    on_skip: Optional[RecoveryHook] = field(default=None, repr=False)

    @property
    def item_id(self) -> Optional[str]:
        return None

    def to_log_context(self) -> Dict[str, Any]:
        """JSON-safe view of the context for logs and the error store"""
        data: Dict[str, Any] = {}
        for f in fields(self):
            if f.name in ("fallback", "on_skip", "partial_result"):
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, BaseModel):
                value = value.model_dump(mode="json")
            data[f.name] = value
        return data


@dataclass
class ExtractionContext(RecoveryContext):
    query: Optional[str] = None
    category: Optional[str] = None


@dataclass
class TransformationContext(RecoveryContext):
    item_id: Optional[str] = None


@dataclass
class LoadingContext(RecoveryContext):
    item_id: Optional[str] = None


@dataclass
class RecoveryOutcome:
    """What the engine did about a failure"""
    handled: bool
    strategy: RecoveryStrategy
    retry_count: Optional[int] = None
    error: Optional[BaseException] = None


# ============================================================================
# Classification
# ============================================================================

_PHASE_ERRORS = {
    ETLPhase.EXTRACTION: ExtractionError,
    ETLPhase.TRANSFORMATION: TransformationError,
    ETLPhase.LOADING: LoadError,
    ETLPhase.VALIDATION: ValidationError,
}


def coerce_phase(phase: Union[ETLPhase, str, None]) -> ETLPhase:
    """Unknown phase names map to ``ETLPhase.UNKNOWN``"""
    if isinstance(phase, ETLPhase):
        return phase
    try:
        return ETLPhase(phase)
    except ValueError:
        return ETLPhase.UNKNOWN


def normalize_error(error: Any, phase: Union[ETLPhase, str]) -> ETLError:
    """
    Turn any raised value into an ``ETLError``.

    ``ETLError`` instances pass through untouched. Other exceptions keep
    their message and are chained as the cause; the error type comes from
    the phase. Non-exception values are described as ``"<Phase> error: ..."``.
    """
    if isinstance(error, ETLError):
        return error

    phase = coerce_phase(phase)
    error_class = _PHASE_ERRORS.get(phase, ETLError)

    if isinstance(error, BaseException):
        message = str(error) or type(error).__name__
        return error_class(message, original_exception=error)

    return error_class(f"{phase.value.capitalize()} error: {error}")


def select_strategy(
    error_type: ETLErrorType,
    phase: ETLPhase,
    context: Optional[RecoveryContext] = None
) -> RecoveryStrategy:
    """Decision table mapping an error to its recovery strategy"""
    if error_type in (ETLErrorType.CONNECTION_ERROR, ETLErrorType.TIMEOUT_ERROR):
        return RecoveryStrategy.RETRY

    if error_type == ETLErrorType.VALIDATION_ERROR:
        return RecoveryStrategy.SKIP

    if error_type in (ETLErrorType.AUTHENTICATION_ERROR, ETLErrorType.PERMISSION_ERROR):
        return RecoveryStrategy.NOTIFY_ONLY

    if phase == ETLPhase.EXTRACTION:
        return RecoveryStrategy.RETRY

    if context is not None:
        if phase in (ETLPhase.TRANSFORMATION, ETLPhase.LOADING) and context.item_id:
            return RecoveryStrategy.SKIP

        if context.checkpoint is not None:
            return RecoveryStrategy.CHECKPOINT

    return RecoveryStrategy.NOTIFY_ONLY


def _format_stack(error: ETLError) -> Optional[str]:
    source = error.original_exception or error
    if source.__traceback__ is None:
        return None
    return "".join(traceback.format_exception(type(source), source, source.__traceback__))


# ============================================================================
# Engine
# ============================================================================

class RecoveryEngine:
    """
    Classify ETL failures and apply recovery strategies.

    All collaborators are optional. Without an error store errors are only
    logged, without a recovery store actions are not audited, and without a
    ledger notify-only cannot fail the job.
    """

    def __init__(
        self,
        error_store=None,
        recovery_store=None,
        job_ledger=None,
        options: Optional[RecoveryOptions] = None
    ):
        self.error_store = error_store
        self.recovery_store = recovery_store
        self.job_ledger = job_ledger
        self.options = options or RecoveryOptions.from_settings()

    async def handle_error(
        self,
        error: Any,
        phase: Union[ETLPhase, str],
        job_id: str,
        context: Optional[RecoveryContext] = None,
        options: Optional[RecoveryOptions] = None
    ) -> RecoveryOutcome:
        phase = coerce_phase(phase)
        context = context or RecoveryContext()
        options = options or self.options

        etl_error = normalize_error(error, phase)
        await self.log_error(etl_error, phase, job_id, context)

        strategy = select_strategy(etl_error.error_type, phase, context)
        return await self.execute_strategy(strategy, etl_error, job_id, context, options)

    async def log_error(
        self,
        error: ETLError,
        phase: ETLPhase,
        job_id: str,
        context: Optional[RecoveryContext] = None
    ) -> None:
        """Write the error to the log and the error store. Never raises."""
        context = context or RecoveryContext()
        stack = _format_stack(error)

        logger.error(
            error.message,
            extra={"etl_context": {
                **error.to_dict(),
                "job_id": job_id,
                "item_id": context.item_id,
                "phase": phase.value,
                "stack": stack,
            }}
        )

        if self.error_store is None:
            return

        try:
            await self.error_store.record_error(
                job_id=job_id,
                error_type=error.error_type.value,
                phase=phase.value,
                message=error.message,
                item_id=context.item_id,
                stack=stack,
                context={**context.to_log_context(), **error.context},
            )
        except Exception as e:
            logger.error(f"Failed to store ETL error for job {job_id}: {str(e)}")

    async def execute_strategy(
        self,
        strategy: RecoveryStrategy,
        error: ETLError,
        job_id: str,
        context: RecoveryContext,
        options: Optional[RecoveryOptions] = None
    ) -> RecoveryOutcome:
        """Run one strategy; a failing executor yields an unhandled outcome"""
        options = options or self.options
        executors = {
            RecoveryStrategy.RETRY: self._execute_retry,
            RecoveryStrategy.SKIP: self._execute_skip,
            RecoveryStrategy.FALLBACK: self._execute_fallback,
            RecoveryStrategy.CHECKPOINT: self._execute_checkpoint,
            RecoveryStrategy.NOTIFY_ONLY: self._execute_notify,
        }

        try:
            return await executors[strategy](error, job_id, context, options)
        except Exception as e:
            logger.exception(f"Recovery strategy {strategy.value} failed for job {job_id}")
            return RecoveryOutcome(handled=False, strategy=strategy, error=e)

    # ------------------------------------------------------------------
    # Strategy executors
    # ------------------------------------------------------------------

    async def _execute_retry(self, error, job_id, context, options) -> RecoveryOutcome:
        retry_count = context.retry_count or 0

        if retry_count >= options.max_retries:
            logger.warning(
                f"Max retries ({options.max_retries}) exceeded for job {job_id}",
                extra={"etl_context": {"job_id": job_id, "item_id": context.item_id, "retry_count": retry_count}}
            )
            if options.skip_failed_items:
                outcome = await self._execute_skip(error, job_id, context, options)
                outcome.retry_count = retry_count
                return outcome

            return RecoveryOutcome(
                handled=False,
                strategy=RecoveryStrategy.RETRY,
                retry_count=retry_count,
                error=ETLError(
                    f"Max retries ({options.max_retries}) exceeded",
                    error_type=error.error_type,
                    original_exception=error
                )
            )

        delay_ms = options.retry_delay_ms
        if options.exponential_backoff:
            delay_ms = delay_ms * (2 ** retry_count)

        logger.info(
            "Retrying operation after error",
            extra={"etl_context": {
                "job_id": job_id,
                "item_id": context.item_id,
                "retry_count": retry_count + 1,
                "retry_delay_ms": delay_ms,
                "error": error.message,
            }}
        )
        await asyncio.sleep(delay_ms / 1000)

        return RecoveryOutcome(
            handled=True,
            strategy=RecoveryStrategy.RETRY,
            retry_count=retry_count + 1
        )

    async def _execute_skip(self, error, job_id, context, options) -> RecoveryOutcome:
        logger.warning(
            "Skipping failed item and continuing",
            extra={"etl_context": {"job_id": job_id, "item_id": context.item_id, "error": error.message}}
        )

        if context.on_skip is not None:
            try:
                await context.on_skip(error, context)
            except Exception as e:
                logger.error(f"Skip hook failed for job {job_id}: {str(e)}")

        checkpoint_data = None
        if options.use_checkpoint and context.checkpoint is not None:
            checkpoint_data = context.checkpoint.to_storage()

        try:
            await self._record_action(
                job_id, RecoveryStrategy.SKIP, error,
                item_id=context.item_id,
                checkpoint_data=checkpoint_data
            )
        except Exception as e:
            logger.error(f"Failed to store recovery action for job {job_id}: {str(e)}")

        return RecoveryOutcome(handled=True, strategy=RecoveryStrategy.SKIP)

    async def _execute_fallback(self, error, job_id, context, options) -> RecoveryOutcome:
        if context.fallback is None:
            return RecoveryOutcome(
                handled=False,
                strategy=RecoveryStrategy.FALLBACK,
                error=ETLError("No fallback function provided in context", error_type=error.error_type)
            )

        logger.warning(
            "Using fallback method after error",
            extra={"etl_context": {"job_id": job_id, "item_id": context.item_id, "error": error.message}}
        )

        try:
            await context.fallback(error, context)
            await self._record_action(job_id, RecoveryStrategy.FALLBACK, error, item_id=context.item_id)
        except Exception as e:
            return RecoveryOutcome(handled=False, strategy=RecoveryStrategy.FALLBACK, error=e)

        return RecoveryOutcome(handled=True, strategy=RecoveryStrategy.FALLBACK)

    async def _execute_checkpoint(self, error, job_id, context, options) -> RecoveryOutcome:
        if context.checkpoint is None:
            return RecoveryOutcome(
                handled=False,
                strategy=RecoveryStrategy.CHECKPOINT,
                error=ETLError("No checkpoint data provided in context", error_type=error.error_type)
            )

        checkpoint_data = context.checkpoint.to_storage()
        logger.info(
            "Recovering from checkpoint after error",
            extra={"etl_context": {"job_id": job_id, "checkpoint": checkpoint_data, "error": error.message}}
        )

        try:
            await self._record_action(
                job_id, RecoveryStrategy.CHECKPOINT, error,
                checkpoint_data=checkpoint_data
            )
        except Exception as e:
            return RecoveryOutcome(handled=False, strategy=RecoveryStrategy.CHECKPOINT, error=e)

        return RecoveryOutcome(handled=True, strategy=RecoveryStrategy.CHECKPOINT)

    async def _execute_notify(self, error, job_id, context, options) -> RecoveryOutcome:
        logger.error(
            "Critical ETL error requires attention",
            extra={"etl_context": {
                "job_id": job_id,
                "item_id": context.item_id,
                "error_type": error.error_type.value,
                "error": error.message,
            }}
        )

        if options.notify_on_failure and self.job_ledger is not None:
            partial = context.partial_result or JobResult(processed=0, failed=1, templates=0)
            try:
                await self.job_ledger.fail_job(job_id, error.message, partial)
            except Exception as e:
                logger.error(f"Failed to mark job {job_id} as failed: {str(e)}")

        return RecoveryOutcome(handled=True, strategy=RecoveryStrategy.NOTIFY_ONLY)

    async def _record_action(
        self,
        job_id: str,
        strategy: RecoveryStrategy,
        error: ETLError,
        item_id: Optional[str] = None,
        checkpoint_data: Optional[Dict[str, Any]] = None
    ) -> None:
        if self.recovery_store is None:
            return
        await self.recovery_store.record_action(
            job_id=job_id,
            strategy=strategy.value,
            error=error.message,
            item_id=item_id,
            checkpoint_data=checkpoint_data
        )

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    async def get_error_stats(self, job_id: str) -> ErrorStats:
        """Error counts of a job; zeroed when the store is unavailable"""
        if self.error_store is None:
            return ErrorStats()
        try:
            return await self.error_store.get_stats(job_id)
        except Exception as e:
            logger.error(f"Failed to get error stats for job {job_id}: {str(e)}")
            return ErrorStats()

    async def get_recovery_actions(self, job_id: str) -> List[Any]:
        """Recovery actions of a job, oldest first"""
        if self.recovery_store is None:
            return []
        try:
            return await self.recovery_store.list_actions(job_id)
        except Exception as e:
            logger.error(f"Failed to get recovery actions for job {job_id}: {str(e)}")
            return []

    # ------------------------------------------------------------------
    # Retry loop
    # ------------------------------------------------------------------

    async def execute_with_recovery(
        self,
        operation: Callable[[], Awaitable[T]],
        phase: Union[ETLPhase, str],
        job_id: str,
        context: Optional[RecoveryContext] = None,
        options: Optional[RecoveryOptions] = None
    ) -> T:
        """
        Await ``operation`` and recover from its failures.

        Handled retries re-invoke the operation with the incremented retry
        count.

        Raises:
            ItemSkippedError: The failure was resolved by skipping
            UnrecoverableError: Any other outcome
        """
        phase = coerce_phase(phase)
        context = context or RecoveryContext()

        while True:
            try:
                return await operation()
            except RecoveryError:
                raise
            except Exception as e:
                etl_error = normalize_error(e, phase)
                outcome = await self.handle_error(etl_error, phase, job_id, context, options)

                if outcome.handled and outcome.strategy == RecoveryStrategy.RETRY:
                    context = replace(context, retry_count=outcome.retry_count)
                    continue

                if outcome.handled and outcome.strategy == RecoveryStrategy.SKIP:
                    raise ItemSkippedError(
                        f"Skipped after {phase.value} error: {etl_error.message}",
                        outcome=outcome,
                        error=etl_error,
                        partial_result=context.partial_result
                    )

                raise UnrecoverableError(
                    f"Unrecoverable {phase.value} error ({outcome.strategy.value}): {etl_error.message}",
                    outcome=outcome,
                    error=etl_error,
                    partial_result=context.partial_result
                )
