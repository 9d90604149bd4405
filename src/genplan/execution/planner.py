"""Multi-step structured generation.

A large generation task is split into schema-scoped steps so that no single
response risks running into the model's output cap. Steps run strictly in
order because later prompts embed earlier results: a step can reference a
prior step's output (or a caller-supplied variable) with ``{{name}}``
placeholders in its prompt, or list it in ``context_keys`` to have it attached
as a separate text part.

Every step contributes one or more top-level keys to a ``CompositePlan``.
Keys are owned by exactly one step; a plan that declares the same key twice is
rejected before any model call is made. If any step fails after retries the
whole run fails with the classified error and the partial plan is discarded.
"""

import inspect
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from genplan.ai_providers.base import Attachment, BaseProvider, GenerationRequest, ModelTier
from genplan.ai_providers.schema import SchemaNode
from genplan.config.settings import CoreSettings
from genplan.utils.logger import get_logger
from genplan.utils.substitution import find_placeholders, format_value, render_placeholders

from .errors import ErrorKind, GenerationError, Result, Success, fail
from .interpreter import interpret, interpret_text
from .invoker import ModelInvoker

logger = get_logger(__name__)

# Placeholders injected into each iteration of a RepeatedStep
REPEAT_VARIABLES = ("index", "number", "count")


class PlanConfigurationError(ValueError):
    """Raised when a step list is inconsistent (duplicate keys, unknown references)."""


class UnresolvedPlaceholderError(PlanConfigurationError):
    """A prompt placeholder path could not be found in the available values."""

    def __init__(self, step_key: str, detail: str):
        super().__init__(f"Step '{step_key}': {detail}")
        self.step_key = step_key
        self.detail = detail


@dataclass(frozen=True)
class ProgressEvent:
    """Fire-and-forget progress notification emitted between steps."""

    message: str
    step_key: Optional[str] = None
    index: int = 0
    total: int = 0


ProgressCallback = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


class CompositePlan:
    """Ordered mapping of step key to parsed document.

    Insertion order is step execution order. Keys are never overwritten.
    """

    def __init__(self):
        self._documents: Dict[str, Any] = {}

    def merge(self, key: str, document: Any) -> None:
        if key in self._documents:
            raise PlanConfigurationError(f"Plan key '{key}' was already produced by an earlier step")
        self._documents[key] = document

    def merge_all(self, documents: Mapping[str, Any]) -> None:
        duplicates = [key for key in documents if key in self._documents]
        if duplicates:
            raise PlanConfigurationError(
                f"Plan keys already produced by an earlier step: {', '.join(duplicates)}"
            )
        for key, document in documents.items():
            self._documents[key] = document

    def __getitem__(self, key: str) -> Any:
        return self._documents[key]

    def __contains__(self, key: object) -> bool:
        return key in self._documents

    def __iter__(self) -> Iterator[str]:
        return iter(self._documents)

    def __len__(self) -> int:
        return len(self._documents)

    def keys(self) -> List[str]:
        return list(self._documents)

    def get(self, key: str, default: Any = None) -> Any:
        return self._documents.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._documents)

    def __repr__(self) -> str:
        return f"CompositePlan(keys={self.keys()!r})"


@dataclass(frozen=True)
class StepSpec:
    """One schema-scoped generation step.

    Attributes:
        key: Step identifier; also the plan key when ``output_keys`` is empty
        prompt: Instructions, may contain ``{{name}}`` placeholders
        schema: Response schema fragment for this step
        output_keys: Top-level keys of the response to merge into the plan
            (fan-out). Empty means the whole document is stored under ``key``.
        context_keys: Variables or earlier plan keys attached as text parts
        attachments: Step-specific inputs
        use_plan_attachments: Whether run-level attachments are sent with this step
        tier: Model tier
        max_output_tokens: Response cap; defaults to the assembler's default
        thinking_budget: Reasoning allowance; defaults to the assembler's default
        description: Human-readable label used for progress and error messages
        free_text: Store the response text as-is instead of extracting JSON
    """

    key: str
    prompt: str
    schema: Optional[SchemaNode] = None
    output_keys: Tuple[str, ...] = ()
    context_keys: Tuple[str, ...] = ()
    attachments: Tuple[Attachment, ...] = ()
    use_plan_attachments: bool = True
    tier: ModelTier = ModelTier.pro
    max_output_tokens: Optional[int] = None
    thinking_budget: Optional[int] = None
    description: Optional[str] = None
    free_text: bool = False

    def __post_init__(self):
        if not self.key:
            raise PlanConfigurationError("Step key must not be empty")
        if self.free_text and (self.schema is not None or self.output_keys):
            raise PlanConfigurationError(
                f"Free-text step '{self.key}' cannot declare a schema or output keys"
            )
        if len(set(self.output_keys)) != len(self.output_keys):
            raise PlanConfigurationError(f"Step '{self.key}' lists an output key twice")
        if self.schema is not None and self.output_keys:
            if self.schema.type != "object":
                raise PlanConfigurationError(
                    f"Step '{self.key}' fans out into keys but its schema is not an object"
                )
            missing = [k for k in self.output_keys if k not in self.schema.property_names]
            if missing:
                raise PlanConfigurationError(
                    f"Step '{self.key}' output keys not in its schema: {', '.join(missing)}"
                )

    @property
    def produced_keys(self) -> Tuple[str, ...]:
        return self.output_keys or (self.key,)

    @property
    def label(self) -> str:
        return self.description or f"plan step '{self.key}'"


@dataclass(frozen=True)
class RepeatedStep(StepSpec):
    """A step template run ``count`` times; results are stored as one list under ``key``.

    Each iteration sees ``{{index}}`` (0-based), ``{{number}}`` (1-based) and
    ``{{count}}`` in addition to the usual variables.
    """

    count: int = 1

    def __post_init__(self):
        super().__post_init__()
        if self.count < 1:
            raise PlanConfigurationError(f"Repeated step '{self.key}' needs a count of at least 1")
        if self.output_keys:
            raise PlanConfigurationError(
                f"Repeated step '{self.key}' collects into a single key and cannot fan out"
            )


def validate_steps(steps: Sequence[StepSpec], variables: Mapping[str, Any]) -> None:
    """Check key ownership and references before anything is sent to the model."""
    owners: Dict[str, str] = {}
    available = set(variables)

    if any(isinstance(step, RepeatedStep) for step in steps):
        reserved = [name for name in REPEAT_VARIABLES if name in variables]
        reserved += [
            key for step in steps for key in step.produced_keys if key in REPEAT_VARIABLES
        ]
        if reserved:
            raise PlanConfigurationError(
                f"'{reserved[0]}' is reserved for repeated steps and cannot be used as a "
                "variable or plan key"
            )

    for step in steps:
        local = set(REPEAT_VARIABLES) if isinstance(step, RepeatedStep) else set()
        for name in find_placeholders(step.prompt):
            if name not in available and name not in local:
                raise PlanConfigurationError(
                    f"Step '{step.key}' references '{name}', which is neither a variable "
                    "nor produced by an earlier step"
                )
        for name in step.context_keys:
            if name not in available:
                raise PlanConfigurationError(
                    f"Step '{step.key}' uses context '{name}', which is neither a variable "
                    "nor produced by an earlier step"
                )

        for key in step.produced_keys:
            if key in owners:
                raise PlanConfigurationError(
                    f"Plan key '{key}' is declared by both '{owners[key]}' and '{step.key}'"
                )
            if key in variables:
                raise PlanConfigurationError(
                    f"Plan key '{key}' of step '{step.key}' shadows a variable of the same name"
                )
            owners[key] = step.key
            available.add(key)


class PlanAssembler:
    """Runs an ordered list of steps and merges their documents into one plan."""

    def __init__(
        self,
        provider: BaseProvider,
        invoker: Optional[ModelInvoker] = None,
        default_max_output_tokens: int = 8192,
        default_thinking_budget: Optional[int] = 8192,
    ):
        self.provider = provider
        self.invoker = invoker or ModelInvoker()
        self.default_max_output_tokens = default_max_output_tokens
        self.default_thinking_budget = default_thinking_budget

    @classmethod
    def from_settings(cls, provider: BaseProvider, settings: CoreSettings) -> "PlanAssembler":
        return cls(
            provider,
            ModelInvoker.from_settings(settings),
            default_max_output_tokens=settings.default_max_output_tokens,
            default_thinking_budget=settings.default_thinking_budget,
        )

    async def run_multi_step(
        self,
        steps: Sequence[StepSpec],
        on_progress: Optional[ProgressCallback] = None,
        variables: Optional[Mapping[str, Any]] = None,
        attachments: Sequence[Attachment] = (),
    ) -> CompositePlan:
        """
        Execute ``steps`` in order and return the merged plan.

        Args:
            steps: Ordered step definitions
            on_progress: Called with a ProgressEvent before each step (sync or async)
            variables: Caller-supplied values available to every prompt
            attachments: Run-level inputs (e.g. a manuscript) sent with each step
                that has ``use_plan_attachments`` set

        Returns:
            The composite plan

        Raises:
            PlanConfigurationError: If the steps are inconsistent
            GenerationError: If any step fails; no partial plan is returned
        """
        values: Dict[str, Any] = dict(variables or {})
        validate_steps(steps, values)

        plan = CompositePlan()
        total = len(steps)
        run_attachments = tuple(attachments)

        for index, step in enumerate(steps, start=1):
            await self._emit(
                on_progress,
                ProgressEvent(f"Step {index}/{total}: {step.label}...", step.key, index, total),
            )
            logger.info(f"Running step {index}/{total}: {step.key}")

            if isinstance(step, RepeatedStep):
                result = await self._run_repeated(step, plan, values, run_attachments, on_progress, index, total)
            else:
                result = await self._run_step(step, {**values, **plan.to_dict()}, run_attachments)

            if not result.ok:
                logger.error(
                    f"Step {index}/{total} ({step.key}) failed, abandoning plan: {result.error.message}"
                )
                raise GenerationError(result.error)

            plan.merge_all(result.value)

        await self._emit(on_progress, ProgressEvent("Plan complete.", None, total, total))
        logger.info(f"Plan finished with keys: {plan.keys()}")
        return plan

    async def _run_step(
        self,
        step: StepSpec,
        values: Mapping[str, Any],
        run_attachments: Tuple[Attachment, ...],
    ) -> Result[Dict[str, Any]]:
        document_result = await self._generate(step, values, run_attachments)
        if not document_result.ok:
            return document_result
        document = document_result.value

        if not step.output_keys:
            return Success({step.key: document})

        if not isinstance(document, dict):
            return fail(
                ErrorKind.MALFORMED_OUTPUT,
                f"The AI model's response for {step.label} was not a JSON object, so its "
                f"sections ({', '.join(step.output_keys)}) could not be read.",
                context=step.label,
            )
        missing = [key for key in step.output_keys if key not in document]
        if missing:
            return fail(
                ErrorKind.MALFORMED_OUTPUT,
                f"The AI model's response for {step.label} is missing the expected "
                f"section(s): {', '.join(missing)}.",
                context=step.label,
            )
        return Success({key: document[key] for key in step.output_keys})

    async def _run_repeated(
        self,
        step: RepeatedStep,
        plan: CompositePlan,
        variables: Mapping[str, Any],
        run_attachments: Tuple[Attachment, ...],
        on_progress: Optional[ProgressCallback],
        index: int,
        total: int,
    ) -> Result[Dict[str, Any]]:
        items: List[Any] = []
        for i in range(step.count):
            if i > 0:
                await self._emit(
                    on_progress,
                    ProgressEvent(
                        f"Step {index}/{total}: {step.label} ({i + 1}/{step.count})...",
                        step.key,
                        index,
                        total,
                    ),
                )
            values = {
                **variables,
                **plan.to_dict(),
                "index": i,
                "number": i + 1,
                "count": step.count,
            }
            result = await self._generate(step, values, run_attachments)
            if not result.ok:
                return result
            items.append(result.value)
        return Success({step.key: items})

    async def _generate(
        self,
        step: StepSpec,
        values: Mapping[str, Any],
        run_attachments: Tuple[Attachment, ...],
    ) -> Result[Any]:
        try:
            request = self.build_request(step, values, run_attachments)
        except UnresolvedPlaceholderError as e:
            # Root names are checked up front, so a missing path is a gap in an earlier response
            return fail(
                ErrorKind.MALFORMED_OUTPUT,
                f"An earlier response did not contain the data needed by {step.label}: "
                f"{e.detail}.",
                context=step.label,
            )
        response_result = await self.invoker.invoke(
            lambda: self.provider.generate(request), step.label
        )
        if not response_result.ok:
            return response_result
        if step.free_text:
            return interpret_text(response_result.value)
        return interpret(response_result.value)

    def build_request(
        self,
        step: StepSpec,
        values: Mapping[str, Any],
        run_attachments: Tuple[Attachment, ...] = (),
    ) -> GenerationRequest:
        """Render the step's prompt and context into an immutable request."""
        try:
            instructions = render_placeholders(step.prompt, values)
        except KeyError as e:
            raise UnresolvedPlaceholderError(step.key, e.args[0]) from e

        parts: List[Attachment] = [
            Attachment.from_text(f"{name}:\n\n{format_value(values[name])}")
            for name in step.context_keys
        ]
        parts.extend(step.attachments)
        if step.use_plan_attachments:
            parts.extend(run_attachments)

        return GenerationRequest(
            instructions=instructions,
            attachments=tuple(parts),
            schema=step.schema,
            tier=step.tier,
            max_output_tokens=step.max_output_tokens or self.default_max_output_tokens,
            thinking_budget=step.thinking_budget
            if step.thinking_budget is not None
            else self.default_thinking_budget,
        )

    @staticmethod
    async def _emit(on_progress: Optional[ProgressCallback], event: ProgressEvent) -> None:
        if on_progress is None:
            return
        outcome = on_progress(event)
        if inspect.isawaitable(outcome):
            await outcome
