"""Embedding pipeline: debounced snapshot + model -> embeddings -> matrix.

Every change of input (a new debounced snapshot, or the model finishing its
load) issues a request tagged with a fresh generation. Requests run as
tasks on the event loop and may complete in any order; a result is only
applied if its generation is still the latest one issued.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import numpy as np

from .backends.base import EmbeddingBackend
from .errors import EmbeddingError, ModelLoadError
from .models import EmbeddingBatch, Matrix, PipelineState, PipelineStatus, Snapshot
from .similarity import DEFAULT_PRECISION, similarity_matrix

logger = logging.getLogger(__name__)


class EmbeddingPipeline:
    """Keeps the best-known ``{embeddings, matrix}`` for the latest snapshot.

    While a request is in flight the previous embeddings and matrix stay in
    the state (status ``loading``). A failed request clears them, so the
    displayed matrix never belongs to a snapshot other than the one the error
    is reported for.

    Example:
        pipeline = EmbeddingPipeline(HashingBackend())
        pipeline.start()
        pipeline.submit(("cat", "dog"))
        await pipeline.wait_idle()
        pipeline.state.matrix  # ((1.0, 0.0), (0.0, 1.0))
    """

    def __init__(
        self, backend: EmbeddingBackend, precision: int = DEFAULT_PRECISION
    ) -> None:
        """Initialize pipeline.

        Args:
            backend: Embedding backend providing load() and embed()
            precision: Decimal places kept in the similarity matrix
        """
        self.backend = backend
        self.precision = precision
        self.generation = 0

        self.model: Any | None = None
        self.model_error: ModelLoadError | None = None
        self.inputs: Snapshot | None = None

        self._state = PipelineState()
        self._listeners: list[Callable[[PipelineState], None]] = []
        self._tasks: set[asyncio.Task[None]] = set()
        self._fatal: BaseException | None = None

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def model_ready(self) -> bool:
        return self.model is not None

    def subscribe(self, listener: Callable[[PipelineState], None]) -> None:
        """Call ``listener`` with every applied state."""
        self._listeners.append(listener)

    def start(self) -> None:
        """Begin loading the model in the background."""
        self._spawn(self._load_model())

    def submit(self, snapshot: Snapshot) -> None:
        """Accept a new debounced snapshot and issue a request for it."""
        if snapshot == self.inputs and self._state.status != PipelineStatus.ERROR:
            logger.debug("Snapshot unchanged, keeping current request")
            return

        self.inputs = snapshot
        self._issue()

    async def wait_idle(self) -> None:
        """Wait until no load or embedding request is in flight.

        Raises:
            LengthMismatch: If a request hit a corrupted embedding batch
        """
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        if self._fatal is not None:
            raise self._fatal

    async def close(self) -> None:
        """Cancel in-flight work; the pipeline is discarded afterwards."""
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._listeners.clear()

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return

        error = task.exception()
        if error is not None:
            logger.critical(f"Embedding pipeline aborted: {error!r}")
            self._fatal = error

    async def _load_model(self) -> None:
        try:
            self.model = await self.backend.load()
        except ModelLoadError as e:
            logger.error(f"Model load failed: {e}")
            self.model_error = e
        except Exception as e:
            logger.error(f"Model load failed: {e}")
            self.model_error = ModelLoadError(f"Failed to load model: {e}", e)
        else:
            logger.debug(f"Model ready for backend {self.backend.name!r}")

        # Model readiness is an input of every request
        self._issue()

    def _issue(self) -> None:
        self.generation += 1
        generation = self.generation
        inputs = self.inputs
        logger.debug(f"Issuing request {generation} for {inputs!r}")

        if self.model_error is not None:
            self._apply(
                PipelineState(
                    status=PipelineStatus.ERROR,
                    generation=generation,
                    inputs=inputs,
                    error=self.model_error,
                )
            )
            return

        if self.model is None or inputs is None:
            # Nothing to compute yet
            self._apply(
                PipelineState(
                    status=PipelineStatus.SUCCESS,
                    generation=generation,
                    inputs=inputs,
                )
            )
            return

        previous = self._state
        self._apply(
            PipelineState(
                status=PipelineStatus.LOADING,
                generation=generation,
                inputs=inputs,
                embeddings=previous.embeddings,
                matrix=previous.matrix,
            )
        )
        self._spawn(self._run(generation, inputs))

    async def _run(self, generation: int, inputs: Snapshot) -> None:
        try:
            embeddings, matrix = await self._compute(inputs)
        except EmbeddingError as e:
            if generation != self.generation:
                logger.debug(f"Discarding failure of stale request {generation}")
                return
            logger.error(f"Embedding request {generation} failed: {e}")
            self._apply(
                PipelineState(
                    status=PipelineStatus.ERROR,
                    generation=generation,
                    inputs=inputs,
                    error=e,
                )
            )
            return

        if generation != self.generation:
            logger.debug(
                f"Discarding stale request {generation} (latest is {self.generation})"
            )
            return

        self._apply(
            PipelineState(
                status=PipelineStatus.SUCCESS,
                generation=generation,
                inputs=inputs,
                embeddings=embeddings,
                matrix=matrix,
            )
        )

    async def _compute(self, inputs: Snapshot) -> tuple[EmbeddingBatch, Matrix]:
        if not inputs:
            return np.empty((0, 0), dtype=np.float32), ()

        try:
            embeddings = await self.backend.embed(self.model, inputs)
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Failed to embed inputs: {e}", e) from e

        if len(embeddings) != len(inputs):
            raise EmbeddingError(
                f"Backend returned {len(embeddings)} embeddings for {len(inputs)} inputs"
            )
        if not all(np.isfinite(row).all() for row in embeddings):
            raise EmbeddingError("Backend returned non-finite embedding values")

        # LengthMismatch propagates: it means the backend is broken
        return embeddings, similarity_matrix(embeddings, self.precision)

    def _apply(self, state: PipelineState) -> None:
        self._state = state
        logger.debug(f"Applied request {state.generation}: {state.status.value}")
        for listener in self._listeners:
            listener(state)
