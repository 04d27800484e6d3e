"""Interactive session wiring the input list to the similarity matrix.

edits -> InputListStore -> Debouncer -> EmbeddingPipeline -> state
InputListStore length -> HighlightStateMachine
"""

import logging
from collections.abc import Iterable
from types import TracebackType

from .backends import BackendRegistry
from .backends.base import EmbeddingBackend
from .config import EmbedGridConfig
from .debounce import DEFAULT_DELAY, Debouncer
from .highlight import HighlightStateMachine
from .models import EmbeddingBatch, Matrix, PipelineState, Snapshot
from .pipeline import EmbeddingPipeline
from .similarity import DEFAULT_PRECISION
from .store import InputListStore

logger = logging.getLogger(__name__)


class Session:
    """One editing session: owns the store, debouncer, pipeline and highlight.

    All stages are created with the session and discarded by ``close()``;
    nothing is shared between sessions.

    Example:
        async with Session(HashingBackend(), inputs=["cat", "dog"]) as session:
            await session.settle()
            print(session.matrix)

            session.update(1, "cats")
            session.highlight.enter_cell(0, 1)
            await session.settle()
    """

    def __init__(
        self,
        backend: EmbeddingBackend,
        inputs: Iterable[str] = (),
        debounce: float = DEFAULT_DELAY,
        precision: int = DEFAULT_PRECISION,
    ) -> None:
        """Initialize session.

        Args:
            backend: Embedding backend used by the pipeline
            inputs: Initial texts
            debounce: Quiet period in seconds before edits reach the pipeline
            precision: Decimal places kept in the similarity matrix
        """
        self.store = InputListStore(inputs)
        self.highlight = HighlightStateMachine(len(self.store))
        self.pipeline = EmbeddingPipeline(backend, precision=precision)
        self.debouncer: Debouncer[Snapshot] = Debouncer(
            self.pipeline.submit, delay=debounce
        )
        self.store.subscribe(self._on_inputs)

    @classmethod
    def from_config(
        cls, config: EmbedGridConfig, inputs: Iterable[str] = ()
    ) -> "Session":
        """Build a session with the backend and timings from config.

        Raises:
            KeyError: If the configured backend is not registered
        """
        backend_class = BackendRegistry.get(config.model.backend)
        return cls(
            backend_class.from_config(config.model),
            inputs=inputs,
            debounce=config.pipeline.debounce_seconds,
            precision=config.pipeline.precision,
        )

    async def __aenter__(self) -> "Session":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def start(self) -> None:
        """Start loading the model and submit the initial inputs undebounced."""
        self.pipeline.start()
        self.pipeline.submit(self.store.snapshot)

    async def settle(self) -> None:
        """Push any pending edit through and wait for the pipeline to finish."""
        self.debouncer.flush()
        await self.pipeline.wait_idle()

    async def close(self) -> None:
        self.debouncer.cancel()
        await self.pipeline.close()
        logger.debug("Session closed")

    # Input list operations

    def create(self) -> Snapshot:
        return self.store.create()

    def update(self, index: int, value: str) -> Snapshot:
        return self.store.update(index, value)

    def delete(self, index: int) -> Snapshot:
        return self.store.delete(index)

    @property
    def inputs(self) -> Snapshot:
        return self.store.snapshot

    # Pipeline output

    @property
    def state(self) -> PipelineState:
        return self.pipeline.state

    @property
    def embeddings(self) -> EmbeddingBatch | None:
        return self.pipeline.state.embeddings

    @property
    def matrix(self) -> Matrix | None:
        return self.pipeline.state.matrix

    def _on_inputs(self, snapshot: Snapshot) -> None:
        self.highlight.resize(len(snapshot))
        self.debouncer.push(snapshot)
