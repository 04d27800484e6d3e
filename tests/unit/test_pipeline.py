"""Unit tests for the embedding pipeline and its staleness guard."""

import asyncio
import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from embedgrid.errors import EmbeddingError, LengthMismatch, ModelLoadError
from embedgrid.models import PipelineStatus
from embedgrid.pipeline import EmbeddingPipeline
from test_helpers import FakeBackend, wait_for_calls


class TestPipelineBeforeModel:
    """Test requests issued while the model is not ready."""

    def test_initial_state_is_idle(self, fake_backend) -> None:
        pipeline = EmbeddingPipeline(fake_backend)
        assert pipeline.state.status == PipelineStatus.IDLE
        assert pipeline.generation == 0
        assert not pipeline.state.available

    @pytest.mark.asyncio
    async def test_request_without_model_resolves_empty(self, fake_backend) -> None:
        pipeline = EmbeddingPipeline(fake_backend)

        pipeline.submit(("cat", "dog"))

        state = pipeline.state
        assert state.status == PipelineStatus.SUCCESS
        assert state.generation == 1
        assert state.embeddings is None
        assert state.matrix is None
        assert fake_backend.calls == []

    @pytest.mark.asyncio
    async def test_model_ready_issues_new_request(self, fake_backend) -> None:
        """Test that finishing the model load recomputes the latest snapshot."""
        fake_backend.load_gate = asyncio.Event()
        pipeline = EmbeddingPipeline(fake_backend)
        pipeline.start()
        pipeline.submit(("cat", "dog"))
        await asyncio.sleep(0)

        assert pipeline.state.matrix is None
        assert not pipeline.model_ready

        fake_backend.load_gate.set()
        await pipeline.wait_idle()

        assert pipeline.model_ready
        assert pipeline.generation == 2
        assert pipeline.state.matrix == ((1.0, 0.0), (0.0, 1.0))
        assert fake_backend.calls == [("cat", "dog")]


class TestPipelineSuccess:
    """Test the normal request lifecycle."""

    @pytest.mark.asyncio
    async def test_computes_embeddings_and_matrix(self, fake_backend) -> None:
        pipeline = EmbeddingPipeline(fake_backend)
        pipeline.start()
        pipeline.submit(("cat", "dog"))
        await pipeline.wait_idle()

        state = pipeline.state
        assert state.status == PipelineStatus.SUCCESS
        assert state.inputs == ("cat", "dog")
        assert np.array_equal(state.embeddings, [[1.0, 0.0], [0.0, 1.0]])
        assert state.matrix == ((1.0, 0.0), (0.0, 1.0))

    @pytest.mark.asyncio
    async def test_matrix_uses_configured_precision(self) -> None:
        backend = FakeBackend(vectors={"a": [1.0, 0.0], "b": [0.7321, 0.6812]})
        pipeline = EmbeddingPipeline(backend, precision=1)
        pipeline.start()
        pipeline.submit(("a", "b"))
        await pipeline.wait_idle()

        assert pipeline.state.matrix[0][1] == 0.7

    @pytest.mark.asyncio
    async def test_loading_state_keeps_previous_matrix(self) -> None:
        """Test that the last matrix stays visible while a newer request runs."""
        backend = FakeBackend(vectors={"a": [1.0, 0.0], "b": [0.0, 1.0]})
        pipeline = EmbeddingPipeline(backend)
        pipeline.start()
        pipeline.submit(("a", "b"))
        await pipeline.wait_idle()
        previous = pipeline.state.matrix

        backend.hold = True
        pipeline.submit(("a", "b", "c"))

        assert pipeline.state.status == PipelineStatus.LOADING
        assert pipeline.state.inputs == ("a", "b", "c")
        assert pipeline.state.matrix == previous

        await wait_for_calls(backend, 2)
        backend.gates[0].set()
        await pipeline.wait_idle()

        assert pipeline.state.status == PipelineStatus.SUCCESS
        assert len(pipeline.state.matrix) == 3

    @pytest.mark.asyncio
    async def test_empty_snapshot_skips_backend(self, fake_backend) -> None:
        pipeline = EmbeddingPipeline(fake_backend)
        pipeline.start()
        pipeline.submit(())
        await pipeline.wait_idle()

        assert pipeline.state.status == PipelineStatus.SUCCESS
        assert pipeline.state.matrix == ()
        assert pipeline.state.embeddings.shape == (0, 0)
        assert fake_backend.calls == []

    @pytest.mark.asyncio
    async def test_unchanged_snapshot_is_not_requested_again(self, fake_backend) -> None:
        pipeline = EmbeddingPipeline(fake_backend)
        pipeline.start()
        pipeline.submit(("cat",))
        await pipeline.wait_idle()
        generation = pipeline.generation

        pipeline.submit(("cat",))
        await pipeline.wait_idle()

        assert pipeline.generation == generation
        assert fake_backend.calls == [("cat",)]

    @pytest.mark.asyncio
    async def test_listeners_receive_applied_states(self, fake_backend) -> None:
        pipeline = EmbeddingPipeline(fake_backend)
        seen = []
        pipeline.subscribe(lambda state: seen.append(state.status))

        pipeline.start()
        pipeline.submit(("cat", "dog"))
        await pipeline.wait_idle()

        assert seen == [
            PipelineStatus.SUCCESS,  # submitted before the model was ready
            PipelineStatus.LOADING,
            PipelineStatus.SUCCESS,
        ]


class TestStalenessGuard:
    """Test that results are applied in issue order, not completion order."""

    @pytest.mark.asyncio
    async def test_slow_stale_result_is_discarded(self) -> None:
        """Test a request finishing after its successor has already been applied."""
        backend = FakeBackend(
            vectors={"old": [1.0, 0.0], "new": [0.0, 1.0], "other": [0.0, 1.0]},
            hold=True,
        )
        pipeline = EmbeddingPipeline(backend)
        pipeline.start()
        await pipeline.wait_idle()

        pipeline.submit(("old", "other"))
        stale_generation = pipeline.generation
        pipeline.submit(("new", "other"))
        latest_generation = pipeline.generation
        await wait_for_calls(backend, 2)

        # Newer request finishes first
        backend.gates[1].set()
        await asyncio.sleep(0.01)
        assert pipeline.state.status == PipelineStatus.SUCCESS
        assert pipeline.state.generation == latest_generation
        assert pipeline.state.matrix == ((1.0, 1.0), (1.0, 1.0))

        # Older request finishes last and must not overwrite it
        backend.gates[0].set()
        await pipeline.wait_idle()

        assert stale_generation < latest_generation
        assert pipeline.state.generation == latest_generation
        assert pipeline.state.inputs == ("new", "other")
        assert pipeline.state.matrix == ((1.0, 1.0), (1.0, 1.0))

    @pytest.mark.asyncio
    async def test_superseded_result_finishing_first_is_discarded(self) -> None:
        backend = FakeBackend(vectors={"a": [1.0, 0.0], "b": [0.0, 1.0]}, hold=True)
        pipeline = EmbeddingPipeline(backend)
        pipeline.start()
        await pipeline.wait_idle()

        pipeline.submit(("a",))
        pipeline.submit(("a", "b"))
        await wait_for_calls(backend, 2)

        backend.gates[0].set()
        await asyncio.sleep(0.01)
        assert pipeline.state.status == PipelineStatus.LOADING
        assert pipeline.state.inputs == ("a", "b")

        backend.gates[1].set()
        await pipeline.wait_idle()
        assert pipeline.state.matrix == ((1.0, 0.0), (0.0, 1.0))

    @pytest.mark.asyncio
    async def test_stale_failure_is_discarded(self) -> None:
        backend = FakeBackend(hold=True)
        pipeline = EmbeddingPipeline(backend)
        pipeline.start()
        await pipeline.wait_idle()

        pipeline.submit(("a",))
        pipeline.submit(("b",))
        await wait_for_calls(backend, 2)

        backend.gates[1].set()
        await asyncio.sleep(0.01)
        backend.embed_error = EmbeddingError("late failure")
        backend.gates[0].set()
        await pipeline.wait_idle()

        assert pipeline.state.status == PipelineStatus.SUCCESS
        assert pipeline.state.inputs == ("b",)


class TestPipelineFailures:
    """Test recovery from backend failures."""

    @pytest.mark.asyncio
    async def test_model_load_error_is_reported(self) -> None:
        backend = FakeBackend(load_error=ModelLoadError("no weights"))
        pipeline = EmbeddingPipeline(backend)
        pipeline.start()
        pipeline.submit(("a", "b"))
        await pipeline.wait_idle()

        state = pipeline.state
        assert state.status == PipelineStatus.ERROR
        assert isinstance(state.error, ModelLoadError)
        assert state.matrix is None
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_unexpected_load_exception_is_wrapped(self) -> None:
        original = OSError("disk on fire")
        backend = FakeBackend(load_error=original)
        pipeline = EmbeddingPipeline(backend)
        pipeline.start()
        await pipeline.wait_idle()

        assert isinstance(pipeline.model_error, ModelLoadError)
        assert pipeline.model_error.original_error is original

    @pytest.mark.asyncio
    async def test_submit_after_model_failure_keeps_reporting(self) -> None:
        """Test that the session survives a failed model and keeps accepting edits."""
        backend = FakeBackend(load_error=ModelLoadError("no weights"))
        pipeline = EmbeddingPipeline(backend)
        pipeline.start()
        await pipeline.wait_idle()

        pipeline.submit(("a",))
        pipeline.submit(("a", "b"))

        assert pipeline.state.status == PipelineStatus.ERROR
        assert pipeline.state.inputs == ("a", "b")

    @pytest.mark.asyncio
    async def test_embedding_error_clears_matrix(self, fake_backend) -> None:
        pipeline = EmbeddingPipeline(fake_backend)
        pipeline.start()
        pipeline.submit(("cat", "dog"))
        await pipeline.wait_idle()
        assert pipeline.state.matrix is not None

        fake_backend.embed_error = EmbeddingError("backend down")
        pipeline.submit(("cat",))
        await pipeline.wait_idle()

        state = pipeline.state
        assert state.status == PipelineStatus.ERROR
        assert str(state.error) == "backend down"
        assert state.matrix is None
        assert state.embeddings is None

    @pytest.mark.asyncio
    async def test_next_edit_after_error_retries(self, fake_backend) -> None:
        pipeline = EmbeddingPipeline(fake_backend)
        pipeline.start()
        fake_backend.embed_error = EmbeddingError("flaky")
        pipeline.submit(("cat",))
        await pipeline.wait_idle()
        assert pipeline.state.status == PipelineStatus.ERROR

        fake_backend.embed_error = None
        pipeline.submit(("cat", "dog"))
        await pipeline.wait_idle()

        assert pipeline.state.status == PipelineStatus.SUCCESS
        assert pipeline.state.matrix == ((1.0, 0.0), (0.0, 1.0))

    @pytest.mark.asyncio
    async def test_same_snapshot_after_error_retries(self, fake_backend) -> None:
        pipeline = EmbeddingPipeline(fake_backend)
        pipeline.start()
        fake_backend.embed_error = EmbeddingError("flaky")
        pipeline.submit(("cat",))
        await pipeline.wait_idle()

        fake_backend.embed_error = None
        pipeline.submit(("cat",))
        await pipeline.wait_idle()

        assert pipeline.state.status == PipelineStatus.SUCCESS
        assert len(fake_backend.calls) == 2

    @pytest.mark.asyncio
    async def test_unexpected_embed_exception_is_wrapped(self, fake_backend) -> None:
        fake_backend.embed_error = RuntimeError("CUDA out of memory")
        pipeline = EmbeddingPipeline(fake_backend)
        pipeline.start()
        pipeline.submit(("cat",))
        await pipeline.wait_idle()

        assert isinstance(pipeline.state.error, EmbeddingError)
        assert isinstance(pipeline.state.error.original_error, RuntimeError)

    @pytest.mark.asyncio
    async def test_wrong_number_of_embeddings_is_embedding_error(self) -> None:
        class ShortBackend(FakeBackend):
            async def embed(self, model, texts):
                return np.ones((len(texts) - 1, 4))

        pipeline = EmbeddingPipeline(ShortBackend())
        pipeline.start()
        pipeline.submit(("a", "b", "c"))
        await pipeline.wait_idle()

        assert pipeline.state.status == PipelineStatus.ERROR
        assert "2 embeddings for 3 inputs" in str(pipeline.state.error)

    @pytest.mark.asyncio
    async def test_non_finite_embeddings_are_embedding_error(self) -> None:
        backend = FakeBackend(vectors={"a": [float("nan"), 1.0], "b": [1.0, 0.0]})
        pipeline = EmbeddingPipeline(backend)
        pipeline.start()
        pipeline.submit(("a", "b"))
        await pipeline.wait_idle()

        assert pipeline.state.status == PipelineStatus.ERROR
        assert pipeline.state.matrix is None
        assert "non-finite" in str(pipeline.state.error)

    @pytest.mark.asyncio
    async def test_length_mismatch_is_not_recovered(self) -> None:
        """Test that ragged vectors abort instead of becoming an error state."""

        class RaggedBackend(FakeBackend):
            async def embed(self, model, texts):
                return [[1.0, 0.0], [1.0, 0.0, 0.0]]

        pipeline = EmbeddingPipeline(RaggedBackend())
        pipeline.start()
        pipeline.submit(("a", "b"))

        with pytest.raises(LengthMismatch):
            await pipeline.wait_idle()

        assert pipeline.state.status == PipelineStatus.LOADING


class TestPipelineClose:
    """Test session-end cleanup."""

    @pytest.mark.asyncio
    async def test_close_cancels_in_flight_requests(self) -> None:
        backend = FakeBackend(hold=True)
        pipeline = EmbeddingPipeline(backend)
        pipeline.start()
        await pipeline.wait_idle()
        pipeline.submit(("a",))
        await wait_for_calls(backend, 1)

        await pipeline.close()

        assert pipeline.state.status == PipelineStatus.LOADING
        await pipeline.wait_idle()
