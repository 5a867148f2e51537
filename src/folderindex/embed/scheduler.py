"""Background embedding jobs, one per folder.

A job runs on the event loop as an ``asyncio`` task:

    parsing → (summarizing) → embedding → completed | error

Scheduling a folder that already has a live job cancels the old job and
replaces it. Cancellation is cooperative: the job checks its token after
every batch and once more before touching the store, and a cancelled job
publishes nothing further.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from folderindex.config import EmbeddingCfg, Preferences
from folderindex.db.embeddings import EmbeddingStore
from folderindex.db.models import EmbeddingRecord
from folderindex.embed.documents import STAGE_INITIAL, Document, build_documents
from folderindex.embed.progress import (
    CHUNKS_COMPLETE,
    EMBEDDING_COMPLETE,
    EMBEDDING_ERROR,
    ProgressBroadcaster,
    broadcaster,
)
from folderindex.errors import JobCancelled, ProviderCallError
from folderindex.folders import FolderRegistration
from folderindex.ingest.snapshotter import Snapshotter
from folderindex.ingest.summarizer import DocumentSummarizer
from folderindex.llm_client import ChatClient, ClientFactory, EmbeddingClient, LiteLLMClientFactory

logger = logging.getLogger(__name__)

MSG_PARSING = "Analyzing project files..."
MSG_COMPLETED = "Initial embeddings ready"
MSG_EMPTY = "No eligible documents detected"
MSG_FAILED = "Failed to build embeddings"


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise JobCancelled()


@dataclass
class EmbeddingJob:
    folder_name: str
    token: CancellationToken = field(default_factory=CancellationToken)
    task: asyncio.Task[None] | None = None
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()


class EmbeddingScheduler:
    """Run and track embedding jobs.

    Args:
        snapshotter: Builds and lists snapshot units.
        store: Destination for embedding records.
        preferences: Model preferences (embedding model, chat model, summaries).
        embedding: Batch sizes.
        clients: Creates embedding and chat clients for a model string.
        progress: Progress broadcaster; defaults to the process-wide one.
    """

    def __init__(
        self,
        snapshotter: Snapshotter,
        store: EmbeddingStore,
        preferences: Preferences,
        embedding: EmbeddingCfg | None = None,
        clients: ClientFactory | None = None,
        progress: ProgressBroadcaster | None = None,
    ) -> None:
        self._snapshotter = snapshotter
        self._store = store
        self._preferences = preferences
        self._cfg = embedding or EmbeddingCfg()
        self._clients = clients or LiteLLMClientFactory(num_retries=self._cfg.num_retries)
        self._progress = progress if progress is not None else broadcaster
        self._lock = threading.Lock()
        self._jobs: dict[str, EmbeddingJob] = {}

    # ------------------------------------------------------------------
    # Job registry
    # ------------------------------------------------------------------

    def schedule_embedding(self, folder: FolderRegistration) -> EmbeddingJob:
        """Start a job for *folder*, cancelling any job already running for it.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        job = EmbeddingJob(folder_name=folder.name)
        with self._lock:
            previous = self._jobs.get(folder.name)
            if previous is not None:
                previous.token.cancel()
                logger.info("[%s] replacing running embedding job", folder.name)
            self._jobs[folder.name] = job

        self._progress.update_progress(
            folder.name,
            phase="parsing",
            total_files=0,
            processed_files=0,
            total_tokens_output=0,
            message=MSG_PARSING,
            error=None,
            started_at=job.started_at,
        )
        job.task = loop.create_task(self._run(folder, job), name=f"embed:{folder.name}")
        return job

    def cancel_embedding(self, folder_name: str) -> bool:
        """Cancel *folder_name*'s job and clear its progress.

        Returns:
            True if a live job was cancelled.
        """
        with self._lock:
            job = self._jobs.pop(folder_name, None)
        if job is not None:
            job.token.cancel()
            logger.info("[%s] embedding job cancelled", folder_name)
        self._progress.clear_progress(folder_name)
        return job is not None

    def get_job(self, folder_name: str) -> EmbeddingJob | None:
        with self._lock:
            return self._jobs.get(folder_name)

    def active_jobs(self) -> list[str]:
        with self._lock:
            return sorted(self._jobs)

    async def wait(self, folder_name: str) -> None:
        """Wait until *folder_name*'s current job (if any) has finished."""
        job = self.get_job(folder_name)
        if job is not None and job.task is not None:
            await asyncio.gather(job.task, return_exceptions=True)

    async def shutdown(self, force: bool = False) -> None:
        """Cancel every live job, clear its progress and wait for its task to exit.

        Jobs stop at their next batch boundary, so a batch already sent to
        a provider is allowed to finish.

        Args:
            force: Also interrupt the tasks with ``Task.cancel`` instead of
                waiting for the in-flight batch.
        """
        with self._lock:
            jobs = list(self._jobs.values())
            self._jobs.clear()
        tasks = []
        for job in jobs:
            job.token.cancel()
            self._progress.clear_progress(job.folder_name)
            if job.task is not None and not job.task.done():
                if force:
                    job.task.cancel()
                tasks.append(job.task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def ensure_folder_primed(self, folder: FolderRegistration) -> int:
        """Make sure *folder* has snapshots and, if it has units, embeddings.

        Runs the pipeline inline without a job slot or progress events.

        Returns:
            The folder's embedding record count.
        """
        result = await self._snapshotter.ensure_snapshots(folder)
        if result.unit_count == 0 or self._store.has_embeddings(folder.name):
            return self._store.count(folder.name)
        logger.info("[%s] no embeddings yet; embedding %d units", folder.name, result.unit_count)
        return await self._execute(folder, CancellationToken(), report=False)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run(self, folder: FolderRegistration, job: EmbeddingJob) -> None:
        name = folder.name
        try:
            count = await self._execute(folder, job.token, report=True)
            job.token.raise_if_cancelled()
            self._progress.update_progress(
                name,
                phase="completed",
                total_files=count,
                processed_files=count,
                message=MSG_COMPLETED if count else MSG_EMPTY,
            )
            self._progress.emit(EMBEDDING_COMPLETE, {"folder_name": name, "documents": count})
            logger.info("[%s] embedded %d documents", name, count)
        except JobCancelled:
            logger.debug("[%s] job stopped after cancellation", name)
        except Exception as exc:
            if job.cancelled:
                logger.debug("[%s] cancelled job failed: %s", name, exc)
            else:
                logger.error("[%s] embedding failed: %s", name, exc)
                self._progress.update_progress(
                    name, phase="error", message=MSG_FAILED, error=str(exc)
                )
                self._progress.emit(EMBEDDING_ERROR, {"folder_name": name, "error": str(exc)})
        finally:
            with self._lock:
                if self._jobs.get(name) is job:
                    del self._jobs[name]

    async def _execute(
        self,
        folder: FolderRegistration,
        token: CancellationToken,
        report: bool,
    ) -> int:
        """Snapshot, embed and persist *folder*. Returns the number of records written."""
        name = folder.name
        result = await self._snapshotter.ensure_snapshots(folder)
        token.raise_if_cancelled()
        if report:
            self._progress.emit(
                CHUNKS_COMPLETE,
                {"folder_name": name, "units": result.unit_count, "created": result.created},
            )

        documents = build_documents(self._snapshotter.list_units(folder))
        if not documents:
            self._persist(name, [], token)
            return 0

        embedder = self._clients.embedding_client(self._preferences.default_embedding_model)
        texts = [doc.content for doc in documents]
        if self._preferences.embed_summaries:
            chat = self._clients.chat_client(self._preferences.default_chat_model)
            texts = await self._summarize(name, documents, chat, token, report)

        vectors = await self._embed(name, texts, embedder, token, report)
        records = [
            EmbeddingRecord(
                folder_name=name,
                file_path=doc.file_path,
                relative_path=doc.relative_path,
                snapshot_id=doc.snapshot_id,
                content=text,
                vector=list(vector),
                dim=len(vector),
                metadata={
                    "stage": STAGE_INITIAL,
                    **doc.metadata,
                    "original_content": doc.original_content,
                },
            )
            for doc, text, vector in zip(documents, texts, vectors)
        ]
        self._persist(name, records, token)
        return len(records)

    async def _summarize(
        self,
        name: str,
        documents: list[Document],
        chat: ChatClient,
        token: CancellationToken,
        report: bool,
    ) -> list[str]:
        total = len(documents)
        batch_size = self._cfg.summarize_batch_size
        summarizer = DocumentSummarizer(chat)
        summaries: list[str] = []
        tokens = 0
        self._report(
            report, name,
            phase="summarizing", total_files=total, processed_files=0,
            total_tokens_output=0, message=f"Summarizing 0/{total} snippets",
        )
        for start in range(0, total, batch_size):
            batch = await summarizer.summarize_batch(documents[start : start + batch_size])
            token.raise_if_cancelled()
            summaries.extend(batch.summaries)
            tokens += batch.tokens_output
            self._report(
                report, name,
                processed_files=len(summaries),
                total_tokens_output=tokens,
                message=f"Summarizing {len(summaries)}/{total} snippets",
            )
        return summaries

    async def _embed(
        self,
        name: str,
        texts: Sequence[str],
        embedder: EmbeddingClient,
        token: CancellationToken,
        report: bool,
    ) -> list[list[float]]:
        total = len(texts)
        batch_size = self._cfg.embedding_batch_size
        vectors: list[list[float]] = []
        self._report(
            report, name,
            phase="embedding", total_files=total, processed_files=0,
            message=f"Embedding 0/{total} documents",
        )
        for start in range(0, total, batch_size):
            batch = list(texts[start : start + batch_size])
            try:
                batch_vectors = await embedder.embed_documents(batch)
            except ProviderCallError:
                raise
            except Exception as exc:
                raise ProviderCallError(f"Embedding call failed: {exc}") from exc
            if len(batch_vectors) != len(batch):
                raise ProviderCallError(
                    f"Embedding call returned {len(batch_vectors)} vectors for {len(batch)} inputs"
                )
            token.raise_if_cancelled()
            vectors.extend(batch_vectors)
            self._report(
                report, name,
                processed_files=len(vectors),
                message=f"Embedding {len(vectors)}/{total} documents",
            )
        return vectors

    def _persist(self, name: str, records: list[EmbeddingRecord], token: CancellationToken) -> None:
        token.raise_if_cancelled()
        self._store.delete_stage(name, STAGE_INITIAL)
        self._store.insert_batch(name, records, batch_size=self._cfg.insert_batch_size)

    def _report(self, report: bool, name: str, **patch: Any) -> None:
        if report:
            self._progress.update_progress(name, **patch)
