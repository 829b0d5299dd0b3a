"""
Memory persistence layer backed by a single JSON file.

Stores MemoryRecord objects as {"memories": [...]} and keeps the optional
semantic index in step with them.
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from experience_memory.config.settings import MemoryConfig
from experience_memory.persist.json_file import atomic_write_json, read_json
from experience_memory.retrieval.semantic_search import SemanticSearch
from . import export
from .forgetting import SmartForgetter
from .policy import ConversationExtractor
from .schemas import (
    DEFAULT_USER,
    CleanupResult,
    ConsolidationResult,
    ImportanceScore,
    MemoryRecord,
    MemoryValidationError,
    NewMemory,
    RetentionDecision,
    ScoredMemory,
    as_utc,
    utcnow,
)
from .scoring import ImportanceScorer

logger = logging.getLogger(__name__)

PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}

# Fields a patch may never change.
IMMUTABLE_FIELDS = ("id", "created_at")


def parse_expiry(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an expires_at value.

    Returns:
        Aware datetime, or None when missing or malformed (never expires)
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class MemoryRecordStore:
    """
    Canonical store of memory records.

    Every mutation rewrites the whole file before returning; the in-memory
    list is replaced only after that write succeeds, so a failed persist
    leaves the store unchanged. Writers in this process are serialized by a lock;
    separate processes sharing one file are not coordinated (last writer
    wins), so run a single writer per file.

    The vector index is a secondary, best-effort structure: its failures are
    logged and never fail a record mutation, and hits whose record no longer
    exists are dropped at read time.
    """

    def __init__(
        self,
        store_path: Optional[Union[str, Path]] = None,
        config: Optional[MemoryConfig] = None,
        semantic_search: Optional[SemanticSearch] = None,
        extractor: Optional[Any] = None,
        scorer: Optional[ImportanceScorer] = None,
        forgetter: Optional[SmartForgetter] = None,
    ):
        """
        Initialize memory store.

        Args:
            store_path: Record file (overrides config.paths.store_path)
            config: Engine settings (default: MemoryConfig())
            semantic_search: Semantic index (built from config when vectors are enabled)
            extractor: Conversation extraction policy (built from config when enabled)
            scorer: Importance scorer
            forgetter: Smart forgetter
        """
        self.config = config or MemoryConfig()
        self.store_path = Path(store_path or self.config.paths.store_path)

        if semantic_search is not None:
            self.semantic_search = semantic_search
        elif self.config.enable_vector:
            self.semantic_search = SemanticSearch(
                similarity_threshold=self.config.search.similarity_threshold,
                vector_path=self.config.paths.vector_path,
                embedding_dim=self.config.search.embedding_dim,
            )
        else:
            self.semantic_search = None

        if extractor is not None:
            self.extractor = extractor
        else:
            self.extractor = ConversationExtractor() if self.config.enable_auto_extract else None

        self.scorer = scorer or ImportanceScorer()
        self.forgetter = forgetter or SmartForgetter(self.config.forget, scorer=self.scorer)

        self._lock = threading.RLock()
        self.memories: List[MemoryRecord] = []
        self._load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        data = read_json(self.store_path)
        if data is None:
            self.memories = []
            return
        if not isinstance(data, dict):
            logger.error(f"Memory file {self.store_path} has unexpected shape, starting empty")
            self.memories = []
            return

        records = []
        for item in data.get("memories") or []:
            try:
                records.append(MemoryRecord.from_storage_dict(item))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable memory in {self.store_path}: {e}")
        self.memories = records
        logger.debug(f"Loaded {len(records)} memories from {self.store_path}")

    def _commit(self, memories: List[MemoryRecord]) -> None:
        atomic_write_json(self.store_path, {"memories": [m.to_storage_dict() for m in memories]})
        self.memories = memories

    def _index_of(self, memory_id: str) -> int:
        for i, m in enumerate(self.memories):
            if m.id == memory_id:
                return i
        return -1

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def add_memory(self, entry: Union[NewMemory, Mapping[str, Any]]) -> MemoryRecord:
        """
        Create and store a new memory.

        Args:
            entry: NewMemory or a dict with the same fields

        Returns:
            Stored MemoryRecord with server-assigned fields filled

        Raises:
            MemoryValidationError: If the entry is invalid
        """
        try:
            new = entry if isinstance(entry, NewMemory) else NewMemory.model_validate(dict(entry))
        except ValidationError as e:
            raise MemoryValidationError.from_pydantic(e) from e

        now = utcnow()
        record = MemoryRecord(
            **new.model_dump(exclude={"id", "priority"}),
            id=new.id or str(uuid.uuid4()),
            priority=new.priority or "medium",
            created_at=now,
            updated_at=now,
            superseded_by=None,
        )

        with self._lock:
            self._commit([*self.memories, record])

        logger.debug(f"Added memory {record.id} ({record.user_id}/{record.key})")
        return record

    def get_memory(self, memory_id: str) -> Optional[MemoryRecord]:
        idx = self._index_of(memory_id)
        return self.memories[idx] if idx >= 0 else None

    def get_memories_for_user(
        self,
        user_id: Optional[str] = None,
        type: Optional[str] = None,
        key: Optional[str] = None,
        active_only: bool = False,
    ) -> List[MemoryRecord]:
        """
        List a user's memories with optional filters.

        Args:
            user_id: Owner (defaults to default-user)
            type: Only this memory type
            key: Only this key
            active_only: Exclude superseded/forgotten records

        Returns:
            Matching records in insertion order
        """
        user_id = user_id or DEFAULT_USER
        results = [m for m in self.memories if m.user_id == user_id]
        if type:
            results = [m for m in results if m.type == type]
        if key:
            results = [m for m in results if m.key == key]
        if active_only:
            results = [m for m in results if m.active]
        return results

    def list_memories(self, user_id: Optional[str] = None) -> List[MemoryRecord]:
        return self.get_memories_for_user(user_id)

    def get_active_memory_for_key(self, user_id: str, key: str) -> Optional[MemoryRecord]:
        matches = self.get_memories_for_user(user_id, key=key, active_only=True)
        return matches[0] if matches else None

    def update_memory(self, memory_id: str, patch: Mapping[str, Any]) -> Optional[MemoryRecord]:
        """
        Merge fields into a record.

        Inactive records only accept a superseded_by change.

        Args:
            memory_id: Record id
            patch: Fields to overwrite (id and created_at are ignored)

        Returns:
            Updated record, or None if the id is unknown

        Raises:
            MemoryValidationError: If the merged record is invalid or the
                patch touches an inactive record's content
        """
        with self._lock:
            idx = self._index_of(memory_id)
            if idx < 0:
                return None

            current = self.memories[idx]
            changes = {k: v for k, v in patch.items() if k not in IMMUTABLE_FIELDS}
            if not current.active and set(changes) - {"superseded_by"}:
                raise MemoryValidationError(f"Memory {memory_id} is inactive; only superseded_by may change")

            try:
                updated = MemoryRecord.model_validate({
                    **current.model_dump(),
                    **changes,
                    "updated_at": utcnow(),
                })
            except ValidationError as e:
                raise MemoryValidationError.from_pydantic(e) from e

            memories = list(self.memories)
            memories[idx] = updated
            self._commit(memories)
            return updated

    def delete_memory(self, memory_id: str) -> Optional[MemoryRecord]:
        """
        Remove a record and its vector entry.

        Returns:
            The removed record, or None if the id is unknown
        """
        with self._lock:
            idx = self._index_of(memory_id)
            if idx < 0:
                return None
            removed = self.memories[idx]
            self._commit(self.memories[:idx] + self.memories[idx + 1:])

        self._drop_vectors([removed.id])
        return removed

    def _delete_many(self, ids: Iterable[str]) -> int:
        id_set = set(ids)
        if not id_set:
            return 0

        with self._lock:
            kept = [m for m in self.memories if m.id not in id_set]
            removed = len(self.memories) - len(kept)
            if removed:
                self._commit(kept)

        self._drop_vectors(list(id_set))
        return removed

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """
        Delete records whose expires_at is strictly in the past.

        Malformed expires_at values are treated as never expiring.

        Returns:
            Number of records removed
        """
        now = as_utc(now or utcnow())
        expired = []
        for m in self.memories:
            expiry = parse_expiry(m.expires_at)
            if expiry is not None and expiry < now:
                expired.append(m.id)

        removed = self._delete_many(expired)
        if removed:
            logger.info(f"Purged {removed} expired memories")
        return removed

    def count(self) -> int:
        return len(self.memories)

    # ------------------------------------------------------------------
    # Consolidation
    # ------------------------------------------------------------------

    def consolidate_memories(self, user_id: str, key: str) -> ConsolidationResult:
        """
        Collapse active records sharing (user_id, key) into one.

        The winner is the highest priority (high > medium > low > unset),
        then the most recently created. Losers are deactivated and point at
        the winner through superseded_by.

        Returns:
            ConsolidationResult; merged is None and count 0 when there is
            nothing to merge
        """
        with self._lock:
            candidates = self.get_memories_for_user(user_id, key=key, active_only=True)
            if len(candidates) <= 1:
                return ConsolidationResult()

            ranked = sorted(
                candidates,
                key=lambda m: (PRIORITY_RANK.get(m.priority or "", 0), m.created_at),
                reverse=True,
            )
            winner, losers = ranked[0], ranked[1:]
            now = utcnow()
            loser_ids = {m.id for m in losers}

            self._commit([
                m.model_copy(update={"active": False, "superseded_by": winner.id, "updated_at": now})
                if m.id in loser_ids else m
                for m in self.memories
            ])

        logger.info(f"Consolidated {len(losers)} memories into {winner.id} for {user_id}/{key}")
        return ConsolidationResult(merged=winner, superseded=[m.id for m in losers], count=len(losers))

    # ------------------------------------------------------------------
    # Semantic index
    # ------------------------------------------------------------------

    @staticmethod
    def _index_document(record: MemoryRecord) -> Dict[str, Any]:
        return {"content": record.embedding_text(), **record.to_storage_dict()}

    def add_memory_with_vector(self, entry: Union[NewMemory, Mapping[str, Any]]) -> MemoryRecord:
        """
        Add a record, then index it for semantic search.

        The record is committed first; indexing failures are logged and the
        record stays valid (just unsearchable).
        """
        record = self.add_memory(entry)
        if self.semantic_search is not None:
            try:
                self.semantic_search.add_document(self._index_document(record), doc_id=record.id)
            except Exception as e:
                logger.error(f"Vector indexing failed for memory {record.id}: {e}")
        return record

    def _drop_vectors(self, ids: List[str]) -> None:
        if self.semantic_search is None or not ids:
            return
        try:
            self.semantic_search.delete_document(ids)
        except Exception as e:
            logger.error(f"Failed to remove vectors {ids}: {e}")

    def semantic_search_memories(self, query: str, limit: Optional[int] = None) -> List[ScoredMemory]:
        """
        Semantic search re-hydrated into full records.

        Args:
            query: Query text
            limit: Maximum hits (default from config)

        Returns:
            Records with scores, best first; [] on any failure
        """
        if self.semantic_search is None:
            return []

        if limit is None:
            limit = self.config.search.default_limit
        try:
            hits = self.semantic_search.search(query, limit=limit)
        except Exception as e:
            logger.error(f"Semantic search failed for {query!r}: {e}")
            return []

        results = []
        for hit in hits:
            record = self.get_memory(hit.id)
            if record is None:
                continue
            results.append(ScoredMemory(**record.model_dump(), score=hit.score))
        return results

    def reindex_vectors(self) -> int:
        """
        Rebuild the vector index from every active record.

        The whole set is embedded as one batch, which also grows the
        vocabulary from it.

        Returns:
            Number of records indexed (0 when vectors are disabled or indexing fails)
        """
        if self.semantic_search is None:
            return 0

        active = [m for m in self.memories if m.active]
        try:
            self.semantic_search.delete_all()
            self.semantic_search.add_documents(
                [self._index_document(m) for m in active],
                ids=[m.id for m in active],
            )
        except Exception as e:
            logger.error(f"Reindexing failed: {e}")
            return 0

        logger.info(f"Reindexed {len(active)} memories")
        return len(active)

    # ------------------------------------------------------------------
    # Learning from conversations
    # ------------------------------------------------------------------

    def _new_candidates(self, messages: Sequence[Mapping[str, Any]], user_id: str) -> List[NewMemory]:
        if self.extractor is None:
            return []
        extracted = self.extractor.extract_from_conversation(messages, user_id=user_id)
        return [m for m in extracted if self.get_active_memory_for_key(m.user_id, m.key) is None]

    def extract_memories_from_conversation(
        self,
        messages: Sequence[Mapping[str, Any]],
        user_id: str = DEFAULT_USER,
    ) -> List[MemoryRecord]:
        """Extract and store memories (without indexing) for keys not already active."""
        return [self.add_memory(m) for m in self._new_candidates(messages, user_id or DEFAULT_USER)]

    def auto_learn_from_conversation(
        self,
        messages: Sequence[Mapping[str, Any]],
        user_id: str = DEFAULT_USER,
    ) -> List[MemoryRecord]:
        """Extract, store and index memories for keys not already active."""
        learned = [self.add_memory_with_vector(m) for m in self._new_candidates(messages, user_id or DEFAULT_USER)]
        if learned:
            logger.info(f"Learned {len(learned)} memories for {user_id}")
        return learned

    # ------------------------------------------------------------------
    # Importance, feedback and forgetting
    # ------------------------------------------------------------------

    def get_memory_importance(self, memory_id: str) -> Optional[ImportanceScore]:
        record = self.get_memory(memory_id)
        return self.scorer.calculate_score(record) if record else None

    def update_memory_importance(self, memory_id: str, positive: bool) -> Optional[MemoryRecord]:
        """
        Record user feedback on a memory.

        Returns:
            Updated record, or None if the id is unknown
        """
        with self._lock:
            idx = self._index_of(memory_id)
            if idx < 0:
                return None

            current = self.memories[idx]
            field = "positive_feedback" if positive else "negative_feedback"
            updated = current.model_copy(update={
                field: getattr(current, field) + 1,
                "updated_at": utcnow(),
            })
            memories = list(self.memories)
            memories[idx] = updated
            self._commit(memories)
            return updated

    def mark_used(self, memory_ids: Iterable[str]) -> int:
        """
        Increment access_count for active records that were served.

        Returns:
            Number of records updated
        """
        wanted = set(memory_ids)
        updated = 0
        with self._lock:
            memories = list(self.memories)
            for i, m in enumerate(memories):
                if m.id in wanted and m.active:
                    memories[i] = m.model_copy(update={"access_count": m.access_count + 1})
                    updated += 1
            if updated:
                self._commit(memories)
        return updated

    def smart_forget(
        self,
        user_id: Optional[str] = None,
        type: Optional[str] = None,
        current_time: Optional[datetime] = None,
    ) -> CleanupResult:
        """
        Delete memories the forgetter places in the forget bucket.

        Args:
            user_id: Restrict to one user (default: all users)
            type: Restrict to one memory type
            current_time: Reference time

        Returns:
            The cleanup summary that was executed
        """
        candidates = self.get_memories_for_user(user_id) if user_id else list(self.memories)
        if type:
            candidates = [m for m in candidates if m.type == type]

        cleanup = self.forgetter.cleanup(candidates, current_time=current_time)
        removed = self._delete_many(cleanup.to_delete)
        logger.info(f"Smart forget removed {removed} of {cleanup.summary.total} memories")
        return cleanup

    def get_memories_to_review(
        self,
        user_id: Optional[str] = None,
        current_time: Optional[datetime] = None,
    ) -> List[RetentionDecision]:
        active = self.get_memories_for_user(user_id, active_only=True)
        return self.forgetter.evaluate(active, current_time=current_time).review

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_memories(self, fmt: str = "json") -> Optional[str]:
        """Export all records as JSON or CSV; None for unknown formats."""
        return export.export_records(self.memories, fmt)

    def import_memories(self, payload: str, replace: bool = False) -> int:
        """
        Load records from a JSON export.

        Args:
            payload: Output of export_memories("json")
            replace: Overwrite records whose id already exists (skipped otherwise)

        Returns:
            Number of records written
        """
        try:
            incoming = export.from_json(payload)
        except ValidationError as e:
            raise MemoryValidationError.from_pydantic(e) from e

        written = 0
        with self._lock:
            memories = list(self.memories)
            positions = {m.id: i for i, m in enumerate(memories)}
            for record in incoming:
                idx = positions.get(record.id)
                if idx is not None:
                    if not replace:
                        continue
                    memories[idx] = record
                else:
                    positions[record.id] = len(memories)
                    memories.append(record)
                written += 1
            if written:
                self._commit(memories)

        logger.info(f"Imported {written} of {len(incoming)} memories")
        return written
