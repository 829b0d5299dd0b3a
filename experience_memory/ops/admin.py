"""
CLI utility for memory store administration.

Usage:
    memory-admin add --user u1 --key pref:color --value '{"color": "blue"}' --vector
    memory-admin list --user u1
    memory-admin search "蓝色" --limit 3
    memory-admin learn --user u1 --messages chat.json
    memory-admin forget --user u1
    memory-admin review --user u1
    memory-admin purge
    memory-admin consolidate --user u1 --key pref:color
    memory-admin export --format csv
    memory-admin reindex
    memory-admin stats
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from experience_memory.config.settings import load_config_from_env
from experience_memory.memory.store import MemoryRecordStore

logger = logging.getLogger(__name__)


def _emit(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _parse_value(raw: Optional[str]) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _dump(records) -> List[dict]:
    return [r.model_dump(mode="json") for r in records]


def cmd_add(store: MemoryRecordStore, args: argparse.Namespace) -> int:
    entry = {
        "user_id": args.user,
        "type": args.type,
        "key": args.key,
        "value": _parse_value(args.value),
        "priority": args.priority,
    }
    if args.expires_at:
        entry["expires_at"] = args.expires_at

    record = store.add_memory_with_vector(entry) if args.vector else store.add_memory(entry)
    _emit({"success": True, "id": record.id, "memory": record.model_dump(mode="json")})
    return 0


def cmd_list(store: MemoryRecordStore, args: argparse.Namespace) -> int:
    _emit(_dump(store.get_memories_for_user(args.user, type=args.type, active_only=args.active)))
    return 0


def cmd_search(store: MemoryRecordStore, args: argparse.Namespace) -> int:
    _emit({"results": _dump(store.semantic_search_memories(args.query, limit=args.limit))})
    return 0


def cmd_learn(store: MemoryRecordStore, args: argparse.Namespace) -> int:
    messages = json.loads(Path(args.messages).read_text(encoding="utf-8"))
    if isinstance(messages, dict):
        messages = messages.get("messages", [])
    learned = store.auto_learn_from_conversation(messages, user_id=args.user)
    _emit({"success": True, "learned": len(learned), "memories": _dump(learned)})
    return 0


def cmd_forget(store: MemoryRecordStore, args: argparse.Namespace) -> int:
    result = store.smart_forget(user_id=args.user, type=args.type)
    _emit({"success": True, **result.model_dump()})
    return 0


def cmd_review(store: MemoryRecordStore, args: argparse.Namespace) -> int:
    review = store.get_memories_to_review(args.user)
    _emit([d.model_dump(mode="json") for d in review])
    return 0


def cmd_purge(store: MemoryRecordStore, args: argparse.Namespace) -> int:
    _emit({"success": True, "purged": store.purge_expired()})
    return 0


def cmd_consolidate(store: MemoryRecordStore, args: argparse.Namespace) -> int:
    result = store.consolidate_memories(args.user, args.key)
    _emit({"success": True, **result.model_dump(mode="json")})
    return 0


def cmd_export(store: MemoryRecordStore, args: argparse.Namespace) -> int:
    output = store.export_memories(args.format)
    if output is None:
        print(f"Unsupported export format: {args.format}", file=sys.stderr)
        return 1
    if args.output:
        Path(args.output).write_text(output, encoding="utf-8")
        _emit({"success": True, "path": args.output, "count": store.count()})
    else:
        print(output)
    return 0


def cmd_reindex(store: MemoryRecordStore, args: argparse.Namespace) -> int:
    _emit({"success": True, "indexed": store.reindex_vectors()})
    return 0


def cmd_stats(store: MemoryRecordStore, args: argparse.Namespace) -> int:
    active = sum(1 for m in store.memories if m.active)
    _emit({
        "store_path": str(store.store_path),
        "memories": store.count(),
        "active": active,
        "inactive": store.count() - active,
        "users": len({m.user_id for m in store.memories}),
        "vectors": store.semantic_search.count() if store.semantic_search else None,
    })
    return 0


COMMANDS = {
    "add": cmd_add,
    "list": cmd_list,
    "search": cmd_search,
    "learn": cmd_learn,
    "forget": cmd_forget,
    "review": cmd_review,
    "purge": cmd_purge,
    "consolidate": cmd_consolidate,
    "export": cmd_export,
    "reindex": cmd_reindex,
    "stats": cmd_stats,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memory-admin",
        description="Manage the experience memory store (add, search, forget, export)",
    )
    parser.add_argument("--store", type=Path, help="Memory store file (default: MEMORY_STORE_PATH or data/memory-store.json)")
    parser.add_argument("--vectors", type=Path, help="Vector file (default: MEMORY_VECTOR_PATH or data/vectors.json)")
    parser.add_argument("--no-vector", action="store_true", help="Disable the semantic index")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("add", help="Add a memory")
    p.add_argument("--user", default="default-user")
    p.add_argument("--type", default="unknown")
    p.add_argument("--key", required=True)
    p.add_argument("--value", help="JSON value (plain text is stored as a string)")
    p.add_argument("--priority", default="medium", choices=["high", "medium", "low"])
    p.add_argument("--expires-at", dest="expires_at")
    p.add_argument("--vector", action="store_true", help="Also index for semantic search")

    p = sub.add_parser("list", help="List a user's memories")
    p.add_argument("--user", default="default-user")
    p.add_argument("--type")
    p.add_argument("--active", action="store_true", help="Active records only")

    p = sub.add_parser("search", help="Semantic search")
    p.add_argument("query")
    p.add_argument("--limit", type=int, default=5)

    p = sub.add_parser("learn", help="Learn memories from a conversation JSON file")
    p.add_argument("--user", default="default-user")
    p.add_argument("--messages", required=True, help="JSON list of {role, content} (or {messages: [...]})")

    p = sub.add_parser("forget", help="Delete low-value memories")
    p.add_argument("--user")
    p.add_argument("--type")

    p = sub.add_parser("review", help="Show memories due for review")
    p.add_argument("--user", default="default-user")

    sub.add_parser("purge", help="Delete expired memories")

    p = sub.add_parser("consolidate", help="Merge active duplicates of a key")
    p.add_argument("--user", default="default-user")
    p.add_argument("--key", required=True)

    p = sub.add_parser("export", help="Export all memories")
    p.add_argument("--format", default="json", choices=["json", "csv"])
    p.add_argument("--output", help="Write to file instead of stdout")

    sub.add_parser("reindex", help="Rebuild the vector index from active memories")
    sub.add_parser("stats", help="Show store statistics")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cfg = load_config_from_env()
    if args.store:
        cfg.paths.store_path = str(args.store)
    if args.vectors:
        cfg.paths.vector_path = str(args.vectors)
    if args.no_vector:
        cfg.enable_vector = False

    try:
        store = MemoryRecordStore(config=cfg)
        return COMMANDS[args.command](store, args)
    except (OSError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        _emit({"success": False, "error": str(e)})
        return 1


if __name__ == "__main__":
    sys.exit(main())
