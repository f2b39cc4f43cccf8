#!/usr/bin/env python3
"""
Index Rebuild Utility
Rebuilds or reconciles the vector index from the canonical SQLite store after lost or
corrupted vectors, or after switching embedding models.
"""

import argparse
import sys

from dotenv import load_dotenv

from memory_local.core.config import load_config
from memory_local.core.errors import MemoryStoreError
from memory_local.core.orchestrator import MemoryOrchestrator


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Rebuild or reconcile the memory vector index")
    parser.add_argument("--data-dir", help="Data directory (defaults to MEMORY_DATA_DIR)")
    parser.add_argument("--embedding-model", help="Embedding model name")
    parser.add_argument("--embedding-provider", choices=["sentence-transformers", "hash"],
                        help="Embedding provider")
    parser.add_argument("--reconcile-only", action="store_true",
                        help="Only repair drift and embed records that have no vector")
    parser.add_argument("--timeout", type=float, default=None,
                        help="Seconds to wait for queued embeddings in reconcile mode")
    return parser.parse_args(argv)


def main(argv=None):
    """Rebuild (default) or reconcile the vector index."""
    load_dotenv()
    args = parse_args(argv)

    options = {"enableEmbeddings": True, "reconcileOnInit": False}
    if args.data_dir:
        options["dataDirectory"] = args.data_dir
    if args.embedding_model:
        options["embeddingModel"] = args.embedding_model
    if args.embedding_provider:
        options["embeddingProvider"] = args.embedding_provider

    try:
        config = load_config(options)
        memory = MemoryOrchestrator(config)
    except MemoryStoreError as e:
        print(f"ERROR: {e}")
        return 1

    try:
        if not memory.vector_available:
            print("ERROR: Vector index not available")
            return 1

        print(f"Found {memory.structured.count()} memories in canonical store")

        if args.reconcile_only:
            print("Reconciling vector index...")
            summary = memory.reconcile()
            print(f"✓ Removed {summary['orphans_removed']} orphan vectors, "
                  f"cleared {summary['flags_cleared']} stale flags, queued {summary['queued']} records")
            if not memory.wait_for_embeddings(args.timeout):
                print("WARNING: Timed out waiting for embeddings; remaining records stay structured-only")
        else:
            print("Starting vector index rebuild...")
            summary = memory.rebuild_vector_index()
            print(f"✓ Successfully rebuilt index with {summary['embedded']} vectors")
            if summary["failed"]:
                print(f"WARNING: {summary['failed']} records could not be embedded")

        stats = memory.stats()
        print(f"✓ {stats['withEmbeddings']}/{stats['total']} memories have embeddings")
    finally:
        memory.close(drain=False)

    print("Index rebuild complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
