"""
Graph Bulk Load Runner.

Applies the graph schema, then bulk-loads nodes and edges from CSV into
the configured graph store and reports elapsed time and final counts.

Technologies:
- Schema: Pydantic descriptor validation
- Store: SurrealDB (async SDK) or in-memory
- Config: Pydantic Settings + YAML
- Logging: Loguru
"""

import sys
import asyncio
import argparse
from pathlib import Path
from datetime import datetime
from typing import Optional

from loguru import logger

from graphload.graph import GraphLoader, build_store
from graphload.graph.errors import ConfigurationError, LoaderError
from graphload.graph.loader import LoadSummary
from graphload.utils.config import LoaderConfig, load_config
from graphload.utils.logging import setup_logging


async def _load(config: LoaderConfig) -> LoadSummary:
    store = build_store(config.store, config.surreal)
    async with store:
        if config.loading.fresh:
            await store.clear()
        loader = GraphLoader(
            store,
            batch_size=config.loading.edge_batch_size,
            weight_key=config.loading.weight_key,
        )
        return await loader.load_all(
            config.data.schema_file,
            config.data.nodes_file,
            config.data.edges_file,
        )


def run_load(
    config_path: Optional[Path] = None,
    schema: Optional[Path] = None,
    nodes: Optional[Path] = None,
    edges: Optional[Path] = None,
    batch_size: Optional[int] = None,
    backend: Optional[str] = None,
    fresh: bool = False,
    verbose: bool = False,
    log_to_file: Optional[bool] = None,
) -> dict:
    """
    Run the schema + node + edge load.

    Args:
        config_path: YAML config file (defaults to config/loader_config.yaml)
        schema, nodes, edges: Override the configured input files
        batch_size: Override the edge batch size
        backend: Override the store backend (memory, surrealdb)
        fresh: Clear the store before loading
        verbose: Enable debug logging
        log_to_file: Override the configured file logging

    Returns:
        Dictionary with load results; "status" is "success" or "failed"
    """
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        logger.bind(component="Loader").error(f"Configuration error: {e}")
        return {"status": "failed", "error": str(e)}

    if schema:
        config.data.schema_file = Path(schema)
    if nodes:
        config.data.nodes_file = Path(nodes)
    if edges:
        config.data.edges_file = Path(edges)
    if batch_size:
        config.loading.edge_batch_size = batch_size
    if backend:
        config.store.backend = backend
    if fresh:
        config.loading.fresh = True

    setup_logging(
        config.logs_dir,
        level="DEBUG" if verbose else config.logging.level,
        log_format=config.logging.format,
        console=config.logging.console,
        file=config.logging.file if log_to_file is None else log_to_file,
    )
    log = logger.bind(component="Loader")

    results = {
        "started_at": datetime.now().isoformat(),
        "backend": config.store.backend,
    }

    log.info("=" * 70)
    log.info("GRAPH BULK LOAD")
    log.info("=" * 70)
    log.info(f"Schema: {config.data.schema_file}")
    log.info(f"Nodes:  {config.data.nodes_file}")
    log.info(f"Edges:  {config.data.edges_file} (batch size {config.loading.edge_batch_size})")

    try:
        summary = asyncio.run(_load(config))
    except (LoaderError, OSError) as e:
        log.error(f"Load failed: {type(e).__name__}: {e}")
        results["status"] = "failed"
        results["error"] = str(e)
        return results

    results["status"] = "success"
    results["elapsed_seconds"] = summary.elapsed_seconds
    results["vertices"] = summary.vertex_count
    results["edges"] = summary.edge_count
    results["layers"] = {
        name: {
            "type": r.table_type,
            "loaded": r.records_loaded,
            "rows": r.rows_processed,
            "skipped": r.skipped,
            "failed_batches": r.failed_batches,
        }
        for name, r in summary.results.items()
    }
    results["completed_at"] = datetime.now().isoformat()

    log.info("=" * 70)
    log.info("LOAD COMPLETE")
    log.info("=" * 70)

    return results


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Bulk-load a graph from schema + CSV files")
    parser.add_argument("--config", type=Path, help="YAML config file")
    parser.add_argument("--schema", type=Path, help="Schema descriptor JSON")
    parser.add_argument("--nodes", type=Path, help="Node CSV file")
    parser.add_argument("--edges", type=Path, help="Edge CSV file")
    parser.add_argument("--batch-size", type=int, help="Edge rows per transaction")
    parser.add_argument(
        "--backend",
        choices=["memory", "surrealdb"],
        help="Graph store backend",
    )
    parser.add_argument(
        "--fresh",
        action="store_true",
        help="Clear the store before loading",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()
    if args.batch_size is not None and args.batch_size < 1:
        parser.error("--batch-size must be positive")

    results = run_load(
        config_path=args.config,
        schema=args.schema,
        nodes=args.nodes,
        edges=args.edges,
        batch_size=args.batch_size,
        backend=args.backend,
        fresh=args.fresh,
        verbose=args.verbose,
    )

    if results["status"] == "success":
        print("\n✓ Load completed successfully")
        print(f"  Data loaded in {results['elapsed_seconds']:.2f}s ({results['backend']})")
        print(f"  Total vertices: {results['vertices']}")
        print(f"  Total edges: {results['edges']}")
        edges = results["layers"]["edges"]
        if edges["skipped"] or edges["failed_batches"]:
            print(
                f"  Edge rows skipped: {edges['skipped']}, "
                f"failed batches: {edges['failed_batches']}"
            )
    else:
        print(f"\n✗ Load failed: {results.get('error', 'Unknown error')}")
        sys.exit(1)


if __name__ == "__main__":
    main()
