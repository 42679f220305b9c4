import argparse
import asyncio
from pprint import pprint

import sys
from pathlib import Path

# Add project root to Python path so we can import 'graphload'
# Logic: script is in scripts/demo_graph_queries.py -> parent is scripts -> parent is project root
project_root = Path(__file__).resolve().parent.parent
if str(project_root) not in sys.path:
    sys.path.append(str(project_root))

from graphload.graph.errors import StoreError
from graphload.graph.queries import GRAPH_QUERIES, get_query
from graphload.graph.surreal import SurrealGraphStore
from graphload.utils.config import load_config


async def run_queries(names):
    config = load_config(project_root / "config" / "loader_config.yaml")
    surreal = config.surreal

    store = SurrealGraphStore(
        url=surreal.url,
        namespace=surreal.namespace,
        database=surreal.database,
        username=surreal.username,
        password=surreal.password,
    )

    async with store:
        print(f"Vertices: {await store.count_vertices()}")
        print(f"Edges:    {await store.count_edges()}")

        print("\n=== Running Sample Graph Queries ===\n")

        for name in names:
            info = GRAPH_QUERIES[name]
            print(f"\n--- Query: {name} ---")
            print(f"Description: {info['description']}")

            try:
                results = await store.query(get_query(name))
            except StoreError as e:
                print(f"Query failed: {e}")
                continue

            if isinstance(results, list):
                print(f"Rows returned: {len(results)}")
                for row in results[:3]:
                    pprint(row)
            else:
                print("Unexpected result format")
                pprint(results)


def main():
    parser = argparse.ArgumentParser(description="Run sample queries against the loaded graph")
    parser.add_argument(
        "queries",
        nargs="*",
        help=f"Query names to run (default: all). Available: {', '.join(GRAPH_QUERIES)}",
    )
    args = parser.parse_args()
    unknown = [q for q in args.queries if q not in GRAPH_QUERIES]
    if unknown:
        parser.error(f"Unknown queries: {', '.join(unknown)}")
    asyncio.run(run_queries(args.queries or list(GRAPH_QUERIES)))


if __name__ == "__main__":
    main()
