"""
MCP server for codescope.

Exposes search and sync of one project root to MCP clients via the Model
Context Protocol.
"""

import argparse
import logging
from pathlib import Path
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .config import Config
from .logging_config import setup_logging_from_config
from .service import CodeSearchService

logger = logging.getLogger(__name__)


def create_server(service: CodeSearchService) -> FastMCP:
    """
    Build an MCP server whose tools operate on `service`.

    Args:
        service: Fully constructed service for one project root

    Returns:
        FastMCP server ready to run
    """
    mcp = FastMCP("codescope")

    @mcp.tool()
    def code_search(query: str, limit: int = 10, min_score: Optional[float] = None) -> dict:
        """
        Search the indexed codebase for code semantically similar to the query.

        Args:
            query: Natural language or code search query
            limit: Maximum number of results to return (default: 10)
            min_score: Minimum similarity score (default: from config)

        Returns:
            Dictionary with matching chunks, their locations and scores
        """
        try:
            results = service.search(query, limit=limit, min_score=min_score)
        except Exception as e:
            logger.error(f"Search failed: {e}", exc_info=True)
            return {"error": str(e), "results": []}

        formatted = [
            {
                "file_path": r.chunk.file_path,
                "start_line": r.chunk.start_line,
                "end_line": r.chunk.end_line,
                "symbol_name": r.chunk.symbol_name,
                "symbol_kind": r.chunk.symbol_kind,
                "context": r.chunk.context,
                "is_container": r.chunk.chunk_metadata.is_container,
                "score": round(r.score, 3),
                "content": r.chunk.content,
            }
            for r in results
        ]
        logger.info(f"Search for '{query}' returned {len(formatted)} results")
        return {"query": query, "count": len(formatted), "results": formatted}

    @mcp.tool()
    def code_sync(force: bool = False) -> dict:
        """
        Bring the index up to date with the files on disk.

        Args:
            force: Rebuild the whole index instead of applying changes

        Returns:
            Dictionary describing what changed
        """
        try:
            report = service.sync(force=force)
        except Exception as e:
            logger.error(f"Sync failed: {e}", exc_info=True)
            return {"error": str(e)}
        return report.model_dump(mode="json")

    @mcp.tool()
    def code_status() -> dict:
        """
        Get statistics about the indexed codebase.

        Returns:
            Dictionary with point, file and symbol-kind counts
        """
        try:
            stats = service.stats()
        except Exception as e:
            logger.error(f"Failed to get status: {e}", exc_info=True)
            return {"error": str(e)}
        return {**stats.model_dump(mode="json"), "indexed": stats.total_points > 0}

    return mcp


def main():
    """Entry point for the MCP server."""
    parser = argparse.ArgumentParser(description="codescope MCP server for semantic code search")
    parser.add_argument(
        "--project-root",
        type=Path,
        default=Path.cwd(),
        help="Root directory of the project (default: current directory)",
    )
    args = parser.parse_args()

    project_root = args.project_root.resolve()
    config = Config(project_root)
    setup_logging_from_config(config)

    service = CodeSearchService.from_root(project_root, config)
    logger.info(f"Starting codescope MCP server for {project_root}")
    try:
        create_server(service).run()
    finally:
        service.close()


if __name__ == "__main__":
    main()
