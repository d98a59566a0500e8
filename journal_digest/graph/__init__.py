"""LangGraph digest pipeline: entry summaries, merge, salience, overview."""

from journal_digest.graph.builder import build_graph, generate_combined_summary, get_graph_app
from journal_digest.graph.state import DigestState

__all__ = ["DigestState", "build_graph", "generate_combined_summary", "get_graph_app"]
