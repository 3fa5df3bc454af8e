"""
Markdown formatting utilities for Parallax.
"""
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from parallax.core.article import ScoredArticle
from parallax.core.pipeline import LensRunResult
from parallax.graph.edges import EdgeExtractionResult
from parallax.graph.gallery import Strand

# Configure logging
logger = logging.getLogger(__name__)


class MarkdownFormatter:
    """
    Formats lens runs and semantic graphs into Markdown content.
    """
    def __init__(self, max_per_column: int = 10):
        """
        Initialize the MarkdownFormatter.

        Args:
            max_per_column: Articles listed per column (0 = no limit)
        """
        self.today = datetime.now().strftime("%B %d, %Y")
        self.max_per_column = max_per_column

    def format_article_metadata(self, item: ScoredArticle) -> str:
        """
        Format article metadata with consistent layout.

        Args:
            item: The ranked article to format metadata for

        Returns:
            Formatted metadata string
        """
        metadata = [f"**Score:** {item.score}"]
        if item.temporal_bonus:
            metadata.append(f"**Date bonus:** {item.temporal_bonus:+d}")
        if item.cross_mentions:
            metadata.append(f"**Also covered by:** {item.cross_mentions} other column{'s' if item.cross_mentions > 1 else ''}")
        if item.recency.label != "unknown":
            metadata.append(f"**Published:** {item.recency.label}")
        return " ".join(metadata)

    def format_article(self, item: ScoredArticle) -> str:
        """
        Format a single ranked article as Markdown.

        Args:
            item: The ranked article

        Returns:
            Formatted article
        """
        article = item.article
        lines = [f"### [{article.title}]({article.link})", self.format_article_metadata(item)]
        if article.description:
            lines.append("")
            lines.append(article.description)
        lines.append("")
        return "\n".join(lines)

    def format_lens_report(self, result: LensRunResult, topic: Optional[str] = None) -> str:
        """
        Format a lens run into a report, one section per column.

        Args:
            result: The lens run
            topic: Topic shown in the heading

        Returns:
            Formatted report content
        """
        heading = f"# {result.lens.label}: {topic}" if topic else f"# {result.lens.label}"
        content = [heading, f"Generated on {self.today}", "", "## Columns"]

        for column in result.lens.columns:
            content.append(f"- {column.label}: {len(result.columns.get(column.id, []))} articles")
        content.append("---")
        content.append("")

        for column in result.lens.columns:
            items = result.columns.get(column.id, [])
            content.append(f"## {column.label}")
            if not items:
                content.append("*No matching coverage.*")
                content.append("")
                continue
            shown = items[:self.max_per_column] if self.max_per_column else items
            for item in shown:
                content.append(self.format_article(item))
            if len(shown) < len(items):
                content.append(f"*{len(items) - len(shown)} more not shown.*")
                content.append("")

        if result.failures:
            content.append("## Unreachable feeds")
            for failure in result.failures:
                content.append(f"- {failure.url}: {failure.error}")
            content.append("")

        logger.debug(f"Formatted report for lens '{result.lens.id}' with {result.article_count} articles")
        return "\n".join(content)

    def format_reading_list(self, items: Sequence[ScoredArticle]) -> str:
        """
        Format ranked articles into a flat reading list, best first.
        """
        content = ["# Reading List", "", f"Generated on {self.today}", ""]
        for item in sorted(items, key=lambda i: i.rank_score, reverse=True):
            marker = " (cross-covered)" if item.cross_mentions else ""
            content.append(f"- [{item.article.title}]({item.article.link}){marker}")
        return "\n".join(content)

    def format_edges(self, result: EdgeExtractionResult, strands: Sequence[Strand] = ()) -> str:
        """
        Format extracted relationships, and optionally the strands built from them.
        """
        content: List[str] = [
            "# Semantic Relationships",
            f"{len(result.relationships)} relationships between {result.term_count} terms "
            f"({result.batch_count} batch{'es' if result.batch_count != 1 else ''})",
            "",
        ]
        for edge in result.relationships:
            line = f"- **{edge.term_a}** *{edge.type}* **{edge.term_b}** ({edge.strength:.2f})"
            if edge.rationale:
                line += f": {edge.rationale}"
            content.append(line)

        for i, strand in enumerate(strands, 1):
            anchor = strand.anchor_term.label if strand.anchor_term else strand.anchor
            content.append("")
            content.append(f"## Strand {i}: {anchor}")
            for node in strand.nodes[1:]:
                label = node.term.label if node.term else node.label
                content.append(f"{'  ' * (node.depth - 1)}- {label}")
        return "\n".join(content)
