# Heuristic HTML -> NodeDocumentation extraction.
# Node pages have no stable schema, so every section is optional: whatever
# is missing falls back to an empty string, an empty list, or "1.0".

import re
import logging
import time
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from observability.prometheus_metrics import record_parse_duration
from services.shared.models import NodeDocumentation, NodeExample, ParameterDocumentation
from .url_patterns import display_name_from_node_type

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "1.0"

VERSION_RE = re.compile(r"Version\s*:\s*([0-9]+(?:\.[0-9]+)*)", re.IGNORECASE)
PARAM_HEADING_WORDS = ("parameter", "option", "setting")
TYPE_HINTS = ("number", "boolean", "array", "object")

def _text(element: Optional[Tag]) -> str:
    if element is None:
        return ""
    return element.get_text(" ", strip=True)

def _is_heading(element: Tag, levels=("h2", "h3")) -> bool:
    return isinstance(element, Tag) and element.name in levels

def extract_display_name(soup: BeautifulSoup, node_type: str) -> str:
    return _text(soup.find("h1")) or display_name_from_node_type(node_type)

def extract_description(soup: BeautifulSoup) -> str:
    """First paragraph right after the title, else the first content paragraph."""
    h1 = soup.find("h1")
    if h1 is not None:
        following = h1.find_next_sibling()
        if following is not None and following.name == "p":
            description = _text(following)
            if description:
                return description

    for selector in ("main p", "article p"):
        description = _text(soup.select_one(selector))
        if description:
            return description
    return ""

def extract_version(soup: BeautifulSoup) -> str:
    match = VERSION_RE.search(soup.get_text(" "))
    return match.group(1) if match else DEFAULT_VERSION

def _parameters_from_tables(soup: BeautifulSoup) -> List[ParameterDocumentation]:
    parameters = []
    for table in soup.find_all("table"):
        heading = table.find_previous_sibling(["h2", "h3", "h4"])
        heading_text = _text(heading).lower()
        if not any(word in heading_text for word in PARAM_HEADING_WORDS):
            continue

        for row in table.find_all("tr"):
            cells = row.find_all("td")
            if len(cells) < 2:
                continue

            name_cell = _text(cells[0])
            description = _text(cells[1])
            name = name_cell.replace("*", "").strip()
            if not name:
                continue

            required = "required" in description.lower() or "*" in name_cell
            param_type = (_text(cells[2]) if len(cells) >= 3 else "") or "string"

            parameters.append(ParameterDocumentation(
                name=name,
                type=param_type,
                description=description,
                required=required,
            ))
    return parameters

def _parameters_from_lists(soup: BeautifulSoup) -> List[ParameterDocumentation]:
    parameters = []
    for heading in soup.find_all(["h2", "h3"]):
        if "Parameters" not in _text(heading):
            continue
        listing = heading.find_next_sibling()
        if listing is None or listing.name != "ul":
            continue

        for item in listing.find_all("li"):
            text = _text(item)
            name, sep, description = text.partition(":")
            name = name.strip()
            if not sep or not name:
                continue
            description = description.strip()

            param_type = "string"
            for hint in TYPE_HINTS:
                if f"({hint})" in text:
                    param_type = hint

            parameters.append(ParameterDocumentation(
                name=name,
                type=param_type,
                description=description,
                required="required" in description.lower(),
            ))
    return parameters

def extract_parameters(soup: BeautifulSoup) -> List[ParameterDocumentation]:
    """Parameters from option tables, falling back to a 'Parameters' list."""
    return _parameters_from_tables(soup) or _parameters_from_lists(soup)

def extract_examples(soup: BeautifulSoup) -> List[NodeExample]:
    examples = []
    for heading in soup.find_all(["h2", "h3"]):
        title = _text(heading)
        if "Example" not in title:
            continue

        paragraphs = []
        for sibling in heading.find_next_siblings():
            if _is_heading(sibling) or sibling.name == "pre":
                break
            if sibling.name == "p":
                paragraphs.append(_text(sibling))

        code_block = heading.find_next_sibling("pre")
        code = code_block.get_text().strip() if code_block is not None else ""

        examples.append(NodeExample(
            title=title,
            description=" ".join(p for p in paragraphs if p),
            code=code or None,
        ))
    return examples

def parse_documentation(node_type: str, html: str, source_url: str) -> NodeDocumentation:
    """Parse a node documentation page into a structured record.

    Args:
        node_type: Node type the page documents
        html: Page HTML
        source_url: URL the page was fetched from

    Returns:
        A NodeDocumentation; sections that cannot be found are left empty.
    """
    start = time.time()
    soup = BeautifulSoup(html or "", "html.parser")

    doc = NodeDocumentation(
        node_type=node_type,
        display_name=extract_display_name(soup, node_type),
        description=extract_description(soup),
        version=extract_version(soup),
        parameters=extract_parameters(soup),
        examples=extract_examples(soup),
        source_url=source_url,
    )

    record_parse_duration(time.time() - start)
    logger.debug(f"Parsed {node_type}: {len(doc.parameters)} parameters, {len(doc.examples)} examples")
    return doc
