"""
HTML Post-Processing
====================

Transformations applied to captured documents before they are written:
preload hint injection and deterministic serialization.
"""

from typing import List

from bs4 import BeautifulSoup
from bs4.dammit import EntitySubstitution
from bs4.formatter import HTMLFormatter

from prerender.models.schemas import ResourceSet

# Minimal escaping, HTML void elements and boolean attributes; text nodes are
# emitted exactly as parsed
OUTPUT_FORMATTER = HTMLFormatter(
    entity_substitution=EntitySubstitution.substitute_xml,
    void_element_close_prefix=None,
    empty_attributes_are_booleans=True,
)


def build_preload_hints(resources: ResourceSet) -> List[str]:
    """Build preload link tags, stylesheets first, in discovery order."""
    hints = [
        f'  <link rel="preload" href="{href}" as="style" crossorigin>'
        for href in resources.stylesheets
    ]
    hints.extend(
        f'  <link rel="modulepreload" href="{href}" crossorigin>' for href in resources.scripts
    )
    return hints


def inject_preload_hints(html: str, resources: ResourceSet) -> str:
    """
    Insert preload hints immediately before the first ``</head>``.

    Documents without a head-closing tag, or renders that captured no
    resources, are returned unchanged.
    """
    hints = build_preload_hints(resources)
    if not hints:
        return html
    joined = "\n".join(hints)
    return html.replace("</head>", f"\n{joined}\n  </head>", 1)


def format_html(html: str) -> str:
    """
    Re-serialize a document deterministically.

    Markup is normalized (attribute quoting, void elements, entity escaping)
    but whitespace inside and between elements is left alone, so the rendered
    text matches what the browser produced. Line endings become ``\\n`` and
    the document ends with exactly one newline.
    """
    soup = BeautifulSoup(html, "html.parser")
    serialized = soup.decode(formatter=OUTPUT_FORMATTER)
    serialized = serialized.replace("\r\n", "\n").replace("\r", "\n")
    return serialized.rstrip("\n") + "\n"
