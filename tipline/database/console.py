"""
Debug console rendering.

The console is an HTML fragment listing the errors, successful and failed
queries, warnings and request globals collected by a Database instance.
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup, escape

from .debug import format_ms


SQL_KEYWORDS = [
    'ADD', 'ALTER', 'ANALYZE', 'BETWEEN', 'CHANGE', 'COMMIT', 'CREATE', 'DELETE',
    'DROP', 'EXPLAIN', 'FROM', 'GROUP BY', 'HAVING', 'INNER JOIN', 'INSERT INTO',
    'LEFT JOIN', 'LIMIT', 'ON DUPLICATE KEY', 'OPTIMIZE', 'ORDER BY', 'RENAME',
    'REPAIR', 'REPLACE INTO', 'RIGHT JOIN', 'ROLLBACK', 'SELECT', 'SET', 'SHOW',
    'START TRANSACTION', 'STATUS', 'TABLE', 'TABLES', 'TRUNCATE', 'UPDATE',
    'UNION', 'VALUES', 'WHERE',
]

SQL_TOKENS = re.compile(
    r"(?P<string>'[^']*'|\"[^\"]*\")"
    r"|(?P<keyword>\b(?:" + '|'.join(k.replace(' ', r'\s+') for k in sorted(SQL_KEYWORDS, key=len, reverse=True)) + r")\b)"
    r"|(?P<symbol>[=><*+\-,.()])",
    re.IGNORECASE,
)

# block name -> element id prefix used by the template
BLOCKS = {
    'errors': 'e',
    'successful-queries': 'sq',
    'unsuccessful-queries': 'uq',
    'warnings': 'w',
}

TEMPLATE_DIR = Path(__file__).parent / 'templates'


def highlight_sql(sql: str) -> Markup:
    """Escape `sql` for HTML and wrap keywords, strings and symbols in spans."""
    out = []
    position = 0
    for match in SQL_TOKENS.finditer(sql):
        out.append(str(escape(sql[position:match.start()])))
        kind = match.lastgroup
        text = match.group(0)
        if kind == 'keyword':
            text = ' '.join(text.upper().split())
        out.append(f'<span class="sql-{kind}">{escape(text)}</span>')
        position = match.end()
    out.append(str(escape(sql[position:])))
    return Markup(''.join(out))


class DebugConsole:
    """Renders the debug information of one Database instance."""

    template_name = 'debug_console.html'

    def __init__(self, template_dir: Optional[Path] = None):
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
            autoescape=select_autoescape(['html', 'xml']),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters['highlight_sql'] = highlight_sql
        self.env.filters['ms'] = format_ms

    def render(self, debug_info: Dict[str, List[Dict[str, Any]]], messages: Dict[str, str],
               total_execution_time: float = 0, minimized: bool = True,
               request_globals: Optional[Dict[str, Any]] = None) -> str:
        blocks = []
        for name, identifier in BLOCKS.items():
            entries = debug_info.get(name, [])
            blocks.append({
                'name': name,
                'identifier': identifier,
                'title': messages[name.replace('-', '_')],
                'counter': len(entries),
                'entries': entries,
            })

        template = self.env.get_template(self.template_name)
        return template.render(
            blocks=blocks,
            messages=messages,
            total_execution_time=total_execution_time,
            minimized=minimized,
            request_globals=request_globals or {},
        )
