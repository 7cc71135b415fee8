"""
Helpers behind the wrapper's debug output: backtraces, the millisecond
formatting used by the console and the plain text query log.
"""

import os
import re
import traceback
from datetime import datetime
from typing import Any, Dict, List


PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))


def collect_backtrace() -> List[Dict[str, Any]]:
    """Call stack of the caller, innermost first, without this package's frames."""
    frames = []
    for frame in reversed(traceback.extract_stack()):
        if os.path.dirname(os.path.abspath(frame.filename)) == PACKAGE_DIR:
            continue
        frames.append({
            'file': frame.filename,
            'function': f"{frame.name}()",
            'line': frame.lineno,
        })
    return frames


def format_ms(seconds: float) -> str:
    """Seconds as milliseconds with three decimals, e.g. '1.250'."""
    return f"{seconds * 1000:.3f}"


def single_line(sql: str) -> str:
    return re.sub(r'\s+', ' ', sql).strip()


def strip_tags(text: str) -> str:
    return re.sub(r'<[^>]*>', '', text)


def format_log_entry(entry: Dict[str, Any], messages: Dict[str, str], now: datetime = None) -> str:
    """One `#`-framed block of log.txt for a query record."""
    now = now or datetime.now()
    lines = [
        '###################',
        f"# DATE:           #: {now.strftime('%Y %b %d %H:%M:%S')}",
        f"# QUERY:          #: {single_line(entry.get('query', ''))}",
    ]
    if entry.get('execution_time') is not None:
        lines.append(
            f"# {messages['execution_time'].upper()}: #: "
            f"{format_ms(entry['execution_time'])} {messages['miliseconds']}"
        )
    if entry.get('warning'):
        lines.append(f"# WARNING:        #: {strip_tags(entry['warning'])}")
    if entry.get('error'):
        lines.append(f"# ERROR:          #: {entry['error']}")
    if entry.get('affected_rows') is None:
        lines.append(f"# FROM CACHE:     #: {'YES' if entry.get('cache_state') == 'cached' else 'NO'}")
    lines.append('# BACKTRACE:      #:')
    for frame in entry.get('backtrace', []):
        lines.extend([
            '#                 #',
            f"# FILE            #: {frame['file']}",
            f"# LINE            #: {frame['line']}",
            f"# FUNCTION        #: {frame['function']}",
        ])
    lines.append('###################')
    return '\n'.join(lines) + '\n\n'
