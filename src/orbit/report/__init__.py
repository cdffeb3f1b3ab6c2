"""
Reporting module for Orbit.

This module renders finished runs for people and programs.

Output formats:
    - Console: Rich terminal output with a tool-call timeline and status icons
    - JSON: Run metadata, final value, summary and the full transcript

Example:
    from orbit.report import generate_json_report, print_transcript

    print_transcript(result)
    print(generate_json_report(result))
"""

from orbit.report.console import print_messages, print_transcript
from orbit.report.json import (
    build_report_dict,
    dump_transcript,
    generate_json_report,
    load_transcript,
)

__all__ = [
    "build_report_dict",
    "dump_transcript",
    "generate_json_report",
    "load_transcript",
    "print_messages",
    "print_transcript",
]
