"""
Response recovery for Pagewright.

Language models usually answer with a well-formed YAML block, but it may be
wrapped in a code fence or surrounded by commentary. The parser tries a fixed
sequence of strategies, cheapest and most precise first, and never raises.
"""

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml


TOP_LEVEL_KEY = re.compile(r"^[A-Za-z_][\w\-]*[ \t]*:(?:[ \t]|$)")
INDENTED_KEY = re.compile(r"^[ \t]+[A-Za-z_][\w\-]*[ \t]*:(?:[ \t]|$)")
LIST_ITEM = re.compile(r"^[ \t]*-(?:[ \t]|$)")
CLOSED_FENCE = re.compile(r"```[ \t]*[\w+\-.]*[ \t]*\r?\n(.*?)```", re.DOTALL)
OPEN_FENCE = re.compile(r"```[ \t]*[\w+\-.]*[ \t]*\r?\n(.*)$", re.DOTALL)

PARSE_ERRORS = (yaml.YAMLError, ValueError, RecursionError)


def parse_mapping(text: str) -> Optional[Dict[str, Any]]:
    """
    Parse text as YAML and accept only a non-empty mapping.

    Args:
        text: Candidate structured text

    Returns:
        The mapping, or None if the text does not parse to one
    """
    if not text or not text.strip():
        return None
    try:
        parsed = yaml.safe_load(text)
    except PARSE_ERRORS as e:
        logging.debug(f"Candidate text did not parse: {e}")
        return None
    if isinstance(parsed, dict) and parsed:
        return parsed
    return None


def render_structured_text(data: Dict[str, Any]) -> str:
    """Render a value tree in the structured-text format models are asked to produce."""
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)


class ResponseRecoveryParser:
    """
    Recovers a value tree from raw language model output.
    """

    def __init__(self):
        self.strategies: List[Tuple[str, Callable[[str], Optional[Dict[str, Any]]]]] = [
            ("direct", self.parse_direct),
            ("fenced_block", self.parse_fenced_block),
            ("line_scan", self.parse_line_scan),
            ("first_key", self.parse_from_first_key),
        ]

    def recover(self, raw_text: Any) -> Dict[str, Any]:
        """
        Recover a mapping from raw model output.

        Args:
            raw_text: The model's reply

        Returns:
            The recovered mapping, or {"content": raw_text, "parsing_error": reason}
        """
        return self.recover_with_strategy(raw_text)[1]

    def recover_with_strategy(self, raw_text: Any) -> Tuple[str, Dict[str, Any]]:
        """
        Recover a mapping and report which strategy produced it.

        Args:
            raw_text: The model's reply

        Returns:
            Tuple of (strategy name, mapping); the name is 'fallback' when nothing parsed
        """
        text = self._as_text(raw_text)

        for name, strategy in self.strategies:
            try:
                result = strategy(text)
            except RecursionError as e:
                logging.debug(f"Recovery strategy {name} gave up: {e}")
                result = None
            if result is not None:
                logging.debug(f"Recovered response with strategy '{name}'")
                return name, result

        reason = "empty response" if not text.strip() else "no parsing strategy produced a mapping"
        logging.warning(f"Could not recover structured content from response: {reason}")
        return "fallback", {"content": text, "parsing_error": reason}

    def _as_text(self, raw_text: Any) -> str:
        if raw_text is None:
            return ""
        if isinstance(raw_text, bytes):
            return raw_text.decode("utf-8", errors="replace")
        return str(raw_text)

    def parse_direct(self, text: str) -> Optional[Dict[str, Any]]:
        return parse_mapping(text)

    def parse_fenced_block(self, text: str) -> Optional[Dict[str, Any]]:
        """
        Parse the inside of a fenced code block, optionally language-tagged.

        Closed fences are tried in order of appearance; an unclosed fence is
        read to the end of the text.
        """
        for match in CLOSED_FENCE.finditer(text):
            result = parse_mapping(match.group(1).strip())
            if result is not None:
                return result

        if text.count("```") % 2 == 1:
            match = OPEN_FENCE.search(text[text.rfind("```"):])
            if match:
                return parse_mapping(match.group(1).strip())
        return None

    def parse_line_scan(self, text: str) -> Optional[Dict[str, Any]]:
        """
        Parse runs of key-like lines found in surrounding prose.

        A run starts at a top-level key line and collects key lines, list
        items and indented continuation lines. Blank lines are neutral, a
        single stray line is dropped, and two stray lines in a row end the run.
        Runs with at least two key lines are parsed in order.
        """
        for block in self.scan_key_runs(text):
            result = parse_mapping(block)
            if result is not None:
                return result
        return None

    def scan_key_runs(self, text: str) -> List[str]:
        """
        Collect candidate blocks for the line scan.

        Args:
            text: Raw text

        Returns:
            Text of each run with at least two matched key lines
        """
        runs: List[str] = []
        current: List[str] = []
        matched = 0
        misses = 0
        previous_matched = False

        def close_run():
            if matched >= 2:
                runs.append("\n".join(current).strip("\n"))

        for raw_line in text.splitlines():
            line = raw_line.expandtabs(2)

            if not line.strip():
                if current:
                    current.append("")
                continue

            if TOP_LEVEL_KEY.match(line):
                current.append(line)
                matched += 1
            elif current and (INDENTED_KEY.match(line) or LIST_ITEM.match(line)):
                current.append(line)
                matched += 1
            elif current and previous_matched and line[:1] in (" ", "\t"):
                current.append(line)
            elif current:
                misses += 1
                previous_matched = False
                if misses >= 2:
                    close_run()
                    current, matched, misses = [], 0, 0
                continue
            else:
                continue

            misses = 0
            previous_matched = True

        if current:
            close_run()
        return runs

    def parse_from_first_key(self, text: str) -> Optional[Dict[str, Any]]:
        """
        Parse the text from each top-level key line onward, in order of appearance.
        """
        lines = text.splitlines()
        for index, line in enumerate(lines):
            if not TOP_LEVEL_KEY.match(line):
                continue
            result = parse_mapping("\n".join(lines[index:]))
            if result is not None:
                return result
        return None
