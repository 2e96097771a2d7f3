"""
Shared tool interfaces - configuration, results and output formatting.
Lets CLI front-ends and automation drive the same core tools.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ToolConfig:
    """Configuration handed to a tool run."""
    tool_name: str
    input_paths: List[str] = field(default_factory=list)
    output_format: str = 'text'
    verbose: bool = False
    log_file: Optional[str] = None
    custom_args: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResult:
    """Outcome of a tool run."""
    success: bool
    data: Any
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    execution_time: float = 0.0


class ToolInterface(ABC):
    """Base class for tools that can be run from the CLI or chained."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @abstractmethod
    def run(self, config: ToolConfig) -> ToolResult:
        ...


class ConfigBuilder:
    """Build a ToolConfig from parsed argparse arguments."""

    @staticmethod
    def from_args(args, tool_name: str) -> ToolConfig:
        paths = getattr(args, 'paths', None) or []
        if isinstance(paths, str):
            paths = [paths]
        return ToolConfig(
            tool_name=tool_name,
            input_paths=[str(p) for p in paths],
            output_format=getattr(args, 'format', 'text') or 'text',
            verbose=bool(getattr(args, 'verbose', False)),
            log_file=getattr(args, 'log_file', None),
        )


class OutputFormatter:
    """Render a ToolResult as text, json or quiet output."""

    def format_result(self, result: ToolResult, output_format: str = 'text') -> str:
        if output_format == 'json':
            return self._format_json(result)
        if output_format == 'quiet':
            return self._format_quiet(result)
        return self._format_text(result)

    def _format_json(self, result: ToolResult) -> str:
        return json.dumps({
            'success': result.success,
            'data': result.data,
            'errors': result.errors,
            'metadata': result.metadata,
            'execution_time': result.execution_time,
        }, indent=2, default=str)

    def _format_text(self, result: ToolResult) -> str:
        if not result.success:
            return "\n".join(result.errors)
        return str(result.data)

    def _format_quiet(self, result: ToolResult) -> str:
        return ""
