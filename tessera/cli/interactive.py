from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from .validation import (
    DATA_EXTENSION,
    TEMPLATE_EXTENSION,
    create_directory_if_not_exists,
    file_exists_and_is_readable,
    has_extension,
)

"""Interactive prompting for the run inputs.

Every prompt loops until a valid answer is given. `input_fn` / `print_fn` are
injectable so the prompts can be driven from tests.
"""

__all__ = [
    "InteractiveResult",
    "InteractivePrompter",
]

PROMPT = ">> "


@dataclass(frozen=True)
class InteractiveResult:
    template_paths: list[Path] = field(default_factory=list)
    data_path: Path = Path()
    output_directory: Path = Path(".")


class InteractivePrompter:
    def __init__(
        self,
        input_fn: Callable[[str], str] | None = None,
        print_fn: Callable[[str], None] | None = None,
        default_output: str = "./output",
    ) -> None:
        self._input = input_fn or input
        self._print = print_fn or print
        self.default_output = default_output

    def collect_input(self) -> InteractiveResult:
        """Prompt for templates, data file and output directory.

        Raises:
            EOFError: stdin closed before all answers were given
        """
        templates = self.prompt_for_file_paths("template", TEMPLATE_EXTENSION)
        data = self.prompt_for_file_path("data", DATA_EXTENSION)
        output = self.prompt_for_directory("output", self.default_output)
        return InteractiveResult(template_paths=templates, data_path=data, output_directory=output)

    def _ask(self) -> str:
        return self._input(PROMPT).strip()

    def prompt_for_file_path(self, kind: str, extension: str) -> Path:
        while True:
            self._print(f"Enter the path to the {kind} file (e.g., {kind}{extension}):")
            path = Path(self._ask())
            if file_exists_and_is_readable(path) and has_extension(path, extension):
                return path
            self._print("Invalid path or file extension. Please try again.")

    def prompt_for_file_paths(self, kind: str, extension: str) -> list[Path]:
        paths: list[Path] = []
        self._print(f"Enter the path to the {kind} file (e.g., {kind}{extension}) or press Enter to finish:")
        while True:
            answer = self._ask()
            if not answer:
                if paths:
                    return paths
                self._print(f"You must provide at least one {kind} file.")
                continue
            path = Path(answer)
            if file_exists_and_is_readable(path) and has_extension(path, extension):
                paths.append(path)
                self._print(f"  Added {kind}: {path}")
                self._print("Enter another path or press Enter to finish:")
            else:
                self._print("Invalid path or file extension. Please try again.")

    def prompt_for_directory(self, kind: str, default: str) -> Path:
        while True:
            self._print(f"Enter the path for the {kind} directory [{default}]:")
            answer = self._ask()
            path = Path(answer) if answer else Path(default)
            if create_directory_if_not_exists(path):
                return path
            self._print("Invalid path or could not create directory. Please try again.")
