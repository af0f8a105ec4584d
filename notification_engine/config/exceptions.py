"""Exceptions raised while loading configuration."""

from typing import List, Optional


class ConfigurationError(Exception):
    """
    Raised when the YAML config or the environment is invalid.

    Carries every validation error found plus suggestions for fixing them,
    so a single run reports all problems at once.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        self.message = message
        self.errors = errors or []
        self.suggestions = suggestions or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]

        if self.errors:
            parts.append("\nValidation Errors:")
            parts.extend(f"  {i}. {error}" for i, error in enumerate(self.errors, 1))

        if self.suggestions:
            parts.append("\nSuggestions:")
            parts.extend(f"  - {suggestion}" for suggestion in self.suggestions)

        return "\n".join(parts)

    def to_dict(self) -> dict:
        """Structured form for JSON summaries."""
        return {
            "message": self.message,
            "errors": list(self.errors),
            "suggestions": list(self.suggestions),
        }
