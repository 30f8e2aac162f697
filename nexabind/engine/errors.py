"""
NexaBind Template Errors
========================

Exception hierarchy raised while compiling PYXM templates.

Every error is raised at compile time and aborts the whole compilation;
there is no partial recovery for a single component unit.
"""

from __future__ import annotations

from typing import Optional


class TemplateError(Exception):
    """Base exception for template errors."""
    pass


class TemplateSyntaxError(TemplateError):
    """
    Raised when template source cannot be parsed.

    Carries the source location so callers can point at the offending
    line without re-scanning the template.
    """

    def __init__(
        self,
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
        filename: Optional[str] = None,
    ) -> None:
        self.message = message
        self.line = line
        self.column = column
        self.filename = filename
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Prefix the message with filename:line:column when known."""
        location = []
        if self.filename:
            location.append(self.filename)
        if self.line is not None:
            location.append(str(self.line))
            if self.column is not None:
                location.append(str(self.column))

        if location:
            return f"{':'.join(location)}: {self.message}"
        return self.message


class TemplateNotFoundError(TemplateError):
    """Raised when a loader cannot find a template."""
    pass


class IncludeCycleError(TemplateError):
    """Raised when templates include each other recursively."""
    pass


class EmptyDocumentError(TemplateError):
    """Raised when a parsed document has no top-level nodes."""
    pass


class RenderBeforeParseError(TemplateError):
    """Raised when rendering is requested before anything was parsed."""
    pass


class UnitStateError(TemplateError):
    """Raised on an illegal component unit state transition."""
    pass


class BindingError(TemplateError):
    """Raised when an element cannot carry the bindings it declares."""
    pass


class UnknownComponentError(TemplateError):
    """Raised when a template calls a component no unit defines."""
    pass


class DuplicateComponentError(TemplateError):
    """Raised when two component units share a name."""
    pass


class UnknownVariableError(TemplateError):
    """Raised when an initial override names an undeclared variable."""
    pass


class TemplateRenderError(TemplateError):
    """Raised when a tree cannot be serialized to markup."""
    pass
