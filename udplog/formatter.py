"""Record and file-name templates.

Templates use Jinja2 expression syntax, e.g. ``{{ level_char }} {{ msg }}``.
They are compiled and checked once, at startup: a syntax error or a reference
to a field the event does not carry is a configuration error, never a
per-record one. Only attribute or item lookups on a field, such as
``{{ timestamp.nosuch }}``, can still fail per record; they raise
TemplateRenderError and that record is dropped.
"""

from jinja2 import Environment, StrictUndefined, TemplateError, meta

from udplog.models import PATH_FIELDS, TEMPLATE_FIELDS, LogEvent

DEFAULT_STDOUT_FORMAT = "{{ timestamp_str }} {{ device_id }} {{ src }} {{ level_char }} {{ msg }}"
DEFAULT_FILE_FORMAT = "{{ timestamp_str }} {{ src }} {{ level_char }} {{ msg }}"
DEFAULT_FILE_NAME_FORMAT = "{{ device_id_safe }}/{{ device_id_safe }}.{{ year }}{{ month }}{{ day }}.log"
DEFAULT_LATEST_NAME_FORMAT = "{{ device_id_safe }}/{{ device_id_safe }}.log"

LATEST_NAME_FIELDS = ("device_id_safe",)

_env = Environment(undefined=StrictUndefined, autoescape=False)


class TemplateConfigError(ValueError):
    """Raised when a template cannot be compiled."""


class TemplateRenderError(ValueError):
    """Raised when a compiled template fails on a particular event."""


class RecordTemplate:
    """A compiled, validated template bound to LogEvent fields."""

    def __init__(self, name: str, source: str, template):
        self.name = name
        self.source = source
        self._template = template

    def render(self, event: LogEvent) -> str:
        try:
            return self._template.render(event.as_dict())
        except TemplateError as exc:
            raise TemplateRenderError(f"{self.name} template {self.source!r}: {exc}") from exc

    def __repr__(self):
        return f"RecordTemplate({self.name!r}, {self.source!r})"


def compile_template(source: str, name: str, allowed_fields=TEMPLATE_FIELDS) -> RecordTemplate:
    """Compile *source*, rejecting syntax errors and unknown field references."""
    # find_undeclared_variables compiles the AST, so an unknown filter raises there.
    try:
        ast = _env.parse(source)
        unknown = meta.find_undeclared_variables(ast) - set(allowed_fields)
        template = _env.from_string(source)
    except TemplateError as exc:
        raise TemplateConfigError(f"invalid {name} template {source!r}: {exc}") from exc

    if unknown:
        raise TemplateConfigError(
            f"invalid {name} template {source!r}: unknown field(s) {', '.join(sorted(unknown))}; "
            f"allowed: {', '.join(allowed_fields)}"
        )
    return RecordTemplate(name, source, template)


def compile_file_name_template(source: str) -> RecordTemplate:
    return compile_template(source, "file name", PATH_FIELDS)


def compile_latest_name_template(source: str) -> RecordTemplate:
    return compile_template(source, "latest file name", LATEST_NAME_FIELDS)
