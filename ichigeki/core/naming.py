"""
Default name resolution.

The run name is the base name of the first argument unless a template is
configured. Templates embed ``{{ ... }}`` expressions that are expanded
by registered functions:

    {{ name }}              base name of the first argument
    {{ exec_date }}         scheduled date, YYYY-MM-DD
    {{ today }}             clock's current date, YYYY-MM-DD
    {{ arg 1 }}             argument by index ("" when out of range)
    {{ last_arg }}          last argument
    {{ args | hash }}       short sha256 of the arguments (7 hex chars)
    {{ args | sha256 }}     full sha256 of the arguments
    {{ env "VAR" }}         environment variable ("" when unset)
    {{ must_env "VAR" }}    environment variable, error when unset

Example:
    "{{ name }}-{{ arg 1 }}-{{ args | hash }}"  ->  "go-test-1a2b3c4"
"""

import hashlib
import os
import re
import shlex
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional

from ichigeki.core.errors import TemplateError

EXPRESSION = re.compile(r"\{\{\s*(.*?)\s*\}\}")
SHORT_HASH_LENGTH = 7


@dataclass
class NameContext:
    """Values visible to a name template."""

    args: List[str]
    exec_date: date
    today: date
    environ: Dict[str, str] = field(default_factory=lambda: dict(os.environ))

    @property
    def name(self) -> str:
        return base_name(self.args)


def base_name(args: List[str]) -> str:
    return os.path.basename(args[0]) if args else ""


def _args_digest(args: List[str]) -> str:
    return hashlib.sha256(" ".join(args).encode("utf-8")).hexdigest()


class NameTemplate:
    """Expands ``{{ ... }}`` expressions against a NameContext."""

    def __init__(self, template: str):
        self.template = template
        self._functions: Dict[str, Callable[..., str]] = {}
        self._filters: Dict[str, Callable[[List[str]], str]] = {}
        self._register_builtins()

    def _register_builtins(self):
        self._functions.update(
            {
                "name": lambda ctx: ctx.name,
                "exec_date": lambda ctx: ctx.exec_date.isoformat(),
                "today": lambda ctx: ctx.today.isoformat(),
                "arg": self._arg,
                "last_arg": lambda ctx: ctx.args[-1] if ctx.args else "",
                "env": lambda ctx, var: ctx.environ.get(var, ""),
                "must_env": self._must_env,
            }
        )
        self._filters.update(
            {
                "hash": lambda args: _args_digest(args)[:SHORT_HASH_LENGTH],
                "sha256": _args_digest,
            }
        )

    def register_function(self, name: str, func: Callable[..., str]):
        """Register a custom function; it receives the context then its arguments."""
        self._functions[name] = func

    @staticmethod
    def _arg(ctx: NameContext, index: str) -> str:
        try:
            position = int(index)
        except ValueError:
            raise TemplateError(f"arg index must be an integer: {index!r}")
        if 0 <= position < len(ctx.args):
            return ctx.args[position]
        return ""

    @staticmethod
    def _must_env(ctx: NameContext, var: str) -> str:
        if var not in ctx.environ:
            raise TemplateError(f"environment variable {var} is not defined")
        return ctx.environ[var]

    def _evaluate(self, expression: str, ctx: NameContext) -> str:
        pipeline = [part.strip() for part in expression.split("|")]
        source, filters = pipeline[0], pipeline[1:]

        if filters:
            if source != "args":
                raise TemplateError(f"filters apply to args only: {expression!r}")
            if len(filters) != 1 or filters[0] not in self._filters:
                raise TemplateError(f"unknown filter in {expression!r}")
            return self._filters[filters[0]](ctx.args)

        try:
            tokens = shlex.split(source.replace("`", '"'))
        except ValueError as e:
            raise TemplateError(f"malformed expression {expression!r}: {e}")
        if not tokens:
            raise TemplateError("empty template expression")

        func = self._functions.get(tokens[0])
        if func is None:
            raise TemplateError(f"function {tokens[0]!r} not defined")
        try:
            return str(func(ctx, *tokens[1:]))
        except TypeError as e:
            raise TemplateError(f"wrong arguments for {tokens[0]!r}: {e}")

    def render(self, ctx: NameContext) -> str:
        return EXPRESSION.sub(lambda match: self._evaluate(match.group(1), ctx), self.template)


def resolve_name(
    args: List[str],
    exec_date: date,
    today: date,
    template: Optional[str] = None,
    environ: Optional[Dict[str, str]] = None,
) -> str:
    """Compute the default run name for ``args``."""
    ctx = NameContext(
        args=list(args),
        exec_date=exec_date,
        today=today,
        environ=dict(os.environ) if environ is None else environ,
    )
    if not template:
        return ctx.name
    name = NameTemplate(template).render(ctx)
    if not name:
        raise TemplateError(f"template {template!r} rendered an empty name")
    return name
