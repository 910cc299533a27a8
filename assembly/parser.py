"""Line-oriented parser for module source text.

A module is a sequence of whitespace-separated tokens, one declaration or
instruction each:

    use.std::math::u64->u64        imports, first
    const.LIMIT=1000               constants, after imports
    #! doc text                    doc comments, directly before a procedure
    proc.helper.2 ... end          internal procedure with 2 locals
    export.api ... end             exported procedure
    export.u64::add->plus          re-export of an imported procedure
    begin ... end                  program entry, last

`#` starts a line comment and `#!` a documentation comment. Tokenization and
declaration order are checked here; names and references are checked by the
resolver.
"""

import re
from typing import List, Optional

from .ast import ConstantDecl, ImportDecl, Instruction, ModuleAst, ProcedureDecl, ReExportDecl
from .errors import (
    AssemblySyntaxError,
    InvalidNameError,
    LocalsLimitError,
    MisplacedDeclarationError,
    MisplacedDocCommentError,
    SourceLocation,
)

MAX_NAME_LENGTH = 100
MAX_PROCEDURE_LOCALS = 1 << 16

LABEL_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")
CONSTANT_NAME_RE = re.compile(r"^[A-Z][A-Z0-9_]*$")

# Declaration sections, in the order they may appear
_IMPORTS, _CONSTANTS, _BODIES, _AFTER_ENTRY = range(4)


def validate_label(name: str, location: SourceLocation, what: str = "procedure label") -> str:
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidNameError(f"{what} '{name[:20]}...' exceeds {MAX_NAME_LENGTH} characters", location)
    if not LABEL_RE.match(name):
        raise InvalidNameError(f"invalid {what} '{name}'", location)
    return name


def validate_constant_name(name: str, location: SourceLocation) -> str:
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidNameError(f"constant name '{name[:20]}...' exceeds {MAX_NAME_LENGTH} characters", location)
    if not CONSTANT_NAME_RE.match(name):
        raise InvalidNameError(f"invalid constant name '{name}'", location)
    return name


def validate_module_path(path: str, location: SourceLocation) -> str:
    parts = path.split("::")
    for part in parts:
        validate_label(part, location, what="module path component")
    return path


class _Parser:
    def __init__(self, source: str, path: str, file: str):
        self.module = ModuleAst(path=path, file=file)
        self.lines = source.splitlines()
        self.section = _IMPORTS
        self.current: Optional[ProcedureDecl] = None
        self.docs: List[str] = []
        self.docs_location: Optional[SourceLocation] = None

    def loc(self, line_no: int) -> SourceLocation:
        return SourceLocation(self.module.file, line_no)

    def parse(self) -> ModuleAst:
        for line_no, raw in enumerate(self.lines, start=1):
            self._parse_line(raw, line_no)
        if self.current is not None:
            raise AssemblySyntaxError(
                f"'{self._describe(self.current)}' is missing its 'end'", self.current.location
            )
        if self.docs:
            raise MisplacedDocCommentError(
                "documentation comment is not followed by a procedure declaration", self.docs_location
            )
        return self.module

    # --- Lines ---

    def _parse_line(self, raw: str, line_no: int) -> None:
        location = self.loc(line_no)
        code, _, comment = raw.partition("#")
        tokens = code.split()

        if comment.startswith("!"):
            if tokens:
                raise MisplacedDocCommentError("documentation comment must be on its own line", location)
            if self.current is not None:
                raise MisplacedDocCommentError(
                    "documentation comment inside a procedure body", location
                )
            if not self.docs:
                self.docs_location = location
            self.docs.append(comment[1:].strip())
            return

        if self.docs and not self._opens_declaration(tokens):
            raise MisplacedDocCommentError(
                "documentation comment must directly precede a procedure declaration", self.docs_location
            )

        for token in tokens:
            self._parse_token(token, location)

    @staticmethod
    def _opens_declaration(tokens: List[str]) -> bool:
        return bool(tokens) and tokens[0].startswith(("proc.", "export."))

    def _take_docs(self) -> Optional[str]:
        if not self.docs:
            return None
        text = "\n".join(self.docs)
        self.docs = []
        self.docs_location = None
        return text

    # --- Tokens ---

    def _parse_token(self, token: str, location: SourceLocation) -> None:
        if self.section == _AFTER_ENTRY:
            raise MisplacedDeclarationError(
                f"'{token}' after the program entry; the entry must be the last declaration", location
            )

        if self.current is not None:
            if token == "end":
                self._close(location)
            elif token.startswith(("proc.", "export.", "use.", "const.")) or token == "begin":
                raise AssemblySyntaxError(
                    f"'{token}' inside the body of '{self._describe(self.current)}'", location
                )
            else:
                self.current.body.append(_instruction(token, location))
            return

        if token.startswith("use."):
            self._parse_import(token[4:], location)
        elif token.startswith("const."):
            self._parse_constant(token[6:], location)
        elif token.startswith("proc."):
            self._open(token[5:], exported=False, location=location)
        elif token.startswith("export."):
            body = token[7:]
            if "::" in body:
                self._parse_reexport(body, location)
            else:
                self._open(body, exported=True, location=location)
        elif token == "begin":
            self._enter_bodies(location)
            self.current = ProcedureDecl(name=None, num_locals=0, exported=False, location=location)
        elif token == "end":
            raise AssemblySyntaxError("'end' without a matching declaration", location)
        else:
            raise AssemblySyntaxError(f"instruction '{token}' outside a procedure body", location)

    def _parse_import(self, text: str, location: SourceLocation) -> None:
        if self.section != _IMPORTS:
            raise MisplacedDeclarationError("imports must precede constants and procedures", location)
        path, arrow, alias = text.partition("->")
        validate_module_path(path, location)
        if arrow:
            validate_label(alias, location, what="import alias")
        else:
            alias = path.split("::")[-1]
        self.module.imports.append(ImportDecl(path=path, alias=alias, location=location))

    def _parse_constant(self, text: str, location: SourceLocation) -> None:
        if self.section > _CONSTANTS:
            raise MisplacedDeclarationError(
                "constants must be declared after imports and before any procedure", location
            )
        self.section = _CONSTANTS
        name, eq, expr = text.partition("=")
        if not eq or not expr:
            raise AssemblySyntaxError(f"malformed constant declaration 'const.{text}'", location)
        validate_constant_name(name, location)
        self.module.constants.append(ConstantDecl(name=name, expr=expr, location=location))

    def _parse_reexport(self, text: str, location: SourceLocation) -> None:
        self._enter_bodies(location)
        target, arrow, export_as = text.partition("->")
        module, _, name = target.rpartition("::")
        validate_module_path(module, location)
        validate_label(name, location)
        if arrow:
            validate_label(export_as, location)
        else:
            export_as = name
        self.module.reexports.append(ReExportDecl(
            module=module, name=name, export_as=export_as, location=location, docs=self._take_docs()
        ))

    def _open(self, text: str, exported: bool, location: SourceLocation) -> None:
        self._enter_bodies(location)
        parts = text.split(".")
        if len(parts) > 2:
            raise AssemblySyntaxError(f"malformed procedure declaration '{text}'", location)
        name = validate_label(parts[0], location)
        num_locals = 0
        if len(parts) == 2:
            if not parts[1].isdigit():
                raise AssemblySyntaxError(f"locals count must be a decimal integer, got '{parts[1]}'", location)
            num_locals = int(parts[1])
            if num_locals > MAX_PROCEDURE_LOCALS:
                raise LocalsLimitError(
                    f"procedure '{name}' declares {num_locals} locals, limit is {MAX_PROCEDURE_LOCALS}", location
                )
        self.current = ProcedureDecl(
            name=name, num_locals=num_locals, exported=exported, location=location, docs=self._take_docs()
        )

    def _enter_bodies(self, location: SourceLocation) -> None:
        if self.section == _AFTER_ENTRY:
            raise MisplacedDeclarationError("the program entry must be the last declaration", location)
        self.section = _BODIES

    def _close(self, location: SourceLocation) -> None:
        decl = self.current
        self.current = None
        if decl.is_entry:
            self.module.entry = decl
            self.section = _AFTER_ENTRY
        else:
            self.module.procedures.append(decl)

    @staticmethod
    def _describe(decl: ProcedureDecl) -> str:
        return "begin" if decl.is_entry else decl.name


def _instruction(token: str, location: SourceLocation) -> Instruction:
    name, *params = token.split(".")
    if not name or any(p == "" for p in params):
        raise AssemblySyntaxError(f"malformed instruction '{token}'", location)
    return Instruction(name=name, params=tuple(params), location=location)


def parse_module(source: str, path: str, file: Optional[str] = None) -> ModuleAst:
    """Parse module source text.

    Args:
        source: Module source text
        path: Module path (e.g. 'std::math::ext'), used to resolve imports
        file: File name reported in error locations (defaults to path)

    Raises:
        AssemblyError: On malformed or misplaced declarations
    """
    return _Parser(source, path, file or path).parse()
