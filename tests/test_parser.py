"""Tests for the module parser, constant evaluation and instruction lowering."""

import pytest

from assembly.constants import evaluate_expression, resolve_constants
from assembly.errors import (
    AssemblySyntaxError,
    ConstantError,
    InvalidNameError,
    LocalsLimitError,
    MisplacedDeclarationError,
    MisplacedDocCommentError,
    SourceLocation,
)
from assembly.instructions import lower_instruction
from assembly.parser import parse_module
from primitives.field import GOLDILOCKS_PRIME
from processor.opcodes import OpCode, Operation

P = GOLDILOCKS_PRIME
LOC = SourceLocation("test", 1)


class TestParser:
    def test_library_declarations(self) -> None:
        """Imports, constants, procedures and re-exports are collected in order."""
        ast = parse_module(
            "use.std::math::u64\n"
            "use.std::crypto->hash\n"
            "const.A=1\n"
            "#! Adds one.\n"
            "export.inc.2\n"
            "    push.1 add  # trailing comment\n"
            "end\n"
            "proc.helper drop end\n"
            "export.u64::add->add64\n",
            "lib::m",
        )
        assert [(i.path, i.alias) for i in ast.imports] == [("std::math::u64", "u64"), ("std::crypto", "hash")]
        assert [(c.name, c.expr) for c in ast.constants] == [("A", "1")]
        inc, helper = ast.procedures
        assert (inc.name, inc.num_locals, inc.exported, inc.docs) == ("inc", 2, True, "Adds one.")
        assert [str(i) for i in inc.body] == ["push.1", "add"]
        assert (helper.exported, helper.num_locals) == (False, 0)
        assert [(r.module, r.name, r.export_as) for r in ast.reexports] == [("u64", "add", "add64")]
        assert not ast.is_program

    def test_program_entry(self) -> None:
        """begin ... end is the entry and may be followed by comments only."""
        ast = parse_module("proc.f push.1 end\nbegin\n exec.f\nend\n# done\n", "program")
        assert ast.is_program
        assert [str(i) for i in ast.entry.body] == ["exec.f"]

    def test_content_after_entry(self) -> None:
        """Nothing but comments may follow the entry."""
        with pytest.raises(MisplacedDeclarationError):
            parse_module("begin push.1 end\nproc.f push.1 end\n", "program")

    def test_missing_end(self) -> None:
        """An unterminated body is reported at its declaration."""
        with pytest.raises(AssemblySyntaxError) as exc:
            parse_module("proc.f\n push.1\n", "m")
        assert exc.value.location.line == 1

    def test_doc_comment_inside_body(self) -> None:
        """A documentation comment inside a body is rejected."""
        with pytest.raises(MisplacedDocCommentError) as exc:
            parse_module("proc.f\n#! no\n push.1\nend\n", "m", file="m.masm")
        assert str(exc.value).startswith("m.masm:2:")

    def test_doc_comment_not_before_procedure(self) -> None:
        """A documentation comment must directly precede a declaration."""
        with pytest.raises(MisplacedDocCommentError):
            parse_module("#! stray\nconst.A=1\n", "m")
        with pytest.raises(MisplacedDocCommentError):
            parse_module("#! trailing\n", "m")

    def test_constant_after_procedure(self) -> None:
        """Constants must follow imports and precede procedures."""
        with pytest.raises(MisplacedDeclarationError):
            parse_module("proc.f push.1 end\nconst.A=1\n", "m")

    def test_import_after_constant(self) -> None:
        """Imports come first."""
        with pytest.raises(MisplacedDeclarationError):
            parse_module("const.A=1\nuse.std::x\n", "m")

    @pytest.mark.parametrize("source", ["proc.1abc push.1 end", "proc.a-b push.1 end", "proc." + "a" * 101 + " push.1 end"])
    def test_invalid_label(self, source) -> None:
        """Labels start with a letter and are at most 100 characters."""
        with pytest.raises(InvalidNameError):
            parse_module(source, "m")

    def test_label_limit_is_inclusive(self) -> None:
        """A 100-character label is accepted."""
        ast = parse_module("proc." + "a" * 100 + " push.1 end", "m")
        assert len(ast.procedures[0].name) == 100

    @pytest.mark.parametrize("name", ["lower", "1A", "A-B", "A" * 101])
    def test_invalid_constant_name(self, name) -> None:
        """Constant names are upper case and at most 100 characters."""
        with pytest.raises(InvalidNameError):
            parse_module(f"const.{name}=1", "m")

    def test_locals_limit(self) -> None:
        """A procedure may declare at most 2^16 locals."""
        parse_module(f"proc.f.{1 << 16} push.1 end", "m")
        with pytest.raises(LocalsLimitError):
            parse_module(f"proc.f.{(1 << 16) + 1} push.1 end", "m")

    def test_instruction_outside_body(self) -> None:
        """Instructions must sit inside a procedure."""
        with pytest.raises(AssemblySyntaxError):
            parse_module("push.1\n", "m")


class TestConstants:
    def test_earlier_constants(self) -> None:
        """B = A * 2 + 5 resolves to 25 when A = 10."""
        ast = parse_module("const.A=10\nconst.B=A*2+5\n", "m")
        assert resolve_constants(ast.constants) == {"A": 10, "B": 25}

    def test_self_reference(self) -> None:
        """A constant cannot reference itself."""
        ast = parse_module("const.A=A+1\n", "m")
        with pytest.raises(ConstantError):
            resolve_constants(ast.constants)

    def test_later_reference(self) -> None:
        """A constant cannot reference a later constant."""
        ast = parse_module("const.A=B\nconst.B=1\n", "m")
        with pytest.raises(ConstantError):
            resolve_constants(ast.constants)

    @pytest.mark.parametrize("expr,value", [
        ("1+2*3", 7),
        ("(1+2)*3", 9),
        ("7//2", 3),
        ("0x10-1", 15),
        ("0-1", P - 1),
        ("1/2", (P + 1) // 2),
        ("10/5", 2),
        ("2*3//4", 1),
    ])
    def test_operators(self, expr, value) -> None:
        """Field arithmetic for + - * /, floor division for //."""
        assert evaluate_expression(expr, {}, LOC) == value

    @pytest.mark.parametrize("expr", ["1/0", "5//0", "(1+2", "1+", "1 + 2", str(P)])
    def test_invalid(self, expr) -> None:
        """Malformed expressions, division by zero and out-of-range literals fail."""
        with pytest.raises(ConstantError):
            evaluate_expression(expr, {}, LOC)

    def test_largest_literal(self) -> None:
        """2^64 - 2^32 is the largest accepted value."""
        assert evaluate_expression(str(2**64 - 2**32), {}, LOC) == P - 1


class TestLowering:
    @staticmethod
    def lower(text: str, constants=None, num_locals: int = 0) -> list:
        ast = parse_module(f"proc.f.{num_locals} {text} end", "m")
        inst = ast.procedures[0].body[0]

        def resolve(kind, target, location):
            raise AssertionError("no invocations expected")

        return lower_instruction(inst, constants or {}, num_locals, resolve)

    @pytest.mark.parametrize("text,ops", [
        ("sub", [OpCode.NEG, OpCode.ADD]),
        ("div", [OpCode.INV, OpCode.MUL]),
        ("neq", [OpCode.EQ, OpCode.NOT]),
        ("assertz", [OpCode.EQZ, OpCode.ASSERT]),
        ("mem_store", [OpCode.MSTORE, OpCode.DROP]),
        ("ext2mul", [OpCode.EXT2MUL]),
    ])
    def test_aliases(self, text, ops) -> None:
        """Aliases expand to fixed operation sequences."""
        assert [op.opcode for op in self.lower(text)] == ops

    def test_operand_forms(self) -> None:
        """`op.v` pushes v first; constants are substituted."""
        assert self.lower("add.5") == [Operation(OpCode.PUSH, (5,)), Operation(OpCode.ADD)]
        assert self.lower("mem_load.N", {"N": 8}) == [Operation(OpCode.PUSH, (8,)), Operation(OpCode.MLOAD)]

    def test_push_many(self) -> None:
        """push.a.b.c pushes each value in order."""
        assert [op.imm[0] for op in self.lower("push.1.0x2.3")] == [1, 2, 3]

    def test_default_positions(self) -> None:
        """dup means dup.0 and swap means swap.1."""
        assert self.lower("dup") == [Operation(OpCode.DUP, (0,))]
        assert self.lower("swap") == [Operation(OpCode.SWAP, (1,))]

    @pytest.mark.parametrize("text", ["dup.16", "swap.0", "movup.1", "movdn", "push", "frobnicate"])
    def test_bad_instructions(self, text) -> None:
        """Unknown instructions and out-of-range positions are syntax errors."""
        with pytest.raises(AssemblySyntaxError):
            self.lower(text)

    def test_local_index_range(self) -> None:
        """loc_load.i requires i < declared locals."""
        assert self.lower("loc_load.1", num_locals=2) == [Operation(OpCode.LOCLOAD, (1,))]
        with pytest.raises(LocalsLimitError):
            self.lower("loc_store.2", num_locals=2)

    def test_undefined_constant(self) -> None:
        """An immediate naming an unknown constant fails."""
        with pytest.raises(ConstantError):
            self.lower("push.MISSING")
