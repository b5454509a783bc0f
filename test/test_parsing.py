"""
Parsing tests for the Flax language
Tests the grammar, operator precedence and parse errors
"""

import sys
import pytest
from parsing import (
  create_parser, pretty_print_ast,
  Program, FunctionDecl, VarDecl, IfStmt, WhileStmt, ReturnStmt, ExprStmt, Block,
  Literal, Variable, Assign, Binary, Unary, Call, Grouping, Conditional,
)
from error_handling import FlaxParseError, FlaxLexError


@pytest.fixture
def parser():
  """Provide a fresh parser instance for each test"""
  return create_parser()


class TestDeclarations:
  """Test parsing of declarations and statements"""

  def test_empty_program(self, parser):
    program = parser.parse_string("// nothing here\n")
    assert isinstance(program, Program)
    assert program.declarations == []

  def test_var_declaration(self, parser):
    decl = parser.parse_string("let x = 42;").declarations[0]
    assert isinstance(decl, VarDecl)
    assert decl.name == "x"
    assert decl.initializer == Literal(42.0, 'Number', 1)

  def test_var_declaration_without_initializer(self, parser):
    decl = parser.parse_string("let x;").declarations[0]
    assert decl.initializer is None

  def test_function_declaration(self, parser):
    decl = parser.parse_string("func add(a, b) { return a + b; }").declarations[0]
    assert isinstance(decl, FunctionDecl)
    assert decl.name == "add"
    assert decl.params == ["a", "b"]
    assert isinstance(decl.body, Block)
    assert isinstance(decl.body.statements[0], ReturnStmt)

  def test_function_without_parameters(self, parser):
    decl = parser.parse_string("func now() { return clock(); }").declarations[0]
    assert decl.params == []

  def test_if_else(self, parser):
    stmt = parser.parse_string("if x < 1 { println(1); } else { println(2); }").declarations[0]
    assert isinstance(stmt, IfStmt)
    assert isinstance(stmt.condition, Binary)
    assert isinstance(stmt.then_branch, Block)
    assert isinstance(stmt.else_branch, Block)

  def test_else_if_chain(self, parser):
    stmt = parser.parse_string("if a { } else if b { } else { }").declarations[0]
    assert isinstance(stmt.else_branch, IfStmt)
    assert isinstance(stmt.else_branch.else_branch, Block)

  def test_while(self, parser):
    stmt = parser.parse_string("while cur <= n { cur += 1; }").declarations[0]
    assert isinstance(stmt, WhileStmt)
    assert stmt.condition.operator == "<="

  def test_nested_block(self, parser):
    stmt = parser.parse_string("{ let a = 1; { let b = 2; } }").declarations[0]
    assert isinstance(stmt, Block)
    assert isinstance(stmt.statements[1], Block)

  def test_return_without_value(self, parser):
    decl = parser.parse_string("func f() { return; }").declarations[0]
    assert decl.body.statements[0].value is None

  def test_lines_are_recorded(self, parser):
    program = parser.parse_string("let a = 1;\n\nfunc f() {\n  return a;\n}")
    assert program.declarations[0].line == 1
    assert program.declarations[1].line == 3
    assert program.declarations[1].body.statements[0].line == 4


class TestExpressions:
  """Test expression precedence and associativity"""

  def test_multiplication_binds_tighter_than_addition(self, parser):
    expr = parser.parse_expression("1 + 2 * 3")
    assert expr.operator == "+"
    assert expr.right.operator == "*"

  def test_subtraction_is_left_associative(self, parser):
    expr = parser.parse_expression("10 - 4 - 3")
    assert expr.operator == "-"
    assert expr.left.operator == "-"
    assert expr.right == Literal(3.0, 'Number', 1)

  def test_concatenation_binds_loosest(self, parser):
    expr = parser.parse_expression('"n = " ++ 1 + 2 == 3')
    assert expr.operator == "++"
    assert expr.right.operator == "=="
    assert expr.right.left.operator == "+"

  def test_comparison_above_equality(self, parser):
    expr = parser.parse_expression("a < b == c > d")
    assert expr.operator == "=="
    assert expr.left.operator == "<"
    assert expr.right.operator == ">"

  def test_unary(self, parser):
    expr = parser.parse_expression("-x * !y")
    assert expr.operator == "*"
    assert expr.left == Unary("-", Variable("x", 1), 1)
    assert isinstance(expr.right, Unary)
    assert expr.right.operator == "!"

  def test_grouping(self, parser):
    expr = parser.parse_expression("(1 + 2) * 3")
    assert expr.operator == "*"
    assert isinstance(expr.left, Grouping)

  def test_call_with_arguments(self, parser):
    expr = parser.parse_expression("fib(n - 1, 2)")
    assert isinstance(expr, Call)
    assert expr.callee == Variable("fib", 1)
    assert len(expr.arguments) == 2

  def test_chained_calls(self, parser):
    expr = parser.parse_expression("make()(1)")
    assert isinstance(expr, Call)
    assert isinstance(expr.callee, Call)

  def test_assignment_is_right_associative(self, parser):
    expr = parser.parse_expression("a = b = 1")
    assert isinstance(expr, Assign)
    assert expr.name == "a"
    assert isinstance(expr.value, Assign)

  def test_compound_assignment_desugars(self, parser):
    expr = parser.parse_expression("cur += 1")
    assert isinstance(expr, Assign)
    assert expr.name == "cur"
    assert expr.value.operator == "+"
    assert expr.value.left == Variable("cur", 1)
    assert expr.value.right == Literal(1.0, 'Number', 1)

  def test_conditional_expression(self, parser):
    expr = parser.parse_expression("n < 2 ? n : fib(n - 1)")
    assert isinstance(expr, Conditional)
    assert isinstance(expr.else_expr, Call)

  def test_literals(self, parser):
    assert parser.parse_expression("true") == Literal(True, 'Boolean', 1)
    assert parser.parse_expression("nil") == Literal(None, 'Nil', 1)
    assert parser.parse_expression('"s"') == Literal("s", 'String', 1)


class TestParseErrors:
  """Test error handling and reporting"""

  def test_missing_semicolon(self, parser):
    with pytest.raises(FlaxParseError) as exc_info:
      parser.parse_string("let x = 1\nlet y = 2;")
    assert exc_info.value.line == 2
    assert exc_info.value.token.lexeme == "let"

  def test_missing_closing_brace(self, parser):
    with pytest.raises(FlaxParseError) as exc_info:
      parser.parse_string("func f() { return 1;")
    assert "end of input" in exc_info.value.message

  def test_invalid_assignment_target(self, parser):
    with pytest.raises(FlaxParseError) as exc_info:
      parser.parse_string("1 = 2;")
    assert "Invalid assignment target" in exc_info.value.message

  def test_compound_assignment_needs_variable(self, parser):
    with pytest.raises(FlaxParseError):
      parser.parse_string("f() += 1;")

  def test_return_at_top_level(self, parser):
    with pytest.raises(FlaxParseError) as exc_info:
      parser.parse_string("return 1;")
    assert "top-level" in exc_info.value.message

  def test_duplicate_parameter(self, parser):
    with pytest.raises(FlaxParseError):
      parser.parse_string("func f(a, a) { }")

  def test_if_requires_block(self, parser):
    with pytest.raises(FlaxParseError):
      parser.parse_string("if x println(1);")

  def test_unexpected_token(self, parser):
    with pytest.raises(FlaxParseError) as exc_info:
      parser.parse_string("let x = );")
    assert str(exc_info.value) == "ParseError: Expected expression, got ')' (line 1)"

  def test_lex_errors_surface_before_parsing(self, parser):
    with pytest.raises(FlaxLexError):
      parser.parse_string('let x = "open;')

  def test_deep_nesting_is_a_parse_error(self, parser):
    depth = sys.getrecursionlimit() * 2
    source = "let x = " + "(" * depth + "1" + ")" * depth + ";"
    with pytest.raises(FlaxParseError) as exc_info:
      parser.parse_string("\n" + source)
    assert "nested too deeply" in exc_info.value.message
    assert exc_info.value.line == 2

  def test_deep_nesting_in_expression(self, parser):
    depth = sys.getrecursionlimit() * 2
    with pytest.raises(FlaxParseError):
      parser.parse_expression("-" * depth + "1")

  def test_trailing_tokens_in_expression(self, parser):
    with pytest.raises(FlaxParseError):
      parser.parse_expression("1 2")


class TestPrettyPrint:

  def test_pretty_print_shows_structure(self, parser):
    text = pretty_print_ast(parser.parse_string("func f(n) { return n ++ \"!\"; }"))
    lines = text.splitlines()
    assert lines[0].startswith("Program")
    assert "FunctionDecl(name='f', params=['n'])" in text
    assert "Binary(operator='++')" in text
