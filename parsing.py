"""
Flax Programming Language Parser
Recursive-descent parser turning the token stream into an abstract syntax tree
"""

from typing import List, Any, Optional, Union
from dataclasses import dataclass, fields
import sys

from lexing import Token, create_tokenizer
from error_handling import FlaxParseError


# ============================================================================
# AST NODES - STATEMENTS
# ============================================================================

@dataclass(frozen=True)
class Program:
    declarations: List[Any]
    line: int = 1


@dataclass(frozen=True)
class Block:
    statements: List[Any]
    line: int = 0


@dataclass(frozen=True)
class FunctionDecl:
    name: str
    params: List[str]
    body: Block
    line: int = 0


@dataclass(frozen=True)
class VarDecl:
    name: str
    initializer: Optional[Any] = None
    line: int = 0


@dataclass(frozen=True)
class IfStmt:
    condition: Any
    then_branch: Block
    else_branch: Optional[Union[Block, 'IfStmt']] = None
    line: int = 0


@dataclass(frozen=True)
class WhileStmt:
    condition: Any
    body: Block
    line: int = 0


@dataclass(frozen=True)
class ReturnStmt:
    value: Optional[Any] = None
    line: int = 0


@dataclass(frozen=True)
class ExprStmt:
    expression: Any
    line: int = 0


# ============================================================================
# AST NODES - EXPRESSIONS
# ============================================================================

@dataclass(frozen=True)
class Literal:
    """Literal value; kind is one of Number, String, Boolean, Nil"""
    value: Any
    kind: str
    line: int = 0


@dataclass(frozen=True)
class Variable:
    name: str
    line: int = 0


@dataclass(frozen=True)
class Assign:
    name: str
    value: Any
    line: int = 0


@dataclass(frozen=True)
class Binary:
    operator: str
    left: Any
    right: Any
    line: int = 0


@dataclass(frozen=True)
class Unary:
    operator: str
    operand: Any
    line: int = 0


@dataclass(frozen=True)
class Call:
    callee: Any
    arguments: List[Any]
    line: int = 0


@dataclass(frozen=True)
class Grouping:
    expression: Any
    line: int = 0


@dataclass(frozen=True)
class Conditional:
    condition: Any
    then_expr: Any
    else_expr: Any
    line: int = 0


# Binary operator levels, lowest precedence first; every level is left-associative
BINARY_PRECEDENCE = [
    ('PLUS_PLUS',),
    ('EQUAL_EQUAL', 'BANG_EQUAL'),
    ('LESS', 'LESS_EQUAL', 'GREATER', 'GREATER_EQUAL'),
    ('PLUS', 'MINUS'),
    ('STAR', 'SLASH'),
]


class FlaxGrammar:
    """Recursive-descent productions over a single token list"""

    def __init__(self, tokens: List[Token], debug: bool = False):
        self.tokens = tokens
        self.debug = debug
        self.current = 0
        self.function_depth = 0

    # ------------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------------

    def _peek(self) -> Token:
        return self.tokens[self.current]

    def _previous(self) -> Token:
        return self.tokens[self.current - 1]

    def _at_end(self) -> bool:
        return self._peek().kind == 'EOF'

    def _check(self, kind: str) -> bool:
        return self._peek().kind == kind

    def _advance(self) -> Token:
        if not self._at_end():
            self.current += 1
        return self._previous()

    def _match(self, *kinds: str) -> bool:
        if self._peek().kind in kinds:
            self._advance()
            return True
        return False

    def _consume(self, kind: str, message: str) -> Token:
        if self._check(kind):
            return self._advance()
        raise self._error(self._peek(), message)

    def _error(self, token: Token, message: str) -> FlaxParseError:
        got = "end of input" if token.kind == 'EOF' else f"'{token.lexeme}'"
        return FlaxParseError(f"{message}, got {got}", token)

    # ------------------------------------------------------------------------
    # Declarations and statements
    # ------------------------------------------------------------------------

    def program(self) -> Program:
        declarations = []
        while not self._at_end():
            declarations.append(self.declaration())

        if self.debug:
            print(f"[parse] {len(declarations)} top-level declarations", file=sys.stderr)

        return Program(declarations)

    def declaration(self):
        if self._match('FUNC'):
            return self.function_declaration()
        if self._match('LET'):
            return self.var_declaration()
        return self.statement()

    def function_declaration(self) -> FunctionDecl:
        keyword = self._previous()
        name = self._consume('IDENTIFIER', "Expected function name").lexeme
        self._consume('LEFT_PAREN', f"Expected '(' after function name '{name}'")

        params: List[str] = []
        if not self._check('RIGHT_PAREN'):
            while True:
                param = self._consume('IDENTIFIER', "Expected parameter name")
                if param.lexeme in params:
                    raise FlaxParseError(f"Duplicate parameter '{param.lexeme}' in function '{name}'", param)
                params.append(param.lexeme)
                if not self._match('COMMA'):
                    break
        self._consume('RIGHT_PAREN', "Expected ')' after parameters")

        self.function_depth += 1
        try:
            body = self.block()
        finally:
            self.function_depth -= 1

        return FunctionDecl(name, params, body, keyword.line)

    def var_declaration(self) -> VarDecl:
        keyword = self._previous()
        name = self._consume('IDENTIFIER', "Expected variable name").lexeme

        initializer = None
        if self._match('EQUAL'):
            initializer = self.expression()

        self._consume('SEMICOLON', "Expected ';' after variable declaration")
        return VarDecl(name, initializer, keyword.line)

    def statement(self):
        if self._match('IF'):
            return self.if_statement()
        if self._match('WHILE'):
            return self.while_statement()
        if self._match('RETURN'):
            return self.return_statement()
        if self._check('LEFT_BRACE'):
            return self.block()
        return self.expression_statement()

    def if_statement(self) -> IfStmt:
        keyword = self._previous()
        condition = self.expression()
        then_branch = self.block()

        else_branch = None
        if self._match('ELSE'):
            if self._match('IF'):
                else_branch = self.if_statement()
            else:
                else_branch = self.block()

        return IfStmt(condition, then_branch, else_branch, keyword.line)

    def while_statement(self) -> WhileStmt:
        keyword = self._previous()
        condition = self.expression()
        body = self.block()
        return WhileStmt(condition, body, keyword.line)

    def return_statement(self) -> ReturnStmt:
        keyword = self._previous()
        if self.function_depth == 0:
            raise FlaxParseError("Cannot return from top-level code", keyword)

        value = None
        if not self._check('SEMICOLON'):
            value = self.expression()

        self._consume('SEMICOLON', "Expected ';' after return value")
        return ReturnStmt(value, keyword.line)

    def expression_statement(self) -> ExprStmt:
        line = self._peek().line
        expression = self.expression()
        self._consume('SEMICOLON', "Expected ';' after expression")
        return ExprStmt(expression, line)

    def block(self) -> Block:
        brace = self._consume('LEFT_BRACE', "Expected '{' to start block")
        statements = []
        while not self._check('RIGHT_BRACE') and not self._at_end():
            statements.append(self.declaration())
        self._consume('RIGHT_BRACE', "Expected '}' after block")
        return Block(statements, brace.line)

    # ------------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------------

    def expression(self):
        return self.assignment()

    def assignment(self):
        target = self.conditional()

        if self._match('EQUAL', 'PLUS_EQUAL'):
            operator = self._previous()
            value = self.assignment()

            if not isinstance(target, Variable):
                raise FlaxParseError("Invalid assignment target", operator)

            if operator.kind == 'PLUS_EQUAL':
                # name += expr is name = name + expr
                value = Binary('+', Variable(target.name, target.line), value, operator.line)
            return Assign(target.name, value, operator.line)

        return target

    def conditional(self):
        condition = self.binary(0)

        if self._match('QUESTION'):
            question = self._previous()
            then_expr = self.expression()
            self._consume('COLON', "Expected ':' in conditional expression")
            else_expr = self.conditional()
            return Conditional(condition, then_expr, else_expr, question.line)

        return condition

    def binary(self, level: int):
        if level == len(BINARY_PRECEDENCE):
            return self.unary()

        left = self.binary(level + 1)
        while self._match(*BINARY_PRECEDENCE[level]):
            operator = self._previous()
            right = self.binary(level + 1)
            left = Binary(operator.lexeme, left, right, operator.line)
        return left

    def unary(self):
        if self._match('BANG', 'MINUS'):
            operator = self._previous()
            operand = self.unary()
            return Unary(operator.lexeme, operand, operator.line)
        return self.call()

    def call(self):
        expr = self.primary()

        while self._match('LEFT_PAREN'):
            paren = self._previous()
            arguments = []
            if not self._check('RIGHT_PAREN'):
                while True:
                    arguments.append(self.expression())
                    if not self._match('COMMA'):
                        break
            self._consume('RIGHT_PAREN', "Expected ')' after arguments")
            expr = Call(expr, arguments, paren.line)

        return expr

    def primary(self):
        token = self._peek()

        if self._match('NUMBER'):
            return Literal(token.literal, 'Number', token.line)
        if self._match('STRING'):
            return Literal(token.literal, 'String', token.line)
        if self._match('TRUE', 'FALSE'):
            return Literal(token.literal, 'Boolean', token.line)
        if self._match('NIL'):
            return Literal(None, 'Nil', token.line)
        if self._match('IDENTIFIER'):
            return Variable(token.lexeme, token.line)
        if self._match('LEFT_PAREN'):
            expression = self.expression()
            self._consume('RIGHT_PAREN', "Expected ')' after expression")
            return Grouping(expression, token.line)

        raise self._error(token, "Expected expression")


def too_deeply_nested(grammar: FlaxGrammar) -> FlaxParseError:
    """Error for input whose nesting exhausted the host recursion limit"""
    return FlaxParseError("Expression nested too deeply", grammar._peek())


class FlaxParser:
    """Main Flax parser combining tokenizer and grammar"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.tokenizer = create_tokenizer(debug)

    def parse_file(self, filepath: str) -> Program:
        """Parse a Flax source file"""
        with open(filepath, 'r', encoding='utf-8') as f:
            content = f.read()
        return self.parse_string(content)

    def parse_string(self, text: str) -> Program:
        """Parse Flax source code from string"""
        return self.parse_tokens(self.tokenize(text))

    def parse_tokens(self, tokens: List[Token]) -> Program:
        """Parse an already tokenized program"""
        grammar = FlaxGrammar(tokens, self.debug)
        try:
            return grammar.program()
        except RecursionError:
            raise too_deeply_nested(grammar) from None

    def parse_expression(self, text: str):
        """Parse a single Flax expression"""
        grammar = FlaxGrammar(self.tokenize(text), self.debug)
        try:
            expression = grammar.expression()
        except RecursionError:
            raise too_deeply_nested(grammar) from None
        grammar._consume('EOF', "Expected end of expression")
        return expression

    def tokenize(self, text: str) -> List[Token]:
        """Tokenize Flax source code"""
        return self.tokenizer.tokenize(text)


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> FlaxParser:
    """Create a Flax parser"""
    return FlaxParser(debug=debug)


# Utility functions for working with the AST
def is_ast_node(value: Any) -> bool:
    return hasattr(value, '__dataclass_fields__')


def pretty_print_ast(node: Any, indent: int = 0) -> str:
    """Pretty print an AST node for debugging"""
    scalars = []
    children = []
    for f in fields(node):
        if f.name == 'line':
            continue
        value = getattr(node, f.name)
        if is_ast_node(value):
            children.append((f.name, [value]))
        elif isinstance(value, list) and any(is_ast_node(v) for v in value):
            children.append((f.name, value))
        elif value is not None:
            scalars.append(f"{f.name}={value!r}")

    result = "  " * indent + type(node).__name__
    if scalars:
        result += f"({', '.join(scalars)})"
    result += f"  @ line {node.line}\n"

    for name, nodes in children:
        result += "  " * (indent + 1) + f"{name}:\n"
        for child in nodes:
            result += pretty_print_ast(child, indent + 2)

    return result
