"""
Flax Interpreter
Tree-walking evaluator with lexical scoping and closures
Runtime values and environments are plain dictionaries; environments are
mutated in place so closures observe later updates to the scopes they captured
"""

from typing import Any, Dict, List, Optional, TextIO
from contextlib import contextmanager
import sys

from parsing import (
  Program, Block, FunctionDecl, VarDecl, IfStmt, WhileStmt, ReturnStmt, ExprStmt,
  Literal, Variable, Assign, Binary, Unary, Call, Grouping, Conditional,
  create_parser,
)
from stdlib import (
  make_value,
  make_nil,
  make_function,
  create_builtin_functions,
  to_text,
  BINARY_OPERATORS,
  UNARY_OPERATORS,
)
from utilities import (
  error_line,
  require_type,
  validate_function_args,
  value_type,
)
from error_handling import UndefinedVariable, NotCallable, StackOverflow


DEFAULT_MAX_DEPTH = 1000


# ============================================================================
# DATA STRUCTURES
# ============================================================================

def make_runtime_env(parent: Optional[Dict] = None, bindings: Optional[Dict] = None) -> Dict:
  """Create a runtime environment; parent is None for the global scope"""
  return {
      'parent': parent,
      'bindings': bindings or {}
  }


def make_signal(kind: str, value: Optional[Dict] = None) -> Dict:
  """Control signal returned by statement execution: NORMAL or RETURN"""
  return {
      'kind': kind,
      'value': value
  }


NORMAL = make_signal('NORMAL')


def make_execution_context(debug: bool = False, max_depth: int = DEFAULT_MAX_DEPTH) -> Dict:
  """Create an execution context tracking call depth"""
  return {
      'debug': debug,
      'depth': 0,
      'max_depth': max_depth
  }


def trace(context: Dict, message: str) -> None:
  if context['debug']:
    print(f"[eval] {'  ' * context['depth']}{message}", file=sys.stderr)


# ============================================================================
# ENVIRONMENT OPERATIONS
# ============================================================================

def env_define(env: Dict, name: str, value: Dict) -> None:
  """Bind name in this scope, shadowing any outer binding"""
  env['bindings'][name] = value


def env_lookup_value(env: Dict, name: str, line: int = 0) -> Dict:
  """Look up a value in the environment chain"""
  scope = env
  while scope is not None:
    if name in scope['bindings']:
      return scope['bindings'][name]
    scope = scope['parent']
  raise UndefinedVariable(name, line)


def env_assign(env: Dict, name: str, value: Dict, line: int = 0) -> None:
  """Update the nearest existing binding of name"""
  scope = env
  while scope is not None:
    if name in scope['bindings']:
      scope['bindings'][name] = value
      return
    scope = scope['parent']
  raise UndefinedVariable(name, line)


def create_builtin_runtime_env(output: Optional[TextIO] = None) -> Dict:
  """Global environment holding the built-in functions"""
  return make_runtime_env(None, create_builtin_functions(output))


# ============================================================================
# STATEMENT EXECUTION
# ============================================================================

def execute(stmt: Any, env: Dict, context: Dict) -> Dict:
  """Execute a statement and return its control signal"""
  executor = STATEMENT_EXECUTORS.get(type(stmt))
  if executor is None:
    raise TypeError(f"Unknown statement node: {type(stmt).__name__}")
  return executor(stmt, env, context)


def execute_block(statements: List[Any], env: Dict, context: Dict) -> Dict:
  """Run statements in env, stopping at the first RETURN signal"""
  for stmt in statements:
    signal = execute(stmt, env, context)
    if signal['kind'] == 'RETURN':
      return signal
  return NORMAL


def exec_block(node: Block, env: Dict, context: Dict) -> Dict:
  return execute_block(node.statements, make_runtime_env(env), context)


def exec_function_decl(node: FunctionDecl, env: Dict, context: Dict) -> Dict:
  trace(context, f"define func {node.name}({', '.join(node.params)})")
  env_define(env, node.name, make_function(node.name, node.params, node.body, env))
  return NORMAL


def exec_var_decl(node: VarDecl, env: Dict, context: Dict) -> Dict:
  value = make_nil()
  if node.initializer is not None:
    value = eval_ast(node.initializer, env, context)
  trace(context, f"let {node.name} = {to_text(value)}")
  env_define(env, node.name, value)
  return NORMAL


def exec_if(node: IfStmt, env: Dict, context: Dict) -> Dict:
  condition = eval_ast(node.condition, env, context)
  require_type(condition, "Boolean", "Condition of 'if'", node.line)

  if condition['value']:
    return execute(node.then_branch, env, context)
  elif node.else_branch is not None:
    return execute(node.else_branch, env, context)
  return NORMAL


def exec_while(node: WhileStmt, env: Dict, context: Dict) -> Dict:
  while True:
    condition = eval_ast(node.condition, env, context)
    require_type(condition, "Boolean", "Condition of 'while'", node.line)
    if not condition['value']:
      return NORMAL

    signal = execute(node.body, env, context)
    if signal['kind'] == 'RETURN':
      return signal


def exec_return(node: ReturnStmt, env: Dict, context: Dict) -> Dict:
  value = make_nil()
  if node.value is not None:
    value = eval_ast(node.value, env, context)
  return make_signal('RETURN', value)


def exec_expression(node: ExprStmt, env: Dict, context: Dict) -> Dict:
  eval_ast(node.expression, env, context)
  return NORMAL


# ============================================================================
# EXPRESSION EVALUATION
# ============================================================================

def eval_ast(node: Any, env: Dict, context: Dict) -> Dict:
  """Evaluate an expression node to a runtime value"""
  evaluator = EXPRESSION_EVALUATORS.get(type(node))
  if evaluator is None:
    raise TypeError(f"Unknown expression node: {type(node).__name__}")
  return evaluator(node, env, context)


def eval_literal(node: Literal, env: Dict, context: Dict) -> Dict:
  return make_value(node.value, node.kind)


def eval_variable(node: Variable, env: Dict, context: Dict) -> Dict:
  return env_lookup_value(env, node.name, node.line)


def eval_assign(node: Assign, env: Dict, context: Dict) -> Dict:
  value = eval_ast(node.value, env, context)
  env_assign(env, node.name, value, node.line)
  return value


def eval_binary(node: Binary, env: Dict, context: Dict) -> Dict:
  left = eval_ast(node.left, env, context)
  right = eval_ast(node.right, env, context)
  with error_line(node.line):
    return BINARY_OPERATORS[node.operator](left, right)


def eval_unary(node: Unary, env: Dict, context: Dict) -> Dict:
  operand = eval_ast(node.operand, env, context)
  with error_line(node.line):
    return UNARY_OPERATORS[node.operator](operand)


def eval_grouping(node: Grouping, env: Dict, context: Dict) -> Dict:
  return eval_ast(node.expression, env, context)


def eval_conditional(node: Conditional, env: Dict, context: Dict) -> Dict:
  condition = eval_ast(node.condition, env, context)
  require_type(condition, "Boolean", "Condition of '?:'", node.line)
  if condition['value']:
    return eval_ast(node.then_expr, env, context)
  return eval_ast(node.else_expr, env, context)


def eval_call(node: Call, env: Dict, context: Dict) -> Dict:
  callee = eval_ast(node.callee, env, context)
  args = [eval_ast(arg, env, context) for arg in node.arguments]
  return call_function(callee, args, context, node.line)


def call_function(callee: Dict, args: List[Dict], context: Dict, line: int = 0) -> Dict:
  """Apply a Function or NativeFunction to already evaluated arguments"""
  kind = value_type(callee)

  if kind == 'NativeFunction':
    native = callee['value']
    validate_function_args(native['name'], args, native['arity'], line)
    trace(context, f"call native {native['name']}")
    with error_line(line):
      return native['func'](*args)

  if kind != 'Function':
    raise NotCallable(f"Can only call functions, got {kind}", line)

  function = callee['value']
  name = function['name']
  validate_function_args(name, args, len(function['params']), line)

  if context['depth'] >= context['max_depth']:
    raise StackOverflow(f"Maximum call depth of {context['max_depth']} exceeded in '{name}'", line)

  # Parameters live in a fresh scope whose parent is the defining scope, never the caller's
  call_env = make_runtime_env(function['closure_env'])
  for param, arg in zip(function['params'], args):
    env_define(call_env, param, arg)

  trace(context, f"call {name}({', '.join(to_text(a) for a in args)})")
  context['depth'] += 1
  try:
    signal = execute_block(function['body'].statements, call_env, context)
  except RecursionError:
    raise StackOverflow(f"Host recursion limit reached in '{name}'", line) from None
  finally:
    context['depth'] -= 1

  if signal['kind'] == 'RETURN':
    return signal['value']
  return make_nil()


STATEMENT_EXECUTORS = {
    Block: exec_block,
    FunctionDecl: exec_function_decl,
    VarDecl: exec_var_decl,
    IfStmt: exec_if,
    WhileStmt: exec_while,
    ReturnStmt: exec_return,
    ExprStmt: exec_expression,
}

EXPRESSION_EVALUATORS = {
    Literal: eval_literal,
    Variable: eval_variable,
    Assign: eval_assign,
    Binary: eval_binary,
    Unary: eval_unary,
    Grouping: eval_grouping,
    Conditional: eval_conditional,
    Call: eval_call,
}


# ============================================================================
# PROGRAM EVALUATION
# ============================================================================

def eval_program(program: Program, env: Dict, context: Dict) -> Dict:
  """Execute every top-level declaration in env and return env"""
  for declaration in program.declarations:
    with recursion_guard(declaration.line):
      execute(declaration, env, context)
  return env


@contextmanager
def recursion_guard(line: int):
  """Report host recursion exhaustion outside any call as StackOverflow"""
  try:
    yield
  except RecursionError:
    raise StackOverflow("Expression nested too deeply", line) from None


class FlaxInterpreter:
  """Interpreter holding one global environment across runs"""

  def __init__(self, debug: bool = False, output: Optional[TextIO] = None,
               max_depth: int = DEFAULT_MAX_DEPTH):
    self.debug = debug
    self.global_env = create_builtin_runtime_env(output)
    self.context = make_execution_context(debug, max_depth)
    self.builtin_names = set(self.global_env['bindings'])

  def interpret(self, program: Program) -> Dict:
    """Run a program against the global environment"""
    self.context['depth'] = 0
    return eval_program(program, self.global_env, self.context)

  def evaluate(self, expression: Any) -> Dict:
    """Evaluate a single expression in the global environment"""
    self.context['depth'] = 0
    with recursion_guard(getattr(expression, "line", 0)):
      return eval_ast(expression, self.global_env, self.context)

  def user_bindings(self) -> Dict[str, Dict]:
    """Global bindings excluding the built-ins"""
    return {name: value for name, value in self.global_env['bindings'].items()
            if name not in self.builtin_names}


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def create_interpreter(debug: bool = False, output: Optional[TextIO] = None,
                       max_depth: int = DEFAULT_MAX_DEPTH) -> FlaxInterpreter:
  """Factory function returning an interpreter"""
  return FlaxInterpreter(debug=debug, output=output, max_depth=max_depth)


def run_source(source: str, output: Optional[TextIO] = None, debug: bool = False,
               max_depth: int = DEFAULT_MAX_DEPTH) -> FlaxInterpreter:
  """Lex, parse and run source text; the whole program is parsed before anything runs"""
  program = create_parser(debug).parse_string(source)
  interpreter = create_interpreter(debug=debug, output=output, max_depth=max_depth)
  interpreter.interpret(program)
  return interpreter
