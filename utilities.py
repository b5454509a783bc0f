"""
Utilities module for the Flax interpreter
Contains common helper functions to reduce code duplication
"""

from typing import Any, Dict, List, Callable
from contextlib import contextmanager

from error_handling import FlaxRuntimeError, TypeMismatch, ArityMismatch


# ==================== TYPE CHECKING UTILITIES ====================

def is_value_dict(val: Any) -> bool:
  """
  Check if value is a wrapped runtime value

  Args:
    val: Value to check

  Returns:
    True if val is a dict with 'type' and 'value' keys
  """
  return isinstance(val, dict) and 'type' in val and 'value' in val


def value_type(val: Dict) -> str:
  """Type tag of a runtime value, 'Unknown' for anything else"""
  return val['type'] if is_value_dict(val) else 'Unknown'


# ==================== ERROR MESSAGE BUILDERS ====================

def type_mismatch_error(
  what: str,
  expected: str,
  actual: Dict,
  line: int = 0
) -> TypeMismatch:
  """
  Generate type mismatch error

  Args:
    what: Description of the checked position, e.g. "operand of '-'"
    expected: Expected type
    actual: Actual value dict
    line: Source line, 0 when not yet known

  Returns:
    TypeMismatch with formatted message
  """
  return TypeMismatch(
    f"{what} must be {expected}, got {value_type(actual)}",
    line
  )


def arity_error(func_name: str, expected: int, got: int, line: int = 0) -> ArityMismatch:
  """
  Generate arity mismatch error

  Args:
    func_name: Function name
    expected: Expected number of arguments
    got: Actual number of arguments
    line: Source line of the call

  Returns:
    ArityMismatch with formatted message
  """
  plural = "argument" if expected == 1 else "arguments"
  return ArityMismatch(
    f"'{func_name}' expects {expected} {plural}, got {got}",
    line
  )


def operation_error(op: str, left: Dict, right: Dict, line: int = 0) -> TypeMismatch:
  """Generate error for a binary operator applied to unsupported operands"""
  return TypeMismatch(
    f"Operands of '{op}' must be Numbers, got {value_type(left)} and {value_type(right)}",
    line
  )


@contextmanager
def error_line(line: int):
  """Attach a source line to runtime errors raised without one"""
  try:
    yield
  except FlaxRuntimeError as e:
    if not e.line:
      e.line = line
    raise


# ==================== VALIDATION UTILITIES ====================

def require_type(value: Dict, expected: str, what: str, line: int = 0) -> Dict:
  """Return value unchanged if its tag is expected, raise TypeMismatch otherwise"""
  if value_type(value) != expected:
    raise type_mismatch_error(what, expected, value, line)
  return value


def validate_function_args(func_name: str, args: List[Dict], expected_count: int, line: int = 0) -> None:
  """Check the call supplies exactly the declared number of arguments"""
  if len(args) != expected_count:
    raise arity_error(func_name, expected_count, len(args), line)


# ==================== BINARY OPERATION FACTORIES ====================

def binary_comparison_op(
  op: Callable[[Any, Any], bool],
  op_name: str
) -> Callable[[Dict, Dict, Callable], Dict]:
  """
  Factory for numeric comparison operators

  Args:
    op: Python operator function (e.g., operator.lt)
    op_name: Operator lexeme for error messages

  Returns:
    Function that performs the comparison

  Examples:
    flax_lt = binary_comparison_op(operator.lt, "<")
    result = flax_lt({"type": "Number", "value": 1.0}, {"type": "Number", "value": 2.0}, make_value)
  """
  def comparison(x: Dict, y: Dict, make_value: Callable) -> Dict:
    if value_type(x) != "Number" or value_type(y) != "Number":
      raise operation_error(op_name, x, y)
    return make_value(op(x['value'], y['value']), "Boolean")

  return comparison


def binary_arithmetic_op(
  op: Callable[[Any, Any], Any],
  op_name: str
) -> Callable[[Dict, Dict, Callable], Dict]:
  """
  Factory for numeric arithmetic operators

  Args:
    op: Python operator function (e.g., operator.add)
    op_name: Operator lexeme for error messages

  Returns:
    Function that performs the arithmetic operation
  """
  def arithmetic(x: Dict, y: Dict, make_value: Callable) -> Dict:
    if value_type(x) != "Number" or value_type(y) != "Number":
      raise operation_error(op_name, x, y)
    return make_value(op(x['value'], y['value']), "Number")

  return arithmetic
