"""
Flax Standard Library
Built-in functions, canonical text conversion and operator semantics
Values are plain dictionaries of the form {'type': <tag>, 'value': <payload>}
"""

from typing import Dict, Callable, Any, List, Optional, TextIO
from decimal import Decimal
import math
import operator
import time

from utilities import (
  binary_comparison_op,
  binary_arithmetic_op,
  require_type,
)


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================

def make_value(value: Any, type_name: str) -> Dict:
  """Create a runtime value"""
  return {
      'value': value,
      'type': type_name
  }


def make_nil() -> Dict:
  return make_value(None, "Nil")


def make_function(name: str, params: List[str], body: Any, closure_env: Dict) -> Dict:
  """Create a function value; the closure environment is shared, not copied"""
  return make_value({
      'name': name,
      'params': params,
      'body': body,
      'closure_env': closure_env
  }, "Function")


def make_builtin_function(name: str, func: Callable, arity: int) -> Dict:
  """Create a built-in function value"""
  return make_value({
      'name': name,
      'arity': arity,
      'func': func
  }, "NativeFunction")


# ============================================================================
# CANONICAL TEXT
# ============================================================================

def format_number(n: float) -> str:
  """Integral numbers print without a fraction, others in plain positional notation"""
  if math.isnan(n):
    return "NaN"
  if math.isinf(n):
    return "inf" if n > 0 else "-inf"
  if n.is_integer():
    if n == 0 and math.copysign(1.0, n) < 0:
      return "-0"
    return str(int(n))
  # repr gives the shortest round-tripping digits; Decimal drops the exponent form
  return format(Decimal(repr(n)), 'f')


def to_text(value: Dict) -> str:
  """Convert a value to the text used by '++' and println"""
  kind = value['type']
  if kind == "Number":
    return format_number(value['value'])
  elif kind == "String":
    return value['value']
  elif kind == "Boolean":
    return "true" if value['value'] else "false"
  elif kind == "Nil":
    return "nil"
  elif kind == "Function":
    return f"<fn {value['value']['name']}>"
  elif kind == "NativeFunction":
    return f"<native fn {value['value']['name']}>"
  else:
    return f"<{kind}>"


# ============================================================================
# ARITHMETIC FUNCTIONS
# ============================================================================

def ieee_divide(x: float, y: float) -> float:
  """Float division that yields inf/NaN on a zero divisor instead of raising"""
  try:
    return x / y
  except ZeroDivisionError:
    if x == 0 or math.isnan(x):
      return math.nan
    return math.copysign(math.inf, x) * math.copysign(1.0, y)


_flax_add_impl = binary_arithmetic_op(operator.add, "+")
_flax_sub_impl = binary_arithmetic_op(operator.sub, "-")
_flax_mul_impl = binary_arithmetic_op(operator.mul, "*")
_flax_div_impl = binary_arithmetic_op(ieee_divide, "/")


def flax_add(x: Dict, y: Dict) -> Dict:
  """Addition"""
  return _flax_add_impl(x, y, make_value)


def flax_sub(x: Dict, y: Dict) -> Dict:
  """Subtraction"""
  return _flax_sub_impl(x, y, make_value)


def flax_mul(x: Dict, y: Dict) -> Dict:
  """Multiplication"""
  return _flax_mul_impl(x, y, make_value)


def flax_div(x: Dict, y: Dict) -> Dict:
  """Division"""
  return _flax_div_impl(x, y, make_value)


def flax_concat(x: Dict, y: Dict) -> Dict:
  """Concatenate the canonical text of any two values"""
  return make_value(to_text(x) + to_text(y), "String")


# ============================================================================
# COMPARISON FUNCTIONS
# ============================================================================

def values_equal(x: Dict, y: Dict) -> bool:
  if x['type'] != y['type']:
    return False
  if x['type'] == "Nil":
    return True
  if x['type'] in ("Function", "NativeFunction"):
    return x['value'] is y['value']
  return x['value'] == y['value']


def flax_eq(x: Dict, y: Dict) -> Dict:
  """Equality comparison"""
  return make_value(values_equal(x, y), "Boolean")


def flax_ne(x: Dict, y: Dict) -> Dict:
  """Not equal comparison"""
  return make_value(not values_equal(x, y), "Boolean")


_flax_lt_impl = binary_comparison_op(operator.lt, "<")
_flax_gt_impl = binary_comparison_op(operator.gt, ">")
_flax_le_impl = binary_comparison_op(operator.le, "<=")
_flax_ge_impl = binary_comparison_op(operator.ge, ">=")


def flax_lt(x: Dict, y: Dict) -> Dict:
  """Less than comparison"""
  return _flax_lt_impl(x, y, make_value)


def flax_gt(x: Dict, y: Dict) -> Dict:
  """Greater than comparison"""
  return _flax_gt_impl(x, y, make_value)


def flax_le(x: Dict, y: Dict) -> Dict:
  """Less than or equal comparison"""
  return _flax_le_impl(x, y, make_value)


def flax_ge(x: Dict, y: Dict) -> Dict:
  """Greater than or equal comparison"""
  return _flax_ge_impl(x, y, make_value)


# ============================================================================
# UNARY FUNCTIONS
# ============================================================================

def flax_negate(x: Dict) -> Dict:
  """Numeric negation"""
  require_type(x, "Number", "Operand of '-'")
  return make_value(-x['value'], "Number")


def flax_not(x: Dict) -> Dict:
  """Logical negation; no truthiness, the operand must be a Boolean"""
  require_type(x, "Boolean", "Operand of '!'")
  return make_value(not x['value'], "Boolean")


BINARY_OPERATORS: Dict[str, Callable[[Dict, Dict], Dict]] = {
    '+': flax_add,
    '-': flax_sub,
    '*': flax_mul,
    '/': flax_div,
    '++': flax_concat,
    '==': flax_eq,
    '!=': flax_ne,
    '<': flax_lt,
    '>': flax_gt,
    '<=': flax_le,
    '>=': flax_ge,
}

UNARY_OPERATORS: Dict[str, Callable[[Dict], Dict]] = {
    '-': flax_negate,
    '!': flax_not,
}


# ============================================================================
# BUILT-IN FUNCTIONS
# ============================================================================

def flax_clock() -> Dict:
  """Seconds from a monotonic clock; only differences are meaningful"""
  return make_value(time.perf_counter(), "Number")


def make_println(output: Optional[TextIO] = None) -> Callable[[Dict], Dict]:
  """Build println bound to an output stream (None means the current sys.stdout)"""
  def flax_println(value: Dict) -> Dict:
    print(to_text(value), file=output)
    return make_nil()

  return flax_println


def create_builtin_functions(output: Optional[TextIO] = None) -> Dict[str, Dict]:
  """Built-in function registry for one interpreter"""
  return {
      "clock": make_builtin_function("clock", flax_clock, 0),
      "println": make_builtin_function("println", make_println(output), 1),
  }


def list_builtin_functions() -> List[str]:
  """List all available built-in functions"""
  return list(create_builtin_functions().keys())
