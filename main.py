"""
Flax Programming Language - Main Entry Point
A small dynamically-typed scripting language with closures
"""

import sys
import argparse
from typing import Optional, List
import os

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from lexing import KEYWORDS
from parsing import create_parser, pretty_print_ast
from interpreter import create_interpreter, DEFAULT_MAX_DEPTH
from stdlib import to_text, list_builtin_functions
from error_handling import FlaxError, FlaxParseError, describe_error, format_diagnostic


VERSION = "Flax v0.1.0 (Tree-walking Interpreter)"

EXIT_OK = 0
EXIT_FAILURE = 1


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      prog='flax',
      description='Flax Programming Language - dynamically typed, with closures',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s script.flax             # Run a Flax script
  %(prog)s -i                      # Interactive mode
  %(prog)s --tokens script.flax    # Show the token stream
  %(prog)s --ast script.flax       # Parse and show the AST
  %(prog)s --debug script.flax     # Run with trace output on stderr
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='Flax script file to execute'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '--tokens',
      action='store_true',
      help='Tokenize file and show tokens (does not run it)'
  )

  parser.add_argument(
      '--ast',
      action='store_true',
      help='Parse file and show the AST (does not run it)'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Trace every stage on stderr and show source context for errors'
  )

  parser.add_argument(
      '--max-depth',
      type=int,
      default=DEFAULT_MAX_DEPTH,
      help=f'Maximum function call depth before StackOverflow (default {DEFAULT_MAX_DEPTH})'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


def report_error(error: FlaxError, source: Optional[str] = None, debug: bool = False) -> None:
  """Write an error diagnostic to stderr"""
  if debug:
    print(describe_error(error, source), file=sys.stderr)
  else:
    print(format_diagnostic(error), file=sys.stderr)


def read_source(script_path: str) -> Optional[str]:
  """Read a script file, reporting I/O problems on stderr"""
  try:
    with open(script_path, 'r', encoding='utf-8') as f:
      return f.read()
  except FileNotFoundError:
    print(f"Error: Script file '{script_path}' not found", file=sys.stderr)
  except PermissionError:
    print(f"Error: Permission denied reading '{script_path}'", file=sys.stderr)
  except IsADirectoryError:
    print(f"Error: '{script_path}' is a directory", file=sys.stderr)
  except UnicodeDecodeError as e:
    print(f"Error: Cannot decode file '{script_path}': {e}", file=sys.stderr)
    print("  Hint: Make sure the file is a text file with UTF-8 encoding", file=sys.stderr)
  return None


def tokens_file(script_path: str, debug: bool = False) -> int:
  """Tokenize a Flax script file and show the tokens"""
  source = read_source(script_path)
  if source is None:
    return EXIT_FAILURE

  try:
    tokens = create_parser(debug).tokenize(source)
  except FlaxError as e:
    report_error(e, source, debug)
    return EXIT_FAILURE

  for token in tokens:
    print(token)
  return EXIT_OK


def ast_file(script_path: str, debug: bool = False) -> int:
  """Parse a Flax script file and show the AST"""
  source = read_source(script_path)
  if source is None:
    return EXIT_FAILURE

  try:
    program = create_parser(debug).parse_string(source)
  except FlaxError as e:
    report_error(e, source, debug)
    return EXIT_FAILURE

  print(pretty_print_ast(program), end='')
  return EXIT_OK


def run_script_file(script_path: str, debug: bool = False, max_depth: int = DEFAULT_MAX_DEPTH) -> int:
  """Run a Flax script file; returns the process exit status"""
  source = read_source(script_path)
  if source is None:
    return EXIT_FAILURE

  try:
    parser = create_parser(debug)
    interpreter = create_interpreter(debug=debug, max_depth=max_depth)

    # The whole program is parsed before any of it runs
    program = parser.parse_string(source)
    if debug:
      print(f"[main] parsed {len(program.declarations)} declarations from {script_path}", file=sys.stderr)

    interpreter.interpret(program)
  except FlaxError as e:
    report_error(e, source, debug)
    return EXIT_FAILURE
  except Exception as e:
    print(f"Unexpected error while executing '{script_path}': {e}", file=sys.stderr)
    if debug:
      import traceback
      traceback.print_exc()
    return EXIT_FAILURE

  return EXIT_OK


def ensure_recursion_headroom(max_depth: int) -> None:
  """Give the host enough Python frames for max_depth nested Flax calls"""
  # Each Flax call nests a handful of evaluator frames
  needed = max_depth * 8 + 200
  if sys.getrecursionlimit() < needed:
    sys.setrecursionlimit(needed)


def setup_readline():
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  history_file = os.path.expanduser("~/.flax_history")
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First time, no history yet

  readline.set_history_length(1000)

  completions = sorted(KEYWORDS) + list_builtin_functions() + [
      ":tokens", ":ast", ":env", ":help", ":quit"
  ]

  def completer(text, state):
    options = [cmd for cmd in completions if cmd.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.parse_and_bind("tab: complete")

  # Save history on exit
  import atexit
  atexit.register(readline.write_history_file, history_file)


def execute_repl_line(code: str, parser, interpreter) -> Optional[str]:
  """Run one interactive entry; returns the text to echo for a bare expression"""
  stripped = code.strip()

  if not stripped.endswith((';', '}')):
    try:
      expression = parser.parse_expression(stripped)
    except FlaxParseError:
      expression = None
    if expression is not None:
      value = interpreter.evaluate(expression)
      return f"=> {to_text(value)}"

  interpreter.interpret(parser.parse_string(code))
  return None


def print_repl_help() -> None:
  print("REPL Commands:")
  print("  :tokens <code>    - Show the token stream")
  print("  :ast <code>       - Show the parsed AST")
  print("  :env              - Show user-defined globals")
  print("  :help             - Show this help")
  print("  :quit             - Exit REPL (also 'exit')")
  print()
  print("Language features:")
  print("  let x = 5;                      - Variable declaration")
  print("  func add(a, b) { return a + b; } - Function definition")
  print("  add(1, 2)                       - Expression (result is echoed)")
  print("  println(\"n = \" ++ x);           - Output")


def run_interactive_mode(debug: bool = False, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
  """Run Flax in interactive mode; bindings persist between entries"""
  print(f"{VERSION} - Interactive Mode")
  print("Type ':quit' to quit, ':help' for commands")
  if READLINE_AVAILABLE:
    print("Readline enabled: Use ↑/↓ for history, Tab for completion")
  if debug:
    print("Debug mode enabled")
  print()

  setup_readline()

  parser = create_parser(debug)
  interpreter = create_interpreter(debug=debug, max_depth=max_depth)

  while True:
    try:
      code = input("flax> ")
    except (KeyboardInterrupt, EOFError):
      print("\nGoodbye!")
      break

    command = code.strip()
    if command in (":quit", "exit"):
      break
    if not command:
      continue

    try:
      if command.startswith(":tokens "):
        for token in parser.tokenize(command[len(":tokens "):]):
          print(token)
      elif command.startswith(":ast "):
        print(pretty_print_ast(parser.parse_string(command[len(":ast "):])), end='')
      elif command == ":env":
        bindings = interpreter.user_bindings()
        if not bindings:
          print("  (no user-defined bindings)")
        for name, value in bindings.items():
          val_str = to_text(value)
          if len(val_str) > 60:
            val_str = val_str[:57] + "..."
          print(f"  {name} = {val_str}")
      elif command == ":help":
        print_repl_help()
      else:
        echo = execute_repl_line(code, parser, interpreter)
        if echo is not None:
          print(echo)
    except FlaxError as e:
      report_error(e, code, debug)
    except KeyboardInterrupt:
      print("\nInterrupted")


def show_language_info() -> None:
  """Show Flax language information"""
  print("Flax Programming Language")
  print("=" * 50)
  print("A small dynamically-typed scripting language with:")
  print("• Numbers, strings, booleans and nil")
  print("• First-class functions and closures")
  print("• Block scoping with let, if/else and while")
  print("• String concatenation with ++")
  print()


def main(argv: Optional[List[str]] = None) -> None:
  """Main entry point for Flax"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args(argv)

  if args.max_depth < 1:
    arg_parser.error("--max-depth must be at least 1")
  ensure_recursion_headroom(args.max_depth)

  if args.script:
    if args.tokens:
      sys.exit(tokens_file(args.script, debug=args.debug))
    elif args.ast:
      sys.exit(ast_file(args.script, debug=args.debug))
    else:
      sys.exit(run_script_file(args.script, debug=args.debug, max_depth=args.max_depth))

  elif args.interactive or (argv is None and len(sys.argv) == 1):
    # No arguments - show info and start interactive mode
    show_language_info()
    run_interactive_mode(debug=args.debug, max_depth=args.max_depth)

  else:
    arg_parser.print_help()
    print()
    show_language_info()


if __name__ == "__main__":
  main()
