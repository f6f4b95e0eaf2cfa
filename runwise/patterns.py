"""
Known error patterns and their canned explanations.

Used by the normal (offline) explainer. Entries are checked in order and the
first match wins, so specific patterns must come before broad ones.
GENERAL_ERROR is always last and is returned when nothing else matches.

To add a pattern, insert an ErrorPattern above the catch-all.
"""

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class ErrorPattern:
    """A named error signature with its explanation."""

    name: str
    match: re.Pattern
    explanation: str

    def matches(self, text: str) -> bool:
        return bool(self.match.search(text))


def _pattern(name: str, regex: str, explanation: str) -> ErrorPattern:
    return ErrorPattern(name=name, match=re.compile(regex, re.IGNORECASE), explanation=explanation.strip())


ERROR_PATTERNS = [
    # Module and import errors
    _pattern(
        "MODULE_NOT_FOUND",
        r"Cannot find module|MODULE_NOT_FOUND|ModuleNotFoundError|No module named",
        """
A module or package you are importing could not be found.

Common causes:
- Typo in the module name or path
- Package not installed in the environment being used
- Incorrect relative path

Solution:
1. Check the spelling of the module name
2. Install the package (npm install <name> or pip install <name>)
3. Verify relative paths against the importing file's location
4. Make sure the right virtualenv or node_modules is active
""",
    ),
    _pattern(
        "IMPORT_ERROR",
        r"ImportError|cannot import name|does not provide an export named",
        """
The module was found, but the name you are importing from it does not exist.

Common causes:
- The name was renamed or removed in a newer version
- Circular imports leaving a module half-initialised
- Default vs. named export mix-up

Solution:
1. Check what the module actually exports
2. Pin or upgrade the dependency to a version that has the name
3. Break the import cycle by moving the import into a function
""",
    ),
    _pattern(
        "HEADERS_ALREADY_SENT",
        r"ERR_HTTP_HEADERS_SENT|Cannot set headers after they are sent",
        """
The response was already sent, and the code tried to send or modify it again.

Common causes:
- Calling res.send() or res.json() twice in one handler
- Missing return after sending a response
- Calling next() after responding

Solution:
1. Add return before every res.send()/res.json()/res.redirect()
2. Make sure only one branch of the handler responds
3. Do not call next() after a response was sent
""",
    ),
    _pattern(
        "REFERENCE_ERROR",
        r"ReferenceError|is not defined|NameError",
        """
You are using a variable or name that does not exist in this scope.

Common causes:
- Typo in the variable name
- Using a variable before it is declared
- Variable declared in a different scope
- Missing import or require

Solution:
1. Check the spelling of the name
2. Declare the variable before using it
3. Check the block or function it was defined in
4. Import the dependency that provides it
""",
    ),
    _pattern(
        "TYPE_ERROR",
        r"TypeError|Cannot read propert(y|ies)|is not a function|is not callable",
        """
You are calling a method or accessing a property on a value that does not support it.

Common causes:
- Accessing a property on null or undefined (None in Python)
- Calling something that is not a function
- Passing the wrong type or number of arguments

Solution:
1. Check the value is not null/undefined/None before using it
2. Use optional chaining (obj?.prop) or an explicit guard
3. Verify the object really has the method you are calling
4. Check the function signature for the expected arguments
""",
    ),
    _pattern(
        "ATTRIBUTE_ERROR",
        r"AttributeError|has no attribute",
        """
The object does not have the attribute or method you asked for.

Common causes:
- The value is None where an object was expected
- Typo in the attribute name
- The attribute exists only in a different library version

Solution:
1. Print type(obj) to see what you actually have
2. Check the attribute name against the class definition
3. Guard against None before accessing attributes
""",
    ),
    _pattern(
        "JSON_PARSE_ERROR",
        r"Unexpected token .* in JSON|Unexpected end of JSON input|JSONDecodeError|is not valid JSON",
        """
Text that was expected to be JSON could not be parsed.

Common causes:
- The server returned HTML or an error page instead of JSON
- Trailing commas or single quotes in a JSON file
- Parsing an empty string

Solution:
1. Log the raw text before parsing it
2. Validate the file with a JSON linter
3. Check the response status and content type before parsing
""",
    ),
    _pattern(
        "SYNTAX_ERROR",
        r"SyntaxError|Unexpected token|Unexpected identifier|IndentationError|invalid syntax",
        """
The code is not valid syntax for the language and could not be parsed.

Common causes:
- Missing closing bracket, parenthesis, brace or quote
- Mixed tabs and spaces (Python)
- Using syntax newer than your runtime supports

Solution:
1. Look at the line number in the error (and the line just before it)
2. Check for unbalanced brackets and quotes
3. Run a formatter or linter to point at the exact spot
""",
    ),
    _pattern(
        "EADDRINUSE",
        r"EADDRINUSE|address already in use|Port .* is already in use",
        """
The port you are trying to listen on is already in use by another process.

Common causes:
- Another instance of your app is still running
- Another service uses the same port
- The previous process did not fully close

Solution:
1. Find the process using the port: lsof -i :PORT
2. Stop it, or choose a different port
3. Read the port from an environment variable so it is easy to change
""",
    ),
    _pattern(
        "ECONNREFUSED",
        r"ECONNREFUSED|Connection refused|ConnectionRefusedError",
        """
The connection was refused: nothing is listening at the host and port you tried.

Common causes:
- The database or service is not running
- Wrong host or port in the connection settings
- A firewall is blocking the connection

Solution:
1. Start the service you depend on
2. Double-check host and port in your configuration
3. Try connecting with a client tool (curl, psql, redis-cli) to confirm
""",
    ),
    _pattern(
        "DNS_LOOKUP_FAILED",
        r"ENOTFOUND|getaddrinfo|Name or service not known|nodename nor servname",
        """
A hostname could not be resolved to an address.

Common causes:
- Typo in the hostname or URL
- No network connection
- DNS not configured for an internal host

Solution:
1. Check the hostname in your configuration
2. Check your network connection
3. Try resolving it manually: nslookup <host>
""",
    ),
    _pattern(
        "TIMEOUT",
        r"ETIMEDOUT|ESOCKETTIMEDOUT|timed out|TimeoutError",
        """
An operation took too long and was aborted.

Common causes:
- The remote service is slow or overloaded
- Network problems between you and the service
- Timeout set too low for the operation

Solution:
1. Check that the remote service is healthy
2. Increase the timeout if the operation is legitimately slow
3. Add retries with backoff for flaky networks
""",
    ),
    _pattern(
        "PERMISSION_DENIED",
        r"EACCES|EPERM|PermissionError|Permission denied|operation not permitted",
        """
The process is not allowed to access a file, directory or port.

Common causes:
- File owned by another user
- Binding to a port below 1024 without privileges
- Read-only filesystem or directory

Solution:
1. Check file ownership and permissions (ls -l)
2. Use a port above 1024 for development
3. Avoid running as root; fix the permissions instead
""",
    ),
    _pattern(
        "FILE_NOT_FOUND",
        r"ENOENT|FileNotFoundError|no such file or directory",
        """
A file or directory the code tried to open does not exist.

Common causes:
- Relative path resolved against a different working directory
- Typo in the file name
- File not created yet

Solution:
1. Print the absolute path being opened
2. Build paths relative to the script (__dirname / Path(__file__).parent)
3. Create the file or directory before using it
""",
    ),
    _pattern(
        "UNHANDLED_REJECTION",
        r"UnhandledPromiseRejection|Unhandled Rejection|unhandled promise|Task exception was never retrieved",
        """
An asynchronous operation failed and nothing handled the error.

Common causes:
- Missing .catch() on a promise
- Missing try/except around await
- Fire-and-forget tasks whose result is never checked

Solution:
1. Wrap await calls in try/catch (try/except in Python)
2. Add .catch() to promise chains
3. Keep references to background tasks and check their results
""",
    ),
    _pattern(
        "OUT_OF_MEMORY",
        r"heap out of memory|JavaScript heap|MemoryError|Cannot allocate memory",
        """
The process ran out of memory.

Common causes:
- Loading a very large file or dataset at once
- Unbounded caches or arrays that keep growing
- A memory leak in a long-running loop

Solution:
1. Stream or paginate large data instead of loading it whole
2. Look for collections that grow forever
3. Raise the memory limit only after ruling out a leak
""",
    ),
    _pattern(
        "RECURSION_LIMIT",
        r"Maximum call stack size exceeded|RecursionError|maximum recursion depth",
        """
A function kept calling itself until the call stack ran out.

Common causes:
- Recursive function without a reachable base case
- Two functions calling each other forever
- A property getter or setter that calls itself

Solution:
1. Check the base case of your recursion
2. Look for getters/setters that reference themselves
3. Convert deep recursion to a loop
""",
    ),
    _pattern(
        "RANGE_ERROR",
        r"RangeError|Invalid array length|out of range",
        """
A value was outside the range that an operation accepts.

Common causes:
- Negative or huge array length
- Invalid date or number formatting arguments
- Out-of-range numeric conversion

Solution:
1. Validate numeric inputs before using them
2. Log the value that triggered the error
""",
    ),
    _pattern(
        "KEY_ERROR",
        r"KeyError",
        """
A dictionary key was looked up but does not exist.

Common causes:
- Typo in the key
- Data from an API or file missing an expected field
- Case mismatch in key names

Solution:
1. Use dict.get(key, default) when the key is optional
2. Print the available keys to compare
3. Validate incoming data before using it
""",
    ),
    _pattern(
        "INDEX_ERROR",
        r"IndexError|index out of range",
        """
A list or sequence was indexed past its end.

Common causes:
- Off-by-one error in a loop
- Assuming a list is non-empty
- Parallel lists of different lengths

Solution:
1. Check len() before indexing
2. Iterate directly instead of by index
3. Handle the empty case explicitly
""",
    ),
    _pattern(
        "VALUE_ERROR",
        r"ValueError|invalid literal for",
        """
A function received an argument of the right type but an invalid value.

Common causes:
- Converting a non-numeric string with int() or float()
- Unpacking the wrong number of values
- Invalid enum or format value

Solution:
1. Validate or sanitise input before converting it
2. Print the offending value
3. Catch the error where user input is parsed
""",
    ),
    _pattern(
        "ZERO_DIVISION",
        r"ZeroDivisionError|division by zero",
        """
The code divided a number by zero.

Common causes:
- Averaging an empty collection
- A counter or denominator that was never incremented

Solution:
1. Guard the division with a check for zero
2. Decide what the result should be for the empty case
""",
    ),
    _pattern(
        "ASSERTION_FAILED",
        r"AssertionError|assertion failed|ERR_ASSERTION",
        """
An assertion in the code failed: something the author assumed to be true was not.

Common causes:
- Unexpected input reaching internal code
- A test expectation that no longer holds

Solution:
1. Read the assertion and the values involved
2. Decide whether the input or the assumption is wrong
""",
    ),
    # Catch-all; must stay last
    _pattern(
        "GENERAL_ERROR",
        r"error|failed|exception",
        """
A general error occurred. Check the error message and stack trace above.

Solution:
1. Read the full error message carefully
2. Follow the stack trace to where the error originated
3. Check the file and line numbers it mentions
4. Search the exact message together with the library name
""",
    ),
]

GENERAL_ERROR = ERROR_PATTERNS[-1]


def find_error_pattern(error_text: str) -> ErrorPattern:
    """Return the first matching pattern, or GENERAL_ERROR."""
    for pattern in ERROR_PATTERNS:
        if pattern.matches(error_text):
            return pattern
    return GENERAL_ERROR


def get_error_explanation(error_text: str) -> str:
    return find_error_pattern(error_text).explanation
