"""Core infrastructure package for shared library functionality.

- **config**: Configuration management with environment support
- **constants**: Currency precision and rounding mode
- **exceptions**: Structured exception hierarchy with error codes
- **logging**: Loguru setup with console and JSON formatters
- **types**: Type aliases for amounts, instants and context data
"""
