"""docs-coderef: keep CODE_REF code snippets in markdown in sync with source."""

__version__ = "0.4.0"
